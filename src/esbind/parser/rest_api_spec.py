"""Elasticsearch rest-api-spec parser.

Parses the JSON descriptors published in the Elasticsearch repository
(``rest-api-spec/src/main/resources/rest-api-spec/api/*.json``) into
Endpoint models. YAML files with the same layout are accepted too.
"""

import logging
from pathlib import Path

import yaml

from esbind.errors import SpecError
from esbind.parser.base import BodySpec, Endpoint, Param, ParamKind, PathTemplate, option_value

logger = logging.getLogger(__name__)

SPEC_SUFFIXES = (".json", ".yaml", ".yml")

_KIND_BY_TYPE = {
    "boolean": ParamKind.BOOLEAN,
    "string": ParamKind.STRING,
    "list": ParamKind.LIST,
    "number": ParamKind.NUMBER,
    "int": ParamKind.NUMBER,
    "integer": ParamKind.NUMBER,
    "long": ParamKind.NUMBER,
    "double": ParamKind.NUMBER,
    "float": ParamKind.NUMBER,
    "time": ParamKind.TIME,
    "date": ParamKind.STRING,
    "enum": ParamKind.ENUM,
}


def parse_rest_api_spec(path: Path) -> list[Endpoint]:
    """Parse a descriptor file, or every descriptor file in a directory."""
    if path.is_dir():
        endpoints = []
        for file_path in sorted(path.iterdir()):
            if file_path.suffix in SPEC_SUFFIXES and not file_path.name.startswith("_"):
                endpoints.extend(parse_rest_api_spec(file_path))
        return endpoints

    try:
        doc = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise SpecError(f"{path}: {e}") from e
    if not isinstance(doc, dict):
        raise SpecError(f"{path}: expected a mapping of endpoint names")

    endpoints = parse_document(doc, source=str(path))
    logger.debug("Loaded %d endpoints from %s", len(endpoints), path)
    return endpoints


def parse_document(doc: dict, source: str = "<document>") -> list[Endpoint]:
    """Parse an already-loaded rest-api-spec mapping."""
    endpoints = []
    for name, definition in doc.items():
        if name.startswith("_"):
            continue  # _common.json holds the global params
        if not isinstance(definition, dict):
            raise SpecError(f"{source}: {name} is not a mapping")
        endpoints.append(_parse_endpoint(name, definition, source))
    return endpoints


def _parse_endpoint(name: str, definition: dict, source: str) -> Endpoint:
    url = definition.get("url") or {}
    raw_paths = url.get("paths") or []
    if not raw_paths:
        raise SpecError(f"{source}: {name} declares no paths")

    paths = []
    for raw in raw_paths:
        if "path" not in raw or not raw.get("methods"):
            raise SpecError(f"{source}: {name} has a path without path/methods")
        parts = {
            part_name: _parse_part(part_name, part)
            for part_name, part in (raw.get("parts") or {}).items()
        }
        paths.append(
            PathTemplate(
                path=raw["path"],
                methods=[m.upper() for m in raw["methods"]],
                parts=parts,
            )
        )

    params = [
        _parse_param(param_name, param, name, source)
        for param_name, param in (definition.get("params") or {}).items()
    ]

    body = None
    if definition.get("body") is not None:
        raw_body = definition["body"]
        body = BodySpec(
            description=raw_body.get("description", ""),
            required=bool(raw_body.get("required", False)),
        )

    docs = definition.get("documentation") or {}
    return Endpoint(
        name=name,
        description=docs.get("description", ""),
        documentation_url=docs.get("url") or "",
        stability=definition.get("stability", "stable"),
        paths=paths,
        params=params,
        body=body,
    )


def _parse_part(name: str, part: dict) -> Param:
    kind = ParamKind.LIST if part.get("type") == "list" else ParamKind.STRING
    return Param(
        name=name,
        kind=kind,
        description=part.get("description", ""),
        deprecated=bool(part.get("deprecated", False)),
    )


def _parse_param(name: str, param: dict, endpoint: str, source: str) -> Param:
    raw_type = param.get("type", "string")
    kind = _KIND_BY_TYPE.get(raw_type)
    if kind is None:
        raise SpecError(f"{source}: {endpoint}.{name} has unknown type {raw_type!r}")
    return Param(
        name=name,
        kind=kind,
        description=param.get("description", ""),
        options=[option_value(o) for o in param.get("options", [])],
        default=param.get("default"),
        deprecated=bool(param.get("deprecated", False)),
    )
