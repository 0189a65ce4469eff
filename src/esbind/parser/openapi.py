"""OpenAPI 3.x document parser.

Parses OpenAPI documents into Endpoint models. Operations sharing an
operationId (up to a numeric ``-N`` suffix) are grouped into one endpoint
with several path templates, the way rest-api-spec lists path variants.
"""

import re
from pathlib import Path

import yaml

from esbind.errors import SpecError
from esbind.parser.base import BodySpec, Endpoint, Param, ParamKind, PathTemplate, option_value

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD")

_VARIANT_SUFFIX = re.compile(r"-\d+$")


def parse_openapi(file_path: Path) -> list[Endpoint]:
    """Parse an OpenAPI file into a list of Endpoint."""
    text = file_path.read_text(encoding="utf-8")
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SpecError(f"{file_path}: {e}") from e
    if not isinstance(doc, dict) or "paths" not in doc:
        raise SpecError(f"{file_path}: not an OpenAPI document")

    grouped: dict[str, dict] = {}
    components = doc.get("components", {}).get("parameters", {})
    schemas = doc.get("components", {}).get("schemas", {})

    for path, methods in doc.get("paths", {}).items():
        shared = methods.get("parameters", [])
        for method, operation in methods.items():
            if method.upper() not in HTTP_METHODS:
                continue

            name = _endpoint_name(method, path, operation)
            params = [_resolve(p, components) for p in shared + operation.get("parameters", [])]
            entry = grouped.setdefault(
                name,
                {
                    "description": operation.get("description") or operation.get("summary", ""),
                    "docs": (operation.get("externalDocs") or {}).get("url", ""),
                    "paths": [],
                    "params": {},
                    "body": None,
                },
            )

            _add_path(entry, path, method.upper(), params, schemas)
            for p in params:
                if p.get("in") == "query" and p["name"] not in entry["params"]:
                    entry["params"][p["name"]] = _parse_query_param(p, schemas)
            if operation.get("requestBody") and entry["body"] is None:
                entry["body"] = _parse_request_body(operation["requestBody"])

    return [
        Endpoint(
            name=name,
            description=entry["description"],
            documentation_url=entry["docs"],
            paths=entry["paths"],
            params=list(entry["params"].values()),
            body=entry["body"],
        )
        for name, entry in grouped.items()
    ]


def _endpoint_name(method: str, path: str, operation: dict) -> str:
    operation_id = operation.get("operationId")
    if not operation_id:
        return f"{method.upper()} {path}"
    return _VARIANT_SUFFIX.sub("", operation_id)


def _resolve(param: dict, components: dict) -> dict:
    ref = param.get("$ref")
    if not ref:
        return param
    key = ref.rsplit("/", 1)[-1]
    if key not in components:
        raise SpecError(f"unresolved parameter reference {ref}")
    return components[key]


def _add_path(entry: dict, path: str, method: str, params: list[dict], schemas: dict) -> None:
    for template in entry["paths"]:
        if template.path == path:
            if method not in template.methods:
                template.methods.append(method)
            return

    parts = {}
    for p in params:
        if p.get("in") != "path":
            continue
        leaves = _variants(p.get("schema", {}), schemas)
        kind = ParamKind.LIST if any(leaf.get("type") == "array" for leaf in leaves) else ParamKind.STRING
        parts[p["name"]] = Param(name=p["name"], kind=kind, description=p.get("description", ""))
    entry["paths"].append(PathTemplate(path=path, methods=[method], parts=parts))


def _variants(schema: dict, schemas: dict, seen: frozenset = frozenset()) -> list[dict]:
    """Resolve ``$ref`` and flatten ``oneOf``/``anyOf`` into leaf schemas."""
    ref = schema.get("$ref")
    if ref:
        key = ref.rsplit("/", 1)[-1]
        if key in seen:
            return []  # recursive type
        if key not in schemas:
            raise SpecError(f"unresolved schema reference {ref}")
        return _variants(schemas[key], schemas, seen | {key})

    union = schema.get("oneOf") or schema.get("anyOf")
    if not union:
        return [schema]
    return [leaf for variant in union for leaf in _variants(variant, schemas, seen)]


def _schema_kind(leaves: list[dict], schemas: dict) -> tuple[ParamKind, list[str]]:
    """Pick the most permissive kind that accepts every variant.

    A union of enums (and booleans, and arrays of enums) stays an enum with
    all of their options. Any other array variant makes the param a list.
    """
    types = {leaf.get("type") for leaf in leaves}
    options: list[str] = []
    all_enum = bool(leaves)
    for leaf in leaves:
        if leaf.get("type") == "array":
            candidates = _variants(leaf.get("items", {}), schemas)
        else:
            candidates = [leaf]
        for candidate in candidates:
            if "enum" in candidate:
                options.extend(option_value(o) for o in candidate["enum"])
            elif candidate.get("type") != "boolean":
                all_enum = False

    if options and all_enum:
        if "boolean" in types:
            options.extend(["true", "false"])
        return ParamKind.ENUM, list(dict.fromkeys(options))
    if "array" in types:
        return ParamKind.LIST, []
    if types == {"boolean"}:
        return ParamKind.BOOLEAN, []
    if types and types <= {"integer", "number"}:
        return ParamKind.NUMBER, []
    return ParamKind.STRING, []


def _parse_query_param(p: dict, schemas: dict) -> Param:
    schema = p.get("schema", {})
    leaves = _variants(schema, schemas)
    kind, options = _schema_kind(leaves, schemas)

    default = schema.get("default")
    if default is None:
        default = next((leaf["default"] for leaf in leaves if "default" in leaf), None)

    return Param(
        name=p["name"],
        kind=kind,
        description=p.get("description", ""),
        options=options,
        default=default,
        deprecated=bool(p.get("deprecated", False)),
    )


def _parse_request_body(body: dict) -> BodySpec:
    return BodySpec(
        description=body.get("description", ""),
        required=bool(body.get("required", False)),
    )
