"""Auto-detect endpoint descriptor format and dispatch to the right parser."""

import json
from pathlib import Path

import yaml

from esbind.errors import SpecError
from esbind.parser.base import Endpoint
from esbind.parser.openapi import parse_openapi
from esbind.parser.rest_api_spec import parse_rest_api_spec

FORMATS = ("auto", "rest-api-spec", "openapi")


def detect_format(file_path: Path) -> str:
    """Detect the format of a descriptor file.

    Returns: 'rest-api-spec' or 'openapi'. Directories are always
    treated as rest-api-spec directories.
    """
    if file_path.is_dir():
        return "rest-api-spec"

    text = file_path.read_text(encoding="utf-8")

    # Try YAML/JSON parsing
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError:
        data = None

    # Try JSON specifically (for files not parseable as YAML)
    if data is None:
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, ValueError):
            data = None

    if isinstance(data, dict):
        if "openapi" in data or "swagger" in data:
            return "openapi"
        if any(isinstance(v, dict) and "url" in v for v in data.values()):
            return "rest-api-spec"

    raise SpecError(f"{file_path}: unrecognized descriptor format")


def parse_spec(file_path: Path, fmt: str = "auto") -> list[Endpoint]:
    """Parse a descriptor file or directory based on format."""
    if fmt == "auto":
        fmt = detect_format(file_path)

    if fmt == "openapi":
        return parse_openapi(file_path)
    elif fmt == "rest-api-spec":
        return parse_rest_api_spec(file_path)
    raise SpecError(f"unknown descriptor format: {fmt}")
