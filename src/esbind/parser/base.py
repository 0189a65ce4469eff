"""Endpoint descriptor models.

Every descriptor format (rest-api-spec JSON, OpenAPI) is converted into
these models. The runtime in ``esbind.api`` only ever reads descriptors.
"""

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel

_PLACEHOLDER = re.compile(r"\{([^}]+)\}")


class ParamKind(str, Enum):
    BOOLEAN = "boolean"
    STRING = "string"
    LIST = "list"
    NUMBER = "number"
    TIME = "time"
    ENUM = "enum"


def option_value(value: Any) -> str:
    """Enum option in wire form; booleans become ``true``/``false``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class Param(BaseModel):
    """A path part or query parameter recognised by an endpoint."""

    name: str
    kind: ParamKind = ParamKind.STRING
    description: str = ""
    options: list[str] = []  # enum values, empty means unrestricted
    default: Any = None  # informational, never sent
    deprecated: bool = False


class Segment(BaseModel):
    """One piece of a path template: literal text or a named part."""

    literal: str | None = None
    part: str | None = None

    @property
    def is_part(self) -> bool:
        return self.part is not None


class PathTemplate(BaseModel):
    path: str  # /{index}/_doc/{id}
    methods: list[str]
    parts: dict[str, Param] = {}

    def segments(self) -> list[Segment]:
        """Split the template into literal and part segments, in order."""
        result = []
        pos = 0
        for match in _PLACEHOLDER.finditer(self.path):
            if match.start() > pos:
                result.append(Segment(literal=self.path[pos : match.start()]))
            result.append(Segment(part=match.group(1)))
            pos = match.end()
        if pos < len(self.path):
            result.append(Segment(literal=self.path[pos:]))
        return result

    def part_names(self) -> list[str]:
        return _PLACEHOLDER.findall(self.path)


class BodySpec(BaseModel):
    description: str = ""
    required: bool = False


class Endpoint(BaseModel):
    """A single Elasticsearch REST operation, e.g. ``cluster.stats``."""

    name: str
    description: str = ""
    documentation_url: str = ""
    stability: str = "stable"
    paths: list[PathTemplate]
    params: list[Param] = []
    body: BodySpec | None = None

    @property
    def namespace(self) -> str | None:
        if "." not in self.name:
            return None
        return self.name.rsplit(".", 1)[0]

    @property
    def short_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]

    @property
    def parts(self) -> dict[str, Param]:
        merged: dict[str, Param] = {}
        for template in self.paths:
            for name in template.part_names():
                if name not in merged:
                    merged[name] = template.parts.get(name) or Param(name=name)
        return merged

    @property
    def required_parts(self) -> list[str]:
        """Parts that appear in every path template."""
        if not self.paths:
            return []
        common = set(self.paths[0].part_names())
        for template in self.paths[1:]:
            common &= set(template.part_names())
        return [name for name in self.parts if name in common]

    @property
    def optional_parts(self) -> list[str]:
        required = set(self.required_parts)
        return [name for name in self.parts if name not in required]

    def param(self, name: str) -> Param | None:
        for p in self.params:
            if p.name == name:
                return p
        return None
