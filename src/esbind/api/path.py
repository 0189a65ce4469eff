"""Path builder: turns an endpoint's path templates plus part values into a URL path."""

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from esbind.errors import InvalidParameterError, MissingParameterError
from esbind.parser.base import Endpoint, PathTemplate

# Characters Elasticsearch expects verbatim inside a path part.
PART_SAFE = ",*"


@dataclass(frozen=True)
class PathResult:
    method: str
    path: str
    template: PathTemplate
    parts: dict[str, str]  # resolved, unescaped values by part name


def _part_item(endpoint: Endpoint, name: str, item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, int) and not isinstance(item, bool):
        return str(item)
    raise InvalidParameterError(endpoint.name, name, f"expected string or integer, got {type(item).__name__}")


def format_part(endpoint: Endpoint, name: str, value: Any) -> str:
    """Render a part value: lists are comma-joined in input order, integers as digits."""
    if isinstance(value, (list, tuple)):
        return ",".join(_part_item(endpoint, name, item) for item in value)
    return _part_item(endpoint, name, value)


def select_template(endpoint: Endpoint, present: set[str]) -> PathTemplate | None:
    """Pick the template using the most of the supplied parts.

    Only templates whose parts are all present qualify. Ties go to the
    template declared first.
    """
    best = None
    best_count = -1
    for template in endpoint.paths:
        names = template.part_names()
        if not set(names) <= present:
            continue
        if len(names) > best_count:
            best, best_count = template, len(names)
    return best


def choose_method(template: PathTemplate, has_body: bool) -> str:
    method = template.methods[0]
    if has_body and method == "GET" and "POST" in template.methods:
        return "POST"
    return method


def build_path(
    endpoint: Endpoint,
    parts: dict[str, Any],
    has_body: bool = False,
    instrumentation=None,
    ictx=None,
) -> PathResult:
    """Build the request path for ``endpoint``.

    Empty strings and empty lists count as absent. A required part that is
    absent raises MissingParameterError before anything is sent.
    """
    resolved = {}
    for name, value in parts.items():
        if value is None:
            continue
        formatted = format_part(endpoint, name, value)
        if formatted:
            resolved[name] = formatted

    missing = [name for name in endpoint.required_parts if name not in resolved]
    if missing:
        raise MissingParameterError(endpoint.name, missing)

    template = select_template(endpoint, set(resolved))
    if template is None:
        # every template needs something that was not supplied
        needed = min((t.part_names() for t in endpoint.paths), key=len)
        raise MissingParameterError(endpoint.name, [n for n in needed if n not in resolved])

    pieces = []
    used = {}
    for segment in template.segments():
        if segment.is_part:
            value = resolved[segment.part]
            used[segment.part] = value
            pieces.append(quote(value, safe=PART_SAFE))
            if instrumentation is not None:
                instrumentation.record_path_part(ictx, segment.part, value)
        else:
            pieces.append(segment.literal)

    unused = sorted(set(resolved) - set(used))
    if unused:
        raise InvalidParameterError(endpoint.name, unused[0], f"no path of {endpoint.name} accepts it with the other parts given")

    path = "".join(pieces)
    if not path.startswith("/"):
        path = "/" + path
    return PathResult(
        method=choose_method(template, has_body),
        path=path,
        template=template,
        parts=used,
    )
