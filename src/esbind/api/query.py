"""Query encoder: renders present parameters into string query values."""

from datetime import timedelta
from typing import Any
from urllib.parse import urlencode

from esbind.errors import InvalidParameterError
from esbind.parser.base import Endpoint, Param, ParamKind

_ONE_MS = timedelta(milliseconds=1)


def format_duration(value: timedelta) -> str:
    """Milliseconds with an ``ms`` suffix, or ``nanos`` below one millisecond."""
    if value < _ONE_MS:
        return f"{value // timedelta(microseconds=1) * 1000}nanos"
    return f"{value // _ONE_MS}ms"


def _is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple)) and len(value) == 0:
        return True
    if isinstance(value, timedelta) and not value:
        return True
    return False


def _join(endpoint: Endpoint, param: Param, value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, (list, tuple, dict)):
                raise InvalidParameterError(endpoint.name, param.name, "nested collections are not allowed")
        return ",".join(_scalar(item) for item in value)
    if isinstance(value, (bool, int, float)):
        return _scalar(value)  # _source=False
    raise InvalidParameterError(endpoint.name, param.name, f"expected a list, got {type(value).__name__}")


def _scalar(item: Any) -> str:
    if isinstance(item, bool):
        return "true" if item else "false"
    return str(item)


def format_value(endpoint: Endpoint, param: Param, value: Any) -> str:
    """Render one parameter value in its canonical string form."""
    kind = param.kind

    if kind == ParamKind.BOOLEAN:
        if not isinstance(value, bool):
            raise InvalidParameterError(endpoint.name, param.name, f"expected a boolean, got {type(value).__name__}")
        return "true" if value else "false"

    if kind == ParamKind.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidParameterError(endpoint.name, param.name, f"expected a number, got {type(value).__name__}")
        return str(value)

    if kind == ParamKind.TIME:
        if isinstance(value, timedelta):
            return format_duration(value)
        if isinstance(value, str):
            return value
        raise InvalidParameterError(endpoint.name, param.name, f"expected a timedelta or string, got {type(value).__name__}")

    if kind == ParamKind.LIST:
        return _join(endpoint, param, value)

    if kind == ParamKind.ENUM:
        if isinstance(value, (bool, int)):
            rendered = _scalar(value)  # refresh=True -> "true"
        else:
            rendered = _join(endpoint, param, value)
        if param.options:
            for item in rendered.split(","):
                if item not in param.options:
                    raise InvalidParameterError(
                        endpoint.name, param.name, f"{item!r} is not one of {', '.join(param.options)}"
                    )
        return rendered

    if isinstance(value, (list, tuple, dict)):
        raise InvalidParameterError(endpoint.name, param.name, f"expected a string, got {type(value).__name__}")
    return _scalar(value)


def encode_params(endpoint: Endpoint, params: dict[str, Any], options=None) -> dict[str, str]:
    """Encode endpoint params, then the universal flags, in a fixed order.

    Endpoint params follow descriptor declaration order. ``pretty``,
    ``human``, ``error_trace`` and ``filter_path`` come last, in that order.
    """
    encoded: dict[str, str] = {}

    for param in endpoint.params:
        value = params.get(param.name)
        if _is_absent(value):
            continue
        encoded[param.name] = format_value(endpoint, param, value)

    if options is not None:
        if options.pretty:
            encoded["pretty"] = "true"
        if options.human:
            encoded["human"] = "true"
        if options.error_trace:
            encoded["error_trace"] = "true"
        if options.filter_path:
            encoded["filter_path"] = ",".join(options.filter_path)

    return encoded


def encode_query(params: dict[str, str]) -> str:
    """Render encoded params as a URL query string, preserving order."""
    return urlencode(list(params.items()))
