"""Error types raised by esbind.

Local validation errors are raised before any network call. Transport
failures are wrapped once by the transport and then propagated unchanged.
Non-2xx responses are never raised by dispatch; callers opt in with
``Response.raise_for_status()``.
"""

from typing import Any


class EsbindError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(EsbindError):
    """A request failed local validation; nothing was sent."""

    def __init__(self, endpoint: str, message: str):
        self.endpoint = endpoint
        self.message = message
        super().__init__(f"{endpoint}: {message}")


class MissingParameterError(ValidationError):
    def __init__(self, endpoint: str, names: list[str]):
        self.names = list(names)
        joined = ", ".join(self.names)
        noun = "parameter" if len(self.names) == 1 else "parameters"
        super().__init__(endpoint, f"{joined} {noun} required and cannot be empty")


class InvalidParameterError(ValidationError):
    def __init__(self, endpoint: str, name: str, reason: str):
        self.name = name
        super().__init__(endpoint, f"invalid value for {name}: {reason}")


class UnknownParameterError(ValidationError):
    def __init__(self, endpoint: str, names: list[str]):
        self.names = sorted(names)
        super().__init__(endpoint, f"unrecognized parameters: {', '.join(self.names)}")


class RequestConstructionError(EsbindError):
    """The transport request could not be built (malformed URL)."""


class TransportError(EsbindError):
    """The HTTP round-trip failed before a response was received."""


class UnknownEndpointError(EsbindError, KeyError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"unknown endpoint: {self.name}"


class SpecError(EsbindError):
    """An endpoint descriptor file could not be parsed."""


class ConfigError(EsbindError):
    """Client configuration is invalid."""


class ApiError(EsbindError):
    """Raised by ``Response.raise_for_status`` for error status codes."""

    def __init__(
        self,
        status_code: int,
        *,
        message: str | None = None,
        error_type: str | None = None,
        response_body: Any | None = None,
    ):
        self.status_code = status_code
        self.message = message
        self.error_type = error_type
        self.response_body = response_body
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.error_type and self.message:
            return f"API error {self.status_code}: {self.error_type}: {self.message}"
        if self.message:
            return f"API error {self.status_code}: {self.message}"
        return f"API error {self.status_code}"
