"""Request values: one per call, consumed once by dispatch."""

import keyword
from typing import IO, Any, Union

from pydantic import BaseModel, ConfigDict, Field

from esbind.errors import MissingParameterError, UnknownParameterError
from esbind.parser.base import Endpoint

Body = Union[bytes, str, IO[bytes]]


class RequestOptions(BaseModel):
    """Options shared by every endpoint."""

    pretty: bool = False  # pretty-print the response body
    human: bool = False  # human-readable statistics
    error_trace: bool = False  # include stack traces in error bodies
    filter_path: list[str] = []  # filter properties of the response body
    headers: dict[str, str] = {}
    opaque_id: str | None = None  # sent as X-Opaque-Id
    timeout: float | None = None  # seconds, forwarded to the transport
    instrument: bool = True


def _unescape(name: str) -> str:
    # from_ -> from, so callers can pass Python keywords
    if name.endswith("_") and keyword.iskeyword(name[:-1]):
        return name[:-1]
    return name


class Request(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    endpoint: Endpoint
    parts: dict[str, Any] = {}
    params: dict[str, Any] = {}
    body: Any = None
    options: RequestOptions = Field(default_factory=RequestOptions)

    @classmethod
    def build(
        cls,
        endpoint: Endpoint,
        *,
        body: Body | None = None,
        options: RequestOptions | None = None,
        **values: Any,
    ) -> "Request":
        """Sort keyword values into path parts and query params.

        Names the endpoint does not recognise raise UnknownParameterError.
        """
        part_names = set(endpoint.parts)
        param_names = {p.name for p in endpoint.params}

        parts: dict[str, Any] = {}
        params: dict[str, Any] = {}
        unknown = []
        for raw_name, value in values.items():
            name = _unescape(raw_name)
            if name in part_names:
                parts[name] = value
            elif name in param_names:
                params[name] = value
            else:
                unknown.append(name)
        if body is not None and endpoint.body is None:
            unknown.append("body")
        if unknown:
            raise UnknownParameterError(endpoint.name, unknown)

        if endpoint.body is not None and endpoint.body.required and body is None:
            raise MissingParameterError(endpoint.name, ["body"])

        return cls(
            endpoint=endpoint,
            parts=parts,
            params=params,
            body=body,
            options=options or RequestOptions(),
        )
