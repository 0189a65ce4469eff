"""Request dispatch: one request value in, exactly one transport call out."""

import logging
from collections.abc import Mapping

import requests
from requests.structures import CaseInsensitiveDict

from esbind.api.path import build_path
from esbind.api.query import encode_params, encode_query
from esbind.api.request import Request
from esbind.api.response import Response
from esbind.errors import ValidationError

logger = logging.getLogger(__name__)

HEADER_CONTENT_TYPE = "Content-Type"
HEADER_OPAQUE_ID = "X-Opaque-Id"
CONTENT_TYPE_JSON = "application/json"
SYSTEM = "elasticsearch"


def merge_headers(dest: CaseInsensitiveDict, src: Mapping[str, str]) -> CaseInsensitiveDict:
    """Add ``src`` to ``dest`` without dropping anything already in ``dest``.

    An empty destination adopts the source mapping wholesale. Otherwise a
    key present in both keeps its value with the new one appended, the way
    repeated header lines are folded on the wire.
    """
    if not src:
        return dest
    if not dest:
        return CaseInsensitiveDict(src)
    for key, value in src.items():
        if key in dest:
            dest[key] = f"{dest[key]}, {value}"
        else:
            dest[key] = value
    return dest


def build_headers(request: Request, default_headers: Mapping[str, str] | None = None) -> CaseInsensitiveDict:
    headers = CaseInsensitiveDict(default_headers or {})

    caller = CaseInsensitiveDict(request.options.headers)
    if request.options.opaque_id:
        caller[HEADER_OPAQUE_ID] = request.options.opaque_id
    headers = merge_headers(headers, caller)

    if request.body is not None and HEADER_CONTENT_TYPE not in headers:
        headers[HEADER_CONTENT_TYPE] = CONTENT_TYPE_JSON
    return headers


def prepare(request: Request, instrumentation=None, ictx=None, default_headers=None) -> requests.Request:
    """Validate the request and build the transport-level request.

    Raises ValidationError without touching the network.
    """
    endpoint = request.endpoint
    built = build_path(
        endpoint,
        request.parts,
        has_body=request.body is not None,
        instrumentation=instrumentation,
        ictx=ictx,
    )
    params = encode_params(endpoint, request.params, request.options)

    body = request.body
    if isinstance(body, str):
        body = body.encode("utf-8")

    return requests.Request(
        method=built.method,
        url=built.path,
        params=params,
        headers=build_headers(request, default_headers),
        data=body,
    )


def describe(http_request: requests.Request) -> str:
    """``METHOD /path?query`` for logs and dry runs."""
    query = encode_query(http_request.params) if http_request.params else ""
    return f"{http_request.method} {http_request.url}{'?' + query if query else ''}"


def dispatch(request: Request, transport, instrumentation=None, default_headers=None) -> Response:
    """Send ``request`` through ``transport`` and wrap the raw response.

    Non-2xx statuses are returned like any other response. Transport errors
    propagate unchanged, after being recorded by the instrumentation.
    """
    endpoint = request.endpoint.name
    instrument = instrumentation if request.options.instrument else None
    ictx = instrument.start(endpoint) if instrument is not None else None

    try:
        try:
            http_request = prepare(request, instrument, ictx, default_headers)
        except ValidationError as e:
            if instrument is not None:
                instrument.record_error(ictx, e)
            raise

        logger.debug("%s: %s", endpoint, describe(http_request))

        if instrument is not None:
            instrument.before_request(ictx, http_request, endpoint)
            if request.body is not None:
                replacement = instrument.record_request_body(ictx, endpoint, http_request.data)
                if replacement is not None:
                    http_request.data = replacement

        try:
            raw = transport.perform(http_request, timeout=request.options.timeout)
        except Exception as e:
            if instrument is not None:
                instrument.after_request(ictx, http_request, SYSTEM, endpoint)
                instrument.record_error(ictx, e)
            raise

        if instrument is not None:
            instrument.after_request(ictx, http_request, SYSTEM, endpoint)
            instrument.after_response(ictx, raw)

        logger.debug("%s: status %d", endpoint, raw.status_code)
        return Response(status_code=raw.status_code, body=raw.raw, headers=raw.headers)
    finally:
        if instrument is not None:
            instrument.close(ictx)
