"""Client facade: endpoint lookup by name or attribute, then dispatch."""

import logging
from importlib.metadata import PackageNotFoundError, version
from typing import Any

from esbind.api.dispatch import describe, dispatch, prepare
from esbind.api.request import Body, Request, RequestOptions
from esbind.api.response import Response
from esbind.catalog import Catalog, default_catalog, load_catalog
from esbind.instrumentation import new_instrumentation
from esbind.transport import Instrumented, RequestsTransport

logger = logging.getLogger(__name__)

# keyword shortcuts accepted by every endpoint, mapped to RequestOptions fields
_OPTION_SHORTCUTS = {
    "pretty": "pretty",
    "human": "human",
    "error_trace": "error_trace",
    "filter_path": "filter_path",
    "headers": "headers",
    "opaque_id": "opaque_id",
    "request_timeout": "timeout",
}


def _package_version() -> str:
    try:
        return version("esbind")
    except PackageNotFoundError:
        return ""


def _split_options(options: RequestOptions | None, values: dict[str, Any]) -> RequestOptions:
    """Pull the universal shortcuts out of ``values`` and fold them into options."""
    updates = {}
    for key, field in _OPTION_SHORTCUTS.items():
        if key not in values:
            continue
        value = values.pop(key)
        if value is None:
            continue
        if field == "filter_path" and isinstance(value, str):
            value = value.split(",")
        updates[field] = value
    base = options or RequestOptions()
    if not updates:
        return base
    return RequestOptions(**{**base.model_dump(), **updates})


class Namespace:
    """Attribute proxy for a dotted group of endpoints (``client.indices``)."""

    def __init__(self, client: "Client", name: str):
        self._client = client
        self._name = name

    def __repr__(self) -> str:
        return f"<Namespace {self._name}>"

    def __getattr__(self, attr: str):
        if attr.startswith("_"):
            raise AttributeError(attr)
        return self._client._resolve(f"{self._name}.{attr}")

    def __dir__(self):
        prefix = self._name + "."
        return sorted(
            {name[len(prefix):].split(".", 1)[0] for name in self._client.catalog.names() if name.startswith(prefix)}
        )


class Client:
    """Calls Elasticsearch endpoints described in a catalog.

    Each call builds a fresh ``Request`` and hands it to ``dispatch``, which
    performs exactly one transport round-trip. Responses are returned as-is,
    error statuses included.
    """

    def __init__(self, transport, catalog: Catalog | None = None, instrumentation=None, default_headers=None):
        self.transport = transport
        self.catalog = catalog if catalog is not None else default_catalog()
        if instrumentation is None and isinstance(transport, Instrumented):
            instrumentation = transport.instrumentation
        self.instrumentation = instrumentation
        self.default_headers = dict(default_headers or {})

    @classmethod
    def from_config(cls, config, catalog: Catalog | None = None) -> "Client":
        """Build a client over a ``RequestsTransport``.

        Configured headers become client default headers, so caller headers
        for the same key are appended to them rather than replacing them.
        A given ``catalog`` is used as-is instead of loading ``spec_paths``.
        """
        instrumentation = None
        if config.instrumentation:
            instrumentation = new_instrumentation(
                _package_version(),
                capture_search_body=config.capture_search_body,
            )
        transport = RequestsTransport(
            config.url,
            username=config.username,
            password=config.password,
            api_key=config.api_key,
            verify=config.verify_certs,
            timeout=config.timeout,
            instrumentation=instrumentation,
        )
        if catalog is None:
            catalog = default_catalog()
            if config.spec_paths:
                catalog = catalog.merge(load_catalog(*config.spec_paths))
        return cls(transport, catalog=catalog, default_headers=config.headers)

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __getattr__(self, attr: str):
        if attr.startswith("_") or "catalog" not in self.__dict__:
            raise AttributeError(attr)
        return self._resolve(attr)

    def __dir__(self):
        top = {name.split(".", 1)[0] for name in self.catalog.names()}
        return sorted(set(super().__dir__()) | top)

    def _resolve(self, name: str):
        if name in self.catalog:
            return self._bind(name)
        if self.catalog.has_namespace(name):
            return Namespace(self, name)
        raise AttributeError(f"no endpoint or namespace named {name!r}")

    def _bind(self, name: str):
        endpoint = self.catalog.get(name)

        def call(*, body: Body | None = None, options: RequestOptions | None = None, **values: Any) -> Response:
            return self.perform(name, body=body, options=options, **values)

        call.__name__ = endpoint.short_name
        call.__qualname__ = endpoint.name
        call.__doc__ = endpoint.description or None
        return call

    def prepare(
        self,
        name: str,
        *,
        body: Body | None = None,
        options: RequestOptions | None = None,
        **values: Any,
    ) -> Request:
        """Build and validate the request for ``name`` without sending it."""
        endpoint = self.catalog.get(name)
        options = _split_options(options, values)
        return Request.build(endpoint, body=body, options=options, **values)

    def describe_request(self, request: Request) -> str:
        """``METHOD /path?query`` for ``request``, as it would be sent."""
        return describe(prepare(request, default_headers=self.default_headers))

    def perform(
        self,
        name: str,
        *,
        body: Body | None = None,
        options: RequestOptions | None = None,
        **values: Any,
    ) -> Response:
        request = self.prepare(name, body=body, options=options, **values)
        return dispatch(
            request,
            self.transport,
            instrumentation=self.instrumentation,
            default_headers=self.default_headers,
        )

    def close(self) -> None:
        close = getattr(self.transport, "close", None)
        if close is not None:
            close()
