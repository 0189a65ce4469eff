"""HTTP transport: the collaborator that performs the actual round-trip."""

import logging
from typing import Protocol, runtime_checkable

import requests
from requests.exceptions import InvalidSchema, InvalidURL, MissingSchema, RequestException

from esbind.errors import RequestConstructionError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:9200"


class Transport(Protocol):
    def perform(self, request: requests.Request, timeout: float | None = None) -> requests.Response: ...


@runtime_checkable
class Instrumented(Protocol):
    """A transport that carries its own instrumentation."""

    instrumentation: object


class RequestsTransport:
    """Sends requests through a ``requests.Session`` against a single node URL.

    Request URLs are paths (``/_cluster/health``); the node URL is prepended
    here. Responses are streamed so the body passes through untouched.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_URL,
        *,
        username: str | None = None,
        password: str | None = None,
        api_key: str | None = None,
        verify: bool = True,
        timeout: float | None = 30.0,
        instrumentation=None,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.instrumentation = instrumentation
        self.session = session or requests.Session()
        self.session.verify = verify
        if api_key:
            self.session.headers["Authorization"] = f"ApiKey {api_key}"
        elif username is not None:
            self.session.auth = (username, password or "")

    def __enter__(self) -> "RequestsTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def url_for(self, path: str) -> str:
        if path.startswith("/"):
            return self.base_url + path
        return path

    def perform(self, request: requests.Request, timeout: float | None = None) -> requests.Response:
        request.url = self.url_for(request.url)
        try:
            prepared = self.session.prepare_request(request)
            response = self.session.send(
                prepared,
                stream=True,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except (InvalidURL, InvalidSchema, MissingSchema) as e:
            raise RequestConstructionError(str(e)) from e
        except RequestException as e:
            raise TransportError(f"{request.method} {request.url}: {e}") from e

        # hand callers decoded bytes even when the node gzips the body
        response.raw.decode_content = True
        logger.debug("%s %s -> %d", prepared.method, prepared.url, response.status_code)
        return response

    def close(self) -> None:
        self.session.close()
