"""Response wrapper around the transport's raw HTTP response."""

import json
import re
from typing import Any

from esbind.errors import ApiError

# 299 Elasticsearch-8.18.0 "message" ["date"]
_WARNING_RE = re.compile(r'\d{3} \S+ "((?:[^"\\]|\\.)*)"')


class Response:
    """Status code, body stream and headers, passed through unmodified.

    The body stream belongs to the caller, who must close it (``close()``,
    ``read()`` or a ``with`` block).
    """

    def __init__(self, status_code: int, body, headers):
        self.status_code = status_code
        self.body = body
        self.headers = headers
        self._content: bytes | None = None

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}]>"

    def __enter__(self) -> "Response":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_error(self) -> bool:
        return self.status_code > 299

    @property
    def warnings(self) -> list[str]:
        value = self.headers.get("Warning") if self.headers else None
        if not value:
            return []
        return _WARNING_RE.findall(value)

    def read(self) -> bytes:
        """Read the whole body and release the stream."""
        if self._content is None:
            if self.body is None:
                self._content = b""
            else:
                try:
                    self._content = self.body.read()
                finally:
                    self.close()
        return self._content

    def text(self, encoding: str = "utf-8") -> str:
        return self.read().decode(encoding, errors="replace")

    def json(self) -> Any:
        raw = self.read()
        return json.loads(raw) if raw else None

    def close(self) -> None:
        if self.body is not None and hasattr(self.body, "close"):
            self.body.close()

    def raise_for_status(self) -> None:
        """Raise ApiError for error status codes; a no-op otherwise."""
        if not self.is_error:
            return

        text = self.text()
        try:
            payload = json.loads(text) if text else None
        except json.JSONDecodeError:
            raise ApiError(self.status_code, message=text or None, response_body=text)

        error_type = None
        message = None
        if isinstance(payload, dict) and "error" in payload:
            error = payload["error"]
            if isinstance(error, dict):
                error_type = error.get("type")
                message = error.get("reason")
            else:
                message = str(error)
        raise ApiError(self.status_code, message=message, error_type=error_type, response_body=payload)
