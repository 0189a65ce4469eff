"""Endpoint catalog: looks up descriptors by name, loaded from descriptor files."""

import logging
from collections.abc import Iterable, Iterator
from functools import lru_cache
from pathlib import Path

from esbind.errors import UnknownEndpointError
from esbind.parser.base import Endpoint
from esbind.parser.detect import parse_spec

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
DEFAULT_SPEC = DATA_DIR / "endpoints.yaml"


class Catalog:
    """Endpoints by name. Later additions replace earlier ones of the same name."""

    def __init__(self, endpoints: Iterable[Endpoint] = ()):
        self._endpoints: dict[str, Endpoint] = {}
        for endpoint in endpoints:
            self.add(endpoint)

    def __contains__(self, name: object) -> bool:
        return name in self._endpoints

    def __iter__(self) -> Iterator[Endpoint]:
        return iter(self._endpoints[name] for name in self.names())

    def __len__(self) -> int:
        return len(self._endpoints)

    def add(self, endpoint: Endpoint) -> None:
        if endpoint.name in self._endpoints:
            logger.debug("Replacing endpoint %s", endpoint.name)
        self._endpoints[endpoint.name] = endpoint

    def merge(self, other: "Catalog") -> "Catalog":
        merged = Catalog(self)
        for endpoint in other:
            merged.add(endpoint)
        return merged

    def get(self, name: str) -> Endpoint:
        try:
            return self._endpoints[name]
        except KeyError:
            raise UnknownEndpointError(name) from None

    def names(self) -> list[str]:
        return sorted(self._endpoints)

    def namespaces(self) -> list[str]:
        return sorted({e.namespace for e in self._endpoints.values() if e.namespace})

    def in_namespace(self, namespace: str | None) -> list[Endpoint]:
        """Endpoints directly under ``namespace``; None means top-level ones."""
        return [e for e in self if e.namespace == namespace]

    def has_namespace(self, namespace: str) -> bool:
        prefix = namespace + "."
        return any(name.startswith(prefix) for name in self._endpoints)


def load_catalog(*paths: Path, fmt: str = "auto") -> Catalog:
    """Build a catalog from descriptor files or directories."""
    catalog = Catalog()
    for path in paths:
        for endpoint in parse_spec(Path(path), fmt):
            catalog.add(endpoint)
    logger.debug("Catalog holds %d endpoints", len(catalog))
    return catalog


@lru_cache(maxsize=1)
def _bundled() -> tuple[Endpoint, ...]:
    return tuple(parse_spec(DEFAULT_SPEC, "rest-api-spec"))


def default_catalog() -> Catalog:
    """The endpoints shipped with the package."""
    return Catalog(_bundled())
