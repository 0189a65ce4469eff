"""Client configuration from environment variables and an optional YAML file."""

import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from esbind.errors import ConfigError
from esbind.transport import DEFAULT_URL

ENV_VARS = {
    "url": "ELASTICSEARCH_URL",
    "username": "ELASTICSEARCH_USERNAME",
    "password": "ELASTICSEARCH_PASSWORD",
    "api_key": "ELASTICSEARCH_API_KEY",
    "timeout": "ELASTICSEARCH_TIMEOUT",
    "verify_certs": "ELASTICSEARCH_VERIFY_CERTS",
    "instrumentation": "ELASTICSEARCH_INSTRUMENTATION",
}


class ClientConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = DEFAULT_URL
    username: str | None = None
    password: str | None = None
    api_key: str | None = None
    timeout: float = 30.0  # seconds
    verify_certs: bool = True
    headers: dict[str, str] = {}
    instrumentation: bool = False
    capture_search_body: bool = False
    spec_paths: list[Path] = []  # merged over the bundled endpoints

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("must start with http:// or https://")
        return value.rstrip("/")

    @field_validator("timeout")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ClientConfig":
        return _build(_env_values(environ), "environment")


def _env_values(environ: Mapping[str, str] | None) -> dict:
    env = os.environ if environ is None else environ
    return {field: env[var] for field, var in ENV_VARS.items() if env.get(var)}


def _build(values: dict, source: str) -> ClientConfig:
    try:
        return ClientConfig(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"invalid configuration from {source}: {problems}") from e


def load_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> ClientConfig:
    """Environment values first, then the YAML file at ``path`` on top."""
    values = _env_values(environ)
    if path is None:
        return _build(values, "environment")

    try:
        doc = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    if doc is None:
        doc = {}
    if not isinstance(doc, dict):
        raise ConfigError(f"{path}: expected a mapping")

    # relative spec paths are taken from the config file's directory
    if isinstance(doc.get("spec_paths"), list):
        base = Path(path).parent
        doc["spec_paths"] = [base / str(p) for p in doc["spec_paths"]]

    values.update(doc)
    return _build(values, str(path))
