"""CLI entry point for esbind."""

import logging
from pathlib import Path

import click

from esbind.api.request import RequestOptions
from esbind.catalog import Catalog, default_catalog, load_catalog
from esbind.client import Client
from esbind.config import ClientConfig, load_config
from esbind.errors import (
    ConfigError,
    RequestConstructionError,
    SpecError,
    TransportError,
    UnknownEndpointError,
    ValidationError,
)
from esbind.parser.base import Endpoint, ParamKind

_TRUE = ("true", "1", "yes", "on")
_FALSE = ("false", "0", "no", "off")


def _catalog(config: ClientConfig) -> Catalog:
    catalog = default_catalog()
    if config.spec_paths:
        try:
            catalog = catalog.merge(load_catalog(*config.spec_paths))
        except SpecError as e:
            raise click.ClickException(str(e))
    return catalog


def _lookup(catalog: Catalog, name: str) -> Endpoint:
    try:
        return catalog.get(name)
    except UnknownEndpointError as e:
        raise click.UsageError(str(e))


def _coerce(endpoint: Endpoint, key: str, raw: str):
    """Turn a ``-p key=value`` string into the value the descriptor expects."""
    param = endpoint.parts.get(key) or endpoint.param(key)
    if param is None:
        return raw  # left for the request builder to reject

    if param.kind == ParamKind.BOOLEAN:
        if raw.lower() in _TRUE:
            return True
        if raw.lower() in _FALSE:
            return False
        raise click.BadParameter(f"{key} expects true or false, got {raw!r}", param_hint="-p")
    if param.kind == ParamKind.NUMBER:
        try:
            return int(raw)
        except ValueError:
            pass
        try:
            return float(raw)
        except ValueError:
            raise click.BadParameter(f"{key} expects a number, got {raw!r}", param_hint="-p")
    if param.kind == ParamKind.LIST:
        return raw.split(",")
    return raw


def _parse_pairs(endpoint: Endpoint, pairs: tuple[str, ...]) -> dict:
    values = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="-p")
        values[key] = _coerce(endpoint, key, raw)
    return values


def _parse_headers(lines: tuple[str, ...]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for line in lines:
        key, sep, value = line.partition(":")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected 'Key: Value', got {line!r}", param_hint="-H")
        key, value = key.strip(), value.strip()
        existing = next((k for k in headers if k.lower() == key.lower()), None)
        if existing is None:
            headers[key] = value
        else:
            headers[existing] = f"{headers[existing]}, {value}"
    return headers


@click.group()
@click.option("--url", default=None, help="Elasticsearch node URL (overrides config and ELASTICSEARCH_URL).")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML configuration file.")
@click.option("--spec", "spec_paths", multiple=True, type=click.Path(exists=True, path_type=Path), help="Extra endpoint descriptor file or directory.")
@click.option("-v", "--verbose", is_flag=True, help="Log requests at DEBUG level.")
@click.pass_context
def main(ctx: click.Context, url: str | None, config_path: Path | None, spec_paths: tuple[Path, ...], verbose: bool):
    """esbind: call Elasticsearch REST endpoints described by rest-api-spec files."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config(config_path)
        updates = {}
        if url:
            updates["url"] = url
        if spec_paths:
            updates["spec_paths"] = [*config.spec_paths, *spec_paths]
        if updates:
            config = ClientConfig(**{**config.model_dump(), **updates})
    except ConfigError as e:
        raise click.ClickException(str(e))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--url")
    ctx.obj = config


@main.command()
@click.option("--namespace", default=None, help="Only endpoints in this namespace, e.g. indices.")
@click.pass_obj
def endpoints(config: ClientConfig, namespace: str | None):
    """List known endpoints with their first path."""
    catalog = _catalog(config)
    selected = list(catalog) if namespace is None else catalog.in_namespace(namespace)
    if not selected:
        raise click.ClickException(f"no endpoints in namespace {namespace!r}")
    width = max(len(e.name) for e in selected)
    for endpoint in selected:
        template = endpoint.paths[0]
        click.echo(f"{endpoint.name:<{width}}  {'|'.join(template.methods):<10} {template.path}")


@main.command()
@click.argument("name")
@click.pass_obj
def describe(config: ClientConfig, name: str):
    """Show paths, parts, params and body of an endpoint."""
    endpoint = _lookup(_catalog(config), name)

    click.echo(f"{endpoint.name} ({endpoint.stability})")
    if endpoint.description:
        click.echo(f"  {endpoint.description}")
    if endpoint.documentation_url:
        click.echo(f"  {endpoint.documentation_url}")

    click.echo("\nPaths:")
    for template in endpoint.paths:
        click.echo(f"  {'|'.join(template.methods):<10} {template.path}")

    if endpoint.parts:
        click.echo("\nParts:")
        required = set(endpoint.required_parts)
        for part in endpoint.parts.values():
            status = "required" if part.name in required else "optional"
            click.echo(f"  {part.name} ({part.kind.value}, {status})")

    if endpoint.params:
        click.echo("\nParams:")
        for param in endpoint.params:
            line = f"  {param.name} ({param.kind.value})"
            if param.options:
                line += f" [{', '.join(param.options)}]"
            click.echo(line)

    if endpoint.body is not None:
        click.echo(f"\nBody: {'required' if endpoint.body.required else 'optional'}")
        if endpoint.body.description:
            click.echo(f"  {endpoint.body.description}")


@main.command()
@click.argument("name")
@click.option("-p", "--param", "pairs", multiple=True, metavar="KEY=VALUE", help="Path part or query parameter.")
@click.option("--body", "body_file", default=None, type=click.File("rb"), help="Request body file, or - for stdin.")
@click.option("--pretty", is_flag=True, help="Pretty-print the response body.")
@click.option("--human", is_flag=True, help="Human-readable statistics.")
@click.option("--error-trace", is_flag=True, help="Include stack traces in error bodies.")
@click.option("--filter-path", multiple=True, help="Response filter, repeatable.")
@click.option("-H", "--header", "header_lines", multiple=True, metavar="'KEY: VALUE'", help="Extra request header.")
@click.option("--opaque-id", default=None, help="Sent as X-Opaque-Id.")
@click.option("--timeout", type=float, default=None, help="Request timeout in seconds.")
@click.option("--dry-run", is_flag=True, help="Print the request line without sending it.")
@click.pass_context
def call(
    ctx: click.Context,
    name: str,
    pairs: tuple[str, ...],
    body_file,
    pretty: bool,
    human: bool,
    error_trace: bool,
    filter_path: tuple[str, ...],
    header_lines: tuple[str, ...],
    opaque_id: str | None,
    timeout: float | None,
    dry_run: bool,
):
    """Call endpoint NAME and print the status and body."""
    config: ClientConfig = ctx.obj
    catalog = _catalog(config)
    endpoint = _lookup(catalog, name)

    values = _parse_pairs(endpoint, pairs)
    options = RequestOptions(
        pretty=pretty,
        human=human,
        error_trace=error_trace,
        filter_path=[p for item in filter_path for p in item.split(",") if p],
        headers=_parse_headers(header_lines),
        opaque_id=opaque_id,
        timeout=timeout,
    )
    body = body_file.read() if body_file is not None else None

    with Client.from_config(config, catalog=catalog) as client:
        try:
            if dry_run:
                request = client.prepare(name, body=body, options=options, **values)
                click.echo(client.describe_request(request))
                return
            response = client.perform(name, body=body, options=options, **values)
        except ValidationError as e:
            raise click.UsageError(str(e))
        except (RequestConstructionError, TransportError) as e:
            raise click.ClickException(str(e))

        with response:
            click.echo(f"HTTP {response.status_code}")
            for warning in response.warnings:
                click.echo(f"Warning: {warning}")
            text = response.text()
            if text:
                click.echo(text)

    if response.is_error:
        ctx.exit(1)
