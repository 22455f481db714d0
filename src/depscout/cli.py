"""CLI entry point for depscout.

This module provides the command-line interface for depscout. Datasources
are discovered from installed plugins (``depscout.datasources`` entry
points).

Commands:
    datasources: List installed datasources
    releases: Look up the releases of a package
    digest: Resolve the content digest of a package version

Example:
    depscout datasources
    depscout releases npm react --strategy merge --registry-url https://npm.example.com
    depscout digest docker library/node --value 20-alpine
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click

from depscout import __version__
from depscout.config import load_config
from depscout.datasources import DatasourceRegistry, supports_digest
from depscout.exceptions import ConfigError, DepscoutError, ExternalHostError
from depscout.logging import LogContext, setup_logging
from depscout.lookup import ReleaseLookup
from depscout.models import DepscoutConfig, DigestRequest, LookupRequest, ReleaseResult


def _success(msg: str) -> str:
    """Format success message with green checkmark."""
    return click.style("✓", fg="green") + " " + msg


def _error(msg: str) -> str:
    """Format error message with red X."""
    return click.style("✗", fg="red") + " " + msg


def _info(msg: str) -> str:
    """Format info message with blue arrow."""
    return click.style("→", fg="blue") + " " + msg


def _build_registry() -> DatasourceRegistry:
    registry = DatasourceRegistry()
    registry.discover_plugins()
    return registry


def _load_config(ctx: click.Context) -> DepscoutConfig:
    config_path: Path | None = ctx.obj.get("config_path")
    try:
        return load_config(config_path)
    except ConfigError as e:
        click.echo(_error(str(e)), err=True)
        sys.exit(1)


def _fail(ctx: click.Context, error: Exception) -> None:
    if ctx.obj.get("verbose", False):
        import traceback

        click.echo(traceback.format_exc(), err=True)
    click.echo(_error(f"Failed: {error}"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="depscout")
@click.option("--verbose", "-v", is_flag=True, help="Show detailed output")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to .depscout.yaml (searched upwards from the cwd by default)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None) -> None:
    """depscout - discover available releases of your dependencies.

    Queries package registries through installed datasource plugins and
    reports what versions exist.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING, include_timestamp=verbose)


@cli.command()
def datasources() -> None:
    """List installed datasources."""
    registry = _build_registry()
    ids = registry.list()

    if not ids:
        click.echo(_info("No datasources installed"))
        click.echo("  Datasources register under the 'depscout.datasources' entry point group.")
        return

    click.echo(click.style("Installed datasources", bold=True))
    for datasource_id in ids:
        datasource = registry.get(datasource_id)
        flags = [f"strategy={datasource.registry_strategy}"]
        if supports_digest(datasource):  # type: ignore[arg-type]
            flags.append("digest")
        if datasource.caching:  # type: ignore[union-attr]
            flags.append("cached")
        click.echo(f"  {datasource_id}  " + click.style(", ".join(flags), dim=True))


@cli.command()
@click.argument("datasource")
@click.argument("package")
@click.option(
    "--registry-url",
    "-r",
    "registry_urls",
    multiple=True,
    help="Registry URL to query (repeatable, in priority order)",
)
@click.option(
    "--strategy",
    type=click.Choice(["first", "hunt", "merge"]),
    default=None,
    help="Override the datasource's registry strategy",
)
@click.option("--extract-version", default=None, help="Regex with a named 'version' group")
@click.option("--versioning", default=None, help="Versioning scheme (e.g. semver, pep440)")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
@click.pass_context
def releases(
    ctx: click.Context,
    datasource: str,
    package: str,
    registry_urls: tuple[str, ...],
    strategy: str | None,
    extract_version: str | None,
    versioning: str | None,
    as_json: bool,
) -> None:
    """Look up the releases of PACKAGE from DATASOURCE.

    \b
    Examples:
        depscout releases npm react
        depscout releases pypi django --versioning pep440 --json
    """
    config = _load_config(ctx)
    registry = _build_registry()

    if datasource not in registry:
        click.echo(_error(f"Unknown datasource '{datasource}'"), err=True)
        click.echo("  " + _info("Run 'depscout datasources' to see what is installed"), err=True)
        sys.exit(1)

    request = LookupRequest(
        datasource=datasource,
        package_name=package,
        registry_urls=list(registry_urls) or None,
        registry_strategy=strategy,  # type: ignore[arg-type]
        extract_version=extract_version,
        versioning=versioning,
    )

    async def run_lookup() -> ReleaseResult | None:
        lookup = ReleaseLookup(registry, config=config)
        try:
            return await lookup.get_pkg_releases(request)
        finally:
            await lookup.close()

    try:
        with LogContext(command="releases"):
            result = asyncio.run(run_lookup())
    except ExternalHostError as e:
        click.echo(_error(f"Registry host unavailable: {e}"), err=True)
        sys.exit(1)
    except DepscoutError as e:
        _fail(ctx, e)
        return

    if result is None:
        click.echo(_error(f"No releases found for {datasource}/{package}"), err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json", exclude_none=True), indent=2))
        return

    _print_result(datasource, package, result)


def _print_result(datasource: str, package: str, result: ReleaseResult) -> None:
    click.echo(click.style(f"{datasource}/{package}", bold=True))

    details: list[tuple[str, Any]] = [
        ("registry", result.registry_url),
        ("source", result.source_url),
        ("homepage", result.homepage),
        ("changelog", result.changelog_url),
    ]
    for label, value in details:
        if value:
            click.echo(f"  {label}: {value}")

    if result.tags:
        tags = ", ".join(f"{tag}={version}" for tag, version in sorted(result.tags.items()))
        click.echo(f"  tags: {tags}")

    click.echo()
    for release in result.releases:
        line = f"  {release.version}"
        if release.release_timestamp is not None:
            line += f"  {release.release_timestamp:%Y-%m-%d}"
        if release.is_deprecated:
            line += "  " + click.style("deprecated", fg="yellow")
        click.echo(line)

    click.echo()
    click.echo(_success(f"{len(result.releases)} release(s)"))


@cli.command()
@click.argument("datasource")
@click.argument("package")
@click.option("--value", "new_value", default=None, help="Version or tag to resolve")
@click.option(
    "--registry-url",
    "-r",
    "registry_urls",
    multiple=True,
    help="Registry URL to query (only the first is used)",
)
@click.pass_context
def digest(
    ctx: click.Context,
    datasource: str,
    package: str,
    new_value: str | None,
    registry_urls: tuple[str, ...],
) -> None:
    """Resolve the content digest of PACKAGE from DATASOURCE."""
    config = _load_config(ctx)
    registry = _build_registry()

    if datasource not in registry:
        click.echo(_error(f"Unknown datasource '{datasource}'"), err=True)
        sys.exit(1)

    request = DigestRequest(
        datasource=datasource,
        package_name=package,
        registry_urls=list(registry_urls) or None,
    )

    async def run_digest() -> str | None:
        lookup = ReleaseLookup(registry, config=config)
        try:
            return await lookup.get_digest(request, new_value)
        finally:
            await lookup.close()

    try:
        with LogContext(command="digest"):
            value = asyncio.run(run_digest())
    except DepscoutError as e:
        _fail(ctx, e)
        return

    if value is None:
        click.echo(_error(f"No digest found for {datasource}/{package}"), err=True)
        sys.exit(1)

    click.echo(value)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
