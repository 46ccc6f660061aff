"""Click-based command line entry point for tvcatalog."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Iterable, Optional

import click

from . import __version__
from .catalog import CatalogService, build_service
from .errors import CatalogError
from .logging_conf import configure_logging
from .settings import load_settings


@click.group(help="Canonical live-TV catalog tools")
@click.version_option(__version__)
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="YAML configuration file; environment variables override its values.",
)
@click.option("--verbose", is_flag=True, help="Enable verbose logging output.")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """
    Root CLI group configuring logging and the catalog service lazily.
    """

    configure_logging("DEBUG" if verbose else "INFO")
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _service(ctx: click.Context) -> CatalogService:
    service = ctx.obj.get("service")
    if service is None:
        try:
            service = build_service(load_settings(ctx.obj.get("config_path")))
        except CatalogError as exc:
            raise click.ClickException(str(exc)) from exc
        ctx.obj["service"] = service
    return service


def _emit(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@cli.command("refresh")
@click.option("--force", is_flag=True, default=False, help="Ignore the TTL and caches.")
@click.pass_context
def cli_refresh(ctx: click.Context, force: bool) -> None:
    """Refresh the raw stream list and report the outcome."""

    service = _service(ctx)
    service.refresh(force=force)
    orchestrator = service.orchestrator
    _emit(
        {
            "state": orchestrator.state.value,
            "origin": orchestrator.last_origin,
            "entries": len(orchestrator.snapshot()),
            "channels": len(service.catalog()),
            "error": str(orchestrator.last_error) if orchestrator.last_error else None,
        }
    )


@cli.command("catalog")
@click.option("--search", default=None, help="Case-insensitive substring of the channel name.")
@click.option("--category", default=None, help="Only channels in this category.")
@click.option("--history", "history_only", is_flag=True, default=False, help="Only recently watched channels.")
@click.pass_context
def cli_catalog(ctx: click.Context, search: Optional[str], category: Optional[str], history_only: bool) -> None:
    """List canonical channels."""

    items = _service(ctx).list_catalog(search=search, category=category, history_only=history_only)
    _emit([item.to_dict() for item in items])


@cli.command("categories")
@click.pass_context
def cli_categories(ctx: click.Context) -> None:
    """List category labels in catalog order."""

    _emit(_service(ctx).list_categories())


@cli.command("detail")
@click.argument("fingerprint")
@click.pass_context
def cli_detail(ctx: click.Context, fingerprint: str) -> None:
    """Show a channel with its program guide."""

    detail = _service(ctx).get_channel_detail(fingerprint)
    if detail is None:
        raise click.ClickException(f"unknown channel {fingerprint}")
    _emit(detail.to_dict())


@cli.command("streams")
@click.argument("fingerprint")
@click.pass_context
def cli_streams(ctx: click.Context, fingerprint: str) -> None:
    """List the stream sources of a channel, best quality first."""

    _emit([option.to_dict() for option in _service(ctx).select_stream(fingerprint)])


def main(argv: Optional[Iterable[str]] = None) -> int:
    """
    Entry point returning an exit code for console scripts.
    """

    argv_list = list(argv or sys.argv[1:])
    try:
        cli.main(args=argv_list, prog_name="tvcatalog", standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        return 1
    except SystemExit as exc:
        return int(exc.code or 0)
    return 0


if __name__ == "__main__":
    sys.exit(main())
