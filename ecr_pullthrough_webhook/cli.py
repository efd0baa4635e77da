"""CLI entry-point for the ecr-pullthrough-webhook."""

from __future__ import annotations

import logging
import sys
from typing import Any

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ecr_pullthrough_webhook import __version__
from ecr_pullthrough_webhook.config import ConfigError, Settings
from ecr_pullthrough_webhook.rewrite import RegistryCatalog
from ecr_pullthrough_webhook.server import serve as run_server

console = Console()


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _settings(**overrides: Any) -> Settings:
    """Settings from the environment, with any non-empty CLI flag taking precedence."""
    try:
        settings = Settings(**{k: v for k, v in overrides.items() if v not in ("", None)})
        settings.validate_identity()
    except ConfigError as exc:
        console.print(f"[red bold]Error:[/red bold] {exc}")
        sys.exit(1)
    return settings


def identity_options(func):
    """--account-id / --region / --registries, shared by every command."""
    func = click.option(
        "--registries",
        default="",
        help="Comma separated source registries, first match wins (or set ECR_REGISTRIES).",
    )(func)
    func = click.option(
        "--region", "aws_region", default="", help="Cache region (or set ECR_AWS_REGION)."
    )(func)
    func = click.option(
        "--account-id", "aws_account_id", default="", help="Cache account (or set ECR_AWS_ACCOUNT_ID)."
    )(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="ecr-webhook")
def main() -> None:
    """ECR pull-through cache mutating admission webhook."""


@main.command()
@identity_options
@click.option("--host", default="", help="Bind address (default: 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Listen port (default: 8443).")
@click.option("--cert-file", default="", help="TLS certificate path.")
@click.option("--key-file", default="", help="TLS private key path.")
@click.option("--verbose", "-v", is_flag=True, help="Log every rewrite decision.")
def serve(
    aws_account_id: str,
    aws_region: str,
    registries: str,
    host: str,
    port: int | None,
    cert_file: str,
    key_file: str,
    verbose: bool,
) -> None:
    """Serve the /mutate admission endpoint.

    TLS is used when both the certificate and key files exist; the pair is
    reloaded whenever the certificate file changes on disk.
    """
    _configure_logging(verbose)
    settings = _settings(
        aws_account_id=aws_account_id,
        aws_region=aws_region,
        registries=registries,
        host=host,
        port=port,
        cert_file=cert_file,
        key_file=key_file,
        verbose=verbose,
    )
    run_server(settings)


@main.command()
@click.argument("images", nargs=-1, required=True)
@identity_options
def rewrite(images: tuple[str, ...], aws_account_id: str, aws_region: str, registries: str) -> None:
    """Show how IMAGES would be rewritten, without starting a server.

    Examples:

      ecr-webhook rewrite nginx ghcr.io/owner/app:1.0 --account-id 123456789012 --region eu-west-1
    """
    settings = _settings(aws_account_id=aws_account_id, aws_region=aws_region, registries=registries)
    catalog = RegistryCatalog.from_registries(settings.registries, settings.cache_hostname)

    console.print(
        Panel(
            f"Cache: {catalog.cache_hostname}\nRegistries: {', '.join(catalog.registries)}",
            style="bold cyan",
        )
    )
    table = Table(title="Rewrite Decisions", show_lines=True)
    table.add_column("Image", style="bold")
    table.add_column("Matched")
    table.add_column("Result")

    for image in images:
        decision = catalog.decide(image)
        matched = "[green]yes[/green]" if decision.matched else "[dim]no[/dim]"
        table.add_row(decision.original_image, matched, decision.new_image)

    console.print(table)


if __name__ == "__main__":
    main()
