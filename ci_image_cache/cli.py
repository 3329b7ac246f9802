"""Thin CLI wrapper for ci_image_cache.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules. Computed values (image
reference, fingerprint) go to stdout; logs and messages go to stderr.
"""

import json
import logging
import sys
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console

from ci_image_cache import __version__
from ci_image_cache.config import Settings, get_settings, print_settings_json

app = typer.Typer(
    name="ci-image-cache",
    help="CI image cache - reuse or build container images by fingerprint",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"ci-image-cache version {__version__}")
        raise typer.Exit()


def _load_settings() -> Settings:
    try:
        settings = get_settings()
    except ValidationError as e:
        err_console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1) from None
    logging.basicConfig(
        stream=sys.stderr,
        level=settings.log_level,
        format="%(message)s",
        force=True,
    )
    return settings


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """CI image cache - reuse or build container images by fingerprint."""


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = _load_settings()
    if json_output:
        typer.echo(print_settings_json(settings))
        return

    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Registry:[/bold]")
    console.print(f"  Repository:          {settings.repository_name}")
    console.print(f"  Region:              {settings.region or '(CLI default)'}")
    console.print(f"  Max age (days):      {settings.max_age_days}")
    tags = ", ".join(f"{k}={v}" for k, v in settings.ecr_tags.items())
    console.print(f"  Tags:                {tags or '(none)'}")
    console.print()
    console.print("[bold]Build:[/bold]")
    console.print(f"  Dockerfile:          {settings.dockerfile}")
    console.print(f"  Context:             {settings.build_context}")
    console.print(f"  Target:              {settings.target or '(none)'}")
    console.print(f"  Architecture:        {settings.host_architecture}")
    console.print(f"  Build args:          {', '.join(settings.build_args) or '(none)'}")
    console.print(f"  Cache on:            {', '.join(settings.cache_on) or '(none)'}")
    console.print(f"  Additional args:     {settings.additional_build_args or '(none)'}")
    console.print()
    console.print("[bold]Output:[/bold]")
    console.print(f"  Export variable:     {settings.export_env_variable}")
    console.print(f"  Log level:           {settings.log_level}")


@app.command()
def fingerprint(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Compute the build fingerprint without touching the registry."""
    from ci_image_cache.builds.fingerprint import (
        FingerprintError,
        FingerprintInputs,
        compute_fingerprint,
    )

    settings = _load_settings()
    inputs = FingerprintInputs.from_settings(settings)
    try:
        value = compute_fingerprint(inputs)
    except FingerprintError as e:
        err_console.print(f"[red]Failed to compute fingerprint: {e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "fingerprint": value,
            "dockerfile": inputs.dockerfile,
            "target": inputs.target,
            "architecture": inputs.architecture,
            "build_args": list(inputs.build_args),
            "cache_on": list(inputs.cache_on),
        }
        typer.echo(json.dumps(output, indent=2))
    else:
        typer.echo(value)


@app.command()
def run(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Reuse the cached image or build and push it, then export its reference."""
    from ci_image_cache.builds.docker import ImageCommandError
    from ci_image_cache.builds.fingerprint import FingerprintError
    from ci_image_cache.pipeline import run_pipeline
    from ci_image_cache.registry.client import RegistryError

    settings = _load_settings()
    try:
        result = run_pipeline(settings)
    except RegistryError as e:
        err_console.print(f"[red]Registry error ({e.code}): {e}[/red]")
        raise typer.Exit(code=1) from None
    except FingerprintError as e:
        err_console.print(f"[red]Failed to compute fingerprint: {e}[/red]")
        raise typer.Exit(code=1) from None
    except ImageCommandError as e:
        err_console.print(f"[red]Image build failed ({e.code}): {e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "image": str(result.image),
            "fingerprint": result.fingerprint,
            "repository": result.repository.name,
            "outcome": result.outcome.value,
            "policy_applied": result.policy_applied,
        }
        typer.echo(json.dumps(output, indent=2))
    else:
        typer.echo(str(result.image))


__all__ = ["app"]
