"""Thin CLI wrapper for localstack_build.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
from typing import Annotated, NoReturn

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from localstack_build import __version__
from localstack_build.config import (
    STATE_DIR_NAME,
    BuildConfig,
    Settings,
    default_config_file,
    get_settings,
    history_db_url,
    load_deployed_config,
    print_settings_json,
    save_settings,
    untrusted_repositories,
)
from localstack_build.devices import (
    DEVICE_PROFILES,
    get_profile,
    is_supported,
    supported_devices,
    supported_devices_output,
)
from localstack_build.errors import LocalStackError
from localstack_build.logs import configure_logging

app = typer.Typer(
    name="localstack",
    help="LocalStack - build and publish custom Android OS releases locally",
    no_args_is_help=True,
)
console = Console()

STATUS_COLORS = {
    "succeeded": "green",
    "skipped": "dim",
    "running": "yellow",
    "pending": "yellow",
    "failed": "red",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"localstack-build version {__version__}")
        raise typer.Exit()


def _settings() -> Settings:
    try:
        settings = get_settings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None
    configure_logging(settings.log_level)
    return settings


def _fail(error: LocalStackError) -> NoReturn:
    console.print(f"[red]Error ({error.code}): {escape(str(error))}[/red]")
    raise typer.Exit(code=1)


def _check_device(device: str | None) -> str:
    if not device:
        console.print("[red]must specify device type[/red]")
        raise typer.Exit(code=1)
    if not is_supported(device):
        console.print(
            "[red]must specify a supported device: "
            f"{', '.join(supported_devices())}[/red]"
        )
        raise typer.Exit(code=1)
    return device


def _build_config(settings: Settings, **overrides: str | None) -> BuildConfig:
    try:
        return settings.to_build_config(**overrides)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None


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
    """LocalStack - build and publish custom Android OS releases locally."""


@app.command()
def build(
    force: Annotated[
        bool,
        typer.Option(
            "--force", "-f", help="Skip version check and force a complete rebuild"
        ),
    ] = False,
) -> None:
    """Launch a one-shot build.

    Resolves the latest component versions, builds only if something changed
    (or --force is given), then publishes the release and checkpoints the
    versions it was built from.

    Uses the configuration frozen by the last deploy, so flags passed to
    deploy (such as --chromium-version) stay in effect.
    """
    from localstack_build.pipeline import run_build_cycle

    settings = _settings()
    try:
        build_config = load_deployed_config(settings.state_path)
    except LocalStackError as e:
        _fail(e)
    if build_config is None:
        _check_device(settings.device)
        build_config = _build_config(settings)
    if not (build_config.context_dir / "build.sh").is_file():
        console.print(
            "[red]error: stack is not deployed: run 'localstack deploy' first[/red]"
        )
        raise typer.Exit(code=1)

    try:
        outcome = run_build_cycle(
            build_config,
            force,
            socket_path=settings.daemon_socket,
            daemon_timeout=settings.daemon_start_timeout,
        )
    except LocalStackError as e:
        _fail(e)

    if outcome.built:
        console.print(f"[green]Build for {outcome.device} published[/green]")
    else:
        console.print(
            "Build not required as all components are already up to date."
        )


@app.command()
def deploy(
    device: Annotated[
        str | None,
        typer.Option(
            "--device",
            "-d",
            help="Device to build for (e.g. crosshatch); use '-d list' to list",
        ),
    ] = None,
    chromium_version: Annotated[
        str | None,
        typer.Option(
            "--chromium-version",
            help="Pin a Chromium version (e.g. 80.0.3971.4) instead of latest stable",
        ),
    ] = None,
    save_config: Annotated[
        bool,
        typer.Option("--save-config", help="Save passed flags to the config file"),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt"),
    ] = False,
) -> None:
    """Deploy or update the container environment used for building.

    Renders the image build context and builds the image. Run again after
    changing the configuration.
    """
    settings = _settings()
    device = device or settings.device
    if device == "list":
        console.print(f"Valid devices are: {supported_devices_output()}")
        return
    device = _check_device(device)
    if get_profile(device).deprecated:
        console.print(
            f"[yellow]WARNING: {device} devices are no longer receiving security "
            "updates and will likely be completely deprecated in the future[/yellow]"
        )
    build_config = _build_config(
        settings, device=device, chromium_version=chromium_version
    )

    console.print("[bold]Current settings:[/bold]")
    console.print(
        yaml.safe_dump(build_config.model_dump(mode="json"), sort_keys=False),
        markup=False,
    )
    config_path = default_config_file()
    if save_config:
        console.print(f"These settings will be saved to config file {config_path}.")
    for kind, repo in untrusted_repositories(build_config):
        console.print(
            f"[yellow]You are using an untrusted repository ({repo}) for {kind} - "
            "this is risky unless you own the repository[/yellow]"
        )

    if not yes:
        confirm = typer.confirm("Do you want to continue?", default=False)
        if not confirm:
            console.print("Aborted.")
            raise typer.Exit(code=0)

    from localstack_build.pipeline import container_session

    try:
        with container_session(
            build_config, settings.daemon_socket, settings.daemon_start_timeout
        ) as orchestrator:
            context_dir = orchestrator.apply()
    except LocalStackError as e:
        _fail(e)
    console.print(f"[green]Deployed build environment from {context_dir}[/green]")

    if save_config:
        updated = settings.model_copy(
            update={"device": device, "chromium_version": build_config.chromium_version}
        )
        path = save_settings(updated, config_path)
        console.print(f"Saved settings to config file {path}.")


@app.command()
def devices(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List supported devices."""
    if json_output:
        output = [
            {
                "codename": p.codename,
                "name": p.friendly_name,
                "family": p.family,
                "signing_mode": p.signing_mode.value,
                "deprecated": p.deprecated,
            }
            for p in DEVICE_PROFILES.values()
        ]
        console.print(json.dumps(output, indent=2), soft_wrap=True)
        return

    console.print("[bold]Supported devices:[/bold]")
    for p in DEVICE_PROFILES.values():
        note = " [yellow](deprecated)[/yellow]" if p.deprecated else ""
        console.print(f"  {p.codename:<12} {p.friendly_name}{note}")


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = _settings()
    if json_output:
        console.print(print_settings_json(settings), soft_wrap=True)
        return

    state_dir = settings.state_path / STATE_DIR_NAME
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Stack:[/bold]")
    console.print(f"  Name:                {settings.name}")
    console.print(f"  Version:             {settings.stack_version}")
    console.print(f"  Device:              {settings.device or '(not set)'}")
    console.print(f"  Chromium version:    {settings.chromium_version or '(latest)'}")
    console.print(f"  Hosts file:          {settings.hosts_file or '(none)'}")
    console.print(f"  Attestation server:  {settings.attestation_server}")
    console.print(f"  Ignore version checks: {settings.ignore_version_checks}")
    console.print()
    console.print("[bold]Customizations:[/bold]")
    console.print(f"  Patches:             {len(settings.custom_patches)}")
    console.print(f"  Scripts:             {len(settings.custom_scripts)}")
    console.print(f"  Prebuilts:           {len(settings.custom_prebuilts)}")
    console.print(f"  Manifest remotes:    {len(settings.custom_manifest_remotes)}")
    console.print(f"  Manifest projects:   {len(settings.custom_manifest_projects)}")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Config file:         {default_config_file()}")
    console.print(f"  State directory:     {state_dir}")
    console.print(f"  Runtime socket:      {settings.daemon_socket}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Parallel jobs:       {settings.nproc}")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Release URL:         {settings.release_url}")
    console.print(f"  Release channel:     {settings.build_channel}")
    console.print(f"  Retry attempts:      {settings.retry_attempts}")
    console.print(f"  Sync attempts:       {settings.sync_attempts}")
    console.print(f"  Vendor timeout:      {settings.vendor_timeout}")


@app.command()
def history(
    device: Annotated[
        str | None,
        typer.Option("--device", "-d", help="Filter by device codename"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Maximum number of runs"),
    ] = 20,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show past build cycles, newest first."""
    from localstack_build.db import open_history
    from localstack_build.runs import list_runs

    settings = _settings()
    factory = open_history(history_db_url(settings.state_path))

    with factory() as session:
        runs = list_runs(session, device=device, limit=limit)

        if json_output:
            console.print(
                json.dumps([r.to_dict() for r in runs], indent=2), soft_wrap=True
            )
            return
        if not runs:
            console.print("[yellow]No build runs recorded[/yellow]")
            return

        console.print(f"[bold]Found {len(runs)} build run(s):[/bold]")
        console.print()
        for r in runs:
            color = STATUS_COLORS.get(r.status, "white")
            console.print(f"  #{r.id} {r.device} [{color}]{r.status}[/{color}]")
            console.print(f"    Requested: {r.requested_at.isoformat()}")
            if r.reasons:
                console.print(f"    Reasons: {'; '.join(r.reasons)}")
            if r.error_code:
                console.print(
                    f"    Error: [red]{r.error_category}/{r.error_code}[/red] "
                    f"{escape(r.error_message or '')}"
                )
            console.print()


@app.command(hidden=True)
def execute() -> None:
    """Run the build plan inside the build container."""
    from localstack_build.pipeline import execute_plan, load_plan

    configure_logging("INFO")
    try:
        build_config, state = load_plan()
        execute_plan(build_config, state)
    except LocalStackError as e:
        _fail(e)


__all__ = ["app"]
