"""Command-line interface for WebOps build plans."""

import sys
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .app import App
from .environment import Environment
from .errors import BuildPlanError, ErrorHandler
from .generator import (
    NO_MATCH_FAIL,
    NO_MATCH_FALLBACK,
    BuildPlanGenerator,
    GeneratePlanOptions,
)
from .images import ImageConfig
from .logging_config import configure_logging
from .plan import BuildPlan
from .providers import get_providers

console = Console()
error_handler = ErrorHandler()

# Resolved once per process
images = ImageConfig.from_environ()


def display_plan_table(plan: BuildPlan) -> None:
    """Display a build plan as tables.

    Args:
        plan: The plan to display.
    """
    console.print(f"[bold]Providers:[/bold] {', '.join(plan.providers) or 'none'}")
    console.print(f"[bold]Base image:[/bold] {plan.base_image}")
    console.print(f"[bold]Run image:[/bold] {plan.run_image}")

    table = Table(title="Phases", show_header=True, header_style="bold magenta")
    table.add_column("Phase", style="cyan", no_wrap=True)
    table.add_column("Packages", style="green")
    table.add_column("Commands")
    table.add_column("Depends on", style="dim")

    for phase in plan.phases:
        pkgs = [str(pkg) for pkg in phase.pkgs] + [f"apt:{pkg}" for pkg in phase.apt_pkgs]
        table.add_row(
            phase.name,
            "\n".join(pkgs),
            "\n".join(phase.cmds),
            ", ".join(phase.depends_on),
        )

    if plan.start:
        table.add_row("start", "", plan.start.cmd or "", "")

    console.print(table)

    if plan.variables:
        variables = Table(title="Variables", show_header=True, header_style="bold magenta")
        variables.add_column("Name", style="cyan")
        variables.add_column("Value")
        for key, value in plan.variables.items():
            variables.add_row(key, value)
        console.print(variables)


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Show debug logs on stderr')
def main(verbose: bool) -> None:
    """WebOps build plans - detect how to build and run a source tree."""
    configure_logging(verbose)


@main.command()
@click.argument('path', type=click.Path(file_okay=False), default='.')
@click.option('--env', 'envs', multiple=True, help='Environment entry (KEY=VALUE)')
@click.option('--install-cmd', 'install_cmds', multiple=True, help='Extra install command')
@click.option('--build-cmd', 'build_cmds', multiple=True, help='Extra build command')
@click.option('--start-cmd', help='Start command, overrides the detected one')
@click.option('--pkg', 'pkgs', multiple=True, help='Extra package (name or name@version)')
@click.option('--apt', 'apt_pkgs', multiple=True, help='Extra system package')
@click.option('--replace-cmds', is_flag=True, help='Replace provider commands instead of appending')
@click.option('--base-image', help='Pin the base image')
@click.option('--slim', is_flag=True, help='Run the app in the slim runtime image')
@click.option('--fallback', is_flag=True, help='Serve static files when no provider matches')
@click.option('--require-start', is_flag=True, help='Fail when no start command is found')
@click.option('--format', 'output_format', type=click.Choice(['json', 'table']), default='json',
              help='Output format')
def plan(
    path: str,
    envs: Tuple[str, ...],
    install_cmds: Tuple[str, ...],
    build_cmds: Tuple[str, ...],
    start_cmd: Optional[str],
    pkgs: Tuple[str, ...],
    apt_pkgs: Tuple[str, ...],
    replace_cmds: bool,
    base_image: Optional[str],
    slim: bool,
    fallback: bool,
    require_start: bool,
    output_format: str,
) -> None:
    """Generate the build plan for PATH."""
    try:
        options = GeneratePlanOptions(
            no_match_policy=NO_MATCH_FALLBACK if fallback else NO_MATCH_FAIL,
            require_start=require_start,
            slim_runtime=slim,
            pin_base_image=base_image,
            install_cmds=install_cmds,
            build_cmds=build_cmds,
            start_cmd=start_cmd,
            pkgs=pkgs,
            apt_pkgs=apt_pkgs,
            replace_cmds=replace_cmds,
        )
        app = App(path)
        environment = Environment.from_pairs(envs)
        build_plan = BuildPlanGenerator(get_providers(), options, images).generate_plan(app, environment)
    except BuildPlanError as e:
        error_handler.display_error(e, f"Generating build plan for {path}")
        sys.exit(1)

    if output_format == 'json':
        click.echo(build_plan.to_json())
    else:
        display_plan_table(build_plan)


@main.command()
@click.argument('path', type=click.Path(file_okay=False), default='.')
@click.option('--env', 'envs', multiple=True, help='Environment entry (KEY=VALUE)')
def detect(path: str, envs: Tuple[str, ...]) -> None:
    """List the providers that match PATH."""
    try:
        app = App(path)
        environment = Environment.from_pairs(envs)
        matched = BuildPlanGenerator(get_providers(), images=images).detect(app, environment)
    except BuildPlanError as e:
        error_handler.display_error(e, f"Detecting providers for {path}")
        sys.exit(1)

    if not matched:
        console.print("[yellow]No provider matched.[/yellow]")
        return

    for index, provider in enumerate(matched):
        role = "primary" if index == 0 else "additional"
        console.print(f"[cyan]{provider.name}[/cyan] ({provider.display_name}, {role})")


@main.command()
def providers() -> None:
    """List providers in priority order."""
    table = Table(title="Providers", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Ecosystem")

    for index, provider in enumerate(get_providers(), 1):
        table.add_row(str(index), provider.name, provider.display_name)

    console.print(table)


if __name__ == '__main__':
    main()
