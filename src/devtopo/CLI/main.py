"""
Command Line Interface for devtopo.
"""
import json
import os
import sys

import click
from pydantic import ValidationError

from ..CONVERTERS.to_compose import ComposeConverter
from ..CONVERTERS.to_systemd import SystemdConverter
from ..MODELS.errors import TopologyError
from ..PARSERS.topology_parser import TopologyParser
from ..RUNNERS.plan_executor import DryRunLauncher, PlanExecutor
from ..TOPOLOGIES import spark_lab
from ..UTILS.logging import get_logger, setup_logging
from ..UTILS.settings import collect_environment, load_settings

log = get_logger("cli")


def _fail(message: str):
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _build_plan(ctx):
    """
    Declares the topology selected on the command line and builds its plan.
    """
    settings = ctx.obj['settings']
    path = ctx.obj['file']
    try:
        if path:
            if not os.path.exists(path):
                _fail(f"{path} not found.")
            builder = TopologyParser(context=ctx.obj['environment']).parse(path)
        else:
            builder = spark_lab.build(settings)
        plan = builder.build_plan()
    except (TopologyError, ValidationError) as e:
        log.debug("plan_error", error_type=type(e).__name__)
        _fail(str(e))
    return builder.name, plan


@click.group()
@click.option('--file', '-f', default=None, help='Topology file path (defaults to the built-in spark lab)')
@click.option('--env-file', default='.env', help='.env file with DEVTOPO_* settings and ${VAR} values')
@click.option('--log-level', default=None, help='Log level (debug, info, warning, error)')
@click.pass_context
def cli(ctx, file, env_file, log_level):
    """
    devtopo - development topology planner.

    Validates a topology of containers and managed services and plans the
    order they start in.
    """
    ctx.ensure_object(dict)
    environment = collect_environment(env_file)
    try:
        settings = load_settings(env_file, log_level=log_level)
    except ValidationError as e:
        _fail(f"Invalid settings: {e}")
    setup_logging(settings.log_level, settings.log_format)
    ctx.obj['file'] = file
    ctx.obj['environment'] = environment
    ctx.obj['settings'] = settings


@cli.command()
@click.pass_context
def validate(ctx):
    """Check the topology and report problems."""
    name, plan = _build_plan(ctx)
    click.echo(f"Topology '{name}' is valid: {len(plan.resources())} resources in {len(plan.waves)} waves.")


@cli.command()
@click.option('--json', 'as_json', is_flag=True, help='Print the full plan as JSON')
@click.pass_context
def plan(ctx, as_json):
    """Show the launch waves."""
    _, launch_plan = _build_plan(ctx)
    if as_json:
        click.echo(json.dumps(launch_plan.model_dump(mode='json'), indent=2))
        return

    click.echo(f"{'WAVE':6} {'RESOURCE':16} {'IMAGE':40} {'PORTS'}")
    click.echo("-" * 80)
    for number, wave in enumerate(launch_plan.waves):
        for descriptor in wave:
            ports = ", ".join(
                f"{e.host_port or '*'}->{e.target_port}/{e.protocol}" for e in descriptor.endpoints
            )
            click.echo(f"{number:<6} {descriptor.name:16} {descriptor.image:40} {ports}")


@cli.command()
@click.option('--type', '-t', type=click.Choice(['compose', 'systemd']), default='compose')
@click.option('--out', '-o', default='dist', help='Output directory')
@click.pass_context
def convert(ctx, type, out):
    """Convert the plan to a native format."""
    name, launch_plan = _build_plan(ctx)
    if type == 'compose':
        path = ComposeConverter(launch_plan, project=name).convert(out)
    else:
        path = SystemdConverter(launch_plan, project=name).convert(out)
    click.echo(f"Wrote {type} output to {path}")


@cli.command(name='dry-run')
@click.pass_context
def dry_run(ctx):
    """Walk the plan wave by wave without starting anything."""
    _, launch_plan = _build_plan(ctx)
    launcher = DryRunLauncher()
    try:
        PlanExecutor(launcher, ctx.obj['settings']).execute(launch_plan)
    except TopologyError as e:
        _fail(str(e))
    click.echo(f"Launch order: {', '.join(launcher.launched)}")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
