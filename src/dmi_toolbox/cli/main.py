"""CLI entry point — click group that registers each tool's sub-command."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from dmi_toolbox.core.config import ConfigManager

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _setup_logging(verbosity: int) -> None:
    """Configure the root logger from the number of ``-v`` flags.

    No flag shows warnings only, ``-v`` adds info and ``-vv`` debug output.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=_LOG_FORMAT)


@click.group()
@click.version_option(package_name="dmi-toolbox")
@click.option("-v", "--verbose", count=True, help="Increase log output (-v info, -vv debug).")
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    """DMI Toolbox — BYOND icon editing CLI."""
    _setup_logging(verbose)
    config = ConfigManager()
    config.load()
    ctx.obj = config


@cli.command(name="alpha-mask")
@click.option(
    "--input",
    "input_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="The DMI file whose states are masked.",
)
@click.option(
    "--states",
    default=None,
    help='States to export separated by commas, e.g. "foo,bar". If not specified, all states are exported.',
)
@click.option(
    "--base-image",
    "base_image",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    default=None,
    help="The image used to mask the icon states (required unless --dry-run).",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, resolve_path=True),
    default=None,
    help="The DMI file to write. If it already exists, the states are appended to the end of it.",
)
@click.option("--dry-run", is_flag=True, default=False, help="List the input's states without writing anything.")
@click.pass_obj
def alpha_mask_cmd(
    config: ConfigManager,
    input_path: str,
    states: str | None,
    base_image: str | None,
    output_path: str | None,
    dry_run: bool,
) -> None:
    """Mask DMI icon states with an image through their alpha channel.

    Each output pixel is the base image's colour scaled by the alpha of the
    original frame.  When --states is omitted, the 'states' value of the
    alpha_mask config is used, and every state when that is unset too.
    """
    from dmi_toolbox.core.events import EventBus
    from dmi_toolbox.tools.alpha_mask import AlphaMaskTool

    if not dry_run and (base_image is None or output_path is None):
        msg = "--base-image and --output are required unless --dry-run is given"
        raise click.UsageError(msg)

    if states is None:
        states = config.get("states", tool="alpha_mask", default="")
        if isinstance(states, list):
            states = ",".join(states)

    bus = EventBus()
    bus.subscribe("progress", lambda **kw: click.echo(f"  [{kw['current']:5d}/{kw['total']:5d}] {kw['message']}"))
    bus.subscribe("log", lambda **kw: click.echo(kw["message"]))

    tool = AlphaMaskTool(event_bus=bus)
    result = tool.run(
        params={
            "input": Path(input_path),
            "states": states,
            "mask": Path(base_image) if base_image else None,
            "output": Path(output_path) if output_path else None,
            "dry_run": dry_run,
        },
    )

    if dry_run:
        return

    action = "Appended" if result.appended else "Wrote"
    click.echo(f"{action} {result.count} states to {result.output_path} ({result.total_states} states in file)")
