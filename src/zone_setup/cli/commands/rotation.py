"""Log rotation commands: register streams and the post-rotation hook."""

from __future__ import annotations

import typer

from zone_setup.cli import output
from zone_setup.errors import ZoneSetupError
from zone_setup.rotation.consolidate import consolidate
from zone_setup.rotation.models import RotationStream
from zone_setup.rotation.scheduler import LogadmScheduler


def postlogrotate(
    name: str = typer.Argument(help="Base name of the rotated log, e.g. 'imgapi'"),
    roll_forward: bool = typer.Option(
        False, help="Roll into the next hour instead of this one. Env: SDC_LOG_ROLL_FORWARD=1"
    ),
) -> None:
    """Merge the just-rotated log into its hourly file."""
    config = output.load_config()
    try:
        consolidate(name, config.upload_dir, roll_forward=roll_forward or config.roll_forward)
    except ZoneSetupError as e:
        output.abort(str(e))


def log_rotation_add(
    name: str = typer.Argument(help="Stream name (no spaces or underscores)"),
    pattern: str = typer.Argument(help="File (or pattern matching one file) to rotate"),
    size: str = typer.Option("", help="Upper size limit on rotated logs, e.g. 1g"),
) -> None:
    """Add an hourly rotation entry for a log stream."""
    config = output.load_config()
    try:
        stream = RotationStream(name=name, file_pattern=pattern, size_limit=size or None)
        _scheduler(config).register(stream)
    except ZoneSetupError as e:
        output.abort(str(e))


def log_rotation_setup_end() -> None:
    """Finish rotation setup: run smf_logs last and rotate hourly."""
    config = output.load_config()
    try:
        _scheduler(config).finalize()
    except ZoneSetupError as e:
        output.abort(str(e))


def _scheduler(config) -> LogadmScheduler:
    return LogadmScheduler(
        output.command_runner(), config.upload_dir, config.postlogrotate_command
    )
