"""Setup command: run the zone bootstrap sequence."""

from __future__ import annotations

from typing import Optional

import typer

from zone_setup.bootstrap.marker import CompletionMarker
from zone_setup.bootstrap.orchestrator import BootstrapOrchestrator
from zone_setup.cli import output
from zone_setup.errors import ZoneSetupError
from zone_setup.rotation.models import RotationStream


def setup(
    role_hint: str = typer.Option("", help="Expected zone role (metadata is authoritative)"),
    manifest_dir: list[str] = typer.Option(
        [], help="Local config-agent manifest dir (repeatable). Env: CONFIG_AGENT_LOCAL_MANIFESTS_DIRS"
    ),
    proto_mode: Optional[bool] = typer.Option(
        None, "--proto-mode/--no-proto-mode", help="Registry zone not yet serving. Env: SAPI_PROTO_MODE"
    ),
    log: list[str] = typer.Option(
        [], help="Extra log rotation as NAME=PATTERN[:SIZE] (repeatable)"
    ),
) -> None:
    """Bring this zone to its ready state. Safe to re-run on every boot."""
    config = output.load_config()
    runner = output.command_runner()
    try:
        extra = [parse_stream_option(option) for option in log]
        orchestrator = BootstrapOrchestrator(
            config,
            output.metadata_accessor(runner),
            output.service_activation(runner),
            runner=runner,
        )
        orchestrator.run(
            role_hint=role_hint or None,
            local_manifest_dirs=manifest_dir or None,
            proto_mode=proto_mode,
            extra_rotation_streams=extra,
        )
    except ZoneSetupError as e:
        output.abort(str(e))


def reset() -> None:
    """Clear the setup marker so the next setup redoes first-boot work."""
    config = output.load_config()
    try:
        CompletionMarker(config.marker_path).clear()
    except ZoneSetupError as e:
        output.abort(str(e))
    typer.echo(f"Cleared {config.marker_path}")


def parse_stream_option(option: str) -> RotationStream:
    """Parse NAME=PATTERN[:SIZE] into a rotation stream."""
    name, sep, rest = option.partition("=")
    if not sep or not rest:
        raise ZoneSetupError(f"expected NAME=PATTERN[:SIZE], got {option!r}")
    pattern, _, size = rest.partition(":")
    return RotationStream(name=name, file_pattern=pattern, size_limit=size or None)
