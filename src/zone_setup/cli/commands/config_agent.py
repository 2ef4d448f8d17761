"""config-agent document commands."""

from __future__ import annotations

from typing import Optional

import typer

from zone_setup.cli import output
from zone_setup.config_agent.materializer import LocalConfigMaterializer, parse_manifest_dirs
from zone_setup.errors import ZoneSetupError


def config_agent_init(
    url: str = typer.Argument(help="Registry URL"),
    dirs: Optional[list[str]] = typer.Argument(None, help="Local manifest directories"),
    config_file: str = typer.Option("", help="Document path (default: config-agent etc/config.json)"),
) -> None:
    """Write a fresh config-agent configuration document."""
    config = output.load_config()
    path = config_file or config.config_agent_config
    try:
        LocalConfigMaterializer(path).init(url, parse_manifest_dirs(" ".join(dirs or [])))
    except ZoneSetupError as e:
        output.abort(str(e))


def config_agent_add_manifest_dir(
    directory: str = typer.Argument(help="Local manifest directory to add"),
    config_file: str = typer.Option("", help="Document path (default: config-agent etc/config.json)"),
) -> None:
    """Add a local manifest directory to the config-agent document."""
    config = output.load_config()
    path = config_file or config.config_agent_config
    try:
        LocalConfigMaterializer(path).add_manifest_dir(directory)
    except ZoneSetupError as e:
        output.abort(str(e))
