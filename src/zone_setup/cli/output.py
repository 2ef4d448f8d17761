"""Shared CLI plumbing: logging setup, host collaborators, fatal exits."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn

import typer

from zone_setup.bootstrap.config import SetupConfig
from zone_setup.host.commands import CommandRunner
from zone_setup.host.metadata import MdataAccessor, MetadataAccessor
from zone_setup.host.services import ServiceActivation, SmfServiceActivation
from zone_setup.registry.client import DirectoryClient

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def load_config() -> SetupConfig:
    config = SetupConfig.from_env()
    errors = config.validate()
    if errors:
        abort("; ".join(errors))
    return config


def command_runner() -> CommandRunner:
    return CommandRunner()


def metadata_accessor(runner: CommandRunner) -> MetadataAccessor:
    return MdataAccessor(runner)


def service_activation(runner: CommandRunner) -> ServiceActivation:
    return SmfServiceActivation(runner)


def directory_client(registry_url: str, config: SetupConfig) -> DirectoryClient:
    return DirectoryClient(
        registry_url,
        connect_timeout=config.connect_timeout,
        read_timeout=config.request_timeout,
        attempts=1,
    )


def abort(message: str) -> NoReturn:
    """Print '<program>: error: <message>' on stderr and exit 1."""
    prog = Path(sys.argv[0]).name if sys.argv and sys.argv[0] else "zone-setup"
    typer.echo(f"{prog}: error: {message}", err=True)
    raise typer.Exit(1)
