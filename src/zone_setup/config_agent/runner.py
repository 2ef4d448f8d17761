"""Runs the config-agent once, synchronously, to write the initial configs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from zone_setup.host.commands import CommandRunner

logger = logging.getLogger(__name__)


class ConfigAgentRunner:
    def __init__(self, prefix: str, runner: Optional[CommandRunner] = None) -> None:
        self._prefix = Path(prefix)
        self._runner = runner or CommandRunner()

    @property
    def manifest_path(self) -> Path:
        return self._prefix / "smf" / "manifests" / "config-agent.xml"

    @property
    def config_path(self) -> Path:
        return self._prefix / "etc" / "config.json"

    def run_once(self) -> None:
        logger.info("Writing initial registry manifests")
        node = self._prefix / "build" / "node" / "bin" / "node"
        self._runner.run([str(node), str(self._prefix / "agent.js"), "-s"])
