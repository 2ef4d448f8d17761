"""Thin wrapper around subprocess for host tools (mdata-get, svcadm, logadm...)."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence

from zone_setup.errors import CommandError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a finished host command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs host commands synchronously and captures their output."""

    def run(
        self,
        args: Sequence[str],
        check: bool = True,
        cwd: Optional[str] = None,
        input: Optional[str] = None,
    ) -> CommandResult:
        """Run a command to completion.

        Raises CommandError if the command cannot be started, or if it exits
        non-zero and check is True.
        """
        argv = [str(a) for a in args]
        logger.debug("Running: %s", " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                cwd=cwd,
                input=input,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise CommandError(f"failed to run {argv[0]}: {e}") from e

        result = CommandResult(argv, proc.returncode, proc.stdout, proc.stderr)
        if check and not result.ok:
            detail = result.stderr.strip() or result.stdout.strip()
            raise CommandError(
                f"{' '.join(argv)} exited {result.returncode}"
                + (f": {detail}" if detail else "")
            )
        return result

    def spawn_detached(self, args: Sequence[str]) -> None:
        """Start a command in its own session and return without waiting.

        The child outlives the caller; its exit status is never collected.
        """
        argv = [str(a) for a in args]
        logger.debug("Spawning detached: %s", " ".join(argv))
        try:
            subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise CommandError(f"failed to spawn {argv[0]}: {e}") from e
