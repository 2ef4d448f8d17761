"""Import, enable and restart managed services (SMF)."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol

from zone_setup.errors import CommandError, ServiceActivationError
from zone_setup.host.commands import CommandRunner

logger = logging.getLogger(__name__)


class ServiceActivation(Protocol):
    def import_manifest(self, path: str) -> None: ...

    def enable(self, fmri: str, wait: bool = False) -> None: ...

    def disable(self, fmri: str, wait: bool = False) -> None: ...

    def restart(self, fmri: str, wait: bool = False) -> None: ...


class SmfServiceActivation:
    """Service activation through svccfg/svcadm/svcs.

    With wait=True, enable and disable use svcadm's own synchronous mode;
    restart has none, so the service state is polled until it is online.
    """

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        poll_interval: float = 1.0,
        timeout: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._runner = runner or CommandRunner()
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._sleep = sleep
        self._clock = clock

    def import_manifest(self, path: str) -> None:
        logger.info("Importing service manifest %s", path)
        self._svc(["svccfg", "import", path], f"failed to import {path}")

    def enable(self, fmri: str, wait: bool = False) -> None:
        logger.info("Enabling %s%s", fmri, " (waiting)" if wait else "")
        args = ["svcadm", "enable"] + (["-s"] if wait else []) + [fmri]
        self._svc(args, f"failed to enable {fmri}")

    def disable(self, fmri: str, wait: bool = False) -> None:
        logger.info("Disabling %s%s", fmri, " (waiting)" if wait else "")
        args = ["svcadm", "disable"] + (["-s"] if wait else []) + [fmri]
        self._svc(args, f"failed to disable {fmri}")

    def restart(self, fmri: str, wait: bool = False) -> None:
        logger.info("Restarting %s%s", fmri, " (waiting)" if wait else "")
        self._svc(["svcadm", "restart", fmri], f"failed to restart {fmri}")
        if wait:
            self.wait_online(fmri)

    def state(self, fmri: str) -> str:
        result = self._svc(
            ["svcs", "-H", "-o", "state", fmri], f"failed to query state of {fmri}"
        )
        return result.stdout.strip()

    def wait_online(self, fmri: str) -> None:
        """Block until the service reports 'online'."""
        deadline = self._clock() + self._timeout
        while True:
            state = self.state(fmri)
            if state == "online":
                return
            if state == "maintenance":
                raise ServiceActivationError(f"{fmri} entered maintenance")
            if self._clock() >= deadline:
                raise ServiceActivationError(
                    f"timed out after {self._timeout:.0f}s waiting for {fmri} (state={state})"
                )
            self._sleep(self._poll_interval)

    def _svc(self, args: list[str], message: str):
        try:
            return self._runner.run(args)
        except CommandError as e:
            raise ServiceActivationError(f"{message}: {e}") from e
