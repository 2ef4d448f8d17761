"""Registers log streams with logadm and schedules hourly rotation."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional

from zone_setup.errors import CommandError, RotationConfigError
from zone_setup.host.commands import CommandRunner
from zone_setup.rotation.models import RotationStream, fragment_template, validate_stream_name

logger = logging.getLogger(__name__)

DEFAULT_HOOK_COMMAND = "/opt/smartdc/boot/bin/zone-setup postlogrotate"
HOURLY_LOGADM_LINE = "0 * * * * /usr/sbin/logadm"
SYSTEM_MESSAGES_LOG = "/var/adm/messages"
SMF_LOGS_PATTERN = "/var/svc/log/*.log"


class LogadmScheduler:
    """Rotation configuration backed by logadm(1M) and the root crontab."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        upload_dir: str = "/var/log/sdc/upload",
        hook_command: str = DEFAULT_HOOK_COMMAND,
    ) -> None:
        self._runner = runner or CommandRunner()
        self._upload_dir = upload_dir
        self._hook_command = hook_command

    def prepare(self) -> None:
        """Make system log rotation HUP rsyslogd instead of syslogd."""
        self._runner.run(["logadm", "-r", SYSTEM_MESSAGES_LOG], check=False)
        self._logadm(
            ["-w", SYSTEM_MESSAGES_LOG, "-C", "4", "-a", "kill -HUP `cat /var/run/rsyslogd.pid`"],
            "messages",
        )

    def register(self, stream: RotationStream) -> None:
        """Add (or replace) the logadm entry for a stream."""
        validate_stream_name(stream.name)
        args = ["-w", stream.name]
        if stream.size_limit:
            args += ["-S", stream.size_limit]
        args += [
            "-C", str(stream.retention),
            "-c",
            "-p", stream.period,
            "-t", fragment_template(self._upload_dir, stream.name),
            "-a", f"{self._hook_command} {stream.name}",
            stream.file_pattern,
        ]
        self._logadm(args, stream.name)
        logger.info("Added log rotation for %s (%s)", stream.name, stream.file_pattern)

    def register_all(self, streams: Iterable[RotationStream]) -> None:
        streams = list(streams)
        for stream in streams:
            validate_stream_name(stream.name)
        for stream in streams:
            self.register(stream)

    def finalize(self) -> None:
        """Run smf_logs rotation last and switch logadm from daily to hourly."""
        # Re-adding moves the entry after the ones registered above, so its
        # '-C 3' does not rotate away our logs first.
        self._runner.run(["logadm", "-r", "smf_logs"], check=False)
        self._logadm(["-w", "smf_logs", "-C", "3", "-c", "-s", "1m", SMF_LOGS_PATTERN], "smf_logs")

        current = self._runner.run(["crontab", "-l"], check=False)
        crontab = hourly_crontab(current.stdout if current.ok else "")
        self._install_crontab(crontab)
        logger.info("Scheduled hourly logadm")

    def _install_crontab(self, content: str) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=".zone_setup_logadm-", suffix=".cron")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            self._runner.run(["crontab", tmp_name])
        except CommandError as e:
            raise RotationConfigError(f"unable to import crontab: {e}") from e
        finally:
            Path(tmp_name).unlink(missing_ok=True)

    def _logadm(self, args: list[str], name: str) -> None:
        try:
            self._runner.run(["logadm"] + args)
        except CommandError as e:
            raise RotationConfigError(f"unable to create {name} logadm entry: {e}") from e


def hourly_crontab(existing: str) -> str:
    """Rewrite a crontab so logadm runs hourly and only hourly."""
    kept = [
        line
        for line in existing.splitlines()
        if "# Rotate system logs" not in line
        and not line.rstrip().endswith("/usr/sbin/logadm")
    ]
    if any("logadm" in line for line in kept):
        raise RotationConfigError("not all 'logadm' references removed from crontab")
    while kept and not kept[-1].strip():
        kept.pop()
    kept += ["", HOURLY_LOGADM_LINE]
    return "\n".join(kept) + "\n"
