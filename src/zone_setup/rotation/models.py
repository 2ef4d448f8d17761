"""Rotation stream descriptors and rotated-file naming."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from zone_setup.errors import RotationConfigError

DEFAULT_RETENTION = 168  # one week of hourly files
DEFAULT_PERIOD = "1h"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"

# {name}_{nodeId}_{YYYY-MM-DDTHH:MM:SS}.log
FRAGMENT_PATTERN = re.compile(
    r"^(?P<name>[^_\s]+)_(?P<node>.+)_(?P<ts>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})\.log$"
)
_INVALID_NAME = re.compile(r"[_\s]")


def validate_stream_name(name: str) -> None:
    """Reject names the fragment filename parser could not split back out."""
    if not name:
        raise RotationConfigError("log rotation stream name is required")
    if _INVALID_NAME.search(name):
        raise RotationConfigError(
            f"log rotation name cannot include spaces or underscores: {name!r}"
        )


@dataclass(frozen=True)
class RotationStream:
    """One named log stream rotated hourly into the upload directory."""

    name: str
    file_pattern: str
    retention: int = DEFAULT_RETENTION
    period: str = DEFAULT_PERIOD
    size_limit: Optional[str] = None

    def __post_init__(self) -> None:
        validate_stream_name(self.name)
        if not self.file_pattern:
            raise RotationConfigError(f"log rotation {self.name!r} needs a file pattern")


def default_streams(role: str) -> list[RotationStream]:
    """The streams every zone rotates: its agents plus its own service log."""
    names = ["amon-agent", "config-agent", "registrar", role]
    seen: list[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return [RotationStream(n, f"/var/svc/log/*{n}*.log", size_limit="1g") for n in seen]


def fragment_template(upload_dir: str, name: str) -> str:
    """logadm -t template that yields fragment filenames for a stream."""
    return f"{upload_dir.rstrip('/')}/{name}_$nodename_%FT%H:%M:%S.log"


def canonical_name(name: str, node_id: str, hour: datetime) -> str:
    top = hour.replace(minute=0, second=0, microsecond=0)
    return f"{name}_{node_id}_{top.strftime(TIMESTAMP_FORMAT)}.log"


@dataclass(frozen=True)
class Fragment:
    """A rotated log segment waiting to be merged into its hourly file."""

    name: str
    node_id: str
    timestamp: datetime
    filename: str

    @property
    def is_canonical(self) -> bool:
        return self.timestamp.minute == 0 and self.timestamp.second == 0

    def backward_target(self) -> str:
        """Hourly file for the hour the fragment was rotated in."""
        return canonical_name(self.name, self.node_id, self.timestamp)

    def forward_target(self) -> str:
        """Hourly file for the hour after the fragment was rotated."""
        return canonical_name(self.name, self.node_id, self.timestamp + timedelta(hours=1))


def parse_fragment_name(filename: str) -> Optional[Fragment]:
    """Parse a rotated filename. Returns None if it is not one."""
    m = FRAGMENT_PATTERN.match(filename)
    if not m:
        return None
    try:
        ts = datetime.strptime(m.group("ts"), TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return Fragment(m.group("name"), m.group("node"), ts, filename)
