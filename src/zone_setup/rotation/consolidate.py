"""Post-rotation hook: merge the newest fragment into its hourly log file.

The rotation scheduler rotates "<name>_<node>_<YYYY-MM-DDTHH:MM:SS>.log"
fragments into the upload directory and then invokes this hook once per
rotation. The newest file of the stream (by mtime) is the one just rotated.
It is appended to "<name>_<node>_<YYYY-MM-DDTHH>:00:00.log" for the current
hour (rolling backward, the default) or for the next hour (rolling forward).
Rolling forward lets several rotations within an hour still converge on one
hourly file when the instance is reprovisioned mid-hour.

Hourly rotation usually fires at HH:00:00, so the rotated file often already
has its hourly name. Rolling backward leaves such a file where it is.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

from zone_setup.errors import FragmentNotFoundError, ZoneSetupError
from zone_setup.rotation.models import Fragment, parse_fragment_name, validate_stream_name

logger = logging.getLogger(__name__)

COPY_CHUNK = 1024 * 1024


def find_latest_fragment(upload_dir: Path, stream_name: str) -> Optional[tuple[Path, Fragment]]:
    """Newest rotated file of a stream, by mtime then filename."""
    best: Optional[tuple[tuple[float, str], Path, Fragment]] = None
    for entry in upload_dir.iterdir():
        if not entry.is_file():
            continue
        fragment = parse_fragment_name(entry.name)
        if fragment is None or fragment.name != stream_name:
            continue
        key = (entry.stat().st_mtime, entry.name)
        if best is None or key > best[0]:
            best = (key, entry, fragment)
    if best is None:
        return None
    return best[1], best[2]


def consolidate(stream_name: str, upload_dir: str, roll_forward: bool = False) -> Path:
    """Append the newest fragment of a stream to its hourly file and delete it.

    Returns the hourly file the fragment was merged into.
    """
    validate_stream_name(stream_name)
    directory = Path(upload_dir)
    if not directory.is_dir():
        raise FragmentNotFoundError(f"upload directory {directory} does not exist")

    found = find_latest_fragment(directory, stream_name)
    if found is None:
        raise FragmentNotFoundError(f"no rotated {stream_name!r} log found in {directory}")
    source, fragment = found

    target_name = fragment.forward_target() if roll_forward else fragment.backward_target()
    target = directory / target_name
    if target == source:
        logger.info("%s is already the hourly file", source.name)
        return target

    try:
        with open(source, "rb") as src, open(target, "ab") as dst:
            shutil.copyfileobj(src, dst, COPY_CHUNK)
        source.unlink()
    except OSError as e:
        raise ZoneSetupError(f"failed to roll {source.name} into {target_name}: {e}") from e

    logger.info(
        "Rolled %s %s into %s",
        source.name,
        "forward" if roll_forward else "backward",
        target_name,
    )
    return target
