"""Filesystem helpers shared by setup steps."""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path

from zone_setup.errors import ZoneSetupError


def atomic_write_text(path: Path, content: str) -> None:
    """Write content to a sibling temp file and rename it over path.

    The result keeps the mode of the file it replaces, or gets the usual
    umask-derived mode when path is new.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        mode = _replacement_mode(path)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise ZoneSetupError(f"failed to write file {str(path)!r}: {e}") from e


def _replacement_mode(path: Path) -> int:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask
