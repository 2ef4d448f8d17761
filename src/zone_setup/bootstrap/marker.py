"""The setup-complete sentinel file."""

from __future__ import annotations

import logging
from pathlib import Path

from zone_setup.errors import SetupError

logger = logging.getLogger(__name__)


class CompletionMarker:
    """Existence of the file means first-boot setup finished. Content is ignored."""

    def __init__(self, path: str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def is_set(self) -> bool:
        return self._path.exists()

    def set(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.touch()
        except OSError as e:
            raise SetupError(f"failed to create setup marker {self._path}: {e}") from e

    def clear(self) -> None:
        """Force the next setup run to redo the one-time steps."""
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise SetupError(f"failed to remove setup marker {self._path}: {e}") from e
        logger.info("Cleared setup marker %s", self._path)
