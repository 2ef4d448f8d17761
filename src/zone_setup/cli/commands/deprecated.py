"""Commands kept only so older headnode scripts calling them keep working."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def upload_values() -> None:
    """Deprecated: zone IPs are no longer uploaded to the registry."""
    logger.warning("'upload_values' is deprecated.")


def sapi_adopt() -> None:
    """Deprecated: instances are no longer adopted into the registry at setup."""
    logger.warning("'sapi_adopt' is deprecated.")
