"""The config-agent's local configuration document.

The document lives at <config-agent>/etc/config.json and is written in two
ways: a full initialization during setup, and incremental additions of local
manifest directories that zone setup scripts may trigger at any time. Every
write goes to a temporary file in the same directory and is renamed over the
original, so readers never see a half-written document.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from zone_setup.errors import ConfigDocumentError
from zone_setup.host.files import atomic_write_text

logger = logging.getLogger(__name__)

MANIFEST_PREFIX_TOKEN = "@@PREFIX@@"


def parse_manifest_dirs(text: str) -> list[str]:
    """Split a whitespace-separated directory list, dropping repeats."""
    dirs: list[str] = []
    for token in re.split(r"[ \t]+", text or ""):
        token = token.strip()
        if token and token not in dirs:
            dirs.append(token)
    return dirs


@dataclass
class ConfigDocument:
    """config-agent settings as stored on disk."""

    registry_url: str
    log_level: str = "info"
    # Milliseconds
    poll_interval: int = 60 * 1000
    local_manifest_dirs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "logLevel": self.log_level,
            "pollInterval": self.poll_interval,
            "sapi": {"url": self.registry_url},
            "localManifestDirs": list(self.local_manifest_dirs),
        }

    @classmethod
    def from_dict(cls, data: dict) -> ConfigDocument:
        sapi = data.get("sapi") or {}
        return cls(
            registry_url=sapi.get("url", ""),
            log_level=data.get("logLevel", "info"),
            poll_interval=int(data.get("pollInterval", 60 * 1000)),
            local_manifest_dirs=list(data.get("localManifestDirs") or []),
        )


class LocalConfigMaterializer:
    """Owns the config-agent document on disk."""

    def __init__(self, config_path: str) -> None:
        self._path = Path(config_path)

    @property
    def path(self) -> Path:
        return self._path

    def init(self, registry_url: str, manifest_dirs: list[str] | None = None) -> ConfigDocument:
        """Replace the whole document."""
        if not registry_url:
            raise ConfigDocumentError("a registry URL is required to initialize config-agent")
        doc = ConfigDocument(
            registry_url=registry_url,
            local_manifest_dirs=parse_manifest_dirs(" ".join(manifest_dirs or [])),
        )
        self._store(doc)
        logger.info(
            "Wrote config-agent config %s (%d local manifest dirs)",
            self._path,
            len(doc.local_manifest_dirs),
        )
        return doc

    def add_manifest_dir(self, directory: str) -> bool:
        """Append a local manifest directory. Returns False if already listed."""
        if not directory:
            raise ConfigDocumentError("a local manifest directory is required")
        doc = self.load()
        if directory in doc.local_manifest_dirs:
            logger.info("Local manifest dir %s already configured", directory)
            return False
        doc.local_manifest_dirs.append(directory)
        self._store(doc)
        logger.info("Added local manifest dir %s", directory)
        return True

    def load(self) -> ConfigDocument:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigDocumentError(f"failed to read file {str(self._path)!r}: {e}") from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigDocumentError(f"failed to parse file {str(self._path)!r}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigDocumentError(f"failed to parse file {str(self._path)!r}: not an object")
        return ConfigDocument.from_dict(data)

    def _store(self, doc: ConfigDocument) -> None:
        atomic_write_text(self._path, json.dumps(doc.to_dict(), indent=4) + "\n")


def render_manifest_template(manifest_path: str, prefix: str) -> bool:
    """Substitute the install prefix into an SMF manifest, in place.

    Returns True if the file changed. Safe to repeat once rendered.
    """
    path = Path(manifest_path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigDocumentError(f"failed to read manifest {manifest_path!r}: {e}") from e
    if MANIFEST_PREFIX_TOKEN not in text:
        return False
    atomic_write_text(path, text.replace(MANIFEST_PREFIX_TOKEN, prefix))
    return True
