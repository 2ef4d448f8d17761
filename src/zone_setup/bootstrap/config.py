"""Setup configuration from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from zone_setup.config_agent.materializer import parse_manifest_dirs


@dataclass
class SetupConfig:
    """Paths and knobs for zone setup. Defaults are the production layout."""

    # Persistent "setup has completed" sentinel
    marker_path: str = "/var/svc/setup_complete"
    # Setup's own log, copied aside once setup completes
    setup_log: str = "/var/svc/setup.log"
    setup_init_log: str = "/var/svc/setup_init.log"
    log_copy_delay: int = 5

    # Environment descriptor and shell profile
    dcinfo_path: str = "/.dcinfo"
    bashrc_source: str = "/opt/smartdc/boot/etc/root.bashrc"
    bashrc_target: str = "/root/.bashrc"

    # Optional one-time agent payload
    amon_agent_dir: str = "/opt/amon-agent"
    amon_agent_tarball: str = "/var/svc/amon-agent.tgz"

    # Log directories and their ownership (empty owner skips chown)
    log_dir: str = "/var/log/sdc"
    upload_dir: str = "/var/log/sdc/upload"
    log_owner: str = "root"
    log_group: str = "sys"
    postlogrotate_command: str = "/opt/smartdc/boot/bin/zone-setup postlogrotate"

    # RBAC and service manifests
    security_dir: str = "/etc/security"
    system_manifest_dir: str = "/lib/svc/manifest/system"

    # Registry integration
    config_agent_dir: str = "/opt/smartdc/config-agent"
    registrar_dir: str = "/opt/smartdc/registrar"
    metadata_cache: str = "/var/tmp/metadata.json"
    registry_role: str = "sapi"
    download_attempts: int = 30
    retry_delay: float = 2.0
    connect_timeout: float = 10.0
    request_timeout: float = 45.0

    # Mode flags
    proto_mode: bool = False
    roll_forward: bool = False
    local_manifest_dirs: list[str] = field(default_factory=list)

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> SetupConfig:
        """Load configuration from environment variables."""
        defaults = cls()
        return cls(
            marker_path=os.environ.get("ZONE_SETUP_MARKER", defaults.marker_path),
            upload_dir=os.environ.get("ZONE_SETUP_UPLOAD_DIR", defaults.upload_dir),
            metadata_cache=os.environ.get("ZONE_SETUP_METADATA_CACHE", defaults.metadata_cache),
            download_attempts=int(
                os.environ.get("ZONE_SETUP_DOWNLOAD_ATTEMPTS", str(defaults.download_attempts))
            ),
            retry_delay=float(os.environ.get("ZONE_SETUP_RETRY_DELAY", str(defaults.retry_delay))),
            proto_mode=os.environ.get("SAPI_PROTO_MODE", "") == "true",
            roll_forward=os.environ.get("SDC_LOG_ROLL_FORWARD", "") == "1",
            local_manifest_dirs=parse_manifest_dirs(
                os.environ.get("CONFIG_AGENT_LOCAL_MANIFESTS_DIRS", "")
            ),
            log_level=os.environ.get("ZONE_SETUP_LOG_LEVEL", defaults.log_level).upper(),
        )

    def validate(self) -> list[str]:
        """Return list of validation errors, empty if config is valid."""
        errors = []
        if self.download_attempts < 1:
            errors.append("ZONE_SETUP_DOWNLOAD_ATTEMPTS must be at least 1")
        if self.retry_delay < 0:
            errors.append("ZONE_SETUP_RETRY_DELAY cannot be negative")
        if not isinstance(logging.getLevelName(self.log_level), int):
            errors.append(f"ZONE_SETUP_LOG_LEVEL is not a logging level: {self.log_level}")
        if not Path(self.upload_dir).is_absolute():
            errors.append(f"ZONE_SETUP_UPLOAD_DIR must be absolute: {self.upload_dir}")
        return errors

    # Derived paths

    @property
    def config_agent_config(self) -> str:
        return str(Path(self.config_agent_dir) / "etc" / "config.json")

    @property
    def registrar_manifest(self) -> str:
        return str(Path(self.registrar_dir) / "smf" / "manifests" / "registrar.xml")

    @property
    def registrar_config(self) -> str:
        return str(Path(self.registrar_dir) / "etc" / "config.json")
