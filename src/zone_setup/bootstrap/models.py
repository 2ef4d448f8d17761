"""Data models shared by the bootstrap steps."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from zone_setup.bootstrap.config import SetupConfig

ASSETS_ROLE = "assets"
UNKNOWN_DATACENTER = "UNKNOWN"


@dataclass(frozen=True)
class InstanceIdentity:
    """Who this zone is. Fixed for the lifetime of the instance."""

    role: str
    instance_id: str
    # None when the datacenter key is not set at all
    datacenter_name: Optional[str] = None


@dataclass(frozen=True)
class ComponentPresence:
    """Optional components installed in this image, detected once per run."""

    bashrc: bool = False
    amon_agent: bool = False
    config_agent: bool = False
    registrar: bool = False
    registrar_config: bool = False

    @classmethod
    def detect(cls, config: SetupConfig) -> ComponentPresence:
        return cls(
            bashrc=Path(config.bashrc_source).is_file(),
            amon_agent=Path(config.amon_agent_dir).is_dir(),
            config_agent=Path(config.config_agent_dir).is_dir(),
            registrar=Path(config.registrar_manifest).is_file(),
            registrar_config=Path(config.registrar_config).is_file(),
        )


@dataclass(frozen=True)
class SetupContext:
    """Everything a bootstrap step needs, built once at the start of a run."""

    identity: InstanceIdentity
    config: SetupConfig
    presence: ComponentPresence
    registry_url: Optional[str] = None
    proto_mode: bool = False
    local_manifest_dirs: tuple[str, ...] = ()
    already_setup: bool = False

    @property
    def role(self) -> str:
        return self.identity.role

    @property
    def skips_registration(self) -> bool:
        return self.role == ASSETS_ROLE or (
            self.role == self.config.registry_role and self.proto_mode
        )
