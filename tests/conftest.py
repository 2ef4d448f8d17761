"""Shared test fixtures and in-memory stand-ins for host collaborators."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Optional

import pytest
import requests

from zone_setup.bootstrap.config import SetupConfig
from zone_setup.errors import CommandError
from zone_setup.host.commands import CommandResult


INSTANCE_ID = "8584337e-e54c-4910-86b8-0d5ff9282bbd"
REGISTRY_URL = "http://10.99.99.32"

ADMIN_NICS = json.dumps([
    {"interface": "net0", "mac": "90:b8:d0:1a:2b:3c", "nic_tag": "admin"},
    {"interface": "net1", "mac": "90:b8:d0:4d:5e:6f", "nic_tag": "external"},
])


class FakeMetadata:
    """Dictionary-backed metadata accessor."""

    def __init__(self, values: Optional[dict] = None) -> None:
        self.values = dict(values or {})
        self.lookups: list[str] = []

    def get(self, key: str) -> Optional[str]:
        self.lookups.append(key)
        return self.values.get(key)


class FakeServices:
    """Records service activation calls in order."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def import_manifest(self, path: str) -> None:
        self.calls.append(("import", path))

    def enable(self, fmri: str, wait: bool = False) -> None:
        self.calls.append(("enable", fmri, wait))

    def disable(self, fmri: str, wait: bool = False) -> None:
        self.calls.append(("disable", fmri, wait))

    def restart(self, fmri: str, wait: bool = False) -> None:
        self.calls.append(("restart", fmri, wait))

    def enabled(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "enable"]


class FakeRunner:
    """Command runner that records argv and answers from a handler."""

    def __init__(self, handler: Optional[Callable[[list[str]], CommandResult]] = None) -> None:
        self.calls: list[list[str]] = []
        self.cwds: list[Optional[str]] = []
        self.spawned: list[list[str]] = []
        self.crontabs: list[str] = []
        self._handler = handler

    def run(self, args, check: bool = True, cwd=None, input=None) -> CommandResult:
        argv = [str(a) for a in args]
        self.calls.append(argv)
        self.cwds.append(cwd)
        if argv[0] == "crontab" and len(argv) == 2 and argv[1] != "-l":
            self.crontabs.append(Path(argv[1]).read_text())
        result = self._handler(argv) if self._handler is not None else None
        if result is None:
            result = CommandResult(argv, 0, "", "")
        if check and not result.ok:
            raise CommandError(f"{' '.join(argv)} exited {result.returncode}")
        return result

    def spawn_detached(self, args) -> None:
        self.spawned.append([str(a) for a in args])

    def commands(self, name: str) -> list[list[str]]:
        return [c for c in self.calls if c[0] == name]


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None and self.text:
            return json.loads(self.text)
        return self._payload


class FakeSession:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self, responses: Optional[list] = None, default=None) -> None:
        self.responses = list(responses or [])
        self.default = default
        self.requests: list[tuple[str, str, dict]] = []

    def request(self, method, url, params=None, json=None, timeout=None):
        self.requests.append((method, url, {"params": params, "json": json, "timeout": timeout}))
        item = self.responses.pop(0) if self.responses else self.default
        if isinstance(item, Exception):
            raise item
        return item


def transport_error() -> requests.ConnectionError:
    return requests.ConnectionError("connection refused")


@pytest.fixture
def setup_config(tmp_path) -> SetupConfig:
    """SetupConfig with every path under tmp_path and no real ownership changes."""
    root = tmp_path / "zone"
    root.mkdir()
    return SetupConfig(
        marker_path=str(root / "var/svc/setup_complete"),
        setup_log=str(root / "var/svc/setup.log"),
        setup_init_log=str(root / "var/svc/setup_init.log"),
        dcinfo_path=str(root / ".dcinfo"),
        bashrc_source=str(root / "opt/smartdc/boot/etc/root.bashrc"),
        bashrc_target=str(root / "root/.bashrc"),
        amon_agent_dir=str(root / "opt/amon-agent"),
        amon_agent_tarball=str(root / "var/svc/amon-agent.tgz"),
        log_dir=str(root / "var/log/sdc"),
        upload_dir=str(root / "var/log/sdc/upload"),
        log_owner="",
        log_group="",
        security_dir=str(root / "etc/security"),
        system_manifest_dir=str(root / "lib/svc/manifest/system"),
        config_agent_dir=str(root / "opt/smartdc/config-agent"),
        registrar_dir=str(root / "opt/smartdc/registrar"),
        metadata_cache=str(root / "var/tmp/metadata.json"),
        retry_delay=0,
    )


@pytest.fixture
def zone_metadata() -> FakeMetadata:
    return FakeMetadata({
        "sdc:tags.smartdc_role": "imgapi",
        "sdc:uuid": INSTANCE_ID,
        "sdc:datacenter_name": "us-east-1",
        "sdc:nics": ADMIN_NICS,
        "sapi-url": REGISTRY_URL,
    })


def install_config_agent(config: SetupConfig) -> Path:
    """Lay out a config-agent install with an unrendered SMF manifest."""
    manifest = Path(config.config_agent_dir) / "smf" / "manifests" / "config-agent.xml"
    manifest.parent.mkdir(parents=True)
    manifest.write_text('<exec_method exec="@@PREFIX@@/build/node/bin/node @@PREFIX@@/agent.js"/>\n')
    return manifest


def install_registrar(config: SetupConfig, with_config: bool = True) -> None:
    manifest = Path(config.registrar_manifest)
    manifest.parent.mkdir(parents=True)
    manifest.write_text("<service_bundle/>\n")
    if with_config:
        cfg = Path(config.registrar_config)
        cfg.parent.mkdir(parents=True)
        cfg.write_text("{}\n")
