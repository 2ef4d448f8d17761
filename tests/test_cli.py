"""Tests for the zone-setup command line."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
from typer.testing import CliRunner

from zone_setup.cli import output
from zone_setup.cli.app import app
from zone_setup.cli.commands.setup import parse_stream_option
from zone_setup.errors import RotationConfigError, ZoneSetupError
from zone_setup.registry.client import DirectoryClient
from tests.conftest import INSTANCE_ID, REGISTRY_URL, FakeResponse, FakeRunner, FakeServices, FakeSession

cli = CliRunner()


@pytest.fixture
def host(monkeypatch, setup_config, zone_metadata):
    """Route every CLI command to tmp_path and in-memory host collaborators."""
    runner = FakeRunner()
    services = FakeServices()
    monkeypatch.setattr(output, "load_config", lambda: setup_config)
    monkeypatch.setattr(output, "command_runner", lambda: runner)
    monkeypatch.setattr(output, "metadata_accessor", lambda r: zone_metadata)
    monkeypatch.setattr(output, "service_activation", lambda r: services)
    return runner, services


def write_fragment(directory: Path, stamp: str, content: bytes, mtime: int) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"imgapi_{INSTANCE_ID}_{stamp}.log"
    path.write_bytes(content)
    os.utime(path, (mtime, mtime))
    return path


class TestPostlogrotate:
    """The logadm post-command hook, configured from the environment."""

    def test_merges_fragment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ZONE_SETUP_UPLOAD_DIR", str(tmp_path))
        monkeypatch.delenv("SDC_LOG_ROLL_FORWARD", raising=False)
        write_fragment(tmp_path, "2021-01-01T09:12:34", b"line\n", 100)

        result = cli.invoke(app, ["postlogrotate", "imgapi"])

        assert result.exit_code == 0, result.output
        hourly = tmp_path / f"imgapi_{INSTANCE_ID}_2021-01-01T09:00:00.log"
        assert hourly.read_bytes() == b"line\n"

    def test_roll_forward_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ZONE_SETUP_UPLOAD_DIR", str(tmp_path))
        monkeypatch.setenv("SDC_LOG_ROLL_FORWARD", "1")
        write_fragment(tmp_path, "2021-01-01T09:12:34", b"line\n", 100)

        result = cli.invoke(app, ["postlogrotate", "imgapi"])

        assert result.exit_code == 0, result.output
        assert (tmp_path / f"imgapi_{INSTANCE_ID}_2021-01-01T10:00:00.log").exists()

    def test_roll_forward_flag(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ZONE_SETUP_UPLOAD_DIR", str(tmp_path))
        monkeypatch.delenv("SDC_LOG_ROLL_FORWARD", raising=False)
        write_fragment(tmp_path, "2021-01-01T23:30:00", b"x\n", 100)

        result = cli.invoke(app, ["postlogrotate", "imgapi", "--roll-forward"])

        assert result.exit_code == 0, result.output
        assert (tmp_path / f"imgapi_{INSTANCE_ID}_2021-01-02T00:00:00.log").exists()

    @pytest.mark.parametrize("roll_forward, hourly", [("", "T10:00:00"), ("1", "T11:00:00")])
    def test_rotation_on_the_hour_succeeds(self, tmp_path, monkeypatch, roll_forward, hourly):
        monkeypatch.setenv("ZONE_SETUP_UPLOAD_DIR", str(tmp_path))
        monkeypatch.setenv("SDC_LOG_ROLL_FORWARD", roll_forward)
        write_fragment(tmp_path, "2021-01-01T10:00:00", b"top\n", 100)

        result = cli.invoke(app, ["postlogrotate", "imgapi"])

        assert result.exit_code == 0, result.output
        assert [p.name for p in tmp_path.iterdir()] == [f"imgapi_{INSTANCE_ID}_2021-01-01{hourly}.log"]

    def test_no_fragment_is_an_error(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ZONE_SETUP_UPLOAD_DIR", str(tmp_path))

        result = cli.invoke(app, ["postlogrotate", "imgapi"])

        assert result.exit_code == 1
        assert "error:" in result.output

    def test_relative_upload_dir_rejected(self, monkeypatch):
        monkeypatch.setenv("ZONE_SETUP_UPLOAD_DIR", "upload")

        result = cli.invoke(app, ["postlogrotate", "imgapi"])

        assert result.exit_code == 1
        assert "must be absolute" in result.output


class TestLogRotationCommands:
    def test_add_registers_stream(self, host):
        runner, _ = host

        result = cli.invoke(app, ["log-rotation-add", "imgapi-audit", "/var/log/audit.log", "--size", "10m"])

        assert result.exit_code == 0, result.output
        argv = runner.commands("logadm")[0]
        assert argv[:5] == ["logadm", "-w", "imgapi-audit", "-S", "10m"]
        assert argv[-1] == "/var/log/audit.log"

    def test_add_rejects_underscore(self, host):
        runner, _ = host

        result = cli.invoke(app, ["log-rotation-add", "imgapi_audit", "/var/log/audit.log"])

        assert result.exit_code == 1
        assert "error:" in result.output
        assert runner.calls == []

    def test_setup_end_installs_crontab(self, host):
        runner, _ = host

        result = cli.invoke(app, ["log-rotation-setup-end"])

        assert result.exit_code == 0, result.output
        assert runner.crontabs and runner.crontabs[0].endswith("/usr/sbin/logadm\n")


class TestConfigAgentCommands:
    def test_init_then_add(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ZONE_SETUP_UPLOAD_DIR", raising=False)
        path = tmp_path / "config.json"

        result = cli.invoke(app, ["config-agent-init", REGISTRY_URL, "/a", "/b", "--config-file", str(path)])
        assert result.exit_code == 0, result.output
        result = cli.invoke(app, ["config-agent-add-manifest-dir", "/c", "--config-file", str(path)])
        assert result.exit_code == 0, result.output

        doc = json.loads(path.read_text())
        assert doc["sapi"]["url"] == REGISTRY_URL
        assert doc["localManifestDirs"] == ["/a", "/b", "/c"]

    def test_add_without_document(self, tmp_path):
        result = cli.invoke(
            app, ["config-agent-add-manifest-dir", "/c", "--config-file", str(tmp_path / "none.json")]
        )
        assert result.exit_code == 1
        assert "error:" in result.output


class TestSetupCommands:
    def test_setup_assets_zone(self, host, setup_config, zone_metadata):
        zone_metadata.values["sdc:tags.smartdc_role"] = "assets"
        _, services = host

        result = cli.invoke(app, ["setup", "--log", "assets-extra=/var/log/extra.log:1g"])

        assert result.exit_code == 0, result.output
        assert Path(setup_config.marker_path).exists()
        assert services.enabled()[-1] == "cron"

    def test_setup_failure_exits_1(self, host, zone_metadata):
        del zone_metadata.values["sdc:tags.smartdc_role"]

        result = cli.invoke(app, ["setup"])

        assert result.exit_code == 1
        assert "Unable to find zone role in metadata." in result.output

    def test_setup_rejects_bad_log_option(self, host, setup_config):
        result = cli.invoke(app, ["setup", "--log", "no-pattern"])

        assert result.exit_code == 1
        assert not Path(setup_config.marker_path).exists()

    def test_reset_clears_marker(self, host, setup_config):
        marker = Path(setup_config.marker_path)
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.touch()

        result = cli.invoke(app, ["reset"])

        assert result.exit_code == 0, result.output
        assert not marker.exists()

    def test_reset_failure_exits_1(self, host, setup_config):
        blocker = Path(setup_config.marker_path).parent
        blocker.parent.mkdir(parents=True, exist_ok=True)
        blocker.write_text("regular file")

        result = cli.invoke(app, ["reset"])

        assert result.exit_code == 1
        assert "failed to remove setup marker" in result.output

    def test_status(self, host):
        result = cli.invoke(app, ["status"])

        assert result.exit_code == 0, result.output
        assert "imgapi" in result.output

    def test_instance_shows_registry_records(self, host, monkeypatch):
        session = FakeSession([
            FakeResponse(200, {"uuid": INSTANCE_ID, "service_uuid": "s1", "params": {"alias": "imgapi0"}}),
            FakeResponse(200, [{"uuid": "s1", "name": "imgapi", "application_uuid": "a1"}]),
            FakeResponse(200, [{"uuid": "a1", "name": "headnode-app"}]),
            FakeResponse(200, [{"uuid": INSTANCE_ID}, {"uuid": "other"}]),
            FakeResponse(200, {"metadata": {"SERVICE_DOMAIN": "imgapi.coal.example"}}),
        ])
        monkeypatch.setattr(
            output, "directory_client", lambda url, config: DirectoryClient(url, session=session, attempts=1)
        )

        result = cli.invoke(app, ["instance", "--config"])

        assert result.exit_code == 0, result.output
        assert "imgapi0" in result.output
        assert "headnode-app" in result.output
        assert "imgapi.coal.example" in result.output
        assert [r[1].rsplit("/", 1)[-1] for r in session.requests] == [
            INSTANCE_ID, "services", "applications", "instances", INSTANCE_ID
        ]

    def test_instance_not_registered(self, host, monkeypatch):
        session = FakeSession([FakeResponse(404, {"code": "ResourceNotFound"})])
        monkeypatch.setattr(
            output, "directory_client", lambda url, config: DirectoryClient(url, session=session, attempts=1)
        )

        result = cli.invoke(app, ["instance"])

        assert result.exit_code == 1
        assert "is not registered" in result.output

    @pytest.mark.parametrize("command", ["upload-values", "sapi-adopt"])
    def test_deprecated_commands_succeed(self, command):
        result = cli.invoke(app, [command])
        assert result.exit_code == 0


class TestParseStreamOption:
    def test_with_size(self):
        stream = parse_stream_option("imgapi-audit=/var/log/audit.log:1g")
        assert (stream.name, stream.file_pattern, stream.size_limit) == (
            "imgapi-audit", "/var/log/audit.log", "1g"
        )

    def test_without_size(self):
        assert parse_stream_option("foo=/x.log").size_limit is None

    def test_missing_pattern(self):
        with pytest.raises(ZoneSetupError):
            parse_stream_option("foo")

    def test_bad_name(self):
        with pytest.raises(RotationConfigError):
            parse_stream_option("foo_bar=/x.log")
