"""First-boot (and every-boot) setup of a core service zone.

Steps run in a fixed order and any failure aborts the run; nothing is rolled
back. Expensive one-time work (agent install, registry registration, initial
config download) is gated on the completion marker, which is only written by
the last step, so an interrupted run simply repeats the remaining work on the
next boot. Every other step converges to the same end state however many
times it runs.
"""

from __future__ import annotations

import logging
import shlex
import shutil
from pathlib import Path
from typing import Callable, Optional

from zone_setup.bootstrap.access_control import install_metadata_rbac
from zone_setup.bootstrap.config import SetupConfig
from zone_setup.bootstrap.marker import CompletionMarker
from zone_setup.bootstrap.models import (
    ASSETS_ROLE,
    UNKNOWN_DATACENTER,
    ComponentPresence,
    InstanceIdentity,
    SetupContext,
)
from zone_setup.config_agent.materializer import LocalConfigMaterializer, render_manifest_template
from zone_setup.config_agent.runner import ConfigAgentRunner
from zone_setup.errors import CommandError, SetupError
from zone_setup.host.commands import CommandRunner
from zone_setup.host.files import atomic_write_text
from zone_setup.host.metadata import (
    DATACENTER_KEY,
    INSTANCE_ID_KEY,
    REGISTRY_URL_KEY,
    ROLE_KEY,
    MetadataAccessor,
    admin_nic_mac,
)
from zone_setup.host.services import ServiceActivation
from zone_setup.registry.client import DirectoryClient
from zone_setup.rotation.models import RotationStream, default_streams, validate_stream_name
from zone_setup.rotation.scheduler import LogadmScheduler

logger = logging.getLogger(__name__)

Step = Callable[[SetupContext], None]


class BootstrapOrchestrator:
    """Runs the fixed setup sequence for one zone."""

    def __init__(
        self,
        config: SetupConfig,
        metadata: MetadataAccessor,
        services: ServiceActivation,
        runner: Optional[CommandRunner] = None,
        directory_factory: Optional[Callable[[str], DirectoryClient]] = None,
        config_agent: Optional[ConfigAgentRunner] = None,
        scheduler: Optional[LogadmScheduler] = None,
    ) -> None:
        self._config = config
        self._metadata = metadata
        self._services = services
        self._runner = runner or CommandRunner()
        self._directory_factory = directory_factory or self._default_directory
        self._config_agent = config_agent or ConfigAgentRunner(config.config_agent_dir, self._runner)
        self._scheduler = scheduler or LogadmScheduler(
            self._runner, config.upload_dir, config.postlogrotate_command
        )
        self._marker = CompletionMarker(config.marker_path)
        self._materializer = LocalConfigMaterializer(config.config_agent_config)

    @property
    def marker(self) -> CompletionMarker:
        return self._marker

    def run(
        self,
        role_hint: Optional[str] = None,
        local_manifest_dirs: Optional[list[str]] = None,
        proto_mode: Optional[bool] = None,
        extra_rotation_streams: Optional[list[RotationStream]] = None,
    ) -> SetupContext:
        """Run every step in order. Raises on the first fatal error."""
        ctx = self._build_context(role_hint, local_manifest_dirs, proto_mode)
        logger.info("Performing setup of %s zone", ctx.role)

        streams = default_streams(ctx.role) + list(extra_rotation_streams or [])
        for stream in streams:
            validate_stream_name(stream.name)

        steps: list[tuple[str, Step]] = [
            ("environment descriptor", self._write_dcinfo),
            ("shell profile", self._install_bashrc),
            ("amon-agent install", self._install_amon_agent),
            ("log directories", self._setup_log_dirs),
            ("metadata RBAC", self._setup_rbac),
            ("registry registration", self._register),
            ("cron", self._enable_cron),
            ("log rotation", lambda c: self._setup_log_rotation(c, streams)),
            ("complete", self._complete),
        ]
        for name, step in steps:
            logger.debug("Setup step: %s", name)
            step(ctx)
        return ctx

    # -- step 1 --------------------------------------------------------------

    def _build_context(
        self,
        role_hint: Optional[str],
        local_manifest_dirs: Optional[list[str]],
        proto_mode: Optional[bool],
    ) -> SetupContext:
        identity = self.load_identity(role_hint)
        dirs = local_manifest_dirs if local_manifest_dirs is not None else self._config.local_manifest_dirs
        return SetupContext(
            identity=identity,
            config=self._config,
            presence=ComponentPresence.detect(self._config),
            registry_url=self._metadata.get(REGISTRY_URL_KEY) or None,
            proto_mode=self._config.proto_mode if proto_mode is None else proto_mode,
            local_manifest_dirs=tuple(dict.fromkeys(d for d in dirs if d)),
            already_setup=self._marker.is_set(),
        )

    def load_identity(self, role_hint: Optional[str] = None) -> InstanceIdentity:
        role = self._metadata.get(ROLE_KEY)
        if not role:
            raise SetupError("Unable to find zone role in metadata.")
        if role_hint and role_hint != role:
            logger.warning("Role hint %r does not match metadata role %r", role_hint, role)
        instance_id = self._metadata.get(INSTANCE_ID_KEY)
        if not instance_id:
            raise SetupError("Unable to find instance UUID in metadata.")
        return InstanceIdentity(
            role=role,
            instance_id=instance_id,
            datacenter_name=self._metadata.get(DATACENTER_KEY),
        )

    # -- steps 2-4 -----------------------------------------------------------

    def _write_dcinfo(self, ctx: SetupContext) -> None:
        dc_name = ctx.identity.datacenter_name
        if dc_name is None:
            logger.warning("No datacenter name in metadata; not writing %s", self._config.dcinfo_path)
            return
        dc_name = dc_name or UNKNOWN_DATACENTER
        atomic_write_text(Path(self._config.dcinfo_path), f'SDC_DATACENTER_NAME="{dc_name}"\n')

    def _install_bashrc(self, ctx: SetupContext) -> None:
        if not ctx.presence.bashrc:
            return
        try:
            shutil.copyfile(self._config.bashrc_source, self._config.bashrc_target)
        except OSError as e:
            raise SetupError(f"failed to install {self._config.bashrc_target}: {e}") from e

    def _install_amon_agent(self, ctx: SetupContext) -> None:
        if ctx.already_setup or not ctx.presence.amon_agent:
            return
        logger.info("Installing amon-agent")
        self._runner.run(["./pkg/postinstall.sh"], cwd=self._config.amon_agent_dir)
        try:
            Path(self._config.amon_agent_tarball).unlink(missing_ok=True)
        except OSError as e:
            raise SetupError(f"failed to remove {self._config.amon_agent_tarball}: {e}") from e

    # -- steps 5-6 -----------------------------------------------------------

    def _setup_log_dirs(self, ctx: SetupContext) -> None:
        for directory in (self._config.log_dir, self._config.upload_dir):
            try:
                Path(directory).mkdir(parents=True, exist_ok=True)
                if self._config.log_owner:
                    shutil.chown(directory, self._config.log_owner, self._config.log_group or None)
            except (OSError, LookupError) as e:
                raise SetupError(f"failed to set up {directory}: {e}") from e
        self._scheduler.prepare()

    def _setup_rbac(self, ctx: SetupContext) -> None:
        install_metadata_rbac(
            self._services, self._config.security_dir, self._config.system_manifest_dir
        )

    # -- step 7 --------------------------------------------------------------

    def _register(self, ctx: SetupContext) -> None:
        if ctx.already_setup:
            logger.info("Already setup, skipping registry and registrar initialization.")
            return
        if ctx.role == ASSETS_ROLE:
            logger.info("Skipping registry setup: %s zones do not use the registry", ASSETS_ROLE)
            return
        if ctx.skips_registration:
            logger.info(
                "Skipping config-agent/registry instance setup: '%s' zone in proto mode", ctx.role
            )
            return

        if not ctx.registry_url:
            raise SetupError("Unable to find registry URL in metadata.")

        if ctx.presence.config_agent:
            self._materialize_config_agent(ctx)

        directory = self._directory_factory(ctx.registry_url)
        directory.download_metadata(
            ctx.identity.instance_id,
            self._config.metadata_cache,
            has_admin_nic=admin_nic_mac(self._metadata) is not None,
        )

        if ctx.presence.config_agent:
            self._config_agent.run_once()
            self._services.import_manifest(str(self._config_agent.manifest_path))
            self._services.enable("config-agent")

        self._setup_registrar(ctx)

    def _materialize_config_agent(self, ctx: SetupContext) -> None:
        logger.info("Setting up config-agent")
        manifest = self._config_agent.manifest_path
        if not manifest.is_file():
            raise SetupError(f"config-agent manifest missing: {manifest}")
        render_manifest_template(str(manifest), self._config.config_agent_dir)
        self._materializer.init(ctx.registry_url or "", list(ctx.local_manifest_dirs))

    def _setup_registrar(self, ctx: SetupContext) -> None:
        if not ctx.presence.registrar:
            return
        if not ctx.presence.registrar_config:
            raise SetupError(f"No registrar config for {ctx.role}")
        logger.info("Importing and enabling registrar")
        self._services.import_manifest(self._config.registrar_manifest)
        self._services.enable("registrar")

    # -- steps 8-10 ----------------------------------------------------------

    def _enable_cron(self, ctx: SetupContext) -> None:
        logger.info("Starting cron")
        self._services.import_manifest(str(Path(self._config.system_manifest_dir) / "cron.xml"))
        self._services.enable("cron")

    def _setup_log_rotation(self, ctx: SetupContext, streams: list[RotationStream]) -> None:
        logger.info("Adding log rotation")
        self._scheduler.register_all(streams)
        self._scheduler.finalize()

    def _complete(self, ctx: SetupContext) -> None:
        self._marker.set()
        logger.info("setup done")
        self._copy_setup_log_later()

    def _copy_setup_log_later(self) -> None:
        """Copy the setup log aside after a delay, so the copy includes our exit.

        The copy runs in a detached process that is never waited on; whether
        it succeeds has no bearing on the outcome of setup.
        """
        cmd = "sleep {delay}; cp {src} {dst}".format(
            delay=int(self._config.log_copy_delay),
            src=shlex.quote(self._config.setup_log),
            dst=shlex.quote(self._config.setup_init_log),
        )
        try:
            self._runner.spawn_detached(["/bin/sh", "-c", cmd])
        except CommandError as e:
            logger.warning("Not copying setup log: %s", e)

    def _default_directory(self, registry_url: str) -> DirectoryClient:
        return DirectoryClient(
            registry_url,
            connect_timeout=self._config.connect_timeout,
            read_timeout=self._config.request_timeout,
            attempts=self._config.download_attempts,
            retry_delay=self._config.retry_delay,
        )
