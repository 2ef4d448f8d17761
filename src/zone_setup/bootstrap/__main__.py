"""Zone setup entry point for the service manager.

Usage: python -m zone_setup.bootstrap

Runs the full setup sequence with configuration taken from the environment:
    CONFIG_AGENT_LOCAL_MANIFESTS_DIRS - Space-separated local manifest dirs
    SAPI_PROTO_MODE                   - "true" while the registry zone is not yet serving
    ZONE_SETUP_LOG_LEVEL              - Logging level (default: INFO)
    ZONE_SETUP_MARKER                 - Setup-complete marker path
    ZONE_SETUP_METADATA_CACHE         - Registry metadata cache file
"""

from __future__ import annotations

import logging
import sys

from zone_setup.bootstrap.config import SetupConfig
from zone_setup.bootstrap.orchestrator import BootstrapOrchestrator
from zone_setup.cli.output import LOG_FORMAT
from zone_setup.errors import ZoneSetupError
from zone_setup.host.commands import CommandRunner
from zone_setup.host.metadata import MdataAccessor
from zone_setup.host.services import SmfServiceActivation

logger = logging.getLogger("zone_setup")


def main() -> int:
    config = SetupConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    errors = config.validate()
    if errors:
        for err in errors:
            logger.error("Config error: %s", err)
        return 1

    runner = CommandRunner()
    orchestrator = BootstrapOrchestrator(
        config, MdataAccessor(runner), SmfServiceActivation(runner), runner=runner
    )
    try:
        orchestrator.run()
    except ZoneSetupError as e:
        print(f"{sys.argv[0]}: error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
