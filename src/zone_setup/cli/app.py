"""Typer CLI application."""

import os

import typer

from zone_setup.cli.commands.config_agent import config_agent_add_manifest_dir, config_agent_init
from zone_setup.cli.commands.deprecated import sapi_adopt, upload_values
from zone_setup.cli.commands.registry import instance
from zone_setup.cli.commands.rotation import log_rotation_add, log_rotation_setup_end, postlogrotate
from zone_setup.cli.commands.setup import reset, setup
from zone_setup.cli.commands.status import status
from zone_setup.cli.output import configure_logging

app = typer.Typer(
    name="zone-setup",
    help="Core zone bootstrap and hourly log consolidation",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    configure_logging(os.environ.get("ZONE_SETUP_LOG_LEVEL", "INFO"))


app.command()(setup)
app.command()(reset)
app.command()(status)
app.command()(instance)
app.command()(postlogrotate)
app.command("log-rotation-add")(log_rotation_add)
app.command("log-rotation-setup-end")(log_rotation_setup_end)
app.command("config-agent-init")(config_agent_init)
app.command("config-agent-add-manifest-dir")(config_agent_add_manifest_dir)
app.command("upload-values")(upload_values)
app.command("sapi-adopt")(sapi_adopt)
