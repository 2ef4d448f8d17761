"""Instance command: show this zone's record in the registry."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.table import Table

from zone_setup.cli import output
from zone_setup.errors import ZoneSetupError
from zone_setup.host.metadata import INSTANCE_ID_KEY, REGISTRY_URL_KEY

console = Console()


def instance(
    show_config: bool = typer.Option(False, "--config", help="Also print the rendered metadata"),
) -> None:
    """Show this zone's instance, service and application records from the registry."""
    config = output.load_config()
    runner = output.command_runner()
    try:
        metadata = output.metadata_accessor(runner)
        registry_url = metadata.get(REGISTRY_URL_KEY)
        instance_id = metadata.get(INSTANCE_ID_KEY)
        if not registry_url or not instance_id:
            output.abort("registry URL and instance UUID are required in metadata")

        client = output.directory_client(registry_url, config)
        record = client.get_instance(instance_id)
        if record is None:
            output.abort(f"instance {instance_id} is not registered at {registry_url}")
        service_uuid = record.get("service_uuid")
        service = next((s for s in client.list_services() if s.get("uuid") == service_uuid), {})
        application = next(
            (a for a in client.list_applications() if a.get("uuid") == service.get("application_uuid")),
            {},
        )
        peers = client.list_instances(service_uuid=service_uuid) if service_uuid else []
        rendered = client.get_config(instance_id) if show_config else None
    except ZoneSetupError as e:
        output.abort(str(e))

    table = Table(title=f"Registry instance {instance_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Alias", str(record.get("params", {}).get("alias", "")))
    table.add_row("Type", str(record.get("type", "")))
    table.add_row("Service", str(service.get("name", service_uuid or "")))
    table.add_row("Application", str(application.get("name", service.get("application_uuid", ""))))
    table.add_row("Service instances", str(len(peers)))
    metadata_keys = sorted((record.get("metadata") or {}).keys())
    table.add_row("Metadata keys", ", ".join(metadata_keys) or "[dim]none[/dim]")
    console.print(table)

    if record.get("params"):
        console.print_json(json.dumps(record["params"]))
    if rendered is not None:
        console.print_json(json.dumps(rendered.get("metadata", rendered)))
