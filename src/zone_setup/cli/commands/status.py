"""Status command: show identity, setup state and config-agent document."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.table import Table

from zone_setup.bootstrap.marker import CompletionMarker
from zone_setup.cli import output
from zone_setup.config_agent.materializer import LocalConfigMaterializer
from zone_setup.errors import ZoneSetupError
from zone_setup.host.metadata import DATACENTER_KEY, INSTANCE_ID_KEY, REGISTRY_URL_KEY, ROLE_KEY
from zone_setup.rotation.models import parse_fragment_name

console = Console()


def status() -> None:
    """Show this zone's setup status."""
    config = output.load_config()
    runner = output.command_runner()
    try:
        metadata = output.metadata_accessor(runner)
        values = {key: metadata.get(key) for key in (ROLE_KEY, INSTANCE_ID_KEY, DATACENTER_KEY, REGISTRY_URL_KEY)}
    except ZoneSetupError as e:
        output.abort(str(e))

    table = Table(title="Zone Setup Status")
    table.add_column("Item", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Role", values[ROLE_KEY] or "[red]missing[/red]")
    table.add_row("Instance", values[INSTANCE_ID_KEY] or "[red]missing[/red]")
    table.add_row("Datacenter", values[DATACENTER_KEY] or "[dim]not set[/dim]")
    table.add_row("Registry URL", values[REGISTRY_URL_KEY] or "[dim]not set[/dim]")

    marker = CompletionMarker(config.marker_path)
    table.add_row("Setup complete", "[green]yes[/green]" if marker.is_set() else "[yellow]no[/yellow]")

    table.add_section()
    materializer = LocalConfigMaterializer(config.config_agent_config)
    if materializer.path.exists():
        try:
            doc = materializer.load()
        except ZoneSetupError as e:
            table.add_row("config-agent", f"[red]{e}[/red]")
        else:
            table.add_row("config-agent poll", f"{doc.poll_interval / 1000:.0f}s ({doc.log_level})")
            for i, directory in enumerate(doc.local_manifest_dirs, 1):
                table.add_row(f"  Manifest dir {i}", directory)
    else:
        table.add_row("config-agent", "[dim]not configured[/dim]")

    upload_dir = Path(config.upload_dir)
    if upload_dir.is_dir():
        pending = [p for p in upload_dir.iterdir() if _is_pending_fragment(p.name)]
        table.add_section()
        table.add_row("Unmerged log fragments", str(len(pending)))

    console.print(table)


def _is_pending_fragment(filename: str) -> bool:
    fragment = parse_fragment_name(filename)
    return fragment is not None and not fragment.is_canonical
