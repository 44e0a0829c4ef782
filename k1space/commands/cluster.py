from pathlib import Path
from typing import Optional

import typer

from k1space.operations import DEPROVISION_SCRIPT, deprovision, provision, write_deprovision_script
from k1space.models import ConfigurationKey
from k1space.registry import RecordStore

from . import choose_config, exit_on_error

cluster_app = typer.Typer(help="Provision and deprovision clusters from stored configurations.")


def run_provision(key: str = None, yes: bool = False) -> None:
    records = RecordStore()
    if key is None:
        key = choose_config(records, "Select a configuration")
        if key is None:
            typer.echo("No configurations available. Please create a configuration first.")
            typer.echo("You can create a configuration using the 'Config' -> 'Create Config' option in the main menu.")
            return

    record = records.get(key)
    typer.echo(f"Configuration: {key}")
    typer.echo(f"File count: {len(record.files)}")
    for path in record.files:
        typer.echo(f"\n--- {path} ---")
        try:
            typer.echo(Path(path).read_text())
        except OSError as e:
            typer.echo(f"(unreadable: {e})")

    if not yes and not typer.confirm("Do you want to proceed with provisioning the cluster?", default=False):
        typer.echo("Cluster provisioning cancelled.")
        return
    typer.echo("Provisioning cluster...")
    log_path = provision(records, key)
    typer.echo(f"✅ Cluster provisioning completed successfully! Log: {log_path}")


def run_deprovision(key: str = None, regenerate: bool = None, run: bool = None) -> None:
    records = RecordStore()
    if key is None:
        key = choose_config(records, "Select a cluster to deprovision")
        if key is None:
            typer.echo("No clusters found to deprovision.")
            return

    existing = ConfigurationKey.parse(key).base_dir(records.home) / DEPROVISION_SCRIPT
    if regenerate is None:
        regenerate = existing.exists() and typer.confirm(
            "A deprovision script already exists. Do you want to regenerate it?", default=False)
    script_path = write_deprovision_script(records, key, regenerate=regenerate)
    typer.echo(f"Deprovisioning script: {script_path}")
    typer.echo("Please review the script before running it to deprovision the cluster.")

    if run is None:
        run = typer.confirm("Do you want to run the deprovisioning script now?", default=False)
    if not run:
        typer.echo("Deprovisioning script not run. You can run it manually later.")
        return
    log_path = deprovision(records, key)
    typer.echo(f"✅ Deprovisioning script completed successfully. Log: {log_path}")


@cluster_app.command("provision")
def provision_cmd(
    key: str = typer.Option(None, help="Configuration key, e.g. civo_lon1_K1"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    """Run the init script of a stored configuration."""
    with exit_on_error():
        run_provision(key, yes)


@cluster_app.command("deprovision")
def deprovision_cmd(
    key: str = typer.Option(None, help="Configuration key, e.g. civo_lon1_K1"),
    regenerate: Optional[bool] = typer.Option(None, "--regenerate/--keep", help="Regenerate an existing script"),
    run: Optional[bool] = typer.Option(None, "--run/--no-run", help="Run the script after writing it"),
):
    """Generate and optionally run the teardown script of a configuration."""
    with exit_on_error():
        run_deprovision(key, regenerate, run)


app = cluster_app
