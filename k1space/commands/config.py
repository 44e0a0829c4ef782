import typer

from k1space.builder import ConfigurationBuilder
from k1space.catalog import CatalogStore
from k1space.operations import delete_all_configs, delete_config, list_configs
from k1space.registry import RecordStore

from . import choose_config, exit_on_error

app = typer.Typer(help="Create, list and delete configurations.")


def run_create() -> None:
    result = ConfigurationBuilder(RecordStore(), CatalogStore()).run()
    if not result.completed:
        typer.echo("No configuration was written.")


def run_list() -> None:
    rows = list_configs(RecordStore())
    if not rows:
        typer.echo("No configurations found.")
        return
    typer.echo("Existing Configurations:")
    for row in rows:
        if not row["valid"]:
            typer.echo(f"\n{row['key']}: (Invalid format)")
            continue
        typer.echo(f"\n{row['key']}:")
        typer.echo(f"  Cloud Provider: {row['cloud_provider']}")
        typer.echo(f"  Region: {row['region']}")
        typer.echo(f"  Prefix: {row['prefix']}")
        typer.echo("  Files:")
        for path in row["files"]:
            typer.echo(f"    - {path}")


def run_delete(key: str = None, yes: bool = False) -> None:
    records = RecordStore()
    if key is None:
        key = choose_config(records, "Select a configuration to delete")
        if key is None:
            typer.echo("No configurations found to delete.")
            return
    if not yes and not typer.confirm(f"Are you sure you want to delete the configuration '{key}'?", default=False):
        typer.echo("Deletion cancelled.")
        return
    backup = delete_config(records, key)
    if backup is not None:
        typer.echo(f"Configuration '{key}' has been deleted and backed up to {backup}")
    else:
        typer.echo(f"Configuration '{key}' has been deleted.")


def run_delete_all(yes: bool = False) -> None:
    question = "Are you sure you want to delete all configurations? This action cannot be undone."
    if not yes and not typer.confirm(question, default=False):
        typer.echo("Deletion cancelled.")
        return
    delete_all_configs()
    typer.echo("All configurations have been deleted.")


@app.command("create")
def create_config_cmd():
    """Interactively build a configuration and generate its scripts."""
    with exit_on_error():
        run_create()


@app.command("list")
def list_configs_cmd():
    """List stored configurations and their generated files."""
    with exit_on_error():
        run_list()


@app.command("delete")
def delete_config_cmd(
    key: str = typer.Option(None, help="Configuration key, e.g. civo_lon1_K1"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    """Back up a configuration's directory and remove it from the index."""
    with exit_on_error():
        run_delete(key, yes)


@app.command("delete-all")
def delete_all_cmd(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    """Remove the index, the clouds catalog and every generated configuration."""
    with exit_on_error():
        run_delete_all(yes)
