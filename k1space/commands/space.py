import typer

from k1space.config import Config
from k1space.operations import config_paths, version

app = typer.Typer(help="Information about this k1space installation.")


def run_paths() -> None:
    paths = config_paths()
    typer.echo("\n📂 K1space Base Directory:")
    typer.echo(f"   cd {paths['base'][0]}\n")
    typer.echo("📄 K1space Config Files:")
    for path in paths["files"]:
        typer.echo(f"   {path}")
    typer.echo("\n📁 K1space Cloud Directories:")
    for path in paths["directories"]:
        typer.echo(f"   {path}")
    typer.echo()


def run_version() -> None:
    typer.echo(f"k1space {version()}")
    typer.echo(f"Home: {Config.home()}")


@app.command("paths")
def paths_cmd():
    """Print the base directory, documents and configuration directories."""
    run_paths()


@app.command("version")
def version_cmd():
    """Print the installed version."""
    run_version()
