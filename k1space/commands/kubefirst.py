import typer

from k1space.config import Config
from k1space.errors import CommandError
from k1space.kubefirst import fetch_flags, known_binaries, local_binary_path
from k1space.operations import set_kubefirst_binary
from k1space.prompts import Prompter
from k1space.providers import CLOUD_PROVIDERS, canonical_provider
from k1space.registry import RecordStore

from . import choose_config, exit_on_error

app = typer.Typer(help="Inspect the kubefirst binaries that configurations run.")


def _choose_binary(prompter: Prompter, title: str) -> str:
    options = [(f"Use {label} kubefirst ({path})", path) for label, path in known_binaries()]
    options.append(("Specify a custom path", "custom"))
    selected = prompter.select(title, options)
    if selected == "custom":
        selected = prompter.text("Enter the path to the kubefirst binary")
    return selected


def run_binaries() -> None:
    found = known_binaries()
    if not found:
        typer.echo("No kubefirst binary found on PATH or in the local repository.")
        typer.echo(f"Expected a local build at {local_binary_path()}")
        return
    typer.echo("Kubefirst binaries:")
    for label, path in found:
        typer.echo(f"  {label}: {path}")


def run_flags(provider: str = None, binary: str = None, prompter: Prompter = None) -> None:
    prompter = prompter or Prompter()
    if provider is None:
        provider = prompter.select("Select cloud provider", list(CLOUD_PROVIDERS))
    provider = canonical_provider(provider)
    if binary is None:
        found = known_binaries()
        if not found:
            raise CommandError(
                "kubefirst binary not found",
                remediation="Install kubefirst or pass --binary with the path to a build.",
            )
        binary = found[0][1]
    flags = fetch_flags(binary, provider, timeout=Config.COMMAND_TIMEOUT)
    typer.echo(f"Flags accepted by '{provider.lower()} create' ({binary}):")
    for name in sorted(flags):
        typer.echo(f"  --{name}  {flags[name]}")


def run_set_binary(key: str = None, binary: str = None, prompter: Prompter = None) -> None:
    prompter = prompter or Prompter()
    records = RecordStore()
    if key is None:
        key = choose_config(records, "Select a configuration to edit", prompter)
        if key is None:
            typer.echo("No configurations found. Please create a configuration first.")
            return
    current = records.get(key).flags.get("kubefirst-path") or "Not set"
    typer.echo(f"Current Kubefirst binary path: {current}")
    if binary is None:
        binary = _choose_binary(prompter, "Select the kubefirst binary to use")
    base_dir = set_kubefirst_binary(records, key, binary)
    typer.echo(f"Successfully updated Kubefirst binary for configuration '{key}'")
    typer.echo(f"KUBEFIRST_PATH set to: {binary}")
    typer.echo(f"Regenerated scripts in {base_dir}")


@app.command("binaries")
def binaries_cmd():
    """Show the kubefirst binaries found on this machine."""
    with exit_on_error():
        run_binaries()


@app.command("flags")
def flags_cmd(
    provider: str = typer.Option(..., help="Cloud provider, e.g. Civo"),
    binary: str = typer.Option(None, help="Path to the kubefirst binary"),
):
    """List the flags kubefirst accepts when creating a cluster on a provider."""
    with exit_on_error():
        run_flags(provider, binary)


@app.command("set-binary")
def set_binary_cmd(
    key: str = typer.Option(None, help="Configuration key, e.g. civo_lon1_K1"),
    binary: str = typer.Option(None, help="Path to the kubefirst binary"),
):
    """Change the kubefirst binary a configuration runs and regenerate its scripts."""
    with exit_on_error():
        run_set_binary(key, binary)
