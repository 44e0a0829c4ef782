import logging
import sys

import typer

from k1space.commands import config, cluster, kubefirst, space, report
from k1space.errors import K1spaceError
from k1space.logging import setup_logging
from k1space.prompts import Prompter
from k1space.registry import RecordStore

app = typer.Typer(help="k1space - kubefirst configuration manager.")

# Global debug flag
debug_mode = False

# Add all command groups
app.add_typer(config.app, name="config")
app.add_typer(kubefirst.app, name="kubefirst")
app.add_typer(cluster.app, name="cluster")
app.add_typer(space.app, name="space")

MENUS = {
    "Config": [
        ("List Configs", config.run_list),
        ("Create Config", config.run_create),
        ("Delete Config", config.run_delete),
        ("Delete All Configs", config.run_delete_all),
    ],
    "Kubefirst": [
        ("Show Kubefirst Binaries", kubefirst.run_binaries),
        ("Show Provider Flags", kubefirst.run_flags),
        ("Change Kubefirst Binary", kubefirst.run_set_binary),
    ],
    "Cluster": [
        ("Provision Cluster", cluster.run_provision),
        ("Deprovision Cluster", cluster.run_deprovision),
    ],
    "k1space": [
        ("Print Config Paths", space.run_paths),
        ("Print Version Info", space.run_version),
    ],
}


def run_submenu(name: str, prompter: Prompter) -> None:
    actions = dict(MENUS[name])
    while True:
        selected = prompter.select(f"{name} Menu", list(actions) + ["Back"])
        if selected == "Back":
            return
        try:
            actions[selected]()
        except typer.Abort:
            typer.echo("Cancelled.")
        except K1spaceError as e:
            logging.getLogger("k1space.cli").debug("Menu action failed", exc_info=True)
            report(e)


def run_menu(prompter: Prompter = None) -> int:
    """Main menu loop. Returns the process exit status."""
    prompter = prompter or Prompter()
    try:
        RecordStore().cleanup()
    except K1spaceError as e:
        report(e)
        return 1

    while True:
        try:
            action = prompter.select("K1Space Main Menu", list(MENUS) + ["Exit"])
            if action == "Exit":
                typer.echo("Exiting k1space. Goodbye!")
                return 0
            run_submenu(action, prompter)
        except (typer.Abort, OSError) as e:
            logging.error("Error running main menu: %s", str(e) or "input closed")
            return 1


# Global options callback
@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """k1space - generate and manage kubefirst cluster configurations."""
    global debug_mode
    debug_mode = debug
    setup_logging(debug)
    if debug:
        logging.debug("Debug mode enabled")
    if ctx.invoked_subcommand is None:
        raise typer.Exit(code=run_menu())


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)
