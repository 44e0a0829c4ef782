import logging
from contextlib import contextmanager

import typer

from k1space.errors import K1spaceError

logger = logging.getLogger("k1space.commands")


def report(error: K1spaceError) -> None:
    """Print a store or provider error with its remediation, if any."""
    typer.echo(f"❌ {error}", err=True)
    if error.remediation:
        typer.echo(f"👉 {error.remediation}", err=True)


@contextmanager
def exit_on_error():
    """Turn K1spaceError into a message and exit status 1."""
    try:
        yield
    except K1spaceError as e:
        logger.debug("Command failed", exc_info=True)
        report(e)
        raise typer.Exit(code=1)


def choose_config(records, title: str, prompter=None):
    """Ask the user to pick a stored configuration; None when there are none."""
    from k1space.prompts import Prompter

    tokens = records.tokens()
    if not tokens:
        return None
    return (prompter or Prompter()).select(title, tokens)


__all__ = ["report", "exit_on_error", "choose_config"]
