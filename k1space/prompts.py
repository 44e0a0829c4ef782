"""Interactive prompt primitives used by the builder and the menus.

``typer.Abort`` (raised by click on Ctrl-C or end of input) means the user
walked away; callers treat it as a cancel, not an error.
"""
from typing import List, Optional, Sequence, Tuple, Union

import click
import typer

Option = Tuple[str, str]


def _as_options(options: Sequence[Union[str, Option]]) -> List[Option]:
    return [o if isinstance(o, tuple) else (o, o) for o in options]


class Prompter:
    """select-one, free-text and confirm prompts on the terminal."""

    def select(self, title: str, options: Sequence[Union[str, Option]], default: Optional[str] = None) -> str:
        """Show a numbered list and return the value of the chosen option."""
        choices = _as_options(options)
        if not choices:
            raise typer.Abort()
        typer.echo(title)
        for i, (label, _) in enumerate(choices, start=1):
            typer.echo(f"  {i}) {label}")
        default_index = None
        for i, (_, value) in enumerate(choices, start=1):
            if value == default:
                default_index = i
                break
        index = typer.prompt(
            "Select",
            type=click.IntRange(1, len(choices)),
            default=default_index,
        )
        return choices[index - 1][1]

    def text(self, title: str, default: Optional[str] = None, description: str = "") -> str:
        if description:
            typer.echo(description)
        return typer.prompt(title, default=default or "", show_default=bool(default))

    def confirm(self, title: str, default: bool = False) -> bool:
        return typer.confirm(title, default=default)
