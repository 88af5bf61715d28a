"""Main Typer application: registers the CLI commands.

Entry point: ``mimikry`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from mimikry.cli.commands.build import build_cmd
from mimikry.cli.commands.versions import versions_cmd

app = typer.Typer(
    name="mimikry",
    help="mimikry: rebuild upstream image versions from your own templates.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="build", help="Build, tag and push images for matching versions.")(build_cmd)
app.command(name="versions", help="List upstream versions matching a constraint.")(versions_cmd)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
