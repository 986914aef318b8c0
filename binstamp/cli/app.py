"""Main Typer application — imports and registers all CLI commands.

Entry point: ``binstamp`` (configured via pyproject.toml scripts).

Commands: stamp, ci, name, clean.
"""

from __future__ import annotations

import typer

from binstamp.cli.commands.ci import ci_cmd
from binstamp.cli.commands.clean import clean_cmd
from binstamp.cli.commands.name import name_cmd
from binstamp.cli.commands.stamp import stamp_cmd
from binstamp.cli.options import configure_logging, settings_for

app = typer.Typer(
    name="binstamp",
    help="binstamp: build Node.js runtimes with an app slot, then stamp apps into them.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log at DEBUG level.",
    ),
) -> None:
    """Configure logging for every command."""
    configure_logging("DEBUG" if verbose else settings_for(None).log_level)


# Register subcommands
app.command(name="stamp", help="Stamp an application into prebuilt runtimes.")(stamp_cmd)
app.command(name="ci", help="Build runtimes from source.")(ci_cmd)
app.command(name="name", help="Print the artifact name for a build combination.")(name_cmd)
app.command(name="clean", help="Remove build trees and cached artifacts.")(clean_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
