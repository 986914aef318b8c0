"""binstamp CLI — Typer-based command-line interface.

Provides the ``binstamp`` command with subcommands for stamping an
application into prebuilt runtimes, building runtimes from source, printing
artifact names and cleaning build trees.

All output uses Rich for formatted terminal display.
"""
