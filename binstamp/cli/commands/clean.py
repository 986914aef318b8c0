"""``binstamp clean`` — remove build trees and, optionally, cached artifacts."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from binstamp.cli.options import settings_for, split_values
from binstamp.core.fsutil import remove_tree

console = Console()


def clean_cmd(
    node: list[str] = typer.Option(
        None,
        "--node",
        "-n",
        help="Only clean these runtime versions. Cleans the whole build/ folder if omitted.",
    ),
    cache: bool = typer.Option(
        False,
        "--cache",
        help="Also remove the artifact cache.",
    ),
    workdir: Path = typer.Option(
        None,
        "--workdir",
        "-w",
        help="Working directory holding build/ and cache/.",
    ),
) -> None:
    """Remove build trees (and optionally the artifact cache)."""
    cfg = settings_for(workdir)
    versions = [v.removeprefix("v") for v in split_values(node)]

    if versions:
        targets = []
        for version in versions:
            targets += [
                cfg.build_dir / f"node-v{version}",
                cfg.build_dir / f"node-v{version}.tar.gz",
                cfg.build_dir / "pristine" / version,
            ]
    else:
        targets = [cfg.build_dir]
    if cache:
        targets.append(cfg.cache_dir)

    removed = [path for path in targets if remove_tree(path)]
    if not removed:
        console.print("[dim]Nothing to clean.[/dim]")
        return
    for path in removed:
        console.print(f"[green]removed[/green] {escape(str(path))}")
