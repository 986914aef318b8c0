"""``binstamp name`` — print the artifact name for a build combination.

The slot size comes from ``--size`` or from the encoded size of ``--app``.
The name is printed plainly so scripts can capture it.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from binstamp.cli.options import CLI_ERRORS, settings_for
from binstamp.core.artifact_cache import build_artifact_name
from binstamp.core.placeholder import compute_slot_size, parse_slot_size, read_bundle
from binstamp.models.host import HostEnvironment, normalize_arch, normalize_platform

console = Console()


def name_cmd(
    node: str = typer.Option(
        None,
        "--node",
        "-n",
        help="Runtime version. Defaults to the first configured version.",
    ),
    platform: str = typer.Option(None, "--platform", "-p", help="Target platform."),
    arch: str = typer.Option(None, "--arch", help="Target architecture."),
    size: str = typer.Option(None, "--size", "-s", help="Slot size, e.g. 4MB."),
    app: Path = typer.Option(None, "--app", "-a", help="Derive the slot size from this script."),
    build_version: str = typer.Option(None, "--build-version", help="Build version."),
    pointer_compress: bool = typer.Option(False, "--pointer-compress"),
) -> None:
    """Print the canonical artifact name for a build combination."""
    cfg = settings_for(None)
    host = HostEnvironment.current()
    try:
        if size:
            slot = parse_slot_size(size)
        elif app is not None:
            slot = compute_slot_size(read_bundle(app).encoded_length)
        else:
            raise typer.BadParameter("one of --size or --app is required")
        plat = normalize_platform(platform) if platform else host.platform
        name = build_artifact_name(
            f"{plat}-ptrc" if pointer_compress else plat,
            normalize_arch(arch) if arch else host.arch,
            (node or cfg.default_runtime_versions[0]).removeprefix("v"),
            build_version or cfg.build_version,
            slot,
        )
    except CLI_ERRORS as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    typer.echo(name)
