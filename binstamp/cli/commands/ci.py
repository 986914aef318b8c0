"""``binstamp ci`` — build runtimes from source.

Builds one runtime per (version, slot size) with an inert placeholder of
that size, or a single runtime with a real application compiled in when
``--app`` is given. Builds continue past failures (unless ``--fail-fast``)
and a summary table is printed at the end.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from binstamp.cli.options import CLI_ERRORS, settings_for, split_values
from binstamp.core.orchestrator import BatchRunner, SourceBuildOrchestrator
from binstamp.core.placeholder import parse_slot_size
from binstamp.core.toolchain import ContainerMode
from binstamp.models.build import BuildSpec, PlaceholderOfSize, RealScript
from binstamp.models.host import HostEnvironment, normalize_arch
from binstamp.monitor.renderer import ResultRenderer

console = Console()

DEFAULT_SIZES = ["2MB"]


def ci_cmd(
    node: list[str] = typer.Option(
        None,
        "--node",
        "-n",
        help="Runtime version(s); repeat or comma-separate. Defaults to the configured versions.",
    ),
    size: list[str] = typer.Option(
        None,
        "--size",
        "-s",
        help="Placeholder slot size(s), e.g. 2MB,4MB. Ignored with --app.",
    ),
    arch: str = typer.Option(
        None,
        "--arch",
        help="Target architecture. Defaults to this host.",
    ),
    app: Path = typer.Option(
        None,
        "--app",
        "-a",
        help="Compile this application script into the runtime instead of a placeholder.",
    ),
    name: str = typer.Option(
        None,
        "--name",
        help="Application name used with --app.",
    ),
    build_version: str = typer.Option(
        None,
        "--build-version",
        help="Build version recorded in the artifact name.",
    ),
    pointer_compress: bool = typer.Option(
        False,
        "--pointer-compress",
        help="Build with V8 pointer compression.",
    ),
    container: ContainerMode = typer.Option(
        ContainerMode.AUTO,
        "--container",
        case_sensitive=False,
        help="Use the builder container: auto, always or never.",
    ),
    cache: bool = typer.Option(
        False,
        "--cache/--no-cache",
        help="Copy compiled runtimes into the local artifact cache.",
    ),
    upload: bool = typer.Option(
        False,
        "--upload",
        help="Upload compiled runtimes to the release (needs GITHUB_TOKEN).",
    ),
    clean: bool = typer.Option(
        False,
        "--clean",
        help="Remove the source trees after building.",
    ),
    fail_fast: bool = typer.Option(
        False,
        "--fail-fast",
        help="Stop at the first failed build.",
    ),
    jobs: int = typer.Option(
        1,
        "--jobs",
        "-j",
        min=1,
        help="Number of builds to run at once.",
    ),
    workdir: Path = typer.Option(
        None,
        "--workdir",
        "-w",
        help="Working directory holding build/ and cache/.",
    ),
) -> None:
    """Build runtimes from source with a placeholder or an embedded application."""
    cfg = settings_for(workdir)
    host = HostEnvironment.current()
    versions = split_values(node) or list(cfg.default_runtime_versions)

    try:
        if app is not None:
            sources = [RealScript(path=app.resolve(), app_name=name)]
        else:
            sizes = split_values(size) or DEFAULT_SIZES
            sources = [PlaceholderOfSize(megabytes=parse_slot_size(s)) for s in sizes]
        specs = [
            BuildSpec(
                runtime_version=version,
                platform=host.platform,
                arch=normalize_arch(arch) if arch else host.arch,
                build_version=build_version or cfg.build_version,
                pointer_compression=pointer_compress,
                source=source,
            )
            for version in versions
            for source in sources
        ]
    except CLI_ERRORS as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    def factory(spec: BuildSpec) -> SourceBuildOrchestrator:
        return SourceBuildOrchestrator(
            spec,
            settings=cfg,
            host=host,
            cache=cache,
            upload=upload,
            container=container,
        )

    report = BatchRunner(factory, fail_fast=fail_fast, max_workers=jobs).run(specs)
    ResultRenderer(console=console).print_batch(report)

    if clean:
        cleaned: set[str] = set()
        for spec in specs:
            if spec.runtime_version not in cleaned:
                cleaned.add(spec.runtime_version)
                factory(spec).cleanup()

    if not report.ok:
        raise typer.Exit(code=1)
