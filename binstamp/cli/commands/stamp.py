"""``binstamp stamp`` — stamp an application into prebuilt runtimes.

For every requested (version, platform) pair the matching compiled runtime
is taken from the local cache or downloaded from the release store, and the
application bundle is written into its placeholder slot. No compiler needed.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from binstamp.bridge.transport import Transport
from binstamp.cli.options import CLI_ERRORS, settings_for, split_values
from binstamp.core.artifact_cache import ArtifactCache, RemoteArtifactStore
from binstamp.core.placeholder import parse_slot_size
from binstamp.core.stamper import stamp_application
from binstamp.models.host import HostEnvironment, normalize_arch, normalize_platform
from binstamp.monitor.renderer import ResultRenderer

console = Console()


def stamp_cmd(
    app: Path = typer.Option(
        ...,
        "--app",
        "-a",
        help="Application script to embed.",
    ),
    node: list[str] = typer.Option(
        None,
        "--node",
        "-n",
        help="Runtime version(s); repeat or comma-separate. Defaults to the configured versions.",
    ),
    platform: list[str] = typer.Option(
        None,
        "--platform",
        "-p",
        help="Target platform(s): linux, darwin, windows, alpine. Defaults to this host.",
    ),
    arch: str = typer.Option(
        None,
        "--arch",
        help="Target architecture. Defaults to this host.",
    ),
    name: str = typer.Option(
        None,
        "--name",
        help="Application name; also the output file prefix.",
    ),
    output_dir: Path = typer.Option(
        Path("."),
        "--dir",
        "-d",
        help="Directory for the stamped executables.",
    ),
    size: str = typer.Option(
        None,
        "--size",
        help="Force a slot size (e.g. 4MB) instead of deriving it from the bundle.",
    ),
    build_version: str = typer.Option(
        None,
        "--build-version",
        help="Build version of the prebuilt runtimes.",
    ),
    pointer_compress: bool = typer.Option(
        False,
        "--pointer-compress",
        help="Use runtimes built with pointer compression.",
    ),
    cache: bool = typer.Option(
        False,
        "--cache/--no-cache",
        help="Keep downloaded runtimes in the local cache.",
    ),
    workdir: Path = typer.Option(
        None,
        "--workdir",
        "-w",
        help="Working directory holding the cache/ folder.",
    ),
) -> None:
    """Stamp an application into prebuilt runtimes, one executable per target."""
    cfg = settings_for(workdir)
    host = HostEnvironment.current()
    versions = split_values(node) or list(cfg.default_runtime_versions)
    platforms = [normalize_platform(p) for p in split_values(platform)] or [host.platform]
    target_arch = normalize_arch(arch) if arch else host.arch
    renderer = ResultRenderer(console=console)
    try:
        slot_size = parse_slot_size(size) if size else None
    except CLI_ERRORS as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    failed = False
    with Transport(
        timeout=cfg.http_timeout,
        retries=cfg.http_retries,
        backoff_seconds=cfg.http_backoff_seconds,
    ) as transport:
        remote = RemoteArtifactStore(
            transport,
            download_base_url=cfg.release_download_url,
            release_api_url=cfg.release_api_url,
            token=cfg.github_token,
        )
        artifacts = ArtifactCache(cfg.cache_dir, remote)

        for version in versions:
            version = version.removeprefix("v")
            for plat in platforms:
                tag = f"{plat}-ptrc" if pointer_compress else plat
                prefix = name or "app"
                target = f"{tag}-{target_arch}-{version}"
                output = output_dir / f"{prefix}-{target}"
                try:
                    result = stamp_application(
                        app,
                        cache=artifacts,
                        runtime_version=version,
                        platform=tag,
                        arch=target_arch,
                        build_version=build_version or cfg.build_version,
                        app_name=name,
                        output_path=output,
                        slot_size=slot_size,
                        keep_artifact=cache,
                    )
                except CLI_ERRORS as exc:
                    failed = True
                    console.print(f"[bold red]Failed[/bold red] {target}: {escape(str(exc))}")
                    continue
                renderer.print_stamp(result)

    if failed:
        raise typer.Exit(code=1)
