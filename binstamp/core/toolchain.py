"""Compile planning — which external commands build the runtime on this host.

The planner only decides; running the commands is the orchestrator's job.
Three shapes of plan exist:

* **local** — ``./configure`` + ``make``/``gmake`` (or ``vcbuild.bat`` on
  Windows) in the source tree;
* **container** — ``docker run`` of the builder image executing a nested
  ``binstamp ci`` for the same build combination, used on Linux hosts when
  the target arch differs from the host or the host compiler is too old for
  the runtime version (or when explicitly requested).
"""

from __future__ import annotations

import logging
import shlex
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from binstamp.core.errors import InvalidArgumentError
from binstamp.core.process import ProcessRunner
from binstamp.models.build import BuildSpec, PlaceholderOfSize, RealScript
from binstamp.models.host import CONTAINER_PLATFORM, DARWIN_CPU, HostEnvironment

logger = logging.getLogger(__name__)

POINTER_COMPRESSION_FLAG = "--experimental-enable-pointer-compression"

# Minimum host gcc major version per runtime major version.
MIN_COMPILER_MAJOR: dict[int, int] = {
    10: 4,
    12: 6,
    14: 6,
    16: 8,
    18: 8,
    20: 10,
    22: 12,
}

CONTAINER_MOUNT = "/work"


class ContainerMode(str, Enum):
    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"


class CommandStep(BaseModel):
    """One external command of a compile plan."""

    model_config = ConfigDict(frozen=True)

    command: str
    args: list[str]
    cwd: Path | None = None
    env: dict[str, str] | None = None


class CompilePlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    steps: list[CommandStep]
    in_container: bool = False
    reason: str = "local toolchain"


def min_compiler_major(runtime_major: int) -> int:
    """Return the minimum gcc major version for a runtime major version."""
    eligible = [major for major in MIN_COMPILER_MAJOR if major <= runtime_major]
    if not eligible:
        return min(MIN_COMPILER_MAJOR.values())
    return MIN_COMPILER_MAJOR[max(eligible)]


def probe_compiler_major(runner: ProcessRunner, compiler: str = "g++") -> int | None:
    """Return the host compiler's major version, or ``None`` if unavailable."""
    output = runner.capture(compiler, ["-dumpversion"])
    if not output:
        return None
    head = output.split(".", 1)[0]
    return int(head) if head.isdigit() else None


def result_file(host: HostEnvironment, source_dir: Path) -> Path:
    """Where the toolchain leaves the compiled runtime executable."""
    if host.is_windows:
        return source_dir / "Release" / "node.exe"
    return source_dir / "out" / "Release" / "node"


class ToolchainPlanner:
    """Builds ``CompilePlan``s for a host.

    Parameters
    ----------
    host:
        The build host.
    builder_image:
        Container image name (without tag) for containerized builds.
    builder_image_version:
        Image tag; non-x64 targets use ``<version>-nonx64``.
    builder_setup:
        Shell snippet run in the container before the nested build.
    workdir:
        Host working directory mounted into the container.
    """

    def __init__(
        self,
        host: HostEnvironment,
        *,
        builder_image: str,
        builder_image_version: int,
        builder_setup: str = "",
        workdir: Path,
    ) -> None:
        self._host = host
        self._image = builder_image
        self._image_version = builder_image_version
        self._setup = builder_setup
        self._workdir = Path(workdir).resolve()

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def container_reason(
        self,
        spec: BuildSpec,
        mode: ContainerMode,
        compiler_major: int | None,
    ) -> str | None:
        """Return why a container build is needed, or ``None`` for a local build."""
        if mode is ContainerMode.NEVER or not self._host.is_linux:
            return None
        if mode is ContainerMode.ALWAYS:
            return "container build requested"
        if spec.arch != self._host.arch:
            return f"target arch {spec.arch} differs from host arch {self._host.arch}"
        required = min_compiler_major(spec.runtime_major)
        if compiler_major is None:
            return "no host compiler found"
        if compiler_major < required:
            return (
                f"host gcc {compiler_major} is older than gcc {required} "
                f"required by runtime {spec.runtime_major}.x"
            )
        return None

    def plan(
        self,
        spec: BuildSpec,
        source_dir: Path,
        *,
        mode: ContainerMode = ContainerMode.AUTO,
        compiler_major: int | None = None,
    ) -> CompilePlan:
        if spec.platform != self._host.platform and not (
            self._host.is_linux and spec.platform in ("linux", "alpine")
        ):
            raise InvalidArgumentError(
                f"cannot build a {spec.platform} runtime on a {self._host.platform} host"
            )

        reason = self.container_reason(spec, mode, compiler_major)
        if reason is not None:
            logger.info("building in container: %s", reason)
            return CompilePlan(
                steps=[self._container_step(spec)], in_container=True, reason=reason
            )
        if self._host.is_windows:
            return CompilePlan(steps=self._windows_steps(spec, source_dir))
        if self._host.is_darwin:
            return CompilePlan(steps=self._darwin_steps(spec, source_dir))
        return CompilePlan(steps=self._unix_steps(spec, source_dir))

    # ------------------------------------------------------------------
    # Argument construction
    # ------------------------------------------------------------------

    def _make_command(self) -> str:
        return "gmake" if self._host.is_bsd else "make"

    def _parallelism(self) -> str:
        return f"-j{max(1, self._host.cpu_count)}"

    def _configure_args(self, spec: BuildSpec) -> list[str]:
        return [POINTER_COMPRESSION_FLAG] if spec.pointer_compression else []

    def _windows_steps(self, spec: BuildSpec, source_dir: Path) -> list[CommandStep]:
        args = [spec.arch, "no-cctest"]
        if spec.pointer_compression:
            args.append("v8_ptr_compress")
        script = str(source_dir / "vcbuild.bat")
        return [CommandStep(command="cmd", args=["/c", script, *args], cwd=source_dir)]

    def _darwin_steps(self, spec: BuildSpec, source_dir: Path) -> list[CommandStep]:
        cpu = DARWIN_CPU.get(spec.arch)
        if cpu is None:
            logger.warning("unrecognized arch %r for darwin, trying it anyway", spec.arch)
            cpu = spec.arch
        configure_args = [*self._configure_args(spec), f"--dest-cpu={cpu}"]
        # configure.py does not propagate --dest-cpu into the compiler flags
        make_args = [self._parallelism(), f"CPPFLAGS=-arch {cpu}", f"LDFLAGS=-arch {cpu}"]
        return [
            CommandStep(command="./configure", args=configure_args, cwd=source_dir),
            CommandStep(command=self._make_command(), args=make_args, cwd=source_dir),
        ]

    def _unix_steps(self, spec: BuildSpec, source_dir: Path) -> list[CommandStep]:
        env = {**self._host.env, "LDFLAGS": "-lrt"}
        return [
            CommandStep(
                command="./configure", args=self._configure_args(spec), cwd=source_dir, env=env
            ),
            CommandStep(
                command=self._make_command(), args=[self._parallelism()], cwd=source_dir, env=env
            ),
        ]

    def _container_step(self, spec: BuildSpec) -> CommandStep:
        nested = [
            "binstamp",
            "ci",
            "--node",
            spec.runtime_version,
            "--arch",
            spec.arch,
            "--build-version",
            spec.build_version,
            "--workdir",
            CONTAINER_MOUNT,
            "--container",
            ContainerMode.NEVER.value,
        ]
        source = spec.source
        if isinstance(source, PlaceholderOfSize):
            nested += ["--size", f"{source.megabytes}MB"]
        elif isinstance(source, RealScript):
            nested += ["--app", self._container_path(source.path)]
            if source.app_name:
                nested += ["--name", source.app_name]
        if spec.pointer_compression:
            nested.append("--pointer-compress")

        script = shlex.join(nested)
        if self._setup:
            script = f"{self._setup} && {script}"

        args = ["run", "--rm"]
        tag = f"{self._image}:{self._image_version}"
        if spec.arch != "x64":
            tag += "-nonx64"
            args += ["--platform", CONTAINER_PLATFORM.get(spec.arch, f"linux/{spec.arch}")]
        args += ["-v", f"{self._workdir}:{CONTAINER_MOUNT}", "-t", tag, "/bin/bash", "-c", script]
        return CommandStep(command="docker", args=args, cwd=self._workdir)

    def _container_path(self, path: Path) -> str:
        resolved = Path(path).resolve()
        try:
            relative = resolved.relative_to(self._workdir)
        except ValueError:
            raise InvalidArgumentError(
                f"application {resolved} must live under {self._workdir} for a container build"
            ) from None
        return f"{CONTAINER_MOUNT}/{relative.as_posix()}"
