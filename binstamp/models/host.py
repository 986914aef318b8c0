"""Build host description — replaces ambient process lookups.

The orchestrator and toolchain planner never consult ``os.getcwd()``,
``os.environ`` or ``sys.platform`` directly; they receive a
``HostEnvironment`` so tests can simulate any platform/architecture.
"""

from __future__ import annotations

import os
import platform as _platform
import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

_PLATFORM_ALIASES: dict[str, str] = {
    "win32": "windows",
    "windows": "windows",
    "win": "windows",
    "darwin": "darwin",
    "macos": "darwin",
    "mac": "darwin",
    "linux": "linux",
    "static": "alpine",
    "alpine": "alpine",
}

_ARCH_ALIASES: dict[str, str] = {
    "x86": "x86",
    "ia32": "x86",
    "x32": "x86",
    "i386": "x86",
    "i686": "x86",
    "x64": "x64",
    "amd64": "x64",
    "x86_64": "x64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "arm": "arm7l",
    "arm7": "arm7l",
    "arm7l": "arm7l",
    "armv7l": "arm7l",
    "arm6": "arm6l",
    "arm6l": "arm6l",
}

# Values of _ARCH_ALIASES -> the CPU names clang/configure expect on macOS.
DARWIN_CPU: dict[str, str] = {
    "arm64": "arm64",
    "x64": "x86_64",
}

# Docker --platform values for each normalized arch.
CONTAINER_PLATFORM: dict[str, str] = {
    "x64": "linux/amd64",
    "arm64": "linux/arm64",
    "arm7l": "linux/arm/v7",
    "arm6l": "linux/arm/v6",
    "x86": "linux/386",
}


def normalize_platform(name: str) -> str:
    """Map user/platform spellings to the canonical platform tag."""
    key = name.strip().lower()
    if key in _PLATFORM_ALIASES:
        return _PLATFORM_ALIASES[key]
    return key.rstrip("0123456789")


def normalize_arch(name: str) -> str:
    """Map user/platform arch spellings (including ``linux/arm64``) to a tag."""
    key = name.strip().lower()
    if "/" in key:
        key = key.split("/")[1]
    return _ARCH_ALIASES.get(key, key)


class HostEnvironment(BaseModel):
    """Explicit description of the machine running the build."""

    model_config = ConfigDict(frozen=True)

    cwd: Path
    env: dict[str, str] = Field(default_factory=dict)
    platform: str
    arch: str
    cpu_count: int = 1
    is_bsd: bool = False

    @classmethod
    def current(cls) -> HostEnvironment:
        """Snapshot the current process into a ``HostEnvironment``."""
        return cls(
            cwd=Path.cwd(),
            env=dict(os.environ),
            platform=normalize_platform(sys.platform),
            arch=normalize_arch(_platform.machine() or "x64"),
            cpu_count=os.cpu_count() or 1,
            is_bsd="bsd" in sys.platform,
        )

    @property
    def is_windows(self) -> bool:
        return self.platform == "windows"

    @property
    def is_darwin(self) -> bool:
        return self.platform == "darwin"

    @property
    def is_linux(self) -> bool:
        return self.platform in ("linux", "alpine")
