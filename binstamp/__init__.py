"""binstamp: compile once, stamp many.

Builds the Node.js runtime from upstream source with a reserved placeholder
slot compiled into it, then stamps real applications into that slot to produce
single self-contained executables without recompiling:
  - Placeholder codec (slot sizing, deterministic marker bytes, bundle encoding)
  - Source build pipeline (acquire -> patch -> compile -> publish), resumable
  - Binary stamping fast path over cached runtime artifacts
  - Deterministic artifact naming shared by the local cache and remote releases
"""

__version__ = "0.2.0"
__description__ = "Compile-once, stamp-many single-executable builder for Node.js"

from binstamp.core.orchestrator import BatchRunner, SourceBuildOrchestrator
from binstamp.core.stamper import stamp_application
from binstamp.cli.app import app as cli

__all__ = [
    "SourceBuildOrchestrator",
    "BatchRunner",
    "stamp_application",
    "cli",
    "__version__",
]
