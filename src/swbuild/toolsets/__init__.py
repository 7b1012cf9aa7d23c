"""SwiftPM toolset files shipped with swbuild.

Toolsets are JSON fragments passed to ``swift build --toolset``. They are
applied in order, so a later toolset may override an earlier one.

    wasm-reactor-toolset.json     - link as a WASI reactor (no _start entry point)
    embedded-unicode-toolset.json - link the Unicode data tables into Embedded Swift
"""

from __future__ import annotations

import os
from importlib import resources

REACTOR_TOOLSET = "wasm-reactor-toolset.json"
EMBEDDED_UNICODE_TOOLSET = "embedded-unicode-toolset.json"


def toolset_path(name: str) -> str:
    """Return the path of a bundled toolset, relative to the working directory.

    Relative paths are prefixed with ``./`` so printed command lines make it
    obvious they are paths.
    """
    abs_path = os.path.abspath(str(resources.files(__package__).joinpath(name)))
    try:
        rel_path = os.path.relpath(abs_path, os.getcwd())
    except ValueError:
        # Different drive on Windows
        return abs_path

    if not rel_path.startswith(".") and not os.path.isabs(rel_path):
        rel_path = f".{os.sep}{rel_path}"
    return rel_path
