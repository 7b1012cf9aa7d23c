"""Session Context - toolchain settings read once per session.

The compiler and optimizer binaries and the optional SDK identifier override
come from the environment. They are read a single time into an immutable
SessionContext that is handed to every component, so nothing consults
os.environ after the session starts.

Environment variables:
    SWIFT_BIN:    Swift driver executable (default: "swift")
    WASM_OPT_BIN: Binaryen optimizer executable (default: "wasm-opt")
    SWIFT_SDK_ID: Swift SDK identifier; replaces automatic detection entirely
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_SWIFT_BIN = "swift"
DEFAULT_WASM_OPT_BIN = "wasm-opt"


@dataclass(frozen=True)
class SessionContext:
    """Immutable toolchain settings for one build session.

    Attributes:
        swift_bin: Swift driver executable
        wasm_opt_bin: wasm-opt executable
        sdk_id_override: SDK identifier to use verbatim, or None to detect it
    """

    swift_bin: str = DEFAULT_SWIFT_BIN
    wasm_opt_bin: str = DEFAULT_WASM_OPT_BIN
    sdk_id_override: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SessionContext":
        """Create a SessionContext from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            swift_bin=env.get("SWIFT_BIN") or DEFAULT_SWIFT_BIN,
            wasm_opt_bin=env.get("WASM_OPT_BIN") or DEFAULT_WASM_OPT_BIN,
            sdk_id_override=env.get("SWIFT_SDK_ID") or None,
        )
