"""
Plugin options for swbuild.

Options are frozen when the session starts. Development sessions force the
embedded SDK and wasm-opt off regardless of what is configured here.
"""

from dataclasses import dataclass, fields
from typing import Any, Mapping

from swbuild.build.debounce import DEFAULT_WINDOW_MS
from swbuild.build.rebuild_coordinator import POLICY_COALESCE, POLICY_CONCURRENT

DEFAULT_WASM_OPT_ARGS: tuple[str, ...] = ("-Os", "--strip-debug")


@dataclass(frozen=True)
class PluginOptions:
    """User-facing configuration of the swift-wasm plugin.

    Attributes:
        package_path: Path to the Swift package
        extra_build_args: Additional arguments passed to ``swift build``
        use_embedded_sdk: Use the Embedded Swift variant of the SDK (production only).
            Ignored when SWIFT_SDK_ID is set.
        link_embedded_unicode_data_tables: Link the Unicode data tables with Embedded Swift
        use_wasm_opt: Optimize the artifact with wasm-opt (production only)
        wasm_opt_args: Arguments passed to wasm-opt
        rebuild_policy: "concurrent" (default) or "coalesce"
        debounce_ms: Minimum time between two accepted file-change triggers
    """

    package_path: str = "."
    extra_build_args: tuple[str, ...] = ()
    use_embedded_sdk: bool = False
    link_embedded_unicode_data_tables: bool = True
    use_wasm_opt: bool = True
    wasm_opt_args: tuple[str, ...] = DEFAULT_WASM_OPT_ARGS
    rebuild_policy: str = POLICY_CONCURRENT
    debounce_ms: float = DEFAULT_WINDOW_MS

    def __post_init__(self) -> None:
        if self.rebuild_policy not in (POLICY_CONCURRENT, POLICY_COALESCE):
            raise ValueError(f"Unknown rebuild policy: {self.rebuild_policy!r}")
        if self.debounce_ms < 0:
            raise ValueError("debounce_ms must not be negative")
        # Accept lists from callers but keep the frozen value hashable
        object.__setattr__(self, "extra_build_args", tuple(self.extra_build_args))
        object.__setattr__(self, "wasm_opt_args", tuple(self.wasm_opt_args))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PluginOptions":
        """Create options from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown plugin option(s): {', '.join(unknown)}")
        return cls(**dict(data))
