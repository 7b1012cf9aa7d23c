"""Rebuild scheduling core: debounce gate, configuration resolver, coordinator and invoker."""

from swbuild.build.build_config import BuildConfig, BuildConfigResolver, ConfigurationMode
from swbuild.build.debounce import DebounceGate
from swbuild.build.invoker import BuildInvoker
from swbuild.build.rebuild_coordinator import (
    CoalescingRebuildCoordinator,
    RebuildCoordinator,
    RebuildState,
    create_rebuild_coordinator,
)
from swbuild.build.session import SessionContext

__all__ = [
    "BuildConfig",
    "BuildConfigResolver",
    "BuildInvoker",
    "CoalescingRebuildCoordinator",
    "ConfigurationMode",
    "DebounceGate",
    "RebuildCoordinator",
    "RebuildState",
    "SessionContext",
    "create_rebuild_coordinator",
]
