"""Standalone sessions: one-shot release build and watch-and-rebuild dev loop.

These drive SwiftWasmPlugin exactly the way a dev-server host would: call
config(), resolve and load the virtual module, then feed changed paths into
hot_update(). File watching uses watchfiles; reload messages go to a
LoggingReloadChannel instead of a browser connection.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Optional

from watchfiles import Change, DefaultFilter, awatch

from swbuild.build.build_config import VIRTUAL_PREFIX
from swbuild.build.session import SessionContext
from swbuild.config import PluginOptions
from swbuild.output import log_success, log_warning
from swbuild.plugin import SOURCE_SUFFIX, SwiftWasmPlugin
from swbuild.subprocess_utils import CommandRunner

logger = logging.getLogger(__name__)


class SwiftSourceFilter(DefaultFilter):
    """Only Swift sources, never SwiftPM's .build directory."""

    def __call__(self, change: Change, path: str) -> bool:
        if not super().__call__(change, path):
            return False
        p = Path(path)
        if ".build" in p.parts:
            return False
        return p.suffix == SOURCE_SUFFIX


class LoggingReloadChannel:
    """Reload channel that reports reload messages on the console."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    def send(self, payload: dict[str, Any]) -> None:
        self.messages.append(payload)
        log_success("Reload:", str(payload.get("type", "")))


def virtual_module_id(product: Optional[str] = None) -> str:
    """Import id of the virtual module, optionally selecting a product."""
    if product:
        return f"{VIRTUAL_PREFIX}&product={product}"
    return VIRTUAL_PREFIX


async def load_entry(plugin: SwiftWasmPlugin, product: Optional[str] = None) -> str:
    resolved = plugin.resolve_id(virtual_module_id(product))
    assert resolved is not None
    entry = await plugin.load(resolved)
    assert entry is not None
    return entry


async def run_build(
    options: PluginOptions,
    product: Optional[str] = None,
    context: Optional[SessionContext] = None,
    runner: Optional[CommandRunner] = None,
) -> str:
    """Run a production build and return the entry module source."""
    plugin = SwiftWasmPlugin(options, context, runner)
    await plugin.config("build")
    return await load_entry(plugin, product)


async def watch_and_rebuild(
    plugin: SwiftWasmPlugin,
    channel: Any,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Feed file changes under the watched Sources folders into the plugin."""
    folders = [folder for folder in plugin.watched_sources_folders if os.path.isdir(folder)]
    if not folders:
        log_warning("No Sources folder to watch, rebuild on change is disabled.")
        return

    logger.debug(f"Watching {folders}")
    try:
        async for changes in awatch(*folders, watch_filter=SwiftSourceFilter(), stop_event=stop_event):
            for _change, path in sorted(changes):
                plugin.hot_update(os.path.abspath(path), channel)
    finally:
        await plugin.wait_for_rebuilds()


async def run_dev_session(
    options: PluginOptions,
    product: Optional[str] = None,
    context: Optional[SessionContext] = None,
    runner: Optional[CommandRunner] = None,
    stop_event: Optional[asyncio.Event] = None,
) -> SwiftWasmPlugin:
    """Build once in debug mode, then rebuild on every accepted source change."""
    plugin = SwiftWasmPlugin(options, context, runner)
    await plugin.config("serve")
    await load_entry(plugin, product)
    await watch_and_rebuild(plugin, LoggingReloadChannel(), stop_event)
    return plugin
