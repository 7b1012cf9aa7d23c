"""Tests for the standalone build and watch sessions."""

import asyncio
from unittest.mock import patch

from watchfiles import Change

from swbuild.build.build_config import VIRTUAL_PREFIX
from swbuild.build.session import SessionContext
from swbuild.config import PluginOptions
from swbuild.plugin import RESOLVED_PREFIX, SwiftWasmPlugin
from swbuild.watch import (
    LoggingReloadChannel,
    SwiftSourceFilter,
    run_build,
    virtual_module_id,
    watch_and_rebuild,
)


def _run(coro):
    """Helper to run an async coroutine in a new event loop."""
    return asyncio.run(coro)


def test_swift_source_filter():
    source_filter = SwiftSourceFilter()
    assert source_filter(Change.modified, "/pkg/Sources/App/main.swift") is True
    assert source_filter(Change.added, "/pkg/Sources/App/README.md") is False
    assert source_filter(Change.modified, "/pkg/.build/checkouts/dep/Sources/Dep/dep.swift") is False


def test_virtual_module_id():
    assert virtual_module_id() == VIRTUAL_PREFIX
    assert virtual_module_id("App") == f"{VIRTUAL_PREFIX}&product=App"


def test_logging_reload_channel_records(console_output):
    channel = LoggingReloadChannel()
    channel.send({"type": "full-reload"})
    assert channel.messages == [{"type": "full-reload"}]
    assert "full-reload" in console_output.getvalue()


def test_run_build_returns_entry_module(fake_runner):
    entry = _run(run_build(PluginOptions(), context=SessionContext(), runner=fake_runner))
    assert entry.startswith('export { default } from "./')
    assert entry.endswith('/App.wasm?init";')
    assert fake_runner.count("wasm-opt") == 1


def test_watch_without_sources_folder_warns(fake_runner, tmp_path, console_output):
    plugin = SwiftWasmPlugin(PluginOptions(package_path=str(tmp_path)), SessionContext(), fake_runner)

    async def scenario():
        await plugin.config("serve")
        await plugin.load(RESOLVED_PREFIX)
        await watch_and_rebuild(plugin, LoggingReloadChannel())

    _run(scenario())
    assert "No Sources folder to watch" in console_output.getvalue()


def test_watch_feeds_changes_into_hot_update(fake_runner, tmp_path):
    sources = tmp_path / "Sources" / "App"
    sources.mkdir(parents=True)
    changed = sources / "main.swift"
    changed.write_text("print(1)\n")

    plugin = SwiftWasmPlugin(PluginOptions(package_path=str(tmp_path)), SessionContext(), fake_runner)
    channel = LoggingReloadChannel()

    async def fake_awatch(*paths, **kwargs):
        assert kwargs["stop_event"] is None
        assert isinstance(kwargs["watch_filter"], SwiftSourceFilter)
        yield {(Change.modified, str(changed))}

    async def scenario():
        await plugin.config("serve")
        await plugin.load(RESOLVED_PREFIX)
        with patch("swbuild.watch.awatch", fake_awatch):
            await watch_and_rebuild(plugin, channel)

    _run(scenario())
    assert channel.messages == [{"type": "full-reload"}]
    assert fake_runner.count("build") == 2
