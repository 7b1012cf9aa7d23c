"""
Swift WebAssembly plugin for a dev-server host.

The host resolves imports of ``virtual:swift-wasm?init`` through this plugin.
Loading the virtual module builds the Swift package and returns an entry
module that re-exports the artifact's ``?init`` factory:

    export { default } from "./.build/wasm32-unknown-wasi/debug/App.wasm?init";

The product can be chosen explicitly with ``virtual:swift-wasm?init&product=App``;
without it the package must define exactly one local executable.

During development (host command "serve") the plugin also reacts to changed
``.swift`` files under the package's Sources folder: triggers pass through a
shared DebounceGate, surviving ones request a rebuild from the coordinator,
and a successful rebuild sends ``{"type": "full-reload"}`` to the host.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Optional, Protocol

from swbuild.build.build_config import (
    VIRTUAL_PREFIX,
    BuildConfig,
    BuildConfigResolver,
    ConfigurationMode,
)
from swbuild.build.debounce import DebounceGate
from swbuild.build.invoker import BuildInvoker
from swbuild.build.rebuild_coordinator import Coordinator, create_rebuild_coordinator
from swbuild.build.session import SessionContext
from swbuild.config import PluginOptions
from swbuild.output import TimedLogger, log, log_success, log_warning
from swbuild.subprocess_utils import CommandRunner

logger = logging.getLogger(__name__)

RESOLVED_PREFIX = "\0" + VIRTUAL_PREFIX
SERVE_COMMAND = "serve"
SOURCE_SUFFIX = ".swift"


class ReloadChannel(Protocol):
    """Host live-update channel."""

    def send(self, payload: dict[str, Any]) -> None: ...


def parse_product_query(module_id: str) -> Optional[str]:
    """Return the ``product`` query parameter of a virtual module id.

    Raises:
        ValueError: For any query parameter other than ``product``
    """
    if module_id.startswith("\0"):
        module_id = module_id[1:]
    product: Optional[str] = None
    for param in module_id[len(VIRTUAL_PREFIX) :].split("&")[1:]:
        key, _, value = param.partition("=")
        if key == "product":
            product = value
        else:
            raise ValueError(f"Unknown query parameter: {key}")
    return product or None


def _relative_to_cwd(path: str) -> str:
    try:
        return os.path.relpath(path, os.getcwd())
    except ValueError:
        return path


class SwiftWasmPlugin:
    """Builds a Swift package to WebAssembly and serves it as a virtual module."""

    name = "swift-wasm-plugin"
    enforce = "pre"

    def __init__(
        self,
        options: Optional[PluginOptions] = None,
        context: Optional[SessionContext] = None,
        runner: Optional[CommandRunner] = None,
    ):
        self.options = options or PluginOptions()
        self.context = context or SessionContext.from_env()
        self.invoker = BuildInvoker(self.context, runner)
        self.resolver = BuildConfigResolver(self.context, self.invoker)
        self.debouncer = DebounceGate(self.options.debounce_ms)

        self.is_dev = False
        self.use_wasm_opt = self.options.use_wasm_opt
        self.use_embedded = self.options.use_embedded_sdk

        self.wasm_module: Optional[str] = None
        self.watched_sources_folders: list[str] = []
        self.build_config: Optional[BuildConfig] = None
        self.coordinator: Optional[Coordinator] = None
        self._configs: dict[str, BuildConfig] = {}
        self._coordinated_config: Optional[BuildConfig] = None
        self._rebuilds: set["asyncio.Task[None]"] = set()

    async def config(self, command: str) -> dict[str, Any]:
        """Apply the host command and return host configuration overrides."""
        self.is_dev = command == SERVE_COMMAND

        # never optimize in development
        if self.is_dev:
            self.use_wasm_opt = False
            self.use_embedded = False

        if self.use_wasm_opt and not await self.invoker.optimizer_available():
            log_warning("[!] wasm-opt is not available, disabling optimization...")
            log_warning("Please make sure binaryen tools are installed or disable wasm-opt setting.")
            self.use_wasm_opt = False

        return {"server": {"watch": {"ignored": ["**/.build/**"]}}}

    def resolve_id(self, module_id: str) -> Optional[str]:
        if module_id.startswith(VIRTUAL_PREFIX):
            return "\0" + module_id
        return None

    async def load(self, module_id: str) -> Optional[str]:
        """Build the package and return the entry module source."""
        if not module_id.startswith(RESOLVED_PREFIX):
            return None

        package_path = self.options.package_path
        config = self._configs.get(module_id)
        if config is None:
            config = await self.resolver.resolve(
                package_path=package_path,
                configuration=ConfigurationMode.DEBUG if self.is_dev else ConfigurationMode.RELEASE,
                use_embedded=self.use_embedded,
                link_unicode_tables=self.options.link_embedded_unicode_data_tables,
                extra_args=self.options.extra_build_args,
                product=parse_product_query(module_id),
            )
            self._configs[module_id] = config
        self.build_config = config

        log(f"Building {config.product_name}...")
        await self.invoker.build(config)

        if self.is_dev:
            sources = os.path.abspath(os.path.join(package_path, "Sources"))
            if sources not in self.watched_sources_folders:
                self.watched_sources_folders.append(sources)
            if self.coordinator is None or self._coordinated_config != config:
                self.coordinator = create_rebuild_coordinator(
                    self.options.rebuild_policy,
                    lambda: self.invoker.build(config),
                )
                self._coordinated_config = config

        artifact_path = await self.resolver.resolve_artifact_path(config)
        self.wasm_module = "./" + Path(_relative_to_cwd(artifact_path)).as_posix()

        if self.use_wasm_opt:
            with TimedLogger(f"Optimizing {self.wasm_module}"):
                await self.invoker.optimize(self.wasm_module, self.options.wasm_opt_args)

        log_success("Done:", self.wasm_module)

        if self.is_dev:
            folders = ", ".join(_relative_to_cwd(folder) for folder in self.watched_sources_folders)
            log_success("Watching", f"{folders} for changes")

        return f'export {{ default }} from "{self.wasm_module}?init";'

    def is_watched(self, file: str) -> bool:
        return file.endswith(SOURCE_SUFFIX) and any(
            file.startswith(folder + os.sep) for folder in self.watched_sources_folders
        )

    def hot_update(self, file: str, server: ReloadChannel) -> Optional[list[Any]]:
        """Handle a changed file; returns [] when the change is owned by this plugin.

        Must be called from a running event loop. The rebuild runs in the
        background; its failure is reported and never propagates to the host.
        """
        if self.coordinator is None or not self.is_watched(file):
            return None

        if not self.debouncer.should_accept():
            return []

        log_success("", highlight=f"{_relative_to_cwd(file)} changed, rebuilding...")
        task = asyncio.get_running_loop().create_task(self._rebuild_and_reload(self.coordinator, server))
        self._rebuilds.add(task)
        task.add_done_callback(self._rebuilds.discard)
        return []

    async def _rebuild_and_reload(self, coordinator: Coordinator, server: ReloadChannel) -> None:
        try:
            await coordinator.request_rebuild()
        except Exception as e:
            logger.debug(f"Rebuild error: {e}", exc_info=True)
            log_warning("Rebuild failed.")
            return
        server.send({"type": "full-reload"})

    async def wait_for_rebuilds(self) -> None:
        """Wait until every rebuild triggered so far has been handled."""
        while self._rebuilds:
            await asyncio.gather(*list(self._rebuilds))


def swift_wasm(options: Optional[PluginOptions] = None, **kwargs: Any) -> SwiftWasmPlugin:
    """Create the plugin from PluginOptions or keyword options."""
    if options is not None and kwargs:
        raise TypeError("Pass either a PluginOptions instance or keyword options, not both")
    return SwiftWasmPlugin(options or PluginOptions.from_mapping(kwargs))
