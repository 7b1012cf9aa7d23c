"""swbuild - Swift to WebAssembly build orchestrator with rebuild-on-change.

Public API:
    SwiftWasmPlugin: Dev-server plugin serving the built artifact as a virtual module
    swift_wasm: Factory creating the plugin from keyword options
    PluginOptions: Plugin configuration
"""

__version__ = "0.1.0"

from swbuild.config import PluginOptions
from swbuild.plugin import SwiftWasmPlugin, swift_wasm

__all__ = [
    "PluginOptions",
    "SwiftWasmPlugin",
    "__version__",
    "swift_wasm",
]
