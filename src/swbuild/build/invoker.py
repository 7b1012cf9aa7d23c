"""Build Invoker - the boundary to the Swift toolchain and wasm-opt.

Builds and optimizations run in streamed mode. Discovery queries (compiler
tag, executable listing, binary output path, optimizer probe) run in captured
mode and return the trimmed stdout.
"""

import json
import logging
from typing import TYPE_CHECKING, Any, Optional, Sequence

from swbuild.errors import ExternalToolError, ToolOutputError
from swbuild.output import log_command
from swbuild.subprocess_utils import AsyncSubprocessRunner, CommandRunner

from .session import SessionContext

if TYPE_CHECKING:
    from .build_config import BuildConfig

logger = logging.getLogger(__name__)


class BuildInvoker:
    """Runs the external compiler and optimizer through a CommandRunner."""

    def __init__(self, context: SessionContext, runner: Optional[CommandRunner] = None):
        self.context = context
        self.runner: CommandRunner = runner or AsyncSubprocessRunner()

    async def _capture(self, cmd: str, args: Sequence[str]) -> str:
        output = await self.runner.run(cmd, list(args), capture=True)
        return output or ""

    async def build(self, config: "BuildConfig") -> None:
        """Run ``swift build`` with the frozen argument sequence."""
        await self.run_build(config.build_args())

    async def run_build(self, build_args: Sequence[str]) -> None:
        args = ["build", *build_args]
        log_command(self.context.swift_bin, args)
        await self.runner.run(self.context.swift_bin, args)

    async def optimize(self, artifact_path: str, wasm_opt_args: Sequence[str]) -> None:
        """Rewrite the artifact in place with wasm-opt."""
        args = [artifact_path, "-o", artifact_path, *wasm_opt_args]
        log_command(self.context.wasm_opt_bin, args)
        await self.runner.run(self.context.wasm_opt_bin, args)

    async def optimizer_available(self) -> bool:
        """Probe wasm-opt with ``--version``; any failure means unavailable."""
        try:
            await self._capture(self.context.wasm_opt_bin, ["--version"])
        except ExternalToolError as e:
            logger.debug(f"wasm-opt probe failed: {e}")
            return False
        return True

    async def _capture_json(self, cmd: str, args: Sequence[str]) -> Any:
        output = await self._capture(cmd, args)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise ToolOutputError(cmd, args, f"invalid JSON ({e})") from e

    async def compiler_tag(self) -> Optional[str]:
        """Return ``swiftCompilerTag`` from ``swift -print-target-info``, if any.

        Raises:
            ToolOutputError: If the output is not a JSON object
        """
        args = ["-print-target-info"]
        target_info = await self._capture_json(self.context.swift_bin, args)
        if not isinstance(target_info, dict):
            raise ToolOutputError(self.context.swift_bin, args, "expected a JSON object")
        tag = target_info.get("swiftCompilerTag")
        return tag if isinstance(tag, str) and tag else None

    async def list_executables(self, package_path: str) -> list[dict[str, Any]]:
        """Return every executable target visible to the package, dependencies included.

        Raises:
            ToolOutputError: If the output is not a JSON array of objects
        """
        args = ["package", "show-executables", "--package-path", package_path, "--format", "json"]
        executables = await self._capture_json(self.context.swift_bin, args)
        if not isinstance(executables, list) or not all(isinstance(e, dict) for e in executables):
            raise ToolOutputError(self.context.swift_bin, args, "expected a JSON array of objects")
        return executables

    async def bin_path(self, build_args: Sequence[str]) -> str:
        """Return the toolchain's binary output directory for these build arguments."""
        return await self._capture(self.context.swift_bin, ["build", "--show-bin-path", *build_args])
