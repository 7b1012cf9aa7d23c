"""
Command-line interface for swbuild.

This module provides the `swbuild` CLI tool for building Swift packages to
WebAssembly outside of a dev-server host.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional

from swbuild import __version__
from swbuild.build.session import SessionContext
from swbuild.config import DEFAULT_WASM_OPT_ARGS, PluginOptions
from swbuild.errors import SwbuildError
from swbuild.output import init_timer, log, log_error, set_verbose
from swbuild.watch import run_build, run_dev_session


@dataclass
class BuildArgs:
    """Arguments shared by the build and watch commands."""

    package_path: Path
    product: Optional[str] = None
    embedded: bool = False
    unicode_tables: bool = True
    wasm_opt: bool = True
    wasm_opt_args: list[str] = field(default_factory=list)
    build_args: list[str] = field(default_factory=list)
    rebuild_policy: str = "concurrent"
    debounce_ms: float = 20
    verbose: bool = False

    def to_options(self) -> PluginOptions:
        return PluginOptions(
            package_path=str(self.package_path),
            extra_build_args=tuple(self.build_args),
            use_embedded_sdk=self.embedded,
            link_embedded_unicode_data_tables=self.unicode_tables,
            use_wasm_opt=self.wasm_opt,
            wasm_opt_args=tuple(self.wasm_opt_args) or DEFAULT_WASM_OPT_ARGS,
            rebuild_policy=self.rebuild_policy,
            debounce_ms=self.debounce_ms,
        )


def _run_guarded(args: BuildArgs, action: str, coro_factory: Callable[[], Awaitable[None]]) -> int:
    try:
        asyncio.run(coro_factory())
        return 0
    except SwbuildError as e:
        log_error(f"{action} failed: {e}")
        return 1
    except KeyboardInterrupt:
        log(f"{action} interrupted")
        return 130  # Standard exit code for SIGINT
    except Exception as e:
        log_error(f"Unexpected error: {type(e).__name__}: {e}")
        if args.verbose:
            import traceback

            print(traceback.format_exc())
        return 1


def build_command(args: BuildArgs) -> int:
    """Build the package in release mode and print the entry module.

    Examples:
        swbuild build                          # Build package in current directory
        swbuild build path/to/pkg --product App
        swbuild build --embedded               # Use the Embedded Swift SDK
        swbuild build --no-wasm-opt            # Skip wasm-opt
    """
    context = SessionContext.from_env()

    async def main() -> None:
        entry = await run_build(args.to_options(), args.product, context)
        print(entry)

    return _run_guarded(args, "Build", main)


def watch_command(args: BuildArgs) -> int:
    """Build in debug mode and rebuild whenever a Swift source changes.

    Examples:
        swbuild watch
        swbuild watch path/to/pkg --rebuild-policy coalesce
    """
    context = SessionContext.from_env()

    async def main() -> None:
        await run_dev_session(args.to_options(), args.product, context)

    return _run_guarded(args, "Watch", main)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "package_path",
        nargs="?",
        type=Path,
        default=Path("."),
        help="Swift package directory (default: current directory)",
    )
    parser.add_argument(
        "-p",
        "--product",
        default=None,
        help="Executable product to build (default: the package's only local executable)",
    )
    parser.add_argument(
        "-X",
        "--build-arg",
        dest="build_args",
        action="append",
        default=[],
        metavar="ARG",
        help="Extra argument for swift build (repeatable, use -X=-Xswiftc for dashed values)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug logging",
    )


def main(argv: Optional[list[str]] = None) -> int:
    """swbuild - Swift to WebAssembly build orchestrator."""
    parser = argparse.ArgumentParser(
        prog="swbuild",
        description="swbuild - Swift to WebAssembly build orchestrator",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"swbuild {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    build_parser = subparsers.add_parser("build", help="Build the package in release mode")
    _add_common_arguments(build_parser)
    build_parser.add_argument(
        "--embedded",
        action="store_true",
        help="Use the Embedded Swift SDK (ignored when SWIFT_SDK_ID is set)",
    )
    build_parser.add_argument(
        "--no-unicode-tables",
        dest="unicode_tables",
        action="store_false",
        help="Do not link Unicode data tables with Embedded Swift",
    )
    build_parser.add_argument(
        "--no-wasm-opt",
        dest="wasm_opt",
        action="store_false",
        help="Skip optimizing the artifact with wasm-opt",
    )
    build_parser.add_argument(
        "--wasm-opt-arg",
        dest="wasm_opt_args",
        action="append",
        default=[],
        metavar="ARG",
        help="Argument for wasm-opt (repeatable, default: -Os --strip-debug)",
    )

    watch_parser = subparsers.add_parser("watch", help="Build in debug mode and rebuild on change")
    _add_common_arguments(watch_parser)
    watch_parser.add_argument(
        "--rebuild-policy",
        choices=["concurrent", "coalesce"],
        default="concurrent",
        help="How overlapping rebuild requests are handled (default: concurrent)",
    )
    watch_parser.add_argument(
        "--debounce-ms",
        type=float,
        default=20,
        help="Minimum time between two accepted file changes (default: 20)",
    )

    parsed = parser.parse_args(argv)

    if not parsed.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    init_timer()
    set_verbose(True)

    args = BuildArgs(
        package_path=parsed.package_path,
        product=parsed.product,
        build_args=parsed.build_args,
        verbose=parsed.verbose,
        embedded=getattr(parsed, "embedded", False),
        unicode_tables=getattr(parsed, "unicode_tables", True),
        wasm_opt=getattr(parsed, "wasm_opt", False),
        wasm_opt_args=getattr(parsed, "wasm_opt_args", []),
        rebuild_policy=getattr(parsed, "rebuild_policy", "concurrent"),
        debounce_ms=getattr(parsed, "debounce_ms", 20),
    )

    if parsed.command == "build":
        return build_command(args)
    return watch_command(args)


if __name__ == "__main__":
    sys.exit(main())
