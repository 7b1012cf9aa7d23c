"""Pytest configuration and fixtures for swbuild tests.

FakeRunner stands in for the subprocess boundary so no test spawns the Swift
toolchain. Every invocation is recorded as (cmd, args, capture) and routed by
its leading arguments to a canned output or a failure exit code.
"""

import io
import json
import os
import sys
from typing import Optional, Sequence

import pytest

from swbuild import output
from swbuild.build.session import SessionContext
from swbuild.errors import ExternalToolError

COMPILER_TAG = "swift-6.0.3-RELEASE"


def route(cmd: str, args: Sequence[str]) -> str:
    """Name the toolchain query or action an invocation corresponds to."""
    args = list(args)
    if args[:2] == ["build", "--show-bin-path"]:
        return "bin-path"
    if args[:1] == ["build"]:
        return "build"
    if args[:2] == ["package", "show-executables"]:
        return "show-executables"
    if args[:1] == ["-print-target-info"]:
        return "target-info"
    if args[:1] == ["--version"]:
        return "wasm-opt-version"
    return "wasm-opt"


class FakeRunner:
    """CommandRunner double with canned outputs per route."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, list[str], bool]] = []
        self.outputs: dict[str, str] = {
            "target-info": json.dumps({"swiftCompilerTag": COMPILER_TAG}),
            "show-executables": json.dumps([{"name": "App"}]),
            "bin-path": os.path.join(os.getcwd(), ".build", "wasm32-unknown-wasip1", "release"),
            "wasm-opt-version": "wasm-opt version 117",
        }
        self.failures: dict[str, int] = {}

    async def run(self, cmd: str, args: Sequence[str], capture: bool = False) -> Optional[str]:
        args = list(args)
        self.calls.append((cmd, args, capture))
        name = route(cmd, args)
        if name in self.failures:
            raise ExternalToolError(cmd, args, self.failures[name])
        if capture:
            return self.outputs.get(name, "")
        return None

    def routes(self) -> list[str]:
        return [route(cmd, args) for cmd, args, _ in self.calls]

    def count(self, name: str) -> int:
        return self.routes().count(name)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def session_context() -> SessionContext:
    return SessionContext(swift_bin="swift", wasm_opt_bin="wasm-opt", sdk_id_override=None)


@pytest.fixture(autouse=True)
def console_output():
    """Capture swbuild's console output for the duration of a test."""
    stream = io.StringIO()
    output.set_output_stream(stream)
    output.set_verbose(True)
    yield stream
    output.set_output_stream(sys.stdout)


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are always restored after each test."""
    yield

    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__
