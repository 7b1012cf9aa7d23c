"""Tests for subprocess_utils module."""

import asyncio
import json
import sys
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from swbuild.errors import ExternalToolError
from swbuild.subprocess_utils import (
    AsyncSubprocessRunner,
    get_subprocess_creation_flags,
    pump_lines,
    safe_create_subprocess_exec,
)

CREATE_NO_WINDOW = 0x08000000


def _run(coro):
    """Helper to run an async coroutine in a new event loop."""
    return asyncio.run(coro)


def test_get_subprocess_creation_flags_windows():
    """Test that Windows returns CREATE_NO_WINDOW flag."""
    with patch("sys.platform", "win32"), patch("swbuild.subprocess_utils.subprocess") as mock_subprocess:
        mock_subprocess.CREATE_NO_WINDOW = CREATE_NO_WINDOW
        assert get_subprocess_creation_flags() == CREATE_NO_WINDOW


def test_get_subprocess_creation_flags_linux():
    """Test that Linux returns 0."""
    with patch("sys.platform", "linux"):
        assert get_subprocess_creation_flags() == 0


def test_safe_create_subprocess_exec_no_flags_on_linux():
    """Linux launches get no creationflags but always a detached stdin."""
    mock_exec = AsyncMock(return_value=MagicMock())
    with patch("sys.platform", "linux"), patch("asyncio.create_subprocess_exec", mock_exec):
        _run(safe_create_subprocess_exec("swift", "build"))

    args, kwargs = mock_exec.call_args
    assert args == ("swift", "build")
    assert "creationflags" not in kwargs
    assert kwargs["stdin"] == asyncio.subprocess.DEVNULL


def test_safe_create_subprocess_exec_merges_custom_creationflags():
    """Custom creationflags are OR'd with the platform defaults."""
    mock_exec = AsyncMock(return_value=MagicMock())
    custom_flag = 0x00000200
    with patch("sys.platform", "win32"), patch("swbuild.subprocess_utils.subprocess") as mock_subprocess, patch("asyncio.create_subprocess_exec", mock_exec):
        mock_subprocess.CREATE_NO_WINDOW = CREATE_NO_WINDOW
        _run(safe_create_subprocess_exec("swift", creationflags=custom_flag))

    assert mock_exec.call_args[1]["creationflags"] == custom_flag | CREATE_NO_WINDOW


def test_safe_create_subprocess_exec_keeps_explicit_stdin():
    mock_exec = AsyncMock(return_value=MagicMock())
    with patch("asyncio.create_subprocess_exec", mock_exec):
        _run(safe_create_subprocess_exec("swift", stdin=asyncio.subprocess.PIPE))

    assert mock_exec.call_args[1]["stdin"] == asyncio.subprocess.PIPE


class TestAsyncSubprocessRunner:
    """Runs the current interpreter as a stand-in external tool."""

    def test_capture_returns_stripped_stdout(self):
        runner = AsyncSubprocessRunner()
        output = _run(runner.run(sys.executable, ["-c", "print('  hello  ')"], capture=True))
        assert output == "hello"

    def test_streamed_returns_none_and_echoes(self, console_output):
        runner = AsyncSubprocessRunner()
        code = "import sys; print('to stdout'); print('to stderr', file=sys.stderr)"
        assert _run(runner.run(sys.executable, ["-c", code])) is None
        text = console_output.getvalue()
        assert "to stdout" in text
        assert "to stderr" in text

    def test_non_zero_exit_fails_even_with_output(self):
        runner = AsyncSubprocessRunner()
        code = "import sys; print('partial'); sys.exit(3)"
        with pytest.raises(ExternalToolError) as exc_info:
            _run(runner.run(sys.executable, ["-c", code], capture=True))

        error = exc_info.value
        assert error.command == sys.executable
        assert error.arguments == ["-c", code]
        assert error.exit_code == 3
        assert "Command failed (3)" in str(error)

    def test_missing_binary_is_external_tool_error(self):
        runner = AsyncSubprocessRunner()
        with pytest.raises(ExternalToolError) as exc_info:
            _run(runner.run("swbuild-no-such-binary", ["--version"], capture=True))
        assert exc_info.value.exit_code is None

    def test_custom_environment_is_passed(self):
        runner = AsyncSubprocessRunner(env={"SWBUILD_TEST_VALUE": "42", "PATH": ""})
        code = "import os; print(os.environ['SWBUILD_TEST_VALUE'])"
        assert _run(runner.run(sys.executable, ["-c", code], capture=True)) == "42"

    def test_streamed_line_longer_than_reader_limit(self, console_output):
        runner = AsyncSubprocessRunner()
        assert _run(runner.run(sys.executable, ["-c", "print('x' * 200000)"])) is None
        assert "x" * 200000 in console_output.getvalue()

    def test_captured_single_line_json_longer_than_reader_limit(self):
        runner = AsyncSubprocessRunner()
        code = "import json; print(json.dumps([{'name': 'Target%d' % i} for i in range(5000)]))"
        output = _run(runner.run(sys.executable, ["-c", code], capture=True))
        entries = json.loads(output)
        assert len(entries) == 5000
        assert entries[-1] == {"name": "Target4999"}

    def test_output_read_failure_kills_child_and_raises(self):
        runner = AsyncSubprocessRunner()

        async def failing_pump(stream, on_line):
            raise ValueError("decoder exploded")

        start = time.monotonic()
        with patch("swbuild.subprocess_utils.pump_lines", failing_pump):
            with pytest.raises(ExternalToolError) as exc_info:
                _run(runner.run(sys.executable, ["-c", "import time; time.sleep(30)"]))

        assert "reading output failed: decoder exploded" in str(exc_info.value)
        assert time.monotonic() - start < 20


def test_pump_lines_splits_chunks_into_lines():
    async def scenario():
        reader = asyncio.StreamReader()
        reader.feed_data(b"first\nsec")
        reader.feed_data(b"ond\n" + b"y" * 100000 + b"\nlast")
        reader.feed_eof()
        lines = []
        await pump_lines(reader, lines.append)
        return lines

    lines = _run(scenario())
    assert lines == ["first\n", "second\n", "y" * 100000 + "\n", "last"]
