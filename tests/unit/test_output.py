"""Tests for timestamped console output."""

import re

from swbuild import output
from swbuild.errors import ExternalToolError

TIMESTAMP = r"\d{2}:\d{2}\.\d{2}"


def test_log_lines_are_timestamped_and_tagged(console_output):
    output.log("Building App...")
    line = console_output.getvalue().strip()
    assert re.match(rf"^{TIMESTAMP} \[swift-wasm\] Building App\.\.\.$", line)


def test_markup_in_messages_is_not_interpreted(console_output):
    output.log("[bold]literal[/bold]")
    assert "[bold]literal[/bold]" in console_output.getvalue()


def test_log_command_quotes_arguments(console_output):
    output.log_command("swift", ["build", "--package-path", "My Package"])
    assert '$ swift build --package-path "My Package"' in console_output.getvalue()


def test_verbose_off_hides_command_and_stream(console_output):
    output.set_verbose(False)
    output.log_command("swift", ["build"])
    output.log_stream_line("Compiling App main.swift\n")
    output.log("kept")
    text = console_output.getvalue()
    assert "swift build" not in text
    assert "Compiling" not in text
    assert "kept" in text


def test_timed_logger_reports_done(console_output):
    with output.TimedLogger("Optimizing App.wasm"):
        pass
    text = console_output.getvalue()
    assert "Optimizing App.wasm..." in text
    assert re.search(r"Done \(\d+\.\d{2}s\)", text)


def test_external_tool_error_message():
    error = ExternalToolError("wasm-opt", ["App.wasm", "-o", "App.wasm", "-Os"], 1)
    assert str(error) == "Command failed (1): wasm-opt App.wasm -o App.wasm -Os"


def test_quote_args_for_display():
    assert output.quote_args_for_display(["build", "--product", "App"]) == "build --product App"
    assert output.quote_args_for_display(["--package-path", "My Package"]) == '--package-path "My Package"'
    assert output.quote_args_for_display([]) == ""
