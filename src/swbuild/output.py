"""
Centralized user-facing output for swbuild.

All output is prefixed with the elapsed time since launch in MM:SS.cc format
and the "[swift-wasm]" tag, so a dev session's rebuild log can be read as a
timeline.

Example output:
    00:00.12 [swift-wasm] Building App...
    00:00.12 [swift-wasm] $ swift build --package-path . --swift-sdk ...
    00:04.80 [swift-wasm] Done: ./.build/wasm32-unknown-wasi/debug/App.wasm
    00:09.31 [swift-wasm] Sources/App/main.swift changed, rebuilding...

Usage:
    from swbuild.output import log, log_warning, log_command

    log("Building App...")
    log_command("swift", ["build", "--product", "App"])
"""

import sys
import time
from types import TracebackType
from typing import Optional, Sequence, TextIO

from rich.console import Console
from rich.markup import escape

PREFIX = "[swift-wasm]"

# Global state for the timer
_start_time: Optional[float] = None
_verbose: bool = True
_console: Console = Console(file=sys.stdout, highlight=False, emoji=False, soft_wrap=True)


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Initialize the program timer.

    Call this at program startup to set the reference time for all timestamps.
    If not called explicitly, it will be called automatically on first log.

    Args:
        output_stream: Optional output stream (defaults to sys.stdout)
    """
    global _start_time
    _start_time = time.time()
    if output_stream is not None:
        set_output_stream(output_stream)


def set_output_stream(output_stream: TextIO) -> None:
    """Redirect all output to another stream (no colour codes unless it is a terminal)."""
    global _console
    _console = Console(file=output_stream, highlight=False, emoji=False, soft_wrap=True)


def set_verbose(verbose: bool) -> None:
    """
    Set verbose mode for logging.

    Args:
        verbose: If True, subprocess output and command lines are echoed.
    """
    global _verbose
    _verbose = verbose


def get_elapsed() -> float:
    """Get elapsed time since timer initialization, in seconds."""
    global _start_time
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore


def format_timestamp() -> str:
    """Format the current elapsed time as MM:SS.cc."""
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def quote_args_for_display(args: Sequence[str]) -> str:
    """Join arguments for display, double-quoting those that contain a space."""
    return " ".join(f'"{arg}"' if " " in arg else arg for arg in args)


def _print(markup: str) -> None:
    """Print one line of rich markup behind the timestamp and tag."""
    _console.print(f"[dim]{format_timestamp()}[/dim] [magenta]{escape(PREFIX)}[/magenta] {markup}")


def log(message: str, verbose_only: bool = False) -> None:
    """
    Log a message with timestamp.

    Args:
        message: Message to log
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(escape(message))


def log_success(message: str, highlight: str = "") -> None:
    """Log a message with an optional trailing part rendered in green."""
    parts = [escape(message)] if message else []
    if highlight:
        parts.append(f"[green]{escape(highlight)}[/green]")
    _print(" ".join(parts))


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """
    Log a detail message (indented).

    Args:
        message: Detail message
        indent: Number of spaces to indent (default 6)
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{escape(message)}")


def log_warning(message: str) -> None:
    """Log a warning in yellow."""
    _print(f"[yellow]{escape(message)}[/yellow]")


def log_error(message: str) -> None:
    """Log an error in bold red."""
    _print(f"[bold red]{escape(message)}[/bold red]")


def log_command(command: str, args: Sequence[str]) -> None:
    """Echo a command line, shell style, before it is run."""
    if not _verbose:
        return
    _print(f"[bold bright_black]$ {escape(command)} {escape(quote_args_for_display(args))}[/bold bright_black]")


def log_stream_line(line: str, stderr: bool = False) -> None:
    """Echo one line of streamed subprocess output (stderr in yellow)."""
    if not _verbose:
        return
    style = "yellow" if stderr else "bright_black"
    _console.print(f"[{style}]{escape(line.rstrip())}[/{style}]")


class TimedLogger:
    """
    Context manager for logging with elapsed time tracking.

    Usage:
        with TimedLogger("Optimizing App.wasm"):
            await invoker.optimize(...)
        # Logs "Done (1.23s)" when the block exits without an error
    """

    def __init__(self, operation: str, verbose_only: bool = False):
        self.operation = operation
        self.verbose_only = verbose_only
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        log(f"{self.operation}...", self.verbose_only)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_val, exc_tb  # Unused
        elapsed = time.time() - self.start_time
        if exc_type is None:
            log_detail(f"Done ({elapsed:.2f}s)", verbose_only=self.verbose_only)
        return None
