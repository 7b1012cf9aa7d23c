"""Exception types raised by swbuild.

Configuration and target-resolution errors abort an artifact load.
ExternalToolError is raised for any non-zero exit of the compiler or the
optimizer, ToolOutputError for discovery output that cannot be
parsed. InternalConsistencyWarning is only ever reported, never raised.
"""

from typing import Optional, Sequence

from swbuild.output import quote_args_for_display


class SwbuildError(Exception):
    """Base class for all swbuild errors."""


class ConfigurationError(SwbuildError):
    """The toolchain could not be interrogated for a usable SDK identifier."""


class AmbiguousTargetError(SwbuildError):
    """Zero or several local executable targets and no explicit product."""

    def __init__(self, message: str, candidates: Sequence[str] = ()):
        super().__init__(message)
        self.candidates = tuple(candidates)


class ExternalToolError(SwbuildError):
    """An external command exited with a non-zero status.

    Attributes:
        command: Executable that was invoked
        arguments: Arguments passed to the executable
        exit_code: Process exit status, or None if the process never started
    """

    def __init__(self, command: str, args: Sequence[str], exit_code: Optional[int], detail: str = ""):
        self.command = command
        self.arguments = list(args)
        self.exit_code = exit_code
        self.detail = detail
        super().__init__(self._format())

    def _format(self) -> str:
        message = f"Command failed ({self.exit_code}): {self.command} {quote_args_for_display(self.arguments)}".rstrip()
        if self.detail:
            message += f": {self.detail}"
        return message


class ToolOutputError(SwbuildError):
    """An external command succeeded but printed output that could not be parsed."""

    def __init__(self, command: str, args: Sequence[str], problem: str):
        self.command = command
        self.arguments = list(args)
        super().__init__(f"Unexpected output from {command} {quote_args_for_display(self.arguments)}: {problem}")


class InternalConsistencyWarning(UserWarning):
    """Rebuild bookkeeping reached a state its own rules should prevent."""
