"""Exception hierarchy for aptest.

Every fatal condition in a run is raised as an ``AptestError`` and handled in
one place, ``RunCoordinator.run``. ``context`` is the short line shown to the
user; ``detail`` is the underlying cause.
"""
from __future__ import annotations

from typing import Optional, Sequence


class AptestError(RuntimeError):
    """Base class for every error aptest reports to the user."""

    def __init__(self, context: str, detail: Optional[str] = None) -> None:
        super().__init__(context if not detail else f"{context}: {detail}")
        self.context = context
        self.detail = detail


class SpawnError(AptestError):
    """Raised when a child process cannot be launched."""

    def __init__(self, command: Sequence[str], cause: OSError) -> None:
        executable = command[0] if command else "<empty command>"
        super().__init__(f"Could not launch {executable}. Is it installed?", str(cause))
        self.command = list(command)


class PrematureCloseError(AptestError):
    """Raised when a child closes its output before the readiness snapshot is complete."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            "Validator output closed before the startup snapshot was read",
            f"expected {expected} bytes, received {received}",
        )
        self.expected = expected
        self.received = received


class NotFoundError(AptestError):
    """Raised when the credential marker is not present in the startup snapshot."""


class TerminationError(AptestError):
    """Raised when a child process cannot be signalled."""


class ReadinessError(AptestError):
    """Raised when the validator does not answer its liveness probe in time."""


class CompileError(AptestError):
    """Raised when ``aptos move compile`` fails."""


class DeploymentError(AptestError):
    """Raised when publishing to the local validator fails."""


class ConfigError(AptestError):
    """Raised for missing or malformed settings and credential files."""


class TestRunnerError(AptestError):
    """Raised when the end-to-end test runner cannot be waited on."""

    __test__ = False
