"""Type definitions shared by the run coordinator and its collaborators."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from aptest.core.supervisor import SupervisedProcess


class ProcessKind(str, Enum):
    """Which child of the local network a supervised process is."""

    VALIDATOR = "validator"
    FAUCET = "faucet"


class CaptureStream(str, Enum):
    """Output stream of a child process that the supervisor keeps."""

    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Options for a single `aptest run`, resolved once from the command line."""

    skip_compile: bool = False
    skip_publish: bool = False
    no_faucet: bool = False
    start_delay_seconds: int = 14
    interactive: bool = False
    log_node: bool = False
    strict_funding: bool = False
    fail_on_test_failure: bool = False
    ready_timeout: Optional[float] = None

    def __post_init__(self) -> None:
        if self.start_delay_seconds < 0:
            raise ValueError("start_delay_seconds must be zero or positive")
        if self.ready_timeout is not None and self.ready_timeout <= 0:
            raise ValueError("ready_timeout must be a positive number of seconds")


@dataclass(slots=True)
class NetworkHandle:
    """Processes of a running local network plus the validator's startup snapshot."""

    validator: "SupervisedProcess"
    faucet: Optional["SupervisedProcess"]
    snapshot: str

    def __post_init__(self) -> None:
        if self.validator is None:
            raise ValueError("A network handle always holds a validator process")


@dataclass(frozen=True, slots=True)
class DeploymentOutcome:
    """Result of funding and publishing onto the local validator."""

    success: bool
    message: Optional[str] = None

    @classmethod
    def ok(cls) -> "DeploymentOutcome":
        return cls(success=True)

    @classmethod
    def failure(cls, message: str) -> "DeploymentOutcome":
        return cls(success=False, message=message)
