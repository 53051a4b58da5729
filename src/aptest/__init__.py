"""Local Aptos test-network orchestrator."""

from aptest.core.coordinator import RunCoordinator, RunState
from aptest.errors import AptestError
from aptest.types import DeploymentOutcome, NetworkHandle, RunConfig

__all__ = [
    "AptestError",
    "DeploymentOutcome",
    "NetworkHandle",
    "RunConfig",
    "RunCoordinator",
    "RunState",
]
