"""Core run machinery: process supervision, network bootstrap, deployment, coordination."""

from aptest.core.cancellation import CancellationSignal
from aptest.core.coordinator import RunCoordinator, RunState
from aptest.core.readiness import ReadinessStatus, extract_credential_path
from aptest.core.supervisor import ProcessSupervisor, SupervisedProcess

__all__ = [
    "CancellationSignal",
    "ProcessSupervisor",
    "ReadinessStatus",
    "RunCoordinator",
    "RunState",
    "SupervisedProcess",
    "extract_credential_path",
]
