from unittest.mock import MagicMock

import pytest

from aptest.errors import TerminationError

SNAPSHOT = (
    "Completed generating configuration:\n"
    "\tLog file: \"/tmp/node/validator.log\"\n"
    "\tTest dir: \"/tmp/node\"\n"
    "\tAptos root key path: \"/tmp/node/mint.key\"\n"
    "\tWaypoint: 0:6072b68a942aace147e0655c5704beaa255c84a7829baa4e72a500f1516584c4\n"
    "\tChainId: TESTING\n"
)


class FakeSupervisor:
    """Records every supervisor call in order instead of touching real processes."""

    def __init__(self, snapshot=SNAPSHOT, spawn_errors=None, read_error=None, terminate_errors=None):
        self.snapshot = snapshot
        self.spawn_errors = spawn_errors or {}
        self.read_error = read_error
        self.terminate_errors = terminate_errors or {}
        self.calls = []
        self.spawned = []

    def spawn(self, kind, command, capture):
        self.calls.append(("spawn", kind))
        if kind in self.spawn_errors:
            raise self.spawn_errors[kind]
        proc = MagicMock(kind=kind, command=list(command), capture=capture, pid=4242 + len(self.spawned))
        self.spawned.append(proc)
        return proc

    def read_exact(self, proc, n):
        self.calls.append(("read_exact", proc.kind, n))
        if self.read_error is not None:
            raise self.read_error
        return self.snapshot.encode("utf-8")

    def follow(self, proc):
        self.calls.append(("follow", proc.kind))

    def terminate(self, proc):
        self.calls.append(("terminate", proc.kind))
        if proc.kind in self.terminate_errors:
            raise TerminationError(f"Could not stop {proc.kind.value} process", self.terminate_errors[proc.kind])

    def drain(self, proc):
        self.calls.append(("drain", proc.kind))
        return f"{proc.kind.value} output\n"

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


@pytest.fixture
def fake_supervisor():
    return FakeSupervisor()
