"""Spawning, reading, and stopping the validator and faucet child processes."""
from __future__ import annotations

import logging
import subprocess
import threading
from dataclasses import dataclass, field
from typing import IO, List, Optional, Sequence

from aptest.errors import PrematureCloseError, SpawnError, TerminationError
from aptest.types import CaptureStream, ProcessKind

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


@dataclass
class SupervisedProcess:
    """A running child together with the output captured from one of its streams."""

    kind: ProcessKind
    command: List[str]
    process: subprocess.Popen
    capture: CaptureStream

    chunks: List[bytes] = field(init=False, default_factory=list)
    reader: Optional[threading.Thread] = field(init=False, default=None)
    exit_code: Optional[int] = field(init=False, default=None)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def stream(self) -> Optional[IO[bytes]]:
        if self.capture is CaptureStream.STDOUT:
            return self.process.stdout
        return self.process.stderr

    @property
    def drained(self) -> bool:
        return self.exit_code is not None


class ProcessSupervisor:
    """Owns the child processes of a run."""

    def __init__(self, shutdown_grace_seconds: float = 5.0) -> None:
        self.shutdown_grace_seconds = shutdown_grace_seconds

    def spawn(
        self,
        kind: ProcessKind,
        command: Sequence[str],
        capture: CaptureStream = CaptureStream.STDOUT,
    ) -> SupervisedProcess:
        """
        Start ``command`` with the chosen stream piped back to us.

        Raises:
            SpawnError: If the executable is missing or cannot be run.
        """
        command = [str(part) for part in command]
        logger.debug("Spawning %s: %s", kind.value, " ".join(command))
        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE if capture is CaptureStream.STDOUT else None,
                stderr=subprocess.PIPE if capture is CaptureStream.STDERR else None,
            )
        except OSError as e:
            raise SpawnError(command, e) from e

        logger.debug("%s started with pid %s", kind.value, process.pid)
        return SupervisedProcess(kind=kind, command=command, process=process, capture=capture)

    def read_exact(self, proc: SupervisedProcess, n: int) -> bytes:
        """
        Block until exactly ``n`` bytes have been read from the captured stream.

        Must be called before :meth:`follow`, which takes over the stream.

        Raises:
            PrematureCloseError: If the stream reaches EOF first.
        """
        if proc.reader is not None:
            raise RuntimeError(f"{proc.kind.value} output is already being followed")

        stream = proc.stream
        buffer = bytearray()
        while len(buffer) < n:
            chunk = stream.read(n - len(buffer))
            if not chunk:
                raise PrematureCloseError(expected=n, received=len(buffer))
            buffer.extend(chunk)
        return bytes(buffer)

    def follow(self, proc: SupervisedProcess) -> None:
        """Keep reading the captured stream in the background so the child never blocks on a full pipe."""
        if proc.reader is not None:
            return

        stream = proc.stream

        def _pump() -> None:
            for chunk in iter(lambda: stream.read1(CHUNK_SIZE), b""):
                proc.chunks.append(chunk)

        proc.reader = threading.Thread(
            target=_pump,
            name=f"aptest-{proc.kind.value}-reader",
            daemon=True,
        )
        proc.reader.start()

    def terminate(self, proc: SupervisedProcess) -> None:
        """
        Ask the child to exit. A child that has already exited is left alone.

        Raises:
            TerminationError: If the child cannot be signalled.
        """
        if proc.process.poll() is not None:
            logger.debug("%s already exited with code %s", proc.kind.value, proc.process.returncode)
            return

        try:
            proc.process.terminate()
        except ProcessLookupError:
            return
        except OSError as e:
            raise TerminationError(f"Could not stop {proc.kind.value} process", str(e)) from e

    def drain(self, proc: SupervisedProcess) -> str:
        """
        Wait for the child to exit and return everything captured on its stream.

        A child still running after the grace period is killed.
        """
        if proc.drained:
            return self._text(proc)

        if proc.reader is None:
            try:
                stdout, stderr = proc.process.communicate(timeout=self.shutdown_grace_seconds)
            except subprocess.TimeoutExpired:
                self._kill(proc)
                stdout, stderr = proc.process.communicate()
            data = stdout if proc.capture is CaptureStream.STDOUT else stderr
            if data:
                proc.chunks.append(data)
        else:
            try:
                proc.process.wait(timeout=self.shutdown_grace_seconds)
            except subprocess.TimeoutExpired:
                self._kill(proc)
                proc.process.wait()
            # A grandchild holding the pipe open keeps the reader alive past our child's exit.
            proc.reader.join(timeout=self.shutdown_grace_seconds)
            if proc.reader.is_alive():
                logger.warning("%s output is still open after exit, keeping what was read", proc.kind.value)
            elif proc.stream is not None:
                proc.stream.close()

        proc.exit_code = proc.process.returncode
        logger.debug("%s exited with code %s", proc.kind.value, proc.exit_code)
        return self._text(proc)

    def _kill(self, proc: SupervisedProcess) -> None:
        logger.warning(
            "%s did not exit within %ss, killing it",
            proc.kind.value,
            self.shutdown_grace_seconds,
        )
        try:
            proc.process.kill()
        except ProcessLookupError:
            pass

    @staticmethod
    def _text(proc: SupervisedProcess) -> str:
        return b"".join(proc.chunks).decode("utf-8", errors="replace")
