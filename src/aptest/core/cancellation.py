"""One-shot cancellation used to leave the interactive wait."""
from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

logger = logging.getLogger(__name__)

# Event.wait() without a timeout is not interruptible on every platform, so
# waiting is done in slices.
_WAIT_SLICE = 0.5


class CancellationSignal:
    """Fires at most once. Later calls to :meth:`fire` are no-ops."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.RLock()

    @property
    def fired(self) -> bool:
        return self._event.is_set()

    def fire(self) -> bool:
        """Fire the signal. Returns True only for the call that actually fired it."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until fired, or until ``timeout`` seconds pass. Returns whether it fired."""
        if timeout is not None:
            return self._event.wait(timeout)
        while not self._event.wait(_WAIT_SLICE):
            pass
        return True

    @contextmanager
    def listen(self, signals: Sequence[int] = (signal.SIGINT,)) -> Iterator["CancellationSignal"]:
        """Route the given OS signals to :meth:`fire` while the block runs."""
        previous = {}

        def _handler(signum, frame) -> None:
            if self.fire():
                logger.debug("Received signal %s", signum)

        for signum in signals:
            previous[signum] = signal.signal(signum, _handler)
        try:
            yield self
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)
