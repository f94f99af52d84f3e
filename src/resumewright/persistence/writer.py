"""Background persistence writer.

Mutations hand the writer a fully encoded snapshot of the map. Only the
most recent pending snapshot is kept, so a burst of playback ticks costs
one backend write rather than one per tick. Writes happen on a daemon
thread and never block the caller.
"""

import logging
import threading
from typing import Optional

from ..exceptions import PersistenceError
from .backends import KeyValueBackend

logger = logging.getLogger(__name__)


class BackgroundWriter:
    """Coalescing single-key writer running on a daemon thread."""

    def __init__(
        self,
        backend: KeyValueBackend,
        key: str,
        name: str = "resumewright-writer",
    ):
        self.backend = backend
        self.key = key

        self._condition = threading.Condition()
        self._pending: Optional[bytes] = None
        self._submitted = 0
        self._written = 0
        self._closed = False
        self.failures = 0
        self.writes = 0

        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def submit(self, blob: bytes) -> None:
        """Queue a snapshot, replacing any snapshot not yet written."""
        with self._condition:
            if self._closed:
                logger.warning(f"Writer for {self.key} is closed; dropping snapshot")
                return
            self._pending = blob
            self._submitted += 1
            self._condition.notify_all()

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until every submitted snapshot has been handled.

        Returns:
            True if the writer caught up before the timeout.
        """
        with self._condition:
            target = self._submitted
            return self._condition.wait_for(lambda: self._written >= target, timeout=timeout)

    def close(self, timeout: Optional[float] = None) -> bool:
        """Flush pending work and stop the thread."""
        flushed = self.flush(timeout)
        with self._condition:
            self._closed = True
            self._condition.notify_all()
        self._thread.join(timeout=timeout)
        return flushed

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        while True:
            with self._condition:
                self._condition.wait_for(lambda: self._pending is not None or self._closed)
                if self._pending is None:
                    return
                blob = self._pending
                self._pending = None
                generation = self._submitted

            self._write(blob)

            with self._condition:
                self._written = generation
                self._condition.notify_all()

    def _write(self, blob: bytes) -> None:
        try:
            self.backend.set(self.key, blob)
            self.writes += 1
        except PersistenceError as e:
            self.failures += 1
            logger.error(f"Failed to persist progress under {self.key}: {e}")
        except Exception as e:
            self.failures += 1
            logger.error(f"Unexpected error persisting progress under {self.key}: {e}", exc_info=True)
