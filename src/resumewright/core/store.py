"""Watch-progress store: admission policy, queries and persistence.

The store owns the mapping from content id to ``ProgressRecord``. A
record exists only while its progress sits strictly inside the admission
band (5% to 95% by default). Every mutation rewrites the whole map to the
backend under a single key.

Construct one store at the application's composition root and pass it to
players and list views:

    >>> backend = FileBackend("~/.resumewright")
    >>> with ProgressStore(backend) as store:
    ...     store.update_progress("vidA", 600, 3600, "Sermon 1")
    ...     store.get_continue_watching_list()
"""

import logging
import threading
import weakref
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..config import StoreConfig
from ..exceptions import CorruptStateError, InvalidProgressError, PersistenceError
from ..persistence.backends import KeyValueBackend
from ..persistence.codec import decode_legacy_progress, encode_progress, try_decode_progress
from ..persistence.writer import BackgroundWriter
from ..utils.formatting import format_progress_text
from . import insights
from .events import ChangeNotifier, EventCallback, StoreEvent, StoreEventType
from .records import ProgressRecord, compute_percentage, validate_position

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _close_writer(writer: BackgroundWriter, timeout: float) -> None:
    if not writer.close(timeout):
        logger.warning("Timed out flushing progress on close; last update may be lost")


class ProgressStore:
    """Thread-safe store of in-progress content.

    Mutations run compute, update and snapshot inside one lock, so two
    ticks for the same item cannot interleave. Reads copy under the same
    lock and never observe a half-applied update. Persistence is handed
    to a background writer unless ``write_mode`` is ``"sync"``.

    No public method raises for bad telemetry or backend failures; both
    are logged and the in-memory state stays authoritative.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        config: Optional[StoreConfig] = None,
        clock: Optional[Clock] = None,
        notifier: Optional[ChangeNotifier] = None,
    ):
        self.backend = backend
        self.config = config or StoreConfig()
        self.notifier = notifier or ChangeNotifier()
        self._clock = clock or utc_now

        self._lock = threading.RLock()
        self._records: Dict[str, ProgressRecord] = {}
        self._closed = False

        self._writer: Optional[BackgroundWriter] = None
        self._finalizer: Optional[weakref.finalize] = None
        if self.config.write_mode == "background":
            self._writer = BackgroundWriter(backend, self.config.storage_key)
            # Runs at interpreter exit or when an unclosed store is collected.
            self._finalizer = weakref.finalize(
                self, _close_writer, self._writer, self.config.flush_timeout
            )

        loaded = self._load()
        self.notifier.emit(StoreEvent(StoreEventType.LOADED, count=loaded))

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self) -> int:
        """Restore persisted state and fold in legacy data."""
        key = self.config.storage_key
        try:
            blob = self.backend.get(key)
        except PersistenceError as e:
            logger.error(f"Could not read persisted progress, starting empty: {e}")
            blob = None

        records = try_decode_progress(blob)
        if records is None and blob is not None:
            logger.error(f"Persisted progress under {key} is unreadable, starting empty")
        records = records or {}
        self._records = self._admit_loaded(records, key)
        dropped = len(records) - len(self._records)

        migrated = self._migrate_legacy()
        if migrated or dropped:
            with self._lock:
                self._persist_locked()

        logger.info(f"Loaded {len(self._records)} in-progress item(s) from {key}")
        return len(self._records)

    def _migrate_legacy(self) -> int:
        """Merge records kept under older keys, then drop those keys."""
        migrated = 0
        for legacy_key in self.config.legacy_keys:
            try:
                blob = self.backend.get(legacy_key)
            except PersistenceError as e:
                logger.warning(f"Could not read legacy key {legacy_key}: {e}")
                continue
            if blob is None:
                continue

            try:
                legacy, skipped = decode_legacy_progress(blob)
            except CorruptStateError as e:
                logger.warning(f"Discarding unreadable legacy progress under {legacy_key}: {e}")
                legacy, skipped = {}, 0

            for content_id, record in self._admit_loaded(legacy, legacy_key).items():
                if content_id not in self._records:
                    self._records[content_id] = record
                    migrated += 1
            if skipped:
                logger.warning(f"Skipped {skipped} unreadable entries under {legacy_key}")

            try:
                self.backend.delete(legacy_key)
            except PersistenceError as e:
                logger.warning(f"Could not remove legacy key {legacy_key}: {e}")

        if migrated:
            logger.info(f"Migrated {migrated} record(s) from legacy storage")
        return migrated

    def _admit_loaded(self, records: Dict[str, ProgressRecord], source: str) -> Dict[str, ProgressRecord]:
        """Keep only stored records that satisfy the live admission rules."""
        admitted: Dict[str, ProgressRecord] = {}
        for key, record in records.items():
            if key != record.content_id:
                logger.warning(
                    f"Dropping record under {key!r} in {source}: content id is {record.content_id!r}"
                )
                continue
            percentage = record.progress_percentage
            if not self.config.min_percent < percentage < self.config.max_percent:
                logger.warning(
                    f"Dropping {key!r} from {source}: {percentage:.1f}% is outside the tracking band"
                )
                continue
            admitted[key] = record
        return admitted

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_progress(
        self,
        content_id: str,
        current_time: float,
        duration: float,
        title: str,
        show_name: Optional[str] = None,
    ) -> None:
        """Apply one playback tick.

        Inside the admission band the record is created or overwritten.
        At or above the completion threshold any record is removed. At or
        below the floor nothing changes unless ``clear_on_rewind`` is set.
        Invalid input is logged and ignored.
        """
        try:
            if not isinstance(content_id, str) or not content_id:
                raise InvalidProgressError("content_id must be a non-empty string", field_name="content_id")
            position = validate_position(current_time, "current_time", content_id)
            total = validate_position(duration, "duration", content_id)
        except InvalidProgressError as e:
            logger.warning(f"Ignoring progress update: {e}")
            return

        percentage = compute_percentage(position, total)
        event: Optional[StoreEvent] = None

        with self._lock:
            if self.config.min_percent < percentage < self.config.max_percent:
                record = ProgressRecord(
                    content_id=content_id,
                    title=str(title) if title is not None else "",
                    current_time=position,
                    duration=total,
                    last_watched=self._now(),
                    show_name=str(show_name) if show_name is not None else None,
                )
                self._records[content_id] = record
                event = StoreEvent(StoreEventType.UPDATED, content_id=content_id, record=record)
            elif percentage >= self.config.max_percent:
                if self._records.pop(content_id, None) is not None:
                    logger.info(f"Completed {content_id} at {percentage:.1f}%")
                    event = StoreEvent(StoreEventType.COMPLETED, content_id=content_id, count=1)
            elif self.config.clear_on_rewind and content_id in self._records:
                del self._records[content_id]
                event = StoreEvent(StoreEventType.REMOVED, content_id=content_id, count=1)

            self._persist_locked()

        if event is not None:
            self.notifier.emit(event)

    def remove_progress(self, content_id: str) -> None:
        """Forget an item. Absent ids are a no-op, but still persist."""
        with self._lock:
            removed = self._records.pop(content_id, None)
            self._persist_locked()
        if removed is not None:
            self.notifier.emit(StoreEvent(StoreEventType.REMOVED, content_id=content_id, count=1))

    def start_over(self, content_id: str) -> Optional[ProgressRecord]:
        """Atomically remove and return a record ("Start Over" choice)."""
        with self._lock:
            removed = self._records.pop(content_id, None)
            self._persist_locked()
        if removed is not None:
            self.notifier.emit(StoreEvent(StoreEventType.REMOVED, content_id=content_id, count=1))
        return removed

    def clear_all(self) -> None:
        """Empty the store and persist an empty map under the same key."""
        with self._lock:
            count = len(self._records)
            self._records.clear()
            self._persist_locked()
        logger.info(f"Cleared {count} in-progress item(s)")
        self.notifier.emit(StoreEvent(StoreEventType.CLEARED, count=count))

    def clear_progress_for_show(self, show_name: str) -> int:
        """Remove every record of a show (case-insensitive).

        Returns:
            Number of records removed.
        """
        wanted = show_name.lower()
        with self._lock:
            doomed = [
                content_id
                for content_id, record in self._records.items()
                if record.show_name is not None and record.show_name.lower() == wanted
            ]
            for content_id in doomed:
                del self._records[content_id]
            self._persist_locked()
        if doomed:
            self.notifier.emit(StoreEvent(StoreEventType.REMOVED, count=len(doomed)))
        return len(doomed)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_progress(self, content_id: str) -> Optional[ProgressRecord]:
        with self._lock:
            return self._records.get(content_id)

    def has_progress(self, content_id: str) -> bool:
        with self._lock:
            return content_id in self._records

    def get_continue_watching_list(self, limit: Optional[int] = None) -> List[ProgressRecord]:
        """Most recently watched first, at most ``limit`` records.

        Records with equal timestamps keep insertion order.
        """
        if limit is None:
            limit = self.config.continue_watching_limit
        if limit <= 0:
            return []
        with self._lock:
            records = list(self._records.values())
        return insights.by_recency(records)[:limit]

    def get_continue_watching_for_show(self, show_name: str) -> List[ProgressRecord]:
        wanted = show_name.lower()
        with self._lock:
            records = [
                r for r in self._records.values() if r.show_name is not None and r.show_name.lower() == wanted
            ]
        return insights.by_recency(records)

    def get_continue_watching_by_show(self, limit: Optional[int] = None) -> Dict[str, List[ProgressRecord]]:
        """The continue-watching list grouped by show name."""
        return insights.group_by_show(self.get_continue_watching_list(limit))

    def get_progress_text(self, content_id: str) -> Optional[str]:
        record = self.get_progress(content_id)
        if record is None:
            return None
        return format_progress_text(record)

    def get_watch_statistics(self) -> Dict[str, Any]:
        return insights.watch_statistics(self.snapshot().values())

    def snapshot(self) -> Dict[str, ProgressRecord]:
        """Consistent copy of the whole map."""
        with self._lock:
            return dict(self._records)

    def subscribe(self, callback: EventCallback, event_type: Optional[StoreEventType] = None) -> None:
        """Register a change observer (all events when ``event_type`` is None)."""
        self.notifier.subscribe(event_type, callback)

    def unsubscribe(self, callback: EventCallback, event_type: Optional[StoreEventType] = None) -> bool:
        return self.notifier.unsubscribe(event_type, callback)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, content_id: object) -> bool:
        with self._lock:
            return content_id in self._records

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now

    def _persist_locked(self) -> None:
        """Write the full map. Caller holds the lock."""
        blob = encode_progress(self._records)
        if self._writer is not None and not self._closed:
            self._writer.submit(blob)
            return
        try:
            self.backend.set(self.config.storage_key, blob)
        except PersistenceError as e:
            logger.error(f"Failed to persist progress: {e}")
        except Exception as e:
            logger.error(f"Unexpected error persisting progress: {e}", exc_info=True)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until pending background writes reach the backend."""
        if self._writer is None:
            return True
        return self._writer.flush(self.config.flush_timeout if timeout is None else timeout)

    def close(self) -> None:
        """Flush pending writes and stop the writer thread."""
        # Later mutations write inline, so the writer must drain first.
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._finalizer is not None:
                self._finalizer.detach()
            if self._writer is not None:
                _close_writer(self._writer, self.config.flush_timeout)

    def __enter__(self) -> "ProgressStore":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
