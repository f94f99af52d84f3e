"""Tests for backends, the progress codec and the background writer."""
import json
import threading
import time
from datetime import datetime, timezone

import pytest

from resumewright.core.records import ProgressRecord
from resumewright.exceptions import CorruptStateError, PersistenceError
from resumewright.persistence.backends import (
    FileBackend,
    MemoryBackend,
    SQLiteBackend,
    create_backend,
)
from resumewright.persistence.codec import (
    decode_legacy_progress,
    decode_progress,
    encode_progress,
    try_decode_progress,
)
from resumewright.persistence.writer import BackgroundWriter


def sample_records():
    when = datetime(2024, 3, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)
    return {
        "vidA": ProgressRecord("vidA", "Sermon 1", 600.5, 3600, when, "Sunday Service"),
        "vidB": ProgressRecord("vidB", "Movie", 1200, 5400.25, when, None),
        "vidC": ProgressRecord("vidC", "Ünïcode title", 10, 100, when, "Shów"),
    }


@pytest.fixture(params=["memory", "file", "sqlite"])
def any_backend(request, tmp_path):
    return create_backend(request.param, tmp_path / "data")


class TestBackends:
    """Behaviour shared by every backend."""

    def test_missing_key_is_none(self, any_backend):
        assert any_backend.get("absent") is None

    def test_set_replaces_whole_blob(self, any_backend):
        any_backend.set("key", b"first value that is long")
        any_backend.set("key", b"second")

        assert any_backend.get("key") == b"second"

    def test_delete(self, any_backend):
        any_backend.set("key", b"value")
        any_backend.delete("key")
        any_backend.delete("key")

        assert any_backend.get("key") is None

    def test_keys_are_independent(self, any_backend):
        any_backend.set("one", b"1")
        any_backend.set("two", b"2")

        assert any_backend.get("one") == b"1"
        assert any_backend.get("two") == b"2"


class TestFileBackend:
    """File-specific behaviour."""

    def test_survives_new_instance(self, tmp_path):
        FileBackend(tmp_path).set("progress", b"{}")
        assert FileBackend(tmp_path).get("progress") == b"{}"

    def test_no_temp_files_left(self, tmp_path):
        backend = FileBackend(tmp_path)
        backend.set("progress", b"{}")

        assert [p.name for p in tmp_path.iterdir()] == ["progress.json"]

    def test_rejects_path_traversal(self, tmp_path):
        with pytest.raises(PersistenceError):
            FileBackend(tmp_path).set("../escape", b"x")


class TestSQLiteBackend:
    """SQLite-specific behaviour."""

    def test_survives_new_instance(self, tmp_path):
        db_path = tmp_path / "progress.db"
        first = SQLiteBackend(db_path)
        first.set("progress", b"\x00binary\xff")
        first.close()

        assert SQLiteBackend(db_path).get("progress") == b"\x00binary\xff"

    def test_usable_from_other_threads(self, tmp_path):
        backend = SQLiteBackend(tmp_path / "progress.db")

        thread = threading.Thread(target=backend.set, args=("progress", b"from thread"))
        thread.start()
        thread.join()

        assert backend.get("progress") == b"from thread"


class TestCodec:
    """Tests for encode_progress/decode_progress."""

    def test_round_trip(self):
        records = sample_records()
        assert decode_progress(encode_progress(records)) == records

    def test_empty_map(self):
        assert encode_progress({}) == b"{}"
        assert decode_progress(b"{}") == {}

    def test_numbers_are_plain_json(self):
        payload = json.loads(encode_progress(sample_records()))

        assert payload["vidA"]["currentTime"] == 600.5
        assert payload["vidB"]["duration"] == 5400.25
        assert payload["vidA"]["progressPercentage"] == pytest.approx(600.5 / 36)
        assert payload["vidA"]["lastWatched"] == "2024-03-01T12:00:00.500000+00:00"

    @pytest.mark.parametrize("blob", [b"", b"nope", b"[]", b'"text"', b'{"a": 1}', b'{"a": {}}'])
    def test_corrupt_blobs_raise(self, blob):
        with pytest.raises(CorruptStateError):
            decode_progress(blob)

    def test_nan_literal_is_corrupt(self):
        payload = encode_progress(sample_records()).replace(b"600.5", b"NaN")
        with pytest.raises(CorruptStateError):
            decode_progress(payload)

    def test_try_decode(self):
        assert try_decode_progress(None) is None
        assert try_decode_progress(b"garbage") is None
        assert try_decode_progress(b"{}") == {}


class TestLegacyCodec:
    """Tests for lenient decoding of older layouts."""

    def test_aliases_and_defaults(self):
        blob = json.dumps({
            "a": {"videoId": "a", "videoTitle": "Video A", "currentTime": 10, "duration": 100,
                  "progressPercentage": 10, "lastWatched": "2023-01-01T00:00:00Z"},
            "b": {"episodeId": "b", "episodeTitle": "Episode B", "showName": "Show",
                  "currentTime": 20, "duration": 100, "progressPercentage": 20,
                  "lastWatched": "2023-01-02T00:00:00Z"},
            "c": {"currentTime": 30, "duration": 100, "progressPercentage": 30,
                  "lastWatched": "2023-01-03T00:00:00Z"},
        }).encode()

        records, skipped = decode_legacy_progress(blob)

        assert skipped == 0
        assert records["a"].title == "Video A"
        assert records["b"].show_name == "Show"
        assert records["c"].content_id == "c"
        assert records["c"].title == "Unknown Episode"

    def test_bad_entries_are_skipped(self):
        blob = json.dumps({
            "good": {"videoId": "good", "videoTitle": "Good", "currentTime": 10, "duration": 100,
                     "progressPercentage": 10, "lastWatched": "2023-01-01T00:00:00Z"},
            "bad": {"videoId": "bad", "currentTime": "x"},
            "worse": [1, 2],
        }).encode()

        records, skipped = decode_legacy_progress(blob)

        assert list(records) == ["good"]
        assert skipped == 2


class TestBackgroundWriter:
    """Tests for the coalescing writer."""

    def test_flush_writes_latest(self):
        backend = MemoryBackend()
        writer = BackgroundWriter(backend, "key")
        for i in range(100):
            writer.submit(str(i).encode())

        assert writer.flush(timeout=5)
        assert backend.get("key") == b"99"
        assert writer.writes <= 100
        writer.close(timeout=5)

    def test_coalesces_while_backend_is_slow(self):
        class SlowBackend(MemoryBackend):
            def set(self, key, value):
                time.sleep(0.05)
                super().set(key, value)

        backend = SlowBackend()
        writer = BackgroundWriter(backend, "key")
        for i in range(20):
            writer.submit(str(i).encode())
        writer.close(timeout=5)

        assert backend.get("key") == b"19"
        assert backend.write_count < 20
        assert not writer.is_running

    def test_failures_are_counted_not_raised(self):
        class BrokenBackend(MemoryBackend):
            def set(self, key, value):
                raise PersistenceError("no space", key=key)

        writer = BackgroundWriter(BrokenBackend(), "key")
        writer.submit(b"data")

        assert writer.flush(timeout=5)
        assert writer.failures == 1
        writer.close(timeout=5)

    def test_submit_after_close_is_dropped(self):
        backend = MemoryBackend()
        writer = BackgroundWriter(backend, "key")
        writer.close(timeout=5)

        writer.submit(b"late")

        assert backend.get("key") is None

    def test_flush_with_nothing_pending(self):
        writer = BackgroundWriter(MemoryBackend(), "key")
        assert writer.flush(timeout=1)
        writer.close(timeout=1)
