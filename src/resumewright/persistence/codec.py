"""Serialization of the progress map to and from a JSON blob.

Layout: a JSON object mapping content id to the record dictionary
produced by ``ProgressRecord.to_dict``. Timestamps are ISO-8601 with a UTC
offset; numbers are plain JSON decimals. NaN and Infinity are rejected in
both directions.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from ..core.records import ProgressRecord
from ..exceptions import CorruptStateError, InvalidProgressError

logger = logging.getLogger(__name__)

# Field names used by older client builds, mapped to the current ones.
LEGACY_FIELD_ALIASES = {
    "contentId": ("episodeId", "videoId"),
    "title": ("episodeTitle", "videoTitle"),
}
LEGACY_DEFAULT_TITLE = "Unknown Episode"


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite number {name} in progress blob")


def encode_progress(records: Mapping[str, ProgressRecord]) -> bytes:
    """Serialize the full record map."""
    payload = {content_id: record.to_dict() for content_id, record in records.items()}
    return json.dumps(payload, allow_nan=False, ensure_ascii=False).encode("utf-8")


def _load_object(blob: bytes) -> Dict[str, Any]:
    try:
        data = json.loads(blob.decode("utf-8"), parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError) as e:
        raise CorruptStateError("Progress blob is not valid JSON", cause=e) from e
    if not isinstance(data, dict):
        raise CorruptStateError(
            f"Progress blob must be a JSON object, got {type(data).__name__}"
        )
    return data


def decode_progress(blob: bytes) -> Dict[str, ProgressRecord]:
    """Deserialize a blob written by ``encode_progress``.

    Raises:
        CorruptStateError: If the blob or any record cannot be decoded.
    """
    data = _load_object(blob)
    records: Dict[str, ProgressRecord] = {}
    for key, entry in data.items():
        if not isinstance(entry, dict):
            raise CorruptStateError(f"Record for {key!r} is not an object")
        try:
            records[key] = ProgressRecord.from_dict(entry)
        except (KeyError, ValueError, TypeError, InvalidProgressError) as e:
            raise CorruptStateError(f"Record for {key!r} is malformed: {e}", cause=e) from e
    return records


def _normalize_legacy_entry(key: str, entry: Dict[str, Any]) -> Dict[str, Any]:
    normalized = dict(entry)
    for field_name, aliases in LEGACY_FIELD_ALIASES.items():
        if normalized.get(field_name) is None:
            for alias in aliases:
                if entry.get(alias) is not None:
                    normalized[field_name] = entry[alias]
                    break
    normalized.setdefault("contentId", key)
    if normalized.get("title") is None:
        normalized["title"] = LEGACY_DEFAULT_TITLE
    return normalized


def decode_legacy_progress(blob: bytes) -> Tuple[Dict[str, ProgressRecord], int]:
    """Leniently decode a blob written by an older client build.

    Older builds keyed records as ``videoId``/``videoTitle`` or
    ``episodeId``/``episodeTitle``. Unreadable entries are skipped.

    Returns:
        Tuple of (decoded records, number of skipped entries)

    Raises:
        CorruptStateError: If the blob itself is not a JSON object.
    """
    data = _load_object(blob)
    records: Dict[str, ProgressRecord] = {}
    skipped = 0
    for key, entry in data.items():
        if not isinstance(entry, dict):
            skipped += 1
            continue
        try:
            records[key] = ProgressRecord.from_dict(_normalize_legacy_entry(key, entry))
        except (KeyError, ValueError, TypeError, InvalidProgressError) as e:
            logger.debug(f"Skipping unreadable legacy entry {key!r}: {e}")
            skipped += 1
    return records, skipped


def try_decode_progress(blob: Optional[bytes]) -> Optional[Dict[str, ProgressRecord]]:
    """Decode a blob, returning None when it is absent or corrupt."""
    if blob is None:
        return None
    try:
        return decode_progress(blob)
    except CorruptStateError as e:
        logger.error(f"Discarding corrupt progress state: {e}")
        return None
