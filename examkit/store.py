"""
Local keyed store with per-entry time-to-live, backed by one JSON file.

File layout:
{
    "<key>": {"value": ..., "written_at": "<iso timestamp>", "ttl_seconds": 604800.0},
    ...
}

Every failure (missing/unreadable/corrupted file, full disk, bad entry) degrades
to "entry absent" or "write dropped" and is logged; nothing is raised to callers.
"""
import json
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from engine import RETENTION_DAYS

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(days=RETENTION_DAYS)
_MISSING = object()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PersistenceStore:
    """JSON file store; each entry expires `ttl` after it was written."""

    def __init__(self, path: str, default_ttl: timedelta = DEFAULT_TTL,
                 clock: Callable[[], datetime] = utcnow) -> None:
        self.path = os.path.abspath(path)
        self.default_ttl = default_ttl
        self._clock = clock

    def set(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> bool:
        """
        Wrap value with the current time and ttl, then persist.

        Returns:
            bool: False when the write was dropped (unserializable value or I/O error).
        """
        ttl = self.default_ttl if ttl is None else ttl
        entry = {
            "value": value,
            "written_at": self._clock().isoformat(),
            "ttl_seconds": ttl.total_seconds(),
        }
        data = self._read_all()
        data[key] = entry
        return self._write_all(data)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Return the stored value, or `default` if absent or expired.
        Expired and malformed entries are purged on read.
        """
        data = self._read_all()
        entry = data.get(key, _MISSING)
        if entry is _MISSING:
            return default
        try:
            written_at = datetime.fromisoformat(entry["written_at"])
            ttl = timedelta(seconds=float(entry["ttl_seconds"]))
            value = entry["value"]
            expired = self._clock() - written_at > ttl
        except (TypeError, KeyError, ValueError) as e:
            logger.warning("Discarding malformed entry %r: %s", key, e)
            self._discard(data, key)
            return default
        if expired:
            logger.info("Entry %r expired (written %s)", key, entry["written_at"])
            self._discard(data, key)
            return default
        return value

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            self._discard(data, key)

    def clear(self) -> None:
        """Drop every locally retained entry."""
        self._write_all({})
        logger.info("Cleared local store %s", self.path)

    def purge_expired(self) -> int:
        """Remove all expired or malformed entries. Returns how many were removed."""
        data = self._read_all()
        now = self._clock()
        stale = []
        for key, entry in data.items():
            try:
                written_at = datetime.fromisoformat(entry["written_at"])
                if now - written_at > timedelta(seconds=float(entry["ttl_seconds"])):
                    stale.append(key)
            except (TypeError, KeyError, ValueError):
                stale.append(key)
        if stale:
            for key in stale:
                del data[key]
            self._write_all(data)
        return len(stale)

    def _discard(self, data: Dict[str, Any], key: str) -> None:
        data.pop(key, None)
        self._write_all(data)

    def _read_all(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Local store unreadable, treating as empty: %s", e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Local store has unexpected shape (%s), treating as empty", type(data).__name__)
            return {}
        return data

    def _write_all(self, data: Dict[str, Any]) -> bool:
        """Write JSON to a temporary file and atomically replace the target."""
        directory = os.path.dirname(self.path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            payload = json.dumps(data, ensure_ascii=False, indent=2)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Dropping write to %s: %s", self.path, e)
            return False
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".exam_store.", suffix=".tmp", dir=directory, text=True)
            with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
                tmp_file.write(payload)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.replace(tmp_path, self.path)
            return True
        except OSError as e:
            logger.warning("Dropping write to %s: %s", self.path, e)
            return False
        finally:
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError as e:
                    logger.debug("Could not remove temp file %s: %s", tmp_path, e)
