"""Bounded most-recent-first record of graded attempts, kept in the local store."""
import logging
from datetime import timedelta
from typing import List, Optional

from engine import HISTORY_KEY, HISTORY_LIMIT
from examkit.models import HistoryRecord
from examkit.store import PersistenceStore

logger = logging.getLogger(__name__)


class HistoryLedger:
    def __init__(self, store: PersistenceStore, limit: int = HISTORY_LIMIT,
                 ttl: Optional[timedelta] = None, key: str = HISTORY_KEY) -> None:
        self.store = store
        self.limit = limit
        self.ttl = ttl
        self.key = key

    def _raw(self) -> List[dict]:
        raw = self.store.get(self.key, [])
        if not isinstance(raw, list):
            logger.warning("History entry has unexpected shape (%s); ignoring it", type(raw).__name__)
            return []
        return raw

    def list(self) -> List[HistoryRecord]:
        """Records, most recent first. Corrupted records are skipped."""
        records = []
        for item in self._raw():
            try:
                records.append(HistoryRecord.from_dict(item))
            except (TypeError, KeyError, ValueError) as e:
                logger.warning("Skipping corrupted history record: %s", e)
        return records

    def append(self, record: HistoryRecord) -> List[HistoryRecord]:
        """Prepend a record and keep only the most recent `limit` entries."""
        records = [record] + self.list()
        records = records[: self.limit]
        self.store.set(self.key, [r.to_dict() for r in records], self.ttl)
        logger.info("History: recorded score %d on %s (%d kept)", record.score, record.bank_label or record.bank_id, len(records))
        return records

    def clear(self) -> None:
        self.store.remove(self.key)
