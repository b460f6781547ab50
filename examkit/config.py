"""User exam settings persisted through the local store, clamped on every write."""
import logging
from datetime import timedelta
from typing import Any, Optional

from engine import CONFIG_KEY
from examkit.models import ExamConfiguration
from examkit.store import PersistenceStore

logger = logging.getLogger(__name__)


class ConfigStore:
    def __init__(self, store: PersistenceStore, ttl: Optional[timedelta] = None, key: str = CONFIG_KEY) -> None:
        self.store = store
        self.ttl = ttl
        self.key = key

    def load(self) -> ExamConfiguration:
        """Stored settings merged over the defaults; defaults when nothing (valid) is stored."""
        raw = self.store.get(self.key)
        if raw is None:
            return ExamConfiguration()
        if not isinstance(raw, dict):
            logger.warning("Ignoring stored config of type %s", type(raw).__name__)
            return ExamConfiguration()
        return ExamConfiguration.from_dict(raw)

    def save(self, config: ExamConfiguration) -> ExamConfiguration:
        config = config.clamped()
        self.store.set(self.key, config.to_dict(), self.ttl)
        return config

    def update(self, **changes: Any) -> ExamConfiguration:
        """Apply field changes (e.g. passing_score=75) to the stored settings and persist."""
        data = self.load().to_dict()
        for name, value in changes.items():
            if name not in data:
                raise TypeError(f"unknown exam setting: {name}")
            data[name] = value
        return self.save(ExamConfiguration.from_dict(data))
