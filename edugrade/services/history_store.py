import json
import logging
import os
import tempfile
import time
import uuid
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from edugrade.models.history import HistoryItem, HistoryStats
from edugrade.models.report import EvaluationReport

logger = logging.getLogger(__name__)


class KeyValueFile:
    """String values under string keys in one JSON file (browser-storage style)."""

    def __init__(self, path: str):
        self.path = Path(path).expanduser()

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def get_item(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except (OSError, ValueError):
            data = {}
        data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        # write-then-rename so a crash never leaves a half-written file
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".history-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


class HistoryStore:
    """Persisted newest-first log of past evaluation reports.

    Mutations are flushed immediately. Persistence failures are logged and
    swallowed: the history is a convenience cache, not the grading record.
    Not thread-safe; mutate from a single thread of control.
    """

    def __init__(self, path: str, key: str = "edugrade_history"):
        self.storage = KeyValueFile(path)
        self.key = key
        self._items: List[HistoryItem] = []
        self._issued_ids = set()

    @property
    def items(self) -> List[HistoryItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def load(self) -> List[HistoryItem]:
        """Read persisted state; absent or corrupt data yields an empty history."""
        self._items = self._read()
        self._issued_ids.update(item.id for item in self._items)
        logger.info(f"Loaded {len(self._items)} history items from {self.storage.path}")
        return self.items

    def _read(self) -> List[HistoryItem]:
        try:
            raw = self.storage.get_item(self.key)
        except (OSError, ValueError) as e:
            logger.warning(f"History storage unreadable, starting empty: {e}")
            return []
        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"History blob is not valid JSON, starting empty: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"History blob is a {type(data).__name__}, expected a list; starting empty")
            return []

        items = []
        for entry in data:
            try:
                items.append(HistoryItem.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable history entry: {e.error_count()} errors")
        return items

    def _persist(self) -> None:
        try:
            blob = json.dumps([item.to_wire() for item in self._items], ensure_ascii=False)
            self.storage.set_item(self.key, blob)
        except (OSError, TypeError, ValueError):
            logger.exception(f"Failed to persist history to {self.storage.path}")

    def _new_id(self) -> str:
        while True:
            candidate = uuid.uuid4().hex
            if candidate not in self._issued_ids:
                self._issued_ids.add(candidate)
                return candidate

    def append(self, report: EvaluationReport) -> HistoryItem:
        item = HistoryItem(id=self._new_id(), timestamp=int(time.time() * 1000), report=report)
        self._items.insert(0, item)
        self._persist()
        logger.info(f"Stored evaluation {item.id} ({report.percentage:g}%)")
        return item

    def remove(self, item_id: str) -> bool:
        """Delete by id. Unknown ids are a no-op; returns whether anything was removed."""
        remaining = [item for item in self._items if item.id != item_id]
        if len(remaining) == len(self._items):
            return False
        self._items = remaining
        self._persist()
        return True

    def get(self, item_id: str) -> Optional[HistoryItem]:
        return next((item for item in self._items if item.id == item_id), None)

    def clear(self) -> None:
        self._items = []
        self._persist()

    def stats(self) -> HistoryStats:
        if not self._items:
            return HistoryStats()
        return HistoryStats(
            count=len(self._items),
            mean_percentage=sum(i.report.percentage for i in self._items) / len(self._items),
            most_recent_timestamp=max(i.timestamp for i in self._items),
        )
