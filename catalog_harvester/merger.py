"""Keyed record store with a "most complete record wins" merge rule.

Upstream result pages return different subsets of fields for the same part
depending on which category filter produced the hit. When two sightings of
a key differ, the one with strictly more fields replaces the stored one;
otherwise the stored record is kept. Fields present only in the smaller
record are lost. On a field-count tie the first arrival wins, so the result
depends on arrival order in that case only.
"""

import logging
import threading
from collections import Counter
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .cache import read_json, write_json_atomic
from .errors import ConfigurationError, DecodeError
from .models import MergeResult

logger = logging.getLogger("catalog_harvester")

Record = Dict[str, Any]


class RecordStore:
    def __init__(self, key_field: str = "o1", records: Optional[Dict[str, Record]] = None):
        self.key_field = key_field
        self._records: Dict[str, Record] = dict(records or {})
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key) -> bool:
        return key in self._records

    def get(self, key: str) -> Optional[Record]:
        return self._records.get(key)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._records)

    def items(self) -> Iterator[Tuple[str, Record]]:
        with self._lock:
            return iter(list(self._records.items()))

    def to_dict(self) -> Dict[str, Record]:
        with self._lock:
            return dict(self._records)

    def key_of(self, record: Record) -> str:
        key = record.get(self.key_field) if isinstance(record, dict) else None
        if not isinstance(key, str) or not key:
            raise DecodeError(f"record has no usable {self.key_field!r} key: {record!r:.200}")
        return key

    def merge(self, record: Record) -> MergeResult:
        key = self.key_of(record)
        with self._lock:
            existing = self._records.get(key)
            if existing is None:
                self._records[key] = record
                return MergeResult.INSERTED
            if existing == record:
                return MergeResult.UNCHANGED
            if len(record) > len(existing):
                self._records[key] = record
                return MergeResult.REPLACED
        logger.debug(
            f"Duplicate key {key}: newer record has {len(record)} fields, "
            f"keeping existing with {len(existing)}"
        )
        return MergeResult.KEPT_EXISTING

    def merge_batch(self, records: Iterable[Record]) -> Counter:
        """Merge one category's records.

        Keys are checked up front so that a malformed batch contributes
        nothing rather than half of itself.
        """
        records = list(records)
        for record in records:
            self.key_of(record)
        return Counter(self.merge(r) for r in records)

    def save(self, path: str):
        write_json_atomic(path, self.to_dict())

    @classmethod
    def load(cls, path: str, key_field: str = "o1") -> "RecordStore":
        data = read_json(path)
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path}: expected a JSON object of records")
        return cls(key_field, data)


def merge_mappings(target: dict, source: dict) -> int:
    """Last-write-wins merge for auxiliary maps (labels, criteria, techdocs).

    Returns how many keys were new to ``target``.
    """
    added = sum(1 for k in source if k not in target)
    target.update(source)
    return added
