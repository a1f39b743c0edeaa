# equipment_tracker/services/name_index.py
"""
Name Index - case-insensitive multi-map from equipment name to records.

The index only holds references into the store's equipment list. It is a fast
path for name lookups, never the source of truth, and is rebuilt from scratch
whenever the store reloads its collection.
"""
from __future__ import annotations
from collections import defaultdict
from typing import Dict, Iterable, List

from equipment_tracker.models import Equipment


def _key(name: str) -> str:
    return (name or "").casefold()


class NameIndex:

    def __init__(self, items: Iterable[Equipment] = ()):
        self._buckets: Dict[str, List[Equipment]] = defaultdict(list)
        self.rebuild(items)

    def __len__(self) -> int:
        return sum(len(b) for b in self._buckets.values())

    def rebuild(self, items: Iterable[Equipment]) -> None:
        self._buckets = defaultdict(list)
        for item in items:
            self.insert(item)

    def insert(self, item: Equipment) -> None:
        self._buckets[_key(item.name)].append(item)

    def clear(self) -> None:
        self._buckets.clear()

    def search(self, query: str) -> List[Equipment]:
        """
        Every indexed item whose name contains `query`, ignoring case.

        Exact-name bucket first, then any other bucket whose key contains the
        query. Order within the result is not meaningful.
        """
        q = _key(query)
        if not q:
            return []
        out: List[Equipment] = list(self._buckets.get(q, ()))
        for key, bucket in self._buckets.items():
            if key != q and q in key:
                out.extend(bucket)
        return out
