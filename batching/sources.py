"""Item sources: enumerate the candidates a batch will process."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from core.jsonl_utils import read_entries
from core.types import BatchItem

from .errors import ItemSourceError

logger = logging.getLogger(__name__)


def matches_filters(record: dict[str, Any], filters: dict[str, Any]) -> bool:
    """Check a record against equality filters.

    A list filter value matches when the record's value is one of its
    members. Missing fields never match.
    """
    for key, expected in filters.items():
        if key not in record:
            return False
        actual = record[key]
        if isinstance(expected, (list, tuple, set)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


class ItemSource(ABC):
    """Supplies candidate items for a batch."""

    @abstractmethod
    def list_items(self, filters: dict[str, Any]) -> list[BatchItem]:
        """Return the candidates matching `filters`.

        Raises:
            ItemSourceError: If the underlying source is unavailable.
        """


class InMemoryItemSource(ItemSource):
    """Items held in memory, filtered on the item's input fields."""

    def __init__(self, items: Iterable[BatchItem | dict[str, Any]] = ()) -> None:
        self.items = [_to_item(i) for i in items]

    def list_items(self, filters: dict[str, Any]) -> list[BatchItem]:
        if not filters:
            return list(self.items)
        return [
            item
            for item in self.items
            if isinstance(item.input, dict) and matches_filters(item.input, filters)
        ]


class JsonlItemSource(ItemSource):
    """Reads items from a JSONL file.

    Each line is an object with an id field (``node_id``, ``nodeId`` or
    ``id``). The line's ``input`` field is the provider input when present,
    otherwise the whole line is. Filters match top-level line fields.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def list_items(self, filters: dict[str, Any]) -> list[BatchItem]:
        if not self.path.exists():
            raise ItemSourceError(f"Item file not found: {self.path}")

        items = []
        skipped = 0
        for entry in read_entries(self.path):
            if not isinstance(entry, dict):
                skipped += 1
                continue
            node_id = entry.get("node_id") or entry.get("nodeId") or entry.get("id")
            if node_id is None:
                skipped += 1
                continue
            if filters and not matches_filters(entry, filters):
                continue
            items.append(BatchItem(node_id=str(node_id), input=entry.get("input", entry)))

        if skipped:
            logger.warning(f"Skipped {skipped} entries without an id in {self.path}")
        logger.info(f"Loaded {len(items)} items from {self.path}")
        return items


def _to_item(value: BatchItem | dict[str, Any]) -> BatchItem:
    if isinstance(value, BatchItem):
        return value
    node_id = value.get("node_id") or value.get("nodeId") or value.get("id")
    if node_id is None:
        raise ValueError(f"Item has no id: {value!r}")
    return BatchItem(node_id=str(node_id), input=value.get("input", value))
