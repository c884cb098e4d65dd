"""
History store — the last 20 conversations, kept in one JSON document.

Plain data only: the store is read with json.loads, never evaluated, so a
corrupted or tampered file can at worst empty the history. Load failures are
logged and give an empty list; write failures are logged and swallowed.

Access is assumed single-threaded. A multi-threaded host should wrap
append()/remove() in a lock around the read-modify-write-persist sequence.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from askgpt.models import HistoryEntry

logger = logging.getLogger(__name__)

MAX_HISTORY_ENTRIES = 20


class HistoryStore:
    """Bounded FIFO list of completed conversations, persisted on every change."""

    def __init__(self, path: str | Path, max_entries: int = MAX_HISTORY_ENTRIES):
        self.path = Path(path)
        self.max_entries = max_entries
        self._entries: list[HistoryEntry] = self.load_all()

    @property
    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def load_all(self) -> list[HistoryEntry]:
        """Read the store from disk. Anything unreadable yields []."""
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, list):
                raise ValueError(f"expected a list, got {type(data).__name__}")
            entries = [HistoryEntry.from_dict(item) for item in data]
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("History store %s unreadable, starting empty: %s", self.path, e)
            return []
        logger.debug("Loaded %d history entries from %s", len(entries), self.path)
        return entries[-self.max_entries:]

    def _persist(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = [entry.to_dict() for entry in self._entries]
            self.path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2, default=str),
                encoding="utf-8",
            )
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Could not save history to %s: %s", self.path, e)

    def append(self, entry: HistoryEntry) -> None:
        """Add an entry, evicting the oldest ones past the cap, then persist."""
        self._entries.append(entry)
        while len(self._entries) > self.max_entries:
            evicted = self._entries.pop(0)
            logger.debug("History full, evicted '%s' (%d)", evicted.title, evicted.timestamp)
        self._persist()

    def remove(self, index: int) -> HistoryEntry:
        """Delete the entry at `index` and persist. Raises IndexError if absent."""
        entry = self._entries.pop(index)
        self._persist()
        return entry

    def get(self, index: int) -> HistoryEntry:
        return self._entries[index]

    def clear(self) -> None:
        self._entries = []
        self._persist()
