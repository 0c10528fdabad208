from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator

from creative_perf.schemas import AnalysisHistoryEntry
from creative_perf.settings import settings


class BoundedHistory:
    """Fixed-capacity, insertion-ordered analysis history.

    Appending to a full history evicts the oldest entry.
    """

    def __init__(
        self,
        entries: Iterable[AnalysisHistoryEntry] = (),
        capacity: int | None = None,
    ) -> None:
        self.capacity = capacity if capacity is not None else settings.ANALYSIS_HISTORY_MAX_ENTRIES
        if self.capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self._entries: deque[AnalysisHistoryEntry] = deque(entries, maxlen=self.capacity)

    def __iter__(self) -> Iterator[AnalysisHistoryEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, entry: AnalysisHistoryEntry) -> AnalysisHistoryEntry | None:
        """Add *entry*; return the evicted entry, if any."""
        evicted = self._entries[0] if len(self._entries) == self.capacity else None
        self._entries.append(entry)
        return evicted

    def to_list(self) -> list[AnalysisHistoryEntry]:
        return list(self._entries)

    def for_client(self, client_id: str) -> list[AnalysisHistoryEntry]:
        return [e for e in self._entries if e.client_id == client_id]

    def recent_for_client(self, client_id: str, limit: int | None = None) -> list[AnalysisHistoryEntry]:
        limit = limit if limit is not None else settings.ANALYSIS_HISTORY_CONTEXT_ENTRIES
        entries = self.for_client(client_id)
        return entries[-limit:] if limit > 0 else []

    def find_existing(self, creative_hash: str, filename: str, size: int) -> AnalysisHistoryEntry | None:
        """Entry for the exact same upload (same bytes, name and size)."""
        return next(
            (
                e
                for e in self._entries
                if e.hash == creative_hash and e.filename == filename and e.size == size
            ),
            None,
        )
