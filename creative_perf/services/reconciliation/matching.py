"""Resolve which analyzed creative, if any, a performance row refers to.

Strategies are tried in priority order and the first hit wins. The default
chain honours a manual link by content hash before falling back to the
filename-inside-presentation heuristic.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

from creative_perf.schemas import AnalysisHistoryEntry, PerformanceRecord

logger = logging.getLogger(__name__)


def client_history(
    record: PerformanceRecord, history: Iterable[AnalysisHistoryEntry]
) -> list[AnalysisHistoryEntry]:
    return [entry for entry in history if entry.client_id == record.client_id]


class MatchStrategy(ABC):
    """One way of associating a report row with a history entry."""

    name: str = ""

    @abstractmethod
    def match(
        self, record: PerformanceRecord, candidates: Sequence[AnalysisHistoryEntry]
    ) -> AnalysisHistoryEntry | None:
        """Return the matching entry among *candidates* (same client), or ``None``."""
        ...


class LinkedHashStrategy(MatchStrategy):
    name = "linked_hash"

    def match(self, record, candidates):
        if not record.linked_file_hash:
            return None
        return next((h for h in candidates if h.hash == record.linked_file_hash), None)


class FilenameSubstringStrategy(MatchStrategy):
    """The report's presentation field embeds the original filename."""

    name = "filename_substring"

    def match(self, record, candidates):
        presentation = (record.image_video_presentation or "").lower()
        if not presentation:
            return None
        return next(
            (h for h in candidates if h.filename and h.filename.lower() in presentation),
            None,
        )


class CreativeMatcher:
    """Priority-ordered chain of :class:`MatchStrategy` objects."""

    def __init__(self, strategies: Sequence[MatchStrategy] | None = None) -> None:
        self.strategies: list[MatchStrategy] = list(
            strategies if strategies is not None else default_strategies()
        )

    def match(
        self, record: PerformanceRecord, history: Iterable[AnalysisHistoryEntry]
    ) -> AnalysisHistoryEntry | None:
        candidates = client_history(record, history)
        if not candidates:
            return None

        # First strategy to resolve wins; later strategies are not consulted.
        for strategy in self.strategies:
            hit = strategy.match(record, candidates)
            if hit is not None:
                self._log_hit(record, hit, strategy.name)
                return hit
        return None

    @staticmethod
    def _log_hit(record: PerformanceRecord, entry: AnalysisHistoryEntry, strategy: str) -> None:
        logger.debug(
            'Link found for ad "%s" via %s (history file %s)',
            record.ad_name,
            strategy,
            entry.filename,
        )


def default_strategies() -> list[MatchStrategy]:
    return [LinkedHashStrategy(), FilenameSubstringStrategy()]


def match_creative(
    record: PerformanceRecord,
    history: Iterable[AnalysisHistoryEntry],
    matcher: CreativeMatcher | None = None,
) -> AnalysisHistoryEntry | None:
    return (matcher or CreativeMatcher()).match(record, history)
