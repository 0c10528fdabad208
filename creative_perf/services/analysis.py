"""Recording of creative analysis results produced by the AI collaborator.

The analysis itself happens elsewhere; this module decides whether a result
is usable, caches it and appends it to the client's bounded history.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from creative_perf.schemas import AnalysisHistoryEntry, FileType, FormatGroup
from creative_perf.services.analysis_cache import AnalysisCache
from creative_perf.services.history import BoundedHistory
from creative_perf.storage import Repository

logger = logging.getLogger(__name__)


def is_failed_result(result: dict[str, Any] | None) -> bool:
    """Analysis failures come back as results whose conclusion headline mentions an error."""
    if not result:
        return True
    conclusion = result.get("overallConclusion") or {}
    if not isinstance(conclusion, Mapping):
        # Malformed conclusion, e.g. a bare error string
        return True
    headline = conclusion.get("headline") or ""
    return "error" in str(headline).lower()


def history_context(entries: list[AnalysisHistoryEntry]) -> str:
    """Text block describing previous analyses, fed back to the analyst as context."""
    return "\n\n".join(
        f"File: {e.filename}\nDate: {e.date}\nDescription: {e.description}" for e in entries
    )


class AnalysisRecorder:
    def __init__(self, repo: Repository, cache: AnalysisCache) -> None:
        self.repo = repo
        self.cache = cache

    def load_history(self) -> BoundedHistory:
        return BoundedHistory(self.repo.get_history())

    def lookup_cached(
        self,
        creative_hash: str,
        client_id: str,
        language: str,
        format_group: FormatGroup | str,
    ) -> tuple[str, dict[str, Any] | None]:
        key = self.cache.build_key(creative_hash, client_id, language, format_group)
        result = self.cache.get(key)
        if result is not None:
            logger.info("Using cached analysis %s", key)
        return key, result

    def find_existing(self, creative_hash: str, filename: str, size: int) -> AnalysisHistoryEntry | None:
        """Previous analysis of the very same upload, used to reassign its client."""
        existing = self.load_history().find_existing(creative_hash, filename, size)
        if existing is not None:
            logger.info(
                "Found existing analysis for creative %s (client %s)", filename, existing.client_id
            )
        return existing

    def reassign(
        self, creative_hash: str, filename: str, size: int, client_id: str
    ) -> AnalysisHistoryEntry | None:
        """Move the history entry of a re-uploaded creative to *client_id*.

        Returns the updated entry, or ``None`` when no entry matches.
        """
        history = self.repo.get_history()
        for index, entry in enumerate(history):
            if entry.hash == creative_hash and entry.filename == filename and entry.size == size:
                break
        else:
            return None

        if entry.client_id == client_id:
            return entry
        updated = entry.model_copy(update={"client_id": client_id})
        history[index] = updated
        self.repo.save_history(history)
        logger.info(
            "Reassigned analysis of %s from client %s to %s", filename, entry.client_id, client_id
        )
        return updated

    def record(
        self,
        *,
        client_id: str,
        filename: str,
        creative_hash: str,
        size: int,
        file_type: FileType,
        data_url: str,
        language: str,
        format_group: FormatGroup | str,
        result: dict[str, Any],
        now: datetime | None = None,
    ) -> tuple[str, AnalysisHistoryEntry | None]:
        """Cache a successful *result* and append it to the history.

        Failed results are neither cached nor recorded; ``(key, None)`` is
        returned for them.
        """
        key = self.cache.build_key(creative_hash, client_id, language, format_group)
        if is_failed_result(result):
            logger.error(
                "Analysis failed for creative %s (%s): %s",
                filename,
                FormatGroup(format_group).value,
                (result or {}).get("overallConclusion"),
            )
            return key, None

        self.cache.put(key, result, now=now)

        entry = AnalysisHistoryEntry(
            client_id=client_id,
            filename=filename,
            hash=creative_hash,
            size=size,
            date=(now or datetime.now(tz=timezone.utc)).isoformat(),
            description=str(result.get("creativeDescription") or ""),
            data_url=data_url,
            file_type=file_type,
        )
        history = self.load_history()
        evicted = history.append(entry)
        if evicted is not None:
            logger.debug("History full, evicted analysis of %s", evicted.filename)
        self.repo.save_history(history.to_list())
        logger.info("New analysis of %s saved to history", filename)
        return key, entry
