"""Time-limited cache of creative analysis results.

Entries are keyed by creative hash, client, language and format group and
expire ``ANALYSIS_CACHE_TTL_HOURS`` after they were written. Cache writes
never raise: a failed write is logged and the result simply is not cached.
Expired rows are removed when read and pruned on every write.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from creative_perf.models import AnalysisCacheEntry
from creative_perf.schemas import FormatGroup
from creative_perf.settings import settings

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on round-trip
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AnalysisCache:
    def __init__(
        self,
        db: Session,
        *,
        ttl_hours: int | None = None,
        key_prefix: str | None = None,
        max_entry_bytes: int | None = None,
    ) -> None:
        self.db = db
        self.ttl = timedelta(hours=ttl_hours if ttl_hours is not None else settings.ANALYSIS_CACHE_TTL_HOURS)
        self.key_prefix = key_prefix if key_prefix is not None else settings.ANALYSIS_CACHE_KEY_PREFIX
        self.max_entry_bytes = (
            max_entry_bytes if max_entry_bytes is not None else settings.STORAGE_MAX_TABLE_BYTES
        )

    def build_key(
        self,
        creative_hash: str,
        client_id: str,
        language: str,
        format_group: FormatGroup | str,
    ) -> str:
        group = FormatGroup(format_group).value
        return f"{self.key_prefix}{creative_hash}-{client_id}-{language}-{group}"

    def get(self, key: str, *, now: datetime | None = None) -> dict[str, Any] | None:
        """Return the cached result for *key* if it is younger than the TTL."""
        try:
            entry = self.db.get(AnalysisCacheEntry, key)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Error reading from analysis cache: %s", exc)
            return None
        if entry is None:
            return None

        now = now or datetime.now(tz=timezone.utc)
        if now - _as_utc(entry.created_at) > self.ttl:
            logger.debug("Cached analysis %s expired", key)
            self._discard(entry)
            return None
        if not isinstance(entry.result_json, dict):
            logger.error("Discarding malformed cache entry %s", key)
            return None
        return entry.result_json

    def put(self, key: str, result: dict[str, Any], *, now: datetime | None = None) -> bool:
        """Store *result* under *key*. Returns ``False`` when it could not be saved."""
        size_bytes = len(json.dumps(result).encode("utf-8"))
        if size_bytes > self.max_entry_bytes:
            logger.warning(
                "Could not save analysis to cache. Storage might be full (%d bytes).",
                size_bytes,
            )
            return False

        created_at = now or datetime.now(tz=timezone.utc)
        try:
            self.db.execute(
                delete(AnalysisCacheEntry).where(
                    AnalysisCacheEntry.created_at < created_at - self.ttl,
                    AnalysisCacheEntry.cache_key != key,
                )
                .execution_options(synchronize_session=False)
            )
            entry = self.db.get(AnalysisCacheEntry, key)
            if entry is None:
                self.db.add(AnalysisCacheEntry(cache_key=key, result_json=result, created_at=created_at))
            else:
                entry.result_json = result
                entry.created_at = created_at
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Could not save analysis to cache. Storage might be full: %s", exc)
            return False
        logger.info("Analysis result saved to cache")
        return True

    def _discard(self, entry: AnalysisCacheEntry) -> None:
        try:
            self.db.delete(entry)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Could not remove expired cache entry %s: %s", entry.cache_key, exc)
