from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import OperationalError

from creative_perf.models import AnalysisCacheEntry
from creative_perf.schemas import FormatGroup
from creative_perf.services.analysis_cache import AnalysisCache

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
RESULT = {"creativeDescription": "Bold red banner", "overallConclusion": {"headline": "Strong"}}


def test_build_key_format(db):
    cache = AnalysisCache(db)

    key = cache.build_key("abc123", "c1", "es", FormatGroup.VERTICAL)

    assert key == "metaAdCreativeAnalysis_abc123-c1-es-VERTICAL"
    assert cache.build_key("abc123", "c1", "en", "SQUARE_LIKE").endswith("-en-SQUARE_LIKE")


def test_hit_within_ttl(db):
    cache = AnalysisCache(db)
    key = cache.build_key("h", "c1", "es", FormatGroup.SQUARE_LIKE)

    assert cache.put(key, RESULT, now=NOW) is True

    assert cache.get(key, now=NOW + timedelta(hours=47, minutes=59)) == RESULT


def test_entry_expires_after_48_hours(db):
    cache = AnalysisCache(db)
    key = cache.build_key("h", "c1", "es", FormatGroup.SQUARE_LIKE)
    cache.put(key, RESULT, now=NOW)

    assert cache.get(key, now=NOW + timedelta(hours=48, seconds=1)) is None


def test_put_overwrites_and_refreshes(db):
    cache = AnalysisCache(db)
    cache.put("k", {"v": 1}, now=NOW)
    cache.put("k", {"v": 2}, now=NOW + timedelta(hours=40))

    assert cache.get("k", now=NOW + timedelta(hours=60)) == {"v": 2}


def test_miss_for_unknown_key(db):
    assert AnalysisCache(db).get("nothing-here") is None


def test_oversized_result_is_not_cached(db):
    cache = AnalysisCache(db, max_entry_bytes=10)

    assert cache.put("k", RESULT, now=NOW) is False
    assert db.get(AnalysisCacheEntry, "k") is None


def test_write_failure_does_not_raise(db, monkeypatch):
    cache = AnalysisCache(db)

    def failing_commit():
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(db, "commit", failing_commit)

    assert cache.put("k", RESULT, now=NOW) is False


def test_malformed_entry_is_a_miss(db):
    db.add(AnalysisCacheEntry(cache_key="bad", result_json=["not", "a", "dict"], created_at=NOW))
    db.commit()

    assert AnalysisCache(db).get("bad", now=NOW) is None


def test_expired_entry_is_removed_on_read(db):
    cache = AnalysisCache(db)
    cache.put("k", RESULT, now=NOW)

    assert cache.get("k", now=NOW + timedelta(hours=49)) is None
    assert db.get(AnalysisCacheEntry, "k") is None


def test_put_prunes_expired_entries(db):
    cache = AnalysisCache(db)
    cache.put("old", RESULT, now=NOW)
    cache.put("recent", RESULT, now=NOW + timedelta(hours=30))

    cache.put("new", RESULT, now=NOW + timedelta(hours=49))

    assert db.get(AnalysisCacheEntry, "old") is None
    assert db.get(AnalysisCacheEntry, "recent") is not None
    assert cache.get("new", now=NOW + timedelta(hours=49)) == RESULT


def test_read_failure_is_a_miss(db, monkeypatch):
    cache = AnalysisCache(db)
    cache.put("k", RESULT, now=NOW)

    def failing_get(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection reset"))

    monkeypatch.setattr(db, "get", failing_get)

    assert cache.get("k", now=NOW) is None
