from datetime import datetime, timezone

import pytest

from creative_perf.schemas import FormatGroup
from creative_perf.services.analysis import AnalysisRecorder, history_context, is_failed_result
from creative_perf.services.analysis_cache import AnalysisCache
from tests.conftest import make_entry

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
GOOD = {"creativeDescription": "Product on white", "overallConclusion": {"headline": "Ready to run"}}


@pytest.fixture
def recorder(db, repo):
    return AnalysisRecorder(repo, AnalysisCache(db))


def _record(recorder, **overrides):
    fields = {
        "client_id": "c1",
        "filename": "shoe.png",
        "creative_hash": "h1",
        "size": 42,
        "file_type": "image",
        "data_url": "data:image/png;base64,AA",
        "language": "es",
        "format_group": FormatGroup.SQUARE_LIKE,
        "result": GOOD,
        "now": NOW,
    }
    fields.update(overrides)
    return recorder.record(**fields)


@pytest.mark.parametrize(
    "result,failed",
    [
        (GOOD, False),
        ({"overallConclusion": {"headline": "Analysis Error"}}, True),
        ({"overallConclusion": {"headline": "error parsing response"}}, True),
        ({"overallConclusion": "Error: quota exceeded"}, True),
        ({"overallConclusion": ["Analysis Error"]}, True),
        ({}, True),
        (None, True),
    ],
)
def test_is_failed_result(result, failed):
    assert is_failed_result(result) is failed


def test_successful_result_is_cached_and_recorded(recorder, repo):
    key, entry = _record(recorder)

    assert key == "metaAdCreativeAnalysis_h1-c1-es-SQUARE_LIKE"
    assert entry.description == "Product on white"
    assert entry.date == NOW.isoformat()
    assert repo.get_history() == [entry]
    assert recorder.cache.get(key, now=NOW) == GOOD


def test_failed_result_is_neither_cached_nor_recorded(recorder, repo):
    failure = {"overallConclusion": {"headline": "Error: model unavailable"}}

    key, entry = _record(recorder, result=failure)

    assert entry is None
    assert recorder.cache.get(key, now=NOW) is None
    assert repo.get_history() == []


def test_history_is_capped(recorder, repo):
    repo.save_history([make_entry(hash=str(i)) for i in range(50)])

    _record(recorder, creative_hash="newest")

    history = repo.get_history()
    assert len(history) == 50
    assert history[0].hash == "1"
    assert history[-1].hash == "newest"


def test_find_existing_and_reassign(recorder, repo):
    _record(recorder)

    existing = recorder.find_existing("h1", "shoe.png", 42)
    assert existing.client_id == "c1"

    moved = recorder.reassign("h1", "shoe.png", 42, "c2")
    assert moved.client_id == "c2"
    assert repo.get_history()[0].client_id == "c2"

    assert recorder.reassign("nope", "shoe.png", 42, "c2") is None


def test_history_context():
    entries = [
        make_entry(filename="a.png", date="2025-01-01", description="First"),
        make_entry(filename="b.png", date="2025-01-02", description="Second"),
    ]

    context = history_context(entries)

    assert "File: a.png\nDate: 2025-01-01\nDescription: First" in context
    assert context.index("a.png") < context.index("b.png")
    assert history_context([]) == ""
