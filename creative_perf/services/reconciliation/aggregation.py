from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timedelta

from creative_perf.schemas import (
    AggregatedAdPerformance,
    AnalysisHistoryEntry,
    Client,
    ClientPerformanceSummary,
    PerformanceRecord,
)
from creative_perf.services.reconciliation.matching import CreativeMatcher
from creative_perf.settings import settings

logger = logging.getLogger(__name__)

_FILENAME_SPLIT = re.compile(r"_|\s\(")
_MEDIA_EXTENSIONS = (".png", ".mov", ".mp4", ".jpg")


def _safe_div(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def parse_day(value: str | None) -> date | None:
    """Parse a report day given as ``DD/MM/YYYY`` or ISO ``YYYY-MM-DD[...]``."""
    if not value:
        return None
    value = value.strip()
    parts = value.split("/")
    if len(parts) == 3:
        try:
            day, month, year = (int(p) for p in parts)
            return date(year, month, day)
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def default_date_range(
    today: date | None = None, days: int | None = None
) -> tuple[date, date]:
    end = today or date.today()
    return end - timedelta(days=days or settings.DEFAULT_DATE_RANGE_DAYS), end


def filter_by_date_range(
    records: Iterable[PerformanceRecord], start: date, end: date
) -> list[PerformanceRecord]:
    """Keep records whose day falls inside ``[start, end]`` (both inclusive)."""
    kept = []
    for record in records:
        day = parse_day(record.day)
        if day is not None and start <= day <= end:
            kept.append(record)
    return kept


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def extract_filename(presentation: str | None) -> str:
    """Best-effort original filename from a report presentation string.

    ``"clip.mp4_1029 (ID 1)"`` -> ``"clip.mp4"``; anything not ending in a
    known media extension is returned unchanged.
    """
    if not presentation:
        return "N/A"
    head = _FILENAME_SPLIT.split(presentation, maxsplit=1)[0]
    if head.lower().endswith(_MEDIA_EXTENSIONS):
        return head
    return presentation


def group_by_ad_name(records: Iterable[PerformanceRecord]) -> dict[str, list[PerformanceRecord]]:
    groups: dict[str, list[PerformanceRecord]] = defaultdict(list)
    for record in records:
        if not record.ad_name:
            continue
        groups[record.ad_name].append(record)
    return dict(groups)


def aggregate_ad(
    ad_name: str,
    records: Sequence[PerformanceRecord],
    history: Sequence[AnalysisHistoryEntry],
    *,
    currency: str,
    matcher: CreativeMatcher,
) -> AggregatedAdPerformance:
    spend = sum(r.spend for r in records)
    purchases = sum(r.purchases for r in records)
    purchase_value = sum(r.purchase_value for r in records)
    impressions = sum(r.impressions for r in records)
    clicks = sum(r.clicks_all for r in records)

    representative = records[0]
    match = matcher.match(representative, history)

    return AggregatedAdPerformance(
        ad_name=ad_name,
        image_video_presentation=representative.image_video_presentation,
        filename=extract_filename(representative.image_video_presentation),
        spend=spend,
        purchases=purchases,
        purchase_value=purchase_value,
        impressions=impressions,
        clicks=clicks,
        roas=_safe_div(purchase_value, spend),
        cpa=_safe_div(spend, purchases),
        cpm=_safe_div(spend, impressions) * 1000,
        ctr=_safe_div(clicks, impressions) * 100,
        is_matched=match is not None,
        creative_description=match.description if match else None,
        currency=currency,
        in_multiple_ad_sets=len({r.ad_set_name for r in records}) > 1,
        creative_data_url=match.data_url if match else None,
        creative_type=match.file_type if match else None,
    )


def aggregate_ads(
    records: Iterable[PerformanceRecord],
    history: Sequence[AnalysisHistoryEntry],
    *,
    currency: str,
    matcher: CreativeMatcher | None = None,
) -> list[AggregatedAdPerformance]:
    """One row per distinct non-empty ad name, sorted by spend descending.

    *records* should already be restricted to one client and date window.
    """
    matcher = matcher or CreativeMatcher()
    groups = group_by_ad_name(records)
    logger.info("Found %d unique ad names to aggregate", len(groups))

    rows = [
        aggregate_ad(ad_name, group, history, currency=currency, matcher=matcher)
        for ad_name, group in groups.items()
    ]
    rows.sort(key=lambda row: row.spend, reverse=True)
    return rows


def summarize_clients(
    clients: Iterable[Client],
    performance_data: Mapping[str, Sequence[PerformanceRecord]],
    history: Sequence[AnalysisHistoryEntry],
    start: date,
    end: date,
    *,
    matcher: CreativeMatcher | None = None,
) -> list[ClientPerformanceSummary]:
    """Per-client totals over the window: spend, ROAS, ads and matched ads."""
    matcher = matcher or CreativeMatcher()
    summaries = []
    for client in clients:
        base = client.model_dump()
        records = filter_by_date_range(performance_data.get(client.id, []), start, end)
        if not records:
            summaries.append(ClientPerformanceSummary(**base))
            continue

        total_spend = sum(r.spend for r in records)
        total_value = sum(r.purchase_value for r in records)
        groups = group_by_ad_name(records)
        matched_count = sum(
            1 for group in groups.values() if matcher.match(group[0], history) is not None
        )
        summaries.append(
            ClientPerformanceSummary(
                **base,
                total_spend=total_spend,
                roas=_safe_div(total_value, total_spend),
                total_ads=len(groups),
                matched_count=matched_count,
            )
        )
    return summaries
