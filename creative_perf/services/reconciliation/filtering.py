from __future__ import annotations

from collections.abc import Sequence

from creative_perf.schemas import AggregatedAdPerformance, FilterMode
from creative_perf.settings import settings


def apply_filter(
    rows: Sequence[AggregatedAdPerformance],
    mode: FilterMode | str = FilterMode.ALL,
    *,
    top_n: int | None = None,
) -> list[AggregatedAdPerformance]:
    """Apply a view filter to spend-sorted aggregated rows.

    ``top10`` re-sorts by ROAS descending; ``sorted`` is stable, so equal
    ROAS keeps the incoming spend order.
    """
    mode = FilterMode(mode)
    if mode is FilterMode.MATCHED:
        return [row for row in rows if row.is_matched]
    if mode is FilterMode.TOP_10:
        limit = top_n if top_n is not None else settings.TOP_N_BY_ROAS
        return sorted(rows, key=lambda row: row.roas, reverse=True)[:limit]
    return list(rows)
