from creative_perf.services.reconciliation.aggregation import (
    aggregate_ads,
    default_date_range,
    filter_by_date_range,
    summarize_clients,
)
from creative_perf.services.reconciliation.filtering import apply_filter
from creative_perf.services.reconciliation.linking import bulk_link, link_creative
from creative_perf.services.reconciliation.matching import CreativeMatcher, match_creative

__all__ = [
    "CreativeMatcher",
    "aggregate_ads",
    "apply_filter",
    "bulk_link",
    "default_date_range",
    "filter_by_date_range",
    "link_creative",
    "match_creative",
    "summarize_clients",
]
