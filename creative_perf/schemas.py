"""Pydantic schemas for persisted records, derived views and API payloads.

Persisted tables and API responses use the camelCase field names of the
imported ad reports; Python code addresses fields by their snake_case names.
"""

from __future__ import annotations

import enum
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True)


class FilterMode(str, enum.Enum):
    ALL = "all"
    MATCHED = "matched"
    TOP_10 = "top10"


class FormatGroup(str, enum.Enum):
    SQUARE_LIKE = "SQUARE_LIKE"
    VERTICAL = "VERTICAL"


Language = Literal["es", "en"]
FileType = Literal["image", "video"]


# ---------------------------------------------------------------------------
# Persisted shapes
# ---------------------------------------------------------------------------


class Client(CamelModel):
    id: str
    name: str
    logo: str = ""
    currency: str = "EUR"
    user_id: str = ""
    meta_account_name: str | None = None


class User(CamelModel):
    id: str
    username: str
    password: str
    role: Literal["admin", "user"] = "user"


class AnalysisHistoryEntry(CamelModel):
    client_id: str
    filename: str
    hash: str
    size: int = 0
    date: str
    description: str = ""
    data_url: str = ""
    file_type: FileType = "image"


def build_unique_id(campaign_name: str, ad_set_name: str, ad_name: str, day: str) -> str:
    return f"{campaign_name}_{ad_set_name}_{ad_name}_{day}"


class PerformanceRecord(CamelModel):
    """One report row per (campaign, ad set, ad, day) for a client."""

    client_id: str = ""
    unique_id: str = ""
    campaign_name: str = ""
    ad_set_name: str = ""
    ad_name: str = ""
    day: str = ""
    account_name: str = ""
    image_video_presentation: str = ""

    # Core metrics
    spend: float = 0.0
    impressions: int = 0
    clicks_all: int = 0
    purchases: float = 0.0
    purchase_value: float = 0.0

    # Secondary metrics
    reach: int = 0
    frequency: float = 0.0
    landing_page_views: float = 0.0
    cpm: float = 0.0
    ctr_all: float = 0.0
    cpc_all: float = 0.0
    video_plays_3s: float = 0.0
    checkouts_initiated: float = 0.0
    purchase_rate: float = 0.0
    page_likes: float = 0.0
    adds_to_cart: float = 0.0
    checkouts_initiated_on_website: float = 0.0
    link_clicks: int = 0
    payment_info_adds: float = 0.0
    page_engagement: float = 0.0
    post_comments: float = 0.0
    post_interactions: float = 0.0
    post_reactions: float = 0.0
    post_shares: float = 0.0
    ctr_link: float = 0.0
    attention: float = 0.0
    desire: float = 0.0
    interest: float = 0.0
    video_plays_25percent: float = 0.0
    video_plays_50percent: float = 0.0
    video_plays_75percent: float = 0.0
    video_plays_95percent: float = 0.0
    video_plays_100percent: float = 0.0
    video_play_rate_3s: float = 0.0
    aov: float = 0.0
    lp_view_rate: float = 0.0
    adc_to_lpv: float = 0.0
    landing_conversion_rate: float = 0.0
    percent_purchases: float = 0.0
    visualizations: float = 0.0
    cvr_link_click: float = 0.0
    video_retention_proprietary: float = 0.0
    video_retention_meta: float = 0.0
    video_average_play_time: float = 0.0
    thru_plays: float = 0.0
    video_plays: float = 0.0
    video_plays_2s_continuous_unique: float = 0.0
    ctr_unique_link: float = 0.0

    # Descriptive attributes
    campaign_delivery: str = ""
    ad_set_delivery: str = ""
    ad_delivery: str = ""
    campaign_budget: str = ""
    campaign_budget_type: str = ""
    included_custom_audiences: str = ""
    excluded_custom_audiences: str = ""
    bid: str = ""
    bid_type: str = ""
    website_url: str = ""
    currency: str = "EUR"
    objective: str = ""
    purchase_type: str = ""
    report_start: str = ""
    report_end: str = ""
    video_capture: str = ""
    image_id: str = ""
    image_name: str = ""

    # Set only by manual / bulk linking
    linked_file_name: str | None = None
    linked_file_hash: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        # Spreadsheet exports leave empty cells; treat them as the field default.
        field = cls.model_fields[info.field_name]
        if (value is None or value == "") and not field.is_required():
            return field.default
        return value

    @model_validator(mode="after")
    def _fill_unique_id(self) -> "PerformanceRecord":
        if not self.unique_id:
            self.unique_id = build_unique_id(
                self.campaign_name, self.ad_set_name, self.ad_name, self.day
            )
        return self


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


class AggregatedAdPerformance(CamelModel):
    ad_name: str
    image_video_presentation: str
    filename: str
    spend: float
    purchases: float
    purchase_value: float
    impressions: int
    clicks: int
    roas: float
    cpa: float
    cpm: float
    ctr: float
    is_matched: bool
    creative_description: str | None = None
    currency: str
    in_multiple_ad_sets: bool
    creative_data_url: str | None = None
    creative_type: FileType | None = None


class ClientPerformanceSummary(Client):
    total_spend: float = 0.0
    roas: float = 0.0
    total_ads: int = 0
    matched_count: int = 0


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class StorageStatusOut(CamelModel):
    connected: bool
    last_error: str | None = None
    tables: dict[str, bool] = Field(default_factory=dict)


class ImportRequest(CamelModel):
    records: list[PerformanceRecord]


class ImportResultOut(CamelModel):
    accounts: list[str] = Field(default_factory=list)
    records_added: int = 0
    duplicates_skipped: int = 0
    unknown_accounts: list[str] = Field(default_factory=list)
    rows_without_account: int = 0


class PerformanceViewOut(CamelModel):
    client_id: str
    start: date
    end: date
    filter: FilterMode
    records_in_range: int
    has_linked_ads: bool
    ads: list[AggregatedAdPerformance]


class LinkResultOut(CamelModel):
    ad_name: str
    file_name: str
    file_hash: str
    records_updated: int


class BulkLinkResultOut(CamelModel):
    linked_count: int
    files_supplied: int
    links: dict[str, str] = Field(default_factory=dict)
    failed_files: list[str] = Field(default_factory=list)


class CreativeInfoOut(CamelModel):
    filename: str
    hash: str
    size: int
    file_type: FileType
    width: int | None = None
    height: int | None = None
    format: Literal["square", "vertical"] | None = None
    existing_analysis: AnalysisHistoryEntry | None = None


class CachedAnalysisOut(CamelModel):
    cache_key: str
    result: dict[str, Any]


class AnalysisRecordOut(CamelModel):
    recorded: bool
    cache_key: str
    entry: AnalysisHistoryEntry | None = None


class ReassignRequest(CamelModel):
    hash: str
    filename: str
    size: int
    client_id: str


class HistoryContextOut(CamelModel):
    client_id: str
    entries: int
    context: str
