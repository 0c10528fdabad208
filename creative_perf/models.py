from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from creative_perf.db import Base


class StorageTable(Base):
    """One serialized blob per logical table (clients, performance_data, ...)."""

    __tablename__ = "storage_tables"

    table_name: Mapped[str] = mapped_column(Text, primary_key=True)
    data: Mapped[Any] = mapped_column(JSONB().with_variant(JSON, "sqlite"), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class AnalysisCacheEntry(Base):
    __tablename__ = "analysis_cache"
    __table_args__ = (Index("ix_analysis_cache_created", "created_at"),)

    cache_key: Mapped[str] = mapped_column(Text, primary_key=True)
    result_json: Mapped[dict] = mapped_column(
        JSONB().with_variant(JSON, "sqlite"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
