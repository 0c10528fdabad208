from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Look for .env in the project root (one level up from this file)
_env_file = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(_env_file), env_file_encoding="utf-8")

    DATABASE_URL: str = "sqlite+pysqlite:///./creative_performance.db"

    # Storage quota per serialized table, mirrors browser storage limits
    STORAGE_MAX_TABLE_BYTES: int = 5 * 1024 * 1024

    # Creative analysis cache / history
    ANALYSIS_CACHE_TTL_HOURS: int = 48
    ANALYSIS_CACHE_KEY_PREFIX: str = "metaAdCreativeAnalysis_"
    ANALYSIS_HISTORY_MAX_ENTRIES: int = 50
    ANALYSIS_HISTORY_CONTEXT_ENTRIES: int = 15

    # Performance views
    DEFAULT_DATE_RANGE_DAYS: int = 7
    TOP_N_BY_ROAS: int = 10


settings = Settings()
