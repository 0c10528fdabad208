from creative_perf.storage.kv_store import (
    ANALYSIS_HISTORY,
    CLIENTS,
    CONFIG,
    LOGGED_IN_USER,
    PERFORMANCE_DATA,
    USERS,
    ConnectionState,
    KeyValueStore,
)
from creative_perf.storage.repository import PerformanceData, Repository

__all__ = [
    "ANALYSIS_HISTORY",
    "CLIENTS",
    "CONFIG",
    "ConnectionState",
    "KeyValueStore",
    "LOGGED_IN_USER",
    "PERFORMANCE_DATA",
    "PerformanceData",
    "Repository",
    "USERS",
]
