"""Typed accessors over :class:`KeyValueStore` tables."""

from __future__ import annotations

from typing import Any

from creative_perf.schemas import (
    AnalysisHistoryEntry,
    Client,
    PerformanceRecord,
    User,
)
from creative_perf.storage.kv_store import (
    ANALYSIS_HISTORY,
    CLIENTS,
    CONFIG,
    LOGGED_IN_USER,
    PERFORMANCE_DATA,
    USERS,
    KeyValueStore,
)

PerformanceData = dict[str, list[PerformanceRecord]]


def _dump(models) -> list[dict[str, Any]]:
    return [m.model_dump(by_alias=True, mode="json") for m in models]


class Repository:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def get_users(self) -> list[User]:
        return [User.model_validate(u) for u in self.store.get(USERS, [])]

    def save_users(self, users: list[User]) -> None:
        self.store.set(USERS, _dump(users))

    def get_logged_in_user(self) -> User | None:
        data = self.store.get(LOGGED_IN_USER, None)
        return User.model_validate(data) if data else None

    def save_logged_in_user(self, user: User | None) -> None:
        self.store.set(LOGGED_IN_USER, user.model_dump(by_alias=True, mode="json") if user else None)

    def get_clients(self) -> list[Client]:
        return [Client.model_validate(c) for c in self.store.get(CLIENTS, [])]

    def save_clients(self, clients: list[Client]) -> None:
        self.store.set(CLIENTS, _dump(clients))

    def get_client(self, client_id: str) -> Client | None:
        return next((c for c in self.get_clients() if c.id == client_id), None)

    def get_history(self) -> list[AnalysisHistoryEntry]:
        return [AnalysisHistoryEntry.model_validate(h) for h in self.store.get(ANALYSIS_HISTORY, [])]

    def save_history(self, history: list[AnalysisHistoryEntry]) -> None:
        self.store.set(ANALYSIS_HISTORY, _dump(history))

    def get_performance_data(self) -> PerformanceData:
        raw = self.store.get(PERFORMANCE_DATA, {})
        return {
            client_id: [PerformanceRecord.model_validate(r) for r in records]
            for client_id, records in raw.items()
        }

    def save_performance_data(self, data: PerformanceData) -> None:
        self.store.set(
            PERFORMANCE_DATA,
            {client_id: _dump(records) for client_id, records in data.items()},
        )

    def get_config(self) -> dict[str, Any] | None:
        return self.store.get(CONFIG, None)

    def save_config(self, config: dict[str, Any]) -> None:
        self.store.set(CONFIG, config)
