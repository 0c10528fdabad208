"""Per-client performance record collections.

Imports are deduplicated on ``uniqueId`` (campaign, ad set, ad, day): a row
already stored for the client is never replaced by a re-import, so manual
links set on stored rows survive.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from creative_perf.schemas import Client, PerformanceRecord
from creative_perf.storage import Repository

logger = logging.getLogger(__name__)


@dataclass
class ImportSummary:
    accounts: list[str] = field(default_factory=list)
    records_added: int = 0
    duplicates_skipped: int = 0
    unknown_accounts: list[str] = field(default_factory=list)
    rows_without_account: int = 0


def merge_records(
    existing: Sequence[PerformanceRecord], incoming: Iterable[PerformanceRecord]
) -> tuple[list[PerformanceRecord], int, int]:
    """Append *incoming* rows whose ``unique_id`` is not yet present.

    Returns ``(merged, added, skipped)``. Duplicates inside *incoming* are
    collapsed too, first occurrence wins.
    """
    seen = {record.unique_id for record in existing}
    merged = list(existing)
    added = skipped = 0
    for record in incoming:
        if record.unique_id in seen:
            skipped += 1
            continue
        seen.add(record.unique_id)
        merged.append(record)
        added += 1
    return merged, added, skipped


def import_records(
    repo: Repository,
    records: Iterable[PerformanceRecord],
    clients: Sequence[Client] | None = None,
) -> ImportSummary:
    """Route parsed report rows to clients by account name and store them.

    A row belongs to the client whose ``meta_account_name`` equals the row's
    ``account_name``; its ``client_id`` is rewritten accordingly. The whole
    performance table is written once.
    """
    clients = list(clients) if clients is not None else repo.get_clients()
    by_account = {c.meta_account_name: c for c in clients if c.meta_account_name}

    summary = ImportSummary()
    incoming: dict[str, list[PerformanceRecord]] = {}
    for record in records:
        if not record.account_name:
            summary.rows_without_account += 1
            continue
        client = by_account.get(record.account_name)
        if client is None:
            if record.account_name not in summary.unknown_accounts:
                summary.unknown_accounts.append(record.account_name)
            continue
        if record.account_name not in summary.accounts:
            summary.accounts.append(record.account_name)
        incoming.setdefault(client.id, []).append(
            record.model_copy(update={"client_id": client.id})
        )

    if not incoming:
        logger.info("Import contained no rows for known clients")
        return summary

    all_data = repo.get_performance_data()
    for client_id, rows in incoming.items():
        merged, added, skipped = merge_records(all_data.get(client_id, []), rows)
        all_data[client_id] = merged
        summary.records_added += added
        summary.duplicates_skipped += skipped

    repo.save_performance_data(all_data)
    logger.info(
        "Import completed: %d records added, %d duplicates skipped, %d accounts",
        summary.records_added,
        summary.duplicates_skipped,
        len(summary.accounts),
    )
    return summary


def delete_client(repo: Repository, client_id: str) -> bool:
    """Erase a client together with its history entries and performance rows.

    Returns ``False`` when the client does not exist.
    """
    clients = repo.get_clients()
    remaining = [c for c in clients if c.id != client_id]
    if len(remaining) == len(clients):
        return False

    logger.warning("Initiating deletion of client %s", client_id)
    repo.save_clients(remaining)
    repo.save_history([h for h in repo.get_history() if h.client_id != client_id])

    perf_data = repo.get_performance_data()
    perf_data.pop(client_id, None)
    repo.save_performance_data(perf_data)
    logger.info("Client %s and all associated data have been deleted", client_id)
    return True
