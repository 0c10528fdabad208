from datetime import date

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from creative_perf.db import get_db
from creative_perf.deps import get_connection, get_repository, get_store
from creative_perf.schemas import (
    AggregatedAdPerformance,
    BulkLinkResultOut,
    Client,
    ClientPerformanceSummary,
    FilterMode,
    ImportRequest,
    ImportResultOut,
    LinkResultOut,
    PerformanceViewOut,
    StorageStatusOut,
)
from creative_perf.services.performance_store import delete_client, import_records
from creative_perf.services.reconciliation import (
    aggregate_ads,
    apply_filter,
    bulk_link,
    default_date_range,
    filter_by_date_range,
    link_creative,
    summarize_clients,
)
from creative_perf.storage import (
    ANALYSIS_HISTORY,
    CLIENTS,
    PERFORMANCE_DATA,
    USERS,
    ConnectionState,
    KeyValueStore,
    Repository,
)

router = APIRouter(tags=["performance"])


def _resolve_window(start: date | None, end: date | None) -> tuple[date, date]:
    default_start, default_end = default_date_range()
    start = start or default_start
    end = end or default_end
    if start > end:
        raise HTTPException(status_code=422, detail="start must not be after end")
    return start, end


def _client_or_404(repo: Repository, client_id: str) -> Client:
    client = repo.get_client(client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


def _aggregate_for_client(
    repo: Repository, client: Client, start: date, end: date
) -> tuple[int, list[AggregatedAdPerformance]]:
    records = filter_by_date_range(repo.get_performance_data().get(client.id, []), start, end)
    rows = aggregate_ads(records, repo.get_history(), currency=client.currency)
    return len(records), rows


def _storage_status(connection: ConnectionState, store: KeyValueStore) -> StorageStatusOut:
    tables = {}
    if connection.connected:
        tables = {
            name: store.exists(name) for name in (CLIENTS, ANALYSIS_HISTORY, PERFORMANCE_DATA, USERS)
        }
    return StorageStatusOut(
        connected=connection.connected, last_error=connection.last_error, tables=tables
    )


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@router.get("/storage/status", response_model=StorageStatusOut, tags=["storage"])
def storage_status(
    connection: ConnectionState = Depends(get_connection),
    store: KeyValueStore = Depends(get_store),
):
    return _storage_status(connection, store)


@router.post("/storage/connect", response_model=StorageStatusOut, tags=["storage"])
def connect_storage(
    db: Session = Depends(get_db),
    connection: ConnectionState = Depends(get_connection),
    store: KeyValueStore = Depends(get_store),
):
    connection.connect(db)
    return _storage_status(connection, store)


@router.delete("/storage", status_code=204, tags=["storage"])
def clear_all_data(store: KeyValueStore = Depends(get_store)):
    store.clear_all_data()


@router.post("/storage/factory-reset", status_code=204, tags=["storage"])
def factory_reset(
    store: KeyValueStore = Depends(get_store),
    connection: ConnectionState = Depends(get_connection),
):
    store.factory_reset()
    connection.disconnect()


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


@router.get("/clients", response_model=list[Client], tags=["clients"])
def list_clients(repo: Repository = Depends(get_repository)):
    return repo.get_clients()


@router.put("/clients", response_model=list[Client], tags=["clients"])
def save_clients(payload: list[Client], repo: Repository = Depends(get_repository)):
    repo.save_clients(payload)
    return payload


@router.delete("/clients/{client_id}", status_code=204, tags=["clients"])
def remove_client(client_id: str, repo: Repository = Depends(get_repository)):
    if not delete_client(repo, client_id):
        raise HTTPException(status_code=404, detail="Client not found")


# ---------------------------------------------------------------------------
# Performance
# ---------------------------------------------------------------------------


@router.post("/performance/import", response_model=ImportResultOut)
def import_performance(payload: ImportRequest, repo: Repository = Depends(get_repository)):
    summary = import_records(repo, payload.records)
    return ImportResultOut(
        accounts=summary.accounts,
        records_added=summary.records_added,
        duplicates_skipped=summary.duplicates_skipped,
        unknown_accounts=summary.unknown_accounts,
        rows_without_account=summary.rows_without_account,
    )


@router.get("/performance/summary", response_model=list[ClientPerformanceSummary])
def performance_summary(
    start: date | None = None,
    end: date | None = None,
    repo: Repository = Depends(get_repository),
):
    start, end = _resolve_window(start, end)
    return summarize_clients(
        repo.get_clients(), repo.get_performance_data(), repo.get_history(), start, end
    )


@router.get("/clients/{client_id}/performance", response_model=PerformanceViewOut)
def client_performance(
    client_id: str,
    start: date | None = None,
    end: date | None = None,
    filter: FilterMode = FilterMode.ALL,
    repo: Repository = Depends(get_repository),
):
    client = _client_or_404(repo, client_id)
    start, end = _resolve_window(start, end)
    records_in_range, rows = _aggregate_for_client(repo, client, start, end)
    ads = apply_filter(rows, filter)
    return PerformanceViewOut(
        client_id=client.id,
        start=start,
        end=end,
        filter=filter,
        records_in_range=records_in_range,
        has_linked_ads=any(ad.is_matched for ad in ads),
        ads=ads,
    )


# ---------------------------------------------------------------------------
# Linking
# ---------------------------------------------------------------------------


@router.post("/clients/{client_id}/ads/link", response_model=LinkResultOut, tags=["linking"])
async def link_ad_creative(
    client_id: str,
    ad_name: str = Form(...),
    file: UploadFile = File(...),
    repo: Repository = Depends(get_repository),
):
    _client_or_404(repo, client_id)
    try:
        outcome = await link_creative(repo, client_id, ad_name, file)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return LinkResultOut(
        ad_name=outcome.ad_name,
        file_name=outcome.file_name,
        file_hash=outcome.file_hash,
        records_updated=outcome.records_updated,
    )


@router.post(
    "/clients/{client_id}/ads/bulk-link", response_model=BulkLinkResultOut, tags=["linking"]
)
async def bulk_link_ad_creatives(
    client_id: str,
    files: list[UploadFile] = File(...),
    start: date | None = None,
    end: date | None = None,
    repo: Repository = Depends(get_repository),
):
    client = _client_or_404(repo, client_id)
    start, end = _resolve_window(start, end)
    _, rows = _aggregate_for_client(repo, client, start, end)
    unmatched = [row for row in rows if not row.is_matched]

    outcome = await bulk_link(repo, client_id, files, unmatched)
    return BulkLinkResultOut(
        linked_count=outcome.linked_count,
        files_supplied=outcome.files_supplied,
        links={ad_name: link.name for ad_name, link in outcome.links.items()},
        failed_files=outcome.failed_files,
    )
