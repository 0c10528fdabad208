import json
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from creative_perf.deps import get_recorder, get_repository
from creative_perf.schemas import (
    AnalysisHistoryEntry,
    AnalysisRecordOut,
    CachedAnalysisOut,
    CreativeInfoOut,
    FormatGroup,
    HistoryContextOut,
    Language,
    ReassignRequest,
)
from creative_perf.services.analysis import AnalysisRecorder, history_context
from creative_perf.services.history import BoundedHistory
from creative_perf.storage import Repository
from creative_perf.utils.creative_utils import CreativeProcessor

logger = logging.getLogger(__name__)

analysis_router = APIRouter(tags=["analysis"])


def _require_client(repo: Repository, client_id: str) -> None:
    if repo.get_client(client_id) is None:
        raise HTTPException(status_code=404, detail="Client not found")


# ---------------------------------------------------------------------------
# Creatives
# ---------------------------------------------------------------------------


@analysis_router.post("/creatives/inspect", response_model=CreativeInfoOut)
async def inspect_creative(
    file: UploadFile = File(...),
    recorder: AnalysisRecorder = Depends(get_recorder),
):
    processor = CreativeProcessor()
    fingerprint = await processor.fingerprint_upload(file)
    info = processor.inspect(fingerprint)
    existing = recorder.find_existing(fingerprint.hash, fingerprint.name, fingerprint.size)
    return CreativeInfoOut(**info, existing_analysis=existing)


# ---------------------------------------------------------------------------
# Analyses
# ---------------------------------------------------------------------------


@analysis_router.get("/analyses/cached", response_model=CachedAnalysisOut)
def get_cached_analysis(
    hash: str,
    client_id: str,
    language: Language,
    format_group: FormatGroup,
    recorder: AnalysisRecorder = Depends(get_recorder),
):
    key, result = recorder.lookup_cached(hash, client_id, language, format_group)
    if result is None:
        raise HTTPException(status_code=404, detail="No cached analysis")
    return CachedAnalysisOut(cache_key=key, result=result)


@analysis_router.get("/analyses/existing", response_model=AnalysisHistoryEntry)
def get_existing_analysis(
    hash: str,
    filename: str,
    size: int,
    recorder: AnalysisRecorder = Depends(get_recorder),
):
    existing = recorder.find_existing(hash, filename, size)
    if existing is None:
        raise HTTPException(status_code=404, detail="No existing analysis")
    return existing


@analysis_router.post("/analyses/reassign", response_model=AnalysisHistoryEntry)
def reassign_analysis(
    payload: ReassignRequest,
    repo: Repository = Depends(get_repository),
    recorder: AnalysisRecorder = Depends(get_recorder),
):
    _require_client(repo, payload.client_id)
    entry = recorder.reassign(payload.hash, payload.filename, payload.size, payload.client_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="No existing analysis")
    return entry


@analysis_router.post("/analyses", response_model=AnalysisRecordOut)
async def record_analysis(
    file: UploadFile = File(...),
    client_id: str = Form(...),
    language: Language = Form("es"),
    format_group: FormatGroup = Form(...),
    result: str = Form(...),
    repo: Repository = Depends(get_repository),
    recorder: AnalysisRecorder = Depends(get_recorder),
):
    _require_client(repo, client_id)
    try:
        parsed = json.loads(result)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Result is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=422, detail="Result must be a JSON object")

    processor = CreativeProcessor()
    fingerprint = await processor.fingerprint_upload(file)
    key, entry = recorder.record(
        client_id=client_id,
        filename=fingerprint.name,
        creative_hash=fingerprint.hash,
        size=fingerprint.size,
        file_type=processor.media_type(fingerprint.content_type),
        data_url=processor.to_data_url(fingerprint.data, fingerprint.content_type),
        language=language,
        format_group=format_group,
        result=parsed,
    )
    return AnalysisRecordOut(recorded=entry is not None, cache_key=key, entry=entry)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@analysis_router.get("/clients/{client_id}/history", response_model=list[AnalysisHistoryEntry])
def client_history(client_id: str, repo: Repository = Depends(get_repository)):
    _require_client(repo, client_id)
    return BoundedHistory(repo.get_history()).for_client(client_id)


@analysis_router.get("/clients/{client_id}/history/context", response_model=HistoryContextOut)
def client_history_context(
    client_id: str,
    limit: int | None = None,
    repo: Repository = Depends(get_repository),
):
    _require_client(repo, client_id)
    entries = BoundedHistory(repo.get_history()).recent_for_client(client_id, limit)
    return HistoryContextOut(client_id=client_id, entries=len(entries), context=history_context(entries))


@analysis_router.delete("/history", status_code=204)
def clear_history(repo: Repository = Depends(get_repository)):
    repo.save_history([])
    logger.info("Analysis history cleared")
