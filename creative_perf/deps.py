"""FastAPI dependencies for storage access."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from creative_perf.db import get_db
from creative_perf.services.analysis import AnalysisRecorder
from creative_perf.services.analysis_cache import AnalysisCache
from creative_perf.storage import ConnectionState, KeyValueStore, Repository


def get_connection(request: Request) -> ConnectionState:
    return request.app.state.storage_connection


def get_store(
    db: Session = Depends(get_db),
    connection: ConnectionState = Depends(get_connection),
) -> KeyValueStore:
    return KeyValueStore(db, connection)


def get_repository(store: KeyValueStore = Depends(get_store)) -> Repository:
    return Repository(store)


def get_recorder(
    repo: Repository = Depends(get_repository),
    db: Session = Depends(get_db),
) -> AnalysisRecorder:
    return AnalysisRecorder(repo, AnalysisCache(db))
