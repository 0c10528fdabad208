"""Key-value table store backed by the ``storage_tables`` relation.

Every logical table is written atomically as a single JSON blob. Access is
gated by an explicit :class:`ConnectionState` owned by the caller; only the
``config`` table may be read or written before a connection is established.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from creative_perf.exceptions import (
    StorageError,
    StorageNotConnectedError,
    StorageQuotaExceededError,
)
from creative_perf.models import AnalysisCacheEntry, StorageTable
from creative_perf.settings import settings

logger = logging.getLogger(__name__)

CLIENTS = "clients"
ANALYSIS_HISTORY = "analysis_history"
PERFORMANCE_DATA = "performance_data"
USERS = "users"
LOGGED_IN_USER = "logged_in_user"
CONFIG = "config"

USER_DATA_TABLES = (CLIENTS, ANALYSIS_HISTORY, PERFORMANCE_DATA, USERS, LOGGED_IN_USER)

NOT_CONNECTED_MESSAGE = "Database not connected. Please check configuration in Settings."


@dataclass
class ConnectionState:
    """Connection status shared by every store created for one application."""

    connected: bool = False
    last_error: str | None = None

    def connect(self, db: Session) -> bool:
        """Ping the database and record whether it answered."""
        try:
            db.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            self.connected = False
            self.last_error = str(exc)
            logger.error("Database connection test failed: %s", exc)
            return False
        self.connected = True
        self.last_error = None
        logger.info("Database connection established")
        return True

    def disconnect(self) -> None:
        self.connected = False


class KeyValueStore:
    """``get``/``set`` access to whole serialized tables."""

    def __init__(
        self,
        db: Session,
        connection: ConnectionState,
        *,
        max_table_bytes: int | None = None,
    ) -> None:
        self.db = db
        self.connection = connection
        self.max_table_bytes = (
            max_table_bytes if max_table_bytes is not None else settings.STORAGE_MAX_TABLE_BYTES
        )

    # ------------------------------------------------------------------
    # guards
    # ------------------------------------------------------------------

    def _check_connection(self, table: str | None = None) -> None:
        if table == CONFIG:
            return
        if not self.connection.connected:
            logger.error("[DB] %s", NOT_CONNECTED_MESSAGE)
            raise StorageNotConnectedError(NOT_CONNECTED_MESSAGE, details={"table": table})

    def _check_quota(self, table: str, data: Any) -> None:
        size_bytes = len(json.dumps(data).encode("utf-8"))
        if size_bytes > self.max_table_bytes:
            logger.error(
                "[DB] Table %s is %d bytes, above the %d byte quota",
                table,
                size_bytes,
                self.max_table_bytes,
            )
            raise StorageQuotaExceededError(
                f'Storage is full. Could not save data to table "{table}". '
                "Free up space from the Control Panel.",
                details={
                    "table": table,
                    "size_bytes": size_bytes,
                    "max_table_bytes": self.max_table_bytes,
                },
            )

    # ------------------------------------------------------------------
    # read / write
    # ------------------------------------------------------------------

    def get(self, table: str, default: Any = None) -> Any:
        """Return the stored blob for *table*, or *default* when absent.

        Raises :class:`StorageError` when the table cannot be read.
        """
        self._check_connection(table)
        logger.debug("[DB] Executing: SELECT * FROM %s;", table)
        try:
            row = self.db.get(StorageTable, table)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("[DB] Error reading table %s: %s", table, exc)
            raise StorageError(
                f'Could not read data from table "{table}".',
                details={"table": table, "error": str(exc)},
            ) from exc
        if row is None or row.data is None:
            return default
        return copy.deepcopy(row.data)

    def set(self, table: str, data: Any) -> None:
        """Replace the whole content of *table* with *data*.

        On failure the previous content is kept and a :class:`StorageError`
        is raised.
        """
        self._check_connection(table)
        self._check_quota(table, data)
        logger.debug("[DB] Executing: UPDATE %s with new data...", table)
        try:
            row = self.db.get(StorageTable, table)
            if row is None:
                self.db.add(StorageTable(table_name=table, data=data))
            else:
                row.data = data
                flag_modified(row, "data")
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("[DB] Error writing to table %s: %s", table, exc)
            raise StorageError(
                f'Could not save data to table "{table}".',
                details={"table": table, "error": str(exc)},
            ) from exc

    def exists(self, table: str) -> bool:
        self._check_connection(table)
        return self.db.get(StorageTable, table) is not None

    # ------------------------------------------------------------------
    # maintenance
    # ------------------------------------------------------------------

    def clear_table(self, table: str) -> None:
        self._check_connection(table)
        logger.info("[DB] Executing: DELETE FROM %s;", table)
        self._delete(delete(StorageTable).where(StorageTable.table_name == table))

    def clear_all_data(self) -> None:
        """Remove every user-data table and all cached analyses."""
        self._check_connection()
        logger.warning("[DB] Executing: CLEAR ALL USER DATA;")
        self._delete(
            delete(StorageTable).where(StorageTable.table_name.in_(USER_DATA_TABLES)),
            delete(AnalysisCacheEntry),
        )

    def factory_reset(self) -> None:
        """Remove everything, configuration included. Needs no connection."""
        logger.warning("[DB] Executing: FACTORY RESET;")
        self._delete(delete(StorageTable), delete(AnalysisCacheEntry))

    def table_names(self) -> list[str]:
        self._check_connection()
        return list(self.db.execute(select(StorageTable.table_name)).scalars().all())

    def _delete(self, *statements) -> None:
        try:
            for statement in statements:
                self.db.execute(statement)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(
                "Could not delete data from the database.",
                details={"error": str(exc)},
            ) from exc
