from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

import duckdb

from git_riskflow.domain.errors import CacheInconsistencyError
from git_riskflow.domain.models import SNAPSHOT_SCHEMA_VERSION, Snapshot
from git_riskflow.infrastructure.serialization import (
    decode_snapshot,
    digest,
    encode_snapshot,
)

logger = logging.getLogger(__name__)

_DEFAULT_DB_DIR = Path.home() / ".git-riskflow"
_DEFAULT_DB_PATH = _DEFAULT_DB_DIR / "snapshots.db"


class DuckDBSnapshotStore:
    """Snapshot cache keyed by revision id, persisted to DuckDB.

    Entries that fail validation on read are dropped and reported as misses.
    """

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            self._db_path = _DEFAULT_DB_PATH
        elif db_path == ":memory:":
            self._db_path = None
        else:
            self._db_path = Path(db_path)
        if self._db_path is not None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = duckdb.connect(str(self._db_path))
        else:
            self._conn = duckdb.connect(":memory:")
        self._lock = threading.Lock()
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS snapshots (
                revision_id    VARCHAR PRIMARY KEY,
                schema_version INTEGER NOT NULL,
                digest         VARCHAR NOT NULL,
                created_at     TIMESTAMP NOT NULL,
                payload        VARCHAR NOT NULL
            )
        """)

    def read(self, revision_id: str) -> Snapshot | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT schema_version, digest, payload FROM snapshots WHERE revision_id = ?",
                [revision_id],
            ).fetchone()
            if row is None:
                return None
            schema_version, stored_digest, payload = row
            try:
                snapshot = self._validate(revision_id, schema_version, stored_digest, payload)
            except CacheInconsistencyError as exc:
                logger.info("Discarding cached snapshot %s: %s", revision_id, exc)
                self._delete(revision_id)
                return None
            logger.debug("Snapshot cache hit for %s", revision_id)
            return snapshot

    @staticmethod
    def _validate(
        revision_id: str, schema_version: int, stored_digest: str, payload: str,
    ) -> Snapshot:
        if schema_version != SNAPSHOT_SCHEMA_VERSION:
            raise CacheInconsistencyError(
                "Schema version mismatch",
                {"stored": str(schema_version), "expected": str(SNAPSHOT_SCHEMA_VERSION)},
            )
        if digest(payload) != stored_digest:
            raise CacheInconsistencyError("Digest mismatch")
        snapshot = decode_snapshot(payload)
        if snapshot.revision_id != revision_id:
            raise CacheInconsistencyError(
                "Revision id mismatch", {"stored": snapshot.revision_id},
            )
        if snapshot.schema_version != SNAPSHOT_SCHEMA_VERSION:
            raise CacheInconsistencyError("Payload schema version mismatch")
        if encode_snapshot(snapshot) != payload:
            raise CacheInconsistencyError("Payload is not in canonical form")
        return snapshot

    def write(self, snapshot: Snapshot) -> None:
        payload = encode_snapshot(snapshot)
        now = datetime.now(timezone.utc)
        with self._lock:
            self._conn.begin()
            try:
                self._conn.execute(
                    "INSERT OR REPLACE INTO snapshots VALUES (?, ?, ?, ?, ?)",
                    [snapshot.revision_id, snapshot.schema_version,
                     digest(payload), now, payload],
                )
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def invalidate(self, revision_id: str) -> None:
        with self._lock:
            self._delete(revision_id)

    def _delete(self, revision_id: str) -> None:
        self._conn.execute("DELETE FROM snapshots WHERE revision_id = ?", [revision_id])

    def list_revisions(self) -> list[dict]:
        """Return cached revisions ordered by created_at descending."""
        with self._lock:
            result = self._conn.execute(
                """SELECT revision_id, schema_version, created_at
                   FROM snapshots
                   ORDER BY created_at DESC, revision_id"""
            ).fetchall()
        columns = ["revision_id", "schema_version", "created_at"]
        return [dict(zip(columns, row)) for row in result]

    def close(self) -> None:
        """Close the DuckDB connection."""
        with self._lock:
            self._conn.close()
