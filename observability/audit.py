from __future__ import annotations

import json
import os
import sqlite3
import threading
import time
from typing import Any, Dict, List, Optional


class AuditLog:
    """
    Optional SQLite audit log of signer operations.

    OFF by default. Enable by setting `AUDIT_DB_PATH`.

    IMPORTANT:
    - Only hashes and a small summary are stored. Serialized signed payloads and
      key material are never written here.
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._explicit_path = db_path

    def enabled(self) -> bool:
        return bool(self._db_path())

    def append(
        self,
        *,
        ts_ms: int,
        request_id: str,
        operation: str,
        ok: bool,
        error_code: str | None = None,
        chain_id: int | None = None,
        tx_hash: str | None = None,
        summary: Dict[str, Any] | None = None,
    ) -> None:
        conn = self._get_conn()
        if conn is None:
            return
        payload = json.dumps(summary or {}, sort_keys=True, default=str)
        with self._lock:
            conn.execute(
                """
                INSERT INTO audit_events(ts_ms, request_id, operation, ok, error_code, chain_id, tx_hash, summary_json)
                VALUES(?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(ts_ms),
                    str(request_id),
                    str(operation),
                    1 if ok else 0,
                    error_code,
                    chain_id,
                    tx_hash,
                    payload,
                ),
            )
            conn.commit()

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        conn = self._get_conn()
        if conn is None:
            return []
        with self._lock:
            rows = conn.execute(
                """
                SELECT ts_ms, request_id, operation, ok, error_code, chain_id, tx_hash, summary_json
                FROM audit_events ORDER BY id DESC LIMIT ?
                """,
                (int(limit),),
            ).fetchall()
        return [
            {
                "ts_ms": r[0],
                "request_id": r[1],
                "operation": r[2],
                "ok": bool(r[3]),
                "error_code": r[4],
                "chain_id": r[5],
                "tx_hash": r[6],
                "summary": json.loads(r[7]),
            }
            for r in rows
        ]

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _db_path(self) -> str:
        return (self._explicit_path or os.getenv("AUDIT_DB_PATH") or "").strip()

    def _get_conn(self) -> Optional[sqlite3.Connection]:
        path = self._db_path()
        if not path:
            return None
        with self._lock:
            if self._conn is None:
                self._conn = sqlite3.connect(path, check_same_thread=False)
                self._conn.execute("PRAGMA journal_mode=WAL;")
                self._conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS audit_events(
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        ts_ms INTEGER NOT NULL,
                        request_id TEXT NOT NULL,
                        operation TEXT NOT NULL,
                        ok INTEGER NOT NULL,
                        error_code TEXT,
                        chain_id INTEGER,
                        tx_hash TEXT,
                        summary_json TEXT NOT NULL
                    )
                    """
                )
                self._conn.commit()
            return self._conn


def now_ms() -> int:
    return int(time.time() * 1000)
