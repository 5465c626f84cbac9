"""Audit Ledger - append-only, hash-chained event log."""

import json
import logging
import sqlite3
import threading
from datetime import datetime
from typing import Optional, List

from fingate.ledger.models import LedgerEntry, EventType, ChainValidationResult


logger = logging.getLogger(__name__)


class AuditLedger:
    """
    Append-only Audit Ledger with hash-chaining.

    Features:
    - Append-only design (no updates/deletes)
    - Each entry links to previous via hash
    - Chain validation detects tampering
    - SQLite storage for persistence
    - Per-request and per-caller queries

    Appends are serialized by a lock so the chain stays linear when
    events arrive from concurrent requests.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the audit ledger.

        Args:
            db_path: Path to SQLite database. If None, uses in-memory DB.
        """
        self.db_path = db_path or ":memory:"
        self._lock = threading.RLock()

        # Keep persistent connection for in-memory DBs
        self._conn: Optional[sqlite3.Connection] = None
        if self.db_path == ":memory:":
            self._conn = sqlite3.connect(":memory:", check_same_thread=False)

        self._init_db()

        # Cache last hash for faster appends
        self._last_hash: str = self._get_last_hash()

        logger.info(f"Audit Ledger initialized: {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection."""
        if self._conn:
            return self._conn
        return sqlite3.connect(self.db_path)

    def _close_connection(self, conn: sqlite3.Connection) -> None:
        """Close connection if not persistent."""
        if conn is not self._conn:
            conn.close()

    def log_event(
        self,
        event_type: EventType,
        payload: dict,
        request_id: Optional[str] = None,
        caller_id: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Append an event to the ledger.

        Args:
            event_type: Type of event
            payload: Event data (JSON-serializable)
            request_id: Related request ID
            caller_id: Caller that triggered the event

        Returns:
            Created LedgerEntry
        """
        with self._lock:
            entry = LedgerEntry(
                event_type=event_type,
                payload=payload,
                previous_hash=self._last_hash,
                request_id=request_id,
                caller_id=caller_id,
            )

            self._store_entry(entry)
            self._last_hash = entry.hash

        logger.debug(f"Ledger append: {event_type.value} [{entry.entry_id}]")
        return entry

    def get_entry(self, entry_id: str) -> Optional[LedgerEntry]:
        """Get a specific entry by ID."""
        rows = self._query("SELECT * FROM ledger WHERE entry_id = ?", (entry_id,))
        return self._row_to_entry(rows[0]) if rows else None

    def get_entries_by_request(self, request_id: str) -> List[LedgerEntry]:
        """Get all entries for a request, oldest first."""
        rows = self._query(
            "SELECT * FROM ledger WHERE request_id = ? ORDER BY seq ASC",
            (request_id,),
        )
        return [self._row_to_entry(row) for row in rows]

    def get_entries_by_caller(self, caller_id: str, limit: int = 50) -> List[LedgerEntry]:
        """Get recent entries for a caller, newest first."""
        rows = self._query(
            """SELECT * FROM ledger
               WHERE caller_id = ?
               ORDER BY seq DESC
               LIMIT ?""",
            (caller_id, limit),
        )
        return [self._row_to_entry(row) for row in rows]

    def get_recent_entries(self, limit: int = 20) -> List[LedgerEntry]:
        """Get most recent entries, newest first."""
        rows = self._query("SELECT * FROM ledger ORDER BY seq DESC LIMIT ?", (limit,))
        return [self._row_to_entry(row) for row in rows]

    def validate_chain(self) -> ChainValidationResult:
        """
        Validate the entire hash chain.

        Recomputes each entry's hash and checks that every entry's
        previous_hash matches its predecessor.
        """
        rows = self._query("SELECT * FROM ledger ORDER BY seq ASC")

        if not rows:
            return ChainValidationResult(is_valid=True, total_entries=0)

        entries = [self._row_to_entry(row) for row in rows]

        if entries[0].previous_hash != "genesis":
            return ChainValidationResult(
                is_valid=False,
                total_entries=len(entries),
                broken_at=0,
                error_message="First entry doesn't have genesis hash",
            )

        for i, entry in enumerate(entries):
            if entry.compute_hash() != entry.hash:
                return ChainValidationResult(
                    is_valid=False,
                    total_entries=len(entries),
                    broken_at=i,
                    error_message=f"Entry {i} content does not match its stored hash",
                )
            if i > 0 and entries[i - 1].hash != entry.previous_hash:
                return ChainValidationResult(
                    is_valid=False,
                    total_entries=len(entries),
                    broken_at=i,
                    error_message=(
                        f"Chain broken at entry {i}: expected "
                        f"{entries[i - 1].hash}, got {entry.previous_hash}"
                    ),
                )

        logger.info(f"Chain validation passed: {len(entries)} entries")
        return ChainValidationResult(is_valid=True, total_entries=len(entries))

    def get_entry_count(self) -> int:
        """Get total number of entries."""
        return self._query("SELECT COUNT(*) FROM ledger")[0][0]

    def _query(self, sql: str, params: tuple = ()) -> list:
        with self._lock:
            conn = self._get_connection()
            try:
                return conn.execute(sql, params).fetchall()
            finally:
                self._close_connection(conn)

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS ledger (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    entry_id TEXT UNIQUE NOT NULL,
                    timestamp TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    previous_hash TEXT NOT NULL,
                    hash TEXT NOT NULL,
                    request_id TEXT,
                    caller_id TEXT
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_request_id ON ledger(request_id)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_caller_id ON ledger(caller_id)"
            )

            conn.commit()
            self._close_connection(conn)

    def _store_entry(self, entry: LedgerEntry) -> None:
        """Store entry in database."""
        conn = self._get_connection()
        conn.execute(
            """INSERT INTO ledger
               (entry_id, timestamp, event_type, payload, previous_hash, hash,
                request_id, caller_id)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                entry.entry_id,
                entry.timestamp.isoformat(),
                entry.event_type.value,
                json.dumps(entry.payload, default=str),
                entry.previous_hash,
                entry.hash,
                entry.request_id,
                entry.caller_id,
            )
        )
        conn.commit()
        self._close_connection(conn)

    def _get_last_hash(self) -> str:
        """Get hash of last entry, or 'genesis' if empty."""
        rows = self._query("SELECT hash FROM ledger ORDER BY seq DESC LIMIT 1")
        return rows[0][0] if rows else "genesis"

    def _row_to_entry(self, row: tuple) -> LedgerEntry:
        """Convert database row to LedgerEntry."""
        entry = LedgerEntry(
            entry_id=row[1],
            timestamp=datetime.fromisoformat(row[2]),
            event_type=EventType(row[3]),
            payload=json.loads(row[4]),
            previous_hash=row[5],
            request_id=row[7],
            caller_id=row[8],
        )
        entry._cached_hash = row[6]  # Use stored hash
        return entry

    def close(self) -> None:
        """Close persistent connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
