"""
Database Service for GetStocks Relay.
Synchronous read access to the download history, used by the dashboard.
"""

import sqlite3
from pathlib import Path
from typing import List, Optional, Dict, Any

from models.schemas import Channel, DownloadLog, JobOutcome
from services.async_database import CREATE_INDEX_SQL, CREATE_TABLE_SQL, DatabaseError


# Filter keys accepted by get_logs
FILTER_COLUMNS = ("channel", "outcome", "provider_slug", "chat_id")


def build_where(filters: Optional[Dict[str, Any]]) -> tuple:
    """
    Build a WHERE clause from filter criteria.

    Supported keys: channel, outcome, provider_slug, chat_id (equality)
    and since (datetime, inclusive lower bound on timestamp).
    """
    where_clauses = []
    params: List[Any] = []

    for key, value in (filters or {}).items():
        if key == "since":
            where_clauses.append("timestamp >= ?")
            params.append(value.isoformat())
        elif key in FILTER_COLUMNS:
            where_clauses.append(f"{key} = ?")
            params.append(value.value if isinstance(value, (Channel, JobOutcome)) else value)
        else:
            raise DatabaseError(f"Unsupported filter: {key}")

    where_sql = "WHERE " + " AND ".join(where_clauses) if where_clauses else ""
    return where_sql, params


class DatabaseService:
    """
    Service for SQLite reads from synchronous code (Streamlit).
    """

    def __init__(self, db_path: str = "data/getstocks.db"):
        """
        Initialize database service.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> sqlite3.Connection:
        """
        Open the database and make sure the schema exists.

        Raises:
            DatabaseError: If connection fails
        """
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute(CREATE_TABLE_SQL)
            for statement in CREATE_INDEX_SQL:
                self._conn.execute(statement)
            self._conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to open database: {str(e)}")
        return self._conn

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseError("Database is not connected")
        return self._conn

    def get_logs(
        self,
        limit: int = 50,
        skip: int = 0,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[DownloadLog]:
        """Retrieve download logs, newest first."""
        where_sql, params = build_where(filters)
        query = f"""
            SELECT * FROM download_logs
            {where_sql}
            ORDER BY timestamp DESC, id DESC
            LIMIT ? OFFSET ?
        """
        params.extend([limit, skip])

        try:
            rows = self.conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to retrieve logs: {str(e)}")
        return [DownloadLog.from_dict(dict(row)) for row in rows]

    def get_stats(self) -> Dict[str, Any]:
        """Get summary statistics for the dashboard."""
        try:
            (total,) = self.conn.execute("SELECT COUNT(*) FROM download_logs").fetchone()
            by_outcome = {
                row[0]: row[1]
                for row in self.conn.execute(
                    "SELECT outcome, COUNT(*) FROM download_logs GROUP BY outcome"
                )
            }
            by_channel = {
                row[0]: row[1]
                for row in self.conn.execute(
                    "SELECT channel, COUNT(*) FROM download_logs GROUP BY channel"
                )
            }
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to compute stats: {str(e)}")

        ready = by_outcome.get(JobOutcome.READY.value, 0)
        return {
            "total_downloads": total,
            "by_outcome": by_outcome,
            "by_channel": by_channel,
            "ready": ready,
            "success_rate": (ready / total * 100) if total > 0 else 100,
        }
