"""
Async Database Service for GetStocks Relay.
Records download job outcomes in SQLite using aiosqlite.
"""

import aiosqlite
from pathlib import Path

from models.schemas import DownloadLog


class DatabaseError(Exception):
    """Raised when database operations fail."""
    pass


CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS download_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        link TEXT NOT NULL,
        channel TEXT NOT NULL,
        outcome TEXT NOT NULL,
        provider_slug TEXT,
        item_id TEXT,
        item_type TEXT,
        filename TEXT,
        size TEXT,
        chat_id INTEGER,
        error TEXT,
        processing_time_ms INTEGER,
        timestamp TEXT NOT NULL
    )
"""

CREATE_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_download_timestamp ON download_logs(timestamp DESC)",
    "CREATE INDEX IF NOT EXISTS idx_download_chat_id ON download_logs(chat_id)",
    "CREATE INDEX IF NOT EXISTS idx_download_outcome ON download_logs(outcome)",
)

INSERT_SQL = """
    INSERT INTO download_logs (
        link, channel, outcome, provider_slug, item_id, item_type,
        filename, size, chat_id, error, processing_time_ms, timestamp
    ) VALUES (
        :link, :channel, :outcome, :provider_slug, :item_id, :item_type,
        :filename, :size, :chat_id, :error, :processing_time_ms, :timestamp
    )
"""


class AsyncDatabaseService:
    """
    Async writer for the download history.
    The bot and the web server append here; the dashboard reads through
    services.database.DatabaseService.
    """

    def __init__(
        self,
        db_path: str = "data/getstocks.db"
    ):
        """
        Initialize async database service.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._ensure_db_directory()

    def _ensure_db_directory(self) -> None:
        """Ensure the database directory exists."""
        db_file = Path(self.db_path)
        db_file.parent.mkdir(parents=True, exist_ok=True)

    async def init(self) -> None:
        """Initialize database and create tables."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(CREATE_TABLE_SQL)
            for statement in CREATE_INDEX_SQL:
                await db.execute(statement)
            await db.commit()

    async def save_log(self, log: DownloadLog) -> int:
        """
        Save a download log entry.

        Args:
            log: Entry to persist

        Returns:
            The inserted row ID

        Raises:
            DatabaseError: If save fails
        """
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(INSERT_SQL, log.to_dict())
                await db.commit()
                return cursor.lastrowid
        except aiosqlite.Error as e:
            raise DatabaseError(f"Failed to save log: {str(e)}")
