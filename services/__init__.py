# Services module for GetStocks Relay
# Contains the provider client, polling, request translation, and database services

from .getstocks import AsyncGetStocksClient
from .poller import DownloadPoller
from .pending_store import PendingSelectionStore
from .translator import (
    RequestTranslator,
    Submission,
    Translation,
    TranslationKind,
)
from .database import DatabaseService
from .async_database import AsyncDatabaseService, DatabaseError

__all__ = [
    "AsyncGetStocksClient",
    "DownloadPoller",
    "PendingSelectionStore",
    "RequestTranslator",
    "Submission",
    "Translation",
    "TranslationKind",
    "DatabaseService",
    "AsyncDatabaseService",
    "DatabaseError",
]
