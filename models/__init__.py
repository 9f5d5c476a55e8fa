# Models module for GetStocks Relay
# Contains job, status and download history schemas

from .schemas import (
    Channel,
    DownloadLog,
    DownloadResult,
    DownloadStatus,
    ItemSupport,
    JobHandle,
    JobOutcome,
    JobRequest,
    JobStatus,
    PendingSelection,
    PollOutcome,
)

__all__ = [
    "Channel",
    "DownloadLog",
    "DownloadResult",
    "DownloadStatus",
    "ItemSupport",
    "JobHandle",
    "JobOutcome",
    "JobRequest",
    "JobStatus",
    "PendingSelection",
    "PollOutcome",
]
