"""
Data models and schemas for GetStocks jobs and download history.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


MALFORMED_RESPONSE_MESSAGE = "Malformed response from provider"
UNKNOWN_ERROR_MESSAGE = "Unknown error"


class JobStatus(str, Enum):
    """State of a submitted download job as reported by the provider."""
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class JobOutcome(str, Enum):
    """Terminal result of polling a job."""
    READY = "ready"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @classmethod
    def from_string(cls, outcome: str) -> "JobOutcome":
        """Convert string outcome to enum, defaulting to FAILED."""
        try:
            return cls(outcome.lower())
        except ValueError:
            return cls.FAILED


class Channel(str, Enum):
    """Delivery channel a job was requested from."""
    TELEGRAM = "telegram"
    WEB = "web"


def error_response(message: Optional[str]) -> Dict[str, Any]:
    """Build the single error shape every provider failure collapses to."""
    return {"status": "error", "message": message or UNKNOWN_ERROR_MESSAGE}


def is_success(response: Dict[str, Any]) -> bool:
    """True when a normalised provider envelope carries a result."""
    return response.get("status") == 200 and isinstance(response.get("result"), dict)


def _as_premium_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no")
    return bool(value)


def premium_form_value(is_premium: bool) -> int:
    """Provider form encoding of the premium flag."""
    return 1 if is_premium else 0


@dataclass(frozen=True)
class JobRequest:
    """A user-submitted link, immutable once sent to the provider."""
    source_link: str
    is_premium: bool = True
    selected_type: Optional[str] = None


@dataclass(frozen=True)
class ItemSupport:
    """
    Metadata returned by the provider's resolve call.

    Attributes:
        slug: Provider slug (e.g. "freepik")
        item_id: Provider item id
        is_premium: Premium flag to use when submitting
        types: Ordered (key, label) pairs the user can choose from
        thumbnail: Optional thumbnail URL
        link_id: Provider-side link identifier ("id2"), if any
    """
    slug: str
    item_id: str
    is_premium: bool = True
    types: Tuple[Tuple[str, str], ...] = ()
    thumbnail: Optional[str] = None
    link_id: Optional[str] = None

    @property
    def requires_type(self) -> bool:
        return len(self.types) > 0

    @classmethod
    def from_result(cls, result: Dict[str, Any]) -> Optional["ItemSupport"]:
        """Parse `result.support`; None when the provider sent no support block."""
        support = result.get("support") if isinstance(result, dict) else None
        if not isinstance(support, dict):
            return None

        raw_types = support.get("type") or {}
        if isinstance(raw_types, dict):
            pairs = [(str(key), str(label)) for key, label in raw_types.items()]
        elif isinstance(raw_types, list):
            pairs = [(str(index), str(label)) for index, label in enumerate(raw_types)]
        else:
            pairs = []

        link_id = support.get("id2")
        return cls(
            slug=str(support.get("slug", "")),
            item_id=str(support.get("id", "")),
            is_premium=_as_premium_flag(support.get("ispre", 1)),
            types=tuple(pairs),
            thumbnail=support.get("itemthumb"),
            link_id=str(link_id) if link_id else None,
        )


@dataclass(frozen=True)
class JobHandle:
    """Identifier set needed to poll one submitted download job."""
    provider_slug: str
    item_id: str
    is_premium: bool
    item_type: str

    @classmethod
    def from_result(cls, result: Dict[str, Any]) -> Optional["JobHandle"]:
        """Parse the submit call's result; None when identifiers are missing."""
        if not isinstance(result, dict):
            return None
        slug = result.get("provSlug")
        item_id = result.get("itemID")
        if slug in (None, "") or item_id in (None, ""):
            return None
        item_type = result.get("itemType")
        return cls(
            provider_slug=str(slug),
            item_id=str(item_id),
            is_premium=_as_premium_flag(result.get("isPremium", 1)),
            item_type="" if item_type is None else str(item_type),
        )

    def to_form(self) -> Dict[str, Any]:
        """Form fields for the provider's download-status call."""
        return {
            "slug": self.provider_slug,
            "id": self.item_id,
            "ispre": premium_form_value(self.is_premium),
            "type": self.item_type,
        }


@dataclass(frozen=True)
class DownloadResult:
    """A file the provider finished preparing."""
    provider_slug: str
    item_id: str
    download_code: str
    filename: str
    size: str
    download_link: str


@dataclass(frozen=True)
class DownloadStatus:
    """One status reading for a job."""
    state: JobStatus
    result: Optional[DownloadResult] = None
    message: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.state is JobStatus.PENDING


@dataclass(frozen=True)
class PollOutcome:
    """Terminal result of the polling loop."""
    kind: JobOutcome
    handle: JobHandle
    result: Optional[DownloadResult] = None
    message: Optional[str] = None
    attempts: int = 0


@dataclass(frozen=True)
class PendingSelection:
    """A chat's link awaiting a type choice from an inline button."""
    key: str
    chat_id: int
    link: str
    is_premium: bool
    types: Tuple[Tuple[str, str], ...]
    created_at: float

    def type_at(self, index: int) -> Optional[str]:
        """Return the provider type key for a button index."""
        if 0 <= index < len(self.types):
            return self.types[index][0]
        return None


@dataclass
class DownloadLog:
    """
    Schema for download history entries.

    Attributes:
        link: The link the user submitted
        channel: Where the request came from
        outcome: Terminal job outcome
        provider_slug: Provider slug reported by GetStocks
        item_id: Provider item id
        item_type: Chosen download type
        filename: Prepared file name (ready jobs)
        size: Prepared file size as reported (ready jobs)
        chat_id: Telegram chat ID (chat channel)
        error: Provider message for failed jobs
        processing_time_ms: Time from submit to terminal state
        timestamp: When the entry was written
    """
    link: str
    channel: Channel
    outcome: JobOutcome
    provider_slug: Optional[str] = None
    item_id: Optional[str] = None
    item_type: Optional[str] = None
    filename: Optional[str] = None
    size: Optional[str] = None
    chat_id: Optional[int] = None
    error: Optional[str] = None
    processing_time_ms: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        """Convert to dictionary for database insertion."""
        data = asdict(self)
        data["channel"] = self.channel.value
        data["outcome"] = self.outcome.value
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DownloadLog":
        """Create instance from a database row."""
        data = data.copy()
        data.pop("id", None)
        if isinstance(data.get("timestamp"), str):
            data["timestamp"] = datetime.fromisoformat(data["timestamp"])
        if isinstance(data.get("channel"), str):
            data["channel"] = Channel(data["channel"])
        if isinstance(data.get("outcome"), str):
            data["outcome"] = JobOutcome.from_string(data["outcome"])
        return cls(**data)

