"""
Pending type selections for the chat channel.
Remembers a chat's link between the type-selection message and the
button press, keyed by a short token that fits in callback data.
"""

import secrets
import time
from typing import Callable, Dict, Iterable, Optional, Tuple

from models.schemas import PendingSelection


class PendingSelectionStore:
    """
    In-memory keyed store with per-entry expiry.

    Entries are written once and consumed once: ``pop`` removes the entry,
    so a second press of the same button finds nothing.
    """

    def __init__(
        self,
        ttl_seconds: int = 600,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the store.

        Args:
            ttl_seconds: Lifetime of an entry in seconds
            clock: Monotonic time source (tests substitute a fake)
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, PendingSelection] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: PendingSelection, now: float) -> bool:
        return now - entry.created_at > self.ttl_seconds

    def put(
        self,
        chat_id: int,
        link: str,
        is_premium: bool,
        types: Iterable[Tuple[str, str]],
    ) -> PendingSelection:
        """
        Store a pending selection under a fresh key.

        Args:
            chat_id: Telegram chat the selection belongs to
            link: Link the user sent
            is_premium: Premium flag reported by the provider
            types: (key, label) choices offered to the user

        Returns:
            The stored PendingSelection
        """
        self.purge_expired()
        key = secrets.token_urlsafe(8)
        while key in self._entries:
            key = secrets.token_urlsafe(8)

        entry = PendingSelection(
            key=key,
            chat_id=chat_id,
            link=link,
            is_premium=is_premium,
            types=tuple(types),
            created_at=self._clock(),
        )
        self._entries[key] = entry
        return entry

    def pop(self, key: str, chat_id: Optional[int] = None) -> Optional[PendingSelection]:
        """
        Consume a pending selection.

        Args:
            key: Key from the callback data
            chat_id: If given, the entry must belong to this chat

        Returns:
            The entry, or None if unknown, expired, or owned by another chat
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if chat_id is not None and entry.chat_id != chat_id:
            return None

        del self._entries[key]
        if self._is_expired(entry, self._clock()):
            return None
        return entry

    def purge_expired(self) -> int:
        """
        Drop expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> int:
        """Remove every entry and return how many there were."""
        count = len(self._entries)
        self._entries.clear()
        return count
