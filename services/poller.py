"""
Download job polling.
Re-queries a job's status at a fixed interval until it is ready, failed,
or the wall-clock timeout elapses.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_fixed,
)

from models.schemas import DownloadStatus, JobHandle, JobOutcome, JobStatus, PollOutcome
from services.getstocks import AsyncGetStocksClient
from utils.logging_config import get_logger

logger = get_logger(__name__)


def _last_status(retry_state: RetryCallState) -> DownloadStatus:
    """Hand back the final pending reading instead of raising RetryError."""
    return retry_state.outcome.result()


class DownloadPoller:
    """
    Poll a submitted job: Pending -> {Ready, Failed, TimedOut}.

    No retries past the timeout and no backoff. The loop awaits between
    checks, so cancelling the surrounding task stops polling immediately.
    """

    def __init__(
        self,
        client: AsyncGetStocksClient,
        interval: float = 10,
        timeout: float = 60,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the poller.

        Args:
            client: Provider client used for status checks
            interval: Seconds between status checks
            timeout: Seconds after the first check before giving up
            sleep: Awaitable sleep function (tests substitute a no-op)
        """
        self.client = client
        self.interval = interval
        self.timeout = timeout
        self._sleep = sleep or asyncio.sleep

    @property
    def max_attempts(self) -> Optional[int]:
        """Checks that fit in the timeout: one immediately, then one per interval."""
        if self.interval <= 0:
            return None
        return int(self.timeout // self.interval) + 1

    async def wait_for_download(self, handle: JobHandle) -> PollOutcome:
        """
        Poll until the job reaches a terminal state.

        Args:
            handle: Job handle returned by the submit call

        Returns:
            PollOutcome with kind READY, FAILED or TIMED_OUT
        """
        attempts = 0

        async def check() -> DownloadStatus:
            nonlocal attempts
            attempts += 1
            status = await self.client.fetch_status(handle)
            logger.debug(
                "poll_status_checked",
                slug=handle.provider_slug,
                item_id=handle.item_id,
                attempt=attempts,
                state=status.state.value,
            )
            return status

        stop = stop_after_delay(self.timeout)
        max_attempts = self.max_attempts
        if max_attempts is not None:
            stop = stop | stop_after_attempt(max_attempts)

        retrying = AsyncRetrying(
            stop=stop,
            wait=wait_fixed(self.interval),
            retry=retry_if_result(lambda status: status.is_pending),
            retry_error_callback=_last_status,
            sleep=self._sleep,
        )
        status = await retrying(check)

        if status.state is JobStatus.READY:
            logger.info("poll_ready", slug=handle.provider_slug, item_id=handle.item_id, attempts=attempts)
            return PollOutcome(kind=JobOutcome.READY, handle=handle, result=status.result, attempts=attempts)

        if status.state is JobStatus.FAILED:
            logger.info(
                "poll_failed",
                slug=handle.provider_slug,
                item_id=handle.item_id,
                attempts=attempts,
                message=status.message,
            )
            return PollOutcome(kind=JobOutcome.FAILED, handle=handle, message=status.message, attempts=attempts)

        logger.warning("poll_timed_out", slug=handle.provider_slug, item_id=handle.item_id, attempts=attempts)
        return PollOutcome(kind=JobOutcome.TIMED_OUT, handle=handle, message="Timeout", attempts=attempts)
