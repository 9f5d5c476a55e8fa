"""
GetStocks provider client.
Wraps the three provider endpoints (resolve metadata, submit job, job status)
behind one POST-and-inspect-envelope call pattern.
"""

from typing import Any, Dict, Optional

import httpx

from models.schemas import (
    MALFORMED_RESPONSE_MESSAGE,
    DownloadResult,
    DownloadStatus,
    JobHandle,
    JobStatus,
    error_response,
    is_success,
    premium_form_value,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)


# Provider status payload value meaning "file ready"
STATUS_READY = 1


class AsyncGetStocksClient:
    """
    Async client for the GetStocks download API.

    Every method returns a normalised envelope: ``{"status": 200, "result": {...}}``
    on success, or ``{"status": "error", "message": "..."}`` for any failure
    (missing token, network error, non-JSON body, provider error status).
    Methods never raise for remote failures.
    """

    DEFAULT_BASE_URL = "https://getstocks.net"

    GETINFO_PATH = "/api/v1/getinfo"
    GETLINK_PATH = "/api/v1/getlink"
    STATUS_PATH = "/api/v1/download-status"
    DOWNLOAD_PATH = "/api/v1/download/{code}"

    def __init__(
        self,
        token: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            token: GetStocks API token, sent as the ``token`` query parameter
            base_url: Provider base URL
            timeout: HTTP request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-loaded async HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client and release resources."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    # ── Public endpoints ────────────────────────────────────────────────

    async def get_info(self, link: str, is_premium: bool = True) -> Dict[str, Any]:
        """Resolve download metadata (provider slug, id, available types) for a link."""
        return await self._post(self.GETINFO_PATH, {
            "link": link,
            "ispre": premium_form_value(is_premium),
        })

    async def get_link(
        self,
        link: str,
        is_premium: bool = True,
        item_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Submit a download job; the result carries the job handle fields."""
        form = {"link": link, "ispre": premium_form_value(is_premium)}
        if item_type is not None:
            form["type"] = item_type
        return await self._post(self.GETLINK_PATH, form)

    async def check_download_status(self, handle: JobHandle) -> Dict[str, Any]:
        """
        Query a job's status.

        A ready job's result gains a ``downloadLink`` built from ``itemDCode``.
        A payload without an integer ``status`` field is reported as malformed.
        """
        response = await self._post(self.STATUS_PATH, handle.to_form())
        if not is_success(response):
            return response

        result = response["result"]
        status = result.get("status")
        if isinstance(status, bool) or not isinstance(status, int):
            logger.warning(
                "getstocks_malformed_status",
                slug=handle.provider_slug,
                item_id=handle.item_id,
                status_value=repr(status),
            )
            return error_response(MALFORMED_RESPONSE_MESSAGE)

        if status == STATUS_READY:
            code = result.get("itemDCode")
            if not code:
                return error_response(MALFORMED_RESPONSE_MESSAGE)
            result["downloadLink"] = self.build_download_link(str(code))
        return response

    async def fetch_status(self, handle: JobHandle) -> DownloadStatus:
        """Query a job's status and interpret it as a DownloadStatus."""
        return self.parse_status(handle, await self.check_download_status(handle))

    def build_download_link(self, download_code: str) -> str:
        """Public download URL for a prepared file."""
        path = self.DOWNLOAD_PATH.format(code=download_code)
        return str(httpx.URL(f"{self.base_url}{path}", params={"token": self.token or ""}))

    @staticmethod
    def parse_status(handle: JobHandle, response: Dict[str, Any]) -> DownloadStatus:
        """Interpret a normalised status envelope."""
        if not is_success(response):
            return DownloadStatus(state=JobStatus.FAILED, message=response.get("message"))

        result = response["result"]
        if result.get("status") != STATUS_READY:
            return DownloadStatus(state=JobStatus.PENDING)

        return DownloadStatus(
            state=JobStatus.READY,
            result=DownloadResult(
                provider_slug=str(result.get("provSlug") or handle.provider_slug),
                item_id=str(result.get("itemID") or handle.item_id),
                download_code=str(result.get("itemDCode", "")),
                filename=str(result.get("itemFilename") or ""),
                size=str(result.get("itemSize") or ""),
                download_link=result["downloadLink"],
            ),
        )

    # ── Transport ───────────────────────────────────────────────────────

    async def _post(self, path: str, form: Dict[str, Any]) -> Dict[str, Any]:
        """POST a form to the provider and normalise the JSON envelope."""
        if not self.token:
            return error_response("No token available")

        try:
            response = await self.http_client.post(
                path,
                params={"token": self.token},
                data={key: str(value) for key, value in form.items()},
            )
            data = response.json()
        except httpx.HTTPError as exc:
            logger.warning("getstocks_request_failed", path=path, error=str(exc))
            return error_response(str(exc) or type(exc).__name__)
        except ValueError:
            logger.warning(
                "getstocks_invalid_json",
                path=path,
                http_status=response.status_code,
            )
            return error_response(MALFORMED_RESPONSE_MESSAGE)

        return self._normalise(path, data)

    @staticmethod
    def _normalise(path: str, data: Any) -> Dict[str, Any]:
        if not isinstance(data, dict):
            logger.warning("getstocks_malformed_envelope", path=path)
            return error_response(MALFORMED_RESPONSE_MESSAGE)

        if data.get("status") != 200:
            message = data.get("message")
            logger.info("getstocks_error_status", path=path, status=data.get("status"), message=message)
            return error_response(str(message) if message else None)

        if not isinstance(data.get("result"), dict):
            logger.warning("getstocks_missing_result", path=path)
            return error_response(MALFORMED_RESPONSE_MESSAGE)

        return data
