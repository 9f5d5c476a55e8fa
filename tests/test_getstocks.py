"""
Tests for the GetStocks provider client.
"""

import httpx
import pytest

from conftest import BASE_URL, envelope, read_form
from models.schemas import JobHandle, JobStatus
from services.getstocks import AsyncGetStocksClient

GETINFO = AsyncGetStocksClient.GETINFO_PATH
GETLINK = AsyncGetStocksClient.GETLINK_PATH
STATUS = AsyncGetStocksClient.STATUS_PATH

HANDLE = JobHandle(provider_slug="freepik", item_id="123456", is_premium=True, item_type="jpg")


class TestRequests:
    """Tests for what the client sends."""

    @pytest.mark.asyncio
    async def test_get_info_posts_form_with_token(self, provider, provider_client, sample_links):
        provider.queue(GETINFO, envelope({"support": {"slug": "freepik", "id": "1"}}))

        response = await provider_client.get_info(sample_links["freepik"])

        assert response["status"] == 200
        (request,) = provider.calls(GETINFO)
        assert request.method == "POST"
        assert request.url.params["token"] == "getstocks-token"
        assert read_form(request) == {"link": sample_links["freepik"], "ispre": "1"}

    @pytest.mark.asyncio
    async def test_get_link_omits_type_when_not_chosen(self, provider, provider_client, sample_links):
        provider.queue(GETLINK, envelope({"provSlug": "freepik", "itemID": "1"}))

        await provider_client.get_link(sample_links["freepik"], is_premium=False)

        form = read_form(provider.calls(GETLINK)[0])
        assert form == {"link": sample_links["freepik"], "ispre": "0"}

    @pytest.mark.asyncio
    async def test_get_link_sends_type(self, provider, provider_client, sample_links):
        provider.queue(GETLINK, envelope({"provSlug": "freepik", "itemID": "1"}))

        await provider_client.get_link(sample_links["freepik"], item_type="psd")

        assert read_form(provider.calls(GETLINK)[0])["type"] == "psd"

    @pytest.mark.asyncio
    async def test_status_sends_handle_fields(self, provider, provider_client):
        provider.queue(STATUS, envelope({"status": 0}))

        await provider_client.check_download_status(HANDLE)

        form = read_form(provider.calls(STATUS)[0])
        assert form == {"slug": "freepik", "id": "123456", "ispre": "1", "type": "jpg"}


class TestEnvelopeNormalisation:
    """Every failure collapses to {"status": "error", "message": ...}."""

    @pytest.mark.asyncio
    async def test_no_token(self, provider, sample_links):
        client = provider.client(token="")
        response = await client.get_info(sample_links["freepik"])

        assert response == {"status": "error", "message": "No token available"}
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_provider_error_status_keeps_message(self, provider, provider_client, sample_links):
        provider.queue(GETINFO, {"status": 400, "message": "Link not supported"})

        response = await provider_client.get_info(sample_links["freepik"])

        assert response == {"status": "error", "message": "Link not supported"}

    @pytest.mark.asyncio
    async def test_provider_error_without_message(self, provider, provider_client, sample_links):
        provider.queue(GETINFO, {"status": 500})

        response = await provider_client.get_info(sample_links["freepik"])

        assert response == {"status": "error", "message": "Unknown error"}

    @pytest.mark.asyncio
    async def test_network_error(self, provider, provider_client, sample_links):
        provider.queue(GETINFO, httpx.ConnectError("connection refused"))

        response = await provider_client.get_info(sample_links["freepik"])

        assert response == {"status": "error", "message": "connection refused"}

    @pytest.mark.asyncio
    async def test_non_json_body(self, provider, provider_client, sample_links):
        provider.queue(GETINFO, httpx.Response(502, text="<html>Bad gateway</html>"))

        response = await provider_client.get_info(sample_links["freepik"])

        assert response == {"status": "error", "message": "Malformed response from provider"}

    @pytest.mark.asyncio
    async def test_non_object_body(self, provider, provider_client, sample_links):
        provider.queue(GETINFO, ["not", "an", "object"])

        response = await provider_client.get_info(sample_links["freepik"])

        assert response["status"] == "error"
        assert response["message"] == "Malformed response from provider"

    @pytest.mark.asyncio
    async def test_missing_result(self, provider, provider_client, sample_links):
        provider.queue(GETINFO, {"status": 200})

        response = await provider_client.get_info(sample_links["freepik"])

        assert response["message"] == "Malformed response from provider"


class TestDownloadStatus:
    """Tests for status checks."""

    @pytest.mark.asyncio
    async def test_ready_gains_download_link(self, provider, provider_client):
        provider.queue(STATUS, envelope({
            "status": 1,
            "itemDCode": "abc123",
            "itemFilename": "mountain.jpg",
            "itemSize": "2.4 MB",
        }))

        response = await provider_client.check_download_status(HANDLE)

        assert response["result"]["downloadLink"] == (
            f"{BASE_URL}/api/v1/download/abc123?token=getstocks-token"
        )

    @pytest.mark.asyncio
    async def test_ready_without_code_is_malformed(self, provider, provider_client):
        provider.queue(STATUS, envelope({"status": 1}))

        response = await provider_client.check_download_status(HANDLE)

        assert response == {"status": "error", "message": "Malformed response from provider"}

    @pytest.mark.parametrize("value", [None, "1", True, 1.0])
    @pytest.mark.asyncio
    async def test_non_integer_status_is_malformed(self, provider, provider_client, value):
        provider.queue(STATUS, envelope({"status": value}))

        response = await provider_client.check_download_status(HANDLE)

        assert response["message"] == "Malformed response from provider"

    @pytest.mark.asyncio
    async def test_fetch_status_pending(self, provider, provider_client):
        provider.queue(STATUS, envelope({"status": 0}))

        status = await provider_client.fetch_status(HANDLE)

        assert status.state is JobStatus.PENDING
        assert status.is_pending is True

    @pytest.mark.asyncio
    async def test_fetch_status_ready(self, provider, provider_client):
        provider.queue(STATUS, envelope({
            "status": 1,
            "itemDCode": "abc123",
            "itemFilename": "mountain.jpg",
            "itemSize": "2.4 MB",
        }))

        status = await provider_client.fetch_status(HANDLE)

        assert status.state is JobStatus.READY
        assert status.result.filename == "mountain.jpg"
        assert status.result.size == "2.4 MB"
        assert status.result.provider_slug == "freepik"
        assert status.result.download_link.endswith("/api/v1/download/abc123?token=getstocks-token")

    @pytest.mark.asyncio
    async def test_fetch_status_failed(self, provider, provider_client):
        provider.queue(STATUS, {"status": 404, "message": "Item removed"})

        status = await provider_client.fetch_status(HANDLE)

        assert status.state is JobStatus.FAILED
        assert status.message == "Item removed"
