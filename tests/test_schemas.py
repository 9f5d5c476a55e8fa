"""
Tests for data models and schemas.
"""

from datetime import datetime

from models.schemas import (
    Channel,
    DownloadLog,
    ItemSupport,
    JobHandle,
    JobOutcome,
    PendingSelection,
    error_response,
    is_success,
)


class TestEnvelopeHelpers:
    """Tests for the normalised envelope helpers."""

    def test_error_response_keeps_message(self):
        assert error_response("Link not supported") == {
            "status": "error",
            "message": "Link not supported",
        }

    def test_error_response_defaults_message(self):
        assert error_response(None)["message"] == "Unknown error"

    def test_is_success(self):
        assert is_success({"status": 200, "result": {}}) is True
        assert is_success({"status": 200, "result": None}) is False
        assert is_success(error_response("nope")) is False


class TestJobOutcome:
    """Tests for JobOutcome enum."""

    def test_from_string(self):
        assert JobOutcome.from_string("ready") == JobOutcome.READY
        assert JobOutcome.from_string("TIMED_OUT") == JobOutcome.TIMED_OUT

    def test_from_string_unknown_defaults_to_failed(self):
        assert JobOutcome.from_string("exploded") == JobOutcome.FAILED


class TestItemSupport:
    """Tests for parsing the resolve call's support block."""

    def test_types_from_mapping_keep_order(self):
        support = ItemSupport.from_result({
            "support": {
                "slug": "freepik",
                "id": 123456,
                "ispre": 1,
                "type": {"jpg": "JPG Image", "psd": "PSD Source"},
                "itemthumb": "https://img.example.com/t.jpg",
                "id2": "fp-123456",
            }
        })
        assert support.slug == "freepik"
        assert support.item_id == "123456"
        assert support.is_premium is True
        assert support.types == (("jpg", "JPG Image"), ("psd", "PSD Source"))
        assert support.thumbnail == "https://img.example.com/t.jpg"
        assert support.link_id == "fp-123456"
        assert support.requires_type is True

    def test_types_from_list(self):
        support = ItemSupport.from_result({
            "support": {"slug": "envato", "id": "X1", "type": ["Small", "Large"]}
        })
        assert support.types == (("0", "Small"), ("1", "Large"))

    def test_no_types(self):
        support = ItemSupport.from_result({"support": {"slug": "envato", "id": "X1", "ispre": "0"}})
        assert support.types == ()
        assert support.requires_type is False
        assert support.is_premium is False

    def test_missing_support_block(self):
        assert ItemSupport.from_result({}) is None
        assert ItemSupport.from_result({"support": "yes"}) is None


class TestJobHandle:
    """Tests for the submit call's job handle."""

    def test_from_result(self):
        handle = JobHandle.from_result({
            "provSlug": "shutterstock",
            "itemID": 987654,
            "isPremium": 1,
            "itemType": "jpg",
        })
        assert handle == JobHandle("shutterstock", "987654", True, "jpg")

    def test_missing_identifiers(self):
        assert JobHandle.from_result({"provSlug": "shutterstock"}) is None
        assert JobHandle.from_result({"itemID": "1"}) is None
        assert JobHandle.from_result(None) is None

    def test_missing_type_is_empty(self):
        handle = JobHandle.from_result({"provSlug": "envato", "itemID": "X1"})
        assert handle.item_type == ""
        assert handle.is_premium is True

    def test_to_form(self):
        handle = JobHandle("shutterstock", "987654", False, "jpg")
        assert handle.to_form() == {"slug": "shutterstock", "id": "987654", "ispre": 0, "type": "jpg"}


class TestPendingSelection:
    """Tests for PendingSelection."""

    def test_type_at(self):
        selection = PendingSelection(
            key="abc",
            chat_id=1,
            link="https://example.com/x",
            is_premium=True,
            types=(("jpg", "JPG"), ("png", "PNG")),
            created_at=0.0,
        )
        assert selection.type_at(1) == "png"
        assert selection.type_at(2) is None
        assert selection.type_at(-1) is None


class TestDownloadLog:
    """Tests for DownloadLog schema."""

    def test_to_dict(self):
        log = DownloadLog(
            link="https://example.com/x",
            channel=Channel.WEB,
            outcome=JobOutcome.READY,
            timestamp=datetime(2024, 5, 1, 12, 30),
        )
        data = log.to_dict()
        assert data["channel"] == "web"
        assert data["outcome"] == "ready"
        assert data["timestamp"] == "2024-05-01T12:30:00"

    def test_from_dict_row(self):
        log = DownloadLog.from_dict({
            "id": 7,
            "link": "https://example.com/x",
            "channel": "telegram",
            "outcome": "timed_out",
            "provider_slug": "freepik",
            "item_id": "1",
            "item_type": "jpg",
            "filename": None,
            "size": None,
            "chat_id": 42,
            "error": "Timeout",
            "processing_time_ms": 60000,
            "timestamp": "2024-05-01T12:30:00",
        })
        assert log.channel == Channel.TELEGRAM
        assert log.outcome == JobOutcome.TIMED_OUT
        assert log.timestamp == datetime(2024, 5, 1, 12, 30)
        assert log.chat_id == 42
