"""
Tests for link validation and extraction utilities.
"""

import pytest
from utils.validators import (
    is_web_url,
    extract_links,
    extract_url_from_text,
)


class TestIsWebUrl:
    """Tests for is_web_url function."""

    def test_https_url(self, sample_links):
        assert is_web_url(sample_links["freepik"]) is True

    def test_http_url(self):
        assert is_web_url("http://example.com/page") is True

    def test_missing_scheme(self):
        assert is_web_url("www.freepik.com/photo") is False

    def test_ftp_scheme(self):
        assert is_web_url("ftp://example.com/file") is False

    def test_missing_host(self):
        assert is_web_url("https://") is False

    def test_embedded_whitespace(self):
        assert is_web_url("https://example.com/a b") is False

    @pytest.mark.parametrize("value", ["", "not-a-link", "look at https://example.com"])
    def test_invalid_values(self, value):
        assert is_web_url(value) is False


class TestExtractLinks:
    """Tests for extract_links function."""

    def test_single_link(self, sample_links):
        assert extract_links(sample_links["freepik"]) == [sample_links["freepik"]]

    def test_lines_are_trimmed(self, sample_links):
        text = f"   {sample_links['freepik']}   \n"
        assert extract_links(text) == [sample_links["freepik"]]

    def test_blank_lines_dropped(self, sample_links):
        text = f"\n\n{sample_links['freepik']}\n\n{sample_links['envato']}\n"
        assert extract_links(text) == [sample_links["freepik"], sample_links["envato"]]

    def test_duplicates_keep_first_occurrence(self, sample_links):
        text = "\n".join([
            sample_links["envato"],
            sample_links["freepik"],
            sample_links["envato"],
        ])
        assert extract_links(text) == [sample_links["envato"], sample_links["freepik"]]

    def test_invalid_lines_discarded(self, sample_links):
        text = f"hello there\n{sample_links['shutterstock']}\n{sample_links['invalid']}"
        assert extract_links(text) == [sample_links["shutterstock"]]

    def test_windows_line_endings(self, sample_links):
        text = f"{sample_links['freepik']}\r\n{sample_links['envato']}"
        assert extract_links(text) == [sample_links["freepik"], sample_links["envato"]]

    @pytest.mark.parametrize("value", [None, "", "   \n  "])
    def test_empty_input(self, value):
        assert extract_links(value) == []

    def test_link_inside_sentence_is_not_a_link(self):
        assert extract_links("please download https://example.com/x") == []


class TestExtractUrlFromText:
    """Tests for extract_url_from_text function."""

    def test_url_in_sentence(self):
        text = "please download https://www.freepik.com/photo_1.htm thanks"
        assert extract_url_from_text(text) == "https://www.freepik.com/photo_1.htm"

    def test_first_url_wins(self):
        text = "https://a.example.com and https://b.example.com"
        assert extract_url_from_text(text) == "https://a.example.com"

    def test_no_url(self):
        assert extract_url_from_text("nothing to see here") is None
