"""
Tests for destiny_manifest_core.archive_fetcher — download + single-entry extraction.

Uses unittest.mock to avoid real network calls.
"""

import os
import ssl
import urllib.error
import zipfile
from unittest import mock

import pytest

from destiny_manifest_core import (
    ArchiveFormatError,
    ManifestIOError,
    ManifestNetworkError,
    ManifestSSLError,
    fetch_archive,
)

URLOPEN = "destiny_manifest_core.transport.urllib.request.urlopen"
URL = "https://www.bungie.net/common/destiny2_content/sqlite/en/world.content"


def _leftovers(directory):
    return sorted(os.listdir(directory))


class TestFetchArchiveSuccess:
    def test_extracts_entry_bytes_exactly(self, tmp_path, zip_bytes, mock_response):
        """Destination holds exactly the decompressed bytes of the sole entry."""
        content = bytes(range(256)) * 200
        body = zip_bytes({"world_sql_content_abc.content": content})
        dest = tmp_path / "world.content"

        with mock.patch(URLOPEN, return_value=mock_response(body)):
            path = fetch_archive(URL, str(dest))

        assert path == str(dest)
        assert dest.read_bytes() == content
        assert _leftovers(tmp_path) == ["world.content"]

    def test_stored_entry(self, tmp_path, zip_bytes, mock_response):
        """Uncompressed (stored) entries are copied verbatim."""
        body = zip_bytes({"db": b"SQLite format 3\x00rest"}, compression=zipfile.ZIP_STORED)
        dest = tmp_path / "db.content"

        with mock.patch(URLOPEN, return_value=mock_response(body)):
            fetch_archive(URL, str(dest))

        assert dest.read_bytes() == b"SQLite format 3\x00rest"

    def test_relative_destination_made_absolute(self, tmp_path, zip_bytes,
                                                mock_response, monkeypatch):
        monkeypatch.chdir(tmp_path)
        body = zip_bytes({"x": b"data"})

        with mock.patch(URLOPEN, return_value=mock_response(body)):
            path = fetch_archive(URL, "rel.content")

        assert os.path.isabs(path)
        assert (tmp_path / "rel.content").read_bytes() == b"data"

    def test_progress_callback(self, tmp_path, zip_bytes, mock_response):
        """Progress callback reports the full body size at the end."""
        body = zip_bytes({"x": b"y" * 50000})
        calls = []

        with mock.patch(URLOPEN, return_value=mock_response(body)):
            fetch_archive(URL, str(tmp_path / "out"),
                          progress_callback=lambda dl, total: calls.append((dl, total)))

        assert len(calls) >= 1
        assert calls[-1] == (len(body), len(body))

    def test_missing_content_length(self, tmp_path, zip_bytes, mock_response):
        """Total is reported as 0 when Content-Length is absent."""
        body = zip_bytes({"x": b"abc"})
        calls = []

        with mock.patch(URLOPEN, return_value=mock_response(body, headers={})):
            fetch_archive(URL, str(tmp_path / "out"),
                          progress_callback=lambda dl, total: calls.append(total))

        assert set(calls) == {0}

    def test_sends_user_agent_and_extra_headers(self, tmp_path, zip_bytes, mock_response):
        body = zip_bytes({"x": b"abc"})
        captured = []

        def capture_urlopen(req, **kwargs):
            captured.append(req)
            return mock_response(body)

        with mock.patch(URLOPEN, side_effect=capture_urlopen):
            fetch_archive(URL, str(tmp_path / "out"), headers={"X-API-Key": "k"})

        req = captured[0]
        assert req.full_url == URL
        assert req.get_header("User-agent") == "DestinyManifest"
        assert req.get_header("X-api-key") == "k"


class TestFetchArchiveFormat:
    @pytest.mark.parametrize("entries", [
        {},
        {"a.content": b"one", "b.content": b"two"},
    ])
    def test_entry_count_not_one(self, tmp_path, zip_bytes, mock_response, entries):
        """Zero or several entries fail and create nothing."""
        body = zip_bytes(entries)
        dest = tmp_path / "world.content"

        with mock.patch(URLOPEN, return_value=mock_response(body)):
            with pytest.raises(ArchiveFormatError, match="Expected one file"):
                fetch_archive(URL, str(dest))

        assert not dest.exists()
        assert _leftovers(tmp_path) == []

    def test_body_not_zip(self, tmp_path, mock_response):
        dest = tmp_path / "world.content"

        with mock.patch(URLOPEN, return_value=mock_response(b"<html>oops</html>")):
            with pytest.raises(ArchiveFormatError, match="not a ZIP"):
                fetch_archive(URL, str(dest))

        assert _leftovers(tmp_path) == []

    def test_encrypted_entry(self, tmp_path, zip_bytes, mock_response):
        """A password-protected entry is a format error, not a RuntimeError."""
        body = zip_bytes({"db": b"SQLite format 3\x00"})
        # set the encryption bit in the central directory flags
        idx = body.index(b"PK\x01\x02") + 8
        flags = int.from_bytes(body[idx:idx + 2], "little") | 0x1
        body = body[:idx] + flags.to_bytes(2, "little") + body[idx + 2:]
        dest = tmp_path / "world.content"

        with mock.patch(URLOPEN, return_value=mock_response(body)):
            with pytest.raises(ArchiveFormatError, match="encrypted"):
                fetch_archive(URL, str(dest))

        assert _leftovers(tmp_path) == []

    def test_corrupt_entry_leaves_nothing(self, tmp_path, zip_bytes, mock_response):
        """A CRC failure mid-copy removes the partial temp file."""
        content = b"A" * 4096
        body = zip_bytes({"db": content}, compression=zipfile.ZIP_STORED)
        corrupt = body.replace(b"AAAA", b"AAAB", 1)
        dest = tmp_path / "world.content"

        with mock.patch(URLOPEN, return_value=mock_response(corrupt)):
            with pytest.raises(ArchiveFormatError):
                fetch_archive(URL, str(dest))

        assert not dest.exists()
        assert _leftovers(tmp_path) == []


class TestFetchArchiveNetwork:
    def test_http_error_status(self, tmp_path):
        """urllib HTTPError (4xx/5xx) raises ManifestNetworkError."""
        err = urllib.error.HTTPError(URL, 404, "Not Found", {}, None)
        with mock.patch(URLOPEN, side_effect=err):
            with pytest.raises(ManifestNetworkError, match="HTTP 404"):
                fetch_archive(URL, str(tmp_path / "out"))

        assert _leftovers(tmp_path) == []

    def test_non_success_status_not_extracted(self, tmp_path, zip_bytes, mock_response):
        """A non-2xx response is rejected even if its body is a valid archive."""
        body = zip_bytes({"x": b"looks fine"})
        resp = mock_response(body, status=500)

        with mock.patch(URLOPEN, return_value=resp):
            with pytest.raises(ManifestNetworkError, match="HTTP 500"):
                fetch_archive(URL, str(tmp_path / "out"))

        assert _leftovers(tmp_path) == []
        resp.__exit__.assert_called_once()

    def test_connection_error(self, tmp_path):
        with mock.patch(URLOPEN, side_effect=urllib.error.URLError("connection refused")):
            with pytest.raises(ManifestNetworkError, match="connection refused"):
                fetch_archive(URL, str(tmp_path / "out"))

    def test_ssl_error(self, tmp_path):
        ssl_exc = urllib.error.URLError(
            ssl.SSLCertVerificationError("CERTIFICATE_VERIFY_FAILED"))
        with mock.patch(URLOPEN, side_effect=ssl_exc):
            with pytest.raises(ManifestSSLError, match="SSL certificate"):
                fetch_archive(URL, str(tmp_path / "out"))

    def test_read_error_mid_stream(self, tmp_path, mock_response):
        """A dropped connection while reading the body is a network error."""
        resp = mock_response(b"")
        resp.read = mock.MagicMock(side_effect=[b"PK\x03\x04", ConnectionResetError("reset")])

        with mock.patch(URLOPEN, return_value=resp):
            with pytest.raises(ManifestNetworkError, match="Download failed"):
                fetch_archive(URL, str(tmp_path / "out"))

        assert _leftovers(tmp_path) == []
        resp.__exit__.assert_called_once()


class TestFetchArchiveLocalIO:
    def test_refuses_to_overwrite(self, tmp_path, zip_bytes, mock_response):
        """An existing destination is left untouched."""
        dest = tmp_path / "world.content"
        dest.write_bytes(b"precious")
        body = zip_bytes({"x": b"new"})

        with mock.patch(URLOPEN, return_value=mock_response(body)):
            with pytest.raises(ManifestIOError, match="Refusing to overwrite"):
                fetch_archive(URL, str(dest))

        assert dest.read_bytes() == b"precious"
        assert _leftovers(tmp_path) == ["world.content"]

    def test_missing_destination_directory(self, tmp_path, zip_bytes, mock_response):
        body = zip_bytes({"x": b"data"})
        dest = tmp_path / "nope" / "world.content"

        with mock.patch(URLOPEN, return_value=mock_response(body)):
            with pytest.raises(ManifestIOError, match="Cannot create file"):
                fetch_archive(URL, str(dest))

        assert _leftovers(tmp_path) == []

    def test_temp_descriptor_closed_when_open_fails(self, tmp_path, zip_bytes, mock_response):
        """The mkstemp descriptor is closed and its file removed."""
        body = zip_bytes({"x": b"data"})
        dest = tmp_path / "world.content"
        real_close = os.close

        with mock.patch(URLOPEN, return_value=mock_response(body)), \
                mock.patch("destiny_manifest_core.archive_fetcher.os.fdopen",
                           side_effect=OSError("Too many open files")), \
                mock.patch("destiny_manifest_core.archive_fetcher.os.close",
                           side_effect=real_close) as close:
            with pytest.raises(ManifestIOError, match="Too many open files"):
                fetch_archive(URL, str(dest))

        close.assert_called()
        assert _leftovers(tmp_path) == []
