"""
Unit tests for download module.

Tests download functionality with mocked network requests.
"""

import pytest
import requests
import responses

from godl.core.download import (
    DownloadProgress,
    HTTPStatusError,
    fetch,
    fetch_text,
    format_progress,
)
from godl.core.exceptions import NetworkError

URL = "https://dl.google.com/go/go1.19.5.linux-amd64.tar.gz"


class TestDownloadProgress:
    """Test DownloadProgress class."""

    def test_progress_to_string(self):
        """Test progress string representation."""
        progress = DownloadProgress(
            bytes_downloaded=52428800,
            total_bytes=104857600,
            percentage=50.0,
            speed_bps=1048576,
            eta_seconds=50,
        )
        assert str(progress) == "50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s"


class TestFormatProgress:
    """Test format_progress function."""

    def test_format_with_unknown_size(self):
        """Test formatting when the server sent no Content-Length."""
        progress = DownloadProgress(
            bytes_downloaded=2097152,
            total_bytes=2097152,
            percentage=0,
            speed_bps=1048576,
            eta_seconds=0,
        )
        assert format_progress(progress) == "2.0 MB at 1.0 MB/s"


class TestFetch:
    """Test fetch function."""

    @responses.activate
    def test_simple_download(self, tmp_path):
        """Test download lands at the destination."""
        content = b"archive bytes"
        destination = tmp_path / "go.tar.gz"

        responses.add(
            responses.GET,
            URL,
            body=content,
            status=200,
            headers={"content-length": str(len(content))},
        )

        result = fetch(URL, destination)

        assert result == destination
        assert destination.read_bytes() == content

    @responses.activate
    def test_no_partial_files_left(self, tmp_path):
        """Test the .part file is renamed, not copied."""
        destination = tmp_path / "go.tar.gz"
        responses.add(responses.GET, URL, body=b"data", status=200)

        fetch(URL, destination)

        assert [p.name for p in tmp_path.iterdir()] == ["go.tar.gz"]

    @responses.activate
    def test_progress_callback(self, tmp_path):
        """Test download reports progress up to completion."""
        content = b"x" * 200000
        responses.add(
            responses.GET,
            URL,
            body=content,
            status=200,
            headers={"content-length": str(len(content))},
        )

        updates = []
        fetch(URL, tmp_path / "go.tar.gz", progress_callback=updates.append)

        assert updates
        assert updates[-1].bytes_downloaded == len(content)
        assert updates[-1].percentage == 100

    @responses.activate
    def test_retry_on_server_error(self, tmp_path):
        """Test 5xx responses are retried."""
        content = b"archive bytes"
        responses.add(responses.GET, URL, status=500)
        responses.add(responses.GET, URL, status=503)
        responses.add(responses.GET, URL, body=content, status=200)

        result = fetch(URL, tmp_path / "go.tar.gz", max_retries=3, backoff_factor=0)

        assert result.read_bytes() == content
        assert len(responses.calls) == 3

    @responses.activate
    def test_retry_on_connection_error(self, tmp_path):
        """Test dropped connections are retried."""
        responses.add(
            responses.GET, URL, body=requests.exceptions.ConnectionError("reset")
        )
        responses.add(responses.GET, URL, body=b"ok", status=200)

        result = fetch(URL, tmp_path / "go.tar.gz", backoff_factor=0)

        assert result.read_bytes() == b"ok"

    @responses.activate
    def test_fail_after_max_retries(self, tmp_path):
        """Test raises NetworkError after max retries."""
        destination = tmp_path / "go.tar.gz"
        for _ in range(3):
            responses.add(responses.GET, URL, status=502)

        with pytest.raises(NetworkError, match="failed after 3 attempts"):
            fetch(URL, destination, max_retries=3, backoff_factor=0)

        assert not destination.exists()
        assert list(tmp_path.iterdir()) == []

    @responses.activate
    def test_http_404_not_retried(self, tmp_path):
        """Test 4xx fails immediately with the status code."""
        responses.add(responses.GET, URL, status=404)

        with pytest.raises(HTTPStatusError) as exc_info:
            fetch(URL, tmp_path / "go.tar.gz", max_retries=3, backoff_factor=0)

        assert exc_info.value.status_code == 404
        assert exc_info.value.phase == "fetch"
        assert len(responses.calls) == 1

    @responses.activate
    def test_backoff_sleeps(self, tmp_path, monkeypatch):
        """Test exponential backoff between attempts."""
        sleeps = []
        monkeypatch.setattr("godl.core.download.time.sleep", sleeps.append)
        for _ in range(3):
            responses.add(responses.GET, URL, status=500)

        with pytest.raises(NetworkError):
            fetch(URL, tmp_path / "go.tar.gz", max_retries=3, backoff_factor=1.5)

        assert sleeps == [1.5, 3.0]

    @pytest.mark.parametrize(
        "error",
        [
            requests.exceptions.InvalidSchema("No connection adapters for 'htp://'"),
            requests.exceptions.MissingSchema("Invalid URL"),
            requests.exceptions.TooManyRedirects("Exceeded 30 redirects"),
        ],
    )
    @responses.activate
    def test_request_errors_not_retried(self, tmp_path, monkeypatch, error):
        """Test malformed URLs and redirect loops fail without backoff."""
        sleeps = []
        monkeypatch.setattr("godl.core.download.time.sleep", sleeps.append)
        responses.add(responses.GET, URL, body=error)

        with pytest.raises(NetworkError) as exc_info:
            fetch(URL, tmp_path / "go.tar.gz", max_retries=3, backoff_factor=0)

        assert "after" not in str(exc_info.value)
        assert sleeps == []
        assert len(responses.calls) == 1
        assert list(tmp_path.iterdir()) == []

    def test_bad_scheme_not_retried(self, tmp_path, monkeypatch, no_network):
        sleeps = []
        monkeypatch.setattr("godl.core.download.time.sleep", sleeps.append)

        with pytest.raises(NetworkError):
            fetch("htp://example.invalid/x.tar.gz", tmp_path / "x.tar.gz")

        assert sleeps == []

    @responses.activate
    def test_retry_on_interrupted_body(self, tmp_path):
        """Test a stream cut off mid-body counts as a reset connection."""
        responses.add(
            responses.GET,
            URL,
            body=requests.exceptions.ChunkedEncodingError("connection broken"),
        )
        responses.add(responses.GET, URL, body=b"ok", status=200)

        result = fetch(URL, tmp_path / "go.tar.gz", backoff_factor=0)

        assert result.read_bytes() == b"ok"

    @responses.activate
    def test_creates_destination_directory(self, tmp_path):
        """Test automatically creates destination directory."""
        destination = tmp_path / "nested" / "dir" / "go.tar.gz"
        responses.add(responses.GET, URL, body=b"data", status=200)

        fetch(URL, destination)

        assert destination.exists()

    def test_empty_url_raises_valueerror(self, tmp_path):
        with pytest.raises(ValueError, match="URL cannot be empty"):
            fetch("", tmp_path / "go.tar.gz")

    def test_empty_destination_raises_valueerror(self):
        with pytest.raises(ValueError, match="Destination path cannot be empty"):
            fetch(URL, None)

    def test_zero_retries_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="max_retries"):
            fetch(URL, tmp_path / "go.tar.gz", max_retries=0)


class TestFetchText:
    """Test fetch_text function."""

    @responses.activate
    def test_returns_body(self):
        responses.add(responses.GET, URL + ".sha256", body="abc\n", status=200)
        assert fetch_text(URL + ".sha256") == "abc\n"

    @responses.activate
    def test_404(self):
        responses.add(responses.GET, URL + ".sha256", status=404)
        with pytest.raises(HTTPStatusError, match="HTTP 404"):
            fetch_text(URL + ".sha256", backoff_factor=0)

    @responses.activate
    def test_retries_then_fails(self):
        for _ in range(2):
            responses.add(responses.GET, URL + ".sha256", status=500)
        with pytest.raises(NetworkError, match="after 2 attempts"):
            fetch_text(URL + ".sha256", max_retries=2, backoff_factor=0)

    @responses.activate
    def test_retries_timeout(self):
        responses.add(
            responses.GET, URL + ".sha256", body=requests.exceptions.ReadTimeout()
        )
        responses.add(responses.GET, URL + ".sha256", body="abc\n", status=200)

        assert fetch_text(URL + ".sha256", backoff_factor=0) == "abc\n"

    @responses.activate
    def test_request_error_not_retried(self, monkeypatch):
        """Test a bad sidecar URL fails at once instead of backing off."""
        sleeps = []
        monkeypatch.setattr("godl.core.download.time.sleep", sleeps.append)
        responses.add(
            responses.GET,
            URL + ".sha256",
            body=requests.exceptions.InvalidURL("Invalid URL"),
        )

        with pytest.raises(NetworkError, match="fetching .* failed: Invalid URL"):
            fetch_text(URL + ".sha256", max_retries=3, backoff_factor=0)

        assert sleeps == []
        assert len(responses.calls) == 1
