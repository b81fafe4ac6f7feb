"""
Network downloader with progress tracking and retry logic.

This module provides the fetch side of acquisition:
- HTTPS downloads streamed to a private temporary file
- Connect/read timeouts
- Retry with exponential backoff on transient failures only
  (connection errors, timeouts, HTTP 5xx)
- No retry on HTTP 4xx: the version or URL is wrong
- Partial files are always removed; the destination only ever appears
  complete, via rename
"""

import logging
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

import requests
from requests.exceptions import (
    ChunkedEncodingError,
    ConnectionError,
    ContentDecodingError,
    HTTPError,
    RequestException,
    Timeout,
)

from godl.core.exceptions import CacheIOError, NetworkError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

TimeoutSpec = Union[float, Tuple[float, float]]


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining

    def __str__(self) -> str:
        """Format progress for display."""
        return format_progress(self)


class HTTPStatusError(NetworkError):
    """Non-retryable HTTP response (4xx)."""

    def __init__(self, url: str, status_code: int):
        self.url = url
        self.status_code = status_code
        super().__init__(f"HTTP {status_code} for {url}")


def _is_transient(error: Exception) -> bool:
    # Stream interrupted mid-body counts as a reset connection
    if isinstance(
        error, (Timeout, ConnectionError, ChunkedEncodingError, ContentDecodingError)
    ):
        return True
    if isinstance(error, HTTPError) and error.response is not None:
        return error.response.status_code >= 500
    return False


def _temporary_path(destination: Path) -> Path:
    return destination.with_name(
        f"{destination.name}.{os.getpid()}-{secrets.token_hex(4)}.part"
    )


def fetch(
    url: str,
    destination: Path,
    timeout: TimeoutSpec = (10, 30),
    max_retries: int = 3,
    backoff_factor: float = 1.0,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    session: Optional[requests.Session] = None,
) -> Path:
    """
    Download url to destination with retry logic.

    The body is streamed to a uniquely named ``.part`` file next to
    destination (same filesystem) and renamed into place once complete.

    Args:
        url: URL to download from
        destination: Final path of the downloaded file
        timeout: Seconds, or (connect, read) tuple
        max_retries: Maximum number of attempts
        backoff_factor: Sleep backoff_factor * 2**attempt between attempts
        progress_callback: Optional callback for progress updates
        session: Optional requests session

    Returns:
        destination

    Raises:
        HTTPStatusError: On HTTP 4xx (never retried)
        NetworkError: If all attempts fail with transient errors
        CacheIOError: If the file cannot be written
        ValueError: If URL or destination is empty

    Example:
        >>> fetch("https://dl.google.com/go/go1.19.5.linux-amd64.tar.gz",
        ...       Path("/tmp/go1.19.5.linux-amd64.tar.gz"))
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    destination = Path(destination)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CacheIOError(
            f"cannot create {destination.parent}: {e}", phase="fetch"
        ) from e

    http = session or requests

    for attempt in range(max_retries):
        part = _temporary_path(destination)
        try:
            _download_with_progress(http, url, part, timeout, progress_callback)
            part.replace(destination)
            logger.debug(f"Download complete: {destination}")
            return destination
        except HTTPError as e:
            part.unlink(missing_ok=True)
            status = e.response.status_code if e.response is not None else 0
            if not _is_transient(e):
                raise HTTPStatusError(url, status) from e
            last_error: Exception = e
        except RequestException as e:
            part.unlink(missing_ok=True)
            if not _is_transient(e):
                raise NetworkError(f"download of {url} failed: {e}") from e
            last_error = e
        except OSError as e:
            part.unlink(missing_ok=True)
            raise CacheIOError(f"writing {part} failed: {e}", phase="fetch") from e
        except BaseException:
            part.unlink(missing_ok=True)
            raise

        if attempt == max_retries - 1:
            break

        backoff_seconds = backoff_factor * 2**attempt
        logger.warning(
            f"Download attempt {attempt + 1} failed: {last_error}. "
            f"Retrying in {backoff_seconds:g}s..."
        )
        time.sleep(backoff_seconds)

    raise NetworkError(
        f"download of {url} failed after {max_retries} attempts: {last_error}"
    )


def _download_with_progress(
    http,
    url: str,
    part: Path,
    timeout: TimeoutSpec,
    progress_callback: Optional[Callable[[DownloadProgress], None]],
) -> None:
    """
    Perform one streaming GET into part.

    Raises:
        RequestException: If the HTTP request fails
        OSError: If the file cannot be written
    """
    logger.info(f"Downloading {url}")

    response = http.get(url, stream=True, timeout=timeout, allow_redirects=True)
    try:
        response.raise_for_status()

        content_length = response.headers.get("content-length")
        total_size = int(content_length) if content_length else 0

        downloaded = 0
        start_time = time.time()
        last_progress_time = start_time

        with open(part, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                f.write(chunk)
                downloaded += len(chunk)

                # Report progress (max once per 0.5 seconds to avoid spam)
                current_time = time.time()
                if progress_callback and (
                    current_time - last_progress_time >= 0.5
                    or downloaded == total_size
                ):
                    elapsed = current_time - start_time
                    speed = downloaded / elapsed if elapsed > 0 else 0
                    remaining = total_size - downloaded if total_size > 0 else 0
                    progress_callback(
                        DownloadProgress(
                            bytes_downloaded=downloaded,
                            total_bytes=total_size if total_size > 0 else downloaded,
                            percentage=(downloaded / total_size * 100)
                            if total_size > 0
                            else 0,
                            speed_bps=speed,
                            eta_seconds=remaining / speed if speed > 0 else 0,
                        )
                    )
                    last_progress_time = current_time
    finally:
        response.close()

    if total_size and downloaded != total_size:
        raise requests.exceptions.ChunkedEncodingError(
            f"short read: got {downloaded} of {total_size} bytes"
        )


def fetch_text(
    url: str,
    timeout: TimeoutSpec = (10, 30),
    max_retries: int = 3,
    backoff_factor: float = 1.0,
    session: Optional[requests.Session] = None,
) -> str:
    """
    Fetch a small text resource (e.g. a .sha256 sidecar) with retries.

    Raises:
        HTTPStatusError: On HTTP 4xx
        NetworkError: If all attempts fail with transient errors
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    http = session or requests

    for attempt in range(max_retries):
        try:
            response = http.get(url, timeout=timeout, allow_redirects=True)
            response.raise_for_status()
            return response.text
        except HTTPError as e:
            if not _is_transient(e):
                status = e.response.status_code if e.response is not None else 0
                raise HTTPStatusError(url, status) from e
            last_error: Exception = e
        except RequestException as e:
            if not _is_transient(e):
                raise NetworkError(f"fetching {url} failed: {e}") from e
            last_error = e

        if attempt < max_retries - 1:
            backoff_seconds = backoff_factor * 2**attempt
            logger.warning(
                f"Fetching {url} failed: {last_error}. "
                f"Retrying in {backoff_seconds:g}s..."
            )
            time.sleep(backoff_seconds)

    raise NetworkError(
        f"fetching {url} failed after {max_retries} attempts: {last_error}"
    )


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Args:
        progress: Download progress information

    Returns:
        Formatted progress string

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.percentage > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    else:
        # Unknown total size
        return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"


__all__ = [
    "DownloadProgress",
    "HTTPStatusError",
    "fetch",
    "fetch_text",
    "format_progress",
]
