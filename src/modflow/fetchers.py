"""Functions that download archives and package listings from the registry."""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

import requests

from .constants import DEFAULT_TIMEOUT, DOWNLOAD_CHUNK_SIZE, USER_AGENT
from .exceptions import CatalogFetchError, FetchError

logger = logging.getLogger(__name__)

ProgressHook = Callable[[float], None]


def _request_json(url: str, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT):
    sess = session or requests.Session()
    headers = {"User-Agent": USER_AGENT}
    try:
        response = sess.get(url, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise CatalogFetchError(f"Failed to fetch {url}: {exc}") from exc
    if response.status_code >= 400:
        raise CatalogFetchError(f"Failed to fetch {url}: HTTP {response.status_code}")
    try:
        return response.json()
    except ValueError as exc:  # pragma: no cover - network only
        raise CatalogFetchError(f"Invalid JSON from {url}") from exc


def fetch_package_listing(url: str, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT) -> List[Dict]:
    data = _request_json(url, session=session, timeout=timeout)
    if not isinstance(data, list):
        raise CatalogFetchError(f"Package listing from {url} is not a list")
    return data


class ArchiveFetcher:
    """Streams a version archive into memory, reporting transfer progress."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    def close(self) -> None:
        self.session.close()

    def fetch(self, url: str, on_progress: Optional[ProgressHook] = None) -> bytes:
        headers = {"User-Agent": USER_AGENT, "Accept": "application/zip"}
        try:
            with self.session.get(url, headers=headers, timeout=self.timeout, stream=True) as response:
                if response.status_code >= 400:
                    raise FetchError(
                        name=f"Failed to download {url}",
                        message=f"HTTP {response.status_code}",
                    )
                total = int(response.headers.get("Content-Length") or 0)
                loaded = 0
                chunks: List[bytes] = []
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if not chunk:
                        continue
                    chunks.append(chunk)
                    loaded += len(chunk)
                    # Without a Content-Length there is nothing to report until completion.
                    if on_progress is not None and total > 0:
                        on_progress(min(loaded / total, 1.0) * 100)
        except requests.RequestException as exc:
            raise FetchError(name=f"Failed to download {url}", message=str(exc)) from exc
        logger.debug("Fetched %d bytes from %s", loaded, url)
        return b"".join(chunks)
