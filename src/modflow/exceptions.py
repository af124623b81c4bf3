"""Custom exceptions raised by the resolver and downloader."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class CatalogFetchError(RuntimeError):
    """Raised when the registry package listing cannot be retrieved."""


class SettingsError(ValueError):
    """Raised when a settings or profile file is malformed."""


@dataclass
class DownloadError(Exception):
    """Failure reported through a progress callback rather than raised to callers."""

    name: str
    message: str
    solution: Optional[str] = None

    def __str__(self) -> str:  # type: ignore[override]
        text = f"{self.name}: {self.message}"
        if self.solution:
            text += f" ({self.solution})"
        return text


class FetchError(DownloadError):
    """The archive for a version could not be downloaded."""


class FileWriteError(DownloadError):
    """The cache directory could not be written or the archive not extracted."""


class ListResolutionError(DownloadError):
    """The installed mod list could not be read before a download started."""
