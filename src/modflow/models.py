"""Dataclasses shared across resolver and downloader components."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .constants import MODPACK_CATEGORY
from .exceptions import DownloadError
from .version import VersionNumber


class Status(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class PackageVersion:
    full_name: str
    package_full_name: str
    version_number: VersionNumber
    dependencies: Tuple[str, ...] = ()
    download_url: str = ""
    description: str = ""


@dataclass(frozen=True)
class Package:
    full_name: str
    name: str
    owner: str
    versions: Tuple[PackageVersion, ...] = ()
    categories: Tuple[str, ...] = ()

    @property
    def is_modpack(self) -> bool:
        return MODPACK_CATEGORY in self.categories

    @property
    def latest(self) -> Optional[PackageVersion]:
        """First listed version; registries publish newest first."""
        return self.versions[0] if self.versions else None


@dataclass(frozen=True)
class Combo:
    package: Package
    version: PackageVersion

    @property
    def key(self) -> str:
        return self.package.full_name

    @property
    def label(self) -> str:
        return self.package.name

    def __str__(self) -> str:  # type: ignore[override]
        return f"{self.package.full_name}@{self.version.version_number}"


@dataclass(frozen=True)
class InstalledEntry:
    name: str
    version_number: VersionNumber


@dataclass
class ProgressEvent:
    percent: float
    label: str
    status: Status
    error: Optional[DownloadError] = None
