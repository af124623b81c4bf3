"""Convert the registry package listing into an in-memory catalog."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import requests

from .cache import MetadataCache
from .constants import DEFAULT_REGISTRY_URL, DEFAULT_TIMEOUT
from .exceptions import CatalogFetchError
from .fetchers import fetch_package_listing
from .models import Package, PackageVersion
from .version import VersionNumber

logger = logging.getLogger(__name__)

_LISTING_CACHE_KEY = ("registry", "packages.json")


class Catalog:
    """Read-only view over every package known to the registry."""

    def __init__(self, packages: Iterable[Package]):
        self._packages: List[Package] = list(packages)
        self._by_name: Dict[str, Package] = {}
        for package in self._packages:
            self._by_name.setdefault(package.full_name, package)

    @property
    def packages(self) -> Sequence[Package]:
        return tuple(self._packages)

    def __len__(self) -> int:
        return len(self._packages)

    def find(self, full_name: str) -> Optional[Package]:
        return self._by_name.get(full_name)

    def find_for_dependency(self, token: str) -> Optional[Package]:
        """Return the first package whose full name prefixes ``token`` followed by ``-``."""
        for package in self._packages:
            if token.startswith(package.full_name + "-"):
                return package
        return None


def _normalize_version(package_full_name: str, payload: Dict) -> Optional[PackageVersion]:
    if not isinstance(payload, dict):
        logger.warning("Skipping %s version entry %r: not an object", package_full_name, payload)
        return None
    raw_number = str(payload.get("version_number", ""))
    try:
        number = VersionNumber.parse(raw_number)
    except ValueError:
        logger.warning("Skipping %s version %r: not a major.minor.patch number", package_full_name, raw_number)
        return None
    return PackageVersion(
        full_name=payload.get("full_name") or f"{package_full_name}-{number}",
        package_full_name=package_full_name,
        version_number=number,
        dependencies=tuple(str(dep) for dep in payload.get("dependencies") or ()),
        download_url=payload.get("download_url") or "",
        description=payload.get("description") or "",
    )


def _normalize_package(payload: Dict) -> Package:
    if not isinstance(payload, dict):
        raise CatalogFetchError(f"Package entry is not an object: {payload!r}")
    full_name = payload.get("full_name")
    if not full_name:
        raise CatalogFetchError("Package entry missing 'full_name'")
    versions = []
    for entry in payload.get("versions") or ():
        version = _normalize_version(full_name, entry)
        if version is not None:
            versions.append(version)
    owner = payload.get("owner") or full_name.split("-", 1)[0]
    return Package(
        full_name=full_name,
        name=payload.get("name") or full_name.split("-", 1)[-1],
        owner=owner,
        versions=tuple(versions),
        categories=tuple(payload.get("categories") or ()),
    )


def parse_package_listing(payload: Iterable[Dict]) -> Catalog:
    packages = [_normalize_package(entry) for entry in payload]
    logger.info("Loaded %d packages into catalog", len(packages))
    return Catalog(packages)


def load_catalog_file(path: Path | str) -> Catalog:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise CatalogFetchError(f"Cannot read package listing {path}: {exc}") from exc
    if not isinstance(data, list):
        raise CatalogFetchError(f"Package listing {path} is not a list")
    return parse_package_listing(data)


class CatalogProvider:
    def __init__(
        self,
        cache_root: Path | str,
        registry_url: str = DEFAULT_REGISTRY_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.cache = MetadataCache(Path(cache_root))
        self.cache.ensure()
        self.registry_url = registry_url
        self.timeout = timeout
        self.session = requests.Session()
        self._catalog: Optional[Catalog] = None

    def close(self) -> None:
        self.session.close()

    def _load_cached_listing(self) -> Optional[List[Dict]]:
        try:
            raw = self.cache.load(*_LISTING_CACHE_KEY)
        except (OSError, ValueError) as exc:
            raise CatalogFetchError(
                f"Cached package listing is unreadable ({exc}); run 'update-cache' to fetch it again"
            ) from exc
        if raw is not None and not isinstance(raw, list):
            raise CatalogFetchError("Cached package listing is not a list; run 'update-cache' to fetch it again")
        return raw

    def get_catalog(self, refresh: bool = False) -> Catalog:
        if self._catalog is not None and not refresh:
            return self._catalog
        raw = None if refresh else self._load_cached_listing()
        if not raw:
            raw = fetch_package_listing(self.registry_url, session=self.session, timeout=self.timeout)
            self.cache.store(raw, *_LISTING_CACHE_KEY)
        self._catalog = parse_package_listing(raw)
        return self._catalog
