"""Shared fixtures: catalog builders, a fake archive fetcher and a progress recorder."""

from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import pytest

from modflow.cache import DownloadCache
from modflow.catalog import Catalog
from modflow.config import DownloaderSettings
from modflow.download import DownloadOrchestrator
from modflow.exceptions import DownloadError, FetchError
from modflow.models import Combo, Package, PackageVersion, ProgressEvent, Status
from modflow.version import VersionNumber

VersionSpec = Tuple[str, Sequence[str]]


def _make_package(full_name: str, versions: Iterable[VersionSpec], categories: Sequence[str] = ()) -> Package:
    owner, name = full_name.split("-", 1)
    built = tuple(
        PackageVersion(
            full_name=f"{full_name}-{number}",
            package_full_name=full_name,
            version_number=VersionNumber.parse(number),
            dependencies=tuple(dependencies),
            download_url=f"https://registry.test/{full_name}/{number}.zip",
        )
        for number, dependencies in versions
    )
    return Package(full_name=full_name, name=name, owner=owner, versions=built, categories=tuple(categories))


@pytest.fixture
def make_package() -> Callable[..., Package]:
    """``make_package("Foo-Bar", [("1.0.0", ["Baz-Qux-2.0.0"])], categories=[...])``"""
    return _make_package


def zip_payload(files: Optional[Dict[str, str]] = None) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as bundle:
        for name, content in (files or {"manifest.json": "{}"}).items():
            bundle.writestr(name, content)
    return buffer.getvalue()


def corrupt_deflate_payload() -> bytes:
    """A deflated archive whose compressed stream bytes are scrambled."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
        bundle.writestr("plugins/mod.dll", "binary payload " * 64)
    data = bytearray(buffer.getvalue())
    with zipfile.ZipFile(io.BytesIO(bytes(data))) as bundle:
        info = bundle.infolist()[0]
    start = info.header_offset + 30 + len(info.filename.encode("utf-8"))
    for index in range(start, start + info.compress_size):
        data[index] ^= 0xFF
    return bytes(data)


def encrypted_flag_payload() -> bytes:
    """An archive whose members claim to be encrypted."""
    data = bytearray(zip_payload({"manifest.json": "{}", "plugins/mod.dll": "binary"}))
    for signature, flag_offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        index = data.find(signature)
        while index != -1:
            data[index + flag_offset] |= 0x01
            index = data.find(signature, index + 4)
    return bytes(data)


class FakeFetcher:
    def __init__(self, payload: Optional[bytes] = None, fail_urls: Iterable[str] = ()):
        self.payload = payload if payload is not None else zip_payload()
        self.fail_urls = set(fail_urls)
        self.calls: List[str] = []
        self.closed = False

    def fetch(self, url: str, on_progress=None) -> bytes:
        self.calls.append(url)
        if url in self.fail_urls:
            raise FetchError(name=f"Failed to download {url}", message="connection reset")
        if on_progress is not None:
            for progress in (25.0, 50.0, 100.0):
                on_progress(progress)
        return self.payload

    def close(self) -> None:
        self.closed = True


class Recorder:
    def __init__(self):
        self.events: List[ProgressEvent] = []
        self.completed: List[List[Combo]] = []

    def __call__(self, percent: float, label: str, status: Status, error: Optional[DownloadError]) -> None:
        self.events.append(ProgressEvent(percent=percent, label=label, status=status, error=error))

    def complete(self, combos: List[Combo]) -> None:
        self.completed.append(combos)

    @property
    def percents(self) -> List[float]:
        return [event.percent for event in self.events if event.status is not Status.FAILURE]

    @property
    def failures(self) -> List[ProgressEvent]:
        return [event for event in self.events if event.status is Status.FAILURE]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def settings(tmp_path: Path) -> DownloaderSettings:
    return DownloaderSettings(mod_root=str(tmp_path / "mods"))


@pytest.fixture
def orchestrator(settings: DownloaderSettings, fetcher: FakeFetcher) -> DownloadOrchestrator:
    return DownloadOrchestrator(settings, fetcher=fetcher, cache=DownloadCache(settings.mod_root_path))


@pytest.fixture
def catalog_of() -> Callable[..., Catalog]:
    def build(*packages: Package) -> Catalog:
        return Catalog(packages)

    return build
