"""On-disk caches: registry metadata documents and extracted mod archives."""
from __future__ import annotations

import json
import logging
import shutil
import zipfile
from pathlib import Path
from typing import Any, List, Optional, Protocol

from .constants import APP_NAME, ARCHIVE_SUFFIX, CACHE_DIRECTORY_NAME
from .exceptions import FileWriteError
from .models import Combo

logger = logging.getLogger(__name__)


def _sanitize(segment: str) -> str:
    return segment.replace("/", "__")


class MetadataCache:
    def __init__(self, root: Path | str):
        self.root = Path(root)

    def ensure(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, *segments: str) -> Path:
        safe_segments = [_sanitize(segment) for segment in segments]
        path = self.root.joinpath(*safe_segments)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def load(self, *segments: str) -> Optional[Any]:
        path = self._path(*segments)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def store(self, data: Any, *segments: str) -> None:
        path = self._path(*segments)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=True, indent=2, sort_keys=True)


class Filesystem(Protocol):
    def exists(self, path: Path) -> bool: ...

    def mkdirs(self, path: Path) -> None: ...

    def write_file(self, path: Path, data: bytes) -> None: ...

    def readdir(self, path: Path) -> List[str]: ...


class LocalFilesystem:
    """Filesystem primitives backed by the real disk; errors propagate as OSError."""

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def mkdirs(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def write_file(self, path: Path, data: bytes) -> None:
        Path(path).write_bytes(data)

    def readdir(self, path: Path) -> List[str]:
        return sorted(entry.name for entry in Path(path).iterdir())


class ZipExtractor:
    def extract_and_delete(self, directory: Path, archive_name: str, target_name: str) -> Path:
        """Extract ``directory/archive_name`` into ``directory/target_name`` and remove the archive.

        Members are unpacked into a ``.partial`` sibling first and renamed into
        place only once every member was written, so ``target_name`` either
        holds a complete archive or keeps whatever it held before.
        """
        archive = Path(directory) / archive_name
        destination = Path(directory) / target_name
        staging = Path(directory) / (target_name + ".partial")
        shutil.rmtree(staging, ignore_errors=True)
        try:
            with zipfile.ZipFile(archive) as bundle:
                bundle.extractall(staging)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        if destination.exists():
            shutil.rmtree(destination)
        staging.rename(destination)
        archive.unlink()
        return destination


class DownloadCache:
    """Layout and cache-hit checks for ``<mod_root>/cache/<full name>/<version>``."""

    def __init__(
        self,
        mod_root: Path | str,
        filesystem: Optional[Filesystem] = None,
        extractor: Optional[ZipExtractor] = None,
    ):
        self.mod_root = Path(mod_root)
        self.filesystem = filesystem or LocalFilesystem()
        self.extractor = extractor or ZipExtractor()

    @property
    def cache_directory(self) -> Path:
        return self.mod_root / CACHE_DIRECTORY_NAME

    def package_directory(self, combo: Combo) -> Path:
        return self.cache_directory / combo.package.full_name

    def archive_path(self, combo: Combo) -> Path:
        return self.package_directory(combo) / (str(combo.version.version_number) + ARCHIVE_SUFFIX)

    def extract_path(self, combo: Combo) -> Path:
        return self.package_directory(combo) / str(combo.version.version_number)

    def is_cached(self, combo: Combo) -> bool:
        try:
            self.filesystem.readdir(self.extract_path(combo))
        except OSError:
            return False
        return True

    def save(self, combo: Combo, data: bytes) -> Path:
        package_dir = self.package_directory(combo)
        version_string = str(combo.version.version_number)
        try:
            if not self.filesystem.exists(package_dir):
                self.filesystem.mkdirs(package_dir)
            self.filesystem.write_file(self.archive_path(combo), data)
        except OSError as exc:
            raise FileWriteError(
                name="File write error",
                message=(
                    f"Failed to write downloaded zip of {combo.package.full_name} to cache directory. "
                    f"Reason: {exc}"
                ),
                solution=f"Try running {APP_NAME} as an administrator",
            ) from exc
        try:
            destination = self.extractor.extract_and_delete(
                package_dir, version_string + ARCHIVE_SUFFIX, version_string
            )
        except Exception as exc:
            # zipfile also raises zlib.error, RuntimeError (encrypted members) and EOFError.
            raise FileWriteError(
                name="Extraction error",
                message=f"Failed to extract {combo.version.full_name} into the cache directory. Reason: {exc}",
                solution=f"Try running {APP_NAME} as an administrator",
            ) from exc
        logger.info("Cached %s at %s", combo, destination)
        return destination
