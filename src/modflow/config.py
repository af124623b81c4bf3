"""Parse user settings and mod list files."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import yaml

from .constants import DEFAULT_MOD_ROOT, DEFAULT_REGISTRY_URL, DEFAULT_TIMEOUT
from .exceptions import SettingsError
from .models import InstalledEntry
from .version import VersionNumber


@dataclass
class DownloaderSettings:
    mod_root: str = DEFAULT_MOD_ROOT
    ignore_cache: bool = False
    registry_url: str = DEFAULT_REGISTRY_URL
    timeout: float = DEFAULT_TIMEOUT

    @property
    def mod_root_path(self) -> Path:
        return Path(self.mod_root).expanduser()


def _read_yaml(path: Path):
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise SettingsError(f"{path}: invalid YAML ({exc})") from exc


def load_settings(path: Optional[Path] = None) -> DownloaderSettings:
    if path is None or not path.exists():
        return DownloaderSettings()
    data = _read_yaml(path) or {}
    if not isinstance(data, dict):
        raise SettingsError("Settings root must be a mapping")
    try:
        timeout = float(data.get("timeout", DEFAULT_TIMEOUT))
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"Invalid timeout: {data.get('timeout')!r}") from exc
    return DownloaderSettings(
        mod_root=str(data.get("mod_root") or DEFAULT_MOD_ROOT),
        ignore_cache=bool(data.get("ignore_cache")),
        registry_url=data.get("registry_url") or DEFAULT_REGISTRY_URL,
        timeout=timeout,
    )


def _normalize_entry(entry: object) -> InstalledEntry:
    if not isinstance(entry, dict):
        raise SettingsError(f"Mod entry must be a mapping, got {entry!r}")
    name = entry.get("name") or entry.get("full_name")
    if not name:
        raise SettingsError("Mod entry missing 'name'")
    raw_version = entry.get("version") or entry.get("version_number")
    try:
        version = VersionNumber.parse(str(raw_version))
    except ValueError as exc:
        raise SettingsError(f"Mod entry {name}: {exc}") from exc
    return InstalledEntry(name=name, version_number=version)


def load_mod_list(path: Path) -> List[InstalledEntry]:
    """Read ``mods: [{name, version}]`` from a profile or exported mod list."""
    data = _read_yaml(path)
    if isinstance(data, dict):
        data = data.get("mods")
    if data is None:
        return []
    if not isinstance(data, list):
        raise SettingsError("Mod list must be a list of {name, version} entries")
    return [_normalize_entry(entry) for entry in data]
