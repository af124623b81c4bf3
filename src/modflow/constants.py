"""Static data for the resolver and downloader."""
from __future__ import annotations

APP_NAME = "modflow"

MODPACK_CATEGORY = "Modpacks"

CACHE_DIRECTORY_NAME = "cache"
ARCHIVE_SUFFIX = ".zip"

DEFAULT_REGISTRY_URL = "https://thunderstore.io/api/v1/package/"
DEFAULT_MOD_ROOT = "~/.local/share/modflow"
DEFAULT_TIMEOUT = 30
DOWNLOAD_CHUNK_SIZE = 64 * 1024
USER_AGENT = "modflow/0.1"
