"""Sequential download pipeline: fetch, cache and extract one combo at a time."""
from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Sequence

import requests

from .cache import DownloadCache
from .catalog import Catalog
from .config import DownloaderSettings
from .exceptions import DownloadError, FetchError, FileWriteError, ListResolutionError, SettingsError
from .fetchers import ArchiveFetcher
from .models import Combo, InstalledEntry, Package, PackageVersion, Status
from .resolver import Policy, build_dependency_set, get_latest_of_all_to_update, sort_dependency_order

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str, Status, Optional[DownloadError]], None]
CompletedCallback = Callable[[List[Combo]], None]
ItemCallback = Callable[[float, Status, Optional[DownloadError]], None]
InstalledProvider = Callable[[], Iterable[InstalledEntry]]


def generate_progress_percentage(progress: float, current_index: int, total: int) -> float:
    completed_progress = (current_index / total) * 100
    return completed_progress + progress / total


def calculate_initial_download_size(settings: DownloaderSettings, combos: Sequence[Combo]) -> int:
    return len(combos)


class _ProgressTracker:
    """Folds per-item events into overall progress and fires completion once.

    ``total`` is the percentage denominator and carries one extra slot for the
    requested package; ``expected`` is the number of successes that completes
    the run.
    """

    def __init__(self, callback: ProgressCallback, total: int, expected: int, on_finished: Callable[[], None]):
        self.callback = callback
        self.total = total
        self.expected = expected
        self.on_finished = on_finished
        self.completed = 0
        self.finished = False

    def __call__(self, progress: float, label: str, status: Status, error: Optional[DownloadError]) -> None:
        if status is Status.FAILURE:
            self.callback(0, label, status, error)
            return
        overall = generate_progress_percentage(progress, self.completed, self.total)
        if status is Status.PENDING:
            self.callback(overall, label, status, error)
            return
        self.callback(overall, label, Status.PENDING, error)
        self.completed += 1
        if self.completed >= self.expected and not self.finished:
            self.finished = True
            self.callback(100, label, Status.SUCCESS, error)
            self.on_finished()


class DownloadOrchestrator:
    def __init__(
        self,
        settings: DownloaderSettings,
        fetcher: Optional[ArchiveFetcher] = None,
        cache: Optional[DownloadCache] = None,
    ):
        self.settings = settings
        self.fetcher = fetcher or ArchiveFetcher(timeout=settings.timeout)
        self.cache = cache or DownloadCache(settings.mod_root_path)

    def close(self) -> None:
        self.fetcher.close()

    # Single item ----------------------------------------------------------

    def download_and_save(self, combo: Combo, callback: ItemCallback) -> Status:
        if self.cache.is_cached(combo) and not self.settings.ignore_cache:
            logger.info("Using cached %s", combo)
            callback(100, Status.SUCCESS, None)
            return Status.SUCCESS

        logger.info("Downloading %s from %s", combo, combo.version.download_url)
        try:
            data = self.fetcher.fetch(
                combo.version.download_url,
                on_progress=lambda progress: callback(progress, Status.PENDING, None),
            )
        except (FetchError, requests.RequestException, OSError) as exc:
            reason = exc.message if isinstance(exc, DownloadError) else str(exc)
            error = FetchError(name=f"Failed to download mod {combo.version.full_name}", message=reason)
            logger.warning("%s", error)
            callback(100, Status.FAILURE, error)
            return Status.FAILURE

        callback(100, Status.PENDING, None)
        try:
            self.cache.save(combo, data)
        except FileWriteError as error:
            logger.warning("%s", error)
            callback(100, Status.FAILURE, error)
            return Status.FAILURE
        callback(100, Status.SUCCESS, None)
        return Status.SUCCESS

    # Queue ----------------------------------------------------------------

    def queue_download_dependencies(self, combos: Iterable[Combo], callback: ProgressCallback) -> bool:
        """Download ``combos`` in order, one at a time.

        Stops at the first failure and returns ``False``; nothing resumes the
        remaining items afterwards.
        """
        for combo in combos:

            def on_item(progress: float, status: Status, error: Optional[DownloadError], combo: Combo = combo) -> None:
                if status is Status.FAILURE:
                    callback(0, combo.label, status, error)
                elif status is Status.PENDING:
                    callback(progress, combo.label, status, error)
                else:
                    callback(100, combo.label, status, error)

            if self.download_and_save(combo, on_item) is not Status.SUCCESS:
                return False
        return True

    # Entry points ---------------------------------------------------------

    def download(
        self,
        package: Package,
        version: PackageVersion,
        catalog: Catalog,
        installed_provider: InstalledProvider,
        callback: ProgressCallback,
        completed_callback: CompletedCallback,
    ) -> bool:
        """Install ``version`` of ``package`` followed by its dependencies.

        Modpacks keep the exact dependency versions they declare. Anything
        else gets the latest version of each dependency, skipping packages
        that are already installed.
        """
        combo = Combo(package=package, version=version)
        dependencies = sort_dependency_order(build_dependency_set(version, catalog, Policy.EXACT))

        try:
            installed = list(installed_provider())
        except ListResolutionError as error:
            callback(0, package.name, Status.FAILURE, error)
            return False
        except (OSError, SettingsError) as exc:
            error = ListResolutionError(name="Failed to read installed mods", message=str(exc))
            callback(0, package.name, Status.FAILURE, error)
            return False

        if not package.is_modpack:
            installed_names = {entry.name for entry in installed}
            latest = sort_dependency_order(build_dependency_set(version, catalog, Policy.LATEST))
            dependencies = [dep for dep in latest if dep.key not in installed_names]

        size = calculate_initial_download_size(self.settings, dependencies)
        tracker = _ProgressTracker(
            callback,
            total=size + 1,
            expected=len(dependencies) + 1,
            on_finished=lambda: completed_callback([*dependencies, combo]),
        )
        status = self.download_and_save(combo, lambda progress, item_status, error: tracker(progress, package.name, item_status, error))
        if status is not Status.SUCCESS:
            return False
        if not dependencies:
            return True
        return self.queue_download_dependencies(dependencies, tracker)

    def download_latest_of_all(
        self,
        installed: Sequence[InstalledEntry],
        catalog: Catalog,
        callback: ProgressCallback,
        completed_callback: CompletedCallback,
    ) -> bool:
        to_update = get_latest_of_all_to_update(installed, catalog)
        dependencies = list(to_update)
        for combo in to_update:
            dependencies = build_dependency_set(combo.version, catalog, Policy.LATEST, existing=dependencies)
        sort_dependency_order(dependencies)
        return self._run_queue(dependencies, callback, completed_callback)

    def download_imported_mods(
        self,
        mod_list: Sequence[InstalledEntry],
        catalog: Catalog,
        callback: ProgressCallback,
        completed_callback: CompletedCallback,
    ) -> bool:
        combos: List[Combo] = []
        for entry in mod_list:
            package = catalog.find(entry.name)
            if package is None:
                logger.warning("Imported mod %s is not in the catalog", entry.name)
                continue
            for version in package.versions:
                if version.version_number.is_equal_to(entry.version_number):
                    combos.append(Combo(package=package, version=version))
        return self._run_queue(combos, callback, completed_callback)

    def _run_queue(self, combos: List[Combo], callback: ProgressCallback, completed_callback: CompletedCallback) -> bool:
        if not combos:
            completed_callback([])
            return True
        size = calculate_initial_download_size(self.settings, combos)
        tracker = _ProgressTracker(
            callback,
            total=size + 1,
            expected=len(combos),
            on_finished=lambda: completed_callback(list(combos)),
        )
        return self.queue_download_dependencies(combos, tracker)
