"""CLI entry point for the mod resolver and downloader."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from .catalog import Catalog, CatalogProvider, load_catalog_file
from .config import DownloaderSettings, load_mod_list, load_settings
from .download import DownloadOrchestrator
from .exceptions import CatalogFetchError, DownloadError, SettingsError
from .models import Combo, InstalledEntry, Package, PackageVersion, ProgressEvent, Status
from .report import generate_json, generate_text
from .resolver import Policy, build_dependency_set, sort_dependency_order
from .version import VersionNumber

LOG_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--settings",
        default="modflow.yml",
        help="Settings file with mod_root, ignore_cache and registry_url (default: %(default)s)",
    )
    parser.add_argument("--catalog", help="Read the package listing from a local JSON file instead of the registry")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")


def _metadata_root(settings: DownloaderSettings) -> Path:
    return settings.mod_root_path / "metadata"


def _load_catalog(args: argparse.Namespace, settings: DownloaderSettings) -> Catalog:
    if args.catalog:
        return load_catalog_file(Path(args.catalog))
    provider = CatalogProvider(_metadata_root(settings), settings.registry_url, timeout=settings.timeout)
    try:
        return provider.get_catalog()
    finally:
        provider.close()


def _select_target(catalog: Catalog, name: str, version: Optional[str]) -> Tuple[Package, PackageVersion]:
    package = catalog.find(name)
    if package is None:
        raise ValueError(f"Unknown package {name}")
    if version is None:
        if package.latest is None:
            raise ValueError(f"{name} has no published versions")
        return package, package.latest
    wanted = VersionNumber.parse(version)
    for candidate in package.versions:
        if candidate.version_number.is_equal_to(wanted):
            return package, candidate
    raise ValueError(f"{name} has no version {version}")


class _ProgressPrinter:
    def __init__(self, stream=None):
        self.stream = stream or sys.stderr
        self.last: Optional[ProgressEvent] = None
        self.failure: Optional[ProgressEvent] = None
        self.completed: Optional[List[Combo]] = None

    def __call__(self, percent: float, label: str, status: Status, error: Optional[DownloadError]) -> None:
        event = ProgressEvent(percent=percent, label=label, status=status, error=error)
        self.last = event
        if status is Status.FAILURE:
            self.failure = event
            self.stream.write("\n")
            return
        self.stream.write(f"\r[{percent:5.1f}%] {label:<40}")
        if status is Status.SUCCESS:
            self.stream.write("\n")
        self.stream.flush()

    def complete(self, combos: List[Combo]) -> None:
        self.completed = combos

    def finish(self) -> int:
        if self.completed is not None:
            print(generate_text(self.completed, title="Downloaded:"))
            return 0
        if self.failure is not None and self.failure.error is not None:
            print(f"error: {self.failure.label}: {self.failure.error}", file=sys.stderr)
        else:
            print("error: download did not complete", file=sys.stderr)
        return 1


def cmd_update_cache(args: argparse.Namespace) -> int:
    try:
        settings = load_settings(Path(args.settings))
    except SettingsError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    provider = CatalogProvider(_metadata_root(settings), settings.registry_url, timeout=settings.timeout)
    try:
        catalog = provider.get_catalog(refresh=True)
    except CatalogFetchError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        provider.close()
    print(f"Cached listing of {len(catalog)} packages from {settings.registry_url}")
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    try:
        settings = load_settings(Path(args.settings))
        catalog = _load_catalog(args, settings)
        package, version = _select_target(catalog, args.package, args.version)
    except (CatalogFetchError, SettingsError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    if args.policy:
        policy = Policy(args.policy)
    else:
        policy = Policy.EXACT if package.is_modpack else Policy.LATEST
    combos = sort_dependency_order(build_dependency_set(version, catalog, policy))
    root = Combo(package=package, version=version)
    if args.format == "json":
        print(generate_json(combos, root=root))
    else:
        print(generate_text(combos, root=root))
    return 0


def cmd_install(args: argparse.Namespace) -> int:
    try:
        settings = load_settings(Path(args.settings))
        catalog = _load_catalog(args, settings)
        package, version = _select_target(catalog, args.package, args.version)
    except (CatalogFetchError, SettingsError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    def installed() -> List[InstalledEntry]:
        return load_mod_list(Path(args.profile)) if args.profile else []

    printer = _ProgressPrinter()
    orchestrator = DownloadOrchestrator(settings)
    try:
        orchestrator.download(package, version, catalog, installed, printer, printer.complete)
    finally:
        orchestrator.close()
    return printer.finish()


def cmd_update(args: argparse.Namespace) -> int:
    try:
        settings = load_settings(Path(args.settings))
        catalog = _load_catalog(args, settings)
        installed = load_mod_list(Path(args.profile))
    except (CatalogFetchError, SettingsError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    printer = _ProgressPrinter()
    orchestrator = DownloadOrchestrator(settings)
    try:
        orchestrator.download_latest_of_all(installed, catalog, printer, printer.complete)
    finally:
        orchestrator.close()
    return printer.finish()


def cmd_import(args: argparse.Namespace) -> int:
    try:
        settings = load_settings(Path(args.settings))
        catalog = _load_catalog(args, settings)
        mod_list = load_mod_list(Path(args.mod_list))
    except (CatalogFetchError, SettingsError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    printer = _ProgressPrinter()
    orchestrator = DownloadOrchestrator(settings)
    try:
        orchestrator.download_imported_mods(mod_list, catalog, printer, printer.complete)
    finally:
        orchestrator.close()
    return printer.finish()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resolve and download mod packages with their dependencies")
    subparsers = parser.add_subparsers(dest="command", required=True)

    update_cache = subparsers.add_parser("update-cache", help="Refresh the cached registry package listing")
    _add_common_arguments(update_cache)
    update_cache.set_defaults(func=cmd_update_cache)

    plan = subparsers.add_parser("plan", help="Show the dependency install order for a package")
    _add_common_arguments(plan)
    plan.add_argument("package", help="Full package name, e.g. Owner-Name")
    plan.add_argument("--version", help="Version to resolve (default: latest)")
    plan.add_argument(
        "--policy",
        choices=[policy.value for policy in Policy],
        help="Dependency version policy (default: exact for modpacks, latest otherwise)",
    )
    plan.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    plan.set_defaults(func=cmd_plan)

    install = subparsers.add_parser("install", help="Download a package and its dependencies into the cache")
    _add_common_arguments(install)
    install.add_argument("package", help="Full package name, e.g. Owner-Name")
    install.add_argument("--version", help="Version to install (default: latest)")
    install.add_argument("--profile", help="Profile mod list; installed dependencies are not downloaded again")
    install.set_defaults(func=cmd_install)

    update = subparsers.add_parser("update", help="Download newer versions of every installed mod")
    _add_common_arguments(update)
    update.add_argument("--profile", required=True, help="Profile mod list to update")
    update.set_defaults(func=cmd_update)

    import_ = subparsers.add_parser("import", help="Download the exact versions listed in an exported mod list")
    _add_common_arguments(import_)
    import_.add_argument("mod_list", help="Exported mod list file")
    import_.set_defaults(func=cmd_import)

    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
