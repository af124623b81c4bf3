"""Dependency set construction, ordering and update planning."""
from __future__ import annotations

import logging
from enum import Enum
from functools import cmp_to_key, reduce
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .catalog import Catalog
from .models import Combo, InstalledEntry, Package, PackageVersion
from .version import VersionNumber

logger = logging.getLogger(__name__)


class Policy(Enum):
    EXACT = "exact"
    LATEST = "latest"


def select_version(package: Package, token: str, policy: Policy) -> Optional[PackageVersion]:
    """Pick the version of ``package`` that dependency ``token`` resolves to."""

    if not package.versions:
        return None
    if policy is Policy.LATEST:
        # Strict comparison: on equal numbers the later entry wins.
        return reduce(
            lambda one, two: one if one.version_number.is_newer_than(two.version_number) else two,
            package.versions,
        )
    try:
        wanted = VersionNumber.parse(token[len(package.full_name) + 1:])
    except ValueError:
        return None
    for version in package.versions:
        if version.version_number.is_equal_to(wanted):
            return version
    return None


def _expand(
    version: PackageVersion,
    catalog: Catalog,
    policy: Policy,
    collected: List[Combo],
    seen: Set[str],
) -> None:
    found: List[Combo] = []
    for token in version.dependencies:
        package = catalog.find_for_dependency(token)
        if package is None:
            logger.debug("Dropping unresolved dependency %s of %s", token, version.full_name)
            continue
        selected = select_version(package, token, policy)
        if selected is None:
            logger.debug("No %s version of %s matches %s", policy.value, package.full_name, token)
            continue
        if package.full_name in seen:
            continue
        seen.add(package.full_name)
        found.append(Combo(package=package, version=selected))
    collected.extend(found)
    for combo in found:
        _expand(combo.version, catalog, policy, collected, seen)


def build_dependency_set(
    version: PackageVersion,
    catalog: Catalog,
    policy: Policy = Policy.EXACT,
    existing: Iterable[Combo] = (),
) -> List[Combo]:
    """Return ``existing`` followed by the transitive dependencies of ``version``.

    Discovery is breadth first per level: every dependency of a version is
    appended before any of them is expanded. A package already collected,
    or the package ``version`` itself belongs to, is never added twice,
    which also stops dependency cycles.
    """

    collected = list(existing)
    seen = {combo.key for combo in collected}
    seen.add(version.package_full_name)
    _expand(version, catalog, policy, collected, seen)
    return collected


def _depends_on(combo: Combo, other: Combo) -> bool:
    prefix = other.package.full_name + "-"
    return any(token.startswith(prefix) for token in combo.version.dependencies)


def _compare_dependency_order(a: Combo, b: Combo) -> int:
    return 1 if _depends_on(a, b) else -1


def sort_dependency_order(combos: List[Combo]) -> List[Combo]:
    """Sort in place so that a combo follows the packages it depends on.

    The comparator only looks at direct pairs, so this is a best-effort
    partial order and not a topological sort.
    """

    combos.sort(key=cmp_to_key(_compare_dependency_order))
    return combos


def get_latest_of_all_to_update(installed: Sequence[InstalledEntry], catalog: Catalog) -> List[Combo]:
    """Installed packages whose latest resolution differs from the installed version."""

    dependencies: List[Combo] = []
    for entry in installed:
        package = catalog.find(entry.name)
        if package is None or package.latest is None:
            continue
        dependencies = build_dependency_set(package.latest, catalog, Policy.LATEST, existing=dependencies)
        dependencies.append(Combo(package=package, version=package.latest))

    merged: Dict[str, Combo] = {}
    for combo in dependencies:
        merged[combo.key] = combo

    installed_versions: Dict[str, VersionNumber] = {}
    for entry in installed:
        installed_versions.setdefault(entry.name, entry.version_number)
    updates: List[Combo] = []
    for combo in merged.values():
        current = installed_versions.get(combo.key)
        if current is None:
            continue
        if not current.is_equal_to(combo.version.version_number):
            updates.append(combo)
    return updates
