"""Tests for dependency set construction, ordering and update planning."""

from __future__ import annotations

from modflow.models import Combo, InstalledEntry
from modflow.resolver import (
    Policy,
    build_dependency_set,
    get_latest_of_all_to_update,
    select_version,
    sort_dependency_order,
)
from modflow.version import VersionNumber


def _names(combos):
    return [f"{combo.package.full_name}@{combo.version.version_number}" for combo in combos]


def test_no_dependencies_yields_empty_set(make_package, catalog_of):
    root = make_package("Foo-Bar", [("1.0.0", [])])
    catalog = catalog_of(root, make_package("Baz-Qux", [("2.0.0", [])]))
    assert build_dependency_set(root.versions[0], catalog, Policy.EXACT) == []
    assert build_dependency_set(root.versions[0], catalog, Policy.LATEST) == []


def test_unknown_package_token_is_dropped(make_package, catalog_of):
    root = make_package("Foo-Bar", [("1.0.0", ["Nobody-Missing-1.0.0", "Baz-Qux-2.0.0"])])
    baz = make_package("Baz-Qux", [("2.0.0", [])])
    catalog = catalog_of(root, baz)
    assert _names(build_dependency_set(root.versions[0], catalog, Policy.EXACT)) == ["Baz-Qux@2.0.0"]


def test_exact_policy_skips_missing_version(make_package, catalog_of):
    root = make_package("Foo-Bar", [("1.0.0", ["Baz-Qux-9.9.9"])])
    catalog = catalog_of(root, make_package("Baz-Qux", [("2.0.0", [])]))
    assert build_dependency_set(root.versions[0], catalog, Policy.EXACT) == []


def test_exact_and_latest_policies_select_differently(make_package):
    package = make_package("Foo-Bar", [("1.2.3", []), ("1.3.0", [])])
    assert str(select_version(package, "Foo-Bar-1.2.3", Policy.EXACT).version_number) == "1.2.3"
    assert str(select_version(package, "Foo-Bar-1.2.3", Policy.LATEST).version_number) == "1.3.0"


def test_latest_policy_ignores_list_order(make_package):
    package = make_package("Foo-Bar", [("1.0.0", []), ("3.0.0", []), ("2.0.0", [])])
    assert str(select_version(package, "Foo-Bar-1.0.0", Policy.LATEST).version_number) == "3.0.0"


def test_latest_policy_tie_goes_to_later_entry(make_package):
    package = make_package("Foo-Bar", [("1.0.0", ["A-First-1.0.0"]), ("1.0.0", ["A-Second-1.0.0"])])
    selected = select_version(package, "Foo-Bar-1.0.0", Policy.LATEST)
    assert selected is package.versions[1]


def test_exact_policy_with_unparsable_suffix(make_package):
    package = make_package("Foo-Bar", [("1.0.0", [])])
    assert select_version(package, "Foo-Bar-latest", Policy.EXACT) is None


def test_duplicate_edges_yield_one_combo(make_package, catalog_of):
    root = make_package("Root-Mod", [("1.0.0", ["Foo-Bar-1.0.0", "Foo-Bar-1.1.0", "Lib-Core-1.0.0"])])
    foo = make_package("Foo-Bar", [("1.1.0", []), ("1.0.0", [])])
    lib = make_package("Lib-Core", [("1.0.0", ["Foo-Bar-1.1.0"])])
    catalog = catalog_of(root, foo, lib)
    combos = build_dependency_set(root.versions[0], catalog, Policy.EXACT)
    assert [combo.key for combo in combos].count("Foo-Bar") == 1
    # First edge wins.
    assert _names(combos) == ["Foo-Bar@1.0.0", "Lib-Core@1.0.0"]


def test_cycle_terminates(make_package, catalog_of):
    a = make_package("Cyc-A", [("1.0.0", ["Cyc-B-1.0.0"])])
    b = make_package("Cyc-B", [("1.0.0", ["Cyc-A-1.0.0"])])
    catalog = catalog_of(a, b)
    combos = build_dependency_set(a.versions[0], catalog, Policy.EXACT)
    assert _names(combos) == ["Cyc-B@1.0.0"]


def test_discovery_is_breadth_first_per_level(make_package, catalog_of):
    root = make_package("Root-Mod", [("1.0.0", ["A-One-1.0.0", "B-Two-1.0.0"])])
    a = make_package("A-One", [("1.0.0", ["C-Three-1.0.0"])])
    b = make_package("B-Two", [("1.0.0", ["D-Four-1.0.0"])])
    c = make_package("C-Three", [("1.0.0", [])])
    d = make_package("D-Four", [("1.0.0", [])])
    catalog = catalog_of(root, a, b, c, d)
    combos = build_dependency_set(root.versions[0], catalog, Policy.EXACT)
    assert _names(combos) == ["A-One@1.0.0", "B-Two@1.0.0", "C-Three@1.0.0", "D-Four@1.0.0"]


def test_existing_combos_are_kept_and_not_duplicated(make_package, catalog_of):
    root = make_package("Root-Mod", [("1.0.0", ["A-One-1.0.0", "B-Two-1.0.0"])])
    a = make_package("A-One", [("1.0.0", [])])
    b = make_package("B-Two", [("1.0.0", [])])
    catalog = catalog_of(root, a, b)
    existing = [Combo(package=a, version=a.versions[0])]
    combos = build_dependency_set(root.versions[0], catalog, Policy.LATEST, existing=existing)
    assert _names(combos) == ["A-One@1.0.0", "B-Two@1.0.0"]
    assert existing == [Combo(package=a, version=a.versions[0])]


def test_prefix_match_uses_catalog_order(make_package, catalog_of):
    root = make_package("Root-Mod", [("1.0.0", ["Foo-Bar-Extra-1.0.0"])])
    extra = make_package("Foo-Bar-Extra", [("1.0.0", [])])
    catalog = catalog_of(root, extra)
    assert _names(build_dependency_set(root.versions[0], catalog, Policy.EXACT)) == ["Foo-Bar-Extra@1.0.0"]


def test_sort_places_dependency_first(make_package):
    lib = make_package("Lib-Core", [("1.0.0", [])])
    app = make_package("App-Main", [("1.0.0", ["Lib-Core-1.0.0"])])
    for start in ([app, lib], [lib, app]):
        combos = [Combo(package=p, version=p.versions[0]) for p in start]
        sort_dependency_order(combos)
        assert [combo.key for combo in combos] == ["Lib-Core", "App-Main"]


def test_update_planner_includes_outdated(make_package, catalog_of):
    foo = make_package("Foo-Bar", [("1.1.0", []), ("1.0.0", [])])
    catalog = catalog_of(foo)
    installed = [InstalledEntry(name="Foo-Bar", version_number=VersionNumber(1, 0, 0))]
    assert _names(get_latest_of_all_to_update(installed, catalog)) == ["Foo-Bar@1.1.0"]


def test_update_planner_excludes_current(make_package, catalog_of):
    foo = make_package("Foo-Bar", [("1.1.0", []), ("1.0.0", [])])
    catalog = catalog_of(foo)
    installed = [InstalledEntry(name="Foo-Bar", version_number=VersionNumber(1, 1, 0))]
    assert get_latest_of_all_to_update(installed, catalog) == []


def test_update_planner_filters_uninstalled_dependencies(make_package, catalog_of):
    foo = make_package("Foo-Bar", [("2.0.0", ["Lib-Core-1.0.0"]), ("1.0.0", [])])
    lib = make_package("Lib-Core", [("1.5.0", []), ("1.0.0", [])])
    catalog = catalog_of(foo, lib)
    installed = [InstalledEntry(name="Foo-Bar", version_number=VersionNumber(1, 0, 0))]
    assert _names(get_latest_of_all_to_update(installed, catalog)) == ["Foo-Bar@2.0.0"]


def test_update_planner_updates_installed_dependency(make_package, catalog_of):
    foo = make_package("Foo-Bar", [("2.0.0", ["Lib-Core-1.0.0"])])
    lib = make_package("Lib-Core", [("1.5.0", []), ("1.0.0", [])])
    catalog = catalog_of(foo, lib)
    installed = [
        InstalledEntry(name="Foo-Bar", version_number=VersionNumber(2, 0, 0)),
        InstalledEntry(name="Lib-Core", version_number=VersionNumber(1, 0, 0)),
    ]
    assert _names(get_latest_of_all_to_update(installed, catalog)) == ["Lib-Core@1.5.0"]


def test_update_planner_skips_unknown_installed(make_package, catalog_of):
    catalog = catalog_of(make_package("Foo-Bar", [("1.0.0", [])]))
    installed = [InstalledEntry(name="Gone-Mod", version_number=VersionNumber(1, 0, 0))]
    assert get_latest_of_all_to_update(installed, catalog) == []


def test_update_planner_later_write_wins(make_package, catalog_of):
    # Lib-Core is first reached as a dependency (greatest version, 2.0.0) and
    # later appended as an installed package (catalog-first version, 1.0.0).
    foo = make_package("Foo-Bar", [("1.0.0", ["Lib-Core-1.0.0"])])
    lib = make_package("Lib-Core", [("1.0.0", []), ("2.0.0", [])])
    catalog = catalog_of(foo, lib)
    installed = [
        InstalledEntry(name="Foo-Bar", version_number=VersionNumber(1, 0, 0)),
        InstalledEntry(name="Lib-Core", version_number=VersionNumber(0, 9, 0)),
    ]
    assert _names(get_latest_of_all_to_update(installed, catalog)) == ["Lib-Core@1.0.0"]
