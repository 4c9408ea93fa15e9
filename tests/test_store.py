"""Tests for the plugreg registry store."""

from pathlib import Path
import shutil

import pytest
import yaml

from plugreg.store import (
    FILE_HEADER,
    INSTALL_ROOT_TAG,
    InstallRootPath,
    RegistryCache,
    RegistryStore,
    expand,
    portabilize,
    registry_cache,
)

WIDGETS = {
    "name": "acme.widgets",
    "title": "acme/widgets",
    "version": "1.2.0",
}


class TestInstallRootPath:
    """Tests for install-root tokens."""

    def test_resolve_suffix(self) -> None:
        """Test resolving a suffix against a root."""
        assert InstallRootPath("/acme/x/icon.png").resolve("/srv/vendor") == "/srv/vendor/acme/x/icon.png"

    def test_resolve_root_itself(self) -> None:
        """Test an empty suffix resolves to the root."""
        assert InstallRootPath().resolve("/srv/vendor") == "/srv/vendor"

    def test_portabilize_prefix_only(self) -> None:
        """Test only whole path prefixes are replaced."""
        data = {
            "inside": "/srv/vendor/acme/x",
            "root": "/srv/vendor",
            "sibling": "/srv/vendor-old/acme/x",
            "embedded": "see /srv/vendor/acme/x",
        }
        result = portabilize(data, "/srv/vendor")

        assert result["inside"] == InstallRootPath("/acme/x")
        assert result["root"] == InstallRootPath("")
        assert result["sibling"] == "/srv/vendor-old/acme/x"
        assert result["embedded"] == "see /srv/vendor/acme/x"

    def test_portabilize_windows_separators(self) -> None:
        """Test backslash paths match a POSIX root and keep their separators."""
        result = portabilize("C:\\app\\vendor\\acme\\x", "C:/app/vendor")
        assert result == InstallRootPath("\\acme\\x")
        assert result.resolve("C:/app/vendor") == "C:/app/vendor\\acme\\x"

    def test_trailing_slash_kept(self) -> None:
        """Test the root with a trailing slash differs from the root itself."""
        token = portabilize("/srv/vendor/", "/srv/vendor")
        assert token == InstallRootPath("/")
        assert token.resolve("/opt/vendor") == "/opt/vendor/"
        assert portabilize("/srv/vendor", "/srv/vendor").resolve("/opt/vendor") == "/opt/vendor"

    def test_filesystem_root(self) -> None:
        """Test paths under "/" when the install root is the filesystem root."""
        token = portabilize("/acme/x", "/")
        assert token == InstallRootPath("/acme/x")
        assert token.resolve("/") == "/acme/x"

    def test_expand_nested(self) -> None:
        """Test tokens are expanded inside lists and mappings."""
        data = {"a": [InstallRootPath("/x"), "plain"], "b": {"c": InstallRootPath()}}
        assert expand(data, "/root") == {"a": ["/root/x", "plain"], "b": {"c": "/root"}}


class TestRegistryStore:
    """Tests for RegistryStore load and save."""

    def test_default_path(self, install_root: Path) -> None:
        """Test the registry file lives below the install root."""
        store = RegistryStore(install_root)
        assert store.path == install_root / "plugreg" / "plugins.yaml"

    @pytest.mark.parametrize("registry_file", ["/etc/plugins.yaml", "../plugins.yaml", ""])
    def test_invalid_registry_file(self, install_root: Path, registry_file: str) -> None:
        """Test registry files outside the install root are rejected."""
        with pytest.raises(ValueError, match="relative to the install root"):
            RegistryStore(install_root, registry_file)

    def test_load_missing_file(self, store: RegistryStore) -> None:
        """Test loading a missing registry yields an empty mapping."""
        assert store.load() == {}
        assert not store.path.exists()

    def test_save_creates_directory(self, store: RegistryStore) -> None:
        """Test saving creates the registry directory."""
        store.save({"acme/widgets": WIDGETS})

        assert store.path.is_file()
        assert store.path.read_text(encoding="utf-8").startswith(FILE_HEADER)

    def test_round_trip(self, store: RegistryStore) -> None:
        """Test saved registries load back unchanged."""
        registry = {
            "acme/widgets": WIDGETS,
            "acme/gadgets": {
                "name": "gadgets",
                "title": "Gadgets",
                "version": "2.0.0-beta",
                "description": "Gadgets for everyone: ünïcode too",
                "author": "Jane",
                "schema": "schema.xml",
            },
        }
        store.save(registry)
        assert store.load() == registry

        store.save(store.load())
        assert store.load() == registry

    def test_round_trip_install_root_forms(self, store: RegistryStore, install_root: Path) -> None:
        """Test the root, the root with a slash and paths below it load back exactly."""
        root = install_root.as_posix()
        registry = {"p": {"root": root, "dir": f"{root}/", "file": f"{root}/acme/x/"}}

        store.save(registry)

        assert store.load() == registry

    def test_save_empty_registry(self, store: RegistryStore) -> None:
        """Test an empty registry round-trips."""
        store.save({})
        assert store.load() == {}

    def test_install_root_paths_are_tokens(self, store: RegistryStore, install_root: Path) -> None:
        """Test absolute paths under the install root are not written literally."""
        icon = f"{install_root.as_posix()}/acme/widgets/icon.png"
        store.save({"acme/widgets": {**WIDGETS, "icon": icon}})

        text = store.path.read_text(encoding="utf-8")
        assert INSTALL_ROOT_TAG in text
        assert install_root.as_posix() not in text
        assert store.load()["acme/widgets"]["icon"] == icon

    def test_relocated_install_root(self, tmp_path: Path) -> None:
        """Test a registry copied with its install root expands to the new root."""
        old_root = tmp_path / "old" / "vendor"
        new_root = tmp_path / "new" / "vendor"
        old_root.mkdir(parents=True)

        RegistryStore(old_root, cache=None).save(
            {"acme/widgets": {**WIDGETS, "icon": f"{old_root.as_posix()}/acme/widgets/icon.png"}}
        )
        shutil.copytree(old_root, new_root)
        shutil.rmtree(old_root)

        loaded = RegistryStore(new_root, cache=None).load()
        assert loaded == {
            "acme/widgets": {**WIDGETS, "icon": f"{new_root.as_posix()}/acme/widgets/icon.png"}
        }

    def test_root_follows_file_location(self, tmp_path: Path) -> None:
        """Test the expansion root comes from the file, not from a fixed path."""
        root = tmp_path / "vendor"
        store = RegistryStore(root, "nested/dir/plugins.yaml", cache=None)
        store.save({"p": {"path": f"{root.as_posix()}/p"}})

        text = store.path.read_text(encoding="utf-8")
        assert "!install-root /p" in text
        assert store.load() == {"p": {"path": f"{root.as_posix()}/p"}}

    def test_load_returns_data_as_is(self, store: RegistryStore) -> None:
        """Test malformed entries are returned without validation."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text("acme/odd: 5\nacme/list: [1, 2]\n", encoding="utf-8")

        assert store.load() == {"acme/odd": 5, "acme/list": [1, 2]}

    def test_load_invalid_yaml_propagates(self, store: RegistryStore) -> None:
        """Test YAML errors are not swallowed."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text("acme/odd: [unclosed\n", encoding="utf-8")

        with pytest.raises(yaml.YAMLError):
            store.load()

    def test_file_is_regenerated_wholesale(self, store: RegistryStore) -> None:
        """Test saving replaces the previous content entirely."""
        store.save({"acme/widgets": WIDGETS, "acme/gadgets": WIDGETS})
        store.save({"acme/gadgets": WIDGETS})

        assert store.load() == {"acme/gadgets": WIDGETS}
        assert "acme/widgets" not in store.path.read_text(encoding="utf-8")


class TestRegistryCache:
    """Tests for the process-level registry cache."""

    def test_get_missing(self, tmp_path: Path) -> None:
        """Test unknown files are cache misses."""
        cache = RegistryCache()
        assert cache.get(tmp_path / "nope.yaml") is None
        assert cache.misses == 1

    def test_put_and_get(self, tmp_path: Path) -> None:
        """Test cached data is served while the file is unchanged."""
        file = tmp_path / "plugins.yaml"
        file.write_text("{}\n", encoding="utf-8")
        cache = RegistryCache()

        cache.put(file, {"a": {"name": "a"}})

        assert file in cache
        assert cache.get(file) == {"a": {"name": "a"}}
        assert cache.hits == 1

    def test_get_returns_copy(self, tmp_path: Path) -> None:
        """Test callers cannot mutate cached data."""
        file = tmp_path / "plugins.yaml"
        file.write_text("{}\n", encoding="utf-8")
        cache = RegistryCache()
        cache.put(file, {"a": {"name": "a"}})

        cache.get(file)["a"]["name"] = "changed"

        assert cache.get(file) == {"a": {"name": "a"}}

    def test_stale_after_file_change(self, tmp_path: Path) -> None:
        """Test a rewritten file is not served from the cache."""
        file = tmp_path / "plugins.yaml"
        file.write_text("{}\n", encoding="utf-8")
        cache = RegistryCache()
        cache.put(file, {})

        file.write_text("a: {name: a}\n", encoding="utf-8")

        assert cache.get(file) is None

    def test_invalidate_and_clear(self, tmp_path: Path) -> None:
        """Test explicit invalidation."""
        first = tmp_path / "a.yaml"
        second = tmp_path / "b.yaml"
        for file in (first, second):
            file.write_text("{}\n", encoding="utf-8")
        cache = RegistryCache()
        cache.put(first, {})
        cache.put(second, {})

        cache.invalidate(first)
        assert first not in cache
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0

    def test_store_load_populates_cache(self, store: RegistryStore) -> None:
        """Test loading leaves a fresh copy in the shared cache."""
        store.save({"acme/widgets": WIDGETS})
        assert store.path not in registry_cache

        store.load()

        assert store.path in registry_cache
        assert store.cached() == {"acme/widgets": WIDGETS}

    def test_save_invalidates_cache(self, store: RegistryStore) -> None:
        """Test a save drops the cached registry."""
        store.save({"acme/widgets": WIDGETS})
        store.load()

        store.save({})

        assert store.path not in registry_cache
        assert store.cached() == {}

    def test_cached_falls_back_to_load(self, store: RegistryStore) -> None:
        """Test cached() reads the file when nothing is cached."""
        store.save({"acme/widgets": WIDGETS})
        assert store.cached() == {"acme/widgets": WIDGETS}

    def test_store_without_cache(self, install_root: Path) -> None:
        """Test a store with caching disabled never touches the cache."""
        store = RegistryStore(install_root, cache=None)
        store.save({"acme/widgets": WIDGETS})

        assert store.load() == {"acme/widgets": WIDGETS}
        assert store.cached() == {"acme/widgets": WIDGETS}
        assert len(registry_cache) == 0
