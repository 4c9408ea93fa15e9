"""Persistent storage for the plugin registry file.

This module provides:
- InstallRootPath: Explicit token for paths relative to the install root
- RegistryCache: Process-wide cache of parsed registry files
- RegistryStore: Load/save of the registry with path portabilization

The registry file is YAML. Any string under the install root is written as
an ``!install-root <suffix>`` scalar and expanded again on load, using the
install root derived from the file's own location. A registry copied
together with its install root to another directory stays valid.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
import logging
from pathlib import Path, PurePosixPath
import threading
from typing import Any

import yaml

from plugreg.models.base import Registry

logger = logging.getLogger(__name__)

INSTALL_ROOT_TAG = "!install-root"
DEFAULT_REGISTRY_FILE = "plugreg/plugins.yaml"

FILE_HEADER = (
    "# This file is generated by plugreg. Do not edit it by hand:\n"
    "# it is rewritten on every plugin install, update and uninstall.\n"
)


@dataclass(frozen=True)
class InstallRootPath:
    """A path stored relative to the install root.

    Attributes:
        suffix: Text following the install root, separator included
            ("" for the root itself, "/" for the root with a trailing slash)
    """

    suffix: str = ""

    def resolve(self, root: str) -> str:
        """Return the absolute path under the given install root."""
        if not self.suffix:
            return root
        return root.rstrip("/") + self.suffix


class RegistryDumper(yaml.SafeDumper):
    """YAML dumper that knows the install-root token."""


class RegistryLoader(yaml.SafeLoader):
    """YAML loader that knows the install-root token."""


def _represent_install_root(dumper: yaml.SafeDumper, token: InstallRootPath) -> yaml.Node:
    return dumper.represent_scalar(INSTALL_ROOT_TAG, token.suffix)


def _construct_install_root(loader: yaml.SafeLoader, node: yaml.Node) -> InstallRootPath:
    return InstallRootPath(str(loader.construct_scalar(node)))


RegistryDumper.add_representer(InstallRootPath, _represent_install_root)
RegistryLoader.add_constructor(INSTALL_ROOT_TAG, _construct_install_root)


def _posix(path: Path | str) -> str:
    return str(path).replace("\\", "/").rstrip("/") or "/"


def portabilize(value: Any, root: str) -> Any:
    """Replace strings under ``root`` with InstallRootPath tokens.

    Only whole path prefixes match: "/srv/vendor-old" is not under
    "/srv/vendor". Backslashes count as separators when matching, but the
    suffix keeps the string's own separators, so only the root part of a
    path is rewritten on load.

    Args:
        value: Registry data (mapping, list or scalar)
        root: Install root in POSIX form

    Returns:
        A copy of ``value`` with tokens in place of matching strings
    """
    if isinstance(value, str):
        candidate = value.replace("\\", "/")
        prefix = root.rstrip("/")
        if candidate == root:
            return InstallRootPath()
        if candidate.startswith(prefix + "/"):
            return InstallRootPath(value[len(prefix) :])
        return value
    if isinstance(value, dict):
        return {k: portabilize(v, root) for k, v in value.items()}
    if isinstance(value, list):
        return [portabilize(item, root) for item in value]
    return value


def expand(value: Any, root: str) -> Any:
    """Resolve InstallRootPath tokens against ``root``."""
    if isinstance(value, InstallRootPath):
        return value.resolve(root)
    if isinstance(value, dict):
        return {k: expand(v, root) for k, v in value.items()}
    if isinstance(value, list):
        return [expand(item, root) for item in value]
    return value


class RegistryCache:
    """Process-wide cache of parsed registry files.

    Entries are keyed by resolved path and are only served while the file's
    modification time and size are unchanged. Writers must invalidate the
    entry after rewriting the file, since two writes within the same
    timestamp tick would otherwise look identical.

    Example:
        >>> cache = RegistryCache()
        >>> cache.put(path, {"acme/widgets": {...}})
        >>> cache.get(path)
        {'acme/widgets': {...}}
        >>> cache.invalidate(path)
    """

    def __init__(self) -> None:
        self._entries: dict[Path, tuple[tuple[int, int], Any]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(path: Path) -> Path:
        return Path(path).resolve()

    @staticmethod
    def _stamp(path: Path) -> tuple[int, int] | None:
        try:
            stat = path.stat()
        except OSError:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    def get(self, path: Path) -> Any | None:
        """Return a copy of the cached data, or None if missing or stale."""
        key = self._key(path)
        stamp = self._stamp(key)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or stamp is None or entry[0] != stamp:
                self.misses += 1
                return None
            self.hits += 1
            return copy.deepcopy(entry[1])

    def put(self, path: Path, data: Any) -> None:
        """Cache parsed data for the file's current state."""
        key = self._key(path)
        stamp = self._stamp(key)
        if stamp is None:
            return
        with self._lock:
            self._entries[key] = (stamp, copy.deepcopy(data))

    def invalidate(self, path: Path) -> None:
        """Drop the cached data for a file."""
        with self._lock:
            if self._entries.pop(self._key(path), None) is not None:
                logger.debug("Invalidated cached registry %s", path)

    def clear(self) -> None:
        """Drop all cached data."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return self._key(Path(path)) in self._entries


# Shared by every store in the process
registry_cache = RegistryCache()


class RegistryStore:
    """Loads and saves the plugin registry file.

    The store performs a full read and a full rewrite for every change.
    There is no locking: the package manager serializes install operations,
    and concurrent writers are not supported.

    Example:
        store = RegistryStore(Path("vendor"))
        registry = store.load()
        registry["acme/widgets"] = {"name": "acme.widgets", ...}
        store.save(registry)
    """

    def __init__(
        self,
        install_root: Path | str,
        registry_file: str = DEFAULT_REGISTRY_FILE,
        cache: RegistryCache | None = registry_cache,
    ) -> None:
        """Initialize the store.

        Args:
            install_root: Directory all managed packages are installed under
            registry_file: Registry file path relative to the install root
            cache: Parsed-file cache to keep coherent, None to disable
        """
        relative = PurePosixPath(_posix(registry_file))
        if relative.is_absolute() or not relative.parts or ".." in relative.parts:
            raise ValueError(f"Registry file must be relative to the install root: {registry_file}")
        self._install_root = Path(install_root).absolute()
        self._relative = relative
        self._cache = cache

    @property
    def install_root(self) -> Path:
        """Return the install root directory."""
        return self._install_root

    @property
    def path(self) -> Path:
        """Return the absolute registry file path."""
        return self._install_root.joinpath(*self._relative.parts)

    def _root_for(self, file: Path) -> str:
        """Derive the install root from the registry file's location."""
        return _posix(file.absolute().parents[len(self._relative.parts) - 1])

    def _invalidate(self) -> None:
        if self._cache is not None:
            self._cache.invalidate(self.path)

    def load(self) -> Registry:
        """Read the registry.

        Returns:
            The stored mapping, or an empty mapping if the file does not exist.
            Entries are returned as stored, without shape validation.

        Raises:
            OSError: If the file cannot be read
            yaml.YAMLError: If the file is not valid YAML
        """
        file = self.path
        if not file.is_file():
            return {}

        self._invalidate()

        raw = yaml.load(file.read_text(encoding="utf-8"), Loader=RegistryLoader)
        registry = expand(raw, self._root_for(file)) if raw is not None else {}

        if self._cache is not None:
            self._cache.put(file, registry)
        return registry

    def cached(self) -> Registry:
        """Return the registry, served from the process cache when fresh."""
        if self._cache is not None:
            data = self._cache.get(self.path)
            if data is not None:
                return data
        return self.load()

    def save(self, registry: Registry) -> None:
        """Rewrite the registry file.

        Args:
            registry: Complete mapping of package identity to entry

        Raises:
            OSError: If the directory or file cannot be written
        """
        file = self.path
        file.parent.mkdir(parents=True, exist_ok=True)

        data = portabilize(registry, _posix(self._install_root))
        body = yaml.dump(
            data,
            Dumper=RegistryDumper,
            default_flow_style=False,
            sort_keys=True,
            allow_unicode=True,
        )
        file.write_text(FILE_HEADER + "\n" + body, encoding="utf-8")
        logger.debug("Wrote %d plugin(s) to %s", len(registry), file)

        self._invalidate()
