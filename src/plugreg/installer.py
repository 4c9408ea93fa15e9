"""Plugin installer keeping the registry in sync with installed packages.

This module provides the descriptor builder used by the package manager
for plugin-typed packages:
- Deriving a PluginDescriptor from package metadata and its overrides
- Registering and unregistering descriptors in the RegistryStore
- Install/update/uninstall transactions around an external library
  installer, with rollback when the new package is not a valid plugin

Transactions:
    install:   library.install -> add_plugin
               (invalid plugin: library.uninstall, re-raise)
    update:    library.update -> remove old entry -> add_plugin
               (invalid plugin: library.update reversed, restore old entry,
               re-raise)
    uninstall: library.uninstall -> remove entry
"""

from collections.abc import Mapping
from enum import Enum
import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from plugreg.models.base import PackageInfo, PluginDescriptor, PluginExtra, RegistryEntry
from plugreg.store import RegistryStore

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE_TYPE = "registry-plugin"
DEFAULT_SCHEMA_FILE = "schema.xml"


class PluginError(Exception):
    """Base exception for plugin-related errors.

    Attributes:
        plugin_name: Name of the package that caused the error (if known)
        cause: The underlying exception that caused this error (if any)
    """

    def __init__(
        self,
        message: str,
        plugin_name: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.plugin_name = plugin_name
        self.cause = cause

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.plugin_name:
            parts.insert(0, f"[{self.plugin_name}]")
        if self.cause:
            parts.append(f"(caused by: {self.cause})")
        return " ".join(parts)


class InvalidPluginError(PluginError):
    """Raised when a package cannot be treated as a valid plugin.

    This can occur when:
    - An override in the package's extra block is not a string
    - The resulting name, title or version is empty
    - A validate_descriptor() hook rejects the descriptor
    """


class TransactionState(str, Enum):
    """States of a single package transaction."""

    REQUESTED = "requested"
    INSTALLED = "installed"
    UPDATED = "updated"
    UNINSTALLED = "uninstalled"
    ROLLING_BACK = "rolling_back"
    FAILED = "failed"


@runtime_checkable
class LibraryInstaller(Protocol):
    """Places and removes package files on disk.

    Supplied by the package manager. ``update`` must accept its arguments
    swapped to move back to the initial package.
    """

    def install(self, repo: Any, package: PackageInfo) -> None: ...

    def update(self, repo: Any, initial: PackageInfo, target: PackageInfo) -> None: ...

    def uninstall(self, repo: Any, package: PackageInfo) -> None: ...

    def get_install_path(self, package: PackageInfo) -> Path | None: ...


class PluginInstaller:
    """Installer for plugin packages that maintains the plugin registry.

    File placement is delegated to the library installer; this class only
    touches the registry file, through the RegistryStore.

    Example:
        store = RegistryStore(Path("vendor"))
        installer = PluginInstaller(library, store)
        installer.install(repo, package)
        installer.update(repo, package, newer_package)
        installer.uninstall(repo, newer_package)
    """

    def __init__(
        self,
        library: LibraryInstaller,
        store: RegistryStore,
        *,
        package_type: str = DEFAULT_PACKAGE_TYPE,
        schema_file: str = DEFAULT_SCHEMA_FILE,
    ) -> None:
        """Initialize the installer.

        Args:
            library: Installer performing the file operations
            store: Registry store to keep in sync
            package_type: Package type handled by this installer
            schema_file: File name that marks a package as shipping a schema
        """
        self._library = library
        self._store = store
        self._package_type = package_type
        self._schema_file = schema_file

    @property
    def store(self) -> RegistryStore:
        """Return the registry store."""
        return self._store

    @property
    def package_type(self) -> str:
        """Return the handled package type."""
        return self._package_type

    def supports(self, package_type: str) -> bool:
        """Return True if this installer handles the package type."""
        return package_type == self._package_type

    # Transactions

    def install(self, repo: Any, package: PackageInfo) -> None:
        """Install a plugin package and register it.

        Raises:
            InvalidPluginError: If the package is not a valid plugin. The
                package files are removed again before raising.
        """
        self._transition(package, TransactionState.REQUESTED, "install")
        self._library.install(repo, package)

        try:
            self.add_plugin(package)
        except InvalidPluginError:
            self._transition(package, TransactionState.ROLLING_BACK, "install")
            self._library.uninstall(repo, package)
            self._transition(package, TransactionState.FAILED, "install")
            raise

        self._transition(package, TransactionState.INSTALLED, "install")

    def update(self, repo: Any, initial: PackageInfo, target: PackageInfo) -> None:
        """Update a plugin package and replace its registry entry.

        Raises:
            InvalidPluginError: If the target package is not a valid plugin.
                The initial package files and its previous registry entry
                are restored before raising.
        """
        self._transition(target, TransactionState.REQUESTED, "update")
        self._library.update(repo, initial, target)

        initial_entry = self.remove_plugin(initial)

        try:
            self.add_plugin(target)
        except InvalidPluginError:
            self._transition(target, TransactionState.ROLLING_BACK, "update")
            self._library.update(repo, target, initial)
            if initial_entry is not None:
                self.register_plugin(initial.name, initial_entry)
            self._transition(target, TransactionState.FAILED, "update")
            raise

        self._transition(target, TransactionState.UPDATED, "update")

    def uninstall(self, repo: Any, package: PackageInfo) -> None:
        """Uninstall a plugin package and drop its registry entry."""
        self._transition(package, TransactionState.REQUESTED, "uninstall")
        self._library.uninstall(repo, package)
        self.remove_plugin(package)
        self._transition(package, TransactionState.UNINSTALLED, "uninstall")

    # Descriptors

    def build_descriptor(self, package: PackageInfo) -> PluginDescriptor:
        """Derive the plugin descriptor for a package.

        Overrides from the package's extra block win; otherwise values are
        computed from the package metadata.

        Raises:
            InvalidPluginError: If no valid descriptor can be built
        """
        try:
            extra = PluginExtra.model_validate(package.extra)
        except ValidationError as e:
            raise InvalidPluginError(
                "Invalid plugin overrides in package extra",
                plugin_name=package.name,
                cause=e,
            ) from e

        fields: dict[str, Any] = {
            "name": _first(extra.name, package.display_name.replace("/", ".")),
            "title": _first(extra.title, package.display_name),
            "version": _first(extra.version, package.pretty_version),
        }

        if extra.description is not None:
            fields["description"] = extra.description
        elif package.description:
            fields["description"] = package.description

        if extra.author is not None:
            fields["author"] = extra.author
        elif package.authors and package.authors[0].name:
            fields["author"] = package.authors[0].name

        install_path = self._install_path(package)
        if install_path is not None and (install_path / self._schema_file).is_file():
            fields["schema"] = self._schema_file

        try:
            descriptor = PluginDescriptor(**fields)
        except ValidationError as e:
            raise InvalidPluginError(
                "Package does not describe a valid plugin",
                plugin_name=package.name,
                cause=e,
            ) from e

        self.validate_descriptor(descriptor, package)
        return descriptor

    def validate_descriptor(self, descriptor: PluginDescriptor, package: PackageInfo) -> None:
        """Hook for additional plugin validity rules.

        Subclasses raise InvalidPluginError to reject a package.
        """

    def _install_path(self, package: PackageInfo) -> Path | None:
        if package.install_path is not None:
            return Path(package.install_path)
        return self._library.get_install_path(package)

    # Registry

    def add_plugin(self, package: PackageInfo) -> PluginDescriptor:
        """Build the package's descriptor and store it in the registry.

        Raises:
            InvalidPluginError: If the package is not a valid plugin
        """
        descriptor = self.build_descriptor(package)
        self.register_plugin(package.name, descriptor.to_entry())
        return descriptor

    def register_plugin(self, name: str, entry: Mapping[str, Any]) -> None:
        """Store a registry entry verbatim under a package name."""
        registry = self._store.load()
        registry[name] = dict(entry)
        self._store.save(registry)
        logger.info("Registered plugin %s", name)

    def remove_plugin(self, package: PackageInfo) -> RegistryEntry | None:
        """Remove a package's registry entry.

        Returns:
            The removed entry, or None if the package was not registered
        """
        return self.unregister_plugin(package.name)

    def unregister_plugin(self, name: str) -> RegistryEntry | None:
        """Remove a registry entry by package name.

        The registry file is left untouched when the name is not registered.

        Returns:
            The removed entry, or None if the package was not registered
        """
        registry = self._store.load()
        if name not in registry:
            return None

        entry = registry.pop(name)
        self._store.save(registry)
        logger.info("Unregistered plugin %s", name)
        return entry

    def _transition(self, package: PackageInfo, state: TransactionState, operation: str) -> None:
        logger.debug("%s %s: %s", operation, package.name, state.value)


def _first(override: str | None, default: str) -> str:
    return override if override is not None else default
