"""Hooking the plugin installer into a package manager.

The package manager owns an InstallationManager that routes every package
operation to the installer supporting the package's type. Activating the
RegistrarPlugin adds a PluginInstaller for the configured plugin type.

Usage:
    manager = InstallationManager()
    plugin = RegistrarPlugin()
    plugin.activate(manager, library, config)

    manager.install(repo, package)   # routed by package.package_type
"""

import logging
from typing import Any, Protocol, runtime_checkable

from plugreg.config import Config
from plugreg.installer import LibraryInstaller, PluginError, PluginInstaller
from plugreg.models.base import PackageInfo
from plugreg.store import RegistryStore, registry_cache

logger = logging.getLogger(__name__)


class UnsupportedPackageTypeError(PluginError):
    """Raised when no installer handles a package type."""


@runtime_checkable
class Installer(Protocol):
    """Interface of installers known to the InstallationManager."""

    def supports(self, package_type: str) -> bool: ...

    def install(self, repo: Any, package: PackageInfo) -> None: ...

    def update(self, repo: Any, initial: PackageInfo, target: PackageInfo) -> None: ...

    def uninstall(self, repo: Any, package: PackageInfo) -> None: ...


class InstallationManager:
    """Routes package operations to the installer for each package type.

    Installers added later take precedence over earlier ones for the same
    package type.
    """

    def __init__(self) -> None:
        self._installers: list[Installer] = []

    @property
    def installers(self) -> list[Installer]:
        """Return registered installers, most recent first."""
        return list(self._installers)

    def add_installer(self, installer: Installer) -> None:
        """Register an installer."""
        self._installers.insert(0, installer)

    def remove_installer(self, installer: Installer) -> None:
        """Unregister an installer; unknown installers are ignored."""
        if installer in self._installers:
            self._installers.remove(installer)

    def get_installer(self, package_type: str) -> Installer:
        """Return the installer for a package type.

        Raises:
            UnsupportedPackageTypeError: If no installer supports the type
        """
        for installer in self._installers:
            if installer.supports(package_type):
                return installer
        raise UnsupportedPackageTypeError(f"Unknown installer type: {package_type}")

    def install(self, repo: Any, package: PackageInfo) -> None:
        self.get_installer(package.package_type).install(repo, package)

    def update(self, repo: Any, initial: PackageInfo, target: PackageInfo) -> None:
        # The target's type decides; a type change is handled by the new installer
        self.get_installer(target.package_type).update(repo, initial, target)

    def uninstall(self, repo: Any, package: PackageInfo) -> None:
        self.get_installer(package.package_type).uninstall(repo, package)


class RegistrarPlugin:
    """Package manager plugin registering the PluginInstaller."""

    def __init__(self) -> None:
        self._installer: PluginInstaller | None = None

    @property
    def installer(self) -> PluginInstaller | None:
        """Return the active installer, if activated."""
        return self._installer

    def activate(
        self,
        manager: InstallationManager,
        library: LibraryInstaller,
        config: Config | None = None,
    ) -> PluginInstaller:
        """Create the plugin installer and add it to the manager.

        Args:
            manager: The package manager's installation manager
            library: Installer performing the file operations
            config: plugreg configuration (defaults if omitted)

        Returns:
            The registered PluginInstaller
        """
        config = config or Config()
        store = RegistryStore(
            config.install_root_path,
            config.registry_file,
            cache=registry_cache if config.cache.enabled else None,
        )
        installer = PluginInstaller(
            library,
            store,
            package_type=config.package_type,
            schema_file=config.schema_file,
        )
        manager.add_installer(installer)
        self._installer = installer
        logger.debug("Activated plugin installer for '%s' packages", config.package_type)
        return installer

    def deactivate(self, manager: InstallationManager) -> None:
        """Remove the plugin installer from the manager."""
        if self._installer is not None:
            manager.remove_installer(self._installer)
            self._installer = None

    def uninstall(self, manager: InstallationManager) -> None:
        """Called when the plugin itself is removed from the package manager."""
        self.deactivate(manager)
