"""plugreg - plugin registry maintenance for package managers.

Keeps a generated registry file describing every installed plugin package
in sync with install, update and uninstall operations.
"""

from plugreg.installer import InvalidPluginError, PluginError, PluginInstaller
from plugreg.models import PackageInfo, PluginDescriptor
from plugreg.store import RegistryStore

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "InvalidPluginError",
    "PackageInfo",
    "PluginDescriptor",
    "PluginError",
    "PluginInstaller",
    "RegistryStore",
]
