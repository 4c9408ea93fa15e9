"""Pydantic data models for plugreg.

This module provides the core data models used throughout plugreg:
- PackageInfo, PackageAuthor: Package metadata reported by the package manager
- PluginExtra: Recognized descriptor overrides
- PluginDescriptor: One registry entry
- Registry, RegistryEntry: Persisted mapping types
"""

from plugreg.models.base import (
    MANIFEST_FILE,
    PackageAuthor,
    PackageInfo,
    PluginDescriptor,
    PluginExtra,
    Registry,
    RegistryEntry,
)

__all__ = [
    # Package metadata
    "PackageAuthor",
    "PackageInfo",
    "MANIFEST_FILE",
    # Descriptors
    "PluginExtra",
    "PluginDescriptor",
    # Registry types
    "Registry",
    "RegistryEntry",
]
