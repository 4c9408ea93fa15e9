"""Base Pydantic models for plugreg data types.

This module defines the data models shared by the registry store and the
plugin installer:
- PackageAuthor: One author record from a package manifest
- PackageInfo: Metadata of a package as reported by the package manager
- PluginExtra: Recognized per-package overrides for descriptor fields
- PluginDescriptor: The registry entry describing one installed plugin
- Registry, RegistryEntry: Type aliases for the persisted mapping
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
import yaml

# Stored entries are kept as plain mappings; the store never validates them.
RegistryEntry = dict[str, Any]
Registry = dict[str, RegistryEntry]

MANIFEST_FILE = "package.yaml"


class PackageAuthor(BaseModel):
    """A single author record of a package.

    Attributes:
        name: Author name
        email: Contact address
        homepage: Author homepage URL
        role: Free-form role (e.g. "Developer")
    """

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    email: str | None = None
    homepage: str | None = None
    role: str | None = None


class PluginExtra(BaseModel):
    """Recognized overrides from a package's ``extra`` block.

    Only the keys below are taken into account; anything else in the
    block is ignored. A key set to null counts as not set.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str | None = None
    title: str | None = None
    version: str | None = None
    description: str | None = None
    author: str | None = None


class PackageInfo(BaseModel):
    """Metadata of a package as seen by the package manager.

    Attributes:
        name: Stable package identity (e.g. "acme/widgets")
        pretty_name: Human-friendly package name, defaults to ``name``
        pretty_version: Resolved version string
        package_type: Package type used to pick an installer
        description: Optional long description
        authors: Author records, first one wins for the descriptor
        extra: Arbitrary key-value block carrying plugin overrides
        install_path: Directory the package files were placed in
    """

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    pretty_name: str | None = None
    pretty_version: str = ""
    package_type: str = "library"
    description: str | None = None
    authors: list[PackageAuthor] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)
    install_path: Path | None = None

    @property
    def display_name(self) -> str:
        """Return the pretty name, falling back to the identity."""
        return self.pretty_name or self.name

    @classmethod
    def from_manifest(cls, path: Path | str) -> "PackageInfo":
        """Read a package manifest file.

        The manifest is YAML (JSON manifests parse as well) with the keys
        ``name``, ``version``, ``type``, ``description``, ``authors`` and
        ``extra``. The manifest's directory becomes the install path.

        Args:
            path: Manifest file, or a package directory containing
                ``package.yaml``

        Returns:
            PackageInfo for the manifest

        Raises:
            FileNotFoundError: If the manifest does not exist
            ValueError: If the manifest is not a mapping, or its name or
                version is not a string
        """
        manifest = Path(path)
        if manifest.is_dir():
            manifest = manifest / MANIFEST_FILE
        raw = yaml.safe_load(manifest.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Package manifest must be a mapping: {manifest}")

        name = _manifest_string(raw, "name", manifest)
        return cls(
            name=name.lower(),
            pretty_name=name or None,
            pretty_version=_manifest_string(raw, "version", manifest),
            package_type=raw.get("type", "library"),
            description=raw.get("description"),
            authors=raw.get("authors") or [],
            extra=raw.get("extra") or {},
            install_path=manifest.parent.resolve(),
        )


def _manifest_string(raw: dict[str, Any], key: str, manifest: Path) -> str:
    # Null reads as missing; unquoted numbers are lossy ("1.10" loads as 1.1)
    value = raw.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"Manifest key '{key}' must be a string in {manifest}, got {value!r}")
    return value


class PluginDescriptor(BaseModel):
    """Metadata record describing one installed plugin package.

    Attributes:
        name: Plugin identifier used by the host application
        title: Human-readable plugin title
        version: Plugin version string
        description: Optional plugin description
        author: Optional author name
        schema_path: "schema.xml" when the package ships a schema file
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    description: str | None = None
    author: str | None = None
    schema_path: str | None = Field(default=None, alias="schema")

    def to_entry(self) -> RegistryEntry:
        """Return the mapping stored in the registry file."""
        return self.model_dump(by_alias=True, exclude_none=True)
