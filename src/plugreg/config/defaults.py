"""Default configuration values for plugreg.

This module defines the default configuration used when no config file exists
or when config values are not specified. All configuration options are documented
here for reference.

Environment Variables:
    PLUGREG_CONFIG_PATH: Override default config file path
    Any config value can reference environment variables using ${VAR} syntax

Config File Locations (in order of precedence):
    1. Path specified via --config CLI flag
    2. Path specified via PLUGREG_CONFIG_PATH environment variable
    3. ./plugreg.yaml (project-local)
    4. ~/.config/plugreg/config.yaml (XDG default)
"""

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    # Directory all managed packages are installed under
    "install_root": "vendor",
    # Registry file, relative to install_root
    "registry_file": "plugreg/plugins.yaml",
    # Package type handled by the plugin installer
    "package_type": "registry-plugin",
    # Marker file recorded as the plugin's schema when present
    "schema_file": "schema.xml",
    # Manifest file read from package directories by the CLI
    "manifest_file": "package.yaml",
    # Process-level cache of parsed registry files
    "cache": {
        "enabled": True,
    },
    # Logging configuration (for debugging)
    "logging": {
        "enabled": False,
        "level": "INFO",  # DEBUG, INFO, WARNING, ERROR
        "file": None,
    },
}
