"""Command-line interface for plugreg.

This module provides:
- Typer-based CLI application
- Config file loading with CLI overrides
- Logging setup from the config's logging section
- Commands to inspect the registry and to register packages in place

Usage:
    plugreg list                     # Table of registered plugins
    plugreg show acme/widgets        # One registry entry
    plugreg describe path/to/pkg     # Preview the descriptor of a package
    plugreg register path/to/pkg     # Register an already installed package
    plugreg unregister acme/widgets  # Drop a registry entry

Examples:
    # Inspect the registry of another install root as JSON
    plugreg --install-root /srv/app/vendor list --json

    # Use a custom configuration file
    plugreg --config ~/.config/plugreg/custom.yaml list
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Any

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
import typer
import yaml

from plugreg import __version__
from plugreg.config import Config, LoggingConfig, load_config
from plugreg.installer import PluginError, PluginInstaller
from plugreg.models.base import PackageInfo, PluginDescriptor
from plugreg.store import RegistryStore, registry_cache

app = typer.Typer(
    name="plugreg",
    help="Maintain the registry of installed plugin packages",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class InPlaceLibrary:
    """Library installer for package directories that are already in place.

    The CLI never moves files; it only records what a package directory
    contains.
    """

    def install(self, repo: Any, package: PackageInfo) -> None:
        pass

    def update(self, repo: Any, initial: PackageInfo, target: PackageInfo) -> None:
        pass

    def uninstall(self, repo: Any, package: PackageInfo) -> None:
        pass

    def get_install_path(self, package: PackageInfo) -> Path | None:
        return package.install_path


def version_callback(value: bool) -> None:
    """Display version and exit."""
    if value:
        console.print(f"plugreg version {__version__}")
        raise typer.Exit()


def configure_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Attach log handlers to the plugreg logger.

    Args:
        config: Logging section of the configuration
        verbose: Force DEBUG output to the console
    """
    logger = logging.getLogger("plugreg")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if not (config.enabled or verbose):
        logger.addHandler(logging.NullHandler())
        return

    logger.setLevel(logging.DEBUG if verbose else getattr(logging, config.level))
    logger.addHandler(RichHandler(console=err_console, show_path=False))

    if config.enabled and config.file:
        log_file = Path(config.file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)


def build_cli_overrides(
    install_root: Path | None = None,
    registry_file: str | None = None,
) -> dict[str, Any]:
    """Build config override dict from CLI flags.

    Args:
        install_root: Install root override
        registry_file: Registry file override

    Returns:
        Dictionary of config overrides
    """
    overrides: dict[str, Any] = {}
    if install_root is not None:
        overrides["install_root"] = str(install_root)
    if registry_file is not None:
        overrides["registry_file"] = registry_file
    return overrides


def build_store(config: Config) -> RegistryStore:
    """Create the registry store described by the configuration."""
    return RegistryStore(
        config.install_root_path,
        config.registry_file,
        cache=registry_cache if config.cache.enabled else None,
    )


def build_installer(config: Config) -> PluginInstaller:
    """Create a plugin installer that registers packages in place."""
    return PluginInstaller(
        InPlaceLibrary(),
        build_store(config),
        package_type=config.package_type,
        schema_file=config.schema_file,
    )


def _read_package(path: Path, config: Config) -> PackageInfo:
    manifest = path / config.manifest_file if path.is_dir() else path
    try:
        return PackageInfo.from_manifest(manifest)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] Package manifest not found: {escape(str(manifest))}")
        raise typer.Exit(1) from e
    except (ValidationError, ValueError, yaml.YAMLError) as e:
        console.print(
            f"[red]Invalid package manifest:[/red] {escape(str(manifest))}\n{escape(str(e))}"
        )
        raise typer.Exit(1) from e


def _render_entry(package: str, entry: dict[str, Any]) -> Table:
    table = Table(title=escape(package), show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in entry.items():
        table.add_row(escape(str(key)), escape(str(value)))
    return table


# Common options
ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to custom config file",
        envvar="PLUGREG_CONFIG_PATH",
        exists=False,  # We handle existence check ourselves
    ),
]

InstallRootOption = Annotated[
    Path | None,
    typer.Option(
        "--install-root",
        "-r",
        help="Directory packages are installed under",
    ),
]

RegistryFileOption = Annotated[
    str | None,
    typer.Option(
        "--registry-file",
        help="Registry file path relative to the install root",
    ),
]

VerboseOption = Annotated[
    bool,
    typer.Option(
        "--verbose",
        "-v",
        help="Show debug log output",
    ),
]

VersionOption = Annotated[
    bool | None,
    typer.Option(
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
]

JsonOption = Annotated[
    bool,
    typer.Option(
        "--json",
        "-j",
        help="Output in JSON format",
    ),
]


@app.callback()
def main(
    ctx: typer.Context,
    config: ConfigOption = None,
    install_root: InstallRootOption = None,
    registry_file: RegistryFileOption = None,
    verbose: VerboseOption = False,
    version: VersionOption = None,
) -> None:
    """plugreg - registry of installed plugin packages.

    Every plugin package installed by the package manager is described in a
    single generated registry file. These commands inspect that file and
    register package directories that are already in place.
    """
    overrides = build_cli_overrides(install_root=install_root, registry_file=registry_file)

    try:
        config_path = str(config) if config else None
        cfg = load_config(config_path=config_path, cli_overrides=overrides)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except Exception as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    configure_logging(cfg.logging, verbose=verbose)
    ctx.obj = cfg


@app.command("list")
def list_command(ctx: typer.Context, json_format: JsonOption = False) -> None:
    """List registered plugins."""
    cfg: Config = ctx.obj
    registry = build_store(cfg).cached()

    if json_format:
        typer.echo(json.dumps(registry, indent=2, sort_keys=True))
        return

    if not registry:
        console.print("[dim]No plugins registered[/dim]")
        return

    table = Table(title="Registered plugins")
    table.add_column("Package", style="cyan", no_wrap=True)
    table.add_column("Name", no_wrap=True)
    table.add_column("Title")
    table.add_column("Version", no_wrap=True)
    table.add_column("Author")
    table.add_column("Schema")
    for package in sorted(registry):
        entry = registry[package]
        table.add_row(
            escape(package),
            escape(str(entry.get("name", ""))),
            escape(str(entry.get("title", ""))),
            escape(str(entry.get("version", ""))),
            escape(str(entry.get("author", ""))),
            escape(str(entry.get("schema", ""))),
        )
    console.print(table)


@app.command("show")
def show_command(
    ctx: typer.Context,
    package: Annotated[str, typer.Argument(help="Package name, e.g. acme/widgets")],
    json_format: JsonOption = False,
) -> None:
    """Show the registry entry of one package."""
    cfg: Config = ctx.obj
    entry = build_store(cfg).cached().get(package)
    if entry is None:
        console.print(f"[red]Error:[/red] Package '{escape(package)}' is not registered")
        raise typer.Exit(1)

    if json_format:
        typer.echo(json.dumps(entry, indent=2, sort_keys=True))
    else:
        console.print(_render_entry(package, entry))


@app.command("describe")
def describe_command(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Package directory or manifest file")],
    json_format: JsonOption = False,
) -> None:
    """Show the descriptor a package would be registered with."""
    cfg: Config = ctx.obj
    package = _read_package(path, cfg)

    try:
        descriptor = build_installer(cfg).build_descriptor(package)
    except PluginError as e:
        console.print(f"[red]Invalid plugin:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    entry = descriptor.to_entry()
    if json_format:
        typer.echo(json.dumps(entry, indent=2, sort_keys=True))
    else:
        console.print(_render_entry(package.name, entry))


@app.command("register")
def register_command(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Package directory or manifest file")],
) -> None:
    """Register an installed package directory in the registry."""
    cfg: Config = ctx.obj
    package = _read_package(path, cfg)

    try:
        descriptor: PluginDescriptor = build_installer(cfg).add_plugin(package)
    except PluginError as e:
        console.print(f"[red]Invalid plugin:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    console.print(
        f"[green]✓[/green] Registered {package.name} as {descriptor.name} "
        f"(v{descriptor.version})"
    )


@app.command("unregister")
def unregister_command(
    ctx: typer.Context,
    package: Annotated[str, typer.Argument(help="Package name, e.g. acme/widgets")],
) -> None:
    """Remove a package from the registry."""
    cfg: Config = ctx.obj
    removed = build_installer(cfg).unregister_plugin(package)
    if removed is None:
        console.print(f"[yellow]Package '{escape(package)}' was not registered[/yellow]")
        return
    console.print(f"[green]✓[/green] Unregistered {escape(package)}")


def cli_main() -> None:
    """Entry point for the CLI application."""
    app()
