"""Command-line interface for diskscope."""

from __future__ import annotations

import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Final

import click

from diskscope.app.interactive import run_explorer, run_scan
from diskscope.app.render import render_tree
from diskscope.core.aggregator import Aggregator, CancelToken, resolve_root
from diskscope.core.cache import ScanCache
from diskscope.core.config import (
    MAX_CONCURRENCY,
    ConfigurationError,
    EnvironmentVariableError,
    MainConfig,
    load_config,
)
from diskscope.core.errors import ScanRootError
from diskscope.core.exclusions import ExclusionFilter
from diskscope.core.explorer import Explorer, LayoutMode
from diskscope.types.models import ScanResult
from diskscope.utils.formatting import format_duration, format_size, parse_size
from diskscope.utils.logging import configure_logging

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS: Final[int] = 0
EXIT_ERROR: Final[int] = 1

try:
    __version__ = version("diskscope")
except PackageNotFoundError:
    __version__ = "unknown"


def validate_config_path(
    ctx: click.Context,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    param: click.Parameter,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    value: Path | None,
) -> Path | None:
    """Validate configuration file path.

    Raises:
        click.BadParameter: If the path is a directory or not a YAML file
    """
    if value is None:
        return value

    if value.exists() and value.is_dir():
        raise click.BadParameter("Configuration path must be a file, not a directory")

    valid_extensions = {".yaml", ".yml"}
    if value.suffix.lower() not in valid_extensions:
        extensions_str = ", ".join(sorted(valid_extensions))
        raise click.BadParameter(f"Invalid configuration file extension. Supported extensions: {extensions_str}")

    return value


def validate_log_level(
    ctx: click.Context,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    param: click.Parameter,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    value: str | None,
) -> str | None:
    """Validate and normalize log level.

    Raises:
        click.BadParameter: If the level is unknown
    """
    if value is None:
        return value

    normalized_value = value.upper().strip()

    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if normalized_value not in valid_levels:
        raise click.BadParameter(f'Invalid log level "{value}". Valid options: {", ".join(sorted(valid_levels))}')

    return normalized_value


def validate_min_size(
    ctx: click.Context,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    param: click.Parameter,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    value: str | None,
) -> int | None:
    """Parse a human-readable size such as ``100MB`` into bytes.

    Raises:
        click.BadParameter: If the size cannot be parsed
    """
    if value is None:
        return value

    try:
        return parse_size(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def apply_overrides(
    config: MainConfig,
    *,
    concurrency: int | None,
    depth: int | None,
    min_size: int | None,
    log_level: str | None,
) -> MainConfig:
    """Apply command-line overrides on top of the loaded configuration."""
    if concurrency is not None:
        config.scan.concurrency = concurrency
    if depth is not None:
        config.display.depth = depth
    if min_size is not None:
        config.display.min_size = min_size
    if log_level is not None:
        config.application.log_level = log_level
    return config


def summary_line(result: ScanResult) -> str:
    """One-line scan summary printed after the report."""
    parts = [
        f"{format_size(result.total_size)} in {result.entries_scanned:,} entries",
        f"scanned in {format_duration(result.duration.total_seconds())}",
    ]
    if result.inaccessible_count:
        parts.append(f"{result.inaccessible_count:,} inaccessible")
    if result.cancelled:
        parts.append("partial: scan cancelled")
    return ", ".join(parts)


def obtain_result(
    root: str,
    config: MainConfig,
    cache: ScanCache,
    exclusion_filter: ExclusionFilter,
    *,
    rescan: bool,
    show_progress: bool,
) -> ScanResult:
    """Return a cached result for ``root`` or scan it (and cache the result)."""
    if not rescan:
        cached = cache.load(root, exclusion_filter.patterns)
        if cached is not None:
            return cached

    aggregator = Aggregator(exclusion_filter, concurrency=config.scan.concurrency)
    result = run_scan(aggregator, root, CancelToken(), show_progress=show_progress)

    if result.cancelled:
        click.echo("Scan cancelled; showing partial results (not cached)", err=True)
    else:
        _ = cache.save(result, root)
    return result


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument(
    "path",
    type=click.Path(path_type=Path),
    default=Path("."),
    required=False,
)
@click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    default=None,
    callback=validate_config_path,
    help="Configuration file (.yaml). If not specified, searches ./diskscope.yaml and ~/.config/diskscope/config.yaml.",
)
@click.option(
    "--exclude",
    "-e",
    "excludes",
    multiple=True,
    metavar="PATTERN",
    help="Glob pattern of directories to skip (repeatable, added to configured exclusions)",
)
@click.option(
    "--concurrency",
    "-j",
    type=click.IntRange(1, MAX_CONCURRENCY),
    default=None,
    help="Maximum number of directories listed at once",
)
@click.option("--rescan", is_flag=True, help="Ignore any cached result and scan again")
@click.option("--no-cache", is_flag=True, help="Neither read nor write the scan cache")
@click.option(
    "--depth",
    type=click.IntRange(min=0),
    default=None,
    help="Maximum depth of the printed report",
)
@click.option(
    "--min-size",
    type=str,
    default=None,
    callback=validate_min_size,
    metavar="SIZE",
    help="Hide entries smaller than SIZE (e.g. 100MB)",
)
@click.option(
    "--print",
    "print_report",
    is_flag=True,
    help="Print an indented report instead of starting the interactive explorer",
)
@click.option(
    "--log-level",
    "-l",
    type=str,
    default=None,
    callback=validate_log_level,
    help="Logging verbosity level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
)
@click.option("--clear-cache", is_flag=True, help="Remove all cached scans and exit")
@click.version_option(version=__version__, prog_name="diskscope")
@click.pass_context
def cli(
    ctx: click.Context,
    path: Path,
    config: Path | None,
    excludes: tuple[str, ...],
    concurrency: int | None,
    rescan: bool,
    no_cache: bool,
    depth: int | None,
    min_size: int | None,
    print_report: bool,
    log_level: str | None,
    clear_cache: bool,
) -> None:
    """diskscope - see where your disk space went.

    Scans PATH (default: the current directory), aggregating the size of
    every directory, and opens an interactive explorer with list and treemap
    views. Completed scans are cached; Ctrl+C during a scan shows what was
    found so far.

    Examples:

        # Explore the home directory
        diskscope ~

        # Print a three level report, skipping node_modules
        diskscope --print --depth 3 -e node_modules /srv

        # Force a fresh scan with 16 concurrent listings
        diskscope --rescan -j 16 /data
    """
    try:
        main_config = load_config(config)
    except EnvironmentVariableError as exc:
        click.echo(f"Environment variable error:\n{exc}", err=True)
        ctx.exit(EXIT_ERROR)
    except ConfigurationError as exc:
        click.echo(f"Configuration error:\n{exc}", err=True)
        ctx.exit(EXIT_ERROR)

    main_config = apply_overrides(
        main_config,
        concurrency=concurrency,
        depth=depth,
        min_size=min_size,
        log_level=log_level,
    )

    configure_logging(
        log_level=main_config.application.log_level,
        log_file=main_config.application.log_file,
    )
    logger.debug("Configuration loaded", extra={"config_path": str(config) if config else None})

    cache = ScanCache(
        main_config.cache.directory,
        ttl=main_config.cache.ttl,
        enabled=main_config.cache.enabled and not no_cache,
    )

    if clear_cache:
        removed = cache.clear()
        click.echo(f"Removed {removed} cached scan{'s' if removed != 1 else ''} from {cache.directory}")
        ctx.exit(EXIT_SUCCESS)

    try:
        root = resolve_root(path)
    except ScanRootError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(EXIT_ERROR)

    exclusion_filter = ExclusionFilter([*main_config.scan.exclusions, *excludes])
    interactive = not print_report and sys.stdin.isatty() and sys.stdout.isatty()

    try:
        result = obtain_result(
            root,
            main_config,
            cache,
            exclusion_filter,
            rescan=rescan,
            show_progress=sys.stderr.isatty(),
        )
    except ScanRootError as exc:
        # The root can disappear between validation and the scan
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(EXIT_ERROR)

    if not interactive:
        for line in render_tree(result.root, main_config.display.depth, main_config.display.min_size):
            click.echo(line)
        click.echo(summary_line(result))
        return

    explorer = Explorer(
        min_size=main_config.display.min_size,
        layout_mode=LayoutMode(main_config.display.layout_mode),
    )
    _ = explorer.load(result)
    run_explorer(explorer)
