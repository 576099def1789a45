"""
Command-line interface for pygnss-fetch.

Provides a CLI using Click for retrieving the products enabled in the
configuration, fetching single products ad hoc and inspecting the
archive registry.
"""

from __future__ import annotations

import shutil
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from pygnss_fetch import __version__
from pygnss_fetch.core.config import Settings, load_settings
from pygnss_fetch.core.exceptions import ConfigurationError, ToolError
from pygnss_fetch.core.types import Archive, ProductCategory
from pygnss_fetch.data_access.archives import ArchiveRegistry
from pygnss_fetch.data_access.transfer import NativeTransferAgent, WgetTransferAgent
from pygnss_fetch.processing.batch import (
    BatchDriver,
    ProductRequest,
    default_product_dir,
    requests_from_settings,
)
from pygnss_fetch.processing.retrieval import RetrievalOrchestrator
from pygnss_fetch.products.naming import FilenameSynthesizer
from pygnss_fetch.utils.compression import Decompressor, HatanakaConverter
from pygnss_fetch.utils.dates import GNSSDate
from pygnss_fetch.utils.logging import StatusPrinter, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="pygnss-fetch")
@click.option(
    "--config", "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug mode",
)
@click.pass_context
def cli(ctx: click.Context, config: Path | None, verbose: bool, debug: bool) -> None:
    """pygnss-fetch: GNSS product retrieval

    Locates GNSS observation files and analysis products on the CDDIS,
    IGN and WHU archives, downloads them and leaves each one under its
    canonical local name.
    """
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug


@cli.command()
@click.option(
    "--date", "-d", "date_str",
    type=str,
    help="First date (YYYY-MM-DD, YYYY/DOY or YYYYDOY; default: today)",
)
@click.option(
    "--ndays", "-n",
    type=click.IntRange(min=1),
    default=1,
    help="Number of consecutive days",
)
@click.option(
    "--archive", "-a",
    type=click.Choice([a.value for a in Archive], case_sensitive=False),
    help="Archive overriding the configuration",
)
@click.option(
    "--agent",
    type=click.Choice(["native", "wget"]),
    help="Transfer agent overriding the configuration",
)
@click.option(
    "--workers", "-w",
    type=click.IntRange(min=1),
    help="Parallel downloads overriding the configuration",
)
@click.option(
    "--strict",
    is_flag=True,
    help="Exit with status 1 when any unit failed",
)
@click.pass_context
def run(
    ctx: click.Context,
    date_str: str | None,
    ndays: int,
    archive: str | None,
    agent: str | None,
    workers: int | None,
    strict: bool,
) -> None:
    """Retrieve every product enabled in the configuration.

    Examples:

        # Products of 2021-02-14 from the configured archive
        pygnss-fetch -c config/settings.yaml run -d 2021-02-14

        # A week of products from IGN with 4 parallel downloads
        pygnss-fetch run -d 2021/045 -n 7 --archive IGN -w 4
    """
    settings = _load(ctx)
    if archive:
        settings.transfer.archive = Archive(archive.upper())
    if agent:
        settings.transfer.agent = agent
    if workers:
        settings.transfer.parallel_downloads = workers

    start = _parse_date(date_str) if date_str else _today()
    requests = []
    for offset in range(ndays):
        requests.extend(requests_from_settings(settings, start.add_days(offset)))

    if not requests:
        click.echo("No products enabled in configuration")
        return

    driver = _build_driver(settings)
    report = driver.run_many(requests)

    click.echo(f"\n{report}")
    if strict and report.has_failures:
        sys.exit(1)


@cli.command()
@click.option(
    "--product", "-p",
    type=click.Choice([c.value for c in ProductCategory]),
    required=True,
    help="Product category",
)
@click.option(
    "--date", "-d", "date_str",
    type=str,
    required=True,
    help="Date (YYYY-MM-DD, YYYY/DOY or YYYYDOY)",
)
@click.option(
    "--archive", "-a",
    type=click.Choice([a.value for a in Archive], case_sensitive=False),
    help="Archive (default: from configuration)",
)
@click.option(
    "--sites", "-s",
    type=str,
    help="Comma-separated sites, a site list file, or 'all'",
)
@click.option(
    "--hours",
    type=str,
    help="Comma-separated hour slots (0-23)",
)
@click.option(
    "--option",
    type=str,
    help="Analysis centre, navigation system, DCB type or file name",
)
@click.option(
    "--output-dir", "-o",
    type=click.Path(path_type=Path),
    help="Output directory (default: configured product directory)",
)
@click.option(
    "--neighbor-days",
    is_flag=True,
    help="Also fetch the previous and next day (orbit/clock families)",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show the expanded units without downloading",
)
@click.option(
    "--strict",
    is_flag=True,
    help="Exit with status 1 when any unit failed",
)
@click.pass_context
def fetch(
    ctx: click.Context,
    product: str,
    date_str: str,
    archive: str | None,
    sites: str | None,
    hours: str | None,
    option: str | None,
    output_dir: Path | None,
    neighbor_days: bool,
    dry_run: bool,
    strict: bool,
) -> None:
    """Retrieve one product.

    Examples:

        # Daily observations of two sites
        pygnss-fetch fetch -p obs_daily -d 2021/045 -s zimm,wtzr -o data/obs

        # IGS ultra-rapid orbits, all four issues
        pygnss-fetch fetch -p orbit --option igu --hours 0,6,12,18 -d 2021-02-14

        # Show what a high-rate request expands to
        pygnss-fetch fetch -p obs_highrate -d 2021045 -s zimm --hours 10 --dry-run
    """
    settings = _load(ctx)
    category = ProductCategory(product)

    site_tuple, site_list = _parse_sites(sites)
    request = ProductRequest(
        category=category,
        date=_parse_date(date_str),
        archive=Archive(archive.upper()) if archive else settings.transfer.archive,
        product_dir=output_dir or default_product_dir(settings, category),
        sites=site_tuple,
        hours=_parse_hours(hours),
        option=option,
        neighbor_days=neighbor_days,
        site_list=site_list,
    )

    driver = _build_driver(settings, check_tools=not dry_run)

    if dry_run:
        try:
            units = driver.expand(request)
            click.echo(f"Dry run - {len(units)} unit(s) for {request.label}:")
            for unit in units:
                plan = driver.plan(unit)
                click.echo(f"  {unit.label}")
                click.echo(f"    remote: {plan.url}  {plan.fetch_pattern or ''}")
                click.echo(f"    local:  {unit.target_dir}")
        except ConfigurationError as e:
            raise click.ClickException(str(e)) from e
        return

    report = driver.run(request)

    click.echo(f"\n{report}")
    if strict and report.has_failures:
        sys.exit(1)


@cli.command()
@click.option(
    "--archive", "-a",
    type=click.Choice([a.value for a in Archive], case_sensitive=False),
    help="Show only one archive",
)
@click.pass_context
def archives(ctx: click.Context, archive: str | None) -> None:
    """Show the archive registry.

    Examples:

        pygnss-fetch archives
        pygnss-fetch archives -a WHU
    """
    registry = _build_registry(_load(ctx))

    selected = [Archive(archive.upper())] if archive else list(Archive)
    click.echo(f"{'Archive':<8} {'Category':<14} URL")
    click.echo("-" * 78)
    for arch in selected:
        for category in registry.categories(arch):
            click.echo(f"{arch.value:<8} {category.value:<14} {registry.base_url(arch, category)}")

    if not archive:
        click.echo("\nFixed sources:")
        for name, url in registry.sources.items():
            click.echo(f"  {name:<12} {url}")


def _load(ctx: click.Context) -> Settings:
    """Load settings and configure logging."""
    try:
        settings = load_settings(ctx.obj.get("config"))
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    level = settings.logging.level
    if ctx.obj.get("debug"):
        level = "DEBUG"
    elif ctx.obj.get("verbose") and level.upper() not in ("DEBUG", "INFO"):
        level = "INFO"

    setup_logging(
        level=level,
        log_dir=settings.logging.log_dir,
        log_to_file=settings.logging.log_to_file,
        log_to_console=settings.logging.log_to_console,
        json_format=settings.logging.json_format,
    )
    return settings


def _build_registry(settings: Settings) -> ArchiveRegistry:
    overrides = settings.transfer.registry_overrides
    try:
        return ArchiveRegistry.from_yaml(overrides) if overrides else ArchiveRegistry()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


def _build_driver(settings: Settings, check_tools: bool = True) -> BatchDriver:
    """Wire transfer agent, collaborators, orchestrator and driver from settings."""

    transfer = settings.transfer
    tools = settings.tools

    if transfer.agent == "wget":
        if check_tools and not shutil.which(tools.wget):
            error = ToolError(tools.wget, "executable not found")
            raise click.ClickException(str(error))
        agent = WgetTransferAgent(
            wget=tools.wget,
            verbose=tools.print_wget_info,
            timeout=transfer.timeout,
        )
    else:
        agent = NativeTransferAgent(
            username=transfer.username,
            password=transfer.password,
            timeout=transfer.timeout,
            passive=transfer.passive,
        )

    search_dirs = [tools.third_party_dir] if tools.third_party_dir else None
    orchestrator = RetrievalOrchestrator(
        agent,
        decompressor=Decompressor(gzip_cmd=tools.gzip),
        converter=HatanakaConverter(crx2rnx=tools.crx2rnx, search_dirs=search_dirs),
        synthesizer=FilenameSynthesizer(_build_registry(settings)),
        max_retries=transfer.max_retries,
        retry_delay=transfer.retry_delay,
        timeout=transfer.timeout,
    )
    return BatchDriver(
        orchestrator,
        printer=StatusPrinter(output_func=click.echo),
        max_workers=transfer.parallel_downloads,
        quarter_subdirs=settings.products.quarter_subdirs,
    )


def _today() -> GNSSDate:
    now = GNSSDate.now()
    return GNSSDate(now.year, now.month, now.day)


def _parse_sites(value: str | None) -> tuple[tuple[str, ...] | None, str | None]:
    """Split a --sites value into (explicit sites, site list path)."""
    if value is None or value.strip().lower() in ("", "all"):
        return None, None
    if Path(value).expanduser().is_file():
        return None, value
    sites = tuple(s.strip().lower() for s in value.split(",") if s.strip())
    for site in sites:
        if len(site) != 4:
            raise click.BadParameter(f"Site identifiers have 4 characters, got {site!r}")
    return sites, None


def _parse_hours(value: str | None) -> tuple[int, ...]:
    if not value:
        return (0,)
    try:
        hours = tuple(int(h) for h in value.split(",") if h.strip())
    except ValueError as e:
        raise click.BadParameter(f"Invalid hour list: {value}") from e
    for hour in hours:
        if not 0 <= hour <= 23:
            raise click.BadParameter(f"Hour must be 0-23, got {hour}")
    return hours


def _parse_date(date_str: str) -> GNSSDate:
    """Parse date string to GNSSDate.

    Supports formats:
    - YYYY-MM-DD
    - YYYY/DOY
    - YYYYDOY
    """
    try:
        # Try YYYY-MM-DD
        if "-" in date_str:
            parts = date_str.split("-")
            if len(parts) == 3:
                return GNSSDate(int(parts[0]), int(parts[1]), int(parts[2]))

        # Try YYYY/DOY
        if "/" in date_str:
            parts = date_str.split("/")
            if len(parts) == 2:
                return GNSSDate.from_doy(int(parts[0]), int(parts[1]))

        # Try YYYYDOY
        if len(date_str) == 7 and date_str.isdigit():
            return GNSSDate.from_doy(int(date_str[:4]), int(date_str[4:]))
    except ValueError as e:
        raise click.BadParameter(f"Invalid date {date_str}: {e}") from e

    raise click.BadParameter(f"Invalid date format: {date_str}")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
