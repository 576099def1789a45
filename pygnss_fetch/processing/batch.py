"""
Batch driver.

Expands product requests into ordered retrieval units, runs them
through the retrieval orchestrator (sequentially or on a bounded
worker pool) and aggregates the outcomes into a BatchReport.

Local layout of expanded units under a product directory:

    <product_dir>/daily/                    daily observations and navigation
    <product_dir>/hourly/HH/                hourly observations and navigation
    <product_dir>/highrate/HH[/MM]/         high-rate observations
    <product_dir>/                          everything else

A configuration error (unknown option, missing site list, registry gap)
aborts only the request it belongs to. Unit failures never abort a
batch.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, Union

from pygnss_fetch.core.config import Settings
from pygnss_fetch.core.exceptions import ConfigurationError
from pygnss_fetch.core.types import Archive, ProductCategory
from pygnss_fetch.processing.retrieval import (
    OutcomeStatus,
    RetrievalOrchestrator,
    RetrievalOutcome,
)
from pygnss_fetch.products.naming import (
    BulkPlan,
    DAY_WINDOW_CATEGORIES,
    HIGHRATE_CATEGORIES,
    HOURLY_CATEGORIES,
    MGEX_CENTRES,
    OBSERVATION_CATEGORIES,
    RetrievalPlan,
    RetrievalUnit,
    SITE_CATEGORIES,
    CODE_DCB_TYPES,
    is_ultra_rapid,
    nav_hourly_kinds,
)
from pygnss_fetch.stations.site_list import resolve_sites
from pygnss_fetch.utils.dates import QUARTER_SLOTS, GNSSDate
from pygnss_fetch.utils.logging import StatusPrinter, get_logger


logger = get_logger(__name__)

C = ProductCategory

Plan = Union[RetrievalPlan, BulkPlan]

OBS_CATEGORIES = {
    "obs": {"daily": C.OBS_DAILY, "hourly": C.OBS_HOURLY, "highrate": C.OBS_HIGHRATE},
    "obm": {"daily": C.OBM_DAILY, "hourly": C.OBM_HOURLY, "highrate": C.OBM_HIGHRATE},
}


# =============================================================================
# Requests and reports
# =============================================================================

@dataclass(frozen=True)
class ProductRequest:
    """One product family to retrieve for one day.

    Attributes:
        category: Product category
        date: Product date
        archive: Source archive
        product_dir: Local product directory
        sites: Site identifiers (None = all-stations mode)
        hours: Hour slots for sub-daily and ultra-rapid products
        option: Category option (analysis centre, navigation system, ...)
        neighbor_days: Also fetch the previous and next day (orbit/clock families)
        site_list: Site list file read when ``sites`` is None
    """

    category: ProductCategory
    date: GNSSDate
    archive: Archive
    product_dir: Path
    sites: tuple[str, ...] | None = None
    hours: tuple[int, ...] = (0,)
    option: str | None = None
    neighbor_days: bool = False
    site_list: str | None = None

    @property
    def label(self) -> str:
        text = f"{self.category.value} {self.date.year}/{self.date.doy:03d}"
        return f"{text} ({self.option})" if self.option else text


@dataclass
class BatchReport:
    """Aggregated outcomes of a batch run."""

    outcomes: list[RetrievalOutcome] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def downloaded(self) -> int:
        return self._count(OutcomeStatus.DOWNLOADED)

    @property
    def already_present(self) -> int:
        return self._count(OutcomeStatus.ALREADY_PRESENT)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)

    @property
    def has_failures(self) -> bool:
        return self.failed > 0 or bool(self.errors)

    @property
    def runtime_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success_rate(self) -> float:
        if not self.outcomes:
            return 0.0
        return (self.downloaded + self.already_present) / len(self.outcomes)

    def __str__(self) -> str:
        return (
            f"Batch:\n"
            f"  Runtime: {self.runtime_seconds:.1f}s\n"
            f"  Units: {len(self.outcomes)}\n"
            f"  Downloaded: {self.downloaded}\n"
            f"  Already present: {self.already_present}\n"
            f"  Failed: {self.failed}\n"
            f"  Configuration errors: {len(self.errors)}\n"
            f"  Success Rate: {self.success_rate:.1%}"
        )


# =============================================================================
# Driver
# =============================================================================

class BatchDriver:
    """Expands requests and executes their units.

    Usage:
        driver = BatchDriver(orchestrator, max_workers=4)
        report = driver.run(ProductRequest(
            category=ProductCategory.OBS_DAILY,
            date=GNSSDate(2021, 2, 14),
            archive=Archive.CDDIS,
            product_dir=Path("/data/obs"),
            sites=("zimm", "wtzr"),
        ))
        print(report)
    """

    def __init__(
        self,
        orchestrator: RetrievalOrchestrator,
        printer: StatusPrinter | None = None,
        max_workers: int = 1,
        quarter_subdirs: bool = False,
    ):
        self.orchestrator = orchestrator
        self.synthesizer = orchestrator.synthesizer
        self.printer = printer or StatusPrinter()
        self.max_workers = max(1, max_workers)
        self.quarter_subdirs = quarter_subdirs

    def expand(self, request: ProductRequest) -> list[RetrievalUnit]:
        """Ordered retrieval units of a request.

        Units are ordered by day, then site, hour, quarter and kind.

        Raises:
            ConfigurationError: Missing site list or unknown option
        """
        category = request.category
        sites: list[str | None]
        if not _site_based(request):
            sites = [None]
        elif request.sites is not None:
            sites = [site.lower() for site in request.sites]
        else:
            resolved = resolve_sites(request.site_list)
            sites = resolved if resolved is not None else [None]

        if sites == [None] and _site_based(request) and not self.synthesizer.supports_bulk(category):
            raise ConfigurationError(f"{category.value} files require a site list")

        kinds: list[str | None] = [request.option]
        if category == C.NAV_HOURLY:
            kinds = list(nav_hourly_kinds(request.option or "gps"))

        hours: list[int | None] = [None]
        if category in HOURLY_CATEGORIES or category in HIGHRATE_CATEGORIES or _ultra_rapid(request):
            hours = list(request.hours) or [0]

        dates = [request.date]
        if request.neighbor_days and category in DAY_WINDOW_CATEGORIES and not is_ultra_rapid(request.option):
            dates = [request.date, request.date.add_days(-1), request.date.add_days(1)]

        product_dir = Path(request.product_dir).expanduser().resolve()
        units = []
        for day in dates:
            for site in sites:
                for hour in hours:
                    for quarter in _quarters(category, site):
                        for kind in kinds:
                            units.append(RetrievalUnit(
                                date=day,
                                category=category,
                                archive=request.archive,
                                target_dir=self._target_dir(product_dir, category, hour, quarter),
                                site=site,
                                hour=hour,
                                quarter=quarter,
                                option=kind,
                            ))
        return units

    def _target_dir(
        self,
        product_dir: Path,
        category: ProductCategory,
        hour: int | None,
        quarter: str | None,
    ) -> Path:
        if category in HOURLY_CATEGORIES:
            return product_dir / "hourly" / f"{hour:02d}"
        if category in HIGHRATE_CATEGORIES:
            hour_dir = product_dir / "highrate" / f"{hour:02d}"
            return hour_dir / quarter if self.quarter_subdirs and quarter else hour_dir
        if category in OBSERVATION_CATEGORIES or category in (C.NAV, C.NAV_RT):
            return product_dir / "daily"
        return product_dir

    def plan(self, unit: RetrievalUnit) -> Plan:
        """Plan of a unit (bulk plan in all-stations mode)."""
        if self.synthesizer.is_bulk(unit):
            return self.synthesizer.synthesize_bulk(unit)
        return self.synthesizer.synthesize(unit)

    def run(self, request: ProductRequest) -> BatchReport:
        """Run a single request."""
        return self.run_many([request])

    def run_many(self, requests: Iterable[ProductRequest]) -> BatchReport:
        """Run requests in order and aggregate their outcomes."""
        report = BatchReport()

        jobs: list[tuple[RetrievalUnit, Plan]] = []
        seen: set[tuple[Path, str]] = set()
        for request in requests:
            try:
                planned = [(unit, self.plan(unit)) for unit in self.expand(request)]
            except ConfigurationError as e:
                message = f"{request.label}: {e}"
                report.errors.append(message)
                self.printer.error(message)
                logger.error("Request rejected", request=request.label, error=str(e))
                continue

            for unit, plan in planned:
                key = (unit.target_dir, _dedupe_name(plan))
                if key in seen:
                    logger.debug("Skipping duplicate unit", unit=unit.label)
                    continue
                seen.add(key)
                jobs.append((unit, plan))

        logger.info("Batch started", units=len(jobs), workers=self.max_workers)

        if self.max_workers > 1 and len(jobs) > 1:
            results: dict[int, list[RetrievalOutcome]] = {}
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {
                    executor.submit(self._run_job, unit, plan): index
                    for index, (unit, plan) in enumerate(jobs)
                }
                for future in as_completed(futures):
                    index = futures[future]
                    outcomes = future.result()
                    self._print(outcomes)
                    results[index] = outcomes
            for index in range(len(jobs)):
                report.outcomes.extend(results[index])
        else:
            for unit, plan in jobs:
                outcomes = self._run_job(unit, plan)
                self._print(outcomes)
                report.outcomes.extend(outcomes)

        if report.errors:
            self.printer.warning(f"{len(report.errors)} request(s) rejected:")
            for error in report.errors:
                self.printer.list_item(error)

        report.end_time = datetime.now()
        logger.info(
            "Batch finished",
            downloaded=report.downloaded,
            already_present=report.already_present,
            failed=report.failed,
            errors=len(report.errors),
            runtime=report.runtime_seconds,
        )
        return report

    def _run_job(self, unit: RetrievalUnit, plan: Plan) -> list[RetrievalOutcome]:
        """Execute one unit; an unexpected exception becomes a failed outcome."""
        try:
            if isinstance(plan, BulkPlan):
                return self.orchestrator.retrieve_bulk(unit, plan, quarter_subdirs=self.quarter_subdirs)
            return [self.orchestrator.retrieve(unit, plan)]
        except Exception as e:
            logger.exception("Unit crashed", unit=unit.label)
            return [RetrievalOutcome(OutcomeStatus.FAILED, unit, reason=str(e))]

    def _print(self, outcomes: list[RetrievalOutcome]) -> None:
        for outcome in outcomes:
            for warning in outcome.warnings:
                self.printer.warning(warning)
            if outcome.success:
                self.printer.info(outcome.message)
            else:
                self.printer.error(outcome.message)


def _dedupe_name(plan: Plan) -> str:
    if isinstance(plan, BulkPlan):
        return plan.remote_pattern
    return plan.local_name


def _site_based(request: ProductRequest) -> bool:
    if request.category == C.TROPOSPHERE:
        return (request.option or "igs").lower() == "igs"
    return request.category in SITE_CATEGORIES


def _ultra_rapid(request: ProductRequest) -> bool:
    return request.category in (C.ORBIT, C.EOP, C.MGEX_ORBIT) and is_ultra_rapid(request.option)


def _quarters(category: ProductCategory, site: str | None) -> tuple[str | None, ...]:
    # all-stations high-rate plans cover the four quarters themselves
    if category in HIGHRATE_CATEGORIES and site is not None:
        return QUARTER_SLOTS
    return (None,)


# =============================================================================
# Settings dispatcher
# =============================================================================

def requests_from_settings(settings: Settings, date: GNSSDate) -> list[ProductRequest]:
    """Product requests for every product family enabled in the settings.

    Families are emitted in a fixed order: observations, navigation,
    orbits and clocks, EOP, SINEX, DCB, ionosphere, ROTI, troposphere,
    real-time products and the antenna model.
    """
    products = settings.products
    dirs = settings.directories
    archive = settings.transfer.archive
    requests: list[ProductRequest] = []

    def add(category: ProductCategory, product_dir: Path, **kwargs) -> None:
        requests.append(ProductRequest(
            category=category, date=date, archive=archive, product_dir=product_dir, **kwargs
        ))

    for family, enabled, obs_type, site_list, hours, product_dir in (
        ("obs", products.get_obs, products.obs_type, products.obs_sites, products.obs_hours, dirs.obs_dir),
        ("obm", products.get_obm, products.obm_type, products.obm_sites, products.obm_hours, dirs.obm_dir),
    ):
        if enabled:
            add(
                OBS_CATEGORIES[family][obs_type], product_dir,
                site_list=site_list, hours=tuple(hours),
            )

    if products.get_nav:
        if products.nav_type == "hourly":
            add(
                C.NAV_HOURLY, dirs.nav_dir,
                option=products.nav_option, site_list=products.nav_sites,
                hours=tuple(products.nav_hours),
            )
        elif products.nav_type == "rtnav":
            add(C.NAV_RT, dirs.nav_dir)
        else:
            add(C.NAV, dirs.nav_dir, option=products.nav_option)

    if products.get_orbclk:
        ac = products.orbclk_ac
        mgex = ac in MGEX_CENTRES
        common = dict(option=ac, hours=tuple(products.orbclk_hours), neighbor_days=products.minus_add_1day)
        add(C.MGEX_ORBIT if mgex else C.ORBIT, dirs.sp3_dir, **common)
        if not is_ultra_rapid(ac):
            add(C.MGEX_CLOCK if mgex else C.CLOCK, dirs.clk_dir, **common)

    if products.get_eop:
        add(C.EOP, dirs.eop_dir, option=products.eop_ac, hours=tuple(products.eop_hours))

    if products.get_snx:
        add(C.SINEX, dirs.snx_dir)

    if products.get_dcb:
        for dcb_type in CODE_DCB_TYPES:
            add(C.CODE_DCB, dirs.dcb_dir, option=dcb_type)
        add(C.MGEX_DCB, dirs.dcb_dir)

    if products.get_ion:
        add(C.IONOSPHERE, dirs.ion_dir, option=products.ion_ac)

    if products.get_roti:
        add(C.ROTI, dirs.ion_dir)

    if products.get_trp:
        site_list = products.trp_sites if products.trp_ac == "igs" else None
        add(C.TROPOSPHERE, dirs.ztd_dir, option=products.trp_ac, site_list=site_list)

    if products.get_rt_orbclk:
        add(C.RT_ORBIT, dirs.sp3_dir, neighbor_days=products.minus_add_1day)
        add(C.RT_CLOCK, dirs.clk_dir, neighbor_days=products.minus_add_1day)

    if products.get_rt_bias:
        add(C.RT_BIAS, dirs.bia_dir)

    if products.get_atx:
        add(C.ANTEX, dirs.atx_dir, option=products.atx_name)

    return requests


PRODUCT_DIRS: dict[ProductCategory, str] = {
    C.OBS_DAILY: "obs_dir",
    C.OBS_HOURLY: "obs_dir",
    C.OBS_HIGHRATE: "obs_dir",
    C.OBM_DAILY: "obm_dir",
    C.OBM_HOURLY: "obm_dir",
    C.OBM_HIGHRATE: "obm_dir",
    C.NAV: "nav_dir",
    C.NAV_HOURLY: "nav_dir",
    C.NAV_RT: "nav_dir",
    C.ORBIT: "sp3_dir",
    C.MGEX_ORBIT: "sp3_dir",
    C.RT_ORBIT: "sp3_dir",
    C.CLOCK: "clk_dir",
    C.MGEX_CLOCK: "clk_dir",
    C.RT_CLOCK: "clk_dir",
    C.EOP: "eop_dir",
    C.SINEX: "snx_dir",
    C.MGEX_DCB: "dcb_dir",
    C.CODE_DCB: "dcb_dir",
    C.IONOSPHERE: "ion_dir",
    C.ROTI: "ion_dir",
    C.TROPOSPHERE: "ztd_dir",
    C.RT_BIAS: "bia_dir",
    C.ANTEX: "atx_dir",
}


def default_product_dir(settings: Settings, category: ProductCategory) -> Path:
    """Configured local directory of a product category."""
    return getattr(settings.directories, PRODUCT_DIRS[category])
