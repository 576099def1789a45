"""
Filename synthesizer.

Encodes the remote path and file-naming grammar of every product
category in one place:

- short (4-char) vs long (9-char) RINEX station names
- compact (.d/.crx) vs standard (.o) observation encodings
- per-archive directory layouts and their cut-dirs depth
- renames from remote names to canonical local names

``FilenameSynthesizer.synthesize`` is a pure function of the
RetrievalUnit; the same unit always yields the same plan.

Usage:
    synthesizer = FilenameSynthesizer()
    unit = RetrievalUnit(
        date=GNSSDate.from_doy(2021, 45),
        category=ProductCategory.OBS_DAILY,
        archive=Archive.CDDIS,
        target_dir=Path("/data/obs/daily"),
        site="zimm",
    )
    plan = synthesizer.synthesize(unit)
    plan.remote_pattern   # 'zimm0450.21d'
    plan.local_name       # 'zimm0450.21o'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from pygnss_fetch.core.exceptions import NoTemplateError, UnknownCategoryError
from pygnss_fetch.core.types import Archive, ProductCategory
from pygnss_fetch.data_access.archives import ArchiveRegistry
from pygnss_fetch.utils.dates import QUARTER_SLOTS, Epoch, GNSSDate


C = ProductCategory

# Analysis centres
IGS_CENTRES = ("igs", "igr", "igu", "cod", "esa", "gfz", "gfu", "grg", "jpl")
MGEX_CENTRES = ("com", "gbm", "grm", "wum", "wuu")
ULTRA_RAPID_CENTRES = ("igu", "gfu", "wuu")

MGEX_PREFIXES = {
    "com": "COD0MGXFIN",
    "gbm": "GFZ0MGXRAP",
    "grm": "GRG0MGXFIN",
    "wum": "WUM0MGXFIN",
}

NAV_SYSTEMS = ("gps", "glo", "mixed")

# hourly site navigation kinds: short names keep the remote name,
# long names are renamed to site+doy+hour-letter+.yy<kind>
NAV_HOURLY_SHORT_KINDS = ("n", "g")
NAV_HOURLY_LONG_KINDS = ("gn", "rn", "cn", "en", "jn", "in", "mn")
NAV_HOURLY_SYSTEMS: dict[str, tuple[str, ...]] = {
    "gps": ("n", "gn"),
    "glo": ("g", "rn"),
    "bds": ("cn",),
    "gal": ("en",),
    "qzs": ("jn",),
    "irn": ("in",),
    "mixed": ("mn",),
    "all": ("n", "gn", "g", "rn", "cn", "en", "jn", "in", "mn"),
}

CODE_DCB_TYPES = ("P1P2", "P1C1", "P2C2")

DEFAULT_ANTEX = "igs20.atx"

# Remote sub-path template and cut-dirs depth per (category, archive).
_OBS_DAILY = {
    Archive.CDDIS: ("{year}/{doy}/{yy}d", 7),
    Archive.IGN: ("{year}/{doy}", 5),
    Archive.WHU: ("{year}/{doy}/{yy}d", 7),
}
_HOURLY = {
    Archive.CDDIS: ("{year}/{doy}/{hh}", 7),
    Archive.IGN: ("{year}/{doy}", 6),
    Archive.WHU: ("{year}/{doy}/{hh}", 7),
}
_HIGHRATE = {
    Archive.CDDIS: ("{year}/{doy}/{yy}d/{hh}", 8),
    Archive.IGN: ("{year}/{doy}", 6),
}

ARCHIVE_LAYOUT: dict[ProductCategory, dict[Archive, tuple[str, int]]] = {
    C.OBS_DAILY: _OBS_DAILY,
    C.OBM_DAILY: _OBS_DAILY,
    C.OBS_HOURLY: _HOURLY,
    C.OBM_HOURLY: _HOURLY,
    C.NAV_HOURLY: _HOURLY,
    C.OBS_HIGHRATE: _HIGHRATE,
    C.OBM_HIGHRATE: _HIGHRATE,
    C.NAV: {
        Archive.CDDIS: ("{year}/brdc", 6),
        Archive.IGN: ("{year}/{doy}", 5),
        Archive.WHU: ("{year}/brdc", 6),
    },
    C.ORBIT: {archive: ("{week}", 4) for archive in Archive},
    C.CLOCK: {archive: ("{week}", 4) for archive in Archive},
    C.EOP: {archive: ("{week}", 4) for archive in Archive},
    C.SINEX: {archive: ("{week}", 4) for archive in Archive},
    C.MGEX_ORBIT: {archive: ("{week}", 5) for archive in Archive},
    C.MGEX_CLOCK: {archive: ("{week}", 5) for archive in Archive},
    C.MGEX_DCB: {
        Archive.CDDIS: ("{year}", 5),
        Archive.IGN: ("{year}", 6),
        Archive.WHU: ("{year}", 6),
    },
    C.IONOSPHERE: {archive: ("{year}/{doy}", 6) for archive in Archive},
    C.ROTI: {archive: ("{year}/{doy}", 6) for archive in Archive},
    C.TROPOSPHERE: {
        Archive.CDDIS: ("{year}/{doy}", 7),
        Archive.IGN: ("{year}/{doy}", 6),
        Archive.WHU: ("{year}/{doy}", 7),
    },
}

# Fixed hosts: source name -> (sub-path template, cut-dirs depth)
SOURCE_LAYOUT: dict[str, tuple[str, int]] = {
    "gfz_ultra": ("w{week}", 5),
    "code": ("{year}", 2),
    "lrz_brdm": ("", 3),
    "cnes_rt": ("", 2),
    "igs_general": ("", 3),
}

SITE_CATEGORIES = frozenset({
    C.OBS_DAILY, C.OBS_HOURLY, C.OBS_HIGHRATE,
    C.OBM_DAILY, C.OBM_HOURLY, C.OBM_HIGHRATE,
    C.NAV_HOURLY,
})
HOURLY_CATEGORIES = frozenset({C.OBS_HOURLY, C.OBM_HOURLY, C.NAV_HOURLY})
HIGHRATE_CATEGORIES = frozenset({C.OBS_HIGHRATE, C.OBM_HIGHRATE})
OBSERVATION_CATEGORIES = frozenset({
    C.OBS_DAILY, C.OBS_HOURLY, C.OBS_HIGHRATE,
    C.OBM_DAILY, C.OBM_HOURLY, C.OBM_HIGHRATE,
})
DAY_WINDOW_CATEGORIES = frozenset({
    C.ORBIT, C.CLOCK, C.MGEX_ORBIT, C.MGEX_CLOCK, C.RT_ORBIT, C.RT_CLOCK,
})


@dataclass(frozen=True)
class RetrievalUnit:
    """One (epoch, product, archive, site, slot) retrieval task.

    Attributes:
        date: Product date
        category: Product category
        archive: Source archive
        target_dir: Absolute directory receiving the canonical artifact
        site: 4-char site identifier (None for network products or all-stations mode)
        hour: Hour slot for sub-daily and ultra-rapid products
        quarter: Quarter-hour slot ("00", "15", "30", "45") for high-rate data
        option: Category option (analysis centre, navigation system, DCB type...)
    """

    date: GNSSDate
    category: ProductCategory
    archive: Archive
    target_dir: Path
    site: str | None = None
    hour: int | None = None
    quarter: str | None = None
    option: str | None = None

    @property
    def epoch(self) -> Epoch:
        return Epoch.from_date(self.date, self.hour, self.quarter)

    @property
    def label(self) -> str:
        """Short description for logs."""
        parts = [self.category.value, f"{self.date.year}/{self.date.doy:03d}"]
        if self.hour is not None:
            parts.append(f"{self.hour:02d}h")
        if self.quarter is not None:
            parts.append(f"{self.quarter}m")
        if self.site:
            parts.append(self.site)
        if self.option:
            parts.append(self.option)
        return " ".join(parts)


@dataclass(frozen=True)
class RetrievalPlan:
    """Remote location and local naming of one retrieval unit.

    Attributes:
        url: Remote directory URL (file URL when ``exact_file``)
        remote_pattern: Remote file name pattern, compression suffix excluded
        local_name: Canonical local file name
        path_depth: Leading remote path segments stripped when mirroring
        rename_to: Name the decompressed artifact is renamed to
        convert: Hatanaka conversion of the renamed/decompressed artifact
        witnesses: Local names whose presence means "already present"
        compressed: Remote artifact carries a .gz/.Z suffix
        exact_file: ``url`` names the remote file itself
        cleanup_dirs: Transient directories removed after the unit
        fallback: Plan tried when this one fails
        description: Human-readable product name
    """

    url: str
    remote_pattern: str
    local_name: str
    path_depth: int
    rename_to: str | None = None
    convert: bool = False
    witnesses: tuple[str, ...] = ()
    compressed: bool = True
    exact_file: bool = False
    cleanup_dirs: tuple[str, ...] = ()
    fallback: RetrievalPlan | None = None
    description: str = ""

    @property
    def fetch_pattern(self) -> str | None:
        """Pattern handed to the transfer agent (None for exact-file plans)."""
        if self.exact_file:
            return None
        return f"{self.remote_pattern}.*" if self.compressed else self.remote_pattern

    @property
    def idempotency_names(self) -> tuple[str, ...]:
        return self.witnesses or (self.local_name,)


@dataclass(frozen=True)
class BulkMember:
    """Post-processing rule for files extracted by a bulk fetch.

    ``{site}`` in the templates is the lower-cased first four characters
    of the extracted file name.
    """

    member_glob: str
    intermediate_template: str
    local_template: str
    quarter: str | None = None

    def intermediate_name(self, site: str) -> str:
        return self.intermediate_template.format(site=site)

    def local_name(self, site: str) -> str:
        return self.local_template.format(site=site)


@dataclass(frozen=True)
class BulkPlan:
    """All-stations fetch of a network-wide pattern."""

    url: str
    remote_pattern: str
    path_depth: int
    members: tuple[BulkMember, ...]
    convert: bool = False
    description: str = ""

    @property
    def fetch_pattern(self) -> str:
        return f"{self.remote_pattern}.*"


def nav_hourly_kinds(system: str) -> tuple[str, ...]:
    """Hourly navigation file kinds for a navigation system option."""
    try:
        return NAV_HOURLY_SYSTEMS[system.lower()]
    except KeyError as e:
        raise NoTemplateError(
            C.NAV_HOURLY.value, "-", system,
            message=f"Unknown hourly navigation system {system!r}; "
                    f"expected one of {sorted(NAV_HOURLY_SYSTEMS)}",
        ) from e


def is_ultra_rapid(option: str | None) -> bool:
    return (option or "").lower() in ULTRA_RAPID_CENTRES


class FilenameSynthesizer:
    """Table-driven remote/local naming for every product category."""

    def __init__(self, registry: ArchiveRegistry | None = None):
        self.registry = registry or ArchiveRegistry()
        self._builders: dict[ProductCategory, Callable[[RetrievalUnit, dict[str, str]], RetrievalPlan]] = {
            C.OBS_DAILY: self._obs_short,
            C.OBS_HOURLY: self._obs_short,
            C.OBS_HIGHRATE: self._obs_short,
            C.OBM_DAILY: self._obs_long,
            C.OBM_HOURLY: self._obs_long,
            C.OBM_HIGHRATE: self._obs_long,
            C.NAV: self._nav,
            C.NAV_HOURLY: self._nav_hourly,
            C.NAV_RT: self._nav_rt,
            C.ORBIT: self._orbit,
            C.CLOCK: self._clock,
            C.MGEX_ORBIT: self._mgex_orbit,
            C.MGEX_CLOCK: self._mgex_clock,
            C.EOP: self._eop,
            C.SINEX: self._sinex,
            C.MGEX_DCB: self._mgex_dcb,
            C.CODE_DCB: self._code_dcb,
            C.IONOSPHERE: self._ionosphere,
            C.ROTI: self._roti,
            C.TROPOSPHERE: self._troposphere,
            C.RT_ORBIT: self._realtime,
            C.RT_CLOCK: self._realtime,
            C.RT_BIAS: self._realtime,
            C.ANTEX: self._antex,
        }
        self._bulk_builders: dict[ProductCategory, Callable[[RetrievalUnit, dict[str, str]], BulkPlan]] = {
            C.OBS_DAILY: self._obs_short_bulk,
            C.OBS_HOURLY: self._obs_short_bulk,
            C.OBS_HIGHRATE: self._obs_short_bulk,
            C.OBM_DAILY: self._obs_long_bulk,
            C.OBM_HOURLY: self._obs_long_bulk,
            C.OBM_HIGHRATE: self._obs_long_bulk,
            C.TROPOSPHERE: self._troposphere_bulk,
        }

    def synthesize(self, unit: RetrievalUnit) -> RetrievalPlan:
        """Remote pattern, canonical local name and path depth of a unit.

        Raises:
            NoTemplateError: No naming rule for the unit's category, archive or option
        """
        builder = self._builders.get(unit.category)
        if builder is None:
            raise NoTemplateError(unit.category.value, unit.archive.value, unit.option)
        return builder(unit, unit.epoch.fields())

    def synthesize_bulk(self, unit: RetrievalUnit) -> BulkPlan:
        """Network-wide plan for all-stations mode.

        Raises:
            NoTemplateError: The category has no all-stations listing
        """
        builder = self._bulk_builders.get(unit.category)
        if builder is None:
            raise NoTemplateError(
                unit.category.value, unit.archive.value, unit.option,
                message=f"{unit.category.value} has no all-stations mode",
            )
        return builder(unit, unit.epoch.fields())

    def supports_bulk(self, category: ProductCategory) -> bool:
        return category in self._bulk_builders

    def is_bulk(self, unit: RetrievalUnit) -> bool:
        """Whether the unit is an all-stations fetch (no site given)."""
        if unit.site is not None or unit.category not in self._bulk_builders:
            return False
        if unit.category == C.TROPOSPHERE:
            return (unit.option or "igs").lower() == "igs"
        return True

    # ------------------------------------------------------------------
    # Locations

    def _archive_location(self, unit: RetrievalUnit, f: dict[str, str]) -> tuple[str, int]:
        try:
            base = self.registry.base_url(unit.archive, unit.category)
            subpath, depth = ARCHIVE_LAYOUT[unit.category][unit.archive]
        except (UnknownCategoryError, KeyError) as e:
            raise NoTemplateError(unit.category.value, unit.archive.value, unit.option) from e
        return _join(base, subpath.format(**f)), depth

    def _source_location(self, name: str, f: dict[str, str]) -> tuple[str, int]:
        subpath, depth = SOURCE_LAYOUT[name]
        return _join(self.registry.source_url(name), subpath.format(**f)), depth

    # ------------------------------------------------------------------
    # Observations

    def _obs_short(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        site = _require_site(unit)
        stem = f"{site}{f['doy']}{_session(unit, f)}"
        compact = f"{stem}.{f['yy']}d"
        standard = f"{stem}.{f['yy']}o"
        url, depth = self._archive_location(unit, f)
        return RetrievalPlan(
            url=url,
            remote_pattern=compact,
            local_name=standard,
            path_depth=depth,
            convert=True,
            witnesses=(standard, compact),
            description=f"IGS {_obs_kind(unit)} observation file",
        )

    def _obs_long(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        site = _require_site(unit)
        stem = f"{site}{f['doy']}{_session(unit, f)}"
        compact = f"{stem}.{f['yy']}d"
        standard = f"{stem}.{f['yy']}o"
        url, depth = self._archive_location(unit, f)
        return RetrievalPlan(
            url=url,
            remote_pattern=f"{site.upper()}*_R_{_long_obs_span(unit, f)}_MO.crx",
            local_name=standard,
            path_depth=depth,
            rename_to=compact,
            convert=True,
            witnesses=(standard, compact),
            description=f"MGEX {_obs_kind(unit)} observation file",
        )

    def _obs_short_bulk(self, unit: RetrievalUnit, f: dict[str, str]) -> BulkPlan:
        url, depth = self._archive_location(unit, f)
        doy, yy = f["doy"], f["yy"]
        if unit.category == C.OBS_HIGHRATE:
            members = tuple(
                BulkMember(
                    member_glob=f"*{doy}{f['h']}{mm}.{yy}d",
                    intermediate_template=f"{{site}}{doy}{f['h']}{mm}.{yy}d",
                    local_template=f"{{site}}{doy}{f['h']}{mm}.{yy}o",
                    quarter=mm,
                )
                for mm in _quarters(unit)
            )
            pattern = f"*{doy}{f['h']}*.{yy}d"
        else:
            session = _session(unit, f)
            members = (
                BulkMember(
                    member_glob=f"*{doy}{session}.{yy}d",
                    intermediate_template=f"{{site}}{doy}{session}.{yy}d",
                    local_template=f"{{site}}{doy}{session}.{yy}o",
                ),
            )
            pattern = f"*{doy}{session}.{yy}d"
        return BulkPlan(
            url=url,
            remote_pattern=pattern,
            path_depth=depth,
            members=members,
            convert=True,
            description=f"IGS {_obs_kind(unit)} observation files",
        )

    def _obs_long_bulk(self, unit: RetrievalUnit, f: dict[str, str]) -> BulkPlan:
        url, depth = self._archive_location(unit, f)
        doy, yy, year = f["doy"], f["yy"], f["year"]
        if unit.category == C.OBM_HIGHRATE:
            members = tuple(
                BulkMember(
                    member_glob=f"*_R_{year}{doy}{f['hh']}{mm}_15M_01S_MO.crx",
                    intermediate_template=f"{{site}}{doy}{f['h']}{mm}.{yy}d",
                    local_template=f"{{site}}{doy}{f['h']}{mm}.{yy}o",
                    quarter=mm,
                )
                for mm in _quarters(unit)
            )
            pattern = f"*_R_{year}{doy}{f['hh']}??_15M_01S_MO.crx"
        else:
            session = _session(unit, f)
            span = _long_obs_span(unit, f)
            members = (
                BulkMember(
                    member_glob=f"*_R_{span}_MO.crx",
                    intermediate_template=f"{{site}}{doy}{session}.{yy}d",
                    local_template=f"{{site}}{doy}{session}.{yy}o",
                ),
            )
            pattern = f"*_R_{span}_MO.crx"
        return BulkPlan(
            url=url,
            remote_pattern=pattern,
            path_depth=depth,
            members=members,
            convert=True,
            description=f"MGEX {_obs_kind(unit)} observation files",
        )

    # ------------------------------------------------------------------
    # Broadcast ephemerides

    def _nav(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        system = (unit.option or "gps").lower()
        url, depth = self._archive_location(unit, f)
        doy, yy = f["doy"], f["yy"]
        if system == "gps":
            name = f"brdc{doy}0.{yy}n"
            return RetrievalPlan(url, name, name, depth, description="GPS broadcast ephemeris file")
        if system == "glo":
            name = f"brdc{doy}0.{yy}g"
            return RetrievalPlan(url, name, name, depth, description="GLONASS broadcast ephemeris file")
        if system == "mixed":
            agency = "IGN" if unit.archive == Archive.IGN else "IGS"
            remote = f"BRDC00{agency}_R_{f['year']}{doy}0000_01D_MN.rnx"
            local = f"brdm{doy}0.{yy}p"
            return RetrievalPlan(
                url=url,
                remote_pattern=remote,
                local_name=local,
                path_depth=depth,
                rename_to=local,
                witnesses=(local, remote),
                description="multi-GNSS broadcast ephemeris file",
            )
        raise NoTemplateError(unit.category.value, unit.archive.value, unit.option)

    def _nav_hourly(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        site = _require_site(unit)
        kind = (unit.option or "").lower()
        _require_hour(unit)
        url, depth = self._archive_location(unit, f)
        local = f"{site}{f['doy']}{f['h']}.{f['yy']}{kind}"
        if kind in NAV_HOURLY_SHORT_KINDS:
            return RetrievalPlan(url, local, local, depth, description="hourly broadcast ephemeris file")
        if kind in NAV_HOURLY_LONG_KINDS:
            return RetrievalPlan(
                url=url,
                remote_pattern=(
                    f"{site.upper()}*_R_{f['year']}{f['doy']}{f['hh']}00_01H_{kind.upper()}.rnx"
                ),
                local_name=local,
                path_depth=depth,
                rename_to=local,
                description="hourly broadcast ephemeris file",
            )
        raise NoTemplateError(unit.category.value, unit.archive.value, unit.option)

    def _nav_rt(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        url, depth = self._source_location("lrz_brdm", f)
        name = f"brdm{f['doy']}z.{f['yy']}p"
        return RetrievalPlan(url, name, name, depth, description="real-time broadcast ephemeris file")

    # ------------------------------------------------------------------
    # Precise orbits, clocks, EOP and SINEX

    def _orbit(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        ac = _centre(unit, IGS_CENTRES, default="igs")
        week, dow = f["week"], f["dow"]
        if ac in ("igu", "gfu"):
            _require_hour(unit)
            name = f"{ac}{week}{dow}_{f['hh']}.sp3"
            if ac == "gfu":
                url, depth = self._source_location("gfz_ultra", f)
                return RetrievalPlan(url, name, name, depth, description="GFZ ultra-rapid orbit file")
            url, depth = self._archive_location(unit, f)
            return RetrievalPlan(
                url, name, name, depth,
                cleanup_dirs=("repro3",),
                description="IGS ultra-rapid orbit file",
            )
        extension = "eph" if ac == "cod" else "sp3"
        name = f"{ac}{week}{dow}.{extension}"
        url, depth = self._archive_location(unit, f)
        return RetrievalPlan(
            url, name, name, depth,
            cleanup_dirs=("repro3",),
            description="IGS precise orbit file",
        )

    def _clock(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        ac = _centre(unit, IGS_CENTRES, default="igs")
        if ac in ULTRA_RAPID_CENTRES:
            raise NoTemplateError(
                unit.category.value, unit.archive.value, ac,
                message=f"{ac} ultra-rapid products have no clock file",
            )
        extension = {"cod": "clk_05s", "igs": "clk_30s"}.get(ac, "clk")
        name = f"{ac}{f['week']}{f['dow']}.{extension}"
        url, depth = self._archive_location(unit, f)
        return RetrievalPlan(
            url, name, name, depth,
            cleanup_dirs=("repro3",),
            description="IGS precise clock file",
        )

    def _mgex_orbit(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        ac = _centre(unit, MGEX_CENTRES)
        url, depth = self._archive_location(unit, f)
        if ac == "wuu":
            _require_hour(unit)
            name = f"WUM0MGXULA_{f['year']}{f['doy']}{f['hh']}00_01D_05M_ORB.SP3"
            return RetrievalPlan(url, name, name, depth, description="WHU multi-GNSS ultra-rapid orbit file")
        local = f"{ac}{f['week']}{f['dow']}.sp3"
        return RetrievalPlan(
            url=url,
            remote_pattern=f"{MGEX_PREFIXES[ac]}_{f['year']}{f['doy']}0000_01D_*_ORB.SP3",
            local_name=local,
            path_depth=depth,
            rename_to=local,
            description="MGEX precise orbit file",
        )

    def _mgex_clock(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        ac = _centre(unit, MGEX_CENTRES)
        if ac == "wuu":
            raise NoTemplateError(
                unit.category.value, unit.archive.value, ac,
                message="wuu ultra-rapid products have no clock file",
            )
        url, depth = self._archive_location(unit, f)
        local = f"{ac}{f['week']}{f['dow']}.clk"
        return RetrievalPlan(
            url=url,
            remote_pattern=f"{MGEX_PREFIXES[ac]}_{f['year']}{f['doy']}0000_01D_*_CLK.CLK",
            local_name=local,
            path_depth=depth,
            rename_to=local,
            description="MGEX precise clock file",
        )

    def _eop(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        ac = _centre(unit, IGS_CENTRES, default="igs")
        week, dow = f["week"], f["dow"]
        if ac in ("igu", "gfu"):
            _require_hour(unit)
            name = f"{ac}{week}{dow}_{f['hh']}.erp"
            if ac == "gfu":
                url, depth = self._source_location("gfz_ultra", f)
                return RetrievalPlan(url, name, name, depth, description="GFZ ultra-rapid EOP file")
            url, depth = self._archive_location(unit, f)
            return RetrievalPlan(
                url, name, name, depth,
                cleanup_dirs=("repro3",),
                description="IGS ultra-rapid EOP file",
            )
        # rapid EOP is daily, the other centres publish one weekly file
        name = f"igr{week}{dow}.erp" if ac == "igr" else f"{ac}{week}7.erp"
        url, depth = self._archive_location(unit, f)
        return RetrievalPlan(
            url, name, name, depth,
            cleanup_dirs=("repro3",),
            description="EOP file",
        )

    def _sinex(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        week = f["week"]
        local = f"igs{week}.snx"
        url, depth = self._archive_location(unit, f)
        daily = RetrievalPlan(
            url=url,
            remote_pattern=f"igs*P{week}{f['dow']}.snx",
            local_name=local,
            path_depth=depth,
            rename_to=local,
            cleanup_dirs=("repro3",),
            description="IGS daily SINEX file",
        )
        return RetrievalPlan(
            url=url,
            remote_pattern=f"igs*P{week}.snx",
            local_name=local,
            path_depth=depth,
            rename_to=local,
            cleanup_dirs=("repro3",),
            fallback=daily,
            description="IGS weekly SINEX file",
        )

    # ------------------------------------------------------------------
    # Biases

    def _mgex_dcb(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        name = f"CAS0MGXRAP_{f['year']}{f['doy']}0000_01D_01D_DCB.BSX"
        url, depth = self._archive_location(unit, f)
        return RetrievalPlan(url, name, name, depth, description="MGEX DCB file")

    def _code_dcb(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        dcb_type = (unit.option or "").upper()
        if dcb_type not in CODE_DCB_TYPES:
            raise NoTemplateError(unit.category.value, unit.archive.value, unit.option)
        url, depth = self._source_location("code", f)
        local = f"{dcb_type}{f['yy']}{f['month']}.DCB"
        if dcb_type == "P2C2":
            remote = f"{dcb_type}{f['yy']}{f['month']}_RINEX.DCB"
            return RetrievalPlan(
                url=url,
                remote_pattern=remote,
                local_name=local,
                path_depth=depth,
                rename_to=local,
                witnesses=(local, remote),
                description="CODE P2C2 DCB file",
            )
        return RetrievalPlan(url, local, local, depth, description=f"CODE {dcb_type} DCB file")

    # ------------------------------------------------------------------
    # Atmosphere

    def _ionosphere(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        ac = (unit.option or "igs").lower()
        if len(ac) != 3 or not ac.isalnum():
            raise NoTemplateError(unit.category.value, unit.archive.value, unit.option)
        name = f"{ac}g{f['doy']}0.{f['yy']}i"
        url, depth = self._archive_location(unit, f)
        return RetrievalPlan(
            url, name, name, depth,
            cleanup_dirs=("topex",),
            description="global ionosphere map file",
        )

    def _roti(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        name = f"roti{f['doy']}0.{f['yy']}f"
        url, depth = self._archive_location(unit, f)
        return RetrievalPlan(
            url, name, name, depth,
            cleanup_dirs=("topex",),
            description="ROTI file",
        )

    def _troposphere(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        ac = (unit.option or "igs").lower()
        if ac == "cod":
            name = f"COD{f['week']}{f['dow']}.TRO"
            url, depth = self._source_location("code", f)
            return RetrievalPlan(url, name, name, depth, description="CODE tropospheric product")
        if ac != "igs":
            raise NoTemplateError(unit.category.value, unit.archive.value, unit.option)
        site = _require_site(unit)
        name = f"{site}{f['doy']}0.{f['yy']}zpd"
        url, depth = self._archive_location(unit, f)
        return RetrievalPlan(url, name, name, depth, description="IGS tropospheric product")

    def _troposphere_bulk(self, unit: RetrievalUnit, f: dict[str, str]) -> BulkPlan:
        if (unit.option or "igs").lower() != "igs":
            raise NoTemplateError(
                unit.category.value, unit.archive.value, unit.option,
                message="only IGS tropospheric products have an all-stations mode",
            )
        url, depth = self._archive_location(unit, f)
        suffix = f"{f['doy']}0.{f['yy']}zpd"
        return BulkPlan(
            url=url,
            remote_pattern=f"*{suffix}",
            path_depth=depth,
            members=(
                BulkMember(
                    member_glob=f"*{suffix}",
                    intermediate_template=f"{{site}}{suffix}",
                    local_template=f"{{site}}{suffix}",
                ),
            ),
            description="IGS tropospheric products",
        )

    # ------------------------------------------------------------------
    # Real-time products and antenna model

    def _realtime(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        extension = {C.RT_ORBIT: "sp3", C.RT_CLOCK: "clk", C.RT_BIAS: "bia"}[unit.category]
        name = f"cnt{f['week']}{f['dow']}.{extension}"
        base, depth = self._source_location("cnes_rt", f)
        return RetrievalPlan(
            url=f"{base}/{name}.gz",
            remote_pattern=name,
            local_name=name,
            path_depth=depth,
            exact_file=True,
            cleanup_dirs=("FORMAT_BIAIS_OFFI1", "FORMATBIAS_OFF_v1"),
            description="CNES real-time product",
        )

    def _antex(self, unit: RetrievalUnit, f: dict[str, str]) -> RetrievalPlan:
        name = unit.option or DEFAULT_ANTEX
        base, depth = self._source_location("igs_general", f)
        return RetrievalPlan(
            url=f"{base}/{name}",
            remote_pattern=name,
            local_name=name,
            path_depth=depth,
            compressed=False,
            exact_file=True,
            description="IGS ANTEX file",
        )


def _join(base: str, subpath: str) -> str:
    return f"{base}/{subpath}" if subpath else base


def _require_site(unit: RetrievalUnit) -> str:
    if not unit.site:
        raise NoTemplateError(
            unit.category.value, unit.archive.value, unit.option,
            message=f"{unit.category.value} requires a site identifier",
        )
    return unit.site.lower()


def _require_hour(unit: RetrievalUnit) -> int:
    if unit.hour is None:
        raise NoTemplateError(
            unit.category.value, unit.archive.value, unit.option,
            message=f"{unit.label} requires an hour slot",
        )
    return unit.hour


def _centre(unit: RetrievalUnit, allowed: tuple[str, ...], default: str | None = None) -> str:
    ac = (unit.option or default or "").lower()
    if ac not in allowed:
        raise NoTemplateError(
            unit.category.value, unit.archive.value, unit.option,
            message=f"Unknown analysis centre {unit.option!r} for {unit.category.value}; "
                    f"expected one of {allowed}",
        )
    return ac


def _obs_kind(unit: RetrievalUnit) -> str:
    if unit.category in HOURLY_CATEGORIES:
        return "hourly"
    if unit.category in HIGHRATE_CATEGORIES:
        return "high-rate"
    return "daily"


def _session(unit: RetrievalUnit, f: dict[str, str]) -> str:
    """Session part of a short name: '0' daily, hour letter, or letter + minute."""
    if unit.category in HOURLY_CATEGORIES:
        _require_hour(unit)
        return f["h"]
    if unit.category in HIGHRATE_CATEGORIES:
        _require_hour(unit)
        if unit.quarter is None:
            raise NoTemplateError(
                unit.category.value, unit.archive.value, unit.option,
                message=f"{unit.label} requires a quarter-hour slot",
            )
        return f"{f['h']}{f['mm']}"
    return "0"


def _long_obs_span(unit: RetrievalUnit, f: dict[str, str]) -> str:
    """Start time, period and sampling of a long observation name."""
    start = f"{f['year']}{f['doy']}"
    if unit.category == C.OBM_HOURLY:
        _require_hour(unit)
        return f"{start}{f['hh']}00_01H_30S"
    if unit.category == C.OBM_HIGHRATE:
        _session(unit, f)
        return f"{start}{f['hh']}{f['mm']}_15M_01S"
    return f"{start}0000_01D_30S"


def _quarters(unit: RetrievalUnit) -> tuple[str, ...]:
    _require_hour(unit)
    return (unit.quarter,) if unit.quarter else QUARTER_SLOTS
