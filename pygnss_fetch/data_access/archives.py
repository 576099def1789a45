"""
Archive registry.

Static table mapping (archive, product category) to the base directory
URL of that category in the archive tree, plus the fixed hosts of
products that are not mirrored by the IGS data centres.

The table is read-only after construction and safe to share between
worker threads.
"""

from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from pygnss_fetch.core.exceptions import ConfigurationError, UnknownCategoryError
from pygnss_fetch.core.types import Archive, ProductCategory
from pygnss_fetch.utils.logging import get_logger


logger = get_logger(__name__)


C = ProductCategory


def _label(value: Any) -> str:
    return getattr(value, "value", str(value))


_CDDIS = "ftps://gdc.cddis.eosdis.nasa.gov/pub/gnss"
_IGN = "ftp://igs.ign.fr/pub/igs"
_WHU = "ftp://igs.gnsswhu.cn/pub/gps"

DEFAULT_ARCHIVE_URLS: dict[Archive, dict[ProductCategory, str]] = {
    Archive.CDDIS: {
        C.OBS_DAILY: f"{_CDDIS}/data/daily",
        C.OBS_HOURLY: f"{_CDDIS}/data/hourly",
        C.OBS_HIGHRATE: f"{_CDDIS}/data/highrate",
        C.OBM_DAILY: f"{_CDDIS}/data/daily",
        C.OBM_HOURLY: f"{_CDDIS}/data/hourly",
        C.OBM_HIGHRATE: f"{_CDDIS}/data/highrate",
        C.NAV: f"{_CDDIS}/data/daily",
        C.NAV_HOURLY: f"{_CDDIS}/data/hourly",
        C.ORBIT: f"{_CDDIS}/products",
        C.CLOCK: f"{_CDDIS}/products",
        C.EOP: f"{_CDDIS}/products",
        C.SINEX: f"{_CDDIS}/products",
        C.MGEX_ORBIT: f"{_CDDIS}/products/mgex",
        C.MGEX_CLOCK: f"{_CDDIS}/products/mgex",
        C.MGEX_DCB: f"{_CDDIS}/products/bias",
        C.IONOSPHERE: f"{_CDDIS}/products/ionex",
        C.ROTI: f"{_CDDIS}/products/ionex",
        C.TROPOSPHERE: f"{_CDDIS}/products/troposphere/zpd",
    },
    Archive.IGN: {
        C.OBS_DAILY: f"{_IGN}/data",
        C.OBS_HOURLY: f"{_IGN}/data/hourly",
        C.OBS_HIGHRATE: f"{_IGN}/data/highrate",
        C.OBM_DAILY: f"{_IGN}/data",
        C.OBM_HOURLY: f"{_IGN}/data/hourly",
        C.OBM_HIGHRATE: f"{_IGN}/data/highrate",
        C.NAV: f"{_IGN}/data",
        C.NAV_HOURLY: f"{_IGN}/data/hourly",
        C.ORBIT: f"{_IGN}/products",
        C.CLOCK: f"{_IGN}/products",
        C.EOP: f"{_IGN}/products",
        C.SINEX: f"{_IGN}/products",
        C.MGEX_ORBIT: f"{_IGN}/products/mgex",
        C.MGEX_CLOCK: f"{_IGN}/products/mgex",
        C.MGEX_DCB: f"{_IGN}/products/mgex/dcb",
        C.IONOSPHERE: f"{_IGN}/products/ionosphere",
        C.ROTI: f"{_IGN}/products/ionosphere",
        C.TROPOSPHERE: f"{_IGN}/products/troposphere",
    },
    # no high-rate observation tree
    Archive.WHU: {
        C.OBS_DAILY: f"{_WHU}/data/daily",
        C.OBS_HOURLY: f"{_WHU}/data/hourly",
        C.OBM_DAILY: f"{_WHU}/data/daily",
        C.OBM_HOURLY: f"{_WHU}/data/hourly",
        C.NAV: f"{_WHU}/data/daily",
        C.NAV_HOURLY: f"{_WHU}/data/hourly",
        C.ORBIT: f"{_WHU}/products",
        C.CLOCK: f"{_WHU}/products",
        C.EOP: f"{_WHU}/products",
        C.SINEX: f"{_WHU}/products",
        C.MGEX_ORBIT: f"{_WHU}/products/mgex",
        C.MGEX_CLOCK: f"{_WHU}/products/mgex",
        C.MGEX_DCB: f"{_WHU}/products/mgex/dcb",
        C.IONOSPHERE: f"{_WHU}/products/ionex",
        C.ROTI: f"{_WHU}/products/ionex",
        C.TROPOSPHERE: f"{_WHU}/products/troposphere/new",
    },
}

DEFAULT_SOURCES: dict[str, str] = {
    "gfz_ultra": "ftp://ftp.gfz-potsdam.de/pub/GNSS/products/ultra",
    "code": "ftp://ftp.aiub.unibe.ch/CODE",
    "lrz_brdm": "ftp://ftp.lrz.de/transfer/steigenb/brdm",
    "cnes_rt": "http://www.ppp-wizard.net/products/REAL_TIME",
    "igs_general": "https://files.igs.org/pub/station/general",
}


class ArchiveRegistry:
    """Read-only lookup of archive base URLs.

    Usage:
        registry = ArchiveRegistry()
        registry.base_url(Archive.CDDIS, ProductCategory.OBS_DAILY)
        # 'ftps://gdc.cddis.eosdis.nasa.gov/pub/gnss/data/daily'
    """

    def __init__(
        self,
        archive_urls: Mapping[Archive, Mapping[ProductCategory, str]] | None = None,
        sources: Mapping[str, str] | None = None,
    ):
        table = archive_urls if archive_urls is not None else DEFAULT_ARCHIVE_URLS
        self._urls = MappingProxyType({
            Archive(archive): MappingProxyType({
                ProductCategory(category): url.rstrip("/")
                for category, url in categories.items()
            })
            for archive, categories in table.items()
        })
        self._sources = MappingProxyType({
            name: url.rstrip("/")
            for name, url in (sources if sources is not None else DEFAULT_SOURCES).items()
        })

    def base_url(self, archive: Archive, category: ProductCategory) -> str:
        """Base URL of a category in an archive.

        Raises:
            UnknownCategoryError: The archive does not carry the category
        """
        try:
            return self._urls[Archive(archive)][ProductCategory(category)]
        except (KeyError, ValueError) as e:
            raise UnknownCategoryError(_label(archive), _label(category)) from e

    def source_url(self, name: str) -> str:
        """Base URL of a fixed, archive-independent host."""
        try:
            return self._sources[name]
        except KeyError as e:
            raise ConfigurationError(f"Unknown product source: {name}") from e

    def supports(self, archive: Archive, category: ProductCategory) -> bool:
        """Whether the archive carries the category."""
        return category in self._urls.get(archive, {})

    def categories(self, archive: Archive) -> list[ProductCategory]:
        """Categories carried by an archive, in declaration order."""
        carried = self._urls.get(archive, {})
        return [category for category in ProductCategory if category in carried]

    @property
    def sources(self) -> Mapping[str, str]:
        return self._sources

    @classmethod
    def from_yaml(cls, config_path: Path | str) -> ArchiveRegistry:
        """Build a registry with base URLs overridden from YAML.

        Example file::

            archives:
              CDDIS:
                obs_daily: ftps://mirror.example.org/gnss/data/daily
            sources:
              code: ftp://mirror.example.org/CODE

        Raises:
            ConfigurationError: Unreadable file or unknown archive/category
        """
        config_path = Path(config_path)
        try:
            with open(config_path) as f:
                config: dict[str, Any] = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read registry overrides {config_path}: {e}") from e

        urls = {archive: dict(table) for archive, table in DEFAULT_ARCHIVE_URLS.items()}
        for archive_name, overrides in (config.get("archives") or {}).items():
            try:
                archive = Archive(str(archive_name).upper())
                for category_name, url in (overrides or {}).items():
                    urls[archive][ProductCategory(category_name)] = str(url)
            except ValueError as e:
                raise ConfigurationError(f"Invalid registry override in {config_path}: {e}") from e

        sources = dict(DEFAULT_SOURCES)
        for name, url in (config.get("sources") or {}).items():
            if name not in sources:
                raise ConfigurationError(f"Unknown product source {name!r} in {config_path}")
            sources[name] = str(url)

        logger.info("Loaded archive registry overrides", path=str(config_path))
        return cls(urls, sources)
