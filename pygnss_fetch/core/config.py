"""
Configuration management for pygnss-fetch.

Uses Pydantic for validation and supports YAML configuration files
with environment variable expansion.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from pygnss_fetch.core.types import Archive


OBS_TYPES = ("daily", "hourly", "highrate")
NAV_TYPES = ("daily", "hourly", "rtnav")
AGENTS = ("native", "wget")


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in strings."""
    if isinstance(value, str):
        return os.path.expandvars(value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(v) for v in value]
    return value


def _check_hours(hours: list[int]) -> list[int]:
    for hour in hours:
        if not 0 <= hour <= 23:
            raise ValueError(f"Hour must be 0-23, got {hour}")
    return hours


class DirectoriesConfig(BaseModel):
    """Local product directories.

    Every product directory defaults to a sub-directory of ``main_dir``.
    """

    main_dir: Path = Field(default=Path("data"))
    obs_dir: Path | None = None
    obm_dir: Path | None = None
    nav_dir: Path | None = None
    sp3_dir: Path | None = None
    clk_dir: Path | None = None
    eop_dir: Path | None = None
    snx_dir: Path | None = None
    dcb_dir: Path | None = None
    ion_dir: Path | None = None
    ztd_dir: Path | None = None
    bia_dir: Path | None = None
    atx_dir: Path | None = None

    def model_post_init(self, __context: Any) -> None:
        """Set derived paths after initialization."""
        defaults = {
            "obs_dir": "obs",
            "obm_dir": "obm",
            "nav_dir": "nav",
            "sp3_dir": "sp3",
            "clk_dir": "clk",
            "eop_dir": "eop",
            "snx_dir": "snx",
            "dcb_dir": "dcb",
            "ion_dir": "ion",
            "ztd_dir": "ztd",
            "bia_dir": "bia",
            "atx_dir": "tbl",
        }
        for attr, sub in defaults.items():
            if getattr(self, attr) is None:
                setattr(self, attr, self.main_dir / sub)


class TransferConfig(BaseModel):
    """Transfer agent configuration."""

    archive: Archive = Archive.CDDIS
    agent: str = "native"
    username: str = "anonymous"
    password: str = "anonymous@"
    passive: bool = True
    timeout: int = 300
    max_retries: int = 1
    retry_delay: float = 5.0
    parallel_downloads: int = 1
    registry_overrides: Path | None = None

    @field_validator("agent")
    @classmethod
    def _valid_agent(cls, value: str) -> str:
        if value not in AGENTS:
            raise ValueError(f"agent must be one of {AGENTS}, got {value!r}")
        return value

    @field_validator("parallel_downloads")
    @classmethod
    def _positive_workers(cls, value: int) -> int:
        if value < 1:
            raise ValueError("parallel_downloads must be at least 1")
        return value


class ToolsConfig(BaseModel):
    """Third-party executables (wget, gzip, crx2rnx)."""

    third_party_dir: Path | None = None
    wget: str = "wget"
    gzip: str = "gzip"
    crx2rnx: str | None = None
    print_wget_info: bool = False

    def model_post_init(self, __context: Any) -> None:
        """Resolve tools inside the third-party directory when one is given."""
        if self.third_party_dir is not None:
            self.wget = str(self.third_party_dir / "wget")
            self.gzip = str(self.third_party_dir / "gzip")
            self.crx2rnx = str(self.third_party_dir / "crx2rnx")


class ProductsConfig(BaseModel):
    """Which products to retrieve and their options."""

    get_obs: bool = False
    obs_type: str = "daily"
    obs_sites: str = "all"
    obs_hours: list[int] = Field(default_factory=lambda: [0])

    get_obm: bool = False
    obm_type: str = "daily"
    obm_sites: str = "all"
    obm_hours: list[int] = Field(default_factory=lambda: [0])

    get_nav: bool = False
    nav_type: str = "daily"
    nav_option: str = "gps"
    nav_sites: str | None = None
    nav_hours: list[int] = Field(default_factory=lambda: [0])

    get_orbclk: bool = False
    orbclk_ac: str = "igs"
    orbclk_hours: list[int] = Field(default_factory=lambda: [0, 6, 12, 18])

    get_eop: bool = False
    eop_ac: str = "igs"
    eop_hours: list[int] = Field(default_factory=lambda: [0, 6, 12, 18])

    get_snx: bool = False
    get_dcb: bool = False

    get_ion: bool = False
    ion_ac: str = "igs"

    get_roti: bool = False

    get_trp: bool = False
    trp_ac: str = "igs"
    trp_sites: str = "all"

    get_rt_orbclk: bool = False
    get_rt_bias: bool = False

    get_atx: bool = False
    atx_name: str = "igs20.atx"

    minus_add_1day: bool = False
    quarter_subdirs: bool = False

    @field_validator("obs_type", "obm_type")
    @classmethod
    def _valid_obs_type(cls, value: str) -> str:
        if value not in OBS_TYPES:
            raise ValueError(f"observation type must be one of {OBS_TYPES}, got {value!r}")
        return value

    @field_validator("nav_type")
    @classmethod
    def _valid_nav_type(cls, value: str) -> str:
        if value not in NAV_TYPES:
            raise ValueError(f"navigation type must be one of {NAV_TYPES}, got {value!r}")
        return value

    @field_validator("obs_hours", "obm_hours", "nav_hours", "orbclk_hours", "eop_hours")
    @classmethod
    def _valid_hours(cls, value: list[int]) -> list[int]:
        return _check_hours(value)

    @field_validator("orbclk_ac", "eop_ac", "ion_ac", "trp_ac", "nav_option")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.strip().lower()


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_dir: Path = Field(default=Path("logs"))
    log_to_file: bool = False
    log_to_console: bool = True
    json_format: bool = False


class Settings(BaseSettings):
    """Main settings container."""

    directories: DirectoriesConfig = Field(default_factory=DirectoriesConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    products: ProductsConfig = Field(default_factory=ProductsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    class Config:
        env_prefix = "PYGNSS_FETCH_"
        env_nested_delimiter = "__"


def default_search_paths() -> list[Path]:
    """Configuration files tried when no explicit path is given."""
    return [
        Path("config/settings.local.yaml"),
        Path("config/settings.yaml"),
        Path.home() / ".pygnss_fetch" / "settings.yaml",
    ]


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML file.

    Args:
        config_path: Path to YAML configuration file.
                    If None, tries default locations.

    Returns:
        Settings instance.
    """
    search_paths = [Path(config_path)] if config_path else default_search_paths()

    config_data: dict[str, Any] = {}

    for path in search_paths:
        if path.exists():
            with open(path) as f:
                raw_data = yaml.safe_load(f)
                if raw_data:
                    config_data = expand_env_vars(raw_data)
            break

    return Settings(**config_data)
