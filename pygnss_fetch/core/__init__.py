"""Core configuration and exceptions."""

from pygnss_fetch.core.exceptions import (
    PyGNSSFetchError,
    ConfigurationError,
    UnknownCategoryError,
    NoTemplateError,
    SiteListError,
    FTPError,
    HTTPError,
    ToolError,
)
from pygnss_fetch.core.types import Archive, ProductCategory
from pygnss_fetch.core.config import Settings, load_settings

__all__ = [
    "Archive",
    "ProductCategory",
    "Settings",
    "load_settings",
    "PyGNSSFetchError",
    "ConfigurationError",
    "UnknownCategoryError",
    "NoTemplateError",
    "SiteListError",
    "FTPError",
    "HTTPError",
    "ToolError",
]
