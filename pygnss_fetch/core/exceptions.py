"""
Custom exceptions for pygnss-fetch.

Provides a hierarchy of exceptions for different error conditions.
Unit-level retrieval failures are never raised; they are reported as
outcomes. Exceptions cover configuration problems and client errors.
"""

from __future__ import annotations


class PyGNSSFetchError(Exception):
    """Base exception for all pygnss-fetch errors."""

    pass


class ConfigurationError(PyGNSSFetchError):
    """Configuration-related errors."""

    pass


class UnknownCategoryError(ConfigurationError):
    """Archive registry has no entry for an (archive, category) pair."""

    def __init__(self, archive: str, category: str):
        self.archive = archive
        self.category = category
        super().__init__(f"Archive {archive} does not provide {category} products")


class NoTemplateError(ConfigurationError):
    """No naming rule exists for the requested product."""

    def __init__(
        self,
        category: str,
        archive: str,
        option: str | None = None,
        message: str | None = None,
    ):
        self.category = category
        self.archive = archive
        self.option = option
        detail = f" (option {option!r})" if option else ""
        super().__init__(
            message or f"No naming template for {category} from {archive}{detail}"
        )


class SiteListError(ConfigurationError):
    """Site list file missing or unreadable."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Site list {path}: {message}")


class FTPError(PyGNSSFetchError):
    """FTP/FTPS transfer errors."""

    def __init__(self, server: str, operation: str, message: str):
        self.server = server
        self.operation = operation
        super().__init__(f"{operation} failed on {server}: {message}")


class HTTPError(PyGNSSFetchError):
    """HTTP/HTTPS transfer errors."""

    def __init__(self, url: str, status_code: int | None, message: str):
        self.url = url
        self.status_code = status_code
        super().__init__(f"HTTP error for {url}: {message}")


class ToolError(PyGNSSFetchError):
    """External tool (wget, gzip, crx2rnx) errors."""

    def __init__(self, tool: str, message: str, return_code: int | None = None):
        self.tool = tool
        self.return_code = return_code
        super().__init__(f"{tool} failed: {message}")
