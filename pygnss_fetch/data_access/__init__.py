"""Data access layer: archive registry, FTP/HTTP clients and transfer agents."""

from pygnss_fetch.data_access.archives import (
    Archive,
    ProductCategory,
    ArchiveRegistry,
    DEFAULT_ARCHIVE_URLS,
    DEFAULT_SOURCES,
)
from pygnss_fetch.data_access.ftp_client import FTPClient
from pygnss_fetch.data_access.http_client import HTTPClient
from pygnss_fetch.data_access.transfer import (
    TransferAgent,
    NativeTransferAgent,
    WgetTransferAgent,
    TransferReport,
    TransferStatus,
    select_latest,
    select_remote,
    strip_compression,
)

__all__ = [
    # Registry
    "Archive",
    "ProductCategory",
    "ArchiveRegistry",
    "DEFAULT_ARCHIVE_URLS",
    "DEFAULT_SOURCES",
    # Clients
    "FTPClient",
    "HTTPClient",
    # Transfer agents
    "TransferAgent",
    "NativeTransferAgent",
    "WgetTransferAgent",
    "TransferReport",
    "TransferStatus",
    "select_latest",
    "select_remote",
    "strip_compression",
]
