"""Utility modules for dates, logging, and decompression."""

from pygnss_fetch.utils.dates import (
    GNSSDate,
    Epoch,
    QUARTER_SLOTS,
    gps_week_from_date,
    doy_from_date,
    date_from_doy,
    hour_to_alpha,
    alpha_to_hour,
)
from pygnss_fetch.utils.logging import (
    get_logger,
    setup_logging,
    MessageType,
    StatusPrinter,
)
from pygnss_fetch.utils.compression import (
    CompressionFormat,
    CompressionResult,
    Decompressor,
    HatanakaConverter,
    find_crx2rnx,
)

__all__ = [
    # Date/time utilities
    "GNSSDate",
    "Epoch",
    "QUARTER_SLOTS",
    "gps_week_from_date",
    "doy_from_date",
    "date_from_doy",
    "hour_to_alpha",
    "alpha_to_hour",
    # Logging
    "get_logger",
    "setup_logging",
    "MessageType",
    "StatusPrinter",
    # Decompression and conversion
    "CompressionFormat",
    "CompressionResult",
    "Decompressor",
    "HatanakaConverter",
    "find_crx2rnx",
]
