"""Product naming: retrieval units, plans and the filename synthesizer."""

from pygnss_fetch.products.naming import (
    BulkMember,
    BulkPlan,
    FilenameSynthesizer,
    RetrievalPlan,
    RetrievalUnit,
    IGS_CENTRES,
    MGEX_CENTRES,
    ULTRA_RAPID_CENTRES,
    NAV_HOURLY_SYSTEMS,
    CODE_DCB_TYPES,
    is_ultra_rapid,
    nav_hourly_kinds,
)

__all__ = [
    "BulkMember",
    "BulkPlan",
    "FilenameSynthesizer",
    "RetrievalPlan",
    "RetrievalUnit",
    "IGS_CENTRES",
    "MGEX_CENTRES",
    "ULTRA_RAPID_CENTRES",
    "NAV_HOURLY_SYSTEMS",
    "CODE_DCB_TYPES",
    "is_ultra_rapid",
    "nav_hourly_kinds",
]
