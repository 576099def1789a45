"""
Archive and product category identifiers shared across the package.
"""

from __future__ import annotations

from enum import Enum


class Archive(str, Enum):
    """Supported GNSS data archives."""

    CDDIS = "CDDIS"
    IGN = "IGN"
    WHU = "WHU"


class ProductCategory(str, Enum):
    """Product categories.

    The first seventeen members are served by the archive trees (with
    registry gaps); the rest come from fixed, archive-independent hosts.
    """

    OBS_DAILY = "obs_daily"
    OBS_HOURLY = "obs_hourly"
    OBS_HIGHRATE = "obs_highrate"
    OBM_DAILY = "obm_daily"
    OBM_HOURLY = "obm_hourly"
    OBM_HIGHRATE = "obm_highrate"
    NAV = "nav"
    ORBIT = "orbit"
    CLOCK = "clock"
    EOP = "eop"
    SINEX = "sinex"
    MGEX_ORBIT = "mgex_orbit"
    MGEX_CLOCK = "mgex_clock"
    MGEX_DCB = "mgex_dcb"
    IONOSPHERE = "ionosphere"
    ROTI = "roti"
    TROPOSPHERE = "troposphere"

    NAV_HOURLY = "nav_hourly"
    NAV_RT = "nav_rt"
    CODE_DCB = "code_dcb"
    RT_ORBIT = "rt_orbit"
    RT_CLOCK = "rt_clock"
    RT_BIAS = "rt_bias"
    ANTEX = "antex"
