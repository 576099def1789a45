"""
Date and time utilities for GNSS product naming.

Provides conversions between the time representations used in
archive paths and file names:
- Year and Day of Year (DOY)
- GPS Week and Day of Week
- Hour letters ('a'..'x') and quarter-hour slots
- Calendar dates
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import ClassVar


GPS_EPOCH = date(1980, 1, 6)
MJD_EPOCH = date(1858, 11, 17)

QUARTER_SLOTS = ("00", "15", "30", "45")


def gps_week_from_date(year: int, month: int, day: int) -> tuple[int, int]:
    """Calculate GPS week and day of week from a calendar date.

    Args:
        year: Year
        month: Month (1-12)
        day: Day of month (1-31)

    Returns:
        Tuple of (GPS week, day of week) where Sunday=0
    """
    days = (date(year, month, day) - GPS_EPOCH).days
    return days // 7, days % 7


def doy_from_date(year: int, month: int, day: int) -> int:
    """Calculate day of year from calendar date.

    Args:
        year: Year
        month: Month (1-12)
        day: Day of month (1-31)

    Returns:
        Day of year (1-366)
    """
    return date(year, month, day).timetuple().tm_yday


def date_from_doy(year: int, doy: int) -> tuple[int, int]:
    """Convert year and DOY to month and day.

    Args:
        year: Year
        doy: Day of year (1-366)

    Returns:
        Tuple of (month, day)
    """
    if not 1 <= doy <= 366:
        raise ValueError(f"Day of year must be 1-366, got {doy}")
    dt = date(year, 1, 1) + timedelta(days=doy - 1)
    if dt.year != year:
        raise ValueError(f"Day of year {doy} does not exist in {year}")
    return dt.month, dt.day


def hour_to_alpha(hour: int) -> str:
    """Convert hour (0-23) to alpha character (a-x).

    Args:
        hour: Hour (0-23)

    Returns:
        Single character 'a'-'x'
    """
    if not 0 <= hour <= 23:
        raise ValueError(f"Hour must be 0-23, got {hour}")
    return chr(ord("a") + hour)


def alpha_to_hour(alpha: str) -> int:
    """Convert alpha character to hour.

    Args:
        alpha: Single character 'a'-'x'

    Returns:
        Hour (0-23)
    """
    if len(alpha) != 1 or not "a" <= alpha.lower() <= "x":
        raise ValueError(f"Alpha must be a-x, got {alpha}")
    return ord(alpha.lower()) - ord("a")


@dataclass
class GNSSDate:
    """Unified GNSS date representation.

    Supports the time representations used by GNSS archives:
    - Calendar (year, month, day, hour, minute)
    - GPS Week and Day of Week
    - Year and Day of Year (DOY)
    """

    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0

    GPS_EPOCH: ClassVar[date] = GPS_EPOCH

    def __post_init__(self) -> None:
        """Validate date components."""
        if not 1980 <= self.year <= 2100:
            raise ValueError(f"Year {self.year} out of range")
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month {self.month} out of range")
        if not 0 <= self.hour <= 23:
            raise ValueError(f"Hour {self.hour} out of range")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"Minute {self.minute} out of range")
        # raises ValueError for impossible days such as Feb 30
        date(self.year, self.month, self.day)

    @property
    def mjd(self) -> float:
        """Get Modified Julian Date."""
        days = (date(self.year, self.month, self.day) - MJD_EPOCH).days
        return days + (self.hour + self.minute / 60.0) / 24.0

    @property
    def gps_week(self) -> int:
        """Get GPS week number."""
        week, _ = gps_week_from_date(self.year, self.month, self.day)
        return week

    @property
    def day_of_week(self) -> int:
        """Get day of week (0=Sunday)."""
        _, dow = gps_week_from_date(self.year, self.month, self.day)
        return dow

    @property
    def doy(self) -> int:
        """Get day of year (1-366)."""
        return doy_from_date(self.year, self.month, self.day)

    @property
    def hour_alpha(self) -> str:
        """Get hour as alpha character (a-x)."""
        return hour_to_alpha(self.hour)

    @property
    def datetime(self) -> datetime:
        """Get as datetime object."""
        return datetime(
            self.year, self.month, self.day,
            self.hour, self.minute,
            tzinfo=timezone.utc,
        )

    @classmethod
    def from_gps_week(
        cls,
        gps_week: int,
        day_of_week: int,
        hour: int = 0,
    ) -> GNSSDate:
        """Create from GPS week and day of week."""
        dt = GPS_EPOCH + timedelta(days=gps_week * 7 + day_of_week)
        return cls(dt.year, dt.month, dt.day, hour)

    @classmethod
    def from_doy(cls, year: int, doy: int, hour: int = 0) -> GNSSDate:
        """Create from year and day of year."""
        month, day = date_from_doy(year, doy)
        return cls(year, month, day, hour)

    @classmethod
    def from_datetime(cls, dt: datetime) -> GNSSDate:
        """Create from datetime object."""
        return cls(dt.year, dt.month, dt.day, dt.hour, dt.minute)

    @classmethod
    def now(cls) -> GNSSDate:
        """Create for current UTC time."""
        return cls.from_datetime(datetime.now(timezone.utc))

    def add_hours(self, hours: int) -> GNSSDate:
        """Return new GNSSDate with hours added."""
        return GNSSDate.from_datetime(self.datetime + timedelta(hours=hours))

    def add_days(self, days: int) -> GNSSDate:
        """Return new GNSSDate with days added."""
        return GNSSDate.from_datetime(self.datetime + timedelta(days=days))

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d} {self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class Epoch:
    """Formatted epoch fields consumed by the filename synthesizer.

    All fields are strings, zero-padded to the width archive names use.
    ``hour``/``hour_letter`` are set only for sub-daily slots and
    ``minute`` only for quarter-hour slots.
    """

    year: str
    yy: str
    doy: str
    month: str
    week: str
    dow: str
    hour: str = ""
    hour_letter: str = ""
    minute: str = ""

    @classmethod
    def from_date(
        cls,
        gnss_date: GNSSDate,
        hour: int | None = None,
        minute: str | None = None,
    ) -> Epoch:
        """Derive the naming fields for a date and optional sub-daily slot.

        Args:
            gnss_date: Calendar date of the product
            hour: Hour slot (0-23) for hourly and high-rate products
            minute: Quarter-hour label ("00", "15", "30", "45")

        Returns:
            Epoch with every field formatted
        """
        if minute is not None and minute not in QUARTER_SLOTS:
            raise ValueError(f"Quarter slot must be one of {QUARTER_SLOTS}, got {minute!r}")
        return cls(
            year=f"{gnss_date.year:04d}",
            yy=f"{gnss_date.year % 100:02d}",
            doy=f"{gnss_date.doy:03d}",
            month=f"{gnss_date.month:02d}",
            week=f"{gnss_date.gps_week:04d}",
            dow=str(gnss_date.day_of_week),
            hour=f"{hour:02d}" if hour is not None else "",
            hour_letter=hour_to_alpha(hour) if hour is not None else "",
            minute=minute or "",
        )

    def fields(self) -> dict[str, str]:
        """Fields as a mapping for ``str.format`` templates."""
        return {
            "year": self.year,
            "yy": self.yy,
            "doy": self.doy,
            "month": self.month,
            "week": self.week,
            "dow": self.dow,
            "hh": self.hour,
            "h": self.hour_letter,
            "mm": self.minute,
        }
