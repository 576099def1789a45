"""Tests for date/time utilities."""

import pytest

from pygnss_fetch.utils.dates import (
    Epoch,
    GNSSDate,
    date_from_doy,
    doy_from_date,
    gps_week_from_date,
    hour_to_alpha,
    alpha_to_hour,
)


class TestGPSWeek:
    """Test GPS week calculations."""

    def test_gps_week_epoch(self):
        """GPS epoch is week 0, day 0."""
        assert gps_week_from_date(1980, 1, 6) == (0, 0)

    def test_gps_week_known_date(self):
        """Jan 1, 2024 is GPS week 2295, dow 1 (Monday)."""
        assert gps_week_from_date(2024, 1, 1) == (2295, 1)

    def test_gps_week_sunday(self):
        """Feb 14, 2021 starts GPS week 2145."""
        assert gps_week_from_date(2021, 2, 14) == (2145, 0)


class TestGNSSDate:
    """Test GNSSDate class."""

    def test_create_from_calendar(self):
        """Test creating GNSSDate from calendar date."""
        date = GNSSDate(2024, 6, 15, 12, 30)

        assert date.year == 2024
        assert date.month == 6
        assert date.day == 15
        assert date.hour == 12
        assert date.minute == 30

    def test_invalid_day_rejected(self):
        """Impossible calendar days raise ValueError."""
        with pytest.raises(ValueError):
            GNSSDate(2021, 2, 30)

    def test_mjd(self):
        """Jan 1, 2000 12:00 is MJD 51544.5."""
        assert GNSSDate(2000, 1, 1, 12).mjd == pytest.approx(51544.5)

    def test_from_gps_week(self):
        """Test creating GNSSDate from GPS week."""
        date = GNSSDate.from_gps_week(2295, 1, 12)

        assert (date.year, date.month, date.day, date.hour) == (2024, 1, 1, 12)

    def test_from_doy(self):
        """Test creating GNSSDate from year and DOY."""
        date = GNSSDate.from_doy(2021, 45)

        assert (date.month, date.day) == (2, 14)
        assert date.doy == 45

    def test_add_hours(self):
        """Adding hours rolls over the day."""
        new_date = GNSSDate(2024, 1, 1, 23).add_hours(2)

        assert (new_date.day, new_date.hour) == (2, 1)

    def test_add_days_across_year(self):
        """Adding and subtracting days crosses year boundaries."""
        assert GNSSDate(2024, 12, 31).add_days(1) == GNSSDate(2025, 1, 1)
        assert GNSSDate(2021, 1, 1).add_days(-1) == GNSSDate(2020, 12, 31)

    def test_hour_alpha(self):
        """Test hour to alpha conversion."""
        assert GNSSDate(2024, 1, 1, 0).hour_alpha == "a"
        assert GNSSDate(2024, 1, 1, 23).hour_alpha == "x"


class TestHourAlpha:
    """Test hour to alpha conversion functions."""

    def test_hour_to_alpha(self):
        """Test hour to alpha conversion."""
        assert hour_to_alpha(0) == "a"
        assert hour_to_alpha(12) == "m"
        assert hour_to_alpha(23) == "x"

    @pytest.mark.parametrize("hour", [-1, 24])
    def test_hour_out_of_range(self, hour):
        """Hours outside 0-23 are rejected."""
        with pytest.raises(ValueError):
            hour_to_alpha(hour)

    def test_alpha_to_hour(self):
        """Test alpha to hour conversion."""
        assert alpha_to_hour("a") == 0
        assert alpha_to_hour("M") == 12
        assert alpha_to_hour("x") == 23

    def test_invalid_alpha(self):
        """Letters past 'x' are rejected."""
        with pytest.raises(ValueError):
            alpha_to_hour("y")


class TestDOY:
    """Test day of year calculations."""

    def test_doy_jan_1(self):
        """Test DOY for January 1."""
        assert doy_from_date(2024, 1, 1) == 1

    def test_doy_dec_31_leap(self):
        """Test DOY for December 31 in leap year."""
        assert doy_from_date(2024, 12, 31) == 366

    def test_doy_dec_31_non_leap(self):
        """Test DOY for December 31 in non-leap year."""
        assert doy_from_date(2023, 12, 31) == 365

    def test_doy_366_non_leap_rejected(self):
        """DOY 366 does not exist in a non-leap year."""
        with pytest.raises(ValueError):
            date_from_doy(2023, 366)


class TestEpoch:
    """Test formatted epoch fields."""

    def test_daily_fields(self):
        """Daily epochs carry zero-padded date fields and no slot."""
        epoch = Epoch.from_date(GNSSDate(2021, 2, 14))

        assert epoch.year == "2021"
        assert epoch.yy == "21"
        assert epoch.doy == "045"
        assert epoch.month == "02"
        assert epoch.week == "2145"
        assert epoch.dow == "0"
        assert epoch.hour == ""
        assert epoch.hour_letter == ""
        assert epoch.minute == ""

    def test_subdaily_fields(self):
        """Hour and quarter slots are formatted for high-rate names."""
        epoch = Epoch.from_date(GNSSDate(2021, 2, 14), hour=10, minute="15")

        assert epoch.hour == "10"
        assert epoch.hour_letter == "k"
        assert epoch.minute == "15"

    def test_invalid_quarter(self):
        """Only the four quarter-hour labels are accepted."""
        with pytest.raises(ValueError):
            Epoch.from_date(GNSSDate(2021, 2, 14), hour=10, minute="20")

    def test_fields_mapping(self):
        """fields() feeds str.format templates."""
        fields = Epoch.from_date(GNSSDate(2021, 2, 14), hour=3).fields()

        assert "{year}/{doy}/{hh}".format(**fields) == "2021/045/03"
        assert "zimm{doy}{h}.{yy}d".format(**fields) == "zimm045d.21d"
