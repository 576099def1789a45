"""
Tests for request expansion and batch execution.
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from pygnss_fetch.core.config import DirectoriesConfig, ProductsConfig, Settings
from pygnss_fetch.core.exceptions import ConfigurationError
from pygnss_fetch.core.types import Archive, ProductCategory
from pygnss_fetch.processing.batch import (
    BatchDriver,
    BatchReport,
    ProductRequest,
    default_product_dir,
    requests_from_settings,
)
from pygnss_fetch.processing.retrieval import (
    OutcomeStatus,
    RetrievalOrchestrator,
    RetrievalOutcome,
)
from pygnss_fetch.products.naming import BulkPlan, RetrievalUnit
from pygnss_fetch.utils.logging import StatusPrinter

from conftest import FakeTransferAgent


C = ProductCategory


@pytest.fixture
def lines():
    return []


@pytest.fixture
def make_driver(decompressor, converter, lines):
    def _make(files=None, **kwargs):
        agent = FakeTransferAgent(files)
        orchestrator = RetrievalOrchestrator(agent, decompressor=decompressor, converter=converter)
        driver = BatchDriver(orchestrator, printer=StatusPrinter(output_func=lines.append), **kwargs)
        return driver, agent
    return _make


def request_for(gnss_date, category, product_dir, **kwargs):
    return ProductRequest(
        category=category,
        date=gnss_date,
        archive=kwargs.pop("archive", Archive.CDDIS),
        product_dir=product_dir,
        **kwargs,
    )


class TestExpansion:
    """Tests for turning requests into ordered units."""

    def test_daily_observations_per_site(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver()

        units = driver.expand(request_for(gnss_date, C.OBS_DAILY, tmp_path, sites=("ZIMM", "wtzr")))

        assert [u.site for u in units] == ["zimm", "wtzr"]
        assert all(u.target_dir == tmp_path.resolve() / "daily" for u in units)
        assert all(u.hour is None for u in units)

    def test_all_stations_mode(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver()

        units = driver.expand(request_for(gnss_date, C.OBS_DAILY, tmp_path))

        assert len(units) == 1
        assert units[0].site is None
        assert isinstance(driver.plan(units[0]), BulkPlan)

    def test_site_list_file(self, gnss_date, tmp_path, make_driver):
        site_list = tmp_path / "sites.txt"
        site_list.write_text("ZIMM\n# comment\n\nwtzr\n")
        driver, _ = make_driver()

        units = driver.expand(request_for(gnss_date, C.OBS_DAILY, tmp_path, site_list=str(site_list)))

        assert [u.site for u in units] == ["zimm", "wtzr"]

    def test_hourly_target_dirs(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver()

        units = driver.expand(request_for(gnss_date, C.OBS_HOURLY, tmp_path, sites=("zimm",), hours=(3, 14)))

        assert [u.hour for u in units] == [3, 14]
        assert [u.target_dir for u in units] == [
            tmp_path.resolve() / "hourly" / "03",
            tmp_path.resolve() / "hourly" / "14",
        ]

    def test_highrate_quarters_per_site(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver()

        units = driver.expand(request_for(gnss_date, C.OBS_HIGHRATE, tmp_path, sites=("zimm",), hours=(10,)))

        assert [u.quarter for u in units] == ["00", "15", "30", "45"]
        assert all(u.target_dir == tmp_path.resolve() / "highrate" / "10" for u in units)

    def test_highrate_quarter_subdirs(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver(quarter_subdirs=True)

        units = driver.expand(request_for(gnss_date, C.OBS_HIGHRATE, tmp_path, sites=("zimm",), hours=(10,)))

        assert units[1].target_dir == tmp_path.resolve() / "highrate" / "10" / "15"

    def test_highrate_all_stations_has_no_quarter(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver()

        units = driver.expand(request_for(gnss_date, C.OBS_HIGHRATE, tmp_path, hours=(10, 11)))

        assert [(u.hour, u.quarter) for u in units] == [(10, None), (11, None)]

    def test_hourly_navigation_kinds(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver()

        units = driver.expand(request_for(gnss_date, C.NAV_HOURLY, tmp_path, sites=("zimm",), option="gps"))

        assert [u.option for u in units] == ["n", "gn"]
        assert units[0].target_dir == tmp_path.resolve() / "hourly" / "00"

    def test_hourly_navigation_requires_sites(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver()

        with pytest.raises(ConfigurationError, match="require a site list"):
            driver.expand(request_for(gnss_date, C.NAV_HOURLY, tmp_path, option="gps"))

    def test_neighbor_days(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver()

        units = driver.expand(request_for(gnss_date, C.ORBIT, tmp_path, neighbor_days=True))

        assert [u.date.doy for u in units] == [45, 44, 46]
        assert all(u.hour is None for u in units)
        assert all(u.target_dir == tmp_path.resolve() for u in units)

    def test_ultra_rapid_uses_hours_without_neighbor_days(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver()

        units = driver.expand(request_for(
            gnss_date, C.ORBIT, tmp_path, option="igu", hours=(0, 6), neighbor_days=True,
        ))

        assert [(u.date.doy, u.hour) for u in units] == [(45, 0), (45, 6)]

    def test_neighbor_days_ignored_for_daily_products(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver()

        units = driver.expand(request_for(gnss_date, C.IONOSPHERE, tmp_path, neighbor_days=True))

        assert len(units) == 1

    def test_troposphere_sites_only_for_igs(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver()

        igs = driver.expand(request_for(gnss_date, C.TROPOSPHERE, tmp_path, sites=("zimm",), option="igs"))
        cod = driver.expand(request_for(gnss_date, C.TROPOSPHERE, tmp_path, sites=("zimm",), option="cod"))

        assert [u.site for u in igs] == ["zimm"]
        assert [u.site for u in cod] == [None]


class TestRun:
    """Tests for batch execution."""

    def test_run_prints_outcomes(self, gnss_date, tmp_path, make_driver, lines):
        (tmp_path / "igs21450.clk_30s").write_text("clk")
        driver, _ = make_driver({"igs21450.sp3.gz": b"sp3"})

        report = driver.run_many([
            request_for(gnss_date, C.ORBIT, tmp_path),
            request_for(gnss_date, C.CLOCK, tmp_path),
            request_for(gnss_date, C.EOP, tmp_path),
        ])

        assert (report.downloaded, report.already_present, report.failed) == (1, 1, 1)
        assert lines[0].startswith("GNSS-FETCH INFO")
        assert lines[0].endswith(": successfully downloaded igs21450.sp3")
        assert lines[1].endswith(": igs21450.clk_30s has existed")
        assert lines[2].startswith("GNSS-FETCH ERROR")
        assert report.has_failures

    def test_duplicate_units_run_once(self, gnss_date, tmp_path, make_driver):
        driver, agent = make_driver({"igs21450.sp3.gz": b"sp3"})
        request = request_for(gnss_date, C.ORBIT, tmp_path)

        report = driver.run_many([request, request])

        assert len(report.outcomes) == 1
        assert len(agent.calls) == 1

    def test_configuration_error_aborts_only_its_request(self, gnss_date, tmp_path, make_driver, lines):
        driver, _ = make_driver({"igs21450.sp3.gz": b"sp3"})
        bad = request_for(gnss_date, C.OBS_HIGHRATE, tmp_path, archive=Archive.WHU, sites=("zimm",), hours=(1,))

        report = driver.run_many([bad, request_for(gnss_date, C.ORBIT, tmp_path)])

        assert len(report.errors) == 1
        assert report.errors[0].startswith("obs_highrate 2021/045: ")
        assert report.downloaded == 1
        assert lines[0].startswith("GNSS-FETCH ERROR")
        assert lines[-2].startswith("GNSS-FETCH WARNING")
        assert lines[-2].endswith(": 1 request(s) rejected:")
        assert lines[-1].strip() == f"- {report.errors[0]}"

    def test_bulk_outcomes_flattened(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver({"zimm0450.21d.gz": b"a", "wtzr0450.21d.gz": b"b"})

        report = driver.run(request_for(gnss_date, C.OBS_DAILY, tmp_path))

        assert sorted(o.unit.site for o in report.outcomes) == ["wtzr", "zimm"]
        assert report.downloaded == 2

    def test_worker_pool_keeps_unit_order(self, gnss_date, tmp_path, make_driver):
        sites = ("aaaa", "bbbb", "cccc", "dddd")
        driver, _ = make_driver({f"{site}0450.21d.gz": site.encode() for site in sites}, max_workers=3)

        report = driver.run(request_for(gnss_date, C.OBS_DAILY, tmp_path, sites=sites))

        assert [o.unit.site for o in report.outcomes] == list(sites)
        assert report.downloaded == 4

    def test_worker_crash_becomes_failure(self, gnss_date, tmp_path, make_driver):
        driver, _ = make_driver(max_workers=2)
        driver.orchestrator.retrieve = MagicMock(side_effect=RuntimeError("boom"))

        report = driver.run(request_for(gnss_date, C.OBS_DAILY, tmp_path, sites=("zimm", "wtzr")))

        assert report.failed == 2
        assert all(o.reason == "boom" for o in report.outcomes)

    def test_sequential_crash_does_not_stop_batch(self, gnss_date, tmp_path, make_driver):
        """With one worker an unexpected error fails only its own unit."""
        driver, _ = make_driver({"cnt21450.clk.gz": b"clk"})
        retrieve = driver.orchestrator.retrieve

        def squatted(unit, plan):
            if unit.category == C.RT_ORBIT:
                raise IsADirectoryError(21, "Is a directory", "cnt21450.sp3.gz")
            return retrieve(unit, plan)

        driver.orchestrator.retrieve = squatted

        report = driver.run_many([
            request_for(gnss_date, C.RT_ORBIT, tmp_path),
            request_for(gnss_date, C.RT_CLOCK, tmp_path),
        ])

        assert [o.status for o in report.outcomes] == [OutcomeStatus.FAILED, OutcomeStatus.DOWNLOADED]
        assert "Is a directory" in report.outcomes[0].reason
        assert (tmp_path / "cnt21450.clk").exists()


class TestBatchReport:
    """Tests for report aggregation."""

    def test_counts_and_summary(self, gnss_date, tmp_path):
        unit = RetrievalUnit(gnss_date, C.ORBIT, Archive.CDDIS, tmp_path)
        start = datetime(2021, 2, 14, 12, 0, 0)
        report = BatchReport(
            outcomes=[
                RetrievalOutcome(OutcomeStatus.DOWNLOADED, unit),
                RetrievalOutcome(OutcomeStatus.ALREADY_PRESENT, unit),
                RetrievalOutcome(OutcomeStatus.ALREADY_PRESENT, unit),
                RetrievalOutcome(OutcomeStatus.FAILED, unit),
            ],
            start_time=start,
            end_time=start + timedelta(seconds=90),
        )

        assert report.runtime_seconds == 90.0
        assert report.success_rate == 0.75
        text = str(report)
        assert text.startswith("Batch:\n  Runtime: 90.0s")
        assert "Failed: 1" in text
        assert "Success Rate: 75.0%" in text

    def test_empty_report(self):
        report = BatchReport()
        assert report.success_rate == 0.0
        assert report.runtime_seconds == 0.0
        assert not report.has_failures


class TestSettingsDispatch:
    """Tests for building requests from settings."""

    def _settings(self, tmp_path, **products):
        return Settings(
            directories=DirectoriesConfig(main_dir=tmp_path),
            products=ProductsConfig(**products),
        )

    def test_family_order(self, gnss_date, tmp_path):
        settings = self._settings(
            tmp_path,
            get_atx=True, get_dcb=True, get_orbclk=True, get_nav=True, get_obs=True,
        )

        requests = requests_from_settings(settings, gnss_date)

        assert [r.category for r in requests] == [
            C.OBS_DAILY, C.NAV, C.ORBIT, C.CLOCK,
            C.CODE_DCB, C.CODE_DCB, C.CODE_DCB, C.MGEX_DCB, C.ANTEX,
        ]
        assert [r.option for r in requests if r.category == C.CODE_DCB] == ["P1P2", "P1C1", "P2C2"]
        assert requests[0].product_dir == tmp_path / "obs"
        assert requests[0].site_list == "all"

    def test_ultra_rapid_has_no_clock(self, gnss_date, tmp_path):
        settings = self._settings(tmp_path, get_orbclk=True, orbclk_ac="IGU", orbclk_hours=[0, 6])

        requests = requests_from_settings(settings, gnss_date)

        assert [(r.category, r.option, r.hours) for r in requests] == [(C.ORBIT, "igu", (0, 6))]

    def test_mgex_centre(self, gnss_date, tmp_path):
        settings = self._settings(tmp_path, get_orbclk=True, orbclk_ac="com", minus_add_1day=True)

        requests = requests_from_settings(settings, gnss_date)

        assert [r.category for r in requests] == [C.MGEX_ORBIT, C.MGEX_CLOCK]
        assert all(r.neighbor_days for r in requests)

    def test_hourly_navigation(self, gnss_date, tmp_path):
        settings = self._settings(
            tmp_path, get_nav=True, nav_type="hourly", nav_sites="sites.txt", nav_hours=[1, 2],
        )

        (request,) = requests_from_settings(settings, gnss_date)

        assert request.category == C.NAV_HOURLY
        assert request.site_list == "sites.txt"
        assert request.hours == (1, 2)

    def test_troposphere_site_list_only_for_igs(self, gnss_date, tmp_path):
        igs = requests_from_settings(self._settings(tmp_path, get_trp=True, trp_sites="s.txt"), gnss_date)
        cod = requests_from_settings(
            self._settings(tmp_path, get_trp=True, trp_ac="cod", trp_sites="s.txt"), gnss_date,
        )

        assert igs[0].site_list == "s.txt"
        assert cod[0].site_list is None

    def test_nothing_enabled(self, gnss_date, tmp_path):
        assert requests_from_settings(self._settings(tmp_path), gnss_date) == []

    def test_default_product_dir(self, tmp_path):
        settings = self._settings(tmp_path)
        assert default_product_dir(settings, C.ORBIT) == tmp_path / "sp3"
        assert default_product_dir(settings, C.ANTEX) == tmp_path / "tbl"
