"""
Tests for site list files.
"""

import pytest

from pygnss_fetch.core.exceptions import ConfigurationError, SiteListError
from pygnss_fetch.stations import read_site_list, resolve_sites


class TestReadSiteList:
    """Tests for read_site_list."""

    def test_reads_lower_cased_sites(self, tmp_path):
        path = tmp_path / "sites.txt"
        path.write_text("# EUREF\nZIMM\n\n  wtzr  \nOnsa\n")

        assert read_site_list(path) == ["zimm", "wtzr", "onsa"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(SiteListError, match="file not found"):
            read_site_list(tmp_path / "missing.txt")

    def test_error_is_configuration_error(self, tmp_path):
        with pytest.raises(ConfigurationError):
            read_site_list(tmp_path)


class TestResolveSites:
    """Tests for resolve_sites."""

    @pytest.mark.parametrize("option", [None, "", "all", "ALL", "  all "])
    def test_all_stations(self, option):
        assert resolve_sites(option) is None

    def test_path_option(self, tmp_path):
        path = tmp_path / "sites.txt"
        path.write_text("zimm\n")

        assert resolve_sites(str(path)) == ["zimm"]
        assert resolve_sites(path) == ["zimm"]
