"""Tests for transfer agents and remote selection."""

import socket
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, Mock, patch

import pytest

from pygnss_fetch.core.exceptions import FTPError, HTTPError
from pygnss_fetch.data_access.http_client import HTTPClient
from pygnss_fetch.data_access.transfer import (
    NativeTransferAgent,
    TransferStatus,
    WgetTransferAgent,
    select_latest,
    select_remote,
    strip_compression,
)


CDDIS_DAILY = "ftps://gdc.cddis.eosdis.nasa.gov/pub/gnss/data/daily/2021/045/21d"


def fake_client(listing=None, error=None):
    """Client mock usable as context manager; downloads write a small file."""
    client = MagicMock()
    client.__enter__.return_value = client
    if error is not None:
        client.__enter__.side_effect = error
    client.list_files.return_value = list(listing or [])

    def download(remote, local):
        Path(local).write_bytes(b"data")
        return True

    client.download.side_effect = download
    return client


class TestSelection:
    """Tests for remote listing filters."""

    def test_strip_compression(self):
        assert strip_compression("zimm0450.21d.gz") == "zimm0450.21d"
        assert strip_compression("igs21450.sp3.Z") == "igs21450.sp3"
        assert strip_compression("igs20.atx") == "igs20.atx"

    def test_select_latest_single(self):
        assert select_latest(["a"]) == ("a", None)
        assert select_latest([]) == (None, None)

    def test_select_latest_ambiguous(self):
        """The lexicographically last candidate wins and a warning is produced."""
        chosen, warning = select_latest(["ZIMM00CHE_b", "ZIMM00CHE_a"])

        assert chosen == "ZIMM00CHE_b"
        assert "2 candidates" in warning

    def test_select_remote_filters_pattern(self):
        names, warnings = select_remote(
            ["zimm0450.21d.gz", "zimm0450.21o.gz", "wtzr0450.21d.gz"],
            "zimm0450.21d.*",
            single=True,
        )

        assert names == ["zimm0450.21d.gz"]
        assert warnings == []

    def test_compression_variants_are_not_ambiguous(self):
        """.gz is preferred over .Z for the same file."""
        names, warnings = select_remote(
            ["igs21450.sp3.Z", "igs21450.sp3.gz"], "igs21450.sp3.*", single=True
        )

        assert names == ["igs21450.sp3.gz"]
        assert warnings == []

    def test_select_remote_ignores_sidecars(self):
        """Checksum files next to a product are not candidates."""
        names, warnings = select_remote(
            ["igs21450.sp3.Z", "igs21450.sp3.Z.md5", "igs21450.sp3.gz.sig"],
            "igs21450.sp3.*",
            single=True,
        )

        assert names == ["igs21450.sp3.Z"]
        assert warnings == []

    def test_select_remote_exact_pattern(self):
        names, _ = select_remote(["igs20.atx", "igs20.atx.md5"], "igs20.atx", single=True)

        assert names == ["igs20.atx"]

    def test_select_remote_bulk_keeps_all(self):
        names, _ = select_remote(
            ["zimm0450.21d.gz", "wtzr0450.21d.gz", "brdc0450.21n.gz"],
            "*0450.21d.*",
            single=False,
        )

        assert names == ["wtzr0450.21d.gz", "zimm0450.21d.gz"]


class TestNativeTransferAgent:
    """Tests for the ftplib/requests agent with mocked clients."""

    def test_ftps_fetch(self, tmp_path):
        """FTPS URLs use a TLS client and download matches flat into the target."""
        client = fake_client(["zimm0450.21d.gz", "zimm0450.21o.gz", "wtzr0450.21d.gz"])
        factory = Mock(return_value=client)
        agent = NativeTransferAgent(ftp_factory=factory, timeout=30)

        report = agent.fetch(CDDIS_DAILY, "zimm0450.21d.*", tmp_path, 7)

        kwargs = factory.call_args.kwargs
        assert kwargs["host"] == "gdc.cddis.eosdis.nasa.gov"
        assert kwargs["use_tls"] is True
        assert kwargs["timeout"] == 30
        client.list_files.assert_called_once_with("/pub/gnss/data/daily/2021/045/21d")
        client.download.assert_called_once_with(
            "/pub/gnss/data/daily/2021/045/21d/zimm0450.21d.gz", tmp_path / "zimm0450.21d.gz"
        )
        assert report.status == TransferStatus.OK
        assert report.files == [tmp_path / "zimm0450.21d.gz"]

    def test_per_fetch_timeout(self, tmp_path):
        factory = Mock(return_value=fake_client([]))
        agent = NativeTransferAgent(ftp_factory=factory, timeout=300)

        agent.fetch(CDDIS_DAILY, "x.*", tmp_path, 7, timeout=5)

        assert factory.call_args.kwargs["timeout"] == 5

    def test_no_match(self, tmp_path):
        client = fake_client(["wtzr0450.21d.gz"])
        agent = NativeTransferAgent(ftp_factory=Mock(return_value=client))

        report = agent.fetch(CDDIS_DAILY, "zimm0450.21d.*", tmp_path, 7)

        assert report.status == TransferStatus.NO_MATCH
        assert not report.retryable
        client.download.assert_not_called()

    def test_ambiguous_match_keeps_last(self, tmp_path):
        listing = [
            "COD0MGXFIN_20210450000_01D_05M_ORB.SP3.gz",
            "COD0MGXFIN_20210450000_01D_15M_ORB.SP3.gz",
        ]
        client = fake_client(listing)
        agent = NativeTransferAgent(ftp_factory=Mock(return_value=client))

        report = agent.fetch(
            "ftp://igs.ign.fr/pub/igs/products/mgex/2145",
            "COD0MGXFIN_20210450000_01D_*_ORB.SP3.*",
            tmp_path,
            5,
        )

        assert report.files == [tmp_path / "COD0MGXFIN_20210450000_01D_15M_ORB.SP3.gz"]
        assert len(report.warnings) == 1

    def test_timeout_status(self, tmp_path):
        """A socket timeout behind an FTPError is reported as timeout."""
        error = FTPError("gdc.cddis.eosdis.nasa.gov", "connect", "Connection timeout")
        error.__cause__ = socket.timeout("timed out")
        agent = NativeTransferAgent(ftp_factory=Mock(return_value=fake_client(error=error)))

        report = agent.fetch(CDDIS_DAILY, "zimm0450.21d.*", tmp_path, 7)

        assert report.status == TransferStatus.TIMEOUT
        assert report.retryable

    def test_network_error_status(self, tmp_path):
        error = FTPError("igs.ign.fr", "connect", "Connection refused")
        agent = NativeTransferAgent(ftp_factory=Mock(return_value=fake_client(error=error)))

        report = agent.fetch("ftp://igs.ign.fr/pub/igs/data/2021/045", "x.*", tmp_path, 5)

        assert report.status == TransferStatus.NETWORK_ERROR
        assert "Connection refused" in report.message

    def test_http_exact_file(self, tmp_path):
        """An exact-file URL is downloaded without listing."""
        client = fake_client()
        factory = Mock(return_value=client)
        agent = NativeTransferAgent(http_factory=factory)
        url = "http://www.ppp-wizard.net/products/REAL_TIME/cnt21450.sp3.gz"

        report = agent.fetch(url, None, tmp_path, 2)

        client.list_files.assert_not_called()
        client.download.assert_called_once_with(url, tmp_path / "cnt21450.sp3.gz")
        assert report.ok

    def test_http_error_status(self, tmp_path):
        client = fake_client()
        client.download.side_effect = HTTPError("https://files.igs.org/x", 503, "unavailable")
        agent = NativeTransferAgent(http_factory=Mock(return_value=client))

        report = agent.fetch("https://files.igs.org/x", None, tmp_path)

        assert report.status == TransferStatus.NETWORK_ERROR

    def test_unsupported_scheme(self, tmp_path):
        report = NativeTransferAgent().fetch("sftp://host/dir", "x", tmp_path)
        assert report.status == TransferStatus.TOOL_ERROR


class TestHTTPListing:
    """Tests for HTML directory index parsing."""

    def test_list_files_skips_navigation_links(self):
        html = """
        <html><body>
          <a href="?C=N;O=D">Name</a>
          <a href="/products/">Parent Directory</a>
          <a href="https://example.org/">Elsewhere</a>
          <a href="FORMAT_BIAIS_OFFI1/">FORMAT_BIAIS_OFFI1/</a>
          <a href="cnt21450.sp3.gz">cnt21450.sp3.gz</a>
          <a href="cnt21450.clk.gz">cnt21450.clk.gz</a>
        </body></html>
        """
        client = HTTPClient()
        client.session.get = Mock(return_value=Mock(text=html, raise_for_status=Mock()))

        names = client.list_files("http://www.ppp-wizard.net/products/REAL_TIME")

        assert names == ["cnt21450.sp3.gz", "cnt21450.clk.gz"]
        assert client.session.get.call_args[0][0] == "http://www.ppp-wizard.net/products/REAL_TIME/"


class TestWgetTransferAgent:
    """Tests for the wget agent with mocked subprocess."""

    @pytest.fixture
    def agent(self):
        return WgetTransferAgent(wget="/usr/bin/wget", timeout=60)

    def test_build_command(self, agent, tmp_path):
        cmd = agent.build_command(CDDIS_DAILY, "zimm0450.21d.*", tmp_path, 7)

        assert cmd == [
            "/usr/bin/wget", "-qr", "-nH", "--cut-dirs=7", "-P", str(tmp_path),
            "-A", "zimm0450.21d.*", CDDIS_DAILY + "/",
        ]

    def test_build_command_verbose_exact_file(self, tmp_path):
        agent = WgetTransferAgent(verbose=True)
        url = "https://files.igs.org/pub/station/general/igs20.atx"

        cmd = agent.build_command(url, None, tmp_path, 3)

        assert cmd[1] == "-r"
        assert cmd[-1] == url
        assert "-A" not in cmd

    def test_fetch_reports_new_files(self, agent, tmp_path):
        def fake_run(cmd, **kwargs):
            (tmp_path / "zimm0450.21d.gz").write_bytes(b"data")
            return Mock(returncode=0, stderr=b"")

        with patch("pygnss_fetch.data_access.transfer.subprocess.run", side_effect=fake_run) as run:
            report = agent.fetch(CDDIS_DAILY, "zimm0450.21d.*", tmp_path, 7, timeout=10)

        assert run.call_args.kwargs["timeout"] == 10
        assert report.status == TransferStatus.OK
        assert report.files == [tmp_path / "zimm0450.21d.gz"]

    def test_server_error_without_files_is_no_match(self, agent, tmp_path):
        with patch(
            "pygnss_fetch.data_access.transfer.subprocess.run",
            return_value=Mock(returncode=8, stderr=b"No such file"),
        ):
            report = agent.fetch(CDDIS_DAILY, "zimm0450.21d.*", tmp_path, 7)

        assert report.status == TransferStatus.NO_MATCH
        assert report.return_code == 8

    def test_network_failure(self, agent, tmp_path):
        with patch(
            "pygnss_fetch.data_access.transfer.subprocess.run",
            return_value=Mock(returncode=4, stderr=b"Network failure"),
        ):
            report = agent.fetch(CDDIS_DAILY, "zimm0450.21d.*", tmp_path, 7)

        assert report.status == TransferStatus.NETWORK_ERROR
        assert report.retryable

    def test_timeout(self, agent, tmp_path):
        with patch(
            "pygnss_fetch.data_access.transfer.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="wget", timeout=60),
        ):
            report = agent.fetch(CDDIS_DAILY, "zimm0450.21d.*", tmp_path, 7)

        assert report.status == TransferStatus.TIMEOUT

    def test_missing_binary(self, agent, tmp_path):
        with patch(
            "pygnss_fetch.data_access.transfer.subprocess.run",
            side_effect=FileNotFoundError("wget"),
        ):
            report = agent.fetch(CDDIS_DAILY, "zimm0450.21d.*", tmp_path, 7)

        assert report.status == TransferStatus.TOOL_ERROR
