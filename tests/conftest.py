"""Shared fixtures: fake collaborators for the retrieval pipeline."""

from fnmatch import fnmatchcase
from pathlib import Path

import pytest

from pygnss_fetch.data_access.transfer import TransferAgent, TransferReport, TransferStatus
from pygnss_fetch.utils.compression import CompressionResult
from pygnss_fetch.utils.dates import GNSSDate


class FakeTransferAgent(TransferAgent):
    """Transfer agent serving files from memory.

    Every file whose name matches the pattern (or ends the URL for
    exact-file fetches) is written into the target directory, the way a
    recursive wget mirror would. ``statuses`` forces the status of the
    first calls.
    """

    def __init__(self, files=None, statuses=None):
        super().__init__(timeout=30)
        self.files = dict(files or {})
        self.statuses = list(statuses or [])
        self.calls = []

    def fetch(self, url, pattern, target_dir, path_depth=0, *, single=True, timeout=None):
        self.calls.append({
            "url": url,
            "pattern": pattern,
            "target_dir": Path(target_dir),
            "path_depth": path_depth,
            "single": single,
            "timeout": timeout,
        })
        if self.statuses:
            status = self.statuses.pop(0)
            if status != TransferStatus.OK:
                return TransferReport(status, url, pattern, message=f"forced {status.value}")

        Path(target_dir).mkdir(parents=True, exist_ok=True)
        written = []
        for name, content in self.files.items():
            matched = url.endswith("/" + name) if pattern is None else fnmatchcase(name, pattern)
            if matched:
                path = Path(target_dir) / name
                path.write_bytes(content)
                written.append(path)

        status = TransferStatus.OK if written else TransferStatus.NO_MATCH
        return TransferReport(status, url, pattern, files=written)


class FakeDecompressor:
    """Strips the compression suffix by copying bytes."""

    def __init__(self):
        self.calls = []

    def decompress(self, input_path):
        input_path = Path(input_path)
        self.calls.append(input_path)
        output_path = input_path.with_suffix("")
        output_path.write_bytes(input_path.read_bytes())
        input_path.unlink()
        return CompressionResult(True, input_path, output_path)


class FakeConverter:
    """Hatanaka converter writing a marker file."""

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def convert(self, input_path, output_path):
        input_path = Path(input_path)
        output_path = Path(output_path)
        self.calls.append((input_path, output_path))
        if self.fail:
            return CompressionResult(False, input_path, error="CRX2RNX exited 1: bad header")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(b"RINEX " + input_path.read_bytes())
        return CompressionResult(True, input_path, output_path)


@pytest.fixture
def gnss_date():
    """2021-02-14: DOY 045, GPS week 2145, day 0."""
    return GNSSDate(2021, 2, 14)


@pytest.fixture
def decompressor():
    return FakeDecompressor()


@pytest.fixture
def converter():
    return FakeConverter()
