"""
Decompression and Hatanaka conversion collaborators.

Archives distribute products under two legacy compression suffixes:
- gzip (.gz), decompressed in-process
- Unix compress (.Z), decompressed with the system gzip/uncompress tools

Compact RINEX (Hatanaka) observation files are expanded with CRX2RNX.

Usage:
    from pygnss_fetch.utils.compression import Decompressor, HatanakaConverter

    result = Decompressor().decompress(Path("zimm0450.21d.gz"))
    if result.success:
        HatanakaConverter().convert(result.output_path, Path("zimm0450.21o"))
"""

from __future__ import annotations

import gzip
import os
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pygnss_fetch.utils.logging import get_logger


logger = get_logger(__name__)


class CompressionFormat(str, Enum):
    """Supported compression formats, tried in this order."""

    GZIP = ".gz"
    COMPRESS = ".Z"


@dataclass
class CompressionResult:
    """Result of a decompression or conversion operation."""

    success: bool
    input_path: Path
    output_path: Path | None = None
    original_size: int = 0
    final_size: int = 0
    error: str = ""


def _start_result(input_path: Path) -> CompressionResult:
    return CompressionResult(
        success=False,
        input_path=input_path,
        original_size=input_path.stat().st_size if input_path.exists() else 0,
    )


def _finish_result(result: CompressionResult, output_path: Path) -> CompressionResult:
    result.success = True
    result.output_path = output_path
    result.final_size = output_path.stat().st_size
    return result


def find_crx2rnx(extra_dirs: list[Path] | None = None) -> Path | None:
    """Find the CRX2RNX executable.

    Searches in:
    1. Extra directories (e.g. a configured third-party directory)
    2. System PATH
    3. Common installation locations

    Returns:
        Path to CRX2RNX or None if not found
    """
    names = ["crx2rnx", "CRX2RNX", "crx2rnx.exe", "CRX2RNX.exe"]

    search_paths: list[Path] = list(extra_dirs or [])
    search_paths.extend(
        Path(p) for p in os.environ.get("PATH", "").split(os.pathsep) if p
    )
    search_paths.extend([
        Path("/usr/local/bin"),
        Path("/usr/bin"),
        Path("/opt/rnx2crx"),
        Path.home() / "bin",
        Path.home() / ".local" / "bin",
    ])

    for search_dir in search_paths:
        if not search_dir.is_dir():
            continue
        for name in names:
            tool_path = search_dir / name
            if tool_path.exists() and os.access(tool_path, os.X_OK):
                return tool_path

    for name in names:
        found = shutil.which(name)
        if found:
            return Path(found)

    return None


class Decompressor:
    """Decompression utility for .gz and .Z archive members.

    The decompressed file is written next to the input (suffix stripped)
    and the compressed input is removed on success.
    """

    def __init__(self, gzip_cmd: str = "gzip", timeout: int = 120):
        self.gzip_cmd = gzip_cmd
        self.timeout = timeout

    def decompress(self, input_path: Path) -> CompressionResult:
        """Decompress a .gz or .Z file in place.

        Args:
            input_path: Path ending in .gz or .Z

        Returns:
            CompressionResult; failures are reported, not raised
        """
        input_path = Path(input_path)
        result = _start_result(input_path)

        if not input_path.exists():
            result.error = f"Input file not found: {input_path}"
            return result

        if input_path.suffix == CompressionFormat.GZIP.value:
            return self._gunzip(input_path, result)
        if input_path.suffix == CompressionFormat.COMPRESS.value:
            return self._uncompress(input_path, result)

        result.error = f"Unsupported compression suffix: {input_path.suffix}"
        return result

    def _gunzip(self, input_path: Path, result: CompressionResult) -> CompressionResult:
        output_path = input_path.with_suffix("")
        try:
            with gzip.open(input_path, "rb") as f_in:
                with open(output_path, "wb") as f_out:
                    shutil.copyfileobj(f_in, f_out)
        except (OSError, EOFError) as e:
            output_path.unlink(missing_ok=True)
            result.error = f"Gzip decompression failed: {e}"
            logger.warning("Decompression failed", file=str(input_path), error=result.error)
            return result

        input_path.unlink()
        return _finish_result(result, output_path)

    def _uncompress(self, input_path: Path, result: CompressionResult) -> CompressionResult:
        output_path = input_path.with_suffix("")
        methods = [
            [self.gzip_cmd, "-d", "-f", str(input_path)],
            ["uncompress", "-f", str(input_path)],
        ]

        errors = []
        for cmd in methods:
            if not shutil.which(cmd[0]):
                errors.append(f"{cmd[0]} not found")
                continue

            try:
                proc = subprocess.run(
                    cmd,
                    capture_output=True,
                    timeout=self.timeout,
                )
            except (OSError, subprocess.TimeoutExpired) as e:
                errors.append(f"{cmd[0]}: {e}")
                continue

            if proc.returncode == 0 and output_path.exists():
                if input_path.exists():
                    input_path.unlink()
                return _finish_result(result, output_path)

            errors.append(
                f"{cmd[0]} exited {proc.returncode}: "
                f"{proc.stderr.decode(errors='replace').strip()}"
            )

        result.error = "; ".join(errors) or "No working decompression method for .Z file"
        logger.warning("Decompression failed", file=str(input_path), error=result.error)
        return result


class HatanakaConverter:
    """Format converter from compact (Hatanaka) to standard RINEX.

    Runs ``crx2rnx -f -`` with the compact file on stdin and the
    destination file on stdout.
    """

    def __init__(
        self,
        crx2rnx: str | Path | None = None,
        timeout: int = 120,
        search_dirs: list[Path] | None = None,
    ):
        self._crx2rnx = Path(crx2rnx) if crx2rnx else None
        self.timeout = timeout
        self.search_dirs = search_dirs or []

    @property
    def tool(self) -> Path | None:
        """Resolved CRX2RNX executable."""
        if self._crx2rnx is None:
            self._crx2rnx = find_crx2rnx(self.search_dirs)
        return self._crx2rnx

    def convert(self, input_path: Path, output_path: Path) -> CompressionResult:
        """Convert a compact observation file to standard encoding.

        Args:
            input_path: Compact RINEX file (e.g. ``zimm0450.21d``)
            output_path: Destination (e.g. ``zimm0450.21o``)

        Returns:
            CompressionResult; a partial output file is removed on failure
        """
        input_path = Path(input_path)
        output_path = Path(output_path)
        result = _start_result(input_path)

        if not input_path.exists():
            result.error = f"Input file not found: {input_path}"
            return result

        tool = self.tool
        if tool is None:
            result.error = "CRX2RNX tool not found"
            return result

        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(input_path, "rb") as f_in, open(output_path, "wb") as f_out:
                proc = subprocess.run(
                    [str(tool), "-f", "-"],
                    stdin=f_in,
                    stdout=f_out,
                    stderr=subprocess.PIPE,
                    timeout=self.timeout,
                )
        except subprocess.TimeoutExpired:
            result.error = f"CRX2RNX timed out after {self.timeout}s"
        except OSError as e:
            result.error = f"CRX2RNX failed: {e}"
        else:
            if proc.returncode != 0:
                result.error = (
                    f"CRX2RNX exited {proc.returncode}: "
                    f"{proc.stderr.decode(errors='replace').strip()}"
                )
            elif output_path.stat().st_size == 0:
                result.error = "CRX2RNX produced an empty file"
            else:
                return _finish_result(result, output_path)

        output_path.unlink(missing_ok=True)
        logger.warning("Conversion failed", file=str(input_path), error=result.error)
        return result
