"""
Transfer agents.

A transfer agent fetches the remote artifact(s) matching a wildcard
pattern from a remote directory into an explicit local directory:

- NativeTransferAgent: ftplib (FTP/FTPS) and requests (HTTP/HTTPS)
- WgetTransferAgent: recursive ``wget -A pattern --cut-dirs=N``

Agents never raise for transfer problems. They return a TransferReport
whose status lets the caller tell "nothing matched" from "the network
failed".
"""

from __future__ import annotations

import socket
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import Callable
from urllib.parse import urlparse

import requests

from pygnss_fetch.core.exceptions import FTPError, HTTPError
from pygnss_fetch.data_access.ftp_client import FTPClient
from pygnss_fetch.data_access.http_client import HTTPClient
from pygnss_fetch.utils.logging import get_logger


logger = get_logger(__name__)

COMPRESSION_SUFFIXES = (".gz", ".Z")


class TransferStatus(str, Enum):
    """Status reported by a transfer agent."""

    OK = "ok"
    NO_MATCH = "no_match"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    TOOL_ERROR = "tool_error"


@dataclass
class TransferReport:
    """What a transfer agent did for one fetch."""

    status: TransferStatus
    url: str
    pattern: str | None = None
    files: list[Path] = field(default_factory=list)
    return_code: int | None = None
    message: str = ""
    warnings: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == TransferStatus.OK

    @property
    def retryable(self) -> bool:
        """Network failures and timeouts are worth another attempt."""
        return self.status in (TransferStatus.NETWORK_ERROR, TransferStatus.TIMEOUT)

    def __str__(self) -> str:
        text = self.status.value
        if self.return_code is not None:
            text += f" (exit {self.return_code})"
        if self.message:
            text += f": {self.message}"
        return text


def strip_compression(name: str) -> str:
    """File name without a trailing .gz/.Z suffix."""
    for suffix in COMPRESSION_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def select_latest(names: list[str]) -> tuple[str | None, str | None]:
    """Pick the lexicographically last name.

    Returns:
        Tuple of (chosen name or None, ambiguity warning or None)
    """
    if not names:
        return None, None
    ordered = sorted(names)
    chosen = ordered[-1]
    if len(ordered) > 1:
        return chosen, f"{len(ordered)} candidates {ordered}, using {chosen}"
    return chosen, None


def _preferred_variant(names: list[str]) -> str:
    """Among compression variants of one artifact prefer .gz, then .Z."""
    for suffix in COMPRESSION_SUFFIXES:
        for name in names:
            if name.endswith(suffix):
                return name
    return names[0]


def _accepts(name: str, pattern: str) -> bool:
    """Match a remote name; a trailing ".*" only admits compression suffixes."""
    if not fnmatchcase(name, pattern):
        return False
    if pattern.endswith(".*"):
        stem = strip_compression(name)
        return stem != name and fnmatchcase(stem, pattern[:-2])
    return True


def select_remote(names: list[str], pattern: str, single: bool) -> tuple[list[str], list[str]]:
    """Filter a remote listing by pattern.

    With ``single`` only one artifact is kept: the lexicographically last
    distinct name (compression variants of one file are not ambiguous).

    Returns:
        Tuple of (names to download, warnings)
    """
    matches = sorted({name for name in names if _accepts(name, pattern)})
    if not single or not matches:
        return matches, []

    base, warning = select_latest(sorted({strip_compression(name) for name in matches}))
    variants = [name for name in matches if strip_compression(name) == base]
    return [_preferred_variant(variants)], [warning] if warning else []


class TransferAgent(ABC):
    """Fetches remote artifacts matching a wildcard pattern."""

    def __init__(self, timeout: int = 300):
        self.timeout = timeout

    @abstractmethod
    def fetch(
        self,
        url: str,
        pattern: str | None,
        target_dir: Path,
        path_depth: int = 0,
        *,
        single: bool = True,
        timeout: int | None = None,
    ) -> TransferReport:
        """Fetch matching artifacts into ``target_dir``.

        Args:
            url: Remote directory URL, or the file URL when pattern is None
            pattern: fnmatch-style file name pattern
            target_dir: Absolute local directory receiving the files
            path_depth: Leading remote path segments to strip when mirroring
            single: Expect one artifact; ambiguity is resolved and reported
            timeout: Per-fetch timeout in seconds (agent default if None)

        Returns:
            TransferReport describing the fetch
        """


class NativeTransferAgent(TransferAgent):
    """Transfer agent built on the FTP/FTPS and HTTP clients.

    Files are written flat into the target directory, which is what a
    mirror with the full path depth stripped produces.
    """

    def __init__(
        self,
        username: str = "anonymous",
        password: str = "anonymous@",
        timeout: int = 300,
        passive: bool = True,
        ftp_factory: Callable[..., FTPClient] = FTPClient,
        http_factory: Callable[..., HTTPClient] = HTTPClient,
    ):
        super().__init__(timeout)
        self.username = username
        self.password = password
        self.passive = passive
        self._ftp_factory = ftp_factory
        self._http_factory = http_factory

    def fetch(
        self,
        url: str,
        pattern: str | None,
        target_dir: Path,
        path_depth: int = 0,
        *,
        single: bool = True,
        timeout: int | None = None,
    ) -> TransferReport:
        timeout = timeout or self.timeout
        target_dir = Path(target_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        report = TransferReport(TransferStatus.NO_MATCH, url=url, pattern=pattern)
        start = time.monotonic()

        scheme = urlparse(url).scheme.lower()
        try:
            if scheme in ("ftp", "ftps"):
                self._fetch_ftp(url, pattern, target_dir, single, timeout, report)
            elif scheme in ("http", "https"):
                self._fetch_http(url, pattern, target_dir, single, timeout, report)
            else:
                report.status = TransferStatus.TOOL_ERROR
                report.message = f"Unsupported URL scheme: {scheme!r}"
        except (FTPError, HTTPError) as e:
            timed_out = isinstance(
                e.__cause__, (socket.timeout, TimeoutError, requests.exceptions.Timeout)
            )
            report.status = TransferStatus.TIMEOUT if timed_out else TransferStatus.NETWORK_ERROR
            report.message = str(e)

        if report.files and report.status == TransferStatus.NO_MATCH:
            report.status = TransferStatus.OK
        report.duration_seconds = time.monotonic() - start

        for warning in report.warnings:
            logger.warning("Ambiguous remote match", url=url, detail=warning)
        logger.debug(
            "Transfer finished",
            url=url,
            pattern=pattern,
            status=report.status.value,
            files=len(report.files),
        )
        return report

    def _fetch_ftp(
        self,
        url: str,
        pattern: str | None,
        target_dir: Path,
        single: bool,
        timeout: int,
        report: TransferReport,
    ) -> None:
        parsed = urlparse(url)
        client = self._ftp_factory(
            host=parsed.hostname,
            port=parsed.port or 21,
            username=parsed.username or self.username,
            password=parsed.password or self.password,
            timeout=timeout,
            passive=self.passive,
            use_tls=parsed.scheme.lower() == "ftps",
        )
        with client:
            if pattern is None:
                remote = PurePosixPath(parsed.path)
                names = [remote.name]
                remote_dir = str(remote.parent)
            else:
                remote_dir = parsed.path or "/"
                names, report.warnings = select_remote(
                    client.list_files(remote_dir), pattern, single
                )

            for name in names:
                local_path = target_dir / name
                if client.download(f"{remote_dir.rstrip('/')}/{name}", local_path):
                    report.files.append(local_path)

    def _fetch_http(
        self,
        url: str,
        pattern: str | None,
        target_dir: Path,
        single: bool,
        timeout: int,
        report: TransferReport,
    ) -> None:
        with self._http_factory(timeout=timeout) as client:
            if pattern is None:
                targets = [(url, PurePosixPath(urlparse(url).path).name)]
            else:
                base = url.rstrip("/")
                names, report.warnings = select_remote(
                    client.list_files(base), pattern, single
                )
                targets = [(f"{base}/{name}", name) for name in names]

            for file_url, name in targets:
                local_path = target_dir / name
                if client.download(file_url, local_path):
                    report.files.append(local_path)


class WgetTransferAgent(TransferAgent):
    """Transfer agent running GNU wget.

    Runs ``wget -qr -nH -A <pattern> --cut-dirs=<depth> -P <target> <url>/``
    so the archive tree is mirrored with the leading segments stripped.
    """

    # wget exit codes
    NETWORK_CODES = {4, 5, 7}
    SERVER_ERROR = 8

    def __init__(self, wget: str = "wget", verbose: bool = False, timeout: int = 300):
        super().__init__(timeout)
        self.wget = wget
        self.verbose = verbose

    def build_command(
        self,
        url: str,
        pattern: str | None,
        target_dir: Path,
        path_depth: int,
    ) -> list[str]:
        """Command line for one fetch."""
        cmd = [self.wget, "-r" if self.verbose else "-qr", "-nH", f"--cut-dirs={path_depth}"]
        cmd += ["-P", str(target_dir)]
        if pattern is None:
            cmd.append(url)
        else:
            cmd += ["-A", pattern, url.rstrip("/") + "/"]
        return cmd

    def fetch(
        self,
        url: str,
        pattern: str | None,
        target_dir: Path,
        path_depth: int = 0,
        *,
        single: bool = True,
        timeout: int | None = None,
    ) -> TransferReport:
        timeout = timeout or self.timeout
        target_dir = Path(target_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        glob = pattern if pattern is not None else PurePosixPath(urlparse(url).path).name
        report = TransferReport(TransferStatus.NO_MATCH, url=url, pattern=pattern)
        cmd = self.build_command(url, pattern, target_dir, path_depth)

        start = time.monotonic()
        try:
            proc = subprocess.run(cmd, capture_output=True, timeout=timeout)
        except subprocess.TimeoutExpired:
            report.status = TransferStatus.TIMEOUT
            report.message = f"wget timed out after {timeout}s"
        except OSError as e:
            report.status = TransferStatus.TOOL_ERROR
            report.message = f"cannot run {self.wget}: {e}"
        else:
            report.return_code = proc.returncode
            report.message = proc.stderr.decode(errors="replace").strip()[-500:]
            if proc.returncode in self.NETWORK_CODES:
                report.status = TransferStatus.NETWORK_ERROR
            elif proc.returncode not in (0, self.SERVER_ERROR):
                report.status = TransferStatus.TOOL_ERROR
        report.duration_seconds = time.monotonic() - start

        report.files = sorted(p for p in target_dir.glob(glob) if p.is_file())
        if report.files and report.status == TransferStatus.NO_MATCH:
            report.status = TransferStatus.OK

        logger.debug(
            "wget finished",
            url=url,
            pattern=pattern,
            status=report.status.value,
            return_code=report.return_code,
        )
        return report
