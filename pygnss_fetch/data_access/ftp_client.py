"""
FTP and FTPS client for GNSS archive downloads.

FTPS (explicit TLS) is required by NASA CDDIS; the data channel is
protected with PROT P after login.
"""

from __future__ import annotations

import ftplib
import socket
from pathlib import Path, PurePosixPath

from pygnss_fetch.core.exceptions import FTPError
from pygnss_fetch.utils.logging import get_logger


logger = get_logger(__name__)


class FTPClient:
    """FTP/FTPS client using ftplib."""

    def __init__(
        self,
        host: str,
        username: str = "anonymous",
        password: str = "anonymous@",
        timeout: int = 60,
        passive: bool = True,
        use_tls: bool = False,
        port: int = 21,
    ):
        """Initialize client.

        Args:
            host: Server hostname
            username: Login username
            password: Login password (an e-mail address for anonymous access)
            timeout: Socket timeout in seconds
            passive: Use passive mode
            use_tls: Use explicit FTPS (AUTH TLS + PROT P)
            port: Control port
        """
        self.host = host
        self.username = username
        self.password = password
        self.timeout = timeout
        self.passive = passive
        self.use_tls = use_tls
        self.port = port
        self._ftp: ftplib.FTP | None = None

    @property
    def connected(self) -> bool:
        return self._ftp is not None

    def connect(self) -> None:
        """Connect and log in."""
        try:
            self._ftp = ftplib.FTP_TLS() if self.use_tls else ftplib.FTP()
            self._ftp.connect(self.host, self.port, timeout=self.timeout)
            self._ftp.login(self.username, self.password)
            if self.use_tls:
                self._ftp.prot_p()
            self._ftp.set_pasv(self.passive)

            logger.debug("Connected to FTP server", host=self.host, tls=self.use_tls)

        except (socket.timeout, TimeoutError) as e:
            self._ftp = None
            raise FTPError(self.host, "connect", f"Connection timeout: {e}") from e
        except ftplib.error_perm as e:
            self._ftp = None
            raise FTPError(self.host, "connect", f"Permission error: {e}") from e
        except (OSError, ftplib.Error) as e:
            self._ftp = None
            raise FTPError(self.host, "connect", str(e)) from e

    def disconnect(self) -> None:
        """Disconnect from FTP server."""
        if self._ftp:
            try:
                self._ftp.quit()
            except (OSError, ftplib.Error):
                self._ftp.close()
            self._ftp = None

    def list_files(self, remote_dir: str) -> list[str]:
        """List file names in a remote directory.

        Returns:
            Base names of the entries; empty if the directory does not exist
        """
        if not self._ftp:
            raise FTPError(self.host, "list", "Not connected")

        try:
            entries = self._ftp.nlst(remote_dir)
        except ftplib.error_perm:
            return []
        except (OSError, ftplib.Error) as e:
            raise FTPError(self.host, "list", str(e)) from e

        return [PurePosixPath(entry).name for entry in entries]

    def download(self, remote_path: str, local_path: Path) -> bool:
        """Download a file.

        Returns:
            True if successful, False if the server refused the file
        """
        if not self._ftp:
            raise FTPError(self.host, "download", "Not connected")

        local_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(local_path, "wb") as f:
                self._ftp.retrbinary(f"RETR {remote_path}", f.write)

        except ftplib.error_perm as e:
            local_path.unlink(missing_ok=True)
            logger.warning("FTP download failed", remote=remote_path, error=str(e))
            return False
        except (OSError, ftplib.Error) as e:
            local_path.unlink(missing_ok=True)
            raise FTPError(self.host, "download", str(e)) from e

        logger.info("Downloaded file", remote=remote_path, local=str(local_path))
        return True

    def __enter__(self) -> FTPClient:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()
