"""
HTTP/HTTPS client for GNSS archive downloads.

Uses the requests library with retries. Directory listings served as
HTML index pages are parsed with BeautifulSoup so wildcard patterns can
be matched against them.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from pygnss_fetch.core.exceptions import HTTPError
from pygnss_fetch.utils.logging import get_logger


logger = get_logger(__name__)


class HTTPClient:
    """HTTP/HTTPS client with retry support."""

    def __init__(
        self,
        timeout: int = 60,
        max_retries: int = 3,
        verify_ssl: bool = True,
        auth: tuple[str, str] | None = None,
    ):
        """Initialize HTTP client.

        Args:
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for 429/5xx responses
            verify_ssl: Verify SSL certificates
            auth: Optional (username, password); .netrc is used otherwise
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.verify_ssl = verify_ssl

        self.session = requests.Session()
        if auth:
            self.session.auth = auth
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def list_files(self, url: str) -> list[str]:
        """List file names linked from an HTML directory index.

        Args:
            url: Directory URL

        Returns:
            File names; empty if the directory does not exist
        """
        index_url = url if url.endswith("/") else url + "/"
        try:
            response = self.session.get(
                index_url,
                timeout=self.timeout,
                verify=self.verify_ssl,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 404:
                return []
            raise HTTPError(index_url, status, str(e)) from e
        except requests.exceptions.RequestException as e:
            raise HTTPError(index_url, None, str(e)) from e

        soup = BeautifulSoup(response.text, "html.parser")

        names = []
        for link in soup.find_all("a"):
            href = link.get("href")
            # skip sort links, parent directories and absolute links
            if not href or href.startswith(("?", "/", "http", "#")):
                continue
            name = PurePosixPath(unquote(urlparse(href).path)).name
            if name and not href.endswith("/"):
                names.append(name)
        return names

    def download(self, url: str, local_path: Path) -> bool:
        """Download a file from URL.

        Returns:
            True if successful, False if the file does not exist
        """
        try:
            response = self.session.get(
                url,
                timeout=self.timeout,
                verify=self.verify_ssl,
                stream=True,
            )
            response.raise_for_status()

            local_path.parent.mkdir(parents=True, exist_ok=True)
            with open(local_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=8192):
                    f.write(chunk)

        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 404:
                logger.warning("File not found", url=url)
                return False
            raise HTTPError(url, status, str(e)) from e

        except requests.exceptions.RequestException as e:
            local_path.unlink(missing_ok=True)
            raise HTTPError(url, None, str(e)) from e

        logger.info(
            "Downloaded file via HTTP",
            url=url,
            local=str(local_path),
            size=local_path.stat().st_size,
        )
        return True

    def close(self) -> None:
        """Close the session."""
        self.session.close()

    def __enter__(self) -> HTTPClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
