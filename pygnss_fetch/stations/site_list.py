"""
Site list files.

A site list is a plain text file with one 4-character site identifier
per line. Blank lines and lines starting with '#' are ignored.

Example::

    # EUREF core sites
    ZIMM
    wtzr
    onsa
"""

from __future__ import annotations

from pathlib import Path

from pygnss_fetch.core.exceptions import SiteListError
from pygnss_fetch.utils.logging import get_logger


logger = get_logger(__name__)

ALL_SITES = "all"


def read_site_list(path: Path | str) -> list[str]:
    """Read site identifiers from a site list file.

    Args:
        path: Site list file

    Returns:
        Lower-cased site identifiers in file order

    Raises:
        SiteListError: File missing or unreadable
    """
    path = Path(path).expanduser()
    if not path.is_file():
        raise SiteListError(str(path), "file not found")

    try:
        with open(path, "r", encoding="utf-8", errors="ignore") as f:
            lines = f.readlines()
    except OSError as e:
        raise SiteListError(str(path), str(e)) from e

    sites = []
    for line in lines:
        site = line.strip().lower()
        if not site or site.startswith("#"):
            continue
        sites.append(site)

    logger.debug("Read site list", path=str(path), sites=len(sites))
    return sites


def resolve_sites(option: str | Path | None) -> list[str] | None:
    """Sites named by a site option.

    Returns None (all-stations mode) for an empty option or ``"all"``;
    any other value is read as a site list path.
    """
    if option is None:
        return None
    text = str(option).strip()
    if not text or text.lower() == ALL_SITES:
        return None
    return read_site_list(text)
