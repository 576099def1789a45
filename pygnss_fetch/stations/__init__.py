"""Station selection: site list files."""

from pygnss_fetch.stations.site_list import ALL_SITES, read_site_list, resolve_sites

__all__ = [
    "ALL_SITES",
    "read_site_list",
    "resolve_sites",
]
