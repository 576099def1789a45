"""
pygnss-fetch: GNSS product locator and retrieval orchestrator.

Locates and retrieves GNSS observation data and analysis products
(broadcast and precise orbits, clocks, EOP, SINEX, biases, ionosphere
and troposphere products) from the IGS data centres CDDIS, IGN and
WHU, and leaves each product under its canonical local name.
"""

__version__ = "1.0.0"
__author__ = "pygnss-fetch Team"

from pygnss_fetch.core.config import Settings, load_settings

__all__ = ["Settings", "load_settings", "__version__"]
