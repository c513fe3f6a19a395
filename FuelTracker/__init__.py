"""
FuelTracker: offline-first fuel expense tracking.

This package provides:

- :mod:`FuelTracker.core` – The record model, the local cache, the records service gateway and the synchronizing repository (:data:`FuelTracker.core.sync.sync`).
- :mod:`FuelTracker.data` – Fuel metrics (:func:`FuelTracker.data.data.summary_statistics`, :func:`FuelTracker.data.data.time_series`, :func:`FuelTracker.data.data.get_trends`).
- :mod:`FuelTracker.backend` – The spreadsheet-backed records REST API.
- :mod:`FuelTracker.settings` – Settings management and locale formatting.
- :mod:`FuelTracker.log` – In-app logging.
"""

import sys

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('FuelTracker requires Python 3.11 or higher.')

__version__ = '0.1.0'
__license__ = 'GPL-3.0'
__description__ = 'FuelTracker: offline-first fuel expense tracking with a spreadsheet-backed records API.'

from .log import log

log.setup_logging()
