"""
Core package for FuelTracker providing the record model and its storage.

This package includes:

- :mod:`FuelTracker.core.model` – The fuel record, its wire format and derived-metric formulas.
- :mod:`FuelTracker.core.entry` – Entry validation and construction of new and edited records.
- :mod:`FuelTracker.core.database` – Local SQLite cache holding the record collection.
- :mod:`FuelTracker.core.service` – HTTP gateway to the records REST API.
- :mod:`FuelTracker.core.sync` – The repository combining cache-aside reads with optimistic writes.
"""
