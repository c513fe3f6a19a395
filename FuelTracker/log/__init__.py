"""
Logging subsystem.

Modules:

- :mod:`FuelTracker.log.log` – Root logger setup, the in-memory log tank, and the Qt message bridge.
"""
