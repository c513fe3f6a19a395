"""
Signal hub shared between the presentation layer and the core services.

- :mod:`FuelTracker.ui.actions` – Application-wide Qt signals.
"""
