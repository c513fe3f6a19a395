"""
Settings package.

- :mod:`FuelTracker.settings.lib` – Settings file paths, schema validation and the :data:`settings` singleton.
- :mod:`FuelTracker.settings.locale` – Babel-based number, currency and date label formatting.
"""
