"""Test package.

Test mode is switched on before anything imports :mod:`FuelTracker`, so settings and the
record cache are created under Qt's throwaway test location instead of the user's data.
"""
from PySide6 import QtCore

QtCore.QStandardPaths.setTestModeEnabled(True)
