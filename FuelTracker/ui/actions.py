"""Application-wide Qt signals for FuelTracker.

The presentation layer raises intents (screen shown, settings edited) through
these signals, and the core services announce their results on them. Only
:mod:`PySide6.QtCore` is used, so the hub works without a GUI.
"""
import logging

from PySide6 import QtCore


class Signals(QtCore.QObject):
    """Centralized Qt signals for configuration, record and screen events."""
    configSectionChanged = QtCore.Signal(str)  # Section
    metadataChanged = QtCore.Signal(str, object)

    # Raised by the presentation layer each time a screen is shown
    screenEntered = QtCore.Signal(str)

    recordsChanged = QtCore.Signal(list)
    recordSaved = QtCore.Signal(object)
    recordDeleted = QtCore.Signal(str)

    # Operation, message
    syncFailed = QtCore.Signal(str, str)

    showLogs = QtCore.Signal()
    error = QtCore.Signal(str)

    def __init__(self):
        super().__init__()
        self._connect_signals()

    def _connect_signals(self):
        self.screenEntered.connect(lambda s: logging.debug(f'Screen entered: {s}'))
        self.syncFailed.connect(lambda op, msg: logging.debug(f'Background sync failed [{op}]: {msg}'))


signals = Signals()
