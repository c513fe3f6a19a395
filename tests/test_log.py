# tests/test_log.py
"""
Tests for FuelTracker.log.log
(covers TankHandler, the Qt bridge and setup helpers).

Run:
    python -m unittest tests.test_log
"""
import logging
from typing import List

from PySide6.QtCore import QtMsgType

from FuelTracker.log.log import (
    TankHandler,
    get_tank,
    qt_message_handler,
    set_logging_level,
    setup_logging,
)
from FuelTracker.status import status
from FuelTracker.ui.actions import signals
from tests.base import BaseTestCase, mute_ui_signals


class LogModuleTests(BaseTestCase):
    """
    Each test starts with a fresh root logger configured by
    setup_logging(enable_stream_handler=False).
    """

    def setUp(self) -> None:
        super().setUp()

        logging.disable(logging.NOTSET)

        setup_logging(enable_stream_handler=False,
                      enable_qt_handler=False,
                      log_level=logging.DEBUG)

        self.root_logger = logging.getLogger()
        self.tank: TankHandler = get_tank()

    def tearDown(self) -> None:
        setup_logging(enable_stream_handler=False, enable_qt_handler=False)
        super().tearDown()

    def test_setup_logging_installs_tank_handler_only(self):
        self.assertEqual(
            [type(h) for h in self.root_logger.handlers],
            [TankHandler],
        )
        self.assertIs(get_tank(), self.root_logger.handlers[0])

    def test_setup_logging_is_idempotent(self):
        setup_logging(enable_stream_handler=True, enable_qt_handler=False)
        setup_logging(enable_stream_handler=False, enable_qt_handler=False)
        self.assertEqual(len(self.root_logger.handlers), 1)

    def test_set_logging_level_accepts_valid_levels(self):
        set_logging_level(logging.ERROR)
        self.assertEqual(self.root_logger.level, logging.ERROR)

    def test_set_logging_level_rejects_non_int(self):
        with self.assertRaises(ValueError):
            set_logging_level("INFO")  # type: ignore[arg-type]

    def test_set_logging_level_rejects_unknown(self):
        with self.assertRaises(ValueError):
            set_logging_level(1234)

    def test_tank_handler_stores_and_filters(self):
        self.tank.clear_logs()
        logging.debug("dbg message")
        with mute_ui_signals():
            logging.error("err message")
        self.assertEqual(len(self.tank.tank), 2)
        errs: List[str] = self.tank.get_logs(logging.ERROR)
        self.assertEqual(len(errs), 1)
        self.assertIn("err message", errs[0])
        self.tank.clear_logs()
        self.assertEqual(len(self.tank.tank), 0)

    def test_sync_logs_are_tagged(self):
        self.tank.clear_logs()
        logging.warning("push failed", extra={"sync_operation": "create"})
        logging.warning("push failed", extra={"sync_operation": "delete"})
        logging.warning("unrelated")
        self.assertEqual(len(self.tank.get_sync_logs()), 2)
        deletes: List[str] = self.tank.get_sync_logs("delete")
        self.assertEqual(len(deletes), 1)
        self.assertIn("push failed", deletes[0])

    def test_emit_triggers_showLogs_on_error(self):
        triggered: list[bool] = []

        def _slot() -> None:
            triggered.append(True)

        signals.showLogs.connect(_slot)
        try:
            logging.warning("only a warning")
            self.assertFalse(triggered)
            logging.error("should emit signal")
            self.assertTrue(triggered)
        finally:
            signals.showLogs.disconnect(_slot)

    def test_remote_failures_are_warnings(self):
        self.tank.clear_logs()
        status.ServiceUnavailableException('Connection refused')
        self.assertEqual(self.tank.get_logs(logging.ERROR), [])
        self.assertTrue(any('Connection refused' in m for m in self.tank.get_logs(logging.WARNING)))

    def test_local_failures_are_errors(self):
        self.tank.clear_logs()
        with mute_ui_signals():
            status.CacheInvalidException('disk full')
        self.assertTrue(any('disk full' in m for m in self.tank.get_logs(logging.ERROR)))

    def test_qt_message_handler_maps_to_logging(self):
        qt_message_handler(QtMsgType.QtInfoMsg, None, "Qt info")
        qt_message_handler(QtMsgType.QtWarningMsg, None, "Qt warn")
        msgs = self.tank.get_logs()
        self.assertTrue(any("Qt info" in m for m in msgs))
        self.assertTrue(any("Qt warn" in m for m in msgs))

    def test_qt_message_handler_fatal_exits(self):
        with self.assertRaises(SystemExit):
            qt_message_handler(QtMsgType.QtFatalMsg, None, "fatal")
