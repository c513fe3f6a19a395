"""Tests for FuelTracker.core.sync: cache-aside reads and optimistic writes.

The records service is replaced with in-memory doubles (see tests.base), and the real
SQLite cache is used.
"""
import asyncio
import logging
import sqlite3
from unittest.mock import patch

from FuelTracker.core import database
from FuelTracker.core.sync import Operation, SyncAPI
from FuelTracker.log.log import get_tank
from FuelTracker.status import status
from FuelTracker.ui.actions import signals
from tests.base import BaseAsyncTestCase, BaseTestCase, FakeGateway, OfflineGateway, make_record, mute_ui_signals

FIRST = make_record('1', date='2025-01-01T10:00:00.000Z', odometer_reading=1000)
SECOND = make_record('2', date='2025-01-15T10:00:00.000Z', gallons=20, odometer_reading=1400,
                     km_since_last_visit=400)
THIRD = make_record('3', date='2025-02-01T10:00:00.000Z', gallons=15, odometer_reading=1700,
                    km_since_last_visit=300)


class ReadPathTests(BaseAsyncTestCase):
    async def test_remote_replaces_cache(self):
        database.database.save([make_record('local-only')])
        repo = self.make_repository(FakeGateway([FIRST, SECOND]))

        records = await repo.list_all()

        self.assertEqual([r.id for r in records], ['2', '1'])
        self.assertEqual([r.id for r in database.database.load()], ['2', '1'])

    async def test_offline_falls_back_to_cache(self):
        database.database.save([SECOND, FIRST])
        gateway = OfflineGateway()
        repo = self.make_repository(gateway)

        records = await repo.list_all()

        self.assertEqual(records, [SECOND, FIRST])
        self.assertEqual(gateway.calls, [('list_all',)])

    async def test_offline_read_reports_cache_age(self):
        database.database.save([FIRST])
        repo = self.make_repository()
        with self.assertLogs(level=logging.INFO) as logs:
            await repo.list_all()
        self.assertTrue(any('cached records, last saved 20' in line for line in logs.output))

    async def test_offline_with_empty_cache(self):
        repo = self.make_repository()
        self.assertEqual(await repo.list_all(), [])
        self.assertIsNone(await repo.get_last_odometer_reading())

    async def test_cache_refresh_failure_still_returns_remote(self):
        repo = self.make_repository(FakeGateway([FIRST]))
        with patch.object(database.database, 'connection', side_effect=sqlite3.OperationalError('locked')):
            with mute_ui_signals():
                records = await repo.list_all()
        self.assertEqual(records, [FIRST])

    async def test_last_odometer_uses_remote(self):
        database.database.save([FIRST])
        repo = self.make_repository(FakeGateway([FIRST, SECOND]))
        self.assertEqual(await repo.get_last_odometer_reading(), 1400)

    async def test_records_changed_signal(self):
        received = []
        repo = self.make_repository(FakeGateway([FIRST]))
        repo.recordsChanged.connect(received.append)
        await repo.list_all()
        self.assertEqual(received, [[FIRST]])


class WritePathTests(BaseAsyncTestCase):
    async def test_create_offline_then_read_offline(self):
        repo = self.make_repository()
        failures = []
        repo.syncFailed.connect(lambda op, msg: failures.append(op))

        await repo.create(FIRST)
        records = await repo.list_all()

        self.assertEqual(records, [FIRST])
        self.assertEqual(failures, [Operation.Create])

    async def test_failed_push_is_tagged_in_log_tank(self):
        tank = get_tank()
        tank.clear_logs()
        repo = self.make_repository()
        await repo.create(FIRST)
        self.assertEqual(len(tank.get_sync_logs(Operation.Create)), 1)
        self.assertEqual(tank.get_sync_logs(Operation.Delete), [])

    async def test_create_online(self):
        gateway = FakeGateway()
        repo = self.make_repository(gateway)
        await repo.create(FIRST)
        self.assertIn(('create', '1'), gateway.calls)
        self.assertEqual(gateway.records, {'1': FIRST})

    async def test_create_keeps_date_order(self):
        database.database.save([THIRD, FIRST])
        repo = self.make_repository()
        await repo.create(SECOND)
        self.assertEqual([r.id for r in database.database.load()], ['3', '2', '1'])

    async def test_local_write_happens_before_remote(self):
        seen = []

        class RecordingGateway(FakeGateway):
            def create(self, record):
                seen.append([r.id for r in database.database.load()])
                return super().create(record)

        repo = self.make_repository(RecordingGateway())
        await repo.create(FIRST)
        self.assertEqual(seen, [['1']])

    async def test_update_replaces_and_resorts(self):
        database.database.save([SECOND, FIRST])
        gateway = FakeGateway([SECOND, FIRST])
        repo = self.make_repository(gateway)
        moved = FIRST.with_values(date='2025-01-20T10:00:00.000Z', gas_station_name='Shell')

        await repo.update('1', moved)

        cached = database.database.load()
        self.assertEqual([r.id for r in cached], ['1', '2'])
        self.assertEqual(cached[0].gas_station_name, 'Shell')
        self.assertEqual(gateway.records['1'], moved)

    async def test_update_unknown_remote_id_is_swallowed(self):
        database.database.save([FIRST])
        repo = self.make_repository(FakeGateway())
        failures = []
        repo.syncFailed.connect(lambda op, msg: failures.append(op))

        await repo.update('1', FIRST.with_values(gallons=12))

        self.assertEqual(database.database.load()[0].gallons, 12)
        self.assertEqual(failures, [Operation.Update])

    async def test_update_unknown_local_id_leaves_cache(self):
        database.database.save([FIRST])
        gateway = FakeGateway([SECOND])
        repo = self.make_repository(gateway)
        await repo.update('2', SECOND.with_values(gallons=1))
        self.assertEqual(database.database.load(), [FIRST])
        self.assertEqual(gateway.records['2'].gallons, 1)

    async def test_delete_offline(self):
        database.database.save([SECOND, FIRST])
        repo = self.make_repository()

        await repo.delete('1')

        self.assertEqual([r.id for r in database.database.load()], ['2'])
        self.assertEqual([r.id for r in await repo.list_all()], ['2'])

    async def test_delete_online(self):
        database.database.save([SECOND, FIRST])
        gateway = FakeGateway([SECOND, FIRST])
        repo = self.make_repository(gateway)
        await repo.delete('2')
        self.assertEqual(list(gateway.records), ['1'])

    async def test_local_failure_is_raised(self):
        gateway = FakeGateway()
        repo = self.make_repository(gateway)
        with patch.object(database.database, 'save',
                          side_effect=status.CacheInvalidException('disk full')):
            with mute_ui_signals():
                with self.assertRaises(status.CacheInvalidException):
                    await repo.create(FIRST)
        self.assertEqual(gateway.calls, [])

    async def test_global_signals(self):
        saved, deleted = [], []

        def on_saved(record):
            saved.append(record)

        def on_deleted(record_id):
            deleted.append(record_id)

        signals.recordSaved.connect(on_saved)
        signals.recordDeleted.connect(on_deleted)
        try:
            repo = self.make_repository()
            await repo.create(FIRST)
            await repo.delete('1')
        finally:
            signals.recordSaved.disconnect(on_saved)
            signals.recordDeleted.disconnect(on_deleted)
        self.assertEqual(saved, [FIRST])
        self.assertEqual(deleted, ['1'])


class EntryWorkflowTests(BaseAsyncTestCase):
    async def test_add_entries(self):
        repo = self.make_repository()

        first = await repo.add_entry('2025-01-01T10:00:00Z', 'Puma', 'Self Service', 5, 10, 1000)
        second = await repo.add_entry('2025-01-15T10:00:00Z', 'Puma', 'Self Service', 5, 20, 1400)

        self.assertEqual(first.km_since_last_visit, 0)
        self.assertEqual(second.km_since_last_visit, 400)
        self.assertEqual(second.efficiency, 20)
        self.assertEqual(len(database.database.load()), 2)

    async def test_add_entry_rejects_lower_odometer(self):
        database.database.save([SECOND])
        repo = self.make_repository()
        with mute_ui_signals():
            with self.assertRaises(status.RecordInvalidException):
                await repo.add_entry(None, 'Puma', 'Self Service', 5, 20, 1300)
        self.assertEqual(database.database.load(), [SECOND])

    async def test_add_entry_rejects_non_finite_and_keeps_cache(self):
        database.database.save([SECOND, FIRST])
        repo = self.make_repository()
        for price, gallons in [('1e400', 10), ('inf', 10), (1e200, 1e200)]:
            with self.subTest(price=price, gallons=gallons):
                with mute_ui_signals():
                    with self.assertRaises(status.RecordInvalidException):
                        await repo.add_entry(None, 'Puma', 'Self Service', price, gallons, 1500)
                self.assertEqual(database.database.load(), [SECOND, FIRST])

        await repo.add_entry(None, 'Puma', 'Self Service', 5, 10, 1500)
        self.assertEqual(len(database.database.load()), 3)

    async def test_edit_entry(self):
        database.database.save([SECOND, FIRST])
        repo = self.make_repository()
        edited = await repo.edit_entry(SECOND, SECOND.date, 'Texaco', 'Full Service', 6, 20, 1400)
        self.assertEqual(edited.id, '2')
        self.assertEqual(edited.km_since_last_visit, 400)
        self.assertEqual(database.database.load()[0].total_amount, 120)


class ScreenEnteredTests(BaseAsyncTestCase):
    async def test_screen_entered_refreshes(self):
        gateway = FakeGateway([FIRST])
        repo = self.make_repository(gateway)
        repo.on_screen_entered('Records')
        await repo._refresh_task
        self.assertEqual([r.id for r in database.database.load()], ['1'])

    async def test_signal_triggers_refresh(self):
        gateway = FakeGateway([FIRST])
        repo = self.make_repository(gateway)
        signals.screenEntered.emit('Analytics')
        await repo._refresh_task
        self.assertIn(('list_all',), gateway.calls)

    async def test_failed_refresh_is_logged(self):
        repo = self.make_repository()
        with patch.object(database.database, 'load',
                          side_effect=status.CacheInvalidException('unreadable')):
            with mute_ui_signals():
                with self.assertLogs(level=logging.ERROR) as logs:
                    repo.on_screen_entered('Records')
                    await asyncio.wait([repo._refresh_task])
        self.assertIsInstance(repo._refresh_task.exception(), status.CacheInvalidException)
        self.assertTrue(any('Background refresh failed' in line for line in logs.output))

    async def test_closed_repository_ignores_screen_events(self):
        gateway = FakeGateway([FIRST])
        repo = self.make_repository(gateway)
        repo.close()
        repo.close()
        signals.screenEntered.emit('Records')
        self.assertIsNone(repo._refresh_task)


class NoEventLoopTests(BaseTestCase):
    def test_screen_entered_without_loop_is_ignored(self):
        repo = SyncAPI(cache=database.database, gateway=OfflineGateway())
        self.addCleanup(repo.close)
        repo.on_screen_entered('Records')
        self.assertIsNone(repo._refresh_task)
