"""Synchronizing record repository.

:class:`SyncAPI` is the only component that reads and writes the cached record
collection. It combines the local cache and the remote gateway:

- Reads are cache-aside. The remote is asked first and the cache is refreshed from its
  answer. If the remote fails, the cached collection is returned instead and nothing is
  raised.
- Writes are optimistic. The mutation is applied to the cached collection and persisted
  locally first, then pushed to the remote. A failed push is logged and announced with
  :attr:`SyncAPI.syncFailed` but never rolled back or raised. A failed local write is
  raised as :class:`~FuelTracker.status.status.CacheInvalidException`.

All operations are coroutines. The blocking SQLite and HTTP calls run in a worker thread
so the event loop is never blocked, but operations are expected to be awaited one at a
time; there is no internal locking.
"""
import asyncio
import enum
import logging
from typing import Any, Callable, List, Optional

from PySide6 import QtCore

from . import database
from .entry import build_record
from .model import FuelRecord, last_odometer_reading, sort_records
from .service import RecordsAPI
from ..status import status


class Operation(enum.StrEnum):
    """Names of the remote operations, used in sync failure reports."""
    Create = 'create'
    Update = 'update'
    Delete = 'delete'


class SyncAPI(QtCore.QObject):
    """Record repository backed by the local cache and the records service.

    Args:
        cache: The local cache store. Defaults to the process-wide :data:`database.database`.
        gateway: The remote record gateway. Defaults to a new :class:`RecordsAPI`.
    """
    recordsChanged = QtCore.Signal(list)  # List[FuelRecord], newest first
    syncFailed = QtCore.Signal(str, str)  # Operation, message

    def __init__(self, cache: Optional[database.DatabaseAPI] = None, gateway: Optional[Any] = None,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self.cache = cache if cache is not None else database.database
        self.gateway = gateway if gateway is not None else RecordsAPI()
        self._refresh_task: Optional[asyncio.Task] = None
        self._connected = False
        self._connect_signals()

    def _connect_signals(self) -> None:
        from ..ui.actions import signals

        signals.screenEntered.connect(self.on_screen_entered)
        self.recordsChanged.connect(signals.recordsChanged)
        self.syncFailed.connect(signals.syncFailed)
        self._connected = True

    def close(self) -> None:
        """Stop answering screen events and cancel a pending refresh."""
        if self._connected:
            from ..ui.actions import signals

            signals.screenEntered.disconnect(self.on_screen_entered)
            self.recordsChanged.disconnect(signals.recordsChanged)
            self.syncFailed.disconnect(signals.syncFailed)
            self._connected = False
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()

    async def list_all(self) -> List[FuelRecord]:
        """Return the record collection, newest first.

        The remote collection replaces the cached one when the remote is reachable.
        Otherwise the cached collection is returned.

        Raises:
            status.CacheInvalidException: Only if the remote failed and the cache cannot be read.
        """
        try:
            records = await asyncio.to_thread(self.gateway.list_all)
        except status.GatewayException as ex:
            logging.warning(f'Could not fetch records from the service, using the local cache: {ex}')
            records = await asyncio.to_thread(self.cache.load)
            saved_at = await asyncio.to_thread(self.cache.last_saved)
            logging.info(f'Serving {len(records)} cached records, last saved {saved_at or "never"}.')
            self.recordsChanged.emit(records)
            return records

        records = sort_records(records)
        try:
            await asyncio.to_thread(self.cache.save, records)
        except status.CacheInvalidException as ex:
            logging.error(f'Fetched {len(records)} records but could not refresh the cache: {ex}')

        self.recordsChanged.emit(records)
        return records

    async def get_last_odometer_reading(self) -> Optional[float]:
        """Return the odometer reading of the most recent record, or None.

        Uses the same read path as :meth:`list_all`, so the value reflects the remote
        collection whenever it is reachable.
        """
        records = await self.list_all()
        return last_odometer_reading(records)

    async def refresh(self) -> List[FuelRecord]:
        """Re-read the collection. Alias of :meth:`list_all` used by screen events."""
        logging.debug('Refreshing records.')
        return await self.list_all()

    @QtCore.Slot(str)
    def on_screen_entered(self, screen: str) -> None:
        """Schedule a refresh when the presentation layer shows a screen.

        Only works while an event loop is running; otherwise the event is ignored.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logging.debug(f'No running event loop, skipping refresh for screen "{screen}".')
            return
        self._refresh_task = loop.create_task(self.refresh())
        self._refresh_task.add_done_callback(self._on_refresh_done)

    @staticmethod
    def _on_refresh_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        ex = task.exception()
        if ex is not None:
            logging.error(f'Background refresh failed: {ex}')

    async def _mutate(self, apply: Callable[[List[FuelRecord]], List[FuelRecord]]) -> List[FuelRecord]:
        """Load the cached collection, apply ``apply`` to it and persist the result.

        Raises:
            status.CacheInvalidException: If the cache cannot be read or written.
        """
        records = await asyncio.to_thread(self.cache.load)
        records = apply(records)
        await asyncio.to_thread(self.cache.save, records)
        self.recordsChanged.emit(records)
        return records

    async def _push(self, operation: str, func: Callable, *args: Any) -> bool:
        """Send a write to the remote. Failures are logged and reported, never raised.

        Returns:
            bool: True if the remote accepted the write.
        """
        try:
            await asyncio.to_thread(func, *args)
        except status.RecordNotFoundException as ex:
            logging.warning(f'Remote {operation} skipped, the record is unknown to the service: {ex}',
                            extra={'sync_operation': str(operation)})
            self.syncFailed.emit(operation, str(ex))
            return False
        except status.GatewayException as ex:
            logging.warning(f'Remote {operation} failed, the change is kept locally: {ex}',
                            extra={'sync_operation': str(operation)})
            self.syncFailed.emit(operation, str(ex))
            return False
        logging.debug(f'Remote {operation} succeeded.')
        return True

    async def create(self, record: FuelRecord) -> FuelRecord:
        """Add a record locally, then to the remote.

        Raises:
            status.CacheInvalidException: If the record could not be saved locally.
        """

        def apply(records: List[FuelRecord]) -> List[FuelRecord]:
            return sort_records([record, *records])

        await self._mutate(apply)
        from ..ui.actions import signals
        signals.recordSaved.emit(record)

        await self._push(Operation.Create, self.gateway.create, record)
        return record

    async def update(self, record_id: str, record: FuelRecord) -> FuelRecord:
        """Replace the record with ``record_id`` locally, then on the remote.

        A record missing from the cache leaves the local collection unchanged, but the
        update is still sent to the remote.

        Raises:
            status.CacheInvalidException: If the change could not be saved locally.
        """

        def apply(records: List[FuelRecord]) -> List[FuelRecord]:
            if not any(r.id == record_id for r in records):
                logging.warning(f'Record {record_id} is not in the local cache, nothing to replace.')
                return records
            return sort_records([record if r.id == record_id else r for r in records])

        await self._mutate(apply)
        from ..ui.actions import signals
        signals.recordSaved.emit(record)

        await self._push(Operation.Update, self.gateway.update, record_id, record)
        return record

    async def delete(self, record_id: str) -> None:
        """Remove the record with ``record_id`` locally, then on the remote.

        Raises:
            status.CacheInvalidException: If the change could not be saved locally.
        """

        def apply(records: List[FuelRecord]) -> List[FuelRecord]:
            return [r for r in records if r.id != record_id]

        await self._mutate(apply)
        from ..ui.actions import signals
        signals.recordDeleted.emit(record_id)

        await self._push(Operation.Delete, self.gateway.remove, record_id)

    async def add_entry(self, date: Any, gas_station_name: str, service_type: Any,
                        price_per_gallon: Any, gallons: Any, odometer_reading: Any) -> FuelRecord:
        """Validate user-entered values and create the new record.

        The last odometer reading is fetched through the read path first, so the new
        record's distance is computed from the authoritative collection.

        Raises:
            status.RecordInvalidException: If a field is invalid. Nothing is written.
            status.CacheInvalidException: If the record could not be saved locally.
        """
        last_odometer = await self.get_last_odometer_reading()
        record = build_record(
            date,
            gas_station_name,
            service_type,
            price_per_gallon,
            gallons,
            odometer_reading,
            last_odometer=last_odometer,
        )
        return await self.create(record)

    async def edit_entry(self, record: FuelRecord, date: Any, gas_station_name: str, service_type: Any,
                         price_per_gallon: Any, gallons: Any, odometer_reading: Any) -> FuelRecord:
        """Validate user-entered values and update ``record`` with them.

        The record keeps its id and its original distance since the last visit.
        """
        updated = build_record(
            date,
            gas_station_name,
            service_type,
            price_per_gallon,
            gallons,
            odometer_reading,
            editing=record,
        )
        return await self.update(record.id, updated)


sync: SyncAPI = SyncAPI()
