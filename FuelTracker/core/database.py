"""
Local SQLite cache of the fuel record collection.

The whole collection is stored as a single JSON array under one well-known key of a
key-value table. Every save overwrites that value inside a transaction, so a reader never
sees a partial write. Missing or unparsable data loads as an empty collection, while
SQLite failures are raised as :class:`~FuelTracker.status.status.CacheInvalidException`.
"""

import datetime
import enum
import json
import logging
import pathlib
import sqlite3
from typing import List, Optional, Sequence

from PySide6 import QtCore

from .model import FuelRecord, records_from_payload, records_to_payload
from ..settings import lib
from ..status import status

STORAGE_KEY = '@fuel_records'

STORE_SCHEMA = {
    'key': 'TEXT PRIMARY KEY',
    'value': 'TEXT NOT NULL',
    'updated': 'TEXT NOT NULL',
}


class Table(enum.StrEnum):
    """Enum for database tables."""
    Store = 'kvstore'


def now_str() -> str:
    """Return current UTC date and time as an ISO 8601 string."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class DatabaseAPI(QtCore.QObject):
    """Key-value record cache backed by a SQLite file.

    Args:
        db_path: Optional database file path. Defaults to the settings' ``db_path``.
        key: Storage key for the record collection.
    """
    saved = QtCore.Signal(int)  # Number of records written

    def __init__(self, db_path: Optional[pathlib.Path] = None, key: str = STORAGE_KEY,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent=parent)
        self.db_path: pathlib.Path = pathlib.Path(db_path) if db_path else lib.settings.db_path
        self.key: str = key
        self._initialize_schema_if_needed()

    def connection(self) -> sqlite3.Connection:
        """Return a new connection to the cache database."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), timeout=2.0)
        conn.set_progress_handler(lambda: logging.debug('Waiting on DB lock…'), 1000)
        return conn

    def _initialize_schema_if_needed(self) -> None:
        """Create the key-value table if it is missing.

        Raises:
            status.CacheInvalidException: If the database cannot be opened or created.
        """
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            cols_sql = ', '.join(f'"{name}" {typedef}' for name, typedef in STORE_SCHEMA.items())
            conn.execute(f'CREATE TABLE IF NOT EXISTS {Table.Store.value} ({cols_sql})')
            conn.commit()
        except sqlite3.Error as e:
            logging.error(f'SQLite error during schema initialization: {e}', exc_info=True)
            raise status.CacheInvalidException(f'Could not initialize the cache at {self.db_path}: {e}') from e
        finally:
            if conn:
                conn.close()

    def _read_raw(self) -> Optional[str]:
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            row = conn.execute(
                f'SELECT value FROM {Table.Store.value} WHERE key=?', (self.key,)
            ).fetchone()
            return row[0] if row else None
        except sqlite3.Error as e:
            logging.error(f'SQLite error reading the cache: {e}', exc_info=True)
            raise status.CacheInvalidException(f'Could not read the cache: {e}') from e
        finally:
            if conn:
                conn.close()

    def load(self) -> List[FuelRecord]:
        """Return the cached records.

        Returns:
            The cached records, or an empty list if nothing is stored or the stored
            payload cannot be parsed.

        Raises:
            status.CacheInvalidException: If the database itself cannot be read.
        """
        raw = self._read_raw()
        if raw is None:
            logging.debug('Cache is empty.')
            return []

        try:
            records = records_from_payload(json.loads(raw))
        except (ValueError, TypeError, KeyError) as e:
            logging.warning(f'Cached payload could not be parsed, treating the cache as empty: {e}')
            return []

        logging.debug(f'Loaded {len(records)} records from the cache.')
        return records

    def save(self, records: Sequence[FuelRecord]) -> None:
        """Overwrite the cached collection with ``records``.

        Raises:
            status.CacheInvalidException: If the write fails or a record holds a non-finite
                number. The previous value is kept.
        """
        try:
            payload = json.dumps(records_to_payload(records), ensure_ascii=False, allow_nan=False)
        except ValueError as e:
            raise status.CacheInvalidException(f'Could not serialize the records: {e}') from e
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            with conn:
                conn.execute(
                    f'INSERT OR REPLACE INTO {Table.Store.value} (key, value, updated) VALUES (?, ?, ?)',
                    (self.key, payload, now_str())
                )
        except sqlite3.Error as e:
            logging.error(f'SQLite error writing the cache: {e}', exc_info=True)
            raise status.CacheInvalidException(f'Could not write the cache: {e}') from e
        finally:
            if conn:
                conn.close()

        logging.debug(f'Saved {len(records)} records to the cache.')
        self.saved.emit(len(records))

    def last_saved(self) -> Optional[datetime.datetime]:
        """Return when the collection was last written, or None if it never was."""
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            row = conn.execute(
                f'SELECT updated FROM {Table.Store.value} WHERE key=?', (self.key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise status.CacheInvalidException(f'Could not read the cache: {e}') from e
        finally:
            if conn:
                conn.close()
        return datetime.datetime.fromisoformat(row[0]) if row else None


database: DatabaseAPI = DatabaseAPI()
