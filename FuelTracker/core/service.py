"""Records service gateway.

Translates record CRUD calls into requests against the records REST API::

    GET    /records          -> {success, data: [record, ...]}
    POST   /records          -> {success, data: record}        (201)
    PUT    /records/<id>     -> {success, data: record}
    DELETE /records/<id>     -> {success, message}

Every failure is raised as a :class:`~FuelTracker.status.status.GatewayException`
subclass, so callers only need to handle one exception family.

The HTTP session is a process-wide resource owned by :data:`client`. It is built on first
use and dropped whenever the ``api`` settings section changes.
"""
import logging
import threading
import urllib.parse
from typing import Any, Dict, List, Optional

import requests
from PySide6 import QtCore

from .model import FuelRecord, records_from_payload
from ..settings import lib
from ..status import status

DEFAULT_HEADERS: Dict[str, str] = {
    'Content-Type': 'application/json',
    'Accept': 'application/json',
}


def _error_text(body: Any) -> str:
    """Return the ``error`` (or ``message``) string of a response body, if any."""
    if isinstance(body, dict):
        return str(body.get('error') or body.get('message') or '')
    return ''


class ServiceClient(QtCore.QObject):
    """Owns the cached :class:`requests.Session` used by the gateway."""

    def __init__(self, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self._session: Optional[requests.Session] = None
        self._lock = threading.Lock()
        self._connect_signals()

    def _connect_signals(self) -> None:
        from ..ui.actions import signals
        signals.configSectionChanged.connect(self.on_config_section_changed)

    @QtCore.Slot(str)
    def on_config_section_changed(self, section: str) -> None:
        """Clear the cached session when the api settings change."""
        if section != 'api':
            return
        logging.debug('Clearing cached records service session due to api settings change')
        self.clear()

    @property
    def base_url(self) -> str:
        return lib.settings.get_section('api')['url'].rstrip('/')

    @property
    def timeout(self) -> Optional[int]:
        """Request timeout in seconds, or None to wait indefinitely."""
        value = lib.settings.get_section('api').get('timeout', 0)
        return value or None

    def url(self, path: str) -> str:
        return f'{self.base_url}/{path.lstrip("/")}'

    def session(self) -> requests.Session:
        """Return the cached session, creating it on first use."""
        with self._lock:
            if self._session is None:
                session = requests.Session()
                session.headers.update(DEFAULT_HEADERS)
                self._session = session
                logging.debug(f'Records service session created for {self.base_url}')
            return self._session

    def clear(self) -> None:
        """Close and drop the cached session."""
        with self._lock:
            if self._session is None:
                return
            try:
                self._session.close()
            except Exception as ex:
                logging.debug(f'Failed closing cached records service session: {ex}')
            self._session = None


client: ServiceClient = ServiceClient()


class RecordsAPI:
    """Remote record gateway.

    Args:
        service_client: The session owner to use. Defaults to the process-wide :data:`client`.
    """

    def __init__(self, service_client: Optional[ServiceClient] = None) -> None:
        self.client: ServiceClient = service_client or client

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send a request and return the decoded, successful response body.

        Raises:
            status.ServiceUnavailableException: If the service cannot be reached.
            status.RecordNotFoundException: On HTTP 404.
            status.ResponseInvalidException: On any other non-success status or a malformed body.
            status.RemoteErrorException: If the body reports ``success: false``.
        """
        url = self.client.url(path)
        logging.debug(f'{method} {url}')
        try:
            response = self.client.session().request(
                method, url, json=payload, timeout=self.client.timeout
            )
        except requests.RequestException as ex:
            raise status.ServiceUnavailableException(f'{method} {url} failed: {ex}') from ex

        try:
            body = response.json()
        except ValueError:
            body = None

        code = response.status_code
        if code == 404:
            raise status.RecordNotFoundException(
                _error_text(body) or f'{method} {url} returned HTTP 404.', status_code=code
            )
        if not response.ok:
            raise status.ResponseInvalidException(
                f'{method} {url} returned HTTP {code}. {_error_text(body)}'.strip(), status_code=code
            )
        if not isinstance(body, dict) or 'success' not in body:
            raise status.ResponseInvalidException(f'{method} {url} returned a malformed body.', status_code=code)
        if not body['success']:
            raise status.RemoteErrorException(_error_text(body) or 'Unknown error.', status_code=code)
        return body

    @staticmethod
    def _record_path(record_id: str) -> str:
        return f'records/{urllib.parse.quote(str(record_id), safe="")}'

    def _parse_record(self, body: Dict[str, Any], fallback: FuelRecord) -> FuelRecord:
        data = body.get('data')
        if data is None:
            return fallback
        try:
            return FuelRecord.from_dict(data)
        except ValueError as ex:
            raise status.ResponseInvalidException(f'Malformed record in response: {ex}') from ex

    def list_all(self) -> List[FuelRecord]:
        """Return every record stored by the service."""
        body = self._request('GET', 'records')
        try:
            records = records_from_payload(body.get('data'))
        except ValueError as ex:
            raise status.ResponseInvalidException(f'Malformed record list in response: {ex}') from ex
        logging.debug(f'Fetched {len(records)} records from the records service.')
        return records

    def create(self, record: FuelRecord) -> FuelRecord:
        """Store a new record and return the stored version."""
        body = self._request('POST', 'records', payload=record.to_dict())
        return self._parse_record(body, record)

    def update(self, record_id: str, record: FuelRecord) -> FuelRecord:
        """Replace the record with ``record_id`` and return the stored version."""
        body = self._request('PUT', self._record_path(record_id), payload=record.to_dict())
        return self._parse_record(body, record)

    def remove(self, record_id: str) -> None:
        """Delete the record with ``record_id``."""
        self._request('DELETE', self._record_path(record_id))
