"""Google Sheets record store.

Records live in one worksheet, one row per record, under a fixed header row (see
:data:`HEADER`). Values are written raw, so ids and dates stay strings, and read back
unformatted, so numbers come back as numbers.

The Sheets API client is built on first use from service account credentials and cached
on the store until :meth:`SheetsStore.clear_service` is called.
"""
import json
import logging
import socket
import ssl
from typing import Any, Dict, List, Optional, Tuple

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..core.model import NUMERIC_WIRE_FIELDS, WIRE_FIELDS
from ..status import status

SCOPES: List[str] = ['https://www.googleapis.com/auth/spreadsheets']

HEADER: List[str] = list(WIRE_FIELDS.keys())


def idx_to_col(idx: int) -> str:
    """Convert zero-based column index to spreadsheet letter(s).

    Args:
        idx: The zero-based column index.

    Returns:
        The spreadsheet column letter(s) (e.g., A, B, AA).
    """
    letters = ''
    while idx >= 0:
        letters = chr((idx % 26) + ord('A')) + letters
        idx = idx // 26 - 1
    return letters


LAST_COLUMN: str = idx_to_col(len(HEADER) - 1)


def _to_number(value: Any) -> float:
    if value in (None, ''):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        logging.warning(f'Non-numeric cell value "{value}" read as 0.')
        return 0.0


def row_to_record(row: List[Any]) -> Dict[str, Any]:
    """Convert a sheet row into a wire record. Short rows are padded with blanks."""
    row = list(row) + [''] * (len(HEADER) - len(row))
    record = dict(zip(HEADER, row))
    for key in NUMERIC_WIRE_FIELDS:
        record[key] = _to_number(record[key])
    for key in ('id', 'date', 'gasStationName', 'serviceType'):
        record[key] = str(record[key])
    return record


def record_to_row(record: Dict[str, Any]) -> List[Any]:
    """Convert a wire record into a sheet row in :data:`HEADER` order."""
    return ['' if record.get(key) is None else record[key] for key in HEADER]


class SheetsStore:
    """Record store backed by a Google Sheets worksheet.

    Args:
        spreadsheet_id: The spreadsheet id.
        worksheet: The worksheet title. The first worksheet is used when empty.
        credentials_file: Path to a service account key file.
        credentials_info: Service account key as a dict or a JSON string.
        service: A ready Sheets API resource. Skips building one from credentials.
    """

    def __init__(self, spreadsheet_id: str, worksheet: str = '', credentials_file: str = '',
                 credentials_info: Any = None, service: Any = None) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.worksheet = worksheet
        self.credentials_file = credentials_file
        self.credentials_info = credentials_info
        self._cached_service: Any = service
        self._sheet: Optional[Tuple[str, int]] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'SheetsStore':
        """Create a store from a Flask config mapping."""
        info: Any = config.get('GOOGLE_SERVICE_ACCOUNT_INFO') or None
        if not info and config.get('GOOGLE_SERVICE_ACCOUNT_EMAIL') and config.get('GOOGLE_PRIVATE_KEY'):
            info = {
                'type': 'service_account',
                'client_email': config['GOOGLE_SERVICE_ACCOUNT_EMAIL'],
                'private_key': config['GOOGLE_PRIVATE_KEY'].replace('\\n', '\n'),
                'token_uri': 'https://oauth2.googleapis.com/token',
            }
        return cls(
            config.get('GOOGLE_SHEET_ID', ''),
            worksheet=config.get('GOOGLE_WORKSHEET', ''),
            credentials_file=config.get('GOOGLE_SERVICE_ACCOUNT_FILE', ''),
            credentials_info=info,
        )

    def _get_credentials(self) -> service_account.Credentials:
        """Load the service account credentials.

        Raises:
            status.CredsNotFoundException: If no credentials are configured or they cannot be read.
        """
        try:
            if self.credentials_info:
                info = self.credentials_info
                if isinstance(info, str):
                    info = json.loads(info)
                return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
            if self.credentials_file:
                return service_account.Credentials.from_service_account_file(self.credentials_file, scopes=SCOPES)
        except (ValueError, OSError) as ex:
            raise status.CredsNotFoundException(f'Could not load service account credentials: {ex}') from ex
        raise status.CredsNotFoundException('No service account credentials configured.')

    def get_service(self) -> Any:
        """
        Builds (or returns cached) Google Sheets service client.

        Returns:
            The Sheets API Resource, reusing a single client per store.
        """
        if self._cached_service is not None:
            return self._cached_service
        if not self.spreadsheet_id:
            raise status.SpreadsheetIdNotConfiguredException

        creds = self._get_credentials()
        try:
            service: Any = build('sheets', 'v4', credentials=creds, cache_discovery=False)
        except Exception as ex:
            raise status.ServiceUnavailableException(f'Could not build the Sheets client: {ex}') from ex
        logging.debug('Google Sheets service client created successfully.')
        self._cached_service = service
        return service

    def clear_service(self) -> None:
        """
        Clears the cached Sheets API client and worksheet lookup.
        """
        try:
            if self._cached_service:
                self._cached_service.close()
        except Exception as ex:
            logging.debug(f'Failed closing cached Sheets service client: {ex}')

        self._cached_service = None
        self._sheet = None

    def _execute(self, request: Any) -> Dict[str, Any]:
        """Execute a Sheets API request, translating transport errors.

        Raises:
            status.ServiceUnavailableException: On any API or transport failure.
        """
        try:
            return request.execute() or {}
        except HttpError as ex:
            stat: Optional[int] = ex.resp.status if ex.resp else None
            if stat == 404:
                raise status.ServiceUnavailableException(
                    f'Spreadsheet "{self.spreadsheet_id}" not found (HTTP 404).'
                ) from ex
            elif stat == 403:
                raise status.ServiceUnavailableException(
                    f'Access denied (HTTP 403) for spreadsheet "{self.spreadsheet_id}". '
                    'Please share the sheet with the service account.'
                ) from ex
            raise status.ServiceUnavailableException(
                f'Error accessing spreadsheet "{self.spreadsheet_id}": {ex}'
            ) from ex
        except socket.timeout as ex:
            raise status.ServiceUnavailableException(f'Timeout error talking to the Sheets API: {ex}') from ex
        except ssl.SSLError as ex:
            raise status.ServiceUnavailableException(f'SSL error talking to the Sheets API: {ex}') from ex

    def _get_sheet(self) -> Tuple[str, int]:
        """Return the title and id of the record worksheet, creating it if the spreadsheet has none.

        Raises:
            status.WorksheetNotFoundException: If a configured worksheet does not exist.
        """
        if self._sheet is not None:
            return self._sheet

        service = self.get_service()
        result = self._execute(service.spreadsheets().get(
            spreadsheetId=self.spreadsheet_id,
            fields='sheets(properties(title,sheetId))'
        ))
        sheets = [s.get('properties', {}) for s in result.get('sheets', [])]

        if self.worksheet:
            props = next((p for p in sheets if p.get('title') == self.worksheet), None)
            if props is None:
                raise status.WorksheetNotFoundException(
                    f'Worksheet "{self.worksheet}" not found in spreadsheet "{self.spreadsheet_id}".')
        elif sheets:
            props = sheets[0]
        else:
            logging.info('Spreadsheet has no worksheets, adding one.')
            reply = self._execute(service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={'requests': [{'addSheet': {'properties': {'title': 'Records'}}}]}
            ))
            props = reply['replies'][0]['addSheet']['properties']

        self._sheet = (props['title'], int(props.get('sheetId', 0)))
        self._ensure_header(self._sheet[0])
        return self._sheet

    def _ensure_header(self, title: str) -> None:
        service = self.get_service()
        result = self._execute(service.spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=f"'{title}'!A1:{LAST_COLUMN}1"
        ))
        if result.get('values'):
            return
        logging.info(f'Writing the header row to worksheet "{title}".')
        self._execute(service.spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=f"'{title}'!A1:{LAST_COLUMN}1",
            valueInputOption='RAW',
            body={'values': [HEADER]}
        ))

    def _get_rows(self) -> List[List[Any]]:
        """Return the data rows below the header.

        Blank rows are kept, so a row's index always maps to its position in the sheet.
        """
        title, _ = self._get_sheet()
        result = self._execute(self.get_service().spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=f"'{title}'!A2:{LAST_COLUMN}",
            valueRenderOption='UNFORMATTED_VALUE'
        ))
        return result.get('values', [])

    def _find_row(self, record_id: str) -> int:
        """Return the zero-based data row index of ``record_id``.

        Raises:
            status.RecordNotFoundException: If no row has that id.
        """
        for idx, row in enumerate(self._get_rows()):
            if row and str(row[0]) == str(record_id):
                return idx
        raise status.RecordNotFoundException(f'Record "{record_id}" not found.', status_code=404)

    def get_all_records(self) -> List[Dict[str, Any]]:
        """Return every stored record in sheet order.

        Blank rows are skipped, and so are rows without an id or a date, with a warning.
        """
        records = []
        for idx, row in enumerate(self._get_rows()):
            if not any(cell not in (None, '') for cell in row):
                continue
            record = row_to_record(row)
            if not record['id'] or not record['date']:
                logging.warning(f'Skipping sheet row {idx + 2}: it has no id or date.')
                continue
            records.append(record)
        logging.debug(f'Read {len(records)} records from the spreadsheet.')
        return records

    def add_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Append a record and return it."""
        title, _ = self._get_sheet()
        self._execute(self.get_service().spreadsheets().values().append(
            spreadsheetId=self.spreadsheet_id,
            range=f"'{title}'!A1",
            valueInputOption='RAW',
            insertDataOption='INSERT_ROWS',
            body={'values': [record_to_row(record)]}
        ))
        logging.debug(f'Added record {record.get("id")}.')
        return record

    def update_record(self, record_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Overwrite the row of ``record_id``. The stored id is kept.

        Raises:
            status.RecordNotFoundException: If no row has that id.
        """
        idx = self._find_row(record_id)
        title, _ = self._get_sheet()
        row_number = idx + 2
        values = record_to_row({**record, 'id': record_id})
        self._execute(self.get_service().spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=f"'{title}'!A{row_number}:{LAST_COLUMN}{row_number}",
            valueInputOption='RAW',
            body={'values': [values]}
        ))
        logging.debug(f'Updated record {record_id} on row {row_number}.')
        return record

    def delete_record(self, record_id: str) -> None:
        """Remove the row of ``record_id``.

        Raises:
            status.RecordNotFoundException: If no row has that id.
        """
        idx = self._find_row(record_id)
        _, sheet_id = self._get_sheet()
        self._execute(self.get_service().spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={'requests': [{
                'deleteDimension': {
                    'range': {
                        'sheetId': sheet_id,
                        'dimension': 'ROWS',
                        'startIndex': idx + 1,
                        'endIndex': idx + 2,
                    }
                }
            }]}
        ))
        logging.debug(f'Deleted record {record_id}.')
