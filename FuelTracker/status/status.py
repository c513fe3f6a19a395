"""Status definitions and exceptions for FuelTracker.

This module provides:
    - Status: enumeration of possible application states
    - STATUS_MESSAGE: user-facing messages for each status
    - get_message: retrieve the message for a status
    - BaseStatusException: base exception carrying a Status
    - Specific exceptions grouped by where they are raised:

      * entry validation (:class:`RecordInvalidException`)
      * local persistence (:class:`CacheInvalidException`)
      * the remote gateway (:class:`GatewayException` and subclasses)
      * configuration and the spreadsheet backend

Gateway exceptions are recoverable: the repository logs them and carries on,
so they never emit the user-facing ``error`` signal.
"""
import enum
import logging
from typing import Dict, Optional


class Status(enum.StrEnum):
    """Enumeration of application status codes."""
    UnknownStatus = enum.auto()
    Okay = enum.auto()

    # Config status
    SettingsNotFound = enum.auto()
    SettingsInvalid = enum.auto()

    # Entry status
    RecordInvalid = enum.auto()

    # Local cache status
    CacheInvalid = enum.auto()

    # Gateway status
    ServiceUnavailable = enum.auto()
    ResponseInvalid = enum.auto()
    RemoteError = enum.auto()
    RecordNotFound = enum.auto()

    # Spreadsheet backend status
    SpreadsheetIdNotConfigured = enum.auto()
    WorksheetNotFound = enum.auto()
    CredsNotFound = enum.auto()


STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Unknown status. Please check the settings.',
    Status.Okay: 'Everything is okay.',

    Status.SettingsNotFound: 'Could not find the settings file.',
    Status.SettingsInvalid: 'The settings seem to be incomplete, or contain invalid values.',

    Status.RecordInvalid: 'The fuel record is incomplete or contains invalid values.',

    Status.CacheInvalid: 'Could not read or write the local record cache.',

    Status.ServiceUnavailable: 'The records service is unavailable. Please check your connection.',
    Status.ResponseInvalid: 'The records service returned an unexpected response.',
    Status.RemoteError: 'The records service reported an error.',
    Status.RecordNotFound: 'The record could not be found on the server.',

    Status.SpreadsheetIdNotConfigured: 'Could not find a valid spreadsheet id. Is GOOGLE_SHEET_ID set?',
    Status.WorksheetNotFound: 'Could not find the worksheet in the spreadsheet.',
    Status.CredsNotFound: 'Could not find the Google service account credentials.',
}


def get_message(status: Status) -> str:
    """
    Get the message for a given status.

    Args:
        status (Status): The status enum.

    Returns:
        str: The message associated with the status.
    """
    return STATUS_MESSAGE.get(status, 'Unknown status')


class BaseStatusException(Exception):
    """Base exception for status-based errors in FuelTracker.

    Attributes:
        status (Status): Status code associated with this error.
        status_message (str): User-facing message for the status.
        user_facing (bool): Whether the error is announced on ``signals.error``.

    Args:
        message (str): Optional additional context for the error.
    """
    status = Status.UnknownStatus
    user_facing = True
    log_level = logging.ERROR

    def __init__(self, message: Optional[str] = None):
        self.status_message = get_message(self.status)
        self.detail = message
        exception_message = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(exception_message)

        logging.log(self.log_level, exception_message)

        if not self.user_facing:
            return

        from ..ui.actions import signals
        signals.error.emit(message or self.status_message)


class UnknownException(BaseStatusException):
    """Exception for an unknown error during status processing."""
    pass


class SettingsNotFoundException(BaseStatusException):
    """Exception raised when the settings file cannot be found."""
    status = Status.SettingsNotFound


class SettingsInvalidException(BaseStatusException):
    """Exception raised when the settings file is invalid or malformed."""
    status = Status.SettingsInvalid


class RecordInvalidException(BaseStatusException):
    """Exception raised when a user-entered record field fails validation.

    Args:
        message: Description of the problem.
        field: Name of the offending record field, if known.
    """
    status = Status.RecordInvalid
    log_level = logging.WARNING

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class CacheInvalidException(BaseStatusException):
    """Exception raised when the local record cache cannot be read or written."""
    status = Status.CacheInvalid


class GatewayException(BaseStatusException):
    """Base exception for failures talking to the remote records service.

    Args:
        message: Description of the failure.
        status_code: HTTP status of the response, if one was received.
    """
    status = Status.ServiceUnavailable
    user_facing = False
    log_level = logging.WARNING

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ServiceUnavailableException(GatewayException):
    """Exception raised when the remote service cannot be reached."""
    status = Status.ServiceUnavailable


class ResponseInvalidException(GatewayException):
    """Exception raised on a non-success HTTP status or a malformed response body."""
    status = Status.ResponseInvalid


class RemoteErrorException(GatewayException):
    """Exception raised when the service answers with ``success: false``."""
    status = Status.RemoteError


class RecordNotFoundException(GatewayException):
    """Exception raised when an update or delete references an unknown record id."""
    status = Status.RecordNotFound


class SpreadsheetIdNotConfiguredException(BaseStatusException):
    """Exception raised when the backend has no spreadsheet id configured."""
    status = Status.SpreadsheetIdNotConfigured
    user_facing = False


class WorksheetNotFoundException(BaseStatusException):
    """Exception raised when the configured worksheet does not exist."""
    status = Status.WorksheetNotFound
    user_facing = False


class CredsNotFoundException(BaseStatusException):
    """Exception raised when the backend service account credentials are missing."""
    status = Status.CredsNotFound
    user_facing = False
