"""Entry workflow: validate user-entered fields and build records.

Validation happens here, before the repository is involved, so an invalid entry never
causes a mutation. Numeric fields may arrive as form strings.
"""
import datetime
import logging
import math
import threading
import time
from typing import Any, Optional

from .model import (
    FuelRecord,
    ServiceType,
    compute_distance_since_last,
    compute_total_amount,
    format_date,
    parse_date,
)
from ..status import status

_id_lock = threading.Lock()
_last_id: int = 0


def new_record_id() -> str:
    """Return a new client-side record id.

    Ids are milliseconds since the epoch, bumped when needed so they keep increasing
    within the process.
    """
    global _last_id
    with _id_lock:
        value = max(int(time.time() * 1000), _last_id + 1)
        _last_id = value
    return str(value)


def _parse_positive(value: Any, field: str, label: str) -> float:
    if isinstance(value, bool):
        raise status.RecordInvalidException(f'Please enter valid {label}.', field=field)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise status.RecordInvalidException(f'Please enter valid {label}.', field=field)
    if not math.isfinite(number) or not number > 0:
        raise status.RecordInvalidException(f'Please enter valid {label}.', field=field)
    return number


def validate_entry(
        gas_station_name: str,
        price_per_gallon: Any,
        gallons: Any,
        odometer_reading: Any,
        last_odometer: Optional[float] = None,
        editing: bool = False,
) -> None:
    """Validate the user-entered fields of a record.

    Args:
        gas_station_name: Station name, must not be blank.
        price_per_gallon: Must be a positive number.
        gallons: Must be a positive number.
        odometer_reading: Must be a positive number, and greater than ``last_odometer``
            unless an existing record is being edited.
        last_odometer: The most recent known odometer reading, if any.
        editing: True when an existing record is being edited.

    Raises:
        status.RecordInvalidException: Naming the first invalid field.
    """
    if not (gas_station_name or '').strip():
        raise status.RecordInvalidException('Please enter gas station name.', field='gas_station_name')

    _parse_positive(price_per_gallon, 'price_per_gallon', 'price per gallon')
    _parse_positive(gallons, 'gallons', 'amount of gallons')
    odometer = _parse_positive(odometer_reading, 'odometer_reading', 'odometer reading')

    if not editing and last_odometer is not None and odometer <= last_odometer:
        raise status.RecordInvalidException(
            f'Odometer reading must be greater than last reading ({last_odometer:g}).',
            field='odometer_reading'
        )


def build_record(
        date: Any,
        gas_station_name: str,
        service_type: Any,
        price_per_gallon: Any,
        gallons: Any,
        odometer_reading: Any,
        last_odometer: Optional[float] = None,
        editing: Optional[FuelRecord] = None,
) -> FuelRecord:
    """Validate the entered values and return the record to save.

    A new record gets a fresh id and its distance from ``last_odometer``. An edited record
    keeps its id and its original ``km_since_last_visit``; only ``total_amount`` is
    recomputed from the new price and volume.

    Raises:
        status.RecordInvalidException: If any field is invalid.
    """
    validate_entry(
        gas_station_name,
        price_per_gallon,
        gallons,
        odometer_reading,
        last_odometer=last_odometer,
        editing=editing is not None,
    )

    try:
        service_type = ServiceType(service_type)
    except ValueError:
        raise status.RecordInvalidException(f'Unknown service type: {service_type!r}.', field='service_type')

    if date is None:
        date = datetime.datetime.now(datetime.timezone.utc)
    try:
        date_str = format_date(parse_date(date))
    except ValueError:
        raise status.RecordInvalidException(f'Invalid date: {date!r}.', field='date')

    price = float(price_per_gallon)
    volume = float(gallons)
    odometer = float(odometer_reading)

    total_amount = compute_total_amount(price, volume)
    if not math.isfinite(total_amount):
        raise status.RecordInvalidException('Total amount is too large.', field='gallons')

    if editing is not None:
        record_id = editing.id
        km_since_last_visit = editing.km_since_last_visit
    else:
        record_id = new_record_id()
        km_since_last_visit = compute_distance_since_last(odometer, last_odometer)

    record = FuelRecord(
        id=record_id,
        date=date_str,
        gas_station_name=gas_station_name.strip(),
        service_type=service_type,
        price_per_gallon=price,
        gallons=volume,
        total_amount=total_amount,
        odometer_reading=odometer,
        km_since_last_visit=km_since_last_visit,
    )
    logging.debug(f'Built record {record.id} (editing={editing is not None}).')
    return record
