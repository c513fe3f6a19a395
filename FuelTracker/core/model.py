"""Fuel record model and its derived-metric formulas.

A :class:`FuelRecord` is one fuel purchase. Two of its fields are derived:

- ``total_amount`` is ``price_per_gallon * gallons`` at the time the record is saved.
- ``km_since_last_visit`` is the distance from the previous odometer reading, computed
  once when the record is created and never recomputed afterwards.

Records travel as JSON objects with camelCase keys (see :data:`WIRE_FIELDS`), both in the
local cache and over the REST API.
"""
import datetime
import enum
import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional

from dateutil import parser as date_parser


class ServiceType(enum.StrEnum):
    """Fuel station service type."""
    FullService = 'Full Service'
    SelfService = 'Self Service'


# Wire key -> attribute name
WIRE_FIELDS: Dict[str, str] = {
    'id': 'id',
    'date': 'date',
    'gasStationName': 'gas_station_name',
    'serviceType': 'service_type',
    'pricePerGallon': 'price_per_gallon',
    'gallons': 'gallons',
    'totalAmount': 'total_amount',
    'odometerReading': 'odometer_reading',
    'kmSinceLastVisit': 'km_since_last_visit',
}

NUMERIC_WIRE_FIELDS = ('pricePerGallon', 'gallons', 'totalAmount', 'odometerReading', 'kmSinceLastVisit')
REQUIRED_WIRE_FIELDS = ('id', 'date', 'pricePerGallon', 'gallons', 'odometerReading')


def compute_total_amount(price_per_gallon: float, gallons: float) -> float:
    """Return the purchase total for a price and a volume."""
    return price_per_gallon * gallons


def compute_distance_since_last(current_odometer: float, previous_odometer: Optional[float] = None) -> float:
    """Return the distance driven since the previous reading.

    Args:
        current_odometer: The new odometer reading, in km.
        previous_odometer: The last known reading, or None if there is no previous record.

    Returns:
        float: ``max(0, current - previous)``, or 0 without a previous reading.
    """
    if previous_odometer is None:
        return 0.0
    return max(0.0, current_odometer - previous_odometer)


def compute_efficiency(record: 'FuelRecord') -> float:
    """Return km per gallon for a record.

    Returns 0 whenever the distance or the volume is not positive, so the result is
    always finite.
    """
    if not record.km_since_last_visit > 0 or not record.gallons > 0:
        return 0.0
    value = record.km_since_last_visit / record.gallons
    return value if math.isfinite(value) else 0.0


def parse_date(value: Any) -> datetime.datetime:
    """Parse an ISO 8601 date string into a timezone-aware datetime.

    Naive values are taken as UTC so that all record dates compare with each other.

    Raises:
        ValueError: If the value is not a valid ISO 8601 string.
    """
    if isinstance(value, datetime.datetime):
        dt = value
    elif isinstance(value, datetime.date):
        dt = datetime.datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        dt = date_parser.isoparse(value.strip())
    else:
        raise ValueError(f'Invalid date value: {value!r}')

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt


def format_date(value: datetime.datetime) -> str:
    """Format a datetime as an ISO 8601 UTC string, e.g. ``2025-12-26T00:00:00.000Z``."""
    dt = parse_date(value).astimezone(datetime.timezone.utc)
    return dt.strftime('%Y-%m-%dT%H:%M:%S.') + f'{dt.microsecond // 1000:03d}Z'


@dataclass
class FuelRecord:
    """One fuel purchase."""
    id: str
    date: str
    gas_station_name: str
    service_type: ServiceType
    price_per_gallon: float
    gallons: float
    total_amount: float
    odometer_reading: float
    km_since_last_visit: float

    @property
    def timestamp(self) -> datetime.datetime:
        """The purchase date as an aware datetime."""
        return parse_date(self.date)

    @property
    def efficiency(self) -> float:
        """Km per gallon, 0 when it cannot be computed."""
        return compute_efficiency(self)

    def with_values(self, **kwargs: Any) -> 'FuelRecord':
        """Return a copy with the given attributes replaced."""
        return replace(self, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Return the record's wire representation."""
        data = {key: getattr(self, attr) for key, attr in WIRE_FIELDS.items()}
        data['serviceType'] = str(self.service_type)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FuelRecord':
        """Build a record from its wire representation.

        ``gasStationName``, ``serviceType``, ``totalAmount`` and ``kmSinceLastVisit`` are
        optional: they default to an empty name, full service, ``price * gallons`` and 0.

        Raises:
            ValueError: If a required field is missing or a value cannot be converted.
        """
        if not isinstance(data, dict):
            raise ValueError(f'Record must be an object, got {type(data).__name__}.')

        missing = [k for k in REQUIRED_WIRE_FIELDS if data.get(k) in (None, '')]
        if missing:
            raise ValueError(f'Record is missing required fields: {", ".join(missing)}.')

        values: Dict[str, float] = {}
        for key in NUMERIC_WIRE_FIELDS:
            if data.get(key) in (None, ''):
                continue
            if isinstance(data[key], bool):
                raise ValueError(f'Field "{key}" must be a number, got {data[key]!r}.')
            try:
                value = float(data[key])
            except (TypeError, ValueError) as ex:
                raise ValueError(f'Field "{key}" must be a number, got {data[key]!r}.') from ex
            if not math.isfinite(value):
                raise ValueError(f'Field "{key}" must be finite, got {data[key]!r}.')
            values[key] = value

        date = data['date']
        parse_date(date)

        try:
            service_type = ServiceType(data.get('serviceType') or ServiceType.FullService)
        except ValueError as ex:
            raise ValueError(f'Unknown service type: {data.get("serviceType")!r}.') from ex

        price = values['pricePerGallon']
        gallons = values['gallons']
        return cls(
            id=str(data['id']),
            date=date if isinstance(date, str) else format_date(date),
            gas_station_name=str(data.get('gasStationName') or ''),
            service_type=service_type,
            price_per_gallon=price,
            gallons=gallons,
            total_amount=values.get('totalAmount', compute_total_amount(price, gallons)),
            odometer_reading=values['odometerReading'],
            km_since_last_visit=values.get('kmSinceLastVisit', 0.0),
        )


def sort_records(records: Iterable[FuelRecord], descending: bool = True) -> List[FuelRecord]:
    """Return the records ordered by purchase date, newest first by default.

    The sort is stable, so records sharing a date keep their relative order.
    """
    return sorted(records, key=lambda r: r.timestamp, reverse=descending)


def records_from_payload(payload: Any) -> List[FuelRecord]:
    """Convert a list of wire dicts into records.

    Raises:
        ValueError: If the payload is not a list or any item is malformed.
    """
    if not isinstance(payload, list):
        raise ValueError(f'Expected a list of records, got {type(payload).__name__}.')
    return [FuelRecord.from_dict(item) for item in payload]


def records_to_payload(records: Iterable[FuelRecord]) -> List[Dict[str, Any]]:
    """Convert records into a list of wire dicts."""
    return [r.to_dict() for r in records]


def last_odometer_reading(records: Iterable[FuelRecord]) -> Optional[float]:
    """Return the odometer reading of the most recent record, or None if there are none."""
    records = sort_records(records)
    if not records:
        logging.debug('No records, no last odometer reading.')
        return None
    return records[0].odometer_reading
