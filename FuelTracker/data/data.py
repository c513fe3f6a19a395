"""Fuel metrics API.

Pure aggregation over a record collection for the analytics view: the summary cards,
the per-record charts and a smoothed monthly spending trend. Nothing here reads the
cache or the service; callers pass in the records they got from the repository.
"""
import enum
import logging
from typing import Callable, Dict, Iterable, List, Tuple, Union

import pandas as pd
from statsmodels.nonparametric.smoothers_lowess import lowess

from ..core.model import FuelRecord, sort_records
from ..settings import locale

SUMMARY_KEYS: List[str] = [
    'total_spent',
    'total_gallons',
    'total_distance',
    'average_efficiency',
    'average_price_per_gallon',
    'record_count',
]

FRAME_COLUMNS: List[str] = [
    'id',
    'date',
    'gas_station_name',
    'service_type',
    'price_per_gallon',
    'gallons',
    'total_amount',
    'odometer_reading',
    'km_since_last_visit',
    'efficiency',
]

TREND_DATA_COLUMNS: List[str] = ['month', 'monthly_total', 'loess']


class Field(enum.StrEnum):
    """Record values that can be charted."""
    Efficiency = 'efficiency'
    PricePerGallon = 'price_per_gallon'
    TotalAmount = 'total_amount'
    Gallons = 'gallons'
    KmSinceLastVisit = 'km_since_last_visit'
    OdometerReading = 'odometer_reading'


FieldSelector = Union[Field, str, Callable[[FuelRecord], float]]


def _selector(field: FieldSelector) -> Callable[[FuelRecord], float]:
    if callable(field) and not isinstance(field, str):
        return field
    name = Field(field).value
    return lambda record: float(getattr(record, name))


def records_to_frame(records: Iterable[FuelRecord]) -> pd.DataFrame:
    """Return the records as a DataFrame, oldest first.

    The ``date`` column holds timezone-aware UTC timestamps and ``efficiency`` the
    derived km per gallon.
    """
    rows = [
        {**{c: getattr(r, c) for c in FRAME_COLUMNS if c not in ('date', 'service_type')},
         'date': r.timestamp,
         'service_type': str(r.service_type)}
        for r in sort_records(records, descending=False)
    ]
    if not rows:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df['date'] = pd.to_datetime(df['date'], utc=True)
    return df.reset_index(drop=True)


def summary_statistics(records: Iterable[FuelRecord]) -> Dict[str, Union[float, int]]:
    """Compute the summary figures of a record collection.

    Args:
        records: The records to aggregate, in any order.

    Returns:
        dict: ``total_spent``, ``total_gallons``, ``total_distance``, ``average_efficiency``,
        ``average_price_per_gallon`` and ``record_count``. All zero for no records.

    ``average_efficiency`` only averages records with a positive efficiency, so a first
    record (no distance yet) does not pull the average down.
    """
    df = records_to_frame(records)
    if df.empty:
        return {k: 0 if k == 'record_count' else 0.0 for k in SUMMARY_KEYS}

    positive = df.loc[df['efficiency'] > 0, 'efficiency']
    stats = {
        'total_spent': float(df['total_amount'].sum()),
        'total_gallons': float(df['gallons'].sum()),
        'total_distance': float(df['km_since_last_visit'].sum()),
        'average_efficiency': float(positive.mean()) if not positive.empty else 0.0,
        'average_price_per_gallon': float(df['price_per_gallon'].mean()),
        'record_count': int(len(df)),
    }
    logging.debug(f'Summary statistics over {stats["record_count"]} records: {stats}')
    return stats


def time_series(
        records: Iterable[FuelRecord],
        field: FieldSelector,
        positive_only: bool = False,
        locale_name: str = locale.DEFAULT_LOCALE,
) -> List[Tuple[str, float]]:
    """Project the records onto chart points, oldest first.

    Args:
        records: The records, in any order.
        field: A :class:`Field` (or its value) or a callable returning a value for a record.
        positive_only: Drop points whose value is not positive.
        locale_name: Locale used for the date labels.

    Returns:
        list: ``(label, value)`` pairs. Labels are short dates such as ``Jan 5`` and values
        are rounded to two decimals.
    """
    select = _selector(field)
    # Newest-first collection, reversed for charting
    ordered = list(reversed(sort_records(records)))

    points = []
    for record in ordered:
        value = select(record)
        if positive_only and not value > 0:
            continue
        label = locale.format_label_date(record.timestamp, locale_name)
        points.append((label, round(value, 2)))
    return points


def efficiency_series(records: Iterable[FuelRecord], locale_name: str = locale.DEFAULT_LOCALE) -> List[Tuple[str, float]]:
    """Chart points of the fuel efficiency, excluding records without one."""
    return time_series(records, Field.Efficiency, positive_only=True, locale_name=locale_name)


def price_series(records: Iterable[FuelRecord], locale_name: str = locale.DEFAULT_LOCALE) -> List[Tuple[str, float]]:
    """Chart points of the price per gallon."""
    return time_series(records, Field.PricePerGallon, locale_name=locale_name)


def get_trends(records: Iterable[FuelRecord], loess_fraction: float = 0.25) -> pd.DataFrame:
    """Compute monthly spending with LOESS smoothing.

    Months between the first and the last purchase without any record count as zero.

    Args:
        records: The records, in any order.
        loess_fraction: Fraction of data for LOESS smoothing (0 < loess_fraction <= 1).

    Returns:
        pd.DataFrame: Trend data with columns ['month', 'monthly_total', 'loess'].
    """
    if not 0 < loess_fraction <= 1:
        raise ValueError(f'loess_fraction must be in (0, 1], got {loess_fraction}')

    df = records_to_frame(records)
    if df.empty:
        return pd.DataFrame(columns=TREND_DATA_COLUMNS)

    df['period'] = df['date'].dt.tz_convert(None).dt.to_period('M')
    periods = pd.period_range(df['period'].min(), df['period'].max(), freq='M')
    series = df.groupby('period')['total_amount'].sum().reindex(periods, fill_value=0)

    vals = series.values.astype(float)
    if len(vals) < 3:
        loess_vals = vals.copy()
    else:
        x = pd.RangeIndex(stop=len(vals))
        # Each local fit needs at least three months
        frac = max(loess_fraction, min(1.0, 3 / len(vals)))
        loess_vals = lowess(vals, x, frac=frac, return_sorted=False)

    df_trends = pd.DataFrame({
        'month': periods.to_timestamp(how='start'),
        'monthly_total': vals,
        'loess': loess_vals,
    })
    return df_trends[TREND_DATA_COLUMNS]


def format_summary(stats: Dict[str, Union[float, int]], locale_name: str = locale.DEFAULT_LOCALE,
                   currency: str = 'GTQ') -> Dict[str, str]:
    """Format summary figures for display.

    Returns:
        dict: The keys of :func:`summary_statistics` mapped to display strings.
    """
    return {
        'total_spent': locale.format_currency_value(stats['total_spent'], currency, locale_name),
        'total_gallons': locale.format_float(stats['total_gallons'], locale_name, decimals=1),
        'total_distance': locale.format_float(stats['total_distance'], locale_name, decimals=0),
        'average_efficiency': locale.format_float(stats['average_efficiency'], locale_name),
        'average_price_per_gallon': locale.format_float(stats['average_price_per_gallon'], locale_name),
        'record_count': str(stats['record_count']),
    }


def get_analytics(records: Iterable[FuelRecord]) -> Dict[str, object]:
    """Build everything the analytics view shows, using the metadata settings.

    The ``locale``, ``currency`` and ``loess_fraction`` metadata values drive the
    formatting and the trend smoothing.

    Returns:
        dict: ``summary`` (raw figures), ``display`` (formatted figures), ``efficiency``
        and ``price`` chart points, and ``trends`` (a DataFrame).
    """
    from ..settings import lib
    config = lib.settings.get_section('metadata')
    locale_name = config.get('locale', locale.DEFAULT_LOCALE)

    records = list(records)
    stats = summary_statistics(records)
    return {
        'summary': stats,
        'display': format_summary(stats, locale_name, config.get('currency', 'GTQ')),
        'efficiency': efficiency_series(records, locale_name),
        'price': price_series(records, locale_name),
        'trends': get_trends(records, config.get('loess_fraction', 0.25)),
    }
