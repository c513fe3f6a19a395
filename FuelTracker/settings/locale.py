"""
Module for formatting decimal, currency and chart label values using Babel.

"""
import datetime
import logging
from typing import List

from babel import Locale, UnknownLocaleError, numbers
from babel.dates import format_date

DEFAULT_LOCALE: str = 'en_US'

# Short month and day, e.g. "Jan 5" for en_US
LABEL_DATE_FORMAT: str = 'MMM d'

LOCALE_MAP: List[str] = [
    "en_US",
    "en_GB",
    "es_GT",
    "es_ES",
    "es_MX",
    "de_DE",
    "fr_FR",
    "hu_HU",
    "pt_BR",
]


def parse_locale(locale: str) -> Locale:
    """
    Parse a locale string, falling back to :data:`DEFAULT_LOCALE` if it is unknown.

    Args:
        locale (str): Locale string, e.g. 'es_GT'.

    Returns:
        babel.Locale: The parsed locale.
    """
    try:
        return Locale.parse(locale)
    except (UnknownLocaleError, ValueError, TypeError):
        logging.warning(f'Unknown locale "{locale}", using {DEFAULT_LOCALE}.')
        return Locale.parse(DEFAULT_LOCALE)


def format_float(value: float, locale: str, decimals: int = 2) -> str:
    """
    Format a float as a decimal string according to the locale conventions.

    Args:
        value (float): The numeric value to be formatted.
        locale (str): Locale string, e.g. 'en_US'.
        decimals (int): Number of fraction digits to show.

    Returns:
        str: The formatted decimal string.
    """
    pattern = '#,##0' + ('.' + '0' * decimals if decimals > 0 else '')
    return numbers.format_decimal(value, format=pattern, locale=parse_locale(locale))


def format_currency_value(value: float, currency: str, locale: str) -> str:
    """
    Format a float as a currency string.

    Args:
        value (float): The numeric value to be formatted.
        currency (str): ISO currency code, e.g. 'GTQ'.
        locale (str): Locale string, e.g. 'es_GT'.

    Returns:
        str: The formatted currency string.
    """
    return numbers.format_currency(value, currency=currency, locale=parse_locale(locale))


def format_label_date(value: datetime.date, locale: str) -> str:
    """
    Format a date as a short chart axis label.

    Args:
        value: The date or datetime to format.
        locale (str): Locale string.

    Returns:
        str: e.g. 'Jan 5' for en_US.
    """
    return format_date(value, LABEL_DATE_FORMAT, locale=parse_locale(locale))
