"""Tests for FuelTracker.data.data: summary statistics, chart series and trends."""
import unittest

import pandas as pd

from FuelTracker.data import data
from FuelTracker.data.data import Field
from FuelTracker.settings import lib
from tests.base import BaseTestCase, make_record

FIRST = make_record('1', date='2025-01-05T12:00:00.000Z', price_per_gallon=5, gallons=10,
                    odometer_reading=1000)
SECOND = make_record('2', date='2025-01-20T12:00:00.000Z', price_per_gallon=5, gallons=20,
                     odometer_reading=1400, km_since_last_visit=400)
THIRD = make_record('3', date='2025-04-02T12:00:00.000Z', price_per_gallon=6, gallons=10,
                    odometer_reading=1700, km_since_last_visit=300)


class SummaryStatisticsTests(unittest.TestCase):
    def test_empty(self):
        stats = data.summary_statistics([])
        self.assertEqual(set(stats), set(data.SUMMARY_KEYS))
        self.assertTrue(all(v == 0 for v in stats.values()))
        self.assertEqual(stats['record_count'], 0)

    def test_first_record_excluded_from_average_efficiency(self):
        stats = data.summary_statistics([SECOND, FIRST])
        self.assertEqual(stats['record_count'], 2)
        self.assertEqual(stats['total_spent'], 150)
        self.assertEqual(stats['total_gallons'], 30)
        self.assertEqual(stats['total_distance'], 400)
        self.assertEqual(stats['average_efficiency'], 20)
        self.assertEqual(stats['average_price_per_gallon'], 5)

    def test_only_zero_efficiency(self):
        self.assertEqual(data.summary_statistics([FIRST])['average_efficiency'], 0)

    def test_average_over_positive_records(self):
        stats = data.summary_statistics([FIRST, SECOND, THIRD])
        self.assertAlmostEqual(stats['average_efficiency'], 25)
        self.assertAlmostEqual(stats['average_price_per_gallon'], 16 / 3)


class TimeSeriesTests(unittest.TestCase):
    def test_chronological(self):
        points = data.time_series([THIRD, SECOND, FIRST], Field.OdometerReading)
        self.assertEqual([v for _, v in points], [1000, 1400, 1700])
        self.assertEqual([label for label, _ in points], ['Jan 5', 'Jan 20', 'Apr 2'])

    def test_efficiency_series_skips_zero(self):
        self.assertEqual(data.efficiency_series([SECOND, FIRST, THIRD]), [('Jan 20', 20), ('Apr 2', 30)])

    def test_price_series(self):
        self.assertEqual([v for _, v in data.price_series([THIRD, FIRST])], [5, 6])

    def test_values_rounded(self):
        record = make_record('x', gallons=3, km_since_last_visit=100)
        self.assertEqual(data.time_series([record], Field.Efficiency), [('Jan 1', 33.33)])

    def test_callable_selector(self):
        points = data.time_series([FIRST, SECOND], lambda r: r.total_amount * 2)
        self.assertEqual([v for _, v in points], [100, 200])

    def test_string_selector(self):
        self.assertEqual(data.time_series([FIRST], 'gallons'), [('Jan 5', 10)])
        with self.assertRaises(ValueError):
            data.time_series([FIRST], 'colour')

    def test_localized_labels(self):
        label = data.time_series([FIRST], Field.Gallons, locale_name='de_DE')[0][0]
        self.assertIn('5', label)
        self.assertNotEqual(label, 'Jan 5')


class FrameAndTrendTests(unittest.TestCase):
    def test_records_to_frame(self):
        df = data.records_to_frame([THIRD, FIRST, SECOND])
        self.assertEqual(list(df.columns), data.FRAME_COLUMNS)
        self.assertEqual(list(df['id']), ['1', '2', '3'])
        self.assertEqual(list(df['efficiency']), [0, 20, 30])
        self.assertTrue(pd.api.types.is_datetime64_any_dtype(df['date']))

    def test_empty_frame(self):
        self.assertTrue(data.records_to_frame([]).empty)
        self.assertEqual(list(data.get_trends([]).columns), data.TREND_DATA_COLUMNS)

    def test_trends_fill_missing_months(self):
        trends = data.get_trends([FIRST, SECOND, THIRD])
        self.assertEqual(list(trends.columns), data.TREND_DATA_COLUMNS)
        self.assertEqual(len(trends), 4)
        self.assertEqual(list(trends['monthly_total']), [150, 0, 0, 60])
        self.assertEqual(trends['month'].iloc[0], pd.Timestamp('2025-01-01'))
        self.assertFalse(trends['loess'].isna().any())

    def test_short_trend_is_not_smoothed(self):
        trends = data.get_trends([FIRST, SECOND])
        self.assertEqual(list(trends['loess']), [150])

    def test_invalid_fraction(self):
        with self.assertRaises(ValueError):
            data.get_trends([FIRST], loess_fraction=0)


class FormatAndAnalyticsTests(BaseTestCase):
    def test_format_summary(self):
        text = data.format_summary(data.summary_statistics([FIRST, SECOND]), 'en_US', 'USD')
        self.assertEqual(text['total_spent'], '$150.00')
        self.assertEqual(text['total_gallons'], '30.0')
        self.assertEqual(text['total_distance'], '400')
        self.assertEqual(text['average_efficiency'], '20.00')
        self.assertEqual(text['record_count'], '2')

    def test_get_analytics_uses_metadata(self):
        lib.settings['currency'] = 'USD'
        result = data.get_analytics([FIRST, SECOND, THIRD])
        self.assertEqual(result['summary']['record_count'], 3)
        self.assertTrue(result['display']['total_spent'].startswith('$'))
        self.assertEqual(len(result['efficiency']), 2)
        self.assertEqual(len(result['price']), 3)
        self.assertEqual(len(result['trends']), 4)
