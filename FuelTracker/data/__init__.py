"""Fuel metrics: summary statistics, chart series and spending trends."""
