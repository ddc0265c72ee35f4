"""
Retail Turnover Forecasting
===========================

Monthly retail turnover by state and industry: download, clean, select
one series, transform, fit ETS and ARIMA candidates and compare them on
a held-out test period.

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Retail Analytics Team"

from .common import DataLoader, Preprocessor, Visualizer, Reporter
from .forecasting import (
    SeriesTransformer,
    ETSForecaster,
    ARIMAForecaster,
    ForecastEvaluator,
)

__all__ = [
    "DataLoader",
    "Preprocessor",
    "Visualizer",
    "Reporter",
    "SeriesTransformer",
    "ETSForecaster",
    "ARIMAForecaster",
    "ForecastEvaluator",
]
