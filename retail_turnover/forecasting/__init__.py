"""
Forecasting Module
==================

Series transformation, ETS and ARIMA candidate fitting, and evaluation
for monthly retail turnover.
"""

from .transforms import (
    SeriesTransformer,
    Differencer,
    guerrero_lambda,
    box_cox,
    inv_box_cox,
    difference,
    seasonal_then_first_difference,
    kpss_test,
    ndiffs,
    nsdiffs,
)
from .base import CandidateFit
from .ets_forecaster import ETSForecaster
from .arima_forecaster import ARIMAForecaster
from .model_evaluation import ForecastEvaluator

__all__ = [
    "SeriesTransformer",
    "Differencer",
    "guerrero_lambda",
    "box_cox",
    "inv_box_cox",
    "difference",
    "seasonal_then_first_difference",
    "kpss_test",
    "ndiffs",
    "nsdiffs",
    "CandidateFit",
    "ETSForecaster",
    "ARIMAForecaster",
    "ForecastEvaluator",
]
