"""
Exceptions
==========

Explicit failure modes of the turnover forecasting pipeline.
"""


class RetailForecastError(Exception):
    """Base class for all pipeline errors."""


class DataFetchError(RetailForecastError):
    """The statistics table could not be downloaded."""


class LabelParseError(RetailForecastError, ValueError):
    """A composite series label does not split into category, region and industry."""

    def __init__(self, label: str, reason: str = "expected three non-empty fields"):
        self.label = label
        super().__init__(f"Malformed series label {label!r}: {reason}")


class EmptySeriesPoolError(RetailForecastError):
    """Cleaning left no complete series to analyse."""


class ModelFitError(RetailForecastError):
    """A requested candidate model could not be estimated."""

    def __init__(self, model_name: str, reason: str):
        self.model_name = model_name
        super().__init__(f"Failed to fit {model_name}: {reason}")
