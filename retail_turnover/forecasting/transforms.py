"""
Series Transformation Module
============================

Variance stabilisation (Box-Cox with Guerrero's lambda), seasonal and
ordinary differencing with exact re-integration, and KPSS-based
heuristics for the number of differences.

Usage:
    from retail_turnover.forecasting import SeriesTransformer

    transformer = SeriesTransformer(seasonal_period=12)
    result = transformer.fit_transform(train)
    print(result.lmbda, result.kpss_after.is_stationary)
"""

from dataclasses import dataclass, field
from typing import Optional, List, Tuple, Union
import warnings

import numpy as np
import pandas as pd
from scipy import optimize, special, stats
from statsmodels.tsa.seasonal import STL
from statsmodels.tsa.stattools import kpss
from loguru import logger

ArrayLike = Union[pd.Series, np.ndarray]


def guerrero_lambda(
    series: ArrayLike,
    period: int = 12,
    bounds: Tuple[float, float] = (-1.0, 2.0)
) -> float:
    """
    Select a Box-Cox lambda with Guerrero's method.

    The series is cut into non-overlapping subseries of length ``period``
    (aligned to the end of the series); lambda minimises the coefficient
    of variation of ``sd / mean ** (1 - lambda)`` across subseries.
    """
    x = np.asarray(series, dtype=float)
    if np.any(x <= 0):
        raise ValueError("Guerrero's method requires strictly positive data")

    period = max(2, int(period))
    n_groups = len(x) // period
    if n_groups < 2:
        raise ValueError(f"Need at least {2 * period} observations, got {len(x)}")

    groups = x[len(x) - n_groups * period:].reshape(n_groups, period)
    means = groups.mean(axis=1)
    sds = groups.std(axis=1, ddof=1)

    def coefficient_of_variation(lam: float) -> float:
        ratio = sds / means ** (1 - lam)
        return np.std(ratio, ddof=1) / np.mean(ratio)

    result = optimize.minimize_scalar(coefficient_of_variation, bounds=bounds, method='bounded')
    return float(result.x)


def box_cox(series: ArrayLike, lmbda: float) -> ArrayLike:
    """Box-Cox transform; keeps the index when given a pd.Series."""
    values = np.asarray(series, dtype=float)
    if np.any(values <= 0):
        raise ValueError("Box-Cox transform requires strictly positive data")
    transformed = stats.boxcox(values, lmbda=lmbda)
    if isinstance(series, pd.Series):
        return pd.Series(transformed, index=series.index, name=series.name)
    return transformed


def inv_box_cox(values: ArrayLike, lmbda: float) -> ArrayLike:
    """Inverse Box-Cox transform."""
    restored = special.inv_boxcox(np.asarray(values, dtype=float), lmbda)
    if isinstance(values, pd.Series):
        return pd.Series(restored, index=values.index, name=values.name)
    if isinstance(values, pd.DataFrame):
        return pd.DataFrame(restored, index=values.index, columns=values.columns)
    return restored


def difference(series: ArrayLike, lag: int = 1) -> ArrayLike:
    """Lagged difference ``y[t] - y[t - lag]``; output is ``lag`` points shorter."""
    if lag < 1:
        raise ValueError("lag must be >= 1")
    if isinstance(series, pd.Series):
        return series.diff(lag).iloc[lag:]
    values = np.asarray(series, dtype=float)
    return values[lag:] - values[:-lag]


def undifference(differenced: ArrayLike, head: ArrayLike, lag: int = 1) -> np.ndarray:
    """
    Invert :func:`difference` given the first ``lag`` original values.

    Each of the ``lag`` phases is rebuilt as its head value plus the
    cumulative sum of its differences.
    """
    diffs = np.asarray(differenced, dtype=float)
    head = np.asarray(head, dtype=float)
    if len(head) != lag:
        raise ValueError(f"Need exactly {lag} head values, got {len(head)}")

    restored = np.empty(len(head) + len(diffs))
    restored[:lag] = head
    for phase in range(lag):
        restored[phase + lag::lag] = head[phase] + np.cumsum(diffs[phase::lag])
    return restored


def seasonal_then_first_difference(series: ArrayLike, period: int = 12) -> ArrayLike:
    """Seasonal difference at ``period`` followed by one ordinary difference (N - period - 1 points)."""
    return difference(difference(series, lag=period), lag=1)


class Differencer:
    """
    Applies ``seasonal_order`` seasonal differences then ``order`` ordinary
    differences, remembering the values needed to undo them.

    Example:
        >>> differencer = Differencer(seasonal_period=12)
        >>> w = differencer.transform(y)      # len(y) - 13 points
        >>> y_back = differencer.integrate(w)  # equals y
    """

    def __init__(self, seasonal_period: int = 12, seasonal_order: int = 1, order: int = 1):
        self.seasonal_period = seasonal_period
        self.seasonal_order = seasonal_order
        self.order = order
        self._steps: List[Tuple[int, np.ndarray]] = []
        self._index: Optional[pd.Index] = None
        self._name = None

    @property
    def lags(self) -> List[int]:
        return [self.seasonal_period] * self.seasonal_order + [1] * self.order

    def transform(self, series: ArrayLike) -> ArrayLike:
        self._steps = []
        if isinstance(series, pd.Series):
            self._index = series.index
            self._name = series.name
        else:
            self._index = None

        values = np.asarray(series, dtype=float)
        for lag in self.lags:
            if len(values) <= lag:
                raise ValueError(f"Series too short to difference at lag {lag}")
            self._steps.append((lag, values[:lag].copy()))
            values = difference(values, lag)

        if self._index is not None:
            return pd.Series(values, index=self._index[len(self._index) - len(values):], name=self._name)
        return values

    def integrate(self, differenced: ArrayLike) -> ArrayLike:
        """Undo the differences in reverse order."""
        if not self._steps:
            raise ValueError("Differencer has not been applied yet")

        values = np.asarray(differenced, dtype=float)
        for lag, head in reversed(self._steps):
            values = undifference(values, head, lag)

        if self._index is not None and len(values) == len(self._index):
            return pd.Series(values, index=self._index, name=self._name)
        return values


@dataclass
class KPSSResult:
    statistic: float
    p_value: float
    lags: int
    critical_values: dict
    is_stationary: bool


def kpss_test(series: ArrayLike, significance: float = 0.05) -> KPSSResult:
    """
    KPSS level-stationarity test.

    The null hypothesis is stationarity, so ``is_stationary`` is True when
    the p-value is at least ``significance``. p-values are truncated to
    [0.01, 0.1] by the lookup table.
    """
    x = np.asarray(pd.Series(series).dropna(), dtype=float)
    with warnings.catch_warnings():
        # p-value outside the lookup table, and the tuple-return notice
        warnings.simplefilter('ignore')
        statistic, p_value, lags, critical_values = kpss(x, regression='c', nlags='auto')

    return KPSSResult(
        statistic=float(statistic),
        p_value=float(p_value),
        lags=int(lags),
        critical_values=dict(critical_values),
        is_stationary=bool(p_value >= significance)
    )


def ndiffs(series: ArrayLike, significance: float = 0.05, max_d: int = 2) -> int:
    """Number of ordinary differences needed, by repeated KPSS tests."""
    values = np.asarray(series, dtype=float)
    d = 0
    while d < max_d and len(values) > 3:
        if kpss_test(values, significance).is_stationary:
            break
        values = difference(values, 1)
        d += 1
    return d


def seasonal_strength(series: ArrayLike, period: int = 12) -> float:
    """STL-based strength of seasonality, ``max(0, 1 - Var(R) / Var(S + R))``."""
    values = np.asarray(series, dtype=float)
    decomposition = STL(values, period=period, robust=True).fit()
    remainder = decomposition.resid
    detrended = decomposition.seasonal + remainder
    return float(max(0.0, 1 - np.var(remainder) / np.var(detrended)))


def nsdiffs(
    series: ArrayLike,
    period: int = 12,
    threshold: float = 0.64,
    max_D: int = 1
) -> int:
    """Number of seasonal differences needed, from STL seasonal strength."""
    values = np.asarray(series, dtype=float)
    D = 0
    while D < max_D and len(values) >= 2 * period + 1:
        strength = seasonal_strength(values, period)
        logger.debug(f"Seasonal strength after {D} seasonal differences: {strength:.3f}")
        if strength <= threshold:
            break
        values = difference(values, period)
        D += 1
    return D


@dataclass
class TransformResult:
    lmbda: float
    transformed: pd.Series
    differenced: pd.Series
    seasonal_diffs: int
    diffs: int
    suggested_seasonal_diffs: int
    suggested_diffs: int
    kpss_before: KPSSResult
    kpss_after: KPSSResult
    differencer: Differencer = field(repr=False)


class SeriesTransformer:
    """
    Box-Cox plus differencing for one monthly series.

    The applied differencing defaults to one seasonal and one ordinary
    difference; ``nsdiffs``/``ndiffs`` suggestions are recorded alongside
    for the automatic ARIMA search.
    """

    def __init__(
        self,
        seasonal_period: int = 12,
        lambda_method: Union[str, float] = 'guerrero',
        seasonal_diffs: int = 1,
        diffs: int = 1,
        significance: float = 0.05
    ):
        self.seasonal_period = seasonal_period
        self.lambda_method = lambda_method
        self.seasonal_diffs = seasonal_diffs
        self.diffs = diffs
        self.significance = significance
        logger.info("SeriesTransformer initialized")

    def estimate_lambda(self, series: pd.Series) -> float:
        if isinstance(self.lambda_method, (int, float)):
            return float(self.lambda_method)
        if self.lambda_method == 'guerrero':
            return guerrero_lambda(series, period=self.seasonal_period)
        if self.lambda_method == 'mle':
            return float(stats.boxcox(np.asarray(series, dtype=float))[1])
        raise ValueError(f"Unknown lambda method: {self.lambda_method}")

    def fit_transform(self, series: pd.Series) -> TransformResult:
        lmbda = self.estimate_lambda(series)
        transformed = box_cox(series, lmbda)
        logger.info(f"Box-Cox lambda ({self.lambda_method}): {lmbda:.4f}")

        kpss_before = kpss_test(transformed, self.significance)

        suggested_D = nsdiffs(transformed, period=self.seasonal_period)
        seasonally_differenced = transformed
        for _ in range(suggested_D):
            seasonally_differenced = difference(seasonally_differenced, self.seasonal_period)
        suggested_d = ndiffs(seasonally_differenced, self.significance)
        logger.info(f"Unit-root heuristics suggest D={suggested_D}, d={suggested_d}")

        differencer = Differencer(self.seasonal_period, self.seasonal_diffs, self.diffs)
        differenced = differencer.transform(transformed)
        kpss_after = kpss_test(differenced, self.significance)

        logger.info(
            f"KPSS p-value: {kpss_before.p_value:.3f} before, "
            f"{kpss_after.p_value:.3f} after differencing"
        )

        return TransformResult(
            lmbda=lmbda,
            transformed=transformed,
            differenced=differenced,
            seasonal_diffs=self.seasonal_diffs,
            diffs=self.diffs,
            suggested_seasonal_diffs=suggested_D,
            suggested_diffs=suggested_d,
            kpss_before=kpss_before,
            kpss_after=kpss_after,
            differencer=differencer
        )
