"""
ARIMA Forecasting Module
========================

Seasonal ARIMA candidates estimated on the Box-Cox transformed training
series, with forecasts back-transformed to the original scale. A manual
shortlist of orders is fitted alongside an automatic grid search that
fixes the differencing from unit-root heuristics and minimises AICc.

Usage:
    from retail_turnover.forecasting import ARIMAForecaster

    forecaster = ARIMAForecaster(seasonal_period=12)
    fits = forecaster.fit(train, lmbda=0.12)
    forecast = fits['ARIMA(0,1,1)(0,1,1)[12]'].forecast(horizon=24)
"""

import itertools
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from statsmodels.tsa.statespace.sarimax import SARIMAX
from loguru import logger

from ..exceptions import ModelFitError
from .base import CandidateFit, run_fit
from .transforms import box_cox, difference, ndiffs, nsdiffs


DEFAULT_ARIMA_CANDIDATES = [
    {'order': [0, 1, 1], 'seasonal_order': [0, 1, 1]},
    {'order': [2, 1, 0], 'seasonal_order': [0, 1, 1]},
    {'order': [1, 1, 1], 'seasonal_order': [1, 1, 1]},
]


class ARIMAForecaster:
    """
    Seasonal ARIMA candidates with automatic order selection.

    Example:
        >>> forecaster = ARIMAForecaster()
        >>> fits = forecaster.fit(train, lmbda=0.0)
        >>> best = min(fits.values(), key=lambda f: f.aicc)
    """

    def __init__(
        self,
        seasonal_period: int = 12,
        candidates: Optional[List[Dict[str, Any]]] = None,
        auto: bool = True,
        max_p: int = 3,
        max_q: int = 3,
        max_P: int = 1,
        max_Q: int = 1,
        max_order: int = 5,
        significance: float = 0.05,
        maxiter: int = 200
    ):
        """
        Initialize ARIMA Forecaster.

        Args:
            seasonal_period: Seasonal period (e.g., 12 for monthly)
            candidates: Manual shortlist of ``order``/``seasonal_order`` pairs
            auto: Also fit the minimum-AICc order from a grid search
            max_p: Maximum AR order to test
            max_q: Maximum MA order to test
            max_P: Maximum seasonal AR order to test
            max_Q: Maximum seasonal MA order to test
            max_order: Maximum p + q + P + Q in the grid search
            significance: KPSS significance for choosing d
            maxiter: Optimiser iteration limit
        """
        self.seasonal_period = seasonal_period
        self.candidates = candidates if candidates is not None else DEFAULT_ARIMA_CANDIDATES
        self.auto = auto
        self.max_p = max_p
        self.max_q = max_q
        self.max_P = max_P
        self.max_Q = max_Q
        self.max_order = max_order
        self.significance = significance
        self.maxiter = maxiter
        self.fits: Dict[str, CandidateFit] = {}

        logger.info("ARIMAForecaster initialized")

    def model_name(self, order: Sequence[int], seasonal_order: Sequence[int]) -> str:
        """Conventional label, e.g. ``ARIMA(0,1,1)(0,1,1)[12]``."""
        p, d, q = order
        P, D, Q = seasonal_order[:3]
        return f"ARIMA({p},{d},{q})({P},{D},{Q})[{self.seasonal_period}]"

    def _prepare(self, train: pd.Series, lmbda: Optional[float]) -> pd.Series:
        if lmbda is None:
            return train
        return box_cox(train, lmbda)

    def fit_candidate(
        self,
        train: pd.Series,
        order: Sequence[int],
        seasonal_order: Sequence[int],
        lmbda: Optional[float] = None,
        name: Optional[str] = None
    ) -> CandidateFit:
        """
        Fit one seasonal ARIMA specification.

        Args:
            train: Training series on the original scale
            order: (p, d, q)
            seasonal_order: (P, D, Q); a trailing period entry is ignored
            lmbda: Box-Cox lambda applied before estimation
            name: Label override

        Raises:
            ModelFitError: If estimation fails
        """
        order = tuple(int(v) for v in order)
        seasonal_order = tuple(int(v) for v in seasonal_order[:3])
        if len(order) != 3 or len(seasonal_order) != 3:
            raise ValueError("order and seasonal_order need three entries each")

        name = name or self.model_name(order, seasonal_order)
        endog = self._prepare(train, lmbda)

        p, d, q = order
        P, D, Q = seasonal_order
        s = self.seasonal_period

        model = SARIMAX(
            endog,
            order=order,
            seasonal_order=(P, D, Q, s),
            # constant only for undifferenced models
            trend='c' if d + D == 0 else None
        )
        results, converged, messages = run_fit(
            name, lambda: model.fit(disp=False, maxiter=self.maxiter)
        )

        logger.info(f"{name} fitted. AICc: {results.aicc:.2f}")
        return CandidateFit(
            name=name,
            family='ARIMA',
            spec={'order': list(order), 'seasonal_order': [P, D, Q, s]},
            results=results,
            train=train,
            n_params=p + q + P + Q,
            lmbda=lmbda,
            residual_burn=d + D * s,
            converged=converged,
            fit_warnings=messages
        )

    def select_differencing(
        self,
        train: pd.Series,
        lmbda: Optional[float] = None
    ) -> Tuple[int, int]:
        """
        Choose (d, D): seasonal strength for D, then repeated KPSS for d.
        """
        values = np.asarray(self._prepare(train, lmbda), dtype=float)
        D = nsdiffs(values, period=self.seasonal_period)
        if D:
            values = difference(values, self.seasonal_period)
        d = ndiffs(values, significance=self.significance)
        logger.info(f"Automatic ARIMA differencing: d={d}, D={D}")
        return d, D

    def _search_grid(self) -> List[Tuple[int, int, int, int]]:
        grid = itertools.product(
            range(self.max_p + 1), range(self.max_q + 1),
            range(self.max_P + 1), range(self.max_Q + 1)
        )
        return [g for g in grid if sum(g) <= self.max_order]

    def fit_auto(
        self,
        train: pd.Series,
        lmbda: Optional[float] = None,
        d: Optional[int] = None,
        D: Optional[int] = None
    ) -> CandidateFit:
        """
        Grid search over (p, q, P, Q) at fixed differencing, keeping the
        lowest AICc. Orders that fail to estimate are skipped with a warning.

        Args:
            train: Training series on the original scale
            lmbda: Box-Cox lambda applied before estimation
            d: Ordinary differences (chosen automatically if None)
            D: Seasonal differences (chosen automatically if None)
        """
        if d is None or D is None:
            auto_d, auto_D = self.select_differencing(train, lmbda)
            d = auto_d if d is None else d
            D = auto_D if D is None else D

        best: Optional[CandidateFit] = None
        for p, q, P, Q in self._search_grid():
            try:
                candidate = self.fit_candidate(train, (p, d, q), (P, D, Q), lmbda=lmbda)
            except ModelFitError as e:
                logger.warning(f"Automatic ARIMA search skipped: {e}")
                continue

            if best is None or candidate.aicc < best.aicc:
                best = candidate

        if best is None:
            raise ModelFitError("ARIMA auto", "no order in the search grid could be fitted")

        best.name = f"ARIMA auto {best.name[5:]}"
        logger.info(f"Automatic ARIMA selection: {best.name} (AICc={best.aicc:.2f})")
        return best

    def fit(
        self,
        train: pd.Series,
        lmbda: Optional[float] = None,
        d: Optional[int] = None,
        D: Optional[int] = None
    ) -> Dict[str, CandidateFit]:
        """
        Fit the shortlist (and the automatic selection) on the training data.

        Args:
            train: Training series on the original scale
            lmbda: Box-Cox lambda; models are estimated on the transformed
                series and forecast on the original scale
            d: Ordinary differences for the automatic search
            D: Seasonal differences for the automatic search

        Returns:
            Mapping of model name -> CandidateFit
        """
        self.fits = {}
        for spec in self.candidates:
            candidate = self.fit_candidate(
                train, spec['order'], spec['seasonal_order'], lmbda=lmbda
            )
            self.fits[candidate.name] = candidate

        if self.auto:
            candidate = self.fit_auto(train, lmbda=lmbda, d=d, D=D)
            self.fits[candidate.name] = candidate

        logger.info(f"Fitted {len(self.fits)} ARIMA candidates")
        return self.fits
