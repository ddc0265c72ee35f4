"""
ETS Forecasting Module
======================

Error-Trend-Seasonal exponential smoothing candidates fitted with
statsmodels' ``ETSModel``: a manual shortlist plus an automatic
minimum-AICc selection over all admissible component combinations.

Usage:
    from retail_turnover.forecasting import ETSForecaster

    forecaster = ETSForecaster(seasonal_period=12)
    fits = forecaster.fit(train)
    forecast = fits['ETS(M,A,M)'].forecast(horizon=24)
"""

import itertools
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from statsmodels.tsa.exponential_smoothing.ets import ETSModel
from loguru import logger

from ..exceptions import ModelFitError
from .base import CandidateFit, run_fit


DEFAULT_ETS_CANDIDATES = [
    {'error': 'mul', 'trend': 'add', 'damped_trend': False, 'seasonal': 'mul'},
    {'error': 'mul', 'trend': 'add', 'damped_trend': True, 'seasonal': 'mul'},
    {'error': 'add', 'trend': 'add', 'damped_trend': False, 'seasonal': 'add'},
    {'error': 'mul', 'trend': None, 'damped_trend': False, 'seasonal': 'mul'},
]

_COMPONENT_CODES = {None: 'N', 'add': 'A', 'mul': 'M'}


class ETSForecaster:
    """
    Exponential smoothing candidates for a monthly series.

    Example:
        >>> forecaster = ETSForecaster()
        >>> fits = forecaster.fit(train)
        >>> for name, fit in fits.items():
        ...     print(name, round(fit.aicc, 1))
    """

    def __init__(
        self,
        seasonal_period: int = 12,
        candidates: Optional[List[Dict[str, Any]]] = None,
        auto: bool = True,
        maxiter: int = 1000
    ):
        """
        Initialize ETS Forecaster.

        Args:
            seasonal_period: Seasonal period (12 for monthly)
            candidates: Manual shortlist of component specifications
            auto: Also fit the minimum-AICc model over all admissible specs
            maxiter: Optimiser iteration limit
        """
        self.seasonal_period = seasonal_period
        self.candidates = candidates if candidates is not None else DEFAULT_ETS_CANDIDATES
        self.auto = auto
        self.maxiter = maxiter
        self.fits: Dict[str, CandidateFit] = {}

        logger.info("ETSForecaster initialized")

    @staticmethod
    def normalize_spec(spec: Dict[str, Any]) -> Dict[str, Any]:
        trend = spec.get('trend')
        return {
            'error': spec.get('error', 'add'),
            'trend': trend,
            'damped_trend': bool(spec.get('damped_trend', False)) and trend is not None,
            'seasonal': spec.get('seasonal'),
        }

    @staticmethod
    def model_name(spec: Dict[str, Any]) -> str:
        """Conventional label, e.g. ``ETS(M,Ad,M)``."""
        trend = _COMPONENT_CODES[spec.get('trend')]
        if spec.get('damped_trend') and spec.get('trend') is not None:
            trend += 'd'
        return (
            f"ETS({_COMPONENT_CODES[spec['error']]},{trend},"
            f"{_COMPONENT_CODES[spec.get('seasonal')]})"
        )

    def admissible_specs(self, train: pd.Series) -> List[Dict[str, Any]]:
        """
        All component combinations considered by the automatic search.

        Multiplicative components need strictly positive data, and
        additive error with multiplicative seasonality is left out.
        """
        positive = bool((np.asarray(train) > 0).all())
        errors = ['add', 'mul'] if positive else ['add']
        seasonals = [None, 'add', 'mul'] if positive else [None, 'add']
        trends = [(None, False), ('add', False), ('add', True)]

        specs = []
        for error, (trend, damped), seasonal in itertools.product(errors, trends, seasonals):
            if error == 'add' and seasonal == 'mul':
                continue
            specs.append({'error': error, 'trend': trend, 'damped_trend': damped, 'seasonal': seasonal})
        return specs

    def fit_candidate(
        self,
        train: pd.Series,
        spec: Dict[str, Any],
        name: Optional[str] = None
    ) -> CandidateFit:
        """
        Fit one ETS specification.

        Raises:
            ModelFitError: If estimation fails
        """
        spec = self.normalize_spec(spec)
        name = name or self.model_name(spec)

        if (spec['error'] == 'mul' or spec['seasonal'] == 'mul') and (np.asarray(train) <= 0).any():
            raise ModelFitError(name, "multiplicative components need strictly positive data")

        model = ETSModel(
            train,
            error=spec['error'],
            trend=spec['trend'],
            damped_trend=spec['damped_trend'],
            seasonal=spec['seasonal'],
            seasonal_periods=self.seasonal_period if spec['seasonal'] else None,
            initialization_method='estimated'
        )
        results, converged, messages = run_fit(
            name, lambda: model.fit(disp=False, maxiter=self.maxiter)
        )

        # smoothing and damping parameters; initial states are not counted
        n_params = sum(
            1 for param in results.param_names
            if param.startswith('smoothing_') or param.startswith('damping_')
        )

        logger.info(f"{name} fitted. AICc: {results.aicc:.2f}")
        return CandidateFit(
            name=name,
            family='ETS',
            spec=spec,
            results=results,
            train=train,
            n_params=n_params,
            converged=converged,
            fit_warnings=messages
        )

    def fit_auto(self, train: pd.Series) -> CandidateFit:
        """
        Fit every admissible specification and keep the lowest AICc.

        Specifications that fail to estimate are skipped with a warning.
        """
        best: Optional[CandidateFit] = None

        for spec in self.admissible_specs(train):
            try:
                candidate = self.fit_candidate(train, spec)
            except ModelFitError as e:
                logger.warning(f"Automatic ETS search skipped: {e}")
                continue

            if best is None or candidate.aicc < best.aicc:
                best = candidate

        if best is None:
            raise ModelFitError("ETS auto", "no admissible specification could be fitted")

        best.name = f"ETS auto {best.name[3:]}"
        logger.info(f"Automatic ETS selection: {best.name} (AICc={best.aicc:.2f})")
        return best

    def fit(self, train: pd.Series) -> Dict[str, CandidateFit]:
        """
        Fit the shortlist (and the automatic selection) on the training data.

        Returns:
            Mapping of model name -> CandidateFit
        """
        self.fits = {}
        for spec in self.candidates:
            candidate = self.fit_candidate(train, spec)
            self.fits[candidate.name] = candidate

        if self.auto:
            candidate = self.fit_auto(train)
            self.fits[candidate.name] = candidate

        logger.info(f"Fitted {len(self.fits)} ETS candidates")
        return self.fits
