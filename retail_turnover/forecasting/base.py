"""
Fitted candidate models shared by the ETS and ARIMA forecasters.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import warnings

import numpy as np
import pandas as pd
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from loguru import logger

from ..exceptions import ModelFitError
from .transforms import inv_box_cox


@dataclass
class CandidateFit:
    """
    One estimated candidate model.

    Forecasts are always returned on the original (untransformed) scale.
    ``lmbda`` is set when the model was estimated on Box-Cox data.
    """

    name: str
    family: str
    spec: Dict[str, Any]
    results: Any = field(repr=False)
    train: pd.Series = field(repr=False)
    n_params: int
    lmbda: Optional[float] = None
    residual_burn: int = 0
    converged: bool = True
    fit_warnings: List[str] = field(default_factory=list)

    @property
    def aicc(self) -> float:
        return float(self.results.aicc)

    @property
    def aic(self) -> float:
        return float(self.results.aic)

    @property
    def bic(self) -> float:
        return float(self.results.bic)

    @property
    def residuals(self) -> pd.Series:
        """Innovation residuals on the scale the model was estimated on."""
        resid = pd.Series(np.asarray(self.results.resid), index=self.train.index)
        return resid.iloc[self.residual_burn:]

    @property
    def fitted_values(self) -> pd.Series:
        fitted = pd.Series(np.asarray(self.results.fittedvalues), index=self.train.index)
        if self.lmbda is not None:
            fitted = inv_box_cox(fitted, self.lmbda)
        return fitted

    def forecast(
        self,
        horizon: int,
        confidence_level: float = 0.95,
        random_state: Optional[int] = None
    ) -> pd.DataFrame:
        """
        Point forecasts and prediction intervals.

        Args:
            horizon: Number of months to forecast
            confidence_level: Level of the prediction intervals
            random_state: Seed for ETS models with multiplicative
                components, whose intervals are simulated

        Returns:
            DataFrame with columns: ds, yhat, yhat_lower, yhat_upper
        """
        alpha = 1 - confidence_level
        n = len(self.train)

        if self.family == 'ETS':
            prediction = self.results.get_prediction(
                start=n, end=n + horizon - 1, random_state=random_state
            )
            frame = prediction.summary_frame(alpha=alpha)
            mean = frame['mean'].to_numpy()
            lower = frame['pi_lower'].to_numpy()
            upper = frame['pi_upper'].to_numpy()
        else:
            prediction = self.results.get_forecast(steps=horizon)
            conf_int = np.asarray(prediction.conf_int(alpha=alpha))
            mean = np.asarray(prediction.predicted_mean)
            lower = conf_int[:, 0]
            upper = conf_int[:, 1]

        if self.lmbda is not None:
            mean = inv_box_cox(mean, self.lmbda)
            lower = inv_box_cox(lower, self.lmbda)
            upper = inv_box_cox(upper, self.lmbda)

        future_dates = pd.date_range(
            start=self.train.index[-1] + pd.offsets.MonthBegin(1),
            periods=horizon,
            freq='MS'
        )

        return pd.DataFrame({
            'ds': future_dates,
            'yhat': mean,
            'yhat_lower': lower,
            'yhat_upper': upper
        })

    def get_model_info(self) -> Dict[str, Any]:
        """Get model information for reporting."""
        return {
            'name': self.name,
            'type': self.family,
            'spec': self.spec,
            'lambda': self.lmbda,
            'aicc': self.aicc,
            'aic': self.aic,
            'bic': self.bic,
            'n_params': self.n_params,
            'n_observations': len(self.train),
            'converged': self.converged,
        }


# Numerical failures raised by statsmodels estimation routines.
FIT_ERRORS = (
    ValueError,
    IndexError,
    OverflowError,
    ZeroDivisionError,
    np.linalg.LinAlgError,
)


def run_fit(name: str, fit: Callable[[], Any]) -> Any:
    """
    Run a statsmodels ``fit`` call, collecting its warnings.

    Only the numerical failures in ``FIT_ERRORS`` are wrapped; anything
    else (e.g. a ``TypeError`` from a bad argument) propagates unchanged.

    Returns:
        Tuple of (results, converged, warning messages)

    Raises:
        ModelFitError: If estimation raises one of ``FIT_ERRORS`` or the
            AICc is not finite
    """
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter('always')
        try:
            results = fit()
        except FIT_ERRORS as e:
            raise ModelFitError(name, str(e)) from e

    messages = [str(w.message) for w in caught if not issubclass(w.category, DeprecationWarning)]
    converged = not any(issubclass(w.category, ConvergenceWarning) for w in caught)

    retvals = getattr(results, 'mle_retvals', None) or {}
    if retvals.get('converged') is False:
        converged = False

    if not np.isfinite(results.aicc):
        raise ModelFitError(name, "non-finite AICc")

    if not converged:
        logger.warning(f"{name} did not converge; estimates may be unreliable")

    return results, converged, messages
