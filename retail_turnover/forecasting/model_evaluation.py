"""
Forecast Model Evaluation Module
================================

Test-set accuracy, prediction interval scoring, residual diagnostics
and the side-by-side comparison table for fitted candidates.

Usage:
    from retail_turnover.forecasting import ForecastEvaluator

    evaluator = ForecastEvaluator(seasonal_period=12)
    forecasts = evaluator.forecast_candidates(fits, horizon=len(test))
    comparison = evaluator.compare_models(fits, forecasts, test)
"""

from typing import Any, Dict, Optional

import pandas as pd
import numpy as np
from sklearn.metrics import mean_squared_error, mean_absolute_error
from scipy import stats
from statsmodels.stats.diagnostic import acorr_ljungbox
from loguru import logger

from .base import CandidateFit


class ForecastEvaluator:
    """
    Evaluation toolkit for fitted candidates.

    Example:
        >>> evaluator = ForecastEvaluator()
        >>> metrics = evaluator.calculate_metrics(test, forecast['yhat'], train=train)
        >>> print(f"MASE: {metrics['mase']:.2f}")
    """

    def __init__(
        self,
        seasonal_period: int = 12,
        ljung_box_lag: int = 24,
        confidence_level: float = 0.95,
        significance: float = 0.05,
        random_state: Optional[int] = None
    ):
        """
        Initialize ForecastEvaluator.

        Args:
            seasonal_period: Period of the seasonal naive benchmark used by MASE
            ljung_box_lag: Lag of the Ljung-Box portmanteau test
            confidence_level: Level of the prediction intervals
            significance: Significance level of the residual tests
            random_state: Seed for simulated prediction intervals
        """
        self.seasonal_period = seasonal_period
        self.ljung_box_lag = ljung_box_lag
        self.confidence_level = confidence_level
        self.significance = significance
        self.random_state = random_state
        logger.info("ForecastEvaluator initialized")

    def forecast_candidates(
        self,
        fits: Dict[str, CandidateFit],
        horizon: int,
        index: Optional[pd.DatetimeIndex] = None
    ) -> Dict[str, pd.DataFrame]:
        """
        Forecast every candidate over the test horizon.

        Args:
            fits: Mapping of model name -> CandidateFit
            horizon: Number of months to forecast
            index: Optional test index to align the ``ds`` column with

        Returns:
            Mapping of model name -> DataFrame (ds, yhat, yhat_lower, yhat_upper)
        """
        forecasts = {}
        for name, fit in fits.items():
            forecast = fit.forecast(
                horizon,
                confidence_level=self.confidence_level,
                random_state=self.random_state
            )
            if index is not None:
                forecast['ds'] = pd.DatetimeIndex(index[:horizon])
            forecasts[name] = forecast
            logger.debug(f"Generated {horizon}-month forecast for {name}")

        logger.info(f"Generated forecasts for {len(forecasts)} candidates")
        return forecasts

    def calculate_metrics(
        self,
        actual: np.ndarray,
        predicted: np.ndarray,
        train: Optional[np.ndarray] = None
    ) -> Dict[str, float]:
        """
        Calculate forecast accuracy metrics.

        Args:
            actual: Actual test values
            predicted: Point forecasts
            train: Training values; enables the seasonal-naive scaled MASE

        Returns:
            Dictionary of metric names and values

        Example:
            >>> metrics = evaluator.calculate_metrics(actual, predicted, train=train)
            >>> print(f"RMSE: {metrics['rmse']:.2f}")
        """
        actual = np.array(actual, dtype=float).flatten()
        predicted = np.array(predicted, dtype=float).flatten()

        mse = mean_squared_error(actual, predicted)
        metrics = {
            'mse': mse,
            'rmse': np.sqrt(mse),
            'mae': mean_absolute_error(actual, predicted),
            'bias': np.mean(predicted - actual),
        }

        # MAPE (avoiding division by zero)
        mask = actual != 0
        if mask.any():
            metrics['mape'] = np.mean(np.abs((actual[mask] - predicted[mask]) / actual[mask])) * 100
        else:
            metrics['mape'] = np.nan

        denominator = np.abs(actual) + np.abs(predicted)
        mask = denominator != 0
        if mask.any():
            metrics['smape'] = np.mean(2 * np.abs(actual[mask] - predicted[mask]) / denominator[mask]) * 100
        else:
            metrics['smape'] = np.nan

        metrics['mase'] = self._calculate_mase(actual, predicted, train)
        return metrics

    def _calculate_mase(
        self,
        actual: np.ndarray,
        predicted: np.ndarray,
        train: Optional[np.ndarray]
    ) -> float:
        """MAE scaled by the in-sample MAE of the seasonal naive forecast."""
        if train is None:
            return np.nan

        train = np.array(train, dtype=float).flatten()
        m = self.seasonal_period
        if len(train) <= m:
            return np.nan

        naive_mae = np.mean(np.abs(train[m:] - train[:-m]))
        if naive_mae == 0:
            return np.nan

        return np.mean(np.abs(actual - predicted)) / naive_mae

    def ljung_box(
        self,
        residuals: np.ndarray,
        lag: Optional[int] = None,
        model_df: int = 0
    ) -> Dict[str, Any]:
        """
        Ljung-Box portmanteau test of residual autocorrelation.

        Args:
            residuals: Innovation residuals
            lag: Number of autocorrelations tested (defaults to ``ljung_box_lag``)
            model_df: Estimated parameters subtracted from the degrees of freedom

        Returns:
            Dictionary with statistic, p_value, lag, dof and is_white
        """
        residuals = np.asarray(pd.Series(residuals).dropna(), dtype=float)
        lag = lag or self.ljung_box_lag
        lag = min(lag, len(residuals) - 1)
        # keep at least one degree of freedom
        model_df = min(int(model_df), lag - 1)

        result = acorr_ljungbox(residuals, lags=[lag], model_df=model_df, return_df=True)
        p_value = float(result['lb_pvalue'].iloc[0])

        return {
            'statistic': float(result['lb_stat'].iloc[0]),
            'p_value': p_value,
            'lag': lag,
            'dof': lag - model_df,
            'is_white': bool(p_value >= self.significance),
        }

    def residual_diagnostics(self, fit: CandidateFit) -> Dict[str, Any]:
        """
        Diagnostic tests on a candidate's innovation residuals.

        Args:
            fit: Fitted candidate

        Returns:
            Dictionary with moments, Jarque-Bera and Ljung-Box results

        Example:
            >>> diagnostics = evaluator.residual_diagnostics(fits['ETS(M,A,M)'])
            >>> if not diagnostics['ljung_box']['is_white']:
            ...     print("Residuals show autocorrelation")
        """
        residuals = fit.residuals.dropna().to_numpy(dtype=float)

        diagnostics = {
            'model': fit.name,
            'n_residuals': len(residuals),
            'mean': np.mean(residuals),
            'std': np.std(residuals),
            'skewness': stats.skew(residuals),
            'kurtosis': stats.kurtosis(residuals),
        }

        jb_stat, jb_pvalue = stats.jarque_bera(residuals)
        diagnostics['jarque_bera_stat'] = jb_stat
        diagnostics['jarque_bera_pvalue'] = jb_pvalue
        diagnostics['is_normal'] = jb_pvalue > self.significance

        diagnostics['ljung_box'] = self.ljung_box(residuals, model_df=fit.n_params)
        lb = diagnostics['ljung_box']
        logger.info(
            f"{fit.name}: Ljung-Box Q*={lb['statistic']:.2f}, "
            f"df={lb['dof']}, p={lb['p_value']:.3f}"
        )
        return diagnostics

    def evaluate_interval_coverage(
        self,
        actual: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
        target_coverage: Optional[float] = None
    ) -> Dict[str, float]:
        """
        Evaluate prediction interval coverage and width.

        Args:
            actual: Actual values
            lower: Lower bound of prediction interval
            upper: Upper bound of prediction interval
            target_coverage: Expected coverage (defaults to ``confidence_level``)

        Returns:
            Dictionary with coverage metrics
        """
        target_coverage = target_coverage or self.confidence_level
        actual = np.array(actual, dtype=float).flatten()
        lower = np.array(lower, dtype=float).flatten()
        upper = np.array(upper, dtype=float).flatten()

        within_interval = (actual >= lower) & (actual <= upper)
        actual_coverage = np.mean(within_interval)
        interval_width = upper - lower

        return {
            'actual_coverage': actual_coverage * 100,
            'target_coverage': target_coverage * 100,
            'coverage_gap': (actual_coverage - target_coverage) * 100,
            'mean_interval_width': np.mean(interval_width),
            'winkler_score': self._calculate_winkler_score(
                actual, lower, upper, 1 - target_coverage
            ),
        }

    def _calculate_winkler_score(
        self,
        actual: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray,
        alpha: float
    ) -> float:
        """Calculate Winkler Score for prediction intervals."""
        score = upper - lower
        below = actual < lower
        above = actual > upper

        score[below] += (2 / alpha) * (lower[below] - actual[below])
        score[above] += (2 / alpha) * (actual[above] - upper[above])

        return np.mean(score)

    def compare_models(
        self,
        fits: Dict[str, CandidateFit],
        forecasts: Dict[str, pd.DataFrame],
        test: pd.Series
    ) -> pd.DataFrame:
        """
        Compare candidates on information criterion, test accuracy and
        residual whiteness.

        All candidates are kept; the table is sorted by RMSE and the best
        model under each criterion is logged.

        Args:
            fits: Mapping of model name -> CandidateFit
            forecasts: Mapping of model name -> forecast frame
            test: Test series

        Returns:
            DataFrame indexed by model name
        """
        rows = []
        for name, fit in fits.items():
            forecast = forecasts[name]
            metrics = self.calculate_metrics(test.to_numpy(), forecast['yhat'].to_numpy(), train=fit.train)
            coverage = self.evaluate_interval_coverage(
                test.to_numpy(), forecast['yhat_lower'].to_numpy(), forecast['yhat_upper'].to_numpy()
            )
            lb = self.ljung_box(fit.residuals, model_df=fit.n_params)

            rows.append({
                'model': name,
                'family': fit.family,
                'aicc': fit.aicc,
                'rmse': metrics['rmse'],
                'mae': metrics['mae'],
                'mape': metrics['mape'],
                'mase': metrics['mase'],
                'coverage': coverage['actual_coverage'],
                'winkler_score': coverage['winkler_score'],
                'lb_pvalue': lb['p_value'],
                'converged': fit.converged,
            })

        comparison_df = pd.DataFrame(rows).set_index('model')

        # AICc is only comparable within a family (ARIMA is fitted on transformed data)
        comparison_df['aicc_rank'] = comparison_df.groupby('family')['aicc'].rank()
        comparison_df['rmse_rank'] = comparison_df['rmse'].rank()
        comparison_df['mase_rank'] = comparison_df['mase'].rank()

        comparison_df = comparison_df.sort_values('rmse')

        for criterion in ['rmse', 'mae', 'mape', 'mase']:
            column = comparison_df[criterion]
            if column.notna().any():
                logger.info(f"Lowest {criterion.upper()}: {column.idxmin()} ({column.min():.3f})")
        for family, group in comparison_df.groupby('family'):
            logger.info(f"Lowest AICc ({family}): {group['aicc'].idxmin()} ({group['aicc'].min():.2f})")

        not_white = comparison_df.index[comparison_df['lb_pvalue'] < self.significance]
        if len(not_white) > 0:
            logger.warning(f"Residuals not white noise for: {', '.join(not_white)}")

        logger.info(f"Model comparison complete. Lowest RMSE: {comparison_df.index[0]}")
        return comparison_df
