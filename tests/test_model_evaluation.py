"""
Unit tests for forecast evaluation.

Tests verify:
1. Accuracy metrics on hand-computed examples, MASE against the seasonal naive
2. Ljung-Box degrees of freedom and rejection of autocorrelated residuals
3. Interval coverage and Winkler score
4. Candidate comparison table
"""
import numpy as np
import pandas as pd
import pytest

from retail_turnover.forecasting import ARIMAForecaster, ETSForecaster, ForecastEvaluator


@pytest.fixture(scope="module")
def candidate_fits(seasonal_series):
    train = seasonal_series.iloc[:36]
    fits = ETSForecaster(
        candidates=[{'error': 'add', 'trend': 'add', 'damped_trend': False, 'seasonal': 'add'}],
        auto=False
    ).fit(train)
    fits.update(ARIMAForecaster(
        candidates=[{'order': [0, 1, 1], 'seasonal_order': [0, 1, 1]}],
        auto=False
    ).fit(train, lmbda=1.0))
    return fits


class TestCalculateMetrics:
    """Test point forecast accuracy metrics."""

    def test_basic_metrics(self):
        """Test RMSE, MAE, bias and MAPE on a small example."""
        metrics = ForecastEvaluator().calculate_metrics([100, 110, 120], [90, 110, 130])

        assert metrics['mse'] == pytest.approx(200 / 3)
        assert metrics['rmse'] == pytest.approx(np.sqrt(200 / 3))
        assert metrics['mae'] == pytest.approx(20 / 3)
        assert metrics['bias'] == pytest.approx(0.0)
        assert metrics['mape'] == pytest.approx((10 / 100 + 10 / 120) / 3 * 100)

    def test_mase_uses_seasonal_naive(self):
        """Test MASE divides by the in-sample seasonal naive MAE."""
        train = np.arange(24) * 5 / 12
        metrics = ForecastEvaluator(seasonal_period=12).calculate_metrics(
            [100, 110, 120], [90, 110, 130], train=train
        )
        assert metrics['mase'] == pytest.approx((20 / 3) / 5)

    def test_mase_without_train_is_nan(self):
        """Test MASE is undefined without training data."""
        metrics = ForecastEvaluator().calculate_metrics([1.0, 2.0], [1.0, 2.0])
        assert np.isnan(metrics['mase'])

    def test_perfect_forecast(self):
        """Test a perfect forecast has zero error."""
        metrics = ForecastEvaluator().calculate_metrics([5.0, 6.0, 7.0], [5.0, 6.0, 7.0])
        assert metrics['rmse'] == 0
        assert metrics['smape'] == 0


class TestLjungBox:
    """Test the portmanteau test wrapper."""

    def test_degrees_of_freedom(self):
        """Test model parameters are subtracted from the lag."""
        noise = np.random.default_rng(0).normal(size=120)
        result = ForecastEvaluator().ljung_box(noise, lag=24, model_df=3)
        assert result['lag'] == 24
        assert result['dof'] == 21
        assert result['is_white'] == (result['p_value'] >= 0.05)

    def test_autocorrelated_residuals_rejected(self):
        """Test a periodic residual series is not white noise."""
        residuals = np.sin(np.arange(120) * 2 * np.pi / 12)
        result = ForecastEvaluator().ljung_box(residuals, lag=24)
        assert result['p_value'] < 0.05
        assert not result['is_white']

    def test_lag_capped_by_length(self):
        """Test the lag never exceeds the number of residuals."""
        result = ForecastEvaluator().ljung_box(np.random.default_rng(1).normal(size=15), lag=24)
        assert result['lag'] == 14


class TestIntervalCoverage:
    """Test prediction interval scoring."""

    def test_coverage_and_winkler(self):
        """Test coverage fraction and Winkler penalties outside the interval."""
        result = ForecastEvaluator().evaluate_interval_coverage(
            actual=[1, 2, 3, 4],
            lower=[0, 0, 0, 5],
            upper=[2, 2, 2, 6],
            target_coverage=0.95
        )

        assert result['actual_coverage'] == pytest.approx(50.0)
        assert result['coverage_gap'] == pytest.approx(-45.0)
        assert result['mean_interval_width'] == pytest.approx(1.75)
        assert result['winkler_score'] == pytest.approx((2 + 2 + 42 + 41) / 4)


class TestCompareModels:
    """Test the candidate comparison table."""

    def test_forecast_candidates_align_with_test(self, candidate_fits, seasonal_series):
        """Test every candidate is forecast over the test index."""
        test = seasonal_series.iloc[36:]
        forecasts = ForecastEvaluator().forecast_candidates(candidate_fits, len(test), test.index)

        assert set(forecasts) == set(candidate_fits)
        for forecast in forecasts.values():
            assert len(forecast) == 24
            assert pd.DatetimeIndex(forecast['ds']).equals(test.index)

    def test_comparison_table(self, candidate_fits, seasonal_series):
        """Test one row per candidate, sorted by RMSE, with criteria and ranks."""
        test = seasonal_series.iloc[36:]
        evaluator = ForecastEvaluator()
        forecasts = evaluator.forecast_candidates(candidate_fits, len(test), test.index)
        comparison = evaluator.compare_models(candidate_fits, forecasts, test)

        assert set(comparison.index) == {"ETS(A,A,A)", "ARIMA(0,1,1)(0,1,1)[12]"}
        for column in ['family', 'aicc', 'rmse', 'mae', 'mape', 'mase',
                       'lb_pvalue', 'converged', 'rmse_rank']:
            assert column in comparison.columns
        assert comparison['rmse'].is_monotonic_increasing
        assert set(comparison['family']) == {'ETS', 'ARIMA'}
        assert (comparison['aicc_rank'] == 1).all()

    def test_residual_diagnostics(self, candidate_fits):
        """Test diagnostics report moments, normality and Ljung-Box."""
        fit = candidate_fits["ARIMA(0,1,1)(0,1,1)[12]"]
        diagnostics = ForecastEvaluator().residual_diagnostics(fit)

        assert diagnostics['n_residuals'] == 36 - 13
        assert diagnostics['ljung_box']['dof'] == diagnostics['ljung_box']['lag'] - 2
        for key in ['mean', 'std', 'skewness', 'kurtosis', 'jarque_bera_pvalue']:
            assert np.isfinite(diagnostics[key])
