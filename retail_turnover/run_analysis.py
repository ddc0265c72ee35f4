#!/usr/bin/env python3
"""
Retail Turnover Forecasting - Main Runner
=========================================

Command-line interface running the forecasting pipeline once:
load -> clean -> select one series -> transform -> split -> fit ETS and
ARIMA candidates -> evaluate -> report.

Usage:
    retail-turnover
    retail-turnover --data data/sample_8501011.xlsx --no-plots
    retail-turnover --series-id A3349849A --config config/settings.yaml

Examples:
    # Download (or reuse the cached) table and analyse a random series
    retail-turnover --output outputs

    # Force a fresh download
    retail-turnover --refresh

    # Work offline on the synthetic workbook
    python data/generate_sample_data.py
    retail-turnover --data data/sample_8501011.xlsx
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from .common import DataLoader, Preprocessor, Visualizer, Reporter, load_settings
from .exceptions import RetailForecastError
from .forecasting import SeriesTransformer, ETSForecaster, ARIMAForecaster, ForecastEvaluator


def setup_logging(log_level: str = "INFO"):
    """Configure logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>"
    )


def run_pipeline(
    settings: Dict[str, Any],
    data_path: Optional[str] = None,
    series_id: Optional[str] = None,
    output: Optional[str] = None,
    refresh: bool = False,
    make_plots: bool = True
) -> Dict[str, Any]:
    """
    Run the forecasting pipeline top to bottom.

    Args:
        settings: Nested settings from ``load_settings``
        data_path: Local workbook/CSV to use instead of downloading
        series_id: Series to analyse (seeded random choice if None)
        output: Output directory (defaults to ``settings['output']['dir']``)
        refresh: Re-download the table even if cached
        make_plots: Produce PNG charts

    Returns:
        Dictionary with the series, split, transform result, fits,
        forecasts, comparison table, diagnostics and report paths
    """
    analysis = settings['analysis']
    output_dir = Path(output or settings['output']['dir'])
    output_dir.mkdir(parents=True, exist_ok=True)
    period = analysis['seasonal_period']

    logger.info("Starting Retail Turnover Forecasting Pipeline")

    # Load
    loader = DataLoader(settings['data'])
    if data_path:
        raw = loader.read_time_series_workbook(data_path)
    else:
        raw = loader.load_table(refresh=refresh)

    is_valid, validation = loader.validate_data(raw)
    for warning in validation['warnings']:
        logger.warning(warning)
    if not is_valid:
        raise ValueError(f"Invalid observation table: {validation['errors']}")

    data_summary = loader.get_data_summary(raw)
    logger.info(
        f"Table holds {data_summary['n_series']} series, "
        f"{data_summary['missing_percentage']:.1f}% missing values"
    )

    # Clean and select
    preprocessor = Preprocessor(
        regions=settings['data']['regions'],
        category=settings['data']['category'],
        delimiter=settings['data']['label_delimiter'],
        random_state=analysis['random_state']
    )
    clean = preprocessor.clean_data(raw)
    candidates = preprocessor.list_series(clean)
    logger.info(
        f"{len(candidates)} complete series across {candidates['region'].nunique()} regions "
        f"and {candidates['industry'].nunique()} industries"
    )
    series = preprocessor.select_series(clean, series_id or analysis.get('series_id'))
    series_info = preprocessor.series_info(clean, series.name)

    # Transform
    transformer = SeriesTransformer(
        seasonal_period=period,
        lambda_method=analysis['lambda_method'],
        seasonal_diffs=analysis['seasonal_diffs'],
        diffs=analysis['diffs'],
        significance=analysis['significance']
    )
    transform = transformer.fit_transform(series)

    # Split
    train, test = preprocessor.train_test_split(series, test_size=analysis['test_size'])

    # Fit
    ets_settings = settings['ets']
    ets = ETSForecaster(
        seasonal_period=period,
        candidates=ets_settings['candidates'],
        auto=ets_settings['auto']
    )
    arima_settings = settings['arima']
    arima = ARIMAForecaster(
        seasonal_period=period,
        candidates=arima_settings['candidates'],
        auto=arima_settings['auto'],
        max_p=arima_settings['max_p'],
        max_q=arima_settings['max_q'],
        max_P=arima_settings['max_P'],
        max_Q=arima_settings['max_Q'],
        significance=analysis['significance']
    )

    fits = {}
    fits.update(ets.fit(train))
    fits.update(arima.fit(
        train,
        lmbda=transform.lmbda,
        d=transform.suggested_diffs,
        D=transform.suggested_seasonal_diffs
    ))

    # Evaluate
    evaluator = ForecastEvaluator(
        seasonal_period=period,
        ljung_box_lag=analysis['ljung_box_lag'],
        confidence_level=analysis['confidence_level'],
        significance=analysis['significance'],
        random_state=analysis['random_state']
    )
    forecasts = evaluator.forecast_candidates(fits, horizon=len(test), index=test.index)
    comparison = evaluator.compare_models(fits, forecasts, test)
    diagnostics = {name: evaluator.residual_diagnostics(fit) for name, fit in fits.items()}

    # Report
    title = f"{series_info['region']} / {series_info['industry']}"
    reporter = Reporter(output_dir=str(output_dir / "reports"))
    reporter.print_table(
        comparison[['family', 'aicc', 'rmse', 'mae', 'mape', 'mase', 'lb_pvalue', 'converged']],
        title=f"Candidate comparison: {title} ({series.name})"
    )

    transform_summary = {
        'lambda': transform.lmbda,
        'seasonal_diffs': transform.seasonal_diffs,
        'diffs': transform.diffs,
        'suggested_seasonal_diffs': transform.suggested_seasonal_diffs,
        'suggested_diffs': transform.suggested_diffs,
        'kpss_pvalue_before': transform.kpss_before.p_value,
        'kpss_pvalue_after': transform.kpss_after.p_value,
    }

    results = {
        'data_summary': data_summary,
        'candidates': candidates,
        'series': series,
        'series_info': series_info,
        'train': train,
        'test': test,
        'transform_result': transform,
        'transform': transform_summary,
        'fits': fits,
        'forecasts': forecasts,
        'comparison': comparison,
        'diagnostics': diagnostics,
    }
    results['report_paths'] = reporter.generate_forecast_report(results, 'turnover_forecast')

    if make_plots:
        results['plot_paths'] = _make_plots(
            settings, output_dir / "plots", results, title
        )

    logger.info(f"Forecast complete. Results saved to {output_dir}")
    return results


def _make_plots(
    settings: Dict[str, Any],
    plot_dir: Path,
    results: Dict[str, Any],
    title: str
) -> Dict[str, Path]:
    viz = Visualizer(output_dir=str(plot_dir), show_plots=settings['output']['show_plots'])
    series = results['series']
    transform = results['transform_result']
    comparison = results['comparison']
    fits = results['fits']

    paths = {
        'time_series': viz.plot_time_series(series, title=title, save_name='time_series'),
        'seasonal': viz.plot_seasonal(series, title=f"Seasonal plot: {title}", save_name='seasonal'),
        'subseries': viz.plot_subseries(series, title=f"Subseries: {title}", save_name='subseries'),
        'acf_transformed': viz.plot_acf_pacf(
            transform.transformed, title="Box-Cox transformed", save_name='acf_pacf_transformed'
        ),
        'acf_differenced': viz.plot_acf_pacf(
            transform.differenced, title="Seasonally and first differenced",
            save_name='acf_pacf_differenced'
        ),
        'forecast_comparison': viz.plot_forecast_comparison(
            results['train'], results['test'], results['forecasts'],
            title=f"Test period forecasts: {title}", save_name='forecast_comparison'
        ),
    }

    best = comparison.index[0]
    paths['best_forecast'] = viz.plot_time_series(
        results['train'],
        title=f"{best}: {title}",
        forecast_df=results['forecasts'][best],
        test=results['test'],
        save_name='best_forecast'
    )

    for family, group in comparison.groupby('family'):
        name = group['aicc'].idxmin()
        paths[f'residuals_{family.lower()}'] = viz.plot_residual_diagnostics(
            fits[name],
            lags=settings['analysis']['ljung_box_lag'],
            save_name=f"residuals_{family.lower()}"
        )

    return paths


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Retail Turnover Forecasting',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--config',
        type=str,
        default='config/settings.yaml',
        help='Path to configuration file'
    )

    parser.add_argument(
        '--data',
        type=str,
        help='Local workbook or CSV to use instead of downloading'
    )

    parser.add_argument(
        '--series-id',
        type=str,
        default=None,
        help='Series ID to analyse (random if not specified)'
    )

    parser.add_argument(
        '--output',
        type=str,
        default=None,
        help='Output directory for results'
    )

    parser.add_argument(
        '--refresh',
        action='store_true',
        help='Download the table even if a cached copy exists'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )

    parser.add_argument(
        '--no-plots',
        action='store_true',
        help='Skip chart generation'
    )

    args = parser.parse_args()

    setup_logging(args.log_level)
    settings = load_settings(args.config)

    try:
        run_pipeline(
            settings,
            data_path=args.data,
            series_id=args.series_id,
            output=args.output,
            refresh=args.refresh,
            make_plots=not args.no_plots
        )
    except RetailForecastError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == '__main__':
    main()
