"""
Reporting Module
================

Printed tables and persisted reports (CSV, JSON, HTML) for a forecasting
run: the candidate comparison, residual diagnostics and the test-period
forecasts of every candidate.

Usage:
    from retail_turnover.common import Reporter

    reporter = Reporter(output_dir="outputs/reports")
    reporter.print_table(comparison, title="Model comparison")
    reporter.generate_forecast_report(results, "turnover_forecast")
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import List, Dict, Any, Optional
from datetime import datetime
import json
from loguru import logger


class Reporter:
    """
    Report generation for forecasting results.

    Example:
        >>> reporter = Reporter(output_dir="outputs/reports")
        >>> paths = reporter.generate_forecast_report(results, "turnover_forecast")
        >>> print(paths['html'])
    """

    def __init__(self, output_dir: str = "outputs/reports"):
        """
        Initialize Reporter.

        Args:
            output_dir: Directory for saving reports
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Reporter initialized. Output: {self.output_dir}")

    def print_table(
        self,
        df: pd.DataFrame,
        title: Optional[str] = None,
        float_format: str = "{:,.3f}"
    ) -> str:
        """
        Print a table to stdout.

        Returns:
            The rendered text
        """
        text = df.to_string(float_format=float_format.format)
        if title:
            rule = "=" * max(len(title), 20)
            text = f"\n{title}\n{rule}\n{text}\n"
        print(text)
        return text

    def generate_forecast_report(
        self,
        results: Dict[str, Any],
        report_name: str,
        formats: Optional[List[str]] = None
    ) -> Dict[str, Path]:
        """
        Generate the forecast comparison report.

        Args:
            results: Pipeline results containing:
                - comparison: DataFrame of candidates (index = model name)
                - forecasts: Mapping of model name -> forecast frame
                - test: Test series
                - series_info: Label fields of the selected series
                - transform: Box-Cox lambda and differencing summary
                - diagnostics: Mapping of model name -> residual diagnostics
                - fits: Mapping of model name -> CandidateFit
                - data_summary: Table summary from DataLoader.get_data_summary
            report_name: Base name for report files
            formats: Output formats to generate (csv, json, html)

        Returns:
            Dictionary of format -> file path
        """
        formats = formats or ['csv', 'json', 'html']
        output_paths = {}
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        comparison = results.get('comparison', pd.DataFrame())
        forecast = self._forecast_table(results.get('forecasts', {}), results.get('test'))

        if 'csv' in formats:
            if not comparison.empty:
                csv_path = self.output_dir / f"{report_name}_comparison_{timestamp}.csv"
                comparison.to_csv(csv_path, index_label='model')
                output_paths['csv'] = csv_path
                logger.info(f"Saved CSV report: {csv_path}")
            if not forecast.empty:
                forecast_path = self.output_dir / f"{report_name}_forecasts_{timestamp}.csv"
                forecast.to_csv(forecast_path, index=False)
                output_paths['forecasts_csv'] = forecast_path
                logger.info(f"Saved CSV report: {forecast_path}")

        if 'json' in formats:
            json_path = self.output_dir / f"{report_name}_{timestamp}.json"

            data_summary = results.get('data_summary', {})
            json_data = {
                'generated_at': timestamp,
                'data': self._convert_to_serializable({
                    key: data_summary[key]
                    for key in ('n_series', 'missing_percentage')
                    if key in data_summary
                }),
                'series': results.get('series_info', {}),
                'models': self._convert_to_serializable({
                    name: fit.get_model_info()
                    for name, fit in results.get('fits', {}).items()
                }),
                'transform': self._convert_to_serializable(results.get('transform', {})),
                'comparison': self._convert_to_serializable(
                    comparison.reset_index().to_dict('records') if not comparison.empty else []
                ),
                'diagnostics': self._convert_to_serializable(results.get('diagnostics', {})),
                'forecast_summary': {
                    'periods': int(forecast['ds'].nunique()) if not forecast.empty else 0,
                    'start_date': str(forecast['ds'].min()) if not forecast.empty else None,
                    'end_date': str(forecast['ds'].max()) if not forecast.empty else None,
                }
            }

            with open(json_path, 'w') as f:
                json.dump(json_data, f, indent=2, default=str)
            output_paths['json'] = json_path
            logger.info(f"Saved JSON report: {json_path}")

        if 'html' in formats:
            html_path = self.output_dir / f"{report_name}_{timestamp}.html"
            html_content = self._generate_forecast_html(
                comparison, forecast, results.get('series_info', {}),
                results.get('transform', {}), report_name
            )

            with open(html_path, 'w') as f:
                f.write(html_content)
            output_paths['html'] = html_path
            logger.info(f"Saved HTML report: {html_path}")

        return output_paths

    def _forecast_table(
        self,
        forecasts: Dict[str, pd.DataFrame],
        test: Optional[pd.Series]
    ) -> pd.DataFrame:
        """Long table of every candidate's forecast with the observed value."""
        if not forecasts:
            return pd.DataFrame()

        frames = []
        for name, forecast in forecasts.items():
            frame = forecast.copy()
            frame.insert(0, 'model', name)
            if test is not None:
                frame['actual'] = test.reindex(pd.DatetimeIndex(frame['ds'])).to_numpy()
            frames.append(frame)
        return pd.concat(frames, ignore_index=True)

    def _convert_to_serializable(self, obj: Any) -> Any:
        """Convert numpy/pandas types to JSON serializable."""
        if isinstance(obj, dict):
            return {str(k): self._convert_to_serializable(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [self._convert_to_serializable(v) for v in obj]
        elif isinstance(obj, (bool, np.bool_)):
            return bool(obj)
        elif isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return None if np.isnan(obj) else float(obj)
        elif isinstance(obj, float):
            return None if np.isnan(obj) else obj
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, pd.DataFrame):
            return obj.to_dict('records')
        elif isinstance(obj, pd.Series):
            return obj.to_dict()
        elif isinstance(obj, pd.Timestamp):
            return obj.isoformat()
        else:
            return obj

    def _generate_forecast_html(
        self,
        comparison: pd.DataFrame,
        forecast: pd.DataFrame,
        series_info: Dict[str, Any],
        transform: Dict[str, Any],
        report_name: str
    ) -> str:
        """Generate HTML report for forecast results."""
        comparison_html = (
            comparison.to_html(float_format=lambda v: f"{v:,.3f}", border=0)
            if not comparison.empty else '<p>No candidates</p>'
        )
        forecast_html = (
            forecast.to_html(index=False, float_format=lambda v: f"{v:,.1f}", border=0)
            if not forecast.empty else '<p>No forecasts</p>'
        )

        lowest_rmse = comparison['rmse'].idxmin() if not comparison.empty else 'N/A'
        lmbda = transform.get('lambda')
        lambda_display = f"{lmbda:.3f}" if isinstance(lmbda, (int, float)) else "N/A"

        return f"""
<!DOCTYPE html>
<html>
<head>
    <title>{report_name} - Forecast Report</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 40px; background: #f5f5f5; }}
        .container {{ max-width: 1200px; margin: 0 auto; background: white; padding: 30px; border-radius: 10px; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }}
        h1 {{ color: #2c3e50; border-bottom: 3px solid #3498db; padding-bottom: 10px; }}
        h2 {{ color: #34495e; margin-top: 30px; }}
        table {{ width: 100%; border-collapse: collapse; margin: 20px 0; }}
        th, td {{ padding: 8px; text-align: right; border-bottom: 1px solid #ddd; }}
        th {{ background: #3498db; color: white; }}
        tr:hover {{ background: #f5f5f5; }}
        .info-box {{ background: #e8f4fd; padding: 15px; border-radius: 5px; margin: 10px 0; border-left: 4px solid #3498db; }}
        .timestamp {{ color: #95a5a6; font-size: 0.9em; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>Retail Turnover Forecast Report</h1>
        <p class="timestamp">Generated: {datetime.now().strftime("%Y-%m-%d %H:%M:%S")}</p>

        <h2>Series</h2>
        <div class="info-box">
            <strong>Series ID:</strong> {series_info.get('series_id', 'N/A')}<br>
            <strong>Region:</strong> {series_info.get('region', 'N/A')}<br>
            <strong>Industry:</strong> {series_info.get('industry', 'N/A')}<br>
            <strong>Box-Cox lambda:</strong> {lambda_display}<br>
            <strong>Differencing:</strong> D={transform.get('seasonal_diffs', 'N/A')}, d={transform.get('diffs', 'N/A')}
        </div>

        <h2>Candidate Comparison</h2>
        <p>Sorted by test RMSE. Lowest RMSE: <strong>{lowest_rmse}</strong>.
        AICc is comparable only within a model family.</p>
        {comparison_html}

        <h2>Test Period Forecasts</h2>
        {forecast_html}
    </div>
</body>
</html>
"""
