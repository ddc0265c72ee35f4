"""
Visualization Module
====================

Static charts for exploring a monthly turnover series and its fitted
candidates: time plot, seasonal and subseries plots, ACF/PACF, residual
panels and forecast fans.

Usage:
    from retail_turnover.common import Visualizer

    viz = Visualizer(output_dir="outputs/plots")
    viz.plot_time_series(series, title='Victoria / Food retailing')
    viz.plot_forecast_comparison(train, test, forecasts)
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Optional, Dict, Tuple
import matplotlib.pyplot as plt
import seaborn as sns
from statsmodels.graphics.tsaplots import plot_acf, plot_pacf
from loguru import logger

from ..forecasting.base import CandidateFit


class Visualizer:
    """
    Visualization toolkit for monthly turnover series.

    Every plot is saved as PNG under ``output_dir`` when ``save_name`` is
    given, and displayed only when ``show_plots`` is set.

    Example:
        >>> viz = Visualizer(output_dir="outputs/plots")
        >>> viz.plot_seasonal(series, save_name='seasonal')
        >>> viz.plot_acf_pacf(result.differenced, save_name='acf_differenced')
    """

    def __init__(
        self,
        output_dir: str = "outputs/plots",
        style: str = "seaborn-v0_8-whitegrid",
        figsize: Tuple[int, int] = (12, 8),
        dpi: int = 100,
        palette: str = "husl",
        show_plots: bool = False
    ):
        """
        Initialize Visualizer.

        Args:
            output_dir: Directory for saving plots
            style: Matplotlib style
            figsize: Default figure size
            dpi: Resolution for saved figures
            palette: Color palette
            show_plots: Display figures interactively after saving
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.figsize = figsize
        self.dpi = dpi
        self.palette = palette
        self.show_plots = show_plots

        plt.style.use(style)
        sns.set_palette(palette)
        logger.info(f"Visualizer initialized. Output: {self.output_dir}")

    def _finish(self, fig: plt.Figure, save_name: Optional[str]) -> Optional[Path]:
        plt.tight_layout()

        save_path = None
        if save_name:
            save_path = self.output_dir / f"{save_name}.png"
            fig.savefig(save_path, dpi=self.dpi, bbox_inches='tight')
            logger.info(f"Saved plot: {save_path}")

        if self.show_plots:
            plt.show()
        else:
            plt.close(fig)
        return save_path

    def plot_time_series(
        self,
        series: pd.Series,
        title: str = "Monthly Turnover",
        forecast_df: Optional[pd.DataFrame] = None,
        test: Optional[pd.Series] = None,
        ylabel: str = "Turnover ($m)",
        save_name: Optional[str] = None
    ) -> Optional[Path]:
        """
        Plot a series with an optional forecast fan.

        Args:
            series: Monthly series (or the training part of it)
            title: Plot title
            forecast_df: Frame with ds, yhat, yhat_lower, yhat_upper
            test: Held-out observations drawn against the forecast
            ylabel: Y-axis label
            save_name: Filename for saving plot

        Returns:
            Path of the saved PNG, if any
        """
        fig, ax = plt.subplots(figsize=self.figsize)

        ax.plot(series.index, series.values, label='Actual', linewidth=2)

        if test is not None:
            ax.plot(test.index, test.values, label='Test', linewidth=2, color='black')

        if forecast_df is not None:
            ax.plot(
                forecast_df['ds'],
                forecast_df['yhat'],
                label='Forecast',
                linestyle='--',
                linewidth=2
            )
            ax.fill_between(
                forecast_df['ds'],
                forecast_df['yhat_lower'],
                forecast_df['yhat_upper'],
                alpha=0.3,
                label='Prediction interval'
            )

        ax.set_xlabel('Month', fontsize=12)
        ax.set_ylabel(ylabel, fontsize=12)
        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.legend()
        ax.grid(True, alpha=0.3)

        return self._finish(fig, save_name)

    def plot_seasonal(
        self,
        series: pd.Series,
        title: str = "Seasonal Plot",
        save_name: Optional[str] = None
    ) -> Optional[Path]:
        """One line per year across the calendar months."""
        frame = pd.DataFrame({
            'year': series.index.year,
            'month': series.index.month,
            'value': series.values
        })

        fig, ax = plt.subplots(figsize=self.figsize)
        sns.lineplot(
            data=frame, x='month', y='value', hue='year',
            palette='viridis', legend='brief', ax=ax
        )

        ax.set_xticks(range(1, 13))
        ax.set_xticklabels(['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
                            'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec'])
        ax.set_xlabel('Month', fontsize=12)
        ax.set_ylabel('Turnover', fontsize=12)
        ax.set_title(title, fontsize=14, fontweight='bold')
        sns.move_legend(ax, 'upper left', bbox_to_anchor=(1.01, 1), title='Year', fontsize=8)

        return self._finish(fig, save_name)

    def plot_subseries(
        self,
        series: pd.Series,
        title: str = "Seasonal Subseries",
        save_name: Optional[str] = None
    ) -> Optional[Path]:
        """
        One panel per calendar month showing that month across years,
        with the month's mean as a horizontal line.
        """
        fig, axes = plt.subplots(1, 12, figsize=(self.figsize[0] + 4, 4), sharey=True)
        colors = sns.color_palette(self.palette, 12)

        for month, ax in enumerate(axes, start=1):
            values = series[series.index.month == month]
            ax.plot(values.index.year, values.values, color=colors[month - 1])
            if len(values) > 0:
                ax.axhline(values.mean(), color='black', linewidth=1)
            ax.set_title(pd.Timestamp(2000, month, 1).strftime('%b'), fontsize=10)
            ax.tick_params(axis='x', labelbottom=False)
            ax.grid(True, alpha=0.3)

        axes[0].set_ylabel('Turnover', fontsize=12)
        fig.suptitle(title, fontsize=14, fontweight='bold')

        return self._finish(fig, save_name)

    def plot_acf_pacf(
        self,
        series: pd.Series,
        lags: int = 36,
        title: str = "ACF / PACF",
        save_name: Optional[str] = None
    ) -> Optional[Path]:
        """
        Plot autocorrelation and partial autocorrelation functions.

        Args:
            series: Series (typically after transformation and differencing)
            lags: Maximum lag (capped at half the series length for the PACF)
            title: Plot title
            save_name: Filename for saving
        """
        values = pd.Series(series).dropna()
        lags = max(1, min(lags, len(values) // 2 - 1))

        fig, (ax1, ax2) = plt.subplots(2, 1, figsize=self.figsize)
        plot_acf(values, lags=lags, ax=ax1, zero=False)
        plot_pacf(values, lags=lags, ax=ax2, zero=False, method='ywm')

        ax1.set_title('Autocorrelation', fontsize=12)
        ax2.set_title('Partial Autocorrelation', fontsize=12)
        ax2.set_xlabel('Lag (months)', fontsize=12)
        fig.suptitle(title, fontsize=14, fontweight='bold')

        return self._finish(fig, save_name)

    def plot_residual_diagnostics(
        self,
        fit: CandidateFit,
        lags: int = 24,
        save_name: Optional[str] = None
    ) -> Optional[Path]:
        """
        Residual panel: innovation residuals over time, their ACF and a
        histogram with KDE.

        Args:
            fit: Fitted candidate
            lags: Lags shown in the ACF
            save_name: Filename for saving
        """
        residuals = fit.residuals.dropna()
        lags = max(1, min(lags, len(residuals) - 1))

        fig = plt.figure(figsize=self.figsize)
        grid = fig.add_gridspec(2, 2)
        ax_line = fig.add_subplot(grid[0, :])
        ax_acf = fig.add_subplot(grid[1, 0])
        ax_hist = fig.add_subplot(grid[1, 1])

        ax_line.plot(residuals.index, residuals.values, linewidth=1)
        ax_line.axhline(0, color='grey', linestyle='--', linewidth=1)
        ax_line.set_ylabel('Residual', fontsize=12)
        ax_line.set_title(f'Innovation residuals: {fit.name}', fontsize=14, fontweight='bold')
        ax_line.grid(True, alpha=0.3)

        plot_acf(residuals.values, lags=lags, ax=ax_acf, zero=False)
        ax_acf.set_title('ACF', fontsize=12)
        ax_acf.set_xlabel('Lag (months)')

        sns.histplot(x=residuals.values, kde=True, ax=ax_hist)
        ax_hist.set_title('Distribution', fontsize=12)
        ax_hist.set_xlabel('Residual')

        return self._finish(fig, save_name)

    def plot_forecast_comparison(
        self,
        train: pd.Series,
        test: pd.Series,
        forecasts: Dict[str, pd.DataFrame],
        title: str = "Forecast Comparison",
        history: Optional[int] = 60,
        show_intervals: bool = True,
        save_name: Optional[str] = None
    ) -> Optional[Path]:
        """
        Overlay every candidate's test-period forecast on the observations.

        Args:
            train: Training series
            test: Test series
            forecasts: Mapping of model name -> forecast frame
            title: Plot title
            history: Number of trailing training months to draw (None for all)
            show_intervals: Shade each candidate's prediction interval
            save_name: Filename for saving
        """
        fig, ax = plt.subplots(figsize=self.figsize)

        shown = train if history is None else train.iloc[-history:]
        ax.plot(shown.index, shown.values, color='black', linewidth=2, label='Train')
        ax.plot(test.index, test.values, color='black', linestyle=':', linewidth=2, label='Test')

        colors = sns.color_palette(self.palette, max(len(forecasts), 1))
        for color, (name, forecast) in zip(colors, forecasts.items()):
            ax.plot(forecast['ds'], forecast['yhat'], color=color, linewidth=1.5, label=name)
            if show_intervals:
                ax.fill_between(
                    forecast['ds'], forecast['yhat_lower'], forecast['yhat_upper'],
                    color=color, alpha=0.1
                )

        ax.set_xlabel('Month', fontsize=12)
        ax.set_ylabel('Turnover', fontsize=12)
        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.legend(fontsize=8, loc='upper left')
        ax.grid(True, alpha=0.3)

        return self._finish(fig, save_name)
