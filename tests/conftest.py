"""
Shared fixtures: a synthetic table in the published workbook layout and
a 60-month series with known trend and seasonality.
"""
import importlib.util
from pathlib import Path

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]

INDUSTRIES = ["Food retailing", "Department stores", "Total (Industry)"]


def _load_generator():
    spec = importlib.util.spec_from_file_location(
        "generate_sample_data", ROOT / "data" / "generate_sample_data.py"
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(scope="session")
def generator():
    return _load_generator()


@pytest.fixture(scope="session")
def workbook_frame(generator):
    """72 months, 8 regions + national total, 3 industries; first series has gaps."""
    return generator.build_workbook_frame(
        start_date="2015-01-01", n_months=72, industries=INDUSTRIES, n_gap_series=1, seed=7
    )


@pytest.fixture
def workbook_csv(generator, workbook_frame, tmp_path):
    return Path(generator.write_workbook(workbook_frame, str(tmp_path / "8501011.csv")))


@pytest.fixture
def raw_table(workbook_csv):
    from retail_turnover.common import DataLoader
    return DataLoader().read_time_series_workbook(workbook_csv)


def trend_season(n_months: int = 60) -> np.ndarray:
    """Noise-free level: 100 + 1 per month, +-10 annual sine."""
    t = np.arange(n_months)
    return 100.0 + 1.0 * t + 10.0 * np.sin(2 * np.pi * t / 12)


@pytest.fixture(scope="session")
def seasonal_series():
    """60 monthly points of trend + seasonality + N(0, 1) noise."""
    rng = np.random.default_rng(2024)
    values = trend_season(60) + rng.normal(0, 1.0, 60)
    index = pd.date_range("2015-01-01", periods=60, freq="MS", name="month")
    return pd.Series(values, index=index, name="SYNTH001")


@pytest.fixture(scope="session")
def seasonal_truth():
    index = pd.date_range("2015-01-01", periods=60, freq="MS", name="month")
    return pd.Series(trend_season(60), index=index)
