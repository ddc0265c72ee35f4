#!/usr/bin/env python3
"""
Sample Data Generator
=====================

Generates a synthetic retail turnover workbook in the published table
layout so the pipeline can run offline.

Usage:
    python data/generate_sample_data.py

This will create:
    - sample_8501011.xlsx: Monthly turnover by state and industry
      (sheet ``Data1``: description row, nine metadata rows, then one
      row per month)
"""

import pandas as pd
import numpy as np
import os
from typing import List, Optional

REGIONS = [
    "New South Wales",
    "Victoria",
    "Queensland",
    "South Australia",
    "Western Australia",
    "Tasmania",
    "Northern Territory",
    "Australian Capital Territory",
]

INDUSTRIES = [
    "Food retailing",
    "Household goods retailing",
    "Clothing, footwear and personal accessory retailing",
    "Department stores",
    "Other retailing",
    "Cafes, restaurants and takeaway food services",
    "Total (Industry)",
]

# December peak, February trough
SEASONAL_PROFILE = np.array([
    -0.06, -0.12, -0.02, -0.04, -0.02, -0.05,
    -0.01, 0.00, -0.03, 0.02, 0.05, 0.28
])

METADATA_ROWS = [
    'Unit', 'Series Type', 'Data Type', 'Frequency', 'Collection Month',
    'Series Start', 'Series End', 'No. Obs', 'Series ID'
]


def generate_turnover_series(
    n_months: int,
    base: float = 300.0,
    growth: float = 0.004,
    seasonal_amplitude: float = 1.0,
    noise: float = 0.02,
    start_month: int = 1,
    rng: Optional[np.random.Generator] = None
) -> np.ndarray:
    """
    Generate one monthly turnover series.

    Creates a multiplicative series with:
    - Exponential trend (``growth`` per month)
    - Annual seasonality (December peak)
    - Log-normal noise

    Args:
        n_months: Series length
        base: Level in the first month ($m)
        growth: Monthly growth rate
        seasonal_amplitude: Scale of the seasonal profile
        noise: Standard deviation of the log noise
        start_month: Calendar month of the first observation
        rng: Random generator

    Returns:
        Array of strictly positive turnover values
    """
    rng = rng or np.random.default_rng(42)
    t = np.arange(n_months)
    months = (start_month - 1 + t) % 12
    trend = base * np.exp(growth * t)
    season = 1 + seasonal_amplitude * SEASONAL_PROFILE[months]
    return np.round(trend * season * np.exp(rng.normal(0, noise, n_months)), 1)


def build_workbook_frame(
    start_date: str = '2000-01-01',
    n_months: int = 300,
    regions: Optional[List[str]] = None,
    industries: Optional[List[str]] = None,
    n_gap_series: int = 1,
    seed: int = 42
) -> pd.DataFrame:
    """
    Build the sheet contents (no header) of a turnover table.

    One series per (region, industry) pair plus a national
    ``Total (State)`` series per industry, which region filtering drops.
    The first ``n_gap_series`` series have their opening year blank.

    Args:
        start_date: First month
        n_months: Number of months
        regions: Region names (defaults to the eight states/territories)
        industries: Industry names
        n_gap_series: Number of series with missing observations
        seed: Random seed

    Returns:
        DataFrame of cells, ready for ``to_excel(header=False, index=False)``
    """
    rng = np.random.default_rng(seed)
    regions = regions or REGIONS
    industries = industries or INDUSTRIES
    months = pd.date_range(start=start_date, periods=n_months, freq='MS')

    columns = []
    for region in list(regions) + ["Total (State)"]:
        for industry in industries:
            columns.append((region, industry))

    descriptions, metadata, values = [], [], []
    for i, (region, industry) in enumerate(columns):
        series = generate_turnover_series(
            n_months,
            base=rng.uniform(20, 2000),
            growth=rng.uniform(0.001, 0.006),
            seasonal_amplitude=rng.uniform(0.5, 1.5),
            noise=rng.uniform(0.01, 0.04),
            start_month=months[0].month,
            rng=rng
        ).astype(object)

        if i < n_gap_series:
            series[:12] = None

        descriptions.append(f"Turnover ;  {region} ;  {industry} ;")
        metadata.append([
            '$ Millions', 'Original', 'FLOW', 'Month', 'Middle',
            months[0], months[-1], n_months,
            f"A3{3490000 + i}{'ABCDEFGHJKLMNPQRSTVWXYZ'[i % 23]}"
        ])
        values.append(series)

    rows = [[None] + descriptions]
    for j, field in enumerate(METADATA_ROWS):
        rows.append([field] + [meta[j] for meta in metadata])
    for k, month in enumerate(months):
        rows.append([month] + [series[k] for series in values])

    return pd.DataFrame(rows)


def write_workbook(frame: pd.DataFrame, path: str, sheet_name: str = 'Data1') -> str:
    """Write a workbook frame as ``.xlsx`` or ``.csv`` depending on the suffix."""
    if path.lower().endswith('.csv'):
        frame.to_csv(path, header=False, index=False)
    else:
        with pd.ExcelWriter(path, engine='openpyxl') as writer:
            frame.to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


def main():
    """Generate the sample workbook."""
    script_dir = os.path.dirname(os.path.abspath(__file__))

    print("Generating sample turnover workbook...")
    frame = build_workbook_frame()
    path = write_workbook(frame, os.path.join(script_dir, 'sample_8501011.xlsx'))

    n_series = frame.shape[1] - 1
    n_months = frame.shape[0] - 1 - len(METADATA_ROWS)
    print(f"  Saved {n_series} series x {n_months} months to {path}")


if __name__ == '__main__':
    main()
