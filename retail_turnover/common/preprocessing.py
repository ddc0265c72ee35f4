"""
Series Preprocessing Module
===========================

Selection and cleaning of retail turnover series: region filtering,
label decomposition, numeric coercion, removal of incomplete series and
the positional train/test split.

Usage:
    from retail_turnover.common import Preprocessor

    preprocessor = Preprocessor()
    clean = preprocessor.clean_data(raw)
    series = preprocessor.select_series(clean)
    train, test = preprocessor.train_test_split(series, test_size=24)
"""

import re
import pandas as pd
import numpy as np
from typing import Optional, List, Dict, Tuple, Any
from loguru import logger

from ..exceptions import LabelParseError, EmptySeriesPoolError
from .config import DEFAULT_SETTINGS


def parse_label(label: str, delimiter: str = ";") -> Tuple[str, str, str]:
    """
    Split a composite label into (category, region, industry).

    Labels look like ``"Turnover ;  Victoria ;  Food retailing ;"``.

    Raises:
        LabelParseError: If the label does not have exactly three
            non-empty fields
    """
    if not isinstance(label, str):
        raise LabelParseError(str(label), "not a string")

    text = label.strip()
    if text.endswith(delimiter):
        text = text[:-len(delimiter)]

    fields = [part.strip() for part in text.split(delimiter)]
    if len(fields) != 3:
        raise LabelParseError(label, f"expected 3 fields, found {len(fields)}")
    if not all(fields):
        raise LabelParseError(label, "empty field")

    return fields[0], fields[1], fields[2]


class Preprocessor:
    """
    Cleaner for the state-by-industry turnover table.

    Provides methods for:
    - Filtering labels to the state/territory regions
    - Decomposing composite labels
    - Dropping series with any missing observation
    - Extracting a single monthly series
    - Positional train/test splitting

    Example:
        >>> preprocessor = Preprocessor()
        >>> clean = preprocessor.clean_data(raw)
        >>> print(clean['region'].unique())
    """

    def __init__(
        self,
        regions: Optional[List[str]] = None,
        category: Optional[str] = None,
        delimiter: Optional[str] = None,
        random_state: Optional[int] = None
    ):
        """
        Initialize Preprocessor.

        Args:
            regions: Region names to keep (defaults to the eight states/territories)
            category: Leading label field to keep, e.g. ``Turnover``
            delimiter: Label field delimiter
            random_state: Seed used when picking a series at random
        """
        defaults = DEFAULT_SETTINGS['data']
        self.regions = list(regions or defaults['regions'])
        self.category = category or defaults['category']
        self.delimiter = delimiter or defaults['label_delimiter']
        self.random_state = (
            random_state if random_state is not None
            else DEFAULT_SETTINGS['analysis']['random_state']
        )

        d = re.escape(self.delimiter)
        alternatives = "|".join(re.escape(region) for region in self.regions)
        self._prefix_pattern = re.compile(
            rf"^\s*{re.escape(self.category)}\s*{d}\s*(?:{alternatives})\s*{d}"
        )
        logger.info(f"Preprocessor initialized for {len(self.regions)} regions")

    def parse_label(self, label: str) -> Tuple[str, str, str]:
        return parse_label(label, self.delimiter)

    def filter_regions(self, raw: pd.DataFrame) -> pd.DataFrame:
        """
        Keep rows whose label starts with one of the region prefixes and
        whose industry is not an aggregate total.

        Args:
            raw: Long observation table with a ``series`` label column

        Returns:
            Filtered copy with ``category``, ``region`` and ``industry`` columns
        """
        labels = raw['series'].astype(str)
        df = raw.loc[labels.str.match(self._prefix_pattern)].copy()

        parsed = {label: self.parse_label(label) for label in df['series'].unique()}
        fields = pd.DataFrame(
            [parsed[label] for label in df['series']],
            columns=['category', 'region', 'industry'],
            index=df.index
        )
        df[['category', 'region', 'industry']] = fields

        is_total = df['industry'].str.startswith('Total')
        df = df.loc[~is_total]

        logger.info(
            f"Kept {df['series_id'].nunique()} of {raw['series_id'].nunique()} series "
            f"after region/industry filtering"
        )
        return df

    def clean_data(self, raw: pd.DataFrame) -> pd.DataFrame:
        """
        Filter, decompose labels, coerce values and drop incomplete series.

        Args:
            raw: Long observation table from the DataLoader

        Returns:
            Cleaned long table sorted by series_id and month

        Raises:
            EmptySeriesPoolError: If no complete series remain
            ValueError: If a retained series has negative turnover or a
                repeated month
        """
        original_series = raw['series_id'].nunique()
        logger.info(f"Starting data cleaning. Series: {original_series}")

        df = self.filter_regions(raw)
        df['value'] = pd.to_numeric(df['value'], errors='coerce')
        df['month'] = pd.to_datetime(df['month'])

        has_missing = df['value'].isna().groupby(df['series_id']).any()
        incomplete = has_missing[has_missing].index
        if len(incomplete) > 0:
            logger.info(f"Dropping {len(incomplete)} series with missing values")
            df = df[~df['series_id'].isin(incomplete)]

        if df.empty:
            raise EmptySeriesPoolError(
                f"No complete series left out of {original_series} after cleaning"
            )

        if df.duplicated(subset=['series_id', 'month']).any():
            raise ValueError("Repeated month within a series")
        if (df['value'] < 0).any():
            raise ValueError("Negative turnover in retained series")

        df = df.sort_values(['series_id', 'month']).reset_index(drop=True)
        logger.info(f"Cleaning complete. Series: {original_series} -> {df['series_id'].nunique()}")
        return df

    def list_series(self, clean: pd.DataFrame) -> pd.DataFrame:
        """One row per retained series with its label fields and length."""
        return (
            clean.groupby(['series_id', 'category', 'region', 'industry'])
            .agg(start=('month', 'min'), end=('month', 'max'), n_obs=('value', 'size'))
            .reset_index()
        )

    def select_series(
        self,
        clean: pd.DataFrame,
        series_id: Optional[str] = None
    ) -> pd.Series:
        """
        Extract one series as a gap-free monthly pd.Series.

        Args:
            clean: Cleaned long table
            series_id: Series to extract; a seeded random choice if None

        Returns:
            Series indexed by month (``freq='MS'``) named by its series_id

        Raises:
            KeyError: Unknown series_id
            ValueError: The series has gaps in its monthly index
        """
        available = sorted(clean['series_id'].unique())
        if series_id is None:
            rng = np.random.default_rng(self.random_state)
            series_id = available[int(rng.integers(len(available)))]
            logger.info(f"Randomly selected series {series_id}")
        elif series_id not in available:
            raise KeyError(f"Series {series_id!r} not among the cleaned series")

        rows = clean[clean['series_id'] == series_id].sort_values('month')
        series = pd.Series(
            rows['value'].to_numpy(dtype=float),
            index=pd.DatetimeIndex(rows['month']).to_period('M').to_timestamp().rename('month'),
            name=series_id
        )

        expected = pd.date_range(series.index.min(), series.index.max(), freq='MS')
        if len(expected) != len(series):
            raise ValueError(
                f"Series {series_id} has {len(expected) - len(series)} missing months"
            )
        series.index = expected.rename('month')

        first = rows.iloc[0]
        logger.info(
            f"Selected {series_id}: {first['region']} / {first['industry']} "
            f"({len(series)} months)"
        )
        return series

    def series_info(self, clean: pd.DataFrame, series_id: str) -> Dict[str, Any]:
        """Label fields of a series, for titles and reports."""
        row = clean.loc[clean['series_id'] == series_id].iloc[0]
        return {
            'series_id': series_id,
            'label': row['series'],
            'category': row['category'],
            'region': row['region'],
            'industry': row['industry'],
        }

    @staticmethod
    def train_test_split(series: pd.Series, test_size: int = 24) -> Tuple[pd.Series, pd.Series]:
        """
        Positional split into a training prefix and a test suffix.

        Args:
            series: Monthly series
            test_size: Length of the test suffix

        Returns:
            Tuple of (train, test)

        Example:
            >>> train, test = Preprocessor.train_test_split(series)
            >>> len(test)
            24
        """
        if test_size <= 0:
            raise ValueError("test_size must be positive")
        if len(series) <= test_size:
            raise ValueError(
                f"Series of length {len(series)} is too short for a {test_size}-point test set"
            )

        train = series.iloc[:-test_size]
        test = series.iloc[-test_size:]
        logger.info(f"Split: {len(train)} training / {len(test)} test observations")
        return train, test
