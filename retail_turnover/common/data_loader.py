"""
Data Loading Module
===================

Downloads, caches and parses statistical-agency time series workbooks
into a long observation table.

Usage:
    from retail_turnover.common import DataLoader

    loader = DataLoader(settings['data'])
    raw = loader.load_table("8501.0", 11)

    # Or from a local copy of the workbook
    raw = loader.read_time_series_workbook("data/sample_8501011.xlsx")
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Optional, Union, List, Dict, Tuple, Any
import requests
from loguru import logger

from ..exceptions import DataFetchError
from .config import DEFAULT_SETTINGS


class DataLoader:
    """
    Loader for published time series tables.

    The workbook layout is one sheet with a row of series descriptions,
    a block of metadata rows ending in ``Series ID``, then one row per
    period with the date in the first column.

    Attributes:
        config (dict): Data settings (catalogue, table, url_template, ...)
        cache_dir (Path): Directory holding downloaded workbooks

    Example:
        >>> loader = DataLoader()
        >>> raw = loader.load_table()
        >>> print(f"Loaded {raw['series_id'].nunique()} series")
    """

    METADATA_FIELDS = {
        'Unit': 'unit',
        'Series Type': 'series_type',
        'Data Type': 'data_type',
        'Frequency': 'frequency',
    }

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize DataLoader.

        Args:
            config: The ``data`` section of the settings
        """
        self.config = {**DEFAULT_SETTINGS['data'], **(config or {})}
        self.cache_dir = Path(self.config['cache_dir'])
        self.supported_formats = ['.xlsx', '.xls', '.csv']
        logger.info("DataLoader initialized")

    @staticmethod
    def table_code(catalogue: str, table: int) -> str:
        """Build the file stem used by the agency, e.g. ``8501.0`` + 11 -> ``8501011``."""
        code = str(catalogue).replace('.', '')
        return f"{code}{int(table):02d}"

    def table_url(self, catalogue: str, table: int) -> str:
        return self.config['url_template'].format(code=self.table_code(catalogue, table))

    def fetch_table(
        self,
        catalogue: Optional[str] = None,
        table: Optional[int] = None,
        refresh: bool = False
    ) -> Path:
        """
        Download a table workbook into the cache directory.

        Args:
            catalogue: Catalogue number (defaults to config)
            table: Table number (defaults to config)
            refresh: Download even if a cached copy exists

        Returns:
            Path to the cached workbook

        Raises:
            DataFetchError: On connection errors or a non-success status
        """
        catalogue = catalogue or self.config['catalogue']
        table = table or self.config['table']

        cache_path = self.cache_dir / f"{self.table_code(catalogue, table)}.xlsx"
        if cache_path.exists() and not refresh:
            logger.info(f"Using cached table: {cache_path}")
            return cache_path

        url = self.table_url(catalogue, table)
        logger.info(f"Downloading table {catalogue} #{table} from {url}")

        try:
            response = requests.get(url, timeout=self.config['timeout'])
            response.raise_for_status()
        except requests.RequestException as e:
            raise DataFetchError(f"Could not download {url}: {e}") from e

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        cache_path.write_bytes(response.content)
        logger.info(f"Cached {len(response.content) / 1024:.0f} KB to {cache_path}")
        return cache_path

    def load_table(
        self,
        catalogue: Optional[str] = None,
        table: Optional[int] = None,
        refresh: bool = False
    ) -> pd.DataFrame:
        """
        Fetch (or reuse the cached copy of) a table and parse it.

        Returns:
            Unfiltered long observation table
        """
        path = self.fetch_table(catalogue, table, refresh=refresh)
        return self.read_time_series_workbook(path)

    def read_time_series_workbook(
        self,
        filepath: Union[str, Path],
        sheet_name: Optional[str] = None
    ) -> pd.DataFrame:
        """
        Parse a time series workbook into long format.

        Args:
            filepath: Path to ``.xlsx`` or ``.csv`` file in workbook layout
            sheet_name: Worksheet holding the data (Excel only)

        Returns:
            DataFrame with columns: series_id, series, unit, series_type,
            data_type, frequency, month, value. ``value`` is left as parsed;
            numeric coercion happens during cleaning.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If the file format or layout is not recognised
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        suffix = filepath.suffix.lower()
        if suffix not in self.supported_formats:
            raise ValueError(f"Unsupported format: {filepath.suffix}")

        logger.info(f"Loading data from {filepath}")

        if suffix == '.csv':
            raw = pd.read_csv(filepath, header=None, dtype=object)
        else:
            raw = pd.read_excel(
                filepath,
                sheet_name=sheet_name or self.config['sheet_name'],
                header=None
            )

        row_labels = raw.iloc[:, 0].astype(str).str.strip()
        id_rows = row_labels.index[row_labels == 'Series ID']
        if len(id_rows) == 0:
            raise ValueError(f"No 'Series ID' row found in {filepath}")
        id_row = id_rows[0]

        descriptions = raw.iloc[0, 1:]
        metadata = raw.iloc[1:id_row + 1].copy()
        metadata.index = row_labels.iloc[1:id_row + 1]
        series_ids = metadata.loc['Series ID'].iloc[1:].astype(str).str.strip()

        body = raw.iloc[id_row + 1:]
        months = pd.to_datetime(body.iloc[:, 0], errors='coerce')
        body = body[months.notna()]
        months = months[months.notna()].dt.to_period('M').dt.to_timestamp()

        wide = pd.DataFrame(
            body.iloc[:, 1:].to_numpy(),
            index=pd.DatetimeIndex(months.to_numpy(), name='month'),
            columns=series_ids.to_numpy()
        )
        wide.columns.name = 'series_id'

        long = wide.reset_index().melt(id_vars='month', var_name='series_id', value_name='value')

        lookup = pd.DataFrame({
            'series_id': series_ids.to_numpy(),
            'series': descriptions.astype(str).str.strip().to_numpy(),
        })
        for field, column in self.METADATA_FIELDS.items():
            if field in metadata.index:
                lookup[column] = metadata.loc[field].iloc[1:].to_numpy()
            else:
                lookup[column] = np.nan

        long = long.merge(lookup, on='series_id', how='left')
        long = long[['series_id', 'series', 'unit', 'series_type', 'data_type',
                     'frequency', 'month', 'value']]

        logger.info(
            f"Loaded {len(long)} observations across {len(series_ids)} series "
            f"({months.min():%b %Y} - {months.max():%b %Y})"
        )
        return long

    def validate_data(
        self,
        df: pd.DataFrame,
        required_columns: Optional[List[str]] = None
    ) -> Tuple[bool, Dict[str, Any]]:
        """
        Validate an observation table and generate a quality report.

        Args:
            df: Observation table
            required_columns: List of required column names

        Returns:
            Tuple of (is_valid, validation_report)

        Example:
            >>> is_valid, report = loader.validate_data(raw)
            >>> if not is_valid:
            ...     print(report['errors'])
        """
        report = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'statistics': {}
        }

        required_columns = required_columns or ['series_id', 'series', 'month', 'value']
        missing = set(required_columns) - set(df.columns)
        if missing:
            report['errors'].append(f"Missing required columns: {missing}")
            report['is_valid'] = False
            return report['is_valid'], report

        counts = df.groupby('series_id')['month'].count()
        min_points = self.config.get('min_data_points', 49)
        short = counts[counts < min_points]
        if len(short) > 0:
            report['warnings'].append(
                f"{len(short)} series have fewer than {min_points} observations"
            )

        duplicated = df.duplicated(subset=['series_id', 'month']).sum()
        if duplicated:
            report['errors'].append(f"{duplicated} duplicated (series_id, month) keys")
            report['is_valid'] = False

        report['statistics'] = {
            'n_rows': len(df),
            'n_series': df['series_id'].nunique(),
            'first_month': str(df['month'].min()),
            'last_month': str(df['month'].max()),
            'missing_values': int(pd.to_numeric(df['value'], errors='coerce').isna().sum()),
        }

        return report['is_valid'], report

    def get_data_summary(self, df: pd.DataFrame) -> Dict[str, Any]:
        """
        Summarise an observation table per series.

        Returns:
            Dictionary with summary statistics
        """
        values = pd.to_numeric(df['value'], errors='coerce')
        per_series = values.groupby(df['series_id']).agg(['count', 'mean', 'min', 'max'])

        return {
            'shape': df.shape,
            'n_series': df['series_id'].nunique(),
            'missing_percentage': float(values.isna().mean() * 100),
            'memory_usage_mb': df.memory_usage(deep=True).sum() / 1024**2,
            'per_series': per_series.to_dict('index'),
        }
