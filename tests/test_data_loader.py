"""
Unit tests for the DataLoader.

Tests verify:
1. Workbook layout parsing (CSV and Excel) into the long table
2. Download caching and error translation
3. Validation report and table summary
"""
import pandas as pd
import pytest
import requests

from retail_turnover.common import DataLoader
from retail_turnover.common import data_loader as data_loader_module
from retail_turnover.exceptions import DataFetchError


N_SERIES = 9 * 3  # 8 regions + national total, 3 industries
N_MONTHS = 72


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")


class TestReadWorkbook:
    """Test parsing of the published workbook layout."""

    def test_long_table_columns(self, raw_table):
        """Test the long table carries ids, labels, metadata and values."""
        assert list(raw_table.columns) == [
            'series_id', 'series', 'unit', 'series_type', 'data_type',
            'frequency', 'month', 'value'
        ]

    def test_one_row_per_series_and_month(self, raw_table):
        """Test every series is melted over every month."""
        assert raw_table['series_id'].nunique() == N_SERIES
        assert len(raw_table) == N_SERIES * N_MONTHS
        assert not raw_table.duplicated(subset=['series_id', 'month']).any()

    def test_months_are_month_starts(self, raw_table):
        """Test dates are normalised to the first of the month."""
        months = pd.DatetimeIndex(raw_table['month'].unique())
        assert (months.day == 1).all()
        assert months.min() == pd.Timestamp("2015-01-01")
        assert months.max() == pd.Timestamp("2020-12-01")

    def test_labels_and_metadata(self, raw_table):
        """Test descriptions and metadata rows are attached to each series."""
        first = raw_table[raw_table['series_id'] == "A33490001B"].iloc[0]
        assert first['series'] == "Turnover ;  New South Wales ;  Department stores ;"
        assert first['unit'] == "$ Millions"
        assert first['series_type'] == "Original"

    def test_excel_matches_csv(self, generator, workbook_frame, tmp_path, raw_table):
        """Test the xlsx path yields the same observations as the CSV path."""
        path = generator.write_workbook(workbook_frame, str(tmp_path / "8501011.xlsx"))
        from_excel = DataLoader().read_time_series_workbook(path)

        assert from_excel['series_id'].nunique() == N_SERIES
        merged = from_excel.merge(raw_table, on=['series_id', 'month'], suffixes=('_x', '_c'))
        values_x = pd.to_numeric(merged['value_x'], errors='coerce')
        values_c = pd.to_numeric(merged['value_c'], errors='coerce')
        pd.testing.assert_series_equal(values_x, values_c, check_names=False)

    def test_missing_file_raises(self, tmp_path):
        """Test a missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            DataLoader().read_time_series_workbook(tmp_path / "missing.xlsx")

    def test_unsupported_format_raises(self, tmp_path):
        """Test an unknown suffix raises ValueError."""
        path = tmp_path / "table.json"
        path.write_text("{}")
        with pytest.raises(ValueError, match="Unsupported format"):
            DataLoader().read_time_series_workbook(path)

    def test_layout_without_series_id_row_raises(self, tmp_path):
        """Test a sheet without the Series ID marker is rejected."""
        path = tmp_path / "plain.csv"
        pd.DataFrame({'a': [1, 2], 'b': [3, 4]}).to_csv(path, index=False)
        with pytest.raises(ValueError, match="Series ID"):
            DataLoader().read_time_series_workbook(path)


class TestFetchTable:
    """Test download and cache behaviour."""

    def test_table_code_and_url(self):
        """Test the whole catalogue number (dot removed) prefixes the table number."""
        loader = DataLoader()
        assert loader.table_code("8501.0", 11) == "8501011"
        assert loader.table_code("6202.0", 1) == "6202001"
        assert loader.table_url("8501.0", 11) == (
            "https://www.abs.gov.au/statistics/industry/retail-and-wholesale-trade/"
            "retail-trade-australia/latest-release/8501011.xlsx"
        )

    def test_custom_url_template(self):
        """Test the template receives the same file stem as the cache."""
        loader = DataLoader({'url_template': "https://example.org/{code}.xlsx"})
        assert loader.table_url("6202.0", 1) == "https://example.org/6202001.xlsx"

    def test_download_requests_table_url(self, tmp_path, monkeypatch):
        """Test the default fetch asks for the configured table's file."""
        urls = []

        def fake_get(url, timeout):
            urls.append(url)
            return FakeResponse(b"workbook-bytes")

        monkeypatch.setattr(data_loader_module.requests, "get", fake_get)
        DataLoader({'cache_dir': str(tmp_path)}).fetch_table()

        assert urls[0].endswith("/8501011.xlsx")
        assert (tmp_path / "8501011.xlsx").exists()

    def test_download_writes_cache(self, tmp_path, monkeypatch):
        """Test a successful download is stored and its path returned."""
        calls = []

        def fake_get(url, timeout):
            calls.append((url, timeout))
            return FakeResponse(b"workbook-bytes")

        monkeypatch.setattr(data_loader_module.requests, "get", fake_get)
        loader = DataLoader({'cache_dir': str(tmp_path), 'timeout': 5})

        path = loader.fetch_table("8501.0", 11)

        assert path == tmp_path / "8501011.xlsx"
        assert path.read_bytes() == b"workbook-bytes"
        assert calls[0][1] == 5

    def test_cached_copy_is_reused(self, tmp_path, monkeypatch):
        """Test no request is made when the cache already holds the table."""
        (tmp_path / "8501011.xlsx").write_bytes(b"cached")

        def fail_get(url, timeout):
            raise AssertionError("network should not be used")

        monkeypatch.setattr(data_loader_module.requests, "get", fail_get)
        loader = DataLoader({'cache_dir': str(tmp_path)})

        assert loader.fetch_table("8501.0", 11).read_bytes() == b"cached"

    def test_refresh_bypasses_cache(self, tmp_path, monkeypatch):
        """Test refresh=True downloads again."""
        (tmp_path / "8501011.xlsx").write_bytes(b"stale")
        monkeypatch.setattr(
            data_loader_module.requests, "get", lambda url, timeout: FakeResponse(b"fresh")
        )
        loader = DataLoader({'cache_dir': str(tmp_path)})

        assert loader.fetch_table("8501.0", 11, refresh=True).read_bytes() == b"fresh"

    def test_http_error_raises_fetch_error(self, tmp_path, monkeypatch):
        """Test a non-success status becomes DataFetchError."""
        monkeypatch.setattr(
            data_loader_module.requests, "get",
            lambda url, timeout: FakeResponse(status_code=404)
        )
        loader = DataLoader({'cache_dir': str(tmp_path)})

        with pytest.raises(DataFetchError):
            loader.fetch_table("8501.0", 11)
        assert not (tmp_path / "8501011.xlsx").exists()

    def test_connection_error_raises_fetch_error(self, tmp_path, monkeypatch):
        """Test connection failures become DataFetchError."""
        def refuse(url, timeout):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(data_loader_module.requests, "get", refuse)
        loader = DataLoader({'cache_dir': str(tmp_path)})

        with pytest.raises(DataFetchError, match="refused"):
            loader.fetch_table("8501.0", 11)


class TestValidateData:
    """Test the validation report."""

    def test_valid_table(self, raw_table):
        """Test the synthetic table validates and counts its missing cells."""
        is_valid, report = DataLoader().validate_data(raw_table)
        assert is_valid
        assert report['statistics']['n_series'] == N_SERIES
        assert report['statistics']['missing_values'] == 12

    def test_missing_columns(self):
        """Test missing required columns invalidate the table."""
        is_valid, report = DataLoader().validate_data(pd.DataFrame({'value': [1.0]}))
        assert not is_valid
        assert "Missing required columns" in report['errors'][0]

    def test_short_series_warning(self, raw_table):
        """Test series shorter than the minimum produce a warning."""
        loader = DataLoader({'min_data_points': 100})
        _, report = loader.validate_data(raw_table)
        assert report['warnings']


class TestDataSummary:
    """Test the per-series summary of the raw table."""

    def test_summary_counts(self, raw_table):
        """Test series counts, missing share and per-series statistics."""
        summary = DataLoader().get_data_summary(raw_table)

        assert summary['shape'] == raw_table.shape
        assert summary['n_series'] == N_SERIES
        assert summary['missing_percentage'] == pytest.approx(12 / (N_SERIES * N_MONTHS) * 100)
        assert len(summary['per_series']) == N_SERIES
        assert summary['per_series']["A33490000A"]['count'] == N_MONTHS - 12
        assert summary['per_series']["A33490001B"]['count'] == N_MONTHS
