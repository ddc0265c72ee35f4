"""
Unit tests for series selection and cleaning.

Tests verify:
1. Composite labels split into exactly three non-empty fields
2. Region and aggregate filtering
3. Retained series have no missing turnover
4. Single series extraction and gap detection
5. Positional 24-month train/test split
"""
import numpy as np
import pandas as pd
import pytest

from retail_turnover.common import Preprocessor, parse_label, STATE_REGIONS
from retail_turnover.exceptions import LabelParseError, EmptySeriesPoolError


class TestParseLabel:
    """Test composite label decomposition."""

    def test_valid_label(self):
        """Test the three fields are stripped of padding."""
        assert parse_label("Turnover ;  New South Wales ;  Food retailing ;") == (
            "Turnover", "New South Wales", "Food retailing"
        )

    def test_label_without_trailing_delimiter(self):
        """Test a label without the trailing delimiter is accepted."""
        assert parse_label("Turnover ; Victoria ; Department stores") == (
            "Turnover", "Victoria", "Department stores"
        )

    def test_commas_inside_fields_are_kept(self):
        """Test commas are not treated as delimiters."""
        _, _, industry = parse_label(
            "Turnover ;  Tasmania ;  Clothing, footwear and personal accessory retailing ;"
        )
        assert industry == "Clothing, footwear and personal accessory retailing"

    @pytest.mark.parametrize("label", [
        "Turnover ;  Victoria ;",
        "Turnover ;  Victoria ;  Food retailing ;  Extra ;",
        "Turnover ;   ;  Food retailing ;",
        "",
    ])
    def test_malformed_labels_raise(self, label):
        """Test labels not splitting into three non-empty fields are rejected."""
        with pytest.raises(LabelParseError):
            parse_label(label)

    def test_error_is_value_error(self):
        """Test LabelParseError can be caught as ValueError."""
        with pytest.raises(ValueError):
            parse_label("Turnover")


class TestCleanData:
    """Test filtering and cleaning of the raw table."""

    def test_only_state_regions_kept(self, raw_table):
        """Test the national total region is filtered out."""
        clean = Preprocessor().clean_data(raw_table)
        assert set(clean['region']) == set(STATE_REGIONS)

    def test_total_industries_dropped(self, raw_table):
        """Test aggregate industry series are removed."""
        clean = Preprocessor().clean_data(raw_table)
        assert not clean['industry'].str.startswith("Total").any()
        assert set(clean['industry']) == {"Food retailing", "Department stores"}

    def test_no_missing_turnover(self, raw_table):
        """Test every retained series is complete."""
        clean = Preprocessor().clean_data(raw_table)
        assert clean['value'].notna().all()
        assert clean['value'].dtype == np.float64

    def test_series_with_gaps_dropped(self, raw_table):
        """Test the series with blank months is removed entirely."""
        clean = Preprocessor().clean_data(raw_table)
        assert "A33490000A" not in set(clean['series_id'])
        assert clean['series_id'].nunique() == 8 * 2 - 1

    def test_labels_decomposed(self, raw_table):
        """Test category/region/industry columns match the label."""
        clean = Preprocessor().clean_data(raw_table)
        for _, row in clean.drop_duplicates('series_id').iterrows():
            assert parse_label(row['series']) == (row['category'], row['region'], row['industry'])

    def test_non_numeric_values_drop_series(self, raw_table):
        """Test unparseable cells are treated as missing."""
        raw = raw_table.copy()
        target = raw['series_id'] == "A33490001B"
        raw.loc[raw.index[target.to_numpy()][5], "value"] = ".."
        clean = Preprocessor().clean_data(raw)
        assert "A33490001B" not in set(clean['series_id'])

    def test_all_incomplete_raises(self, raw_table):
        """Test an empty pool of complete series raises."""
        raw = raw_table.copy()
        raw.loc[raw['month'] == raw['month'].min(), 'value'] = np.nan
        with pytest.raises(EmptySeriesPoolError):
            Preprocessor().clean_data(raw)

    def test_negative_turnover_raises(self, raw_table):
        """Test negative turnover is rejected."""
        raw = raw_table.copy()
        raw.loc[raw['series_id'] == "A33490001B", 'value'] = -1.0
        with pytest.raises(ValueError, match="Negative"):
            Preprocessor().clean_data(raw)


class TestSelectSeries:
    """Test extraction of a single monthly series."""

    def test_explicit_series(self, raw_table):
        """Test a named series is returned as a monthly pd.Series."""
        preprocessor = Preprocessor()
        clean = preprocessor.clean_data(raw_table)
        series = preprocessor.select_series(clean, "A33490001B")

        assert series.name == "A33490001B"
        assert len(series) == 72
        assert series.index.freqstr == "MS"
        assert series.index.is_monotonic_increasing

    def test_random_choice_is_seeded(self, raw_table):
        """Test the same seed picks the same series."""
        clean = Preprocessor().clean_data(raw_table)
        first = Preprocessor(random_state=99).select_series(clean)
        second = Preprocessor(random_state=99).select_series(clean)
        assert first.name == second.name
        assert first.name in set(clean['series_id'])

    def test_unknown_series_raises(self, raw_table):
        """Test an id outside the cleaned pool raises KeyError."""
        preprocessor = Preprocessor()
        clean = preprocessor.clean_data(raw_table)
        with pytest.raises(KeyError):
            preprocessor.select_series(clean, "A33490000A")

    def test_gap_raises(self):
        """Test a missing month inside the series is rejected."""
        months = pd.date_range("2020-01-01", periods=30, freq="MS").delete(10)
        clean = pd.DataFrame({
            'series_id': "X1",
            'region': "Victoria",
            'industry': "Food retailing",
            'month': months,
            'value': np.linspace(100, 130, len(months)),
        })
        with pytest.raises(ValueError, match="missing months"):
            Preprocessor().select_series(clean, "X1")

    def test_series_info(self, raw_table):
        """Test label fields are reported for a series."""
        preprocessor = Preprocessor()
        clean = preprocessor.clean_data(raw_table)
        info = preprocessor.series_info(clean, "A33490001B")
        assert info['region'] == "New South Wales"
        assert info['industry'] == "Department stores"

    def test_list_series(self, raw_table):
        """Test one row per retained series with its label fields and span."""
        preprocessor = Preprocessor()
        clean = preprocessor.clean_data(raw_table)
        listing = preprocessor.list_series(clean)

        assert len(listing) == 8 * 2 - 1
        assert set(listing['series_id']) == set(clean['series_id'])
        assert (listing['n_obs'] == 72).all()
        assert (listing['start'] == pd.Timestamp("2015-01-01")).all()
        assert (listing['end'] == pd.Timestamp("2020-12-01")).all()
        row = listing.set_index('series_id').loc["A33490001B"]
        assert row['region'] == "New South Wales"
        assert row['industry'] == "Department stores"


class TestTrainTestSplit:
    """Test the positional split."""

    def test_test_suffix_is_24(self, seasonal_series):
        """Test the last 24 points form the test set."""
        train, test = Preprocessor.train_test_split(seasonal_series, test_size=24)
        assert len(test) == 24
        assert len(train) == len(seasonal_series) - 24

    def test_split_is_positional(self, seasonal_series):
        """Test train precedes test and together they rebuild the series."""
        train, test = Preprocessor.train_test_split(seasonal_series)
        assert train.index[-1] < test.index[0]
        pd.testing.assert_series_equal(pd.concat([train, test]), seasonal_series, check_freq=False)

    def test_too_short_raises(self, seasonal_series):
        """Test a series not longer than the test size cannot be split."""
        with pytest.raises(ValueError):
            Preprocessor.train_test_split(seasonal_series.iloc[:24], test_size=24)

    def test_non_positive_test_size_raises(self, seasonal_series):
        """Test a zero test size is rejected."""
        with pytest.raises(ValueError):
            Preprocessor.train_test_split(seasonal_series, test_size=0)
