"""
Tests for restricting the time series to the ranked countries and the trailing window
"""

import pandas as pd

from data_pipeline import filter_time_series, parse_csv_text

WINDOW_END = pd.Timestamp('2021-12-31')


def rows_from(make_csv, *lines):
    return parse_csv_text(make_csv(*lines)).rows


class TestFilterTimeSeries:
    """Country membership, window bounds and date parsing"""

    def test_only_allowed_countries(self, make_csv):
        rows = rows_from(make_csv,
                         "A,2021-06-01,1,1,1,1",
                         "B,2021-06-01,1,1,1,1",
                         "C,2021-06-02,1,1,1,1")

        series = filter_time_series(rows, {'A', 'C'}, WINDOW_END, 365)

        assert series['location'].tolist() == ['A', 'C']

    def test_window_start_is_exclusive(self, make_csv):
        """A row exactly window_days before the end is outside the window"""
        rows = rows_from(make_csv,
                         "A,2020-12-30,1,1,1,1",
                         "A,2020-12-31,1,1,1,1",
                         "A,2021-01-01,1,1,1,1")

        series = filter_time_series(rows, ['A'], WINDOW_END, 365)

        assert series['date'].tolist() == ['2021-01-01']

    def test_window_length(self, make_csv):
        rows = rows_from(make_csv,
                         "A,2021-12-01,1,1,1,1",
                         "A,2021-12-25,1,1,1,1")

        series = filter_time_series(rows, ['A'], WINDOW_END, 7)

        assert series['date'].tolist() == ['2021-12-25']

    def test_unparseable_dates_are_dropped(self, make_csv):
        """Scenario D: 'not-a-date' never reaches the trend chart"""
        rows = rows_from(make_csv,
                         "A,not-a-date,1,1,1,1",
                         "A,2021-06-01,1,1,1,1")

        series = filter_time_series(rows, ['A'], WINDOW_END, 365)

        assert series['date'].tolist() == ['2021-06-01']

    def test_preserves_input_order(self, make_csv):
        rows = rows_from(make_csv,
                         "B,2021-06-03,1,1,1,1",
                         "A,2021-06-01,1,1,1,1",
                         "B,2021-06-02,1,1,1,1")

        series = filter_time_series(rows, ['A', 'B'], WINDOW_END, 365)

        assert series['date'].tolist() == ['2021-06-03', '2021-06-01', '2021-06-02']

    def test_keeps_all_columns(self, make_csv):
        rows = rows_from(make_csv, "A,2021-06-01,10,2,3,4.5")

        series = filter_time_series(rows, ['A'], WINDOW_END, 365)

        assert list(series.columns) == list(rows.columns)
        assert series.iloc[0]['new_cases_smoothed'] == 4.5

    def test_accepts_timezone_aware_end(self, make_csv):
        rows = rows_from(make_csv, "A,2021-06-01,1,1,1,1")

        series = filter_time_series(rows, ['A'], pd.Timestamp('2021-12-31', tz='UTC'), 365)

        assert len(series) == 1

    def test_no_allowed_countries(self, make_csv):
        rows = rows_from(make_csv, "A,2021-06-01,1,1,1,1")

        assert filter_time_series(rows, [], WINDOW_END, 365).empty

    def test_never_returns_unlisted_country(self, make_csv):
        lines = [f"C{i % 7},2021-{(i % 12) + 1:02d}-15,1,1,1,1" for i in range(84)]
        rows = rows_from(make_csv, *lines)
        allowed = {'C1', 'C3', 'C5'}

        series = filter_time_series(rows, allowed, WINDOW_END, 365)

        assert set(series['location']) <= allowed
        assert len(series) == 36
