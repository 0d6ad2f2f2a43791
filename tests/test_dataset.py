"""
Tests for building a full dataset version from the raw file text
"""

import pickle

import pandas as pd
import pytest

from data_pipeline import EmptyInputError, build_dataset

NOW = pd.Timestamp('2021-07-01')


@pytest.fixture
def dataset_text(make_csv):
    return make_csv(
        "Zero,2021-06-01,0,0,0,0",
        "A,2021-05-01,100,2,30,25",
        "A,2021-06-01,150,3,50,40",
        "B,2021-06-01,80,1,60,55",
        "C,2019-01-01,500,9,90,80",
        ",2021-06-01,1,1,1,1",
    )


class TestBuildDataset:
    """End-to-end derivation of snapshots, series and selection"""

    def test_snapshots_and_series(self, dataset_text):
        dataset = build_dataset(dataset_text, now=NOW)

        assert dataset.snapshots['location'].tolist() == ['C', 'A', 'B']
        assert set(dataset.series['location']) == {'A', 'B'}
        assert len(dataset.series) == 3
        assert dataset.parse.skipped_rows == 1

    def test_series_only_holds_ranked_countries(self, dataset_text):
        dataset = build_dataset(dataset_text, now=NOW)

        assert set(dataset.series['location']) <= set(dataset.snapshots['location'])
        assert 'Zero' not in set(dataset.series['location'])

    def test_window_anchored_at_latest_date(self, dataset_text):
        """Old data still shows a trend when the window ends at the newest date"""
        later = pd.Timestamp('2026-10-19')

        assert build_dataset(dataset_text, now=later).series.empty

        dataset = build_dataset(dataset_text, now=later, anchor='latest_date')
        assert dataset.window_end == pd.Timestamp('2021-06-02', tz='UTC')
        assert set(dataset.series['location']) == {'A', 'B'}

    def test_unknown_anchor(self, dataset_text):
        with pytest.raises(ValueError):
            build_dataset(dataset_text, anchor='yesterday')

    def test_empty_text(self):
        with pytest.raises(EmptyInputError):
            build_dataset("")

    def test_version_identifies_load(self, dataset_text):
        first = build_dataset(dataset_text, now=NOW)
        again = build_dataset(dataset_text, now=NOW)
        later = build_dataset(dataset_text, now=NOW + pd.Timedelta(days=1))

        assert first.version == again.version
        assert first.version != later.version

    def test_new_selector_is_seeded_from_series(self, dataset_text):
        dataset = build_dataset(dataset_text, now=NOW)

        selector = dataset.new_selector()

        assert selector.is_seeded
        assert selector.selected == ('B', 'A')
        assert dataset.trend_countries == ['A', 'B']

    def test_each_load_is_independent(self, dataset_text, make_csv):
        first = build_dataset(dataset_text, now=NOW)
        second = build_dataset(make_csv("D,2021-06-01,10,1,1,1"), now=NOW)

        assert first.snapshots['location'].tolist() == ['C', 'A', 'B']
        assert second.snapshots['location'].tolist() == ['D']

    def test_survives_pickling(self, make_csv):
        """Streamlit's cache stores the dataset pickled"""
        text = make_csv("A,2021-06-01,10,1,1", ",2021-06-01,1,1,1",
                        header="location,date,total_cases,total_deaths,new_cases")
        dataset = build_dataset(text, now=NOW)

        restored = pickle.loads(pickle.dumps(dataset))

        assert restored.version == dataset.version
        assert restored.parse.missing_columns == ('new_cases_smoothed',)
        assert restored.parse.skipped_rows == 1
        assert str(restored.parse.issues[0]) == str(dataset.parse.issues[0])

    def test_load_time_defaults_to_utc_now(self, dataset_text):
        before = pd.Timestamp.now(tz='UTC')

        dataset = build_dataset(dataset_text)

        assert str(dataset.loaded_at.tz) == 'UTC'
        assert dataset.loaded_at >= before
        assert dataset.window_end == dataset.loaded_at
