# This file contains helper functions for reading the data file, building the
# cached dataset, and the sidebar controls and state shared across the dashboard.

import logging

import streamlit as st

from config import (
    CHART_MODES, DATA_FILE, LOG_FORMAT, LOG_LEVEL, MAX_SELECTED_COUNTRIES, WINDOW_ANCHOR,
)
from data_pipeline import (
    EmptyInputError, FetchFailure, SelectionFullRejection, build_dataset,
)

logger = logging.getLogger(__name__)

SELECTORS_STATE_KEY = 'trend_selectors'
TOGGLE_KEY_PREFIX = 'toggle_'


def configure_logging(level=LOG_LEVEL):
    """Sets up root logging once; Streamlit re-runs the script on every interaction."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


def read_source_text(file_path=DATA_FILE):
    """
    Reads the whole data file as text.

    Args:
        file_path (str): Path to the CSV file.

    Returns:
        str: The file contents.

    Raises:
        FetchFailure: If the file is missing or cannot be decoded.
    """
    try:
        with open(file_path, encoding='utf-8') as handle:
            return handle.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FetchFailure(f"Could not read '{file_path}': {e}") from e


@st.cache_data
def load_dataset(file_path=DATA_FILE, anchor=WINDOW_ANCHOR):
    """
    Loads the data file and derives everything the charts need.

    The result is cached, so re-runs of the script reuse the same dataset version
    until the cache is cleared with the "Reload data" button.

    Args:
        file_path (str): Path to the CSV file.
        anchor (str): Where the trend window ends ('load_time' or 'latest_date').

    Returns:
        data_pipeline.DatasetVersion: The derived dataset.
    """
    with st.spinner(f"Loading and preparing data from {file_path}..."):
        try:
            return build_dataset(read_source_text(file_path), anchor=anchor)
        except FetchFailure as e:
            logger.error("Fetch failed: %s", e)
            st.error(f"Failed to load data: '{file_path}' could not be read. Please check the file and reload.")
            st.stop()
        except EmptyInputError as e:
            logger.error("Empty input: %s", e)
            st.error(f"Failed to load data: '{file_path}' is empty.")
            st.stop()


def reload_dataset():
    """Drops the cached dataset, the trend selections and their checkboxes so the next run starts fresh."""
    load_dataset.clear()
    st.session_state.pop(SELECTORS_STATE_KEY, None)
    for key in [k for k in st.session_state if str(k).startswith(TOGGLE_KEY_PREFIX)]:
        del st.session_state[key]


def get_trend_selector(dataset):
    """
    Returns the trend selector for the current dataset, creating and seeding it
    the first time this dataset version is seen in the session.

    One selector is kept per version, so switching the window anchor back and
    forth returns to the same selection instead of seeding a new one.
    """
    selectors = st.session_state.setdefault(SELECTORS_STATE_KEY, {})
    if dataset.version not in selectors:
        selectors[dataset.version] = dataset.new_selector(MAX_SELECTED_COUNTRIES)
    return selectors[dataset.version]


def toggle_country(selector, country):
    """Checkbox callback: flips one country in the trend selection."""
    try:
        selector.toggle(country)
    except SelectionFullRejection as e:
        st.toast(str(e))


def setup_sidebar_controls():
    """
    Sets up the chart switch and data options in the Streamlit sidebar.

    Returns:
        tuple: (chart_mode, anchor) where chart_mode is one of 'bar', 'scatter', 'line'.
    """
    st.sidebar.title("Chart Type")
    selected_label = st.sidebar.radio("Show:", list(CHART_MODES.keys()), key='chart_mode')

    st.sidebar.markdown("---")
    anchor_to_data = st.sidebar.checkbox(
        "End trend window at latest data date",
        value=WINDOW_ANCHOR == 'latest_date',
        key='anchor_to_data',
        help="By default the line chart shows the 365 days before today. "
             "Tick this to show the 365 days before the newest date in the file instead."
    )
    anchor = 'latest_date' if anchor_to_data else 'load_time'

    if st.sidebar.button("Reload data"):
        reload_dataset()
        st.rerun()

    return CHART_MODES[selected_label], anchor


def display_load_summary(dataset):
    """Shows what was loaded and any rows or columns that had to be skipped or defaulted."""
    parse = dataset.parse
    st.sidebar.markdown("---")
    st.sidebar.info(
        f"Loaded **{len(dataset.rows):,}** rows at {dataset.loaded_at.strftime('%Y-%m-%d %H:%M %Z')}.  \n"
        f"Trend window ends **{dataset.window_end.strftime('%Y-%m-%d')}**."
    )
    if parse.is_clean:
        st.sidebar.success("All lines loaded cleanly.")
        return

    if parse.skipped_rows:
        st.sidebar.warning(f"{parse.skipped_rows:,} of {parse.total_lines:,} lines skipped (no location or date).")
    if parse.missing_columns:
        st.sidebar.warning("Missing columns (read as 0): " + ", ".join(parse.missing_columns))
    with st.sidebar.expander("Data issues"):
        for issue in parse.issues:
            st.write(f"{type(issue).__name__}: {issue}")
        if parse.issue_count > len(parse.issues):
            st.caption(f"... and {parse.issue_count - len(parse.issues):,} more.")
