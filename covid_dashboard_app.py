# covid_dashboard_app.py
# This script creates an interactive Streamlit dashboard for COVID-19 case and
# death statistics. It shows the countries with the most cases as a bar chart,
# the relationship between cases and deaths as a scatter plot, and the recent
# trend of new cases for a handful of countries as a line chart.
#
# Run with: streamlit run covid_dashboard_app.py

import streamlit as st

from config import DATA_FILE, INITIAL_SIDEBAR_STATE, LAYOUT, PAGE_TITLE
from utils import (
    TOGGLE_KEY_PREFIX, configure_logging, display_load_summary, get_trend_selector,
    load_dataset, setup_sidebar_controls, toggle_country,
)
from plotting_utils import render_snapshot_bar, render_snapshot_scatter, render_trend

configure_logging()

# --- 1. Dashboard Configuration and Title ---
st.set_page_config(
    page_title=PAGE_TITLE,
    layout=LAYOUT,
    initial_sidebar_state=INITIAL_SIDEBAR_STATE
)

st.title("🦠 COVID-19 Data Visualization")
st.markdown("---")

# --- 2. Sidebar Controls and Data Loading ---
chart_mode, anchor = setup_sidebar_controls()
dataset = load_dataset(DATA_FILE, anchor)
display_load_summary(dataset)

# --- 3. Selected Chart ---
if dataset.snapshots.empty:
    st.warning("No data available")
    st.stop()

if chart_mode == "bar":
    st.header("Total Cases by Country")
    render_snapshot_bar(dataset.snapshots)

elif chart_mode == "scatter":
    st.header("Cases vs Deaths Correlation")
    render_snapshot_scatter(dataset.snapshots)

elif chart_mode == "line":
    st.header("New Cases Trend Over Time")
    selector = get_trend_selector(dataset)
    render_trend(
        dataset.series,
        selector,
        on_toggle=lambda country: toggle_country(selector, country),
        key_prefix=f"{TOGGLE_KEY_PREFIX}{dataset.version}",
    )
