# This file contains all functions responsible for generating the dashboard's
# visualizations. Each chart has a build_* function that only creates the figure
# and a render_* function that displays it in Streamlit, so the figures can be
# reused outside the app.

import streamlit as st
import matplotlib.pyplot as plt
import seaborn as sns
import numpy as np
import plotly.express as px

from config import (
    DATE_COL, LOCATION_COL, MAX_TOGGLE_OPTIONS, NEW_CASES_SMOOTHED_COL,
    TOTAL_CASES_COL, TOTAL_DEATHS_COL,
)
from data_pipeline import mean_fatality_ratio, parse_dates

POINT_COLOR = "#e76f51"
REFERENCE_LINE_COLOR = "#aaaaaa"


def format_count(value, _pos=None):
    """Formats an axis value as 1.5M / 20K / 300. Usable as a matplotlib FuncFormatter."""
    if value >= 1_000_000:
        return f"{value / 1_000_000:g}M"
    if value >= 1_000:
        return f"{value / 1_000:g}K"
    return f"{value:g}"


def plot_matplotlib_figure(fig):
    """
    Helper function to display a Matplotlib figure in Streamlit and close it.
    Args:
        fig (matplotlib.figure.Figure): The figure object to display.
    """
    fig.tight_layout() # Adjust layout to prevent labels from overlapping
    st.pyplot(fig)
    plt.close(fig) # Close the figure to free up memory


# --- Bar chart ---

def build_snapshot_bar_figure(snapshots):
    """
    Creates a bar chart of total cases per country, in ranking order.

    Args:
        snapshots (pandas.DataFrame): Ranked snapshots from `reduce_latest_snapshots`.

    Returns:
        matplotlib.figure.Figure: The bar chart.
    """
    fig, ax = plt.subplots(figsize=(12, 6))
    sns.barplot(data=snapshots, x=LOCATION_COL, y=TOTAL_CASES_COL, hue=LOCATION_COL,
                order=snapshots[LOCATION_COL].tolist(), palette='viridis', legend=False, ax=ax)
    ax.set_title('COVID-19: Total Cases by Country')
    ax.set_xlabel('Country')
    ax.set_ylabel('Total Cases')
    ax.yaxis.set_major_formatter(plt.FuncFormatter(format_count))
    ax.tick_params(axis='x', rotation=45)
    for label in ax.get_xticklabels():
        label.set_horizontalalignment('right')
    return fig


def render_snapshot_bar(snapshots):
    """Displays the total-cases bar chart."""
    if snapshots.empty:
        st.info("No countries with reported cases and deaths to display.")
        return
    with st.spinner("Generating bar chart..."):
        plot_matplotlib_figure(build_snapshot_bar_figure(snapshots))
    st.caption("Latest reported total cases for the 20 countries with the most cases.")


# --- Scatter plot ---

def build_snapshot_scatter_figure(snapshots):
    """
    Creates a scatter plot of total cases against total deaths, one point per country.

    A dashed line through the origin marks the average death rate
    (mean of deaths / cases across the plotted countries).

    Args:
        snapshots (pandas.DataFrame): Ranked snapshots from `reduce_latest_snapshots`.

    Returns:
        matplotlib.figure.Figure: The scatter plot.
    """
    fig, ax = plt.subplots(figsize=(12, 6))
    sns.scatterplot(data=snapshots, x=TOTAL_CASES_COL, y=TOTAL_DEATHS_COL, ax=ax,
                    s=80, color=POINT_COLOR, alpha=0.7, edgecolor='white')
    for _, row in snapshots.iterrows():
        ax.annotate(row[LOCATION_COL], (row[TOTAL_CASES_COL], row[TOTAL_DEATHS_COL]),
                    xytext=(5, 5), textcoords='offset points', fontsize=8)

    max_cases = snapshots[TOTAL_CASES_COL].max() if not snapshots.empty else 0
    max_deaths = snapshots[TOTAL_DEATHS_COL].max() if not snapshots.empty else 0
    ax.set_xlim(0, max_cases * 1.1 or 1)
    ax.set_ylim(0, max_deaths * 1.1 or 1)

    avg_death_rate = mean_fatality_ratio(snapshots)
    if avg_death_rate is not None:
        line_x = np.array([0, max_cases])
        ax.plot(line_x, line_x * avg_death_rate, linestyle='--', color=REFERENCE_LINE_COLOR, linewidth=1.5)
        ax.text(max_cases * 0.7, max_cases * 0.7 * avg_death_rate, f'Avg. Death Rate: {avg_death_rate:.2%}',
                ha='center', va='bottom', fontsize=10, color='#666666')

    ax.set_title('COVID-19: Cases vs Deaths by Country')
    ax.set_xlabel('Total Cases')
    ax.set_ylabel('Total Deaths')
    ax.xaxis.set_major_formatter(plt.FuncFormatter(format_count))
    ax.yaxis.set_major_formatter(plt.FuncFormatter(format_count))
    return fig


def render_snapshot_scatter(snapshots):
    """Displays the cases vs deaths scatter plot."""
    if snapshots.empty:
        st.info("No countries with reported cases and deaths to display.")
        return
    with st.spinner("Generating scatter plot..."):
        plot_matplotlib_figure(build_snapshot_scatter_figure(snapshots))
    st.caption("Points above the dashed line have a higher death rate than the average of these countries.")


# --- Trend line chart ---

def prepare_trend_data(series, selected):
    """
    Restricts the time series to the selected countries and orders it by date.

    Returns:
        pandas.DataFrame: The selected rows with `date` converted to datetimes.
    """
    trend = series[series[LOCATION_COL].isin(list(selected))].copy()
    trend[DATE_COL] = parse_dates(trend[DATE_COL]).dt.tz_localize(None).values
    return trend.dropna(subset=[DATE_COL]).sort_values(DATE_COL, kind='stable')


def build_trend_figure(series, selected):
    """
    Creates an interactive line chart of smoothed new cases, one line per selected country.

    Args:
        series (pandas.DataFrame): The time series from `filter_time_series`.
        selected (Sequence[str]): Countries to draw, in legend order.

    Returns:
        plotly.graph_objects.Figure: The line chart.
    """
    trend = prepare_trend_data(series, selected)
    fig = px.line(
        trend,
        x=DATE_COL,
        y=NEW_CASES_SMOOTHED_COL,
        color=LOCATION_COL,
        category_orders={LOCATION_COL: list(selected)},
        color_discrete_sequence=px.colors.qualitative.D3,
        hover_data={NEW_CASES_SMOOTHED_COL: ':,.0f'},
        labels={
            DATE_COL: 'Date',
            NEW_CASES_SMOOTHED_COL: 'New Cases (7-day avg)',
            LOCATION_COL: 'Country',
        },
        title='COVID-19: New Cases Trend Over Time',
    )
    fig.update_traces(line={'width': 2.5})
    fig.update_xaxes(tickformat='%b %Y')
    fig.update_yaxes(rangemode='tozero')
    fig.update_layout(height=500, margin={"r": 0, "t": 50, "l": 0, "b": 0})
    return fig


def toggle_options(available, selected, limit=MAX_TOGGLE_OPTIONS):
    """
    Countries offered as checkboxes: the first `limit` available ones, plus any
    selected country beyond that so it can still be switched off.
    """
    options = list(available)[:limit]
    options += [country for country in selected if country not in options]
    return options


def render_country_toggles(available, selector, on_toggle, key_prefix='toggle'):
    """
    Displays one checkbox per country. Unchecked boxes are disabled while the
    selection is full.
    """
    st.write(f"Select countries to display (max {selector.max_selected}):")
    options = toggle_options(available, selector.selected)
    columns = st.columns(5)
    for i, country in enumerate(options):
        with columns[i % len(columns)]:
            st.checkbox(
                country,
                value=country in selector,
                key=f'{key_prefix}_{country}',
                disabled=not selector.can_toggle(country),
                on_change=on_toggle,
                args=(country,),
            )


def render_trend(series, selector, on_toggle, key_prefix='toggle'):
    """
    Displays the country checkboxes and the trend line chart.

    Args:
        series (pandas.DataFrame): The time series from `filter_time_series`.
        selector (data_pipeline.SeriesSelector): The current selection.
        on_toggle (Callable[[str], None]): Called with a country when its checkbox changes.
        key_prefix (str): Prefix for checkbox widget keys; changes per dataset version.
    """
    if series.empty:
        st.info("No time series data in the trend window. Try ending the window at the latest data date.")
        return

    available = sorted(series[LOCATION_COL].unique())
    render_country_toggles(available, selector, on_toggle, key_prefix=key_prefix)

    if not selector.selected:
        st.info("Select at least one country to draw the trend.")
        return
    with st.spinner("Generating trend chart..."):
        st.plotly_chart(build_trend_figure(series, selector.selected), width='stretch')
