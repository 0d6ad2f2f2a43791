# This file contains the data transformation pipeline behind the dashboard:
# parsing the raw CSV text, reducing it to the latest record per country,
# ranking the top countries, restricting the time series to a trailing window,
# and keeping track of which countries are selected for the trend chart.
# Nothing in here depends on Streamlit, so it can be used and tested on its own.

import hashlib
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from config import (
    CSV_DELIMITER, DATE_COL, LOCATION_COL, MAX_REPORTED_ISSUES, MAX_SELECTED_COUNTRIES, NEW_CASES_COL,
    NUMERIC_COLUMNS, REQUIRED_COLUMNS, SNAPSHOT_COLUMNS, STRICT_DATE_ORDER,
    TEXT_COLUMNS, TOP_N_COUNTRIES, TOTAL_CASES_COL, TOTAL_DEATHS_COL,
    TREND_WINDOW_DAYS, WINDOW_ANCHOR, WINDOW_ANCHORS,
)

logger = logging.getLogger(__name__)


# --- Errors ---

class DashboardDataError(Exception):
    """Base class for every data problem the dashboard knows how to report."""


class EmptyInputError(DashboardDataError):
    """The source text has no header line, so nothing can be loaded."""


class FetchFailure(DashboardDataError):
    """The source file could not be read."""


class MissingColumnError(DashboardDataError):
    """A required column is absent from the header. Reads of it fall back to defaults."""

    def __init__(self, column):
        super().__init__(f"Column '{column}' not found in header; using default values.")
        self.column = column

    def __reduce__(self):
        return type(self), (self.column,)


class UnparseableRowError(DashboardDataError):
    """A data line lacks a location or a date and was skipped."""

    def __init__(self, line_number):
        super().__init__(f"Line {line_number} has no location or date; skipped.")
        self.line_number = line_number

    def __reduce__(self):
        return type(self), (self.line_number,)


class SelectionFullRejection(DashboardDataError):
    """A country could not be added because the trend selection is already full."""

    def __init__(self, entity, limit):
        super().__init__(f"Cannot add '{entity}': at most {limit} countries can be selected.")
        self.entity = entity
        self.limit = limit


class SelectorStateError(RuntimeError):
    """A SeriesSelector method was called in the wrong state."""


# --- Parsing ---

@dataclass
class ParseResult:
    """
    Rows parsed from the CSV text plus the problems met along the way.

    Every missing column is listed. Skipped lines are counted in full, but only
    the first `MAX_REPORTED_ISSUES` of them are kept in `issues`.
    """
    rows: pd.DataFrame
    total_lines: int = 0
    missing_columns: Tuple[str, ...] = ()
    skipped_rows: int = 0
    issues: List[DashboardDataError] = field(default_factory=list)

    @property
    def issue_count(self):
        return len(self.missing_columns) + self.skipped_rows

    @property
    def is_clean(self):
        return self.issue_count == 0


def _to_float(value):
    """Convert a raw field to float, returning 0.0 if missing/invalid."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if np.isnan(number):
        return 0.0
    return number


def _field(values, index):
    if 0 <= index < len(values):
        return values[index]
    return ''


def parse_csv_text(text, delimiter=CSV_DELIMITER, max_reported_issues=MAX_REPORTED_ISSUES):
    """
    Parses raw delimited text into a DataFrame of typed rows.

    The first line is the header; columns are looked up by name, so their order
    in the file does not matter. Fields are split on the delimiter by position:
    quoted fields containing the delimiter are NOT supported.

    - Missing required columns are reported and read as '' / 0.0.
    - Numeric fields that cannot be parsed become 0.0.
    - Lines without a location or a date are skipped.

    Args:
        text (str): The full contents of the data file.
        delimiter (str): The field separator.
        max_reported_issues (int): How many skipped lines to keep as examples.

    Returns:
        ParseResult: The parsed rows (columns as in config.REQUIRED_COLUMNS) and any issues.

    Raises:
        EmptyInputError: If the text holds no header line.
    """
    if not text or not text.strip():
        raise EmptyInputError("The data file is empty; no header line found.")

    lines = text.lstrip('\ufeff').split('\n')
    headers = [name.strip() for name in lines[0].rstrip('\r').split(delimiter)]
    positions = {col: (headers.index(col) if col in headers else -1) for col in REQUIRED_COLUMNS}

    missing_columns = tuple(col for col, position in positions.items() if position == -1)
    issues = []
    for col in missing_columns:
        logger.warning("Required column '%s' missing from header %s", col, headers)
        issues.append(MissingColumnError(col))

    records = []
    total_lines = 0
    skipped_rows = 0
    for line_number, line in enumerate(lines[1:], start=2):
        line = line.rstrip('\r')
        if not line:
            continue
        total_lines += 1
        values = line.split(delimiter)

        location = _field(values, positions[LOCATION_COL])
        date = _field(values, positions[DATE_COL])
        if not location or not date:
            logger.debug("Skipping line %d: missing location or date", line_number)
            skipped_rows += 1
            if skipped_rows <= max_reported_issues:
                issues.append(UnparseableRowError(line_number))
            continue

        record = {LOCATION_COL: location, DATE_COL: date}
        for col in NUMERIC_COLUMNS:
            record[col] = _to_float(_field(values, positions[col]))
        records.append(record)

    rows = pd.DataFrame(records, columns=REQUIRED_COLUMNS)
    rows = rows.astype({**{col: object for col in TEXT_COLUMNS}, **{col: float for col in NUMERIC_COLUMNS}})
    return ParseResult(rows=rows, total_lines=total_lines, missing_columns=missing_columns,
                       skipped_rows=skipped_rows, issues=issues)


def parse_dates(values):
    """Parses ISO 8601 date strings to UTC timestamps; anything unparseable becomes NaT."""
    return pd.to_datetime(pd.Series(values, dtype=object), errors='coerce', format='ISO8601', utc=True)


# --- Latest snapshot per country ---

def _latest_per_entity(rows, strict_dates):
    if strict_dates:
        order_key = parse_dates(rows[DATE_COL]).fillna(pd.Timestamp.min.tz_localize('UTC'))
        order_key.index = rows.index
    else:
        # Plain string comparison: only correct for zero-padded YYYY-MM-DD dates.
        order_key = rows[DATE_COL]
    latest_key = order_key.groupby(rows[LOCATION_COL], sort=False).transform('max')
    latest = rows[order_key == latest_key].drop_duplicates(subset=LOCATION_COL, keep='first')

    # Put countries back in the order they first appear in the file so ties rank stably.
    first_seen = pd.Index(rows[LOCATION_COL].unique(), name=LOCATION_COL)
    return latest.set_index(LOCATION_COL).reindex(first_seen).reset_index()


def reduce_latest_snapshots(rows, top_n=TOP_N_COUNTRIES, strict_dates=STRICT_DATE_ORDER):
    """
    Reduces the rows to one snapshot per country and ranks them.

    For each country the row with the greatest date is kept (the first one wins
    on equal dates). Countries whose latest total cases or total deaths are not
    strictly positive are dropped, the rest are sorted by total cases (highest
    first, ties keep file order) and the first `top_n` are returned.

    Args:
        rows (pandas.DataFrame): Parsed rows from `parse_csv_text`.
        top_n (int): Maximum number of countries to keep.
        strict_dates (bool): Compare parsed dates instead of date strings.

    Returns:
        pandas.DataFrame: Columns location, date, total_cases, total_deaths.
    """
    if rows.empty:
        return pd.DataFrame(columns=SNAPSHOT_COLUMNS).astype(
            {TOTAL_CASES_COL: float, TOTAL_DEATHS_COL: float})

    latest = _latest_per_entity(rows, strict_dates)[SNAPSHOT_COLUMNS]
    latest = latest[(latest[TOTAL_CASES_COL] > 0) & (latest[TOTAL_DEATHS_COL] > 0)]
    ranked = latest.sort_values(TOTAL_CASES_COL, ascending=False, kind='stable')
    return ranked.head(top_n).reset_index(drop=True)


def mean_fatality_ratio(snapshots):
    """Average of total_deaths / total_cases across the snapshots, or None when there are none."""
    if snapshots.empty:
        return None
    ratios = snapshots[TOTAL_DEATHS_COL] / snapshots[TOTAL_CASES_COL]
    ratios = ratios.replace([np.inf, -np.inf], np.nan).dropna()
    if ratios.empty:
        return None
    return float(ratios.mean())


# --- Time window ---

def filter_time_series(rows, allowed_entities, window_end, window_days=TREND_WINDOW_DAYS):
    """
    Keeps the rows of the allowed countries that fall inside the trailing window.

    A row is kept when its country is in `allowed_entities`, its date parses, and
    that date is strictly after `window_end - window_days`. Row order is left
    untouched; sorting by date is up to the chart that consumes the result.

    Args:
        rows (pandas.DataFrame): Parsed rows.
        allowed_entities (Iterable[str]): Countries eligible for the trend view.
        window_end (datetime-like): End of the window. Naive values are taken as UTC.
        window_days (int): Length of the window in days.

    Returns:
        pandas.DataFrame: The retained rows, same columns as the input.
    """
    window_start = pd.Timestamp(window_end) - pd.Timedelta(days=window_days)
    if window_start.tzinfo is None:
        window_start = window_start.tz_localize('UTC')

    allowed = set(allowed_entities)
    parsed = parse_dates(rows[DATE_COL])
    parsed.index = rows.index
    keep = rows[LOCATION_COL].isin(allowed) & parsed.notna() & (parsed > window_start)
    return rows[keep].reset_index(drop=True)


# --- Trend selection ---

class SeriesSelector:
    """
    The set of countries drawn on the trend chart.

    A selector starts unseeded. `seed` picks the initial countries once per
    dataset; afterwards only `toggle` changes the selection, and the selection
    never holds more than `max_selected` countries.
    """

    def __init__(self, available=None, max_selected=MAX_SELECTED_COUNTRIES):
        self.available = None if available is None else frozenset(available)
        self.max_selected = max_selected
        self._selected = []
        self._seeded = False

    @property
    def is_seeded(self):
        return self._seeded

    @property
    def selected(self):
        return tuple(self._selected)

    def __contains__(self, entity):
        return entity in self._selected

    def __len__(self):
        return len(self._selected)

    def seed(self, rows):
        """
        Selects the countries with the highest peak of daily new cases.

        Countries are ranked by their maximum `new_cases`; ties keep the order in
        which the countries first appear. The top `max_selected` are selected.

        Returns:
            frozenset: The seeded selection.
        """
        if self._seeded:
            raise SelectorStateError("Selector is already seeded; create a new one for a new dataset.")

        if self.available is not None:
            rows = rows[rows[LOCATION_COL].isin(self.available)]
        peaks = rows.groupby(LOCATION_COL, sort=False)[NEW_CASES_COL].max()
        ranked = peaks.sort_values(ascending=False, kind='stable')

        self._selected = ranked.index[:self.max_selected].tolist()
        self._seeded = True
        logger.info("Seeded trend selection with %s", self._selected)
        return frozenset(self._selected)

    def can_toggle(self, entity):
        """True when toggling `entity` would change the selection."""
        return entity in self._selected or len(self._selected) < self.max_selected

    def toggle(self, entity):
        """
        Removes `entity` if it is selected, otherwise adds it.

        Returns:
            bool: True if the country is selected after the call.

        Raises:
            SelectionFullRejection: Adding would exceed `max_selected`. The selection is unchanged.
            SelectorStateError: The selector has not been seeded yet.
            ValueError: The country is not one of the available countries.
        """
        if not self._seeded:
            raise SelectorStateError("toggle() called before seed().")
        if self.available is not None and entity not in self.available:
            raise ValueError(f"Unknown country '{entity}'.")

        if entity in self._selected:
            self._selected.remove(entity)
            return False
        if len(self._selected) >= self.max_selected:
            raise SelectionFullRejection(entity, self.max_selected)
        self._selected.append(entity)
        return True


# --- Dataset versions ---

@dataclass(frozen=True, eq=False)
class DatasetVersion:
    """Everything derived from one load of the data file. Never modified after creation."""
    version: str
    loaded_at: pd.Timestamp
    window_end: pd.Timestamp
    rows: pd.DataFrame
    snapshots: pd.DataFrame
    series: pd.DataFrame
    parse: ParseResult

    @property
    def trend_countries(self):
        """Countries available for the trend chart, alphabetically."""
        return sorted(self.series[LOCATION_COL].unique())

    def new_selector(self, max_selected=MAX_SELECTED_COUNTRIES):
        """Creates a selector over this dataset's trend countries, already seeded."""
        selector = SeriesSelector(available=self.trend_countries, max_selected=max_selected)
        selector.seed(self.series)
        return selector


def _latest_parsed_date(rows) -> Optional[pd.Timestamp]:
    parsed = parse_dates(rows[DATE_COL]).dropna()
    if parsed.empty:
        return None
    return parsed.max()


def _version_token(text, window_end, top_n):
    """Identifies one load: same file, same window and same ranking size give the same token."""
    digest = hashlib.sha1(text.encode('utf-8'))
    digest.update(f"|{pd.Timestamp(window_end).isoformat()}|{top_n}".encode('utf-8'))
    return digest.hexdigest()[:12]


def build_dataset(text, now=None, window_days=TREND_WINDOW_DAYS, top_n=TOP_N_COUNTRIES,
                  anchor=WINDOW_ANCHOR, delimiter=CSV_DELIMITER, strict_dates=STRICT_DATE_ORDER):
    """
    Runs the whole pipeline on the raw text of the data file.

    Args:
        text (str): Contents of the data file.
        now (datetime-like, optional): Load time; defaults to the current UTC time.
        window_days (int): Length of the trend window.
        top_n (int): Number of countries kept in the ranking.
        anchor (str): 'load_time' ends the window at `now`; 'latest_date' ends it
                      just after the newest date in the data.
        delimiter (str): The field separator.
        strict_dates (bool): Compare parsed dates when picking the latest record.

    Returns:
        DatasetVersion: The derived dataset.

    Raises:
        EmptyInputError: If the text holds no header line.
        ValueError: If `anchor` is not a known anchor.
    """
    if anchor not in WINDOW_ANCHORS:
        raise ValueError(f"Unknown window anchor '{anchor}'. Expected one of {WINDOW_ANCHORS}.")

    loaded_at = pd.Timestamp.now(tz='UTC') if now is None else pd.Timestamp(now)
    parsed = parse_csv_text(text, delimiter=delimiter)
    snapshots = reduce_latest_snapshots(parsed.rows, top_n=top_n, strict_dates=strict_dates)

    window_end = loaded_at
    if anchor == 'latest_date':
        latest = _latest_parsed_date(parsed.rows)
        if latest is not None:
            window_end = latest + pd.Timedelta(days=1)

    series = filter_time_series(parsed.rows, snapshots[LOCATION_COL], window_end, window_days)

    logger.info(
        "Loaded %d rows (%d skipped, missing columns: %s); %d ranked countries, %d trend rows",
        len(parsed.rows), parsed.skipped_rows, list(parsed.missing_columns) or 'none',
        len(snapshots), len(series),
    )
    return DatasetVersion(
        version=_version_token(text, window_end, top_n),
        loaded_at=loaded_at,
        window_end=pd.Timestamp(window_end),
        rows=parsed.rows,
        snapshots=snapshots,
        series=series,
        parse=parsed,
    )
