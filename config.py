# Central configuration for the COVID-19 trends dashboard.
# Everything here is a fixed constant; the dashboard reads no environment variables.

# --- Data source ---
DATA_FILE = 'data.csv'
CSV_DELIMITER = ','

# Column names expected in the header of the data file.
LOCATION_COL = 'location'
DATE_COL = 'date'
TOTAL_CASES_COL = 'total_cases'
TOTAL_DEATHS_COL = 'total_deaths'
NEW_CASES_COL = 'new_cases'
NEW_CASES_SMOOTHED_COL = 'new_cases_smoothed'

TEXT_COLUMNS = [LOCATION_COL, DATE_COL]
NUMERIC_COLUMNS = [TOTAL_CASES_COL, TOTAL_DEATHS_COL, NEW_CASES_COL, NEW_CASES_SMOOTHED_COL]
REQUIRED_COLUMNS = TEXT_COLUMNS + NUMERIC_COLUMNS
SNAPSHOT_COLUMNS = [LOCATION_COL, DATE_COL, TOTAL_CASES_COL, TOTAL_DEATHS_COL]

# --- Pipeline parameters ---
TOP_N_COUNTRIES = 20
TREND_WINDOW_DAYS = 365
MAX_SELECTED_COUNTRIES = 5
MAX_TOGGLE_OPTIONS = 15

# Skipped lines beyond this many are only counted, not kept for display.
MAX_REPORTED_ISSUES = 50

# 'load_time' counts the trend window back from the moment the data is loaded.
# 'latest_date' counts it back from the newest date found in the file instead.
WINDOW_ANCHOR = 'load_time'
WINDOW_ANCHORS = ('load_time', 'latest_date')

# Dates are compared as strings when picking the latest record per country,
# which requires zero-padded YYYY-MM-DD dates. Set to True to compare parsed dates.
STRICT_DATE_ORDER = False

# --- Page settings ---
PAGE_TITLE = "COVID-19 Data Visualization"
LAYOUT = "wide"
INITIAL_SIDEBAR_STATE = "expanded"

CHART_MODES = {
    "Bar Chart": "bar",
    "Scatter Plot": "scatter",
    "Line Chart": "line",
}

# --- Logging ---
LOG_LEVEL = 'INFO'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
