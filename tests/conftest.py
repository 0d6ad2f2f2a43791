import matplotlib

matplotlib.use("Agg")

import pytest

HEADER = "location,date,total_cases,total_deaths,new_cases,new_cases_smoothed"


def csv_text(*lines, header=HEADER):
    """Joins a header and data lines into the text of a CSV file."""
    return "\n".join([header, *lines]) + "\n"


@pytest.fixture
def make_csv():
    return csv_text


@pytest.fixture
def scenario_a_text():
    return csv_text(
        "A,2021-01-01,10,1,10,10",
        "A,2021-01-02,20,2,10,10",
        "B,2021-01-01,5,1,5,5",
    )
