from __future__ import annotations

from unittest.mock import MagicMock, patch

import pandas as pd
import pytest
import requests

from collectors import unemployment_collector
from errors import DataFetchError, DataFormatError


def _rows(start="2020-01-01", n=6, value=3.5):
    dates = pd.date_range(start=start, periods=n, freq="MS")
    return [(d.strftime("%Y-%m-%d"), value + i * 0.1) for i, d in enumerate(dates)]


class TestParseMonthlySeries:

    def test_valid_file_gives_monthly_series(self, write_csv):
        path = write_csv(_rows(n=24))

        series = unemployment_collector.load_unemployment_series(str(path))

        assert len(series) == 24
        assert series.index.freqstr == "MS"
        assert series.index.is_monotonic_increasing
        assert series.name == "unrate"
        assert series.iloc[0] == pytest.approx(3.5)

    def test_month_end_dates_are_normalised_to_month_start(self):
        df = pd.DataFrame({"date": ["2021-01-31", "2021-02-28", "2021-03-31"], "rate": [6.0, 6.2, 6.1]})

        series = unemployment_collector.parse_monthly_series(df)

        assert list(series.index) == list(pd.date_range("2021-01-01", periods=3, freq="MS"))

    def test_named_columns(self):
        df = pd.DataFrame({"x": [1, 2], "Date": ["2021-01-01", "2021-02-01"], "Rate": [5.0, 5.1]})

        series = unemployment_collector.parse_monthly_series(df, date_column="Date", value_column="Rate")

        assert series.tolist() == [5.0, 5.1]

    def test_empty_frame(self):
        with pytest.raises(DataFormatError):
            unemployment_collector.parse_monthly_series(pd.DataFrame(columns=["date", "rate"]))

    def test_duplicate_month(self):
        df = pd.DataFrame({"date": ["2021-01-01", "2021-01-15", "2021-02-01"], "rate": [5.0, 5.1, 5.2]})
        with pytest.raises(DataFormatError, match="Duplicate"):
            unemployment_collector.parse_monthly_series(df)

    def test_non_monotonic(self):
        df = pd.DataFrame({"date": ["2021-02-01", "2021-01-01", "2021-03-01"], "rate": [5.0, 5.1, 5.2]})
        with pytest.raises(DataFormatError, match="chronological"):
            unemployment_collector.parse_monthly_series(df)

    def test_gap(self):
        df = pd.DataFrame({"date": ["2021-01-01", "2021-02-01", "2021-04-01"], "rate": [5.0, 5.1, 5.2]})
        with pytest.raises(DataFormatError, match="Gap"):
            unemployment_collector.parse_monthly_series(df)

    def test_non_numeric_value(self):
        df = pd.DataFrame({"date": ["2021-01-01", "2021-02-01"], "rate": ["5.0", "n/a"]})
        with pytest.raises(DataFormatError):
            unemployment_collector.parse_monthly_series(df)

    def test_bad_date(self):
        df = pd.DataFrame({"date": ["2021-01-01", "not a date"], "rate": [5.0, 5.1]})
        with pytest.raises(DataFormatError):
            unemployment_collector.parse_monthly_series(df)

    def test_single_column(self):
        with pytest.raises(DataFormatError):
            unemployment_collector.parse_monthly_series(pd.DataFrame({"date": ["2021-01-01"]}))


class TestLoadUnemploymentSeries:

    def test_missing_file(self, tmp_path):
        with pytest.raises(DataFetchError):
            unemployment_collector.load_unemployment_series(str(tmp_path / "missing.csv"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")
        with pytest.raises(DataFormatError):
            unemployment_collector.load_unemployment_series(str(path))

    def test_non_utf8_file(self, tmp_path):
        path = tmp_path / "latin1.csv"
        path.write_bytes("observation_date,UNRATE\n2020-01-01,3.5\n# r\xe9vis\xe9\n".encode("latin-1"))

        with pytest.raises(DataFormatError, match="UTF-8") as excinfo:
            unemployment_collector.load_unemployment_series(str(path))
        assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)

    @patch("collectors.unemployment_collector.requests.get")
    def test_url_source(self, mock_get):
        response = MagicMock()
        response.text = "observation_date,UNRATE\n2020-01-01,3.6\n2020-02-01,3.5\n2020-03-01,4.4\n"
        mock_get.return_value = response

        series = unemployment_collector.load_unemployment_series("https://example.org/unrate.csv", timeout=5)

        mock_get.assert_called_once_with("https://example.org/unrate.csv", timeout=5)
        assert series.tolist() == [3.6, 3.5, 4.4]

    @patch("collectors.unemployment_collector.requests.get")
    def test_fetch_failure_is_reported(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("offline")

        with pytest.raises(DataFetchError, match="offline"):
            unemployment_collector.load_unemployment_series("https://example.org/unrate.csv")


class TestFetchFromFred:

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("FRED_API_KEY", raising=False)
        with pytest.raises(DataFetchError):
            unemployment_collector.fetch_unemployment_from_fred()

    @patch("collectors.unemployment_collector.requests.get")
    def test_parses_observations(self, mock_get):
        response = MagicMock()
        response.json.return_value = {"observations": [
            {"date": "2020-02-01", "value": "3.5", "realtime_start": "x"},
            {"date": "2020-01-01", "value": "3.6", "realtime_start": "x"},
            {"date": "2020-03-01", "value": ".", "realtime_start": "x"},
        ]}
        mock_get.return_value = response

        df = unemployment_collector.fetch_unemployment_from_fred(api_key="key")

        assert list(df.columns) == ["date", "unrate"]
        assert df["unrate"].tolist() == [3.6, 3.5]
        assert mock_get.call_args.kwargs["params"]["series_id"] == "UNRATE"

    @patch("collectors.unemployment_collector.fetch_unemployment_from_fred")
    def test_save_csv(self, mock_fetch, tmp_path):
        mock_fetch.return_value = pd.DataFrame({"date": pd.to_datetime(["2020-01-01"]), "unrate": [3.6]})

        path = unemployment_collector.save_unemployment_csv(tmp_path / "raw" / "unrate.csv", api_key="key")

        assert path.exists()
        assert pd.read_csv(path)["unrate"].tolist() == [3.6]
