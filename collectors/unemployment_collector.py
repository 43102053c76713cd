# collectors/unemployment_collector.py

import io
import os
from pathlib import Path

import numpy as np
import pandas as pd
import requests

from errors import DataFetchError, DataFormatError
from settings import CONFIG

FRED_API_URL = "https://api.stlouisfed.org/fred/series/observations"


def _is_url(source) -> bool:
    return isinstance(source, str) and source.lower().startswith(("http://", "https://"))


def _read_source(source, timeout: int) -> pd.DataFrame:
    if _is_url(source):
        print(f"Downloading unemployment data from {source}...")
        try:
            response = requests.get(source, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DataFetchError(f"Could not download {source}: {e}") from e
        text = response.text
    else:
        path = Path(source)
        print(f"Loading unemployment data from {path}...")
        if not path.exists():
            raise DataFetchError(f"Unemployment data file not found at {path}")
        try:
            text = path.read_text(encoding='utf-8')
        except UnicodeDecodeError as e:
            raise DataFormatError(f"Data source {path} is not valid UTF-8 text: {e}") from e

    if not text.strip():
        raise DataFormatError(f"Data source {source} is empty")
    try:
        return pd.read_csv(io.StringIO(text))
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise DataFormatError(f"Could not parse CSV from {source}: {e}") from e


def parse_monthly_series(df: pd.DataFrame, date_column=None, value_column=None) -> pd.Series:
    """
    Convert a two-column frame of (date, rate) rows into a monthly time series.

    Parameters:
    -----------
    df : pd.DataFrame
        Raw observations, one row per month
    date_column, value_column : str or None
        Column names; the first and second columns are used when None

    Returns:
    --------
    pd.Series
        Float series on a month-start DatetimeIndex with freq 'MS'

    Raises:
    -------
    DataFormatError
        If the frame is empty, unparseable, or the months repeat, go
        backwards or skip a month
    """
    if df is None or df.empty:
        raise DataFormatError("No observations found in data source")

    df = df.copy()
    # Standardize column names
    df.columns = [str(col).lower().strip().replace(' ', '_') for col in df.columns]

    if len(df.columns) < 2:
        raise DataFormatError(f"Expected a date and a value column, got {list(df.columns)}")
    date_column = date_column.lower() if date_column else df.columns[0]
    value_column = value_column.lower() if value_column else df.columns[1]
    for col in (date_column, value_column):
        if col not in df.columns:
            raise DataFormatError(f"'{col}' column not found in the data")

    dates = pd.to_datetime(df[date_column], errors='coerce')
    if dates.isna().any():
        bad = df.loc[dates.isna(), date_column].head(3).tolist()
        raise DataFormatError(f"Unparseable dates in column '{date_column}': {bad}")

    values = pd.to_numeric(df[value_column], errors='coerce')
    if values.isna().any():
        bad_rows = int(values.isna().sum())
        raise DataFormatError(f"{bad_rows} missing or non-numeric values in column '{value_column}'")

    periods = pd.DatetimeIndex(dates).to_period('M')
    if periods.duplicated().any():
        dupes = sorted(set(str(p) for p in periods[periods.duplicated()]))
        raise DataFormatError(f"Duplicate months in data: {dupes[:3]}")

    steps = np.diff(periods.asi8)
    if (steps < 0).any():
        raise DataFormatError("Timestamps are not in chronological order")
    if (steps > 1).any():
        position = int(np.argmax(steps > 1))
        raise DataFormatError(
            f"Gap in monthly data between {periods[position]} and {periods[position + 1]}"
        )

    index = pd.DatetimeIndex(periods.to_timestamp(how='start'), freq='MS', name='date')
    series = pd.Series(values.to_numpy(dtype=np.float64), index=index, name=value_column)

    print(f"Loaded {len(series)} monthly observations from "
          f"{series.index.min():%Y-%m} to {series.index.max():%Y-%m}")
    return series


def load_unemployment_series(source=None, date_column=None, value_column=None, timeout=None) -> pd.Series:
    """
    Load the monthly unemployment rate from a local CSV file or a URL.

    Parameters:
    -----------
    source : str, Path or None
        CSV path or http(s) URL; defaults to CONFIG['data']['source']
    date_column, value_column : str or None
        Column names, see parse_monthly_series
    timeout : int or None
        Download timeout in seconds

    Returns:
    --------
    pd.Series
        Validated monthly time series
    """
    data_config = CONFIG['data']
    source = source if source is not None else data_config['source']
    timeout = timeout if timeout is not None else data_config['timeout']

    raw_df = _read_source(source, timeout)
    return parse_monthly_series(
        raw_df,
        date_column=date_column or data_config['date_column'],
        value_column=value_column or data_config['value_column'],
    )


def fetch_unemployment_from_fred(series_id: str = 'UNRATE', api_key=None, start_date=None,
                                 end_date=None, timeout: int = 30) -> pd.DataFrame:
    """
    Fetches a monthly unemployment rate series from the FRED API and returns a cleaned DataFrame.
    """
    api_key = api_key or os.getenv("FRED_API_KEY")
    if not api_key:
        raise DataFetchError("FRED_API_KEY is not set in environment variables.")

    params = {
        "series_id": series_id,
        "api_key": api_key,
        "file_type": "json",
    }
    if start_date:
        params["observation_start"] = start_date
    if end_date:
        params["observation_end"] = end_date

    try:
        response = requests.get(FRED_API_URL, params=params, timeout=timeout)
        response.raise_for_status()
        data = response.json()["observations"]
    except requests.RequestException as e:
        raise DataFetchError(f"FRED request for {series_id} failed: {e}") from e
    except (KeyError, ValueError) as e:
        raise DataFormatError(f"Unexpected FRED response for {series_id}: {e}") from e

    df = pd.DataFrame(data, columns=["date", "value"])
    df.columns = ["date", series_id.lower()]
    df["date"] = pd.to_datetime(df["date"])
    # FRED marks missing observations with "."
    df[series_id.lower()] = pd.to_numeric(df[series_id.lower()], errors="coerce")
    df = df.dropna().sort_values("date").reset_index(drop=True)

    return df


def save_unemployment_csv(save_path: Path = Path("data/raw/unemployment_rate.csv"), series_id=None, **kwargs):
    series_id = series_id or CONFIG['data']['fred_series_id']
    df = fetch_unemployment_from_fred(series_id=series_id, **kwargs)
    save_path = Path(save_path)
    save_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(save_path, index=False)
    print(f"Saved {series_id} data to {save_path}")
    return save_path
