from __future__ import annotations

import os

os.environ.setdefault("MPLBACKEND", "Agg")

import numpy as np
import pandas as pd
import pytest


def _monthly_index(n, start="1990-01-01"):
    return pd.date_range(start=start, periods=n, freq="MS", name="date")


@pytest.fixture
def random_walk():
    """Pure random walk: value[t] = value[t-1] + N(0, 1)."""
    rng = np.random.default_rng(42)
    values = 50 + np.cumsum(rng.normal(0, 1, 240))
    return pd.Series(values, index=_monthly_index(240), name="rate")


@pytest.fixture
def white_noise():
    rng = np.random.default_rng(7)
    return pd.Series(rng.normal(0, 1, 300), index=_monthly_index(300), name="noise")


@pytest.fixture
def unemployment_like():
    """Positive monthly rate with a slow cycle, mild seasonality and noise."""
    rng = np.random.default_rng(2024)
    n = 144
    t = np.arange(n)
    level = 6 + 1.5 * np.sin(2 * np.pi * t / 96) + 0.05 * np.cumsum(rng.normal(0, 1, n))
    seasonal = 0.2 * np.sin(2 * np.pi * t / 12)
    values = np.clip(level + seasonal + rng.normal(0, 0.1, n), 1.0, None)
    return pd.Series(values, index=_monthly_index(n, start="2005-01-01"), name="unrate")


@pytest.fixture
def write_csv(tmp_path):
    """Write rows of (date, value) to a CSV file and return its path."""

    def _write(rows, header=("observation_date", "UNRATE"), name="unrate.csv"):
        path = tmp_path / name
        lines = [",".join(header)] + [f"{date},{value}" for date, value in rows]
        path.write_text("\n".join(lines) + "\n")
        return path

    return _write
