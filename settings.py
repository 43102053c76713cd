"""
Unemployment ARIMA Analysis - Settings
--------------------------------------
Project configuration for the monthly unemployment rate analysis.
Environment variables (optionally from a .env file) override the data source.
"""

import copy
import os

from dotenv import load_dotenv

load_dotenv()

FRED_CSV_URL = 'https://fred.stlouisfed.org/graph/fredgraph.csv?id=UNRATE'

# Project configuration
CONFIG = {
    'data': {
        'source': os.getenv('UNEMPLOYMENT_DATA_SOURCE', FRED_CSV_URL),
        'fred_series_id': 'UNRATE',
        'date_column': None,   # first column when None
        'value_column': None,  # second column when None
        'timeout': 30,
    },
    'transform': {
        'lambda_method': 'guerrero',
        'lambda_lower': -1.0,
        'lambda_upper': 2.0,
        'season_length': 12,
    },
    'stationarity': {
        'significance': 0.05,
        # Chosen by the analyst from the ADF/KPSS table, not computed
        'differencing_order': 1,
        'seasonal_differencing_order': 0,
    },
    'models': {
        'seasonal_period': 12,
        'fixed_order': (1, 1, 1),
        'fixed_seasonal_order': (0, 0, 0, 0),  # P and Q; D and period follow the stationarity section
        'with_constant': False,
        'max_p': 5,
        'max_q': 5,
        'max_P': 2,
        'max_Q': 2,
        'max_order': 5,
        'stepwise_max_models': 94,
        'maxiter': 200,
        'n_jobs': 1,
    },
    'diagnostics': {
        'ljung_box_lag': None,  # min(2 * period, n / 5) when None
        'significance': 0.05,
    },
    'evaluation': {
        'train_fraction': 0.8,
        'confidence_level': 0.80,
        'plot_confidence_level': 0.95,
    },
    'output': {
        'outputs_dir': 'outputs',
        'visualizations_dir': 'visualizations/unemployment',
    },
}


def _merge(base, overrides):
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def get_config(overrides=None):
    """
    Return a copy of the project configuration.

    Parameters:
    -----------
    overrides : dict or None
        Nested dict whose values replace the matching CONFIG entries,
        e.g. {'models': {'max_p': 2}}

    Returns:
    --------
    dict
        Independent configuration dict
    """
    config = copy.deepcopy(CONFIG)
    if overrides:
        _merge(config, copy.deepcopy(overrides))
    return config
