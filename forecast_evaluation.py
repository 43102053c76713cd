"""
Unemployment ARIMA Analysis - Forecast Evaluation
-------------------------------------------------
Train/test split, multi-step forecasts with confidence intervals and
forecast accuracy metrics.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_absolute_percentage_error, mean_squared_error
from statsmodels.tsa.stattools import acf

from arima_candidates import FittedModel, ModelSpec, fit_candidates
from errors import InvalidInputError, LengthMismatchError
from stationarity_analysis import inverse_power_transform

ACCURACY_METRICS = ['ME', 'RMSE', 'MAE', 'MPE', 'MAPE', 'MASE', 'ACF1']


@dataclass(frozen=True, eq=False)
class ForecastResult:
    model_name: str
    level: float
    frame: pd.DataFrame

    @property
    def point(self) -> pd.Series:
        return self.frame['forecast']

    @property
    def lower(self) -> pd.Series:
        return self.frame['lower']

    @property
    def upper(self) -> pd.Series:
        return self.frame['upper']

    def __len__(self):
        return len(self.frame)


def train_test_split(series, train_fraction=0.8) -> Tuple[pd.Series, pd.Series]:
    """
    Split a series into a chronological prefix (train) and suffix (test).

    The split is never shuffled; train holds int(n * train_fraction) observations.
    """
    if not 0 < train_fraction < 1:
        raise InvalidInputError(f"train_fraction must be in (0, 1), got {train_fraction}")
    n = len(series)
    train_n = int(n * train_fraction)
    if train_n == 0 or train_n == n:
        raise InvalidInputError(f"Split of {n} observations at {train_fraction} leaves an empty part")

    train_data = series.iloc[:train_n].copy()
    test_data = series.iloc[train_n:].copy()
    print(f"\nTraining on {len(train_data)} observations, testing on {len(test_data)} observations")
    return train_data, test_data


def forecast(fitted_model: FittedModel, horizon: int, level=0.80) -> ForecastResult:
    """
    Recursive multi-step forecast with a `level` confidence interval.

    Point forecasts and bounds are returned on the original scale when the
    model was fitted to a Box-Cox transformed series.
    """
    if horizon < 1:
        raise InvalidInputError(f"Forecast horizon must be positive, got {horizon}")
    if not 0 < level < 1:
        raise InvalidInputError(f"Confidence level must be in (0, 1), got {level}")
    if not fitted_model.converged or fitted_model.results is None:
        raise InvalidInputError(f"{fitted_model.name} did not converge and cannot forecast")

    prediction = fitted_model.results.get_forecast(steps=horizon)
    predicted_mean = prediction.predicted_mean
    intervals = prediction.conf_int(alpha=1 - level)

    frame = pd.DataFrame(
        {
            'forecast': np.asarray(predicted_mean, dtype=np.float64),
            'lower': intervals.iloc[:, 0].to_numpy(dtype=np.float64),
            'upper': intervals.iloc[:, 1].to_numpy(dtype=np.float64),
        },
        index=predicted_mean.index,
    )
    frame.index.name = 'date'
    if fitted_model.lmbda is not None:
        frame = inverse_power_transform(frame, fitted_model.lmbda)

    return ForecastResult(model_name=fitted_model.name, level=level, frame=frame)


def _lag1_autocorrelation(errors):
    if len(errors) < 2 or np.isclose(np.var(errors), 0):
        return np.nan
    return float(acf(errors, nlags=1, fft=False)[1])


def accuracy(forecast_result, actual, train=None, seasonal_period=1) -> Dict[str, float]:
    """
    Forecast accuracy against held-out values, with errors e = actual - forecast.

    Parameters:
    -----------
    forecast_result : ForecastResult or array-like
        Point forecasts
    actual : array-like
        Held-out observations over the same horizon
    train : array-like or None
        Training data used to scale MASE (NaN when not given)
    seasonal_period : int
        Lag of the naive forecast used for the MASE scale

    Returns:
    --------
    dict
        ME, RMSE, MAE, MPE, MAPE, MASE, ACF1; MPE and MAPE are fractions
    """
    if isinstance(forecast_result, ForecastResult):
        predicted = forecast_result.point.to_numpy(dtype=np.float64)
    else:
        predicted = np.asarray(forecast_result, dtype=np.float64)
    actual = np.asarray(actual, dtype=np.float64)

    if len(predicted) != len(actual):
        raise LengthMismatchError(f"Forecast has {len(predicted)} values but actual has {len(actual)}")
    if len(actual) == 0:
        raise InvalidInputError("Cannot compute accuracy over an empty horizon")

    errors = actual - predicted
    mse = mean_squared_error(actual, predicted)
    with np.errstate(divide='ignore', invalid='ignore'):
        mpe = float(np.mean(errors / actual))

    mase = np.nan
    if train is not None:
        train_values = np.asarray(train, dtype=np.float64)
        if len(train_values) > seasonal_period:
            scale = np.mean(np.abs(train_values[seasonal_period:] - train_values[:-seasonal_period]))
            if scale > 0:
                mase = float(np.mean(np.abs(errors)) / scale)

    return {
        'ME': float(np.mean(errors)),
        'RMSE': float(np.sqrt(mse)),
        'MAE': float(mean_absolute_error(actual, predicted)),
        'MPE': mpe,
        'MAPE': float(mean_absolute_percentage_error(actual, predicted)),
        'MASE': mase,
        'ACF1': _lag1_autocorrelation(errors),
    }


def accuracy_report(metrics_by_model: Dict[str, Dict[str, float]]) -> pd.DataFrame:
    """Collect per-model accuracy dicts into one table indexed by model name."""
    report = pd.DataFrame.from_dict(metrics_by_model, orient='index')
    report = report.reindex(columns=ACCURACY_METRICS)
    report.index.name = 'model'
    return report


def evaluate_candidates(specs: List[ModelSpec], train, test, level=0.80, maxiter=200, n_jobs=1,
                        seasonal_period=1):
    """
    Refit every spec on the training split and score its forecasts on the test split.

    Search specs run their search again on the training data.

    Returns:
    --------
    tuple
        (fitted models, {name: ForecastResult}, accuracy report DataFrame)
    """
    fitted = fit_candidates(train, specs, maxiter=maxiter, n_jobs=n_jobs)

    forecasts = {}
    metrics = {}
    for model in fitted:
        if not model.converged:
            continue
        forecast_result = forecast(model, len(test), level=level)
        forecasts[model.name] = forecast_result
        metrics[model.name] = accuracy(forecast_result, test, train=train, seasonal_period=seasonal_period)

    report = accuracy_report(metrics)
    if not report.empty:
        print("\nTest Set Performance:")
        print(report.to_string(float_format=lambda v: f"{v:.4f}"))
    return fitted, forecasts, report
