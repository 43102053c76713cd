"""
Unemployment ARIMA Analysis - Stationarity
------------------------------------------
Variance stabilisation and stationarity diagnostics:
1. Box-Cox lambda estimation (Guerrero or profile log-likelihood)
2. Box-Cox transform and its inverse
3. ADF unit-root test and KPSS stationarity test
4. Ordinary and seasonal differencing

The differencing order used downstream is chosen by the analyst from the
test table; recommend_differencing() is advisory only.
"""

import warnings
from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd
from pmdarima.arima import ndiffs, nsdiffs
from scipy import optimize, stats
from statsmodels.tools.sm_exceptions import InterpolationWarning
from statsmodels.tsa.stattools import adfuller, kpss

from errors import InvalidInputError


@dataclass(frozen=True)
class StationarityTestResult:
    test: str
    statistic: float
    p_value: float
    lags: int
    null_hypothesis: str
    critical_values: Dict[str, float] = field(default_factory=dict)

    def rejects_null(self, alpha: float = 0.05) -> bool:
        return self.p_value < alpha

    def suggests_stationary(self, alpha: float = 0.05) -> bool:
        """ADF rejecting a unit root, or KPSS failing to reject stationarity."""
        if self.null_hypothesis == 'stationary':
            return not self.rejects_null(alpha)
        return self.rejects_null(alpha)


def _values(series) -> np.ndarray:
    return np.asarray(pd.Series(series).dropna(), dtype=np.float64)


def _guerrero_cv(lmbda, x, period):
    n_sub = len(x) // period
    tail = x[len(x) - n_sub * period:]
    matrix = tail.reshape(n_sub, period)
    means = matrix.mean(axis=1)
    sds = matrix.std(axis=1, ddof=1)
    ratios = sds / means ** (1 - lmbda)
    return np.std(ratios, ddof=1) / np.mean(ratios)


def estimate_transform_lambda(series, method='guerrero', lower=-1.0, upper=2.0, season_length=12) -> float:
    """
    Estimate the Box-Cox lambda that best stabilises the variance of a series.

    Parameters:
    -----------
    series : pd.Series
        Strictly positive time series
    method : str
        'guerrero' (coefficient of variation of subseries sd/mean^(1-lambda))
        or 'loglik' (Box-Cox profile log-likelihood)
    lower, upper : float
        Search bounds for lambda
    season_length : int
        Subseries length for Guerrero's method

    Returns:
    --------
    float
        Estimated lambda within [lower, upper]
    """
    x = _values(series)
    if len(x) == 0 or (x <= 0).any():
        raise InvalidInputError("Box-Cox lambda estimation requires strictly positive data")
    if lower >= upper:
        raise InvalidInputError(f"Invalid lambda bounds [{lower}, {upper}]")

    if method == 'guerrero':
        period = max(2, int(round(season_length)))
        if len(x) // period < 2:
            raise InvalidInputError(
                f"Guerrero's method needs at least {2 * period} observations, got {len(x)}"
            )
        objective = lambda lmbda: _guerrero_cv(lmbda, x, period)
    elif method == 'loglik':
        objective = lambda lmbda: -stats.boxcox_llf(lmbda, x)
    else:
        raise InvalidInputError(f"Unknown lambda estimation method: {method}")

    result = optimize.minimize_scalar(objective, bounds=(lower, upper), method='bounded')
    return float(result.x)


def apply_power_transform(series, lmbda: float) -> pd.Series:
    """Box-Cox transform: log(x) for lambda 0, (x**lambda - 1) / lambda otherwise."""
    series = pd.Series(series, dtype=np.float64)
    if lmbda <= 0 and (series <= 0).any():
        raise InvalidInputError(f"Box-Cox with lambda={lmbda} requires strictly positive values")
    if lmbda > 0 and (series < 0).any():
        raise InvalidInputError(f"Box-Cox with lambda={lmbda} requires non-negative values")

    if lmbda == 0:
        return np.log(series)
    return (series ** lmbda - 1) / lmbda


def inverse_power_transform(values, lmbda: float):
    """Undo apply_power_transform; keeps the pandas type of the input."""
    if lmbda == 0:
        return np.exp(values)
    base = values * lmbda + 1
    if lmbda > 0:
        base = np.maximum(base, 0)
    # NaN where a negative-lambda value lies outside the transform's range
    with np.errstate(invalid='ignore'):
        return np.power(base, 1 / lmbda)


def unit_root_test(series, regression='c', autolag='AIC', maxlag=None) -> StationarityTestResult:
    """Augmented Dickey-Fuller test. Null hypothesis: the series has a unit root."""
    x = _values(series)
    try:
        statistic, p_value, used_lag, _, critical_values, _ = adfuller(
            x, maxlag=maxlag, regression=regression, autolag=autolag
        )
    except (ValueError, np.linalg.LinAlgError) as e:
        raise InvalidInputError(f"ADF test failed on {len(x)} observations: {e}") from e
    return StationarityTestResult(
        test='ADF',
        statistic=float(statistic),
        p_value=float(p_value),
        lags=int(used_lag),
        null_hypothesis='unit root',
        critical_values=dict(critical_values),
    )


def trend_stationarity_test(series, regression='c', nlags='auto') -> StationarityTestResult:
    """
    KPSS test. Null hypothesis: the series is (level or trend) stationary.

    statsmodels only tabulates p-values in [0.01, 0.10]; values outside are
    reported at the boundary.
    """
    x = _values(series)
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', InterpolationWarning)
        try:
            statistic, p_value, lags, critical_values = kpss(x, regression=regression, nlags=nlags)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise InvalidInputError(f"KPSS test failed on {len(x)} observations: {e}") from e
    return StationarityTestResult(
        test='KPSS',
        statistic=float(statistic),
        p_value=float(p_value),
        lags=int(lags),
        null_hypothesis='stationary',
        critical_values=dict(critical_values),
    )


def difference(series, order: int = 1, lag: int = 1) -> pd.Series:
    """
    Apply `order` successive lag-`lag` differences.

    The result is a new series of length n - order * lag.
    """
    if order < 0 or lag < 1:
        raise InvalidInputError(f"Invalid differencing order={order}, lag={lag}")
    series = pd.Series(series, dtype=np.float64)
    if len(series) <= order * lag:
        raise InvalidInputError(
            f"Cannot difference {len(series)} observations with order={order}, lag={lag}"
        )

    differenced = series.copy()
    for _ in range(order):
        differenced = differenced.diff(lag).iloc[lag:]
    return differenced


def recommend_differencing(series, alpha=0.05, max_d=2, seasonal_period: Optional[int] = 12, max_D=1) -> dict:
    """
    Advisory differencing orders from pmdarima's unit-root based estimators.

    Returns:
    --------
    dict
        {'d_kpss': int, 'd_adf': int, 'D': int}
    """
    x = _values(series)
    recommendation = {
        'd_kpss': int(ndiffs(x, alpha=alpha, test='kpss', max_d=max_d)),
        'd_adf': int(ndiffs(x, alpha=alpha, test='adf', max_d=max_d)),
        'D': 0,
    }
    if seasonal_period and seasonal_period > 1 and len(x) >= 2 * seasonal_period:
        recommendation['D'] = int(nsdiffs(x, m=seasonal_period, max_D=max_D, test='ocsb'))
    return recommendation


def stationarity_table(named_series: Dict[str, pd.Series], alpha=0.05) -> pd.DataFrame:
    """
    Run ADF and KPSS on each labelled series.

    Parameters:
    -----------
    named_series : dict
        Label -> series, e.g. {'Box-Cox': y, 'Box-Cox, d=1': difference(y)}
    alpha : float
        Significance level for the conclusions

    Returns:
    --------
    pd.DataFrame
        One row per (series, test)
    """
    rows = []
    for label, series in named_series.items():
        for result in (unit_root_test(series), trend_stationarity_test(series)):
            rows.append({
                'series': label,
                'test': result.test,
                'null_hypothesis': result.null_hypothesis,
                'statistic': result.statistic,
                'p_value': result.p_value,
                'lags': result.lags,
                'reject_null': result.rejects_null(alpha),
                'conclusion': 'stationary' if result.suggests_stationary(alpha) else 'non-stationary',
            })
    return pd.DataFrame(rows)
