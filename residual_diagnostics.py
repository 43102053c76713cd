"""
Unemployment ARIMA Analysis - Residual Diagnostics
--------------------------------------------------
Checks whether a fitted model's residuals look like white noise
(Ljung-Box) and whether they are approximately normal (Jarque-Bera).
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.diagnostic import acorr_ljungbox

from arima_candidates import FittedModel
from errors import InvalidInputError


@dataclass(frozen=True)
class LjungBoxResult:
    statistic: float
    p_value: float
    lag: int
    dof: int

    def is_white_noise(self, alpha: float = 0.05) -> bool:
        return self.p_value > alpha


@dataclass(frozen=True)
class ResidualReport:
    model_name: str
    model_label: str
    ljung_box: LjungBoxResult
    jarque_bera_statistic: float
    jarque_bera_p_value: float
    mean: float
    std: float
    n_residuals: int

    def as_dict(self, alpha: float = 0.05) -> dict:
        return {
            'name': self.model_name,
            'model': self.model_label,
            'lb_lag': self.ljung_box.lag,
            'lb_dof': self.ljung_box.dof,
            'lb_stat': self.ljung_box.statistic,
            'lb_pvalue': self.ljung_box.p_value,
            'white_noise': self.ljung_box.is_white_noise(alpha),
            'jb_stat': self.jarque_bera_statistic,
            'jb_pvalue': self.jarque_bera_p_value,
            'resid_mean': self.mean,
            'resid_std': self.std,
            'n_residuals': self.n_residuals,
        }


def default_ljung_box_lag(n_obs: int, period: int = 1) -> int:
    """min(2 * period, n / 5) for seasonal data, min(10, n / 5) otherwise."""
    if period and period > 1:
        return max(1, min(2 * period, n_obs // 5))
    return max(1, min(10, n_obs // 5))


def ljung_box_test(residuals, lag: int, dof: int = 0) -> LjungBoxResult:
    """
    Ljung-Box portmanteau test on the first `lag` autocorrelations.

    Parameters:
    -----------
    residuals : array-like
        Residual sequence; missing values are dropped
    lag : int
        Number of autocorrelation lags summed
    dof : int
        Fitted ARMA coefficients, subtracted from the chi-squared degrees of freedom

    Returns:
    --------
    LjungBoxResult
        A p-value above the significance level supports white noise
    """
    values = pd.Series(residuals, dtype=np.float64).dropna()
    if lag < 1 or dof < 0:
        raise InvalidInputError(f"Invalid Ljung-Box lag={lag}, dof={dof}")
    if dof >= lag:
        raise InvalidInputError(f"Ljung-Box lag ({lag}) must exceed the fitted degrees of freedom ({dof})")
    if len(values) <= lag:
        raise InvalidInputError(f"Ljung-Box test at lag {lag} needs more than {lag} residuals, got {len(values)}")

    lb_df = acorr_ljungbox(values.to_numpy(), lags=[lag], model_df=dof, return_df=True)
    return LjungBoxResult(
        statistic=float(lb_df['lb_stat'].iloc[0]),
        p_value=float(lb_df['lb_pvalue'].iloc[0]),
        lag=int(lag),
        dof=int(dof),
    )


def check_residuals(fitted_model: FittedModel, lag=None, alpha=0.05) -> ResidualReport:
    """Ljung-Box (dof = p+q+P+Q) and Jarque-Bera checks on a fitted model's residuals."""
    if not fitted_model.converged:
        raise InvalidInputError(f"{fitted_model.name} did not converge; no residuals to check")

    residuals = fitted_model.residuals.dropna()
    dof = fitted_model.n_orders
    period = fitted_model.seasonal_order[3] or fitted_model.spec.period
    if lag is None:
        lag = default_ljung_box_lag(len(residuals), period)
    lag = max(lag, dof + 1)

    print(f"\n--- Residual Diagnostics ({fitted_model.name}: {fitted_model.label}) ---")
    lb_result = ljung_box_test(residuals, lag=lag, dof=dof)
    print(f"Ljung-Box Q*={lb_result.statistic:.4f}, df={lag - dof}, p-value={lb_result.p_value:.4f}")
    if lb_result.is_white_noise(alpha):
        print("Indication: No significant autocorrelation detected in residuals.")
    else:
        print("Indication: Significant autocorrelation present in residuals. Model may need order adjustment.")

    jb_stat, jb_pvalue = stats.jarque_bera(residuals)
    print(f"Jarque-Bera statistic: {jb_stat:.4f}, p-value: {jb_pvalue:.4f}")
    if jb_pvalue <= alpha:
        print("Indication: Residuals may not be normally distributed.")

    return ResidualReport(
        model_name=fitted_model.name,
        model_label=fitted_model.label,
        ljung_box=lb_result,
        jarque_bera_statistic=float(jb_stat),
        jarque_bera_p_value=float(jb_pvalue),
        mean=float(residuals.mean()),
        std=float(residuals.std()),
        n_residuals=int(len(residuals)),
    )
