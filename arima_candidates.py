"""
Unemployment ARIMA Analysis - Candidate Models
----------------------------------------------
Fits the candidate ARIMA specifications with statsmodels' SARIMAX:
1. Fixed orders chosen by the analyst
2. Stepwise search (greedy neighbourhood moves on p, q, P, Q)
3. Exhaustive search over bounded p, q, P, Q

Both searches compare candidates by AICc with d, D held fixed, and skip any
candidate that fails to converge or whose AR/MA roots lie on or inside
ROOT_TOLERANCE of the unit circle.
"""

import dataclasses
import itertools
import warnings
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from statsmodels.tsa.statespace.sarimax import SARIMAX

from errors import InvalidInputError, NonConvergenceError
from stationarity_analysis import apply_power_transform

FIXED = 'fixed'
STEPWISE = 'stepwise'
EXHAUSTIVE = 'exhaustive'
SEARCH_MODES = (FIXED, STEPWISE, EXHAUSTIVE)

ROOT_TOLERANCE = 1.001

# (p, q, P, Q) starting points of the stepwise search
STEPWISE_STARTS = [(2, 2, 1, 1), (0, 0, 0, 0), (1, 0, 1, 0), (0, 1, 0, 1)]

NO_SEASONAL = (0, 0, 0, 0)


def _is_order_value(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool) and value >= 0


def model_label(order, seasonal_order=NO_SEASONAL) -> str:
    p, d, q = order
    label = f"ARIMA({p},{d},{q})"
    P, D, Q, period = seasonal_order
    if period and (P or D or Q):
        label += f"({P},{D},{Q})[{period}]"
    return label


@dataclass(frozen=True)
class ModelSpec:
    """
    A candidate model: fixed orders, or the differencing orders and bounds of a search.

    For stepwise/exhaustive specs only d, D and the seasonal period are read
    from the orders; p, q, P, Q come from the search.
    """
    name: str
    order: Tuple[int, int, int] = (0, 1, 0)
    seasonal_order: Tuple[int, int, int, int] = NO_SEASONAL
    mode: str = FIXED
    with_constant: bool = False
    lmbda: Optional[float] = None
    max_p: int = 5
    max_q: int = 5
    max_P: int = 2
    max_Q: int = 2
    max_order: int = 5
    max_models: int = 94

    def __post_init__(self):
        if self.mode not in SEARCH_MODES:
            raise InvalidInputError(f"Unknown model mode '{self.mode}', expected one of {SEARCH_MODES}")
        order = tuple(self.order)
        seasonal_order = tuple(self.seasonal_order)
        if len(order) != 3 or len(seasonal_order) != 4:
            raise InvalidInputError(f"{self.name}: order must be (p, d, q) and seasonal order (P, D, Q, period)")

        bounds = (self.max_p, self.max_q, self.max_P, self.max_Q, self.max_order, self.max_models)
        if not all(_is_order_value(v) for v in order + seasonal_order + bounds):
            raise InvalidInputError(f"{self.name}: orders and bounds must be non-negative integers")
        P, D, Q, period = seasonal_order
        if (P or D or Q) and period < 2:
            raise InvalidInputError(f"{self.name}: seasonal terms need a period of at least 2")

        object.__setattr__(self, 'order', tuple(int(v) for v in order))
        object.__setattr__(self, 'seasonal_order', tuple(int(v) for v in seasonal_order))

    @property
    def d(self) -> int:
        return self.order[1]

    @property
    def D(self) -> int:
        return self.seasonal_order[1]

    @property
    def period(self) -> int:
        return self.seasonal_order[3]

    @property
    def is_search(self) -> bool:
        return self.mode != FIXED

    @property
    def label(self) -> str:
        if self.is_search:
            return f"{self.mode} search (d={self.d}, D={self.D}, period={self.period})"
        return model_label(self.order, self.seasonal_order)


@dataclass(frozen=True, eq=False)
class FittedModel:
    name: str
    spec: ModelSpec
    order: Tuple[int, int, int]
    seasonal_order: Tuple[int, int, int, int]
    params: pd.Series
    residuals: pd.Series
    loglik: float
    aic: float
    aicc: float
    bic: float
    sigma2: float
    converged: bool = True
    message: str = ''
    lmbda: Optional[float] = None
    n_models_evaluated: int = 1
    search_trace: Optional[pd.DataFrame] = field(default=None, repr=False)
    results: Any = field(default=None, repr=False)

    @classmethod
    def failed(cls, spec: ModelSpec, message: str) -> 'FittedModel':
        """Placeholder for a candidate that could not be estimated."""
        return cls(
            name=spec.name,
            spec=spec,
            order=spec.order,
            seasonal_order=spec.seasonal_order,
            params=pd.Series(dtype=np.float64),
            residuals=pd.Series(dtype=np.float64),
            loglik=np.nan,
            aic=np.inf,
            aicc=np.inf,
            bic=np.inf,
            sigma2=np.nan,
            converged=False,
            message=message,
            lmbda=spec.lmbda,
            n_models_evaluated=0,
        )

    @property
    def n_orders(self) -> int:
        """p + q + P + Q, the number of ARMA coefficients."""
        p, _, q = self.order
        P, _, Q, _ = self.seasonal_order
        return p + q + P + Q

    @property
    def label(self) -> str:
        return model_label(self.order, self.seasonal_order)

    @property
    def is_usable(self) -> bool:
        return self.converged and np.isfinite(self.aicc)


def _prepare(series, lmbda) -> pd.Series:
    y = pd.Series(series, dtype=np.float64)
    if y.isna().any():
        raise InvalidInputError("Series contains missing values")
    if lmbda is not None:
        y = apply_power_transform(y, lmbda)
    return y


def _trend(with_constant, d, D):
    # A constant on the differenced scale; a drift term when d + D == 1
    if with_constant and d + D <= 1:
        return 'c'
    return None


def _estimate(y, order, seasonal_order, trend, maxiter):
    label = model_label(order, seasonal_order)
    model = SARIMAX(
        y,
        order=order,
        seasonal_order=seasonal_order,
        trend=trend,
        enforce_stationarity=True,
        enforce_invertibility=True,
    )
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        try:
            results = model.fit(disp=False, maxiter=maxiter)
        except (np.linalg.LinAlgError, ValueError, IndexError) as e:
            raise NonConvergenceError(f"{label} could not be estimated: {e}") from e

    retvals = results.mle_retvals or {}
    if not retvals.get('converged', True):
        raise NonConvergenceError(f"{label} did not converge within {maxiter} iterations")
    if not np.isfinite(results.llf):
        raise NonConvergenceError(f"{label} produced a non-finite log-likelihood")
    return results


def is_admissible(results, tolerance=ROOT_TOLERANCE) -> bool:
    """True if all AR and MA characteristic roots lie outside `tolerance` of the origin."""
    for roots in (results.arroots, results.maroots):
        if len(roots) and np.min(np.abs(roots)) <= tolerance:
            return False
    return True


def _to_fitted(spec, results, order, seasonal_order) -> FittedModel:
    burn = order[1] + seasonal_order[1] * seasonal_order[3]
    residuals = pd.Series(results.resid, dtype=np.float64).copy()
    # Residuals of the first d + D*period observations are not defined
    residuals.iloc[:burn] = np.nan

    params = pd.Series(results.params)
    return FittedModel(
        name=spec.name,
        spec=spec,
        order=tuple(order),
        seasonal_order=tuple(seasonal_order),
        params=params.drop('sigma2', errors='ignore'),
        residuals=residuals,
        loglik=float(results.llf),
        aic=float(results.aic),
        aicc=float(results.aicc),
        bic=float(results.bic),
        sigma2=float(params.get('sigma2', np.nan)),
        lmbda=spec.lmbda,
        results=results,
    )


def fit_fixed(series, spec: ModelSpec, maxiter=200) -> FittedModel:
    """
    Fit the spec's fixed orders by exact maximum likelihood.

    Raises:
    -------
    NonConvergenceError
        If the optimizer does not converge within maxiter iterations
    """
    y = _prepare(series, spec.lmbda)
    results = _estimate(y, spec.order, spec.seasonal_order, _trend(spec.with_constant, spec.d, spec.D), maxiter)
    return _to_fitted(spec, results, spec.order, spec.seasonal_order)


def _seasonal_allowed(n_obs, period) -> bool:
    return period > 1 and n_obs > 2 * period


def _search_setup(y, spec):
    """Resolve (d, D, period, seasonal) for a search, dropping seasonal terms on short series."""
    if spec.period > 1 and not _seasonal_allowed(len(y), spec.period):
        print(f"  {spec.name}: {len(y)} observations are too few for period {spec.period}, "
              f"seasonal terms disabled")
    if _seasonal_allowed(len(y), spec.period):
        return spec.d, spec.D, spec.period, True
    return spec.d, 0, 0, False


def _bounds(spec, seasonal):
    if seasonal:
        return (spec.max_p, spec.max_q, spec.max_P, spec.max_Q)
    return (spec.max_p, spec.max_q, 0, 0)


def _within(key, bounds) -> bool:
    return all(0 <= value <= bound for value, bound in zip(key, bounds))


def _starting_orders(spec, seasonal):
    bounds = _bounds(spec, seasonal)
    starts = []
    for start in STEPWISE_STARTS:
        key = tuple(min(value, bound) for value, bound in zip(start, bounds))
        if key not in starts:
            starts.append(key)
    return starts


def _neighbours(key, spec, seasonal):
    moves = []
    if seasonal:
        moves += [(0, 0, -1, 0), (0, 0, 1, 0), (0, 0, 0, -1), (0, 0, 0, 1), (0, 0, -1, -1), (0, 0, 1, 1)]
    moves += [(-1, 0, 0, 0), (1, 0, 0, 0), (0, -1, 0, 0), (0, 1, 0, 0), (-1, -1, 0, 0), (1, 1, 0, 0)]

    bounds = _bounds(spec, seasonal)
    for move in moves:
        candidate = tuple(value + step for value, step in zip(key, move))
        if _within(candidate, bounds):
            yield candidate


def _evaluate_candidate(y, spec, key, d, D, period, maxiter):
    p, q, P, Q = key
    order = (p, d, q)
    seasonal_order = (P, D, Q, period) if period else NO_SEASONAL
    try:
        results = _estimate(y, order, seasonal_order, _trend(spec.with_constant, d, D), maxiter)
    except NonConvergenceError:
        return None, 'not converged'
    if not is_admissible(results):
        return None, 'roots near unit circle'
    return _to_fitted(spec, results, order, seasonal_order), 'ok'


def _trace_row(key, d, D, period, fitted, status):
    p, q, P, Q = key
    return {
        'p': p, 'd': d, 'q': q, 'P': P, 'D': D, 'Q': Q, 'period': period,
        'aicc': fitted.aicc if fitted is not None else np.nan,
        'status': status,
    }


def _better(candidate, incumbent) -> bool:
    return candidate is not None and (incumbent is None or candidate.aicc < incumbent.aicc)


def _finish_search(spec, best, trace) -> FittedModel:
    if best is None:
        raise NonConvergenceError(
            f"{spec.name}: none of the {len(trace)} evaluated candidates converged to an admissible model"
        )
    print(f"  {spec.name}: best {best.label} AICc={best.aicc:.3f} ({len(trace)} models evaluated)")
    return dataclasses.replace(
        best,
        n_models_evaluated=len(trace),
        search_trace=pd.DataFrame(trace).sort_values('aicc', na_position='last').reset_index(drop=True),
    )


def search_stepwise(series, spec: ModelSpec, maxiter=200) -> FittedModel:
    """
    Greedy AICc search over neighbouring (p, q, P, Q).

    Starts from STEPWISE_STARTS, then repeatedly scans the neighbours of the
    current best model (P, Q, both, then p, q, both, each by +/-1) and moves
    to the first one with a strictly lower AICc. Stops at a local optimum or
    after spec.max_models evaluated orders.
    """
    y = _prepare(series, spec.lmbda)
    d, D, period, seasonal = _search_setup(y, spec)
    trace = []
    visited = set()

    def evaluate(key):
        visited.add(key)
        fitted, status = _evaluate_candidate(y, spec, key, d, D, period, maxiter)
        trace.append(_trace_row(key, d, D, period, fitted, status))
        return fitted

    best, best_key = None, None
    for key in _starting_orders(spec, seasonal):
        fitted = evaluate(key)
        if _better(fitted, best):
            best, best_key = fitted, key

    improved = best is not None
    while improved and len(visited) < spec.max_models:
        improved = False
        for key in _neighbours(best_key, spec, seasonal):
            if key in visited:
                continue
            if len(visited) >= spec.max_models:
                break
            fitted = evaluate(key)
            if _better(fitted, best):
                best, best_key = fitted, key
                improved = True
                break

    return _finish_search(spec, best, trace)


def search_exhaustive(series, spec: ModelSpec, maxiter=200) -> FittedModel:
    """
    Evaluate every (p, q, P, Q) within the spec's bounds with p+q+P+Q <= max_order.

    Returns the best AICc among the admissible candidates; this is the best
    within the bounds, not over all ARIMA models.
    """
    y = _prepare(series, spec.lmbda)
    d, D, period, seasonal = _search_setup(y, spec)
    max_p, max_q, max_P, max_Q = _bounds(spec, seasonal)

    trace = []
    best = None
    for key in itertools.product(range(max_p + 1), range(max_q + 1), range(max_P + 1), range(max_Q + 1)):
        if sum(key) > spec.max_order:
            continue
        fitted, status = _evaluate_candidate(y, spec, key, d, D, period, maxiter)
        trace.append(_trace_row(key, d, D, period, fitted, status))
        if _better(fitted, best):
            best = fitted

        if len(trace) % 25 == 0:
            print(f"  Evaluated {len(trace)} models...")

    return _finish_search(spec, best, trace)


def fit(series, spec: ModelSpec, maxiter=200) -> FittedModel:
    """Fit one candidate specification to a series."""
    print(f"\nFitting {spec.name}: {spec.label}")
    if spec.mode == STEPWISE:
        return search_stepwise(series, spec, maxiter=maxiter)
    if spec.mode == EXHAUSTIVE:
        return search_exhaustive(series, spec, maxiter=maxiter)
    return fit_fixed(series, spec, maxiter=maxiter)


def _fit_or_fail(series, spec, maxiter):
    try:
        return fit(series, spec, maxiter=maxiter)
    except NonConvergenceError as e:
        print(f"  {spec.name} excluded: {e}")
        return FittedModel.failed(spec, str(e))


def fit_candidates(series, specs: List[ModelSpec], maxiter=200, n_jobs=1) -> List[FittedModel]:
    """
    Fit independent candidate specs, in parallel when n_jobs != 1.

    A candidate that does not converge is returned as FittedModel.failed
    rather than aborting the run.
    """
    return Parallel(n_jobs=n_jobs)(
        delayed(_fit_or_fail)(series, spec, maxiter) for spec in specs
    )


def default_candidate_specs(model_config: dict, d: int, D: int = 0, lmbda=None) -> List[ModelSpec]:
    """The manual, stepwise and exhaustive specs described by CONFIG['models']."""
    period = model_config['seasonal_period']
    p, _, q = model_config['fixed_order']
    P, _, Q, _ = tuple(model_config.get('fixed_seasonal_order') or NO_SEASONAL)
    seasonal = bool(period and period > 1)
    # Every candidate shares d and D so their AICc values are comparable
    fixed_seasonal = (P, D, Q, period) if seasonal and (P or D or Q) else NO_SEASONAL
    search_seasonal = (0, D, 0, period) if seasonal else NO_SEASONAL

    bounds = {
        'max_p': model_config['max_p'],
        'max_q': model_config['max_q'],
        'max_P': model_config['max_P'],
        'max_Q': model_config['max_Q'],
        'max_order': model_config['max_order'],
        'max_models': model_config['stepwise_max_models'],
    }
    common = {'with_constant': model_config['with_constant'], 'lmbda': lmbda}

    return [
        ModelSpec('Manual', order=(p, d, q), seasonal_order=fixed_seasonal, mode=FIXED, **common),
        ModelSpec('Stepwise', order=(0, d, 0), seasonal_order=search_seasonal, mode=STEPWISE, **common, **bounds),
        ModelSpec('Exhaustive', order=(0, d, 0), seasonal_order=search_seasonal, mode=EXHAUSTIVE, **common, **bounds),
    ]


def candidate_table(models: List[FittedModel]) -> pd.DataFrame:
    rows = []
    for model in models:
        rows.append({
            'name': model.name,
            'model': model.label if model.converged else model.spec.label,
            'mode': model.spec.mode,
            'AICc': model.aicc,
            'AIC': model.aic,
            'BIC': model.bic,
            'sigma2': model.sigma2,
            'loglik': model.loglik,
            'converged': model.converged,
            'models_evaluated': model.n_models_evaluated,
        })
    return pd.DataFrame(rows)
