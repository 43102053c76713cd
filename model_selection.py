"""
Unemployment ARIMA Analysis - Model Selection
---------------------------------------------
Ranks fitted candidates by AICc and picks the minimizer.
"""

from typing import Iterable, List

import pandas as pd

from arima_candidates import FittedModel
from errors import ModelSelectionError


def _ranking_key(model: FittedModel):
    # Lower AICc first, then the more parsimonious model, then by name
    return (model.aicc, model.n_orders, model.name)


def _usable(fitted_models: Iterable[FittedModel]) -> List[FittedModel]:
    return sorted((m for m in fitted_models if m.is_usable), key=_ranking_key)


def select_best(fitted_models: Iterable[FittedModel]) -> FittedModel:
    """
    Return the converged candidate with the lowest AICc.

    Ties are broken in favour of the smaller p+q+P+Q. Candidates that failed
    to converge are ignored.

    Raises:
    -------
    ModelSelectionError
        If no candidate converged
    """
    fitted_models = list(fitted_models)
    ranked = _usable(fitted_models)
    if not ranked:
        failures = '; '.join(f"{m.name}: {m.message}" for m in fitted_models if m.message)
        raise ModelSelectionError(
            f"None of the {len(fitted_models)} candidate models converged"
            + (f" ({failures})" if failures else "")
        )
    return ranked[0]


def rank_models(fitted_models: Iterable[FittedModel]) -> pd.DataFrame:
    """Converged candidates in selection order, with their AICc distance to the best."""
    ranked = _usable(fitted_models)
    if not ranked:
        return pd.DataFrame(columns=['rank', 'name', 'model', 'AICc', 'delta_AICc', 'BIC', 'sigma2', 'n_orders'])

    best_aicc = ranked[0].aicc
    return pd.DataFrame([
        {
            'rank': position,
            'name': model.name,
            'model': model.label,
            'AICc': model.aicc,
            'delta_AICc': model.aicc - best_aicc,
            'BIC': model.bic,
            'sigma2': model.sigma2,
            'n_orders': model.n_orders,
        }
        for position, model in enumerate(ranked, start=1)
    ])
