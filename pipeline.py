#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Unemployment ARIMA Analysis - Pipeline
--------------------------------------
Runs the complete analysis of the monthly unemployment rate:
1. Load the monthly series
2. Box-Cox lambda and stationarity tests (ADF / KPSS)
3. Fit candidate models (manual orders, stepwise search, exhaustive search)
4. Select the model with the lowest AICc
5. Residual diagnostics (Ljung-Box, Jarque-Bera)
6. 80/20 train-test forecast comparison with accuracy metrics
"""

import os
import sys
import warnings
from datetime import datetime

import pandas as pd

from arima_candidates import candidate_table, default_candidate_specs, fit_candidates
from collectors.unemployment_collector import load_unemployment_series
from errors import AnalysisError
from forecast_evaluation import evaluate_candidates, forecast, train_test_split
from model_selection import rank_models, select_best
from report_plots import (
    plot_accuracy_comparison,
    plot_acf_pacf,
    plot_forecast_comparison,
    plot_residual_diagnostics,
    plot_series,
)
from residual_diagnostics import check_residuals
from settings import get_config
from stationarity_analysis import (
    apply_power_transform,
    difference,
    estimate_transform_lambda,
    recommend_differencing,
    stationarity_table,
)


def create_output_directories(config):
    """Create necessary output directories."""
    directories = [
        config['output']['outputs_dir'],
        config['output']['visualizations_dir'],
    ]

    for directory in directories:
        os.makedirs(directory, exist_ok=True)


def _banner(title):
    print("\n" + "=" * 80)
    print(title)
    print("=" * 80)


def _differenced_views(transformed, d, D, period):
    views = {'Box-Cox': transformed}
    for order in range(1, max(d, 1) + 1):
        views[f'Box-Cox, d={order}'] = difference(transformed, order=order)
    if D and period > 1:
        seasonal = difference(transformed, order=D, lag=period)
        views[f'Box-Cox, D={D}'] = seasonal
        if d:
            views[f'Box-Cox, D={D}, d={d}'] = difference(seasonal, order=d)
    return views


def _forecast_table(forecasts, test):
    frames = []
    for name, forecast_result in forecasts.items():
        frame = forecast_result.frame.copy()
        frame['actual'] = test.to_numpy()
        frame['model'] = name
        frame['level'] = forecast_result.level
        frames.append(frame.reset_index())
    if not frames:
        return pd.DataFrame(columns=['date', 'forecast', 'lower', 'upper', 'actual', 'model', 'level'])
    return pd.concat(frames, ignore_index=True)


def write_summary(results, path):
    """Document the selected models and their performance as plain text."""
    best = results['best_model']
    best_on_train = results['best_on_train']
    lb = results['residual_report'].ljung_box
    series = results['series']

    with open(path, 'w') as f:
        f.write("MONTHLY UNEMPLOYMENT RATE - ARIMA ANALYSIS\n")
        f.write("==========================================\n\n")
        f.write(f"Observations: {len(series)} ({series.index.min():%Y-%m} to {series.index.max():%Y-%m})\n")
        f.write(f"Box-Cox lambda: {results['lambda']:.4f}\n")
        f.write(f"Differencing: d={results['d']}, D={results['D']}\n\n")

        f.write("Candidate models (full series):\n")
        f.write(results['candidate_table'].to_string(index=False))
        f.write(f"\n\nSelected model: {best.name} {best.label} (AICc={best.aicc:.3f})\n")
        f.write(f"Ljung-Box: Q*={lb.statistic:.4f}, lag={lb.lag}, dof={lb.dof}, p-value={lb.p_value:.4f}\n\n")

        f.write("Test set accuracy (models refitted on the training split):\n")
        f.write(results['accuracy'].to_string(float_format=lambda v: f"{v:.4f}"))
        f.write(f"\n\nLowest AICc on training split: {best_on_train.name} {best_on_train.label}\n")
        if best_on_train.label != best.label:
            f.write("Note: full-series and training-split selections differ.\n")
        f.write("\nGenerated on: " + datetime.now().strftime("%Y-%m-%d %H:%M:%S") + "\n")


def run_analysis(config_overrides=None, series=None, make_plots=True):
    """
    Run all analysis stages and write the report outputs.

    Parameters:
    -----------
    config_overrides : dict or None
        Nested overrides of settings.CONFIG
    series : pd.Series or None
        Monthly series to analyse instead of loading CONFIG['data']['source']
    make_plots : bool
        Whether to render the PNG figures

    Returns:
    --------
    dict
        Every intermediate table and model of the run
    """
    config = get_config(config_overrides)
    create_output_directories(config)
    outputs_dir = config['output']['outputs_dir']
    viz_dir = config['output']['visualizations_dir']
    model_config = config['models']
    period = model_config['seasonal_period']
    alpha = config['stationarity']['significance']
    output_files = {}

    _banner("MONTHLY UNEMPLOYMENT RATE - ARIMA ANALYSIS")

    # Step 1: Load data
    if series is None:
        data_config = config['data']
        series = load_unemployment_series(
            data_config['source'],
            date_column=data_config['date_column'],
            value_column=data_config['value_column'],
            timeout=data_config['timeout'],
        )

    # Step 2: Variance stabilisation and stationarity
    _banner("STEP 2: TRANSFORMATION AND STATIONARITY")
    transform_config = config['transform']
    lmbda = estimate_transform_lambda(
        series,
        method=transform_config['lambda_method'],
        lower=transform_config['lambda_lower'],
        upper=transform_config['lambda_upper'],
        season_length=transform_config['season_length'],
    )
    print(f"Box-Cox lambda ({transform_config['lambda_method']}): {lmbda:.4f}")
    transformed = apply_power_transform(series, lmbda)

    d = config['stationarity']['differencing_order']
    D = config['stationarity']['seasonal_differencing_order']
    stationarity_df = stationarity_table(_differenced_views(transformed, d, D, period), alpha=alpha)
    print("\nStationarity tests (ADF null: unit root, KPSS null: stationary):")
    print(stationarity_df.to_string(index=False))

    recommendation = recommend_differencing(transformed, alpha=alpha, seasonal_period=period)
    print(f"\nAdvisory differencing orders: {recommendation}")
    print(f"Using d={d}, D={D}")

    # Step 3: Candidate models on the full series
    _banner("STEP 3: CANDIDATE MODELS")
    specs = default_candidate_specs(model_config, d=d, D=D, lmbda=lmbda)
    fitted = fit_candidates(series, specs, maxiter=model_config['maxiter'], n_jobs=model_config['n_jobs'])
    candidates_df = candidate_table(fitted)
    print("\nCandidate models:")
    print(candidates_df.to_string(index=False))

    # Step 4: Selection
    _banner("STEP 4: MODEL SELECTION")
    best = select_best(fitted)
    ranking = rank_models(fitted)
    print(ranking.to_string(index=False))
    print(f"\nBest model: {best.name} {best.label} with AICc={best.aicc:.3f}")

    # Step 5: Residual diagnostics
    _banner("STEP 5: RESIDUAL DIAGNOSTICS")
    residual_report = check_residuals(
        best,
        lag=config['diagnostics']['ljung_box_lag'],
        alpha=config['diagnostics']['significance'],
    )

    # Step 6: Train-test evaluation
    _banner("STEP 6: FORECAST EVALUATION")
    eval_config = config['evaluation']
    train_data, test_data = train_test_split(series, eval_config['train_fraction'])
    train_fitted, forecasts, report = evaluate_candidates(
        specs,
        train_data,
        test_data,
        level=eval_config['confidence_level'],
        maxiter=model_config['maxiter'],
        n_jobs=model_config['n_jobs'],
        seasonal_period=period,
    )
    best_on_train = select_best(train_fitted)
    print(f"\nLowest AICc on the training split: {best_on_train.name} {best_on_train.label}")
    if best_on_train.label != best.label:
        print("Note: full-series and training-split selections differ.")

    # Save tables
    tables = {
        'stationarity_tests': stationarity_df,
        'candidate_models': candidates_df,
        'model_ranking': ranking,
        'train_candidate_models': candidate_table(train_fitted),
        'residual_diagnostics': pd.DataFrame([residual_report.as_dict(config['diagnostics']['significance'])]),
        'forecasts': _forecast_table(forecasts, test_data),
    }
    for name, table in tables.items():
        path = os.path.join(outputs_dir, f'{name}.csv')
        table.to_csv(path, index=False)
        output_files[name] = path
    output_files['accuracy_report'] = os.path.join(outputs_dir, 'accuracy_report.csv')
    report.to_csv(output_files['accuracy_report'])

    if make_plots:
        print("\nSaving figures...")
        output_files['series_plot'] = plot_series(series, viz_dir, title='Unemployment Rate')
        output_files['acf_pacf_plot'] = plot_acf_pacf(transformed, viz_dir, title='Box-Cox transformed')
        output_files['acf_pacf_differenced_plot'] = plot_acf_pacf(
            difference(transformed, order=max(d, 1)), viz_dir, title=f'Box-Cox differenced d={max(d, 1)}'
        )
        output_files['residual_plot'] = plot_residual_diagnostics(best, viz_dir)
        plot_level = eval_config['plot_confidence_level']
        plot_forecasts = {
            model.name: forecast(model, len(test_data), level=plot_level)
            for model in train_fitted if model.converged
        }
        output_files['forecast_plot'] = plot_forecast_comparison(
            series, train_data, plot_forecasts, viz_dir, title='Test Set Forecasts'
        )
        if not report.empty:
            output_files['accuracy_plot'] = plot_accuracy_comparison(report, viz_dir, metric='MAPE')

    results = {
        'config': config,
        'series': series,
        'lambda': lmbda,
        'transformed': transformed,
        'd': d,
        'D': D,
        'stationarity': stationarity_df,
        'differencing_recommendation': recommendation,
        'candidates': fitted,
        'candidate_table': candidates_df,
        'ranking': ranking,
        'best_model': best,
        'residual_report': residual_report,
        'train': train_data,
        'test': test_data,
        'train_candidates': train_fitted,
        'forecasts': forecasts,
        'accuracy': report,
        'best_on_train': best_on_train,
        'output_files': output_files,
    }

    output_files['summary'] = os.path.join(outputs_dir, 'analysis_summary.txt')
    write_summary(results, output_files['summary'])

    print(f"\nAnalysis complete. Results saved to {outputs_dir}/ and {viz_dir}/")
    return results


def main():
    """Main execution function"""
    warnings.filterwarnings('ignore')
    try:
        run_analysis()
    except AnalysisError as e:
        print(f"\nAnalysis failed: {type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
