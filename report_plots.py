"""
Unemployment ARIMA Analysis - Report Plots
------------------------------------------
Figures for the analysis report. Every function saves a PNG into the given
directory, closes the figure and returns the saved path.
"""

import os

import matplotlib.pyplot as plt
import seaborn as sns
import statsmodels.api as sm
from statsmodels.graphics.tsaplots import plot_acf, plot_pacf


def _slug(title):
    return title.replace(" ", "_").replace(",", "").replace("=", "").lower()


def _save(path):
    plt.tight_layout()
    plt.savefig(path)
    plt.close()
    return path


def plot_series(series, output_dir, title='Unemployment Rate', ylabel='Rate (%)'):
    """Plot a time series."""
    os.makedirs(output_dir, exist_ok=True)
    plt.figure(figsize=(12, 6))
    plt.plot(series.index, series.values)
    plt.title(title)
    plt.xlabel('Date')
    plt.ylabel(ylabel)
    plt.grid(True)
    return _save(os.path.join(output_dir, f'series_{_slug(title)}.png'))


def plot_acf_pacf(series, output_dir, lags=36, title=''):
    """
    Plot ACF and PACF to identify ARIMA model orders.
    """
    os.makedirs(output_dir, exist_ok=True)
    values = series.dropna()
    lags = max(1, min(lags, len(values) // 2 - 1))

    fig, axes = plt.subplots(2, 1, figsize=(12, 8))
    plot_acf(values, lags=lags, ax=axes[0], alpha=0.05)
    axes[0].set_title(f'Autocorrelation Function - {title}')
    axes[0].grid(True)

    plot_pacf(values, lags=lags, ax=axes[1], alpha=0.05, method='ywm')
    axes[1].set_title(f'Partial Autocorrelation Function - {title}')
    axes[1].grid(True)
    return _save(os.path.join(output_dir, f'acf_pacf_{_slug(title)}.png'))


def plot_residual_diagnostics(fitted_model, output_dir, lags=36):
    """Residuals over time, histogram, residual ACF and Q-Q plot of a fitted model."""
    os.makedirs(output_dir, exist_ok=True)
    residuals = fitted_model.residuals.dropna()
    lags = max(1, min(lags, len(residuals) // 2 - 1))

    fig, axes = plt.subplots(2, 2, figsize=(14, 10))

    axes[0, 0].plot(residuals)
    axes[0, 0].set_title('Residuals')
    axes[0, 0].set_xlabel('Date')
    axes[0, 0].set_ylabel('Residual Value')
    axes[0, 0].axhline(y=0, color='r', linestyle='-')
    axes[0, 0].grid(True)

    sns.histplot(residuals, bins=20, stat='density', kde=True, ax=axes[0, 1])
    axes[0, 1].set_title('Residual Histogram')
    axes[0, 1].set_xlabel('Residual Value')

    plot_acf(residuals, lags=lags, ax=axes[1, 0], alpha=0.05)
    axes[1, 0].set_title('ACF of Residuals')
    axes[1, 0].grid(True)

    sm.qqplot(residuals, line='s', ax=axes[1, 1])
    axes[1, 1].set_title('Q-Q Plot of Residuals')
    axes[1, 1].grid(True)

    fig.suptitle(f'{fitted_model.name}: {fitted_model.label}')
    return _save(os.path.join(output_dir, f'diagnostics_{_slug(fitted_model.name)}.png'))


def plot_forecast_comparison(series, train_data, forecasts, output_dir, title='Forecast Comparison'):
    """
    Plot the history, the train-test split and each model's forecast with its interval.

    Parameters:
    -----------
    series : pd.Series
        Full observed series
    train_data : pd.Series
        Training portion, used to mark the split
    forecasts : dict
        Model name -> ForecastResult
    """
    os.makedirs(output_dir, exist_ok=True)
    plt.figure(figsize=(14, 8))
    plt.plot(series.index, series.values, label='Actual', color='black')

    plt.axvline(x=train_data.index[-1], color='gray', linestyle='--')
    plt.text(train_data.index[-1], series.max(), 'Train-Test Split',
             horizontalalignment='center', verticalalignment='bottom')

    palette = sns.color_palette(n_colors=max(len(forecasts), 1))
    for color, (name, forecast_result) in zip(palette, forecasts.items()):
        frame = forecast_result.frame
        plt.plot(frame.index, frame['forecast'], color=color, label=name)
        plt.fill_between(frame.index, frame['lower'], frame['upper'], color=color, alpha=0.15,
                         label=f'{name} {forecast_result.level:.0%} interval')

    plt.title(title)
    plt.xlabel('Date')
    plt.ylabel('Unemployment Rate (%)')
    plt.legend()
    plt.grid(True)
    return _save(os.path.join(output_dir, f'forecast_{_slug(title)}.png'))


def plot_accuracy_comparison(report, output_dir, metric='MAPE'):
    """Bar chart of one accuracy metric across models."""
    os.makedirs(output_dir, exist_ok=True)
    plt.figure(figsize=(10, 6))
    data = report.reset_index()
    sns.barplot(x='model', y=metric, data=data)
    plt.title(f'{metric} by Model (test set)')
    plt.xticks(rotation=45)
    return _save(os.path.join(output_dir, f'accuracy_{metric.lower()}.png'))
