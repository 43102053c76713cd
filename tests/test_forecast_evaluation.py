from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

import arima_candidates
from arima_candidates import FittedModel, ModelSpec
from errors import InvalidInputError, LengthMismatchError
from forecast_evaluation import (
    ACCURACY_METRICS,
    ForecastResult,
    accuracy,
    accuracy_report,
    evaluate_candidates,
    forecast,
    train_test_split,
)


class TestTrainTestSplit:

    def test_eighty_twenty(self):
        series = pd.Series(np.arange(100.0), index=pd.date_range("2000-01-01", periods=100, freq="MS"))

        train, test = train_test_split(series, 0.8)

        assert len(train) == 80
        assert len(test) == 20
        pd.testing.assert_series_equal(pd.concat([train, test]), series, check_freq=False)
        assert train.index.max() < test.index.min()

    @pytest.mark.parametrize("fraction", [0, 1, 1.2, -0.5])
    def test_invalid_fraction(self, fraction):
        with pytest.raises(InvalidInputError):
            train_test_split(pd.Series(np.arange(10.0)), fraction)

    def test_empty_part(self):
        with pytest.raises(InvalidInputError):
            train_test_split(pd.Series([1.0]), 0.8)


class TestAccuracy:

    def test_mape_example(self):
        metrics = accuracy([5, 5, 5], [5, 5, 6])

        assert metrics["MAPE"] == pytest.approx((0 + 0 + 1 / 6) / 3)
        assert metrics["MAPE"] == pytest.approx(0.0556, abs=1e-4)
        assert metrics["ME"] == pytest.approx(1 / 3)
        assert metrics["MAE"] == pytest.approx(1 / 3)
        assert metrics["RMSE"] == pytest.approx(np.sqrt(1 / 3))
        assert metrics["MPE"] == pytest.approx(1 / 18)
        assert np.isnan(metrics["MASE"])
        assert set(metrics) == set(ACCURACY_METRICS)

    def test_length_mismatch(self):
        with pytest.raises(LengthMismatchError):
            accuracy([5, 5, 5], [5, 5])

    def test_mase_scaled_by_naive_training_error(self):
        metrics = accuracy([5, 5], [5, 7], train=[1, 2, 3, 4])
        assert metrics["MASE"] == pytest.approx(1.0)

    def test_seasonal_mase(self):
        train = np.tile([1.0, 3.0], 6) + np.repeat(np.arange(6.0), 2)
        metrics = accuracy([1, 1], [2, 2], train=train, seasonal_period=2)
        # Seasonal naive errors on train are all 1
        assert metrics["MASE"] == pytest.approx(1.0)

    def test_constant_errors_have_no_autocorrelation(self):
        assert np.isnan(accuracy([1, 1, 1], [2, 2, 2])["ACF1"])

    def test_accepts_forecast_result(self):
        frame = pd.DataFrame({"forecast": [5.0, 5.0], "lower": [4.0, 4.0], "upper": [6.0, 6.0]})
        result = ForecastResult("m", 0.8, frame)

        assert accuracy(result, [5.0, 5.5])["MAE"] == pytest.approx(0.25)

    def test_report(self):
        report = accuracy_report({
            "a": accuracy([5, 5, 5], [5, 5, 6]),
            "b": accuracy([6, 6, 6], [5, 5, 6]),
        })

        assert list(report.index) == ["a", "b"]
        assert list(report.columns) == ACCURACY_METRICS
        assert report.loc["a", "MAPE"] < report.loc["b", "MAPE"]


class TestForecast:

    def test_horizon_and_intervals(self, random_walk):
        train, test = train_test_split(random_walk, 0.8)
        fitted = arima_candidates.fit_fixed(train, ModelSpec("ar", order=(1, 1, 0)))

        narrow = forecast(fitted, len(test), level=0.8)
        wide = forecast(fitted, len(test), level=0.95)

        assert len(narrow) == len(test)
        assert narrow.frame.index.equals(test.index)
        assert (narrow.lower <= narrow.point).all()
        assert (narrow.point <= narrow.upper).all()
        assert ((wide.upper - wide.lower) > (narrow.upper - narrow.lower)).all()
        # Interval width grows with the horizon for an integrated model
        width = narrow.upper - narrow.lower
        assert width.iloc[-1] > width.iloc[0]

    def test_box_cox_forecasts_back_transformed(self, unemployment_like):
        fitted = arima_candidates.fit_fixed(unemployment_like, ModelSpec("log", order=(1, 1, 0), lmbda=0.0))

        result = forecast(fitted, 6)
        log_scale = fitted.results.get_forecast(steps=6).predicted_mean

        np.testing.assert_allclose(result.point.to_numpy(), np.exp(log_scale.to_numpy()))
        assert (result.lower > 0).all()
        assert (result.lower <= result.point).all()

    @pytest.mark.parametrize("horizon, level", [(0, 0.8), (5, 1.0), (5, 0)])
    def test_invalid_arguments(self, random_walk, horizon, level):
        fitted = arima_candidates.fit_fixed(random_walk, ModelSpec("rw", order=(0, 1, 0)))
        with pytest.raises(InvalidInputError):
            forecast(fitted, horizon, level=level)

    def test_failed_model(self):
        with pytest.raises(InvalidInputError):
            forecast(FittedModel.failed(ModelSpec("f"), "did not converge"), 3)


class TestEvaluateCandidates:

    def test_refits_on_training_split(self, random_walk):
        train, test = train_test_split(random_walk, 0.8)
        specs = [ModelSpec("rw", order=(0, 1, 0)), ModelSpec("ar", order=(1, 1, 0))]

        fitted, forecasts, report = evaluate_candidates(specs, train, test, level=0.8)

        assert [m.name for m in fitted] == ["rw", "ar"]
        assert all(len(m.residuals) == len(train) for m in fitted)
        assert set(forecasts) == {"rw", "ar"}
        assert list(report.index) == ["rw", "ar"]
        assert report["MAPE"].notna().all()
        assert report["MASE"].notna().all()
