"""Tests for the forecast advisor."""

import pytest

from core.forecast.advisor import (
    exp_smooth_predict,
    forecast_for_product,
    linear_regression_predict,
    make_forecast_suggestion,
)
from core.history import PriceObservation
from core.listings import Marketplace
from datetime import datetime


class TestPredictors:
    def test_linear_regression(self):
        assert linear_regression_predict([100, 95, 90]) == pytest.approx(85.0)

    def test_linear_regression_single_point(self):
        assert linear_regression_predict([42.0]) == 42.0

    def test_exponential_smoothing(self):
        assert exp_smooth_predict([100, 95, 90]) == pytest.approx(96.5625)

    def test_empty_history(self):
        assert linear_regression_predict([]) is None
        assert exp_smooth_predict([]) is None


class TestMakeForecastSuggestion:
    def test_our_price_already_below_target_is_kept(self):
        suggestion = make_forecast_suggestion(50, [100, 95, 90])
        assert suggestion.suggested_price == 50
        assert suggestion.predicted_competitor_price == 90.78
        assert suggestion.trend_percent == 0.9

    def test_price_above_target_is_lowered(self):
        suggestion = make_forecast_suggestion(120, [100, 95, 90])
        assert suggestion.suggested_price == 95.32
        assert "90.78" in suggestion.explanation
        assert "95.32" in suggestion.explanation
        assert "0.9%" in suggestion.explanation

    def test_flat_history(self):
        suggestion = make_forecast_suggestion(200, [100])
        assert suggestion.predicted_competitor_price == 100
        assert suggestion.trend_percent == 0
        assert suggestion.suggested_price == pytest.approx(105.0)

    def test_custom_target_variance(self):
        suggestion = make_forecast_suggestion(200, [100], target_variance=0.1)
        assert suggestion.suggested_price == pytest.approx(110.0)
        assert "within 10% of forecast" in suggestion.explanation

    def test_no_history(self):
        suggestion = make_forecast_suggestion(100, [])
        assert suggestion.suggested_price is None
        assert suggestion.predicted_competitor_price is None
        assert suggestion.trend_percent is None
        assert suggestion.explanation == "No competitor history available to forecast a suggested price."


class TestForecastForProduct:
    def test_reads_history_oldest_first(self, store, make_listing):
        competitor = store.upsert_competitor(Marketplace.WATSONS)
        product_id = store.upsert_product(
            make_listing("Sildenafil 50mg Tablet", 100, Marketplace.WATSONS), competitor.id
        )
        for day, price in ((1, 100), (2, 95), (3, 90)):
            store.append_or_update_price_point(
                product_id, PriceObservation(price=price, scraped_at=datetime(2026, 1, day, 9))
            )

        suggestion = forecast_for_product(store, product_id, 120)
        assert suggestion.predicted_competitor_price == 90.78
        assert suggestion.suggested_price == 95.32

    def test_unknown_product_has_no_history(self, store):
        suggestion = forecast_for_product(store, "missing", 100)
        assert suggestion.suggested_price is None
