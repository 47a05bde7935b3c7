# Simple forecasting helpers for pricing suggestions.
#
# This is a heuristic advisor, not a validated statistical model: no
# confidence intervals, no seasonality and no outlier rejection.

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from core.normalization.units import round_half_up

SMOOTHING_ALPHA = 0.25


@dataclass
class ForecastSuggestion:
    suggested_price: Optional[float]
    predicted_competitor_price: Optional[float]
    trend_percent: Optional[float]
    explanation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suggested_price": self.suggested_price,
            "predicted_competitor_price": self.predicted_competitor_price,
            "trend_percent": self.trend_percent,
            "explanation": self.explanation,
        }


def linear_regression_predict(points: Sequence[float]) -> Optional[float]:
    """Least-squares line through (index, price), extrapolated one step ahead."""
    if not points:
        return None
    n = len(points)
    if n == 1:
        return points[0]

    mean_x = (n - 1) / 2
    mean_y = sum(points) / n
    num = 0.0
    den = 0.0
    for x, y in enumerate(points):
        num += (x - mean_x) * (y - mean_y)
        den += (x - mean_x) * (x - mean_x)
    slope = num / den if den else 0.0
    intercept = mean_y - slope * mean_x
    return intercept + slope * n


def exp_smooth_predict(points: Sequence[float], alpha: float = SMOOTHING_ALPHA) -> Optional[float]:
    """Simple exponential smoothing; the last smoothed value is the prediction."""
    if not points:
        return None
    smoothed = points[0]
    for value in points[1:]:
        smoothed = alpha * value + (1 - alpha) * smoothed
    return smoothed


def make_forecast_suggestion(
    our_price: float,
    competitor_history: Optional[Sequence[float]],
    target_variance: float = 0.05,
) -> ForecastSuggestion:
    """Suggest a price staying within ``target_variance`` of the competitor's forecast.

    ``competitor_history`` is ordered oldest to newest. The suggestion never
    raises a price that is already at or below the computed target.
    """
    if not competitor_history:
        return ForecastSuggestion(
            suggested_price=None,
            predicted_competitor_price=None,
            trend_percent=None,
            explanation="No competitor history available to forecast a suggested price.",
        )

    history: List[float] = list(competitor_history)
    last = history[-1]
    linear = linear_regression_predict(history)
    smoothed = exp_smooth_predict(history, SMOOTHING_ALPHA)
    if linear is None and smoothed is None:
        predicted = last
    elif linear is None:
        predicted = smoothed
    elif smoothed is None:
        predicted = linear
    else:
        predicted = (linear + smoothed) / 2

    trend_percent = round_half_up((predicted - last) / last * 100, 1) if last else None

    suggested = round_half_up(predicted * (1 + target_variance), 2)
    if our_price <= suggested:
        suggested = our_price

    trend_text = f"{trend_percent:.1f}%" if trend_percent is not None else "N/A"
    explanation = (
        f"Forecast: competitor expected {predicted:.2f} (trend {trend_text}). "
        f"Suggest setting price to {suggested:.2f} to stay within "
        f"{round(target_variance * 100)}% of forecast."
    )

    return ForecastSuggestion(
        suggested_price=suggested,
        predicted_competitor_price=round_half_up(predicted, 2),
        trend_percent=trend_percent,
        explanation=explanation,
    )


def forecast_for_product(
    store,
    product_id: str,
    our_price: float,
    target_variance: float = 0.05,
    limit: int = 30,
) -> ForecastSuggestion:
    """Forecast from a product's stored history (synthetic backfill points included)."""
    points = store.get_history(product_id, limit=limit)
    # The store returns newest first
    history = [point.price for point in reversed(points)]
    return make_forecast_suggestion(our_price, history, target_variance)
