from __future__ import annotations

import math

from app.core.forecasting.domain import RiskLevel


# One-sided 95% service level under a Gaussian daily-demand model. Applied to
# daily sigma rather than lead-time demand variance; consumers rely on the value.
SERVICE_LEVEL_Z = 1.65
LOW_STOCK_THRESHOLD = 5


def compute_safety_stock(sigma: float) -> int:
    """Safety buffer in units, never below one."""

    if not math.isfinite(sigma) or sigma < 0:
        sigma = 0.0
    return max(1, math.ceil(SERVICE_LEVEL_Z * sigma))


def compute_recommended_minimum(forecast_total: float, safety_stock: int) -> int:
    return max(0, math.ceil(forecast_total + safety_stock))


def compute_order_quantity(recommended_minimum: int, available: int) -> int:
    return max(0, recommended_minimum - available)


def classify_risk(available: int, order_quantity: int) -> RiskLevel:
    """Risk bucket for a product; the first matching rule wins."""

    if available <= 0:
        return RiskLevel.OUT
    if available <= LOW_STOCK_THRESHOLD:
        return RiskLevel.LOW
    if order_quantity > 0:
        return RiskLevel.REORDER
    return RiskLevel.OK
