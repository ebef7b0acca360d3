"""Advisory allocation drift and rebalance suggestions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from ..models.portfolio import Holding

DEFAULT_TARGETS: Mapping[str, float] = {
    "stock": 45.0,
    "etf": 30.0,
    "mutual_fund": 20.0,
    "crypto": 5.0,
}


def normalize_targets(
    targets: Optional[Mapping[str, float]],
    defaults: Mapping[str, float] = DEFAULT_TARGETS,
) -> dict[str, float]:
    """Scale weights to sum to 100; negatives count as zero.

    ``None``, an empty map or an all-zero map fall back to *defaults*.
    """

    raw = dict(targets or {})
    clamped = {key: max(0.0, float(value)) for key, value in raw.items()}
    total = sum(clamped.values())
    if total <= 0:
        clamped = {key: max(0.0, float(value)) for key, value in defaults.items()}
        total = sum(clamped.values()) or 1.0
    return {key: value / total * 100 for key, value in clamped.items()}


def _action(adjustment: float) -> str:
    if adjustment > 0:
        return "buy"
    if adjustment < 0:
        return "reduce"
    return "hold"


@dataclass(frozen=True)
class HoldingSnapshot:
    symbol: str
    name: str
    asset_type: str
    quantity: float
    price: float

    @property
    def value(self) -> float:
        return self.quantity * self.price

    @classmethod
    def from_holding(cls, holding: Holding) -> "HoldingSnapshot":
        return cls(
            symbol=holding.symbol,
            name=holding.name,
            asset_type=holding.asset_type,
            quantity=float(holding.quantity or 0.0),
            price=holding.market_price,
        )


def build_rebalance_plan(
    holdings: Iterable[HoldingSnapshot],
    targets: Optional[Mapping[str, float]] = None,
    defaults: Mapping[str, float] = DEFAULT_TARGETS,
) -> dict:
    """Per-type drift and per-symbol trade suggestions. Produces no trades."""

    snapshots = list(holdings)
    weights = normalize_targets(targets, defaults)
    total_value = sum(h.value for h in snapshots)

    exposure: dict[str, float] = {}
    for h in snapshots:
        exposure[h.asset_type] = exposure.get(h.asset_type, 0.0) + h.value
    for asset_type in exposure:
        weights.setdefault(asset_type, 0.0)

    drift = []
    adjustments: dict[str, float] = {}
    for asset_type, target_weight in weights.items():
        current_value = exposure.get(asset_type, 0.0)
        current_weight = current_value / total_value * 100 if total_value > 0 else 0.0
        target_value = target_weight / 100 * total_value
        adjustment = target_value - current_value
        adjustments[asset_type] = adjustment
        drift.append(
            {
                "asset_type": asset_type,
                "current_value": round(current_value, 2),
                "current_weight": round(current_weight, 2),
                "target_weight": round(target_weight, 2),
                "target_value": round(target_value, 2),
                "drift_percent": round(current_weight - target_weight, 2),
                "adjustment_value": round(adjustment, 2),
                "action": _action(adjustment),
            }
        )

    suggestions = []
    for h in snapshots:
        type_value = exposure.get(h.asset_type, 0.0)
        type_adjustment = adjustments.get(h.asset_type, 0.0)
        share = h.value / type_value if type_value > 0 else 0.0
        adjustment = share * type_adjustment
        units = adjustment / h.price if h.price > 0 else 0.0
        suggestions.append(
            {
                "symbol": h.symbol,
                "name": h.name,
                "asset_type": h.asset_type,
                "current_value": round(h.value, 2),
                "adjustment_value": round(adjustment, 2),
                "suggested_units": round(units, 4),
                "action": _action(adjustment),
            }
        )

    return {
        "targets": {key: round(value, 2) for key, value in weights.items()},
        "total_value": round(total_value, 2),
        "drift": drift,
        "symbol_suggestions": suggestions,
    }
