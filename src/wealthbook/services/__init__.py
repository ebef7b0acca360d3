"""Service module exports."""

from . import (
    alerts,
    investments,
    ledger,
    notifications,
    price_alerts,
    quotes,
    rebalance,
    sip_scheduler,
    sips,
    summarizer,
    tax_lots,
)

__all__ = [
    "alerts",
    "investments",
    "ledger",
    "notifications",
    "price_alerts",
    "quotes",
    "rebalance",
    "sip_scheduler",
    "sips",
    "summarizer",
    "tax_lots",
]
