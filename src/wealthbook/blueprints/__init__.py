"""Blueprint exports."""

from . import alerts, cron, investments, liabilities, sips

__all__ = [
    "alerts",
    "cron",
    "investments",
    "liabilities",
    "sips",
]
