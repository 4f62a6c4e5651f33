"""Configuration constants for the Chorearoo engine."""
from __future__ import annotations

import os
from decimal import Decimal
from typing import Dict, Tuple
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

SQLITE_FILE_NAME = os.environ.get("CHOREAROO_SQLITE", "chorearoo.db")
LOG_PATH = os.environ.get("CHOREAROO_LOG_PATH") or None
DEFAULT_WEEKLY_CAP = Decimal(os.environ.get("CHOREAROO_WEEKLY_CAP", "10.00"))
WEEK_START_DAY = os.environ.get("CHOREAROO_WEEK_START", "sunday").strip().lower()
TIMEZONE = ZoneInfo(os.environ.get("CHOREAROO_TIMEZONE", "UTC"))

SPENDING_SHARE = Decimal("0.8")
SAVINGS_SHARE = Decimal("0.1")
GIVING_SHARE = Decimal("0.1")

JAR_NAMES: Tuple[str, ...] = ("spending", "savings", "giving")
JAR_LABELS: Dict[str, str] = {"spending": "Spending", "savings": "Savings", "giving": "Giving"}
DEFAULT_ITEM_IMAGE = "gift.fill"
DEFAULT_AVATAR_COLOR = "#007AFF"
PIN_LENGTH = 4

UNKNOWN_CHORE_LABEL = "Unknown Chore"
BONUS_LABEL = "Bonus"
EXPENSE_LABEL = "Expense"
PURCHASE_LABEL = "Purchase"
LEGACY_EXPENSE_PREFIX = "Expense: "
LEGACY_PURCHASE_PREFIX = "Purchase: "

__all__ = [
    "SQLITE_FILE_NAME",
    "LOG_PATH",
    "DEFAULT_WEEKLY_CAP",
    "WEEK_START_DAY",
    "TIMEZONE",
    "SPENDING_SHARE",
    "SAVINGS_SHARE",
    "GIVING_SHARE",
    "JAR_NAMES",
    "JAR_LABELS",
    "DEFAULT_ITEM_IMAGE",
    "DEFAULT_AVATAR_COLOR",
    "PIN_LENGTH",
    "UNKNOWN_CHORE_LABEL",
    "BONUS_LABEL",
    "EXPENSE_LABEL",
    "PURCHASE_LABEL",
    "LEGACY_EXPENSE_PREFIX",
    "LEGACY_PURCHASE_PREFIX",
]
