"""Structured extraction of posting details from message text."""

from __future__ import annotations

import re
from typing import Optional

from core.models import Budget

TITLE_CHARS = 100
DEFAULT_TITLE = "Posting from a Telegram channel"
DEFAULT_CURRENCY = "RUB"

_BUDGET_RE = re.compile(
    r"(?:бюджет|budget|цена|стоимость|оплата)[\s:]*"
    r"(\d+(?:\s*[-–—]\s*\d+)?)\s*([₽$€]|руб|дол|евро)",
    re.IGNORECASE,
)
_RANGE_SPLIT_RE = re.compile(r"[-–—]")


def extract_title(text: str) -> str:
    """First non-blank line, clipped to a short headline."""

    for line in text.splitlines():
        if line.strip():
            return line.strip()[:TITLE_CHARS]
    return DEFAULT_TITLE


def _currency(raw: str) -> str:
    raw = raw.lower()
    if "$" in raw or "дол" in raw:
        return "USD"
    if "€" in raw or "евро" in raw:
        return "EUR"
    return DEFAULT_CURRENCY


def _to_int(value: str) -> Optional[int]:
    digits = re.sub(r"\s", "", value)
    return int(digits) if digits.isdigit() and int(digits) > 0 else None


def extract_budget(text: str) -> Optional[Budget]:
    """Parse ``Бюджет: 5000-10000 руб`` style mentions.

    Returns None when the text names no budget with a currency.
    """

    match = _BUDGET_RE.search(text)
    if not match:
        return None
    amount, currency = match.group(1), match.group(2)
    if _RANGE_SPLIT_RE.search(amount):
        low, high = _RANGE_SPLIT_RE.split(amount, maxsplit=1)
        minimum, maximum = _to_int(low), _to_int(high)
    else:
        minimum = maximum = _to_int(amount)
    if minimum is None and maximum is None:
        return None
    return Budget(minimum=minimum, maximum=maximum, currency=_currency(currency))
