"""Value parsers for spreadsheet cells.

All parsers are total: bad input degrades to a typed default (0.0, None,
PaymentType.OTHER) instead of raising, so one malformed cell never blocks the
rest of a fetch.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Optional, Tuple

from .models import PaymentType

_CURRENCY_CHARS = re.compile(r"[^\d.,-]")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:\s.*)?$")

# Ordered keyword groups: first group with a substring hit wins.
PAYMENT_KEYWORDS: Tuple[Tuple[PaymentType, Tuple[str, ...]], ...] = (
    (PaymentType.CIF, ("CIF",)),
    (PaymentType.FOB, ("FOB",)),
    (PaymentType.SENDER, ("REMETENTE", "REM", "EMITENTE", "EXPEDIDOR")),
    (PaymentType.DEST, ("DEST", "DST", "RECEBEDOR")),
)


def parse_currency(value: Any) -> float:
    """Parse a money amount written in either decimal convention.

    "1.234,56" and "1,234.56" both give 1234.56: whichever of "." and ","
    appears last is the decimal separator. A lone "," is decimal; repeated
    "." with no "," are thousands separators.

    Args:
        value: Number or text cell (may carry currency symbols)

    Returns:
        Parsed amount, 0.0 when empty or unparseable
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    text = _CURRENCY_CHARS.sub("", str(value).strip())
    if not text or text == "-":
        return 0.0

    last_dot = text.rfind(".")
    last_comma = text.rfind(",")

    if last_dot >= 0 and last_comma >= 0:
        if last_comma > last_dot:
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif last_comma >= 0:
        head, _, tail = text.rpartition(",")
        text = head.replace(",", "") + "." + tail
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        number = float(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_date(value: Any) -> Optional[date]:
    """Parse ISO (YYYY-MM-DD[THH:mm:ss...]) or DD/MM/YYYY into a calendar date.

    The day written in the source string is the day returned; no timezone
    conversion is applied, so a date-only ISO string never slides to the
    previous day for viewers west of UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
    else:
        match = _SLASH_DATE.match(text)
        if not match:
            return None
        day, month, year = (int(part) for part in match.groups())

    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_date(value: Any) -> Optional[str]:
    """Normalize a date cell to its ISO storage form (YYYY-MM-DD)."""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None


def classify_payment_type(raw: Any) -> PaymentType:
    """Classify a free-text payment condition into a PaymentType."""
    if raw is None:
        return PaymentType.OTHER
    text = str(raw).upper().strip()
    if not text:
        return PaymentType.OTHER

    for payment_type, keywords in PAYMENT_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return payment_type
    return PaymentType.OTHER
