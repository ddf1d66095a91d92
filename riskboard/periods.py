"""Calendar quarter labels and quarter-end cutoffs."""
from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timezone
from typing import NamedTuple

_PERIOD_RE = re.compile(r"^(\d{4}) Q([1-4])$")


class QuarterEnd(NamedTuple):
    period: str
    as_of: date


def quarter_label(ts: date | datetime) -> str:
    """Return the ``"YYYY Qn"`` label of the calendar quarter containing ts."""
    quarter = (ts.month - 1) // 3 + 1
    return f"{ts.year} Q{quarter}"


def parse_period(label: str) -> tuple[int, int]:
    """Split a period label into (year, quarter)."""
    match = _PERIOD_RE.match(label)
    if match is None:
        raise ValueError(f"Invalid period label {label!r}, expected 'YYYY Qn'")
    return int(match.group(1)), int(match.group(2))


def quarter_end(year: int, quarter: int) -> date:
    month = quarter * 3
    return date(year, month, calendar.monthrange(year, month)[1])


def previous_period(label: str) -> str:
    year, quarter = parse_period(label)
    if quarter == 1:
        return f"{year - 1} Q4"
    return f"{year} Q{quarter - 1}"


def recent_quarter_ends(n: int, today: date | None = None) -> list[QuarterEnd]:
    """The n most recent quarters (current one included), oldest first."""
    if n < 1:
        raise ValueError(f"Quarter count must be at least 1, got {n}")
    if today is None:
        today = datetime.now(tz=timezone.utc).date()

    label = quarter_label(today)
    out: list[QuarterEnd] = []
    for _ in range(n):
        out.append(QuarterEnd(label, quarter_end(*parse_period(label))))
        label = previous_period(label)
    out.reverse()
    return out
