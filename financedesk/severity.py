import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from .utils import format_display_date, parse_iso

logger = logging.getLogger(__name__)

DUE_SOON_DAYS = 3


class SeverityTier(str, Enum):
    OVERDUE = 'overdue'
    DUE_TODAY = 'due_today'
    DUE_SOON = 'due_soon'
    DUE_LATER = 'due_later'
    NO_DUE_DATE = 'no_due_date'


# (text colour, background) used by the email badges
TIER_COLORS = {
    SeverityTier.OVERDUE: ("#DC2626", "#FEF2F2"),
    SeverityTier.DUE_TODAY: ("#D97706", "#FFFBEB"),
    SeverityTier.DUE_SOON: ("#D97706", "#FFFBEB"),
    SeverityTier.DUE_LATER: ("#059669", "#ECFDF5"),
    SeverityTier.NO_DUE_DATE: ("#6B7280", "#F3F4F6"),
}


@dataclass(frozen=True)
class Severity:
    label: str
    tier: SeverityTier

    @property
    def color(self) -> str:
        return TIER_COLORS[self.tier][0]

    @property
    def bg_color(self) -> str:
        return TIER_COLORS[self.tier][1]

    def to_dict(self) -> dict:
        return {
            'label': self.label,
            'tier': self.tier.value,
            'color': self.color,
            'bg_color': self.bg_color,
        }


def parse_due_date(value) -> Optional[date]:
    """
    Read a due date as a civil date.

    Accepts a date, a datetime, 'YYYY-MM-DD' or a full ISO-8601 string.
    Zoned timestamps are read on the host's local clock. Returns None when
    the value is empty or cannot be parsed.
    """
    if value is None or value == "":
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        dt = parse_iso(value)
    except (TypeError, ValueError):
        logger.warning(f"Unparseable due date: {value!r}")
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.date()


def classify_severity(due_date: Optional[date], today: date) -> Severity:
    if due_date is None:
        return Severity("No Due Date", SeverityTier.NO_DUE_DATE)

    diff_days = (due_date - today).days

    if diff_days < 0:
        return Severity(f"Overdue by {abs(diff_days)}d", SeverityTier.OVERDUE)
    if diff_days == 0:
        return Severity("Due Today", SeverityTier.DUE_TODAY)
    if diff_days <= DUE_SOON_DAYS:
        return Severity(f"Due in {diff_days}d", SeverityTier.DUE_SOON)
    return Severity(f"Due {format_display_date(due_date)}", SeverityTier.DUE_LATER)


def due_severity(value, today: Optional[date] = None) -> Severity:
    # NOTE: `today` defaults to the host's local date, not the IST day used
    # by compute_day_window; the two differ near midnight off IST hosts.
    return classify_severity(parse_due_date(value), today or date.today())
