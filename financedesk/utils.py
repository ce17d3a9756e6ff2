from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

IST = timezone(timedelta(hours=5, minutes=30), "IST")

CURRENCY_SYMBOLS = {
    'INR': '₹',
    'USD': '$',
    'EUR': '€',
    'GBP': '£',
}


@dataclass(frozen=True)
class DayWindow:
    """One IST calendar day expressed as an inclusive UTC range."""

    civil_date: str
    window_start: datetime
    window_end: datetime

    @property
    def start_iso(self):
        return to_utc_iso(self.window_start)

    @property
    def end_iso(self):
        return to_utc_iso(self.window_end)

    def contains(self, instant):
        return self.window_start <= _as_aware(instant) <= self.window_end


def _as_aware(dt):
    # naive datetimes are UTC instants
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def get_ist_now():
    return datetime.now(IST)


# first IST day whose UTC start is representable
_FIRST_DAY = date.min + timedelta(days=1)


def compute_day_window(now=None):
    """
    Return the UTC start/end instants of the IST calendar day containing `now`.

    Example (now = 2025-02-24T10:00:00Z, i.e. 15:30 IST):
        civil_date   -> "2025-02-24"
        window_start -> 2025-02-23T18:30:00.000Z
        window_end   -> 2025-02-24T18:29:59.999Z

    Instants whose IST day lies outside 0001-01-02..9999-12-31 get the window
    of the nearest of those two days.
    """
    now = _as_aware(now or get_ist_now())
    try:
        day = now.astimezone(IST).date()
    except OverflowError:
        day = date.max
    day = max(day, _FIRST_DAY)

    start = datetime.combine(day, time.min, tzinfo=IST)
    end = datetime.combine(day, time(23, 59, 59, 999000), tzinfo=IST)

    return DayWindow(
        civil_date=day.isoformat(),
        window_start=start.astimezone(timezone.utc),
        window_end=end.astimezone(timezone.utc),
    )


def to_ist_date_str(dt):
    return _as_aware(dt).astimezone(IST).date().isoformat()


def to_utc_iso(dt):
    dt = _as_aware(dt).astimezone(timezone.utc)
    return dt.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_iso(value):
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    s = str(value).strip()
    if s.endswith('Z'):
        s = s[:-1] + '+00:00'
    return datetime.fromisoformat(s)


def format_datetime_ist(dt_str):
    if not dt_str:
        return "No due date"
    try:
        dt = _as_aware(parse_iso(dt_str))
        return dt.astimezone(IST).strftime("%d/%m/%Y %H:%M")
    except ValueError:
        return dt_str


def format_display_date(value):
    if not value:
        return "—"
    try:
        d = value if isinstance(value, date) and not isinstance(value, datetime) else parse_iso(value).date()
    except ValueError:
        return "—"
    return f"{d.day:02d} {d.strftime('%b')} {d.year}"


def _group_indian(digits: str) -> str:
    # 1234567 -> 12,34,567
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups) + "," + tail


def format_currency(amount, currency: str = "INR") -> str:
    currency = (currency or "INR").upper()
    value = float(amount or 0)
    sign = "-" if value < 0 else ""
    whole, frac = f"{abs(value):.2f}".split(".")
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    return f"{sign}{symbol}{_group_indian(whole)}.{frac}"


def millify(amount, currency: str = "INR") -> str:
    value = float(amount or 0)
    symbol = CURRENCY_SYMBOLS.get((currency or "INR").upper(), "")
    sign = "-" if value < 0 else ""
    value = abs(value)
    for size, suffix in ((1e7, "Cr"), (1e5, "L"), (1e3, "K")):
        if value >= size:
            short = f"{value / size:.1f}".rstrip("0").rstrip(".")
            return f"{sign}{symbol}{short}{suffix}"
    return f"{sign}{symbol}{value:.0f}"
