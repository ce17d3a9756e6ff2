import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional

import pandas as pd

from .payments import OPEN_STATUSES
from .utils import IST, format_currency, get_ist_now, millify, to_ist_date_str

logger = logging.getLogger(__name__)


class Period(str, Enum):
    TODAY = 'today'
    THIS_WEEK = 'this_week'
    THIS_MONTH = 'this_month'
    THIS_QUARTER = 'this_quarter'
    THIS_YEAR = 'this_year'
    LAST_WEEK = 'last_week'
    LAST_MONTH = 'last_month'
    LAST_QUARTER = 'last_quarter'
    LAST_YEAR = 'last_year'
    LAST_7_DAYS = 'last_7_days'
    LAST_30_DAYS = 'last_30_days'
    LAST_90_DAYS = 'last_90_days'
    LAST_12_MONTHS = 'last_12_months'
    CUSTOM = 'custom'


@dataclass(frozen=True)
class DateRange:
    from_: date
    to: date

    @property
    def days(self) -> int:
        return (self.to - self.from_).days + 1

    def to_dict(self) -> dict:
        return {'from': self.from_.isoformat(), 'to': self.to.isoformat()}


@dataclass
class SummaryStats:
    total_income: float = 0.0
    total_expense: float = 0.0
    net: float = 0.0
    txn_count: int = 0
    avg_income: float = 0.0
    avg_expense: float = 0.0
    largest_income: float = 0.0
    largest_expense: float = 0.0
    paid_count: int = 0
    pending_count: int = 0
    overdue_count: int = 0
    cancelled_count: int = 0
    partially_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def _today_ist(now=None) -> date:
    if now is None:
        return get_ist_now().date()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(IST).date()


def _start_of_week(d: date) -> date:
    return d - timedelta(days=d.weekday())


def _start_of_quarter(d: date) -> date:
    return date(d.year, ((d.month - 1) // 3) * 3 + 1, 1)


def _add_months(d: date, months: int) -> date:
    idx = d.year * 12 + (d.month - 1) + months
    return date(idx // 12, idx % 12 + 1, 1)


def resolve_date_range(period, custom: Optional[DateRange] = None, now=None) -> DateRange:
    today = _today_ist(now)
    try:
        period = Period(period)
    except ValueError:
        logger.warning(f"Unknown period {period!r}, using this_month")
        return DateRange(today.replace(day=1), today)

    if period == Period.TODAY:
        return DateRange(today, today)
    if period == Period.THIS_WEEK:
        return DateRange(_start_of_week(today), today)
    if period == Period.THIS_MONTH:
        return DateRange(today.replace(day=1), today)
    if period == Period.THIS_QUARTER:
        return DateRange(_start_of_quarter(today), today)
    if period == Period.THIS_YEAR:
        return DateRange(date(today.year, 1, 1), today)
    if period == Period.LAST_WEEK:
        sow = _start_of_week(today)
        return DateRange(sow - timedelta(days=7), sow - timedelta(days=1))
    if period == Period.LAST_MONTH:
        end = today.replace(day=1) - timedelta(days=1)
        return DateRange(end.replace(day=1), end)
    if period == Period.LAST_QUARTER:
        end = _start_of_quarter(today) - timedelta(days=1)
        return DateRange(_start_of_quarter(end), end)
    if period == Period.LAST_YEAR:
        return DateRange(date(today.year - 1, 1, 1), date(today.year - 1, 12, 31))
    if period == Period.LAST_7_DAYS:
        return DateRange(today - timedelta(days=6), today)
    if period == Period.LAST_30_DAYS:
        return DateRange(today - timedelta(days=29), today)
    if period == Period.LAST_90_DAYS:
        return DateRange(today - timedelta(days=89), today)
    if period == Period.LAST_12_MONTHS:
        return DateRange(_add_months(today, -11), today)
    if period == Period.CUSTOM:
        if custom is None:
            raise ValueError("custom period requires a DateRange")
        return custom
    return DateRange(today.replace(day=1), today)


def previous_period(rng: DateRange) -> DateRange:
    """Same-length window ending the day before `rng` starts."""
    p_to = rng.from_ - timedelta(days=1)
    return DateRange(p_to - timedelta(days=rng.days - 1), p_to)


def pct_change(curr, prev) -> Optional[float]:
    if prev == 0:
        return None
    return round((curr - prev) / prev * 100, 2)


def summarize(rows: List[dict]) -> SummaryStats:
    stats = SummaryStats()
    income = [float(r.get('amount') or 0) for r in rows if r.get('type') == 'income']
    expense = [float(r.get('amount') or 0) for r in rows if r.get('type') == 'expense']

    stats.txn_count = len(rows)
    stats.total_income = sum(income)
    stats.total_expense = sum(expense)
    stats.largest_income = max(income, default=0.0)
    stats.largest_expense = max(expense, default=0.0)
    stats.avg_income = stats.total_income / len(income) if income else 0.0
    stats.avg_expense = stats.total_expense / len(expense) if expense else 0.0
    stats.net = stats.total_income - stats.total_expense

    for r in rows:
        status = r.get('payment_status')
        if status == 'paid':
            stats.paid_count += 1
        elif status == 'pending':
            stats.pending_count += 1
        elif status == 'overdue':
            stats.overdue_count += 1
        elif status == 'cancelled':
            stats.cancelled_count += 1
        elif status == 'partially_paid':
            stats.partially_count += 1
    return stats


AMOUNT_FIELDS = ('total_income', 'total_expense', 'net', 'avg_income', 'avg_expense',
                 'largest_income', 'largest_expense')


def display_amounts(stats: SummaryStats, compact: bool = False, currency: str = "INR") -> dict:
    fmt = millify if compact else format_currency
    return {name: fmt(getattr(stats, name), currency) for name in AMOUNT_FIELDS}


TRANSACTION_COLUMNS = "id, type, amount, currency, payment_status, payment_method, transaction_date, due_date, contact_id"


def fetch_range(supabase, rng: DateRange, columns: str = TRANSACTION_COLUMNS) -> List[dict]:
    resp = (
        supabase.table('transactions')
        .select(columns)
        .gte('transaction_date', rng.from_.isoformat())
        .lte('transaction_date', rng.to.isoformat())
        .neq('payment_status', 'cancelled')
        .execute()
    )
    return resp.data or []


def get_summary_stats(supabase, period=Period.THIS_MONTH, custom=None, now=None) -> SummaryStats:
    rng = resolve_date_range(period, custom, now)
    return summarize(fetch_range(supabase, rng))


def get_comparison(supabase, period=Period.THIS_MONTH, custom=None, now=None) -> dict:
    rng = resolve_date_range(period, custom, now)
    prev = previous_period(rng)
    current = summarize(fetch_range(supabase, rng))
    previous = summarize(fetch_range(supabase, prev))

    return {
        'range': rng.to_dict(),
        'previous_range': prev.to_dict(),
        'current': current.to_dict(),
        'previous': previous.to_dict(),
        'changes': {
            'income_pct': pct_change(current.total_income, previous.total_income),
            'expense_pct': pct_change(current.total_expense, previous.total_expense),
            'net_pct': pct_change(current.net, previous.net),
            'count_pct': pct_change(current.txn_count, previous.txn_count),
        },
    }


def granularity_for(rng: DateRange) -> str:
    span = (rng.to - rng.from_).days
    if span <= 31:
        return "day"
    if span <= 182:
        return "week"
    return "month"


def _frame(rows: List[dict]) -> pd.DataFrame:
    """Transaction rows with numeric amount and per-type amount/count columns."""
    df = pd.DataFrame(rows)
    for col in ('type', 'amount', 'transaction_date'):
        if col not in df:
            df[col] = None
    df['amount'] = pd.to_numeric(df['amount'], errors='coerce').fillna(0.0)
    is_income = df['type'] == 'income'
    is_expense = df['type'] == 'expense'
    df['income'] = df['amount'].where(is_income, 0.0)
    df['expense'] = df['amount'].where(is_expense, 0.0)
    df['income_count'] = is_income.astype(int)
    df['expense_count'] = is_expense.astype(int)
    return df


def _share(part, total) -> float:
    return round(float(part) / float(total) * 100, 2) if total > 0 else 0.0


def build_time_series(rows: List[dict], granularity: str) -> List[dict]:
    if not rows:
        return []

    df = _frame(rows)
    df['Date'] = pd.to_datetime(df['transaction_date'].str[:10])

    if granularity == "month":
        df['key'] = df['Date'].dt.strftime('%Y-%m')
    elif granularity == "week":
        df['key'] = (df['Date'] - pd.to_timedelta(df['Date'].dt.weekday, unit='D')).dt.strftime('%Y-%m-%d')
    else:
        df['key'] = df['Date'].dt.strftime('%Y-%m-%d')

    grouped = df.groupby('key').agg(income=('income', 'sum'), expense=('expense', 'sum'), count=('amount', 'size'))
    grouped = grouped.sort_index()

    return [
        {
            'date': key,
            'income': float(row['income']),
            'expense': float(row['expense']),
            'net': float(row['income'] - row['expense']),
            'count': int(row['count']),
        }
        for key, row in grouped.iterrows()
    ]


def get_time_series(supabase, period=Period.THIS_MONTH, custom=None, granularity=None, now=None) -> dict:
    rng = resolve_date_range(period, custom, now)
    gran = granularity or granularity_for(rng)
    return {
        'series': build_time_series(fetch_range(supabase, rng), gran),
        'granularity': gran,
        'range': rng.to_dict(),
    }


def build_cash_flow(rows: List[dict]) -> List[dict]:
    """Daily income/expense with the running net across the range."""
    if not rows:
        return []

    df = _frame(rows)
    df['date'] = df['transaction_date'].str[:10]
    daily = df.groupby('date')[['income', 'expense']].sum().sort_index()
    daily['cumulative_net'] = (daily['income'] - daily['expense']).cumsum()

    return [
        {
            'date': day,
            'income': float(row['income']),
            'expense': float(row['expense']),
            'cumulative_net': float(row['cumulative_net']),
        }
        for day, row in daily.iterrows()
    ]


def get_cash_flow(supabase, period=Period.THIS_MONTH, custom=None, now=None) -> List[dict]:
    rng = resolve_date_range(period, custom, now)
    return build_cash_flow(fetch_range(supabase, rng, "type, amount, transaction_date"))


UNTAGGED = '__untagged__'


def build_tag_breakdown(rows: List[dict]) -> List[dict]:
    """
    Income/expense per tag, largest expense first.

    A transaction with several tags counts towards each of them; one with no
    tags goes to the "Untagged" bucket. Percentages are against the range's
    totals, so they can add up to more than 100 when tags overlap.
    """
    if not rows:
        return []

    records, meta = [], {}
    for r in rows:
        tags = [tt['tag'] for tt in (r.get('transaction_tags') or []) if tt and tt.get('tag')]
        if not tags:
            meta.setdefault(UNTAGGED, {'tag_id': None, 'tag_name': "Untagged", 'tag_color': None})
            records.append({'key': UNTAGGED, 'type': r.get('type'), 'amount': r.get('amount')})
        for tag in tags:
            key = str(tag['id'])
            meta.setdefault(key, {'tag_id': tag['id'], 'tag_name': tag.get('name'), 'tag_color': tag.get('color')})
            records.append({'key': key, 'type': r.get('type'), 'amount': r.get('amount')})

    totals = _frame(rows)
    total_income, total_expense = totals['income'].sum(), totals['expense'].sum()

    grouped = (
        _frame(records)
        .groupby('key', sort=False)
        .agg(income=('income', 'sum'), expense=('expense', 'sum'), count=('amount', 'size'))
        .sort_values('expense', ascending=False, kind='stable')
    )

    return [
        {
            **meta[key],
            'income': float(g['income']),
            'expense': float(g['expense']),
            'net': float(g['income'] - g['expense']),
            'count': int(g['count']),
            'pct_income': _share(g['income'], total_income),
            'pct_expense': _share(g['expense'], total_expense),
        }
        for key, g in grouped.iterrows()
    ]


def get_tag_breakdown(supabase, period=Period.THIS_MONTH, custom=None, now=None) -> List[dict]:
    rng = resolve_date_range(period, custom, now)
    return build_tag_breakdown(fetch_range(supabase, rng, "type, amount, transaction_tags(tag:tags(id, name, color))"))


def build_contact_stats(rows: List[dict], limit: int = 10) -> List[dict]:
    records, meta = [], {}
    for r in rows:
        c = r.get('contact')
        if not c:
            continue
        key = str(c['id'])
        meta.setdefault(key, {
            'contact_id': c['id'],
            'contact_name': c.get('name'),
            'contact_type': c.get('type'),
            'company': c.get('company'),
        })
        records.append({'key': key, 'type': r.get('type'), 'amount': r.get('amount'),
                        'transaction_date': r.get('transaction_date') or ''})
    if not records:
        return []

    grouped = _frame(records).groupby('key', sort=False).agg(
        total_income=('income', 'sum'),
        total_expense=('expense', 'sum'),
        txn_count=('amount', 'size'),
        last_txn_date=('transaction_date', 'max'),
    )
    grouped['volume'] = grouped['total_income'] + grouped['total_expense']
    grouped = grouped.sort_values('volume', ascending=False, kind='stable').head(limit)

    return [
        {
            **meta[key],
            'total_income': float(g['total_income']),
            'total_expense': float(g['total_expense']),
            'net': float(g['total_income'] - g['total_expense']),
            'txn_count': int(g['txn_count']),
            'last_txn_date': g['last_txn_date'] or None,
        }
        for key, g in grouped.iterrows()
    ]


def get_contact_stats(supabase, period=Period.THIS_MONTH, custom=None, limit: int = 10, now=None) -> List[dict]:
    rng = resolve_date_range(period, custom, now)
    resp = (
        supabase.table('transactions')
        .select("type, amount, transaction_date, contact:contacts(id, name, type, company)")
        .gte('transaction_date', rng.from_.isoformat())
        .lte('transaction_date', rng.to.isoformat())
        .neq('payment_status', 'cancelled')
        .not_.is_('contact_id', 'null')
        .execute()
    )
    return build_contact_stats(resp.data or [], limit)


def build_payment_method_stats(rows: List[dict]) -> List[dict]:
    if not rows:
        return []

    df = _frame(rows)
    method = df['payment_method'] if 'payment_method' in df else pd.Series(None, index=df.index, dtype=object)
    df['method'] = method.fillna('unspecified')
    grouped = df.groupby('method', sort=False).agg(
        income=('income', 'sum'),
        expense=('expense', 'sum'),
        income_count=('income_count', 'sum'),
        expense_count=('expense_count', 'sum'),
    )
    grouped['volume'] = grouped['income'] + grouped['expense']
    grouped = grouped.sort_values('volume', ascending=False, kind='stable')
    total_income, total_expense = df['income'].sum(), df['expense'].sum()

    return [
        {
            'method': method_key,
            'income': float(g['income']),
            'expense': float(g['expense']),
            'net': float(g['income'] - g['expense']),
            'income_count': int(g['income_count']),
            'expense_count': int(g['expense_count']),
            'total_count': int(g['income_count'] + g['expense_count']),
            'pct_income': _share(g['income'], total_income),
            'pct_expense': _share(g['expense'], total_expense),
        }
        for method_key, g in grouped.iterrows()
    ]


def get_payment_method_stats(supabase, period=Period.THIS_MONTH, custom=None, now=None) -> List[dict]:
    rng = resolve_date_range(period, custom, now)
    return build_payment_method_stats(fetch_range(supabase, rng, "type, payment_method, amount"))


DAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
_DOW_COLUMNS = ['income', 'expense', 'income_count', 'expense_count', 'total_count']


def build_day_of_week_stats(rows: List[dict]) -> List[dict]:
    """Seven buckets, 0 = Sunday, including days with no activity."""
    if rows:
        df = _frame(rows)
        df['day'] = (pd.to_datetime(df['transaction_date'].str[:10]).dt.weekday + 1) % 7
        grouped = df.groupby('day').agg(
            income=('income', 'sum'),
            expense=('expense', 'sum'),
            income_count=('income_count', 'sum'),
            expense_count=('expense_count', 'sum'),
            total_count=('amount', 'size'),
        )
    else:
        grouped = pd.DataFrame(columns=_DOW_COLUMNS)
    grouped = grouped.reindex(range(7), fill_value=0)

    return [
        {
            'day': int(day),
            'label': DAY_LABELS[int(day)],
            'income': float(b['income']),
            'expense': float(b['expense']),
            'net': float(b['income'] - b['expense']),
            'income_count': int(b['income_count']),
            'expense_count': int(b['expense_count']),
            'total_count': int(b['total_count']),
        }
        for day, b in grouped.iterrows()
    ]


def get_day_of_week_stats(supabase, period=Period.THIS_MONTH, custom=None, now=None) -> List[dict]:
    rng = resolve_date_range(period, custom, now)
    return build_day_of_week_stats(fetch_range(supabase, rng, "type, amount, transaction_date"))


def build_activity_heatmap(rows: List[dict]) -> List[dict]:
    if not rows:
        return []

    df = _frame(rows)
    df['date'] = df['transaction_date'].str[:10]
    grouped = df.groupby('date').agg(amount=('amount', 'sum'), count=('amount', 'size')).sort_index()
    return [{'date': day, 'amount': float(p['amount']), 'count': int(p['count'])} for day, p in grouped.iterrows()]


def get_activity_heatmap(supabase, period=Period.THIS_MONTH, custom=None, now=None) -> List[dict]:
    rng = resolve_date_range(period, custom, now)
    return build_activity_heatmap(fetch_range(supabase, rng, "amount, transaction_date"))


def get_multi_period_comparison(supabase, periods: List[dict], now=None) -> List[dict]:
    """`periods` items are {"label", "period", "custom"?}; one summary row per item."""
    out = []
    for p in periods:
        stats = get_summary_stats(supabase, p['period'], p.get('custom'), now)
        out.append({
            'label': p['label'],
            'income': stats.total_income,
            'expense': stats.total_expense,
            'net': stats.net,
            'count': stats.txn_count,
        })
    return out


def income_expense_ratio(series: List[dict]) -> List[dict]:
    # 1.0 is break-even; 0 when nothing was spent
    return [
        {
            'date': p['date'],
            'income': p['income'],
            'expense': p['expense'],
            'ratio': round(p['income'] / p['expense'], 2) if p['expense'] > 0 else 0.0,
        }
        for p in series
    ]


def get_income_expense_ratio(supabase, period=Period.THIS_MONTH, custom=None, now=None) -> List[dict]:
    return income_expense_ratio(get_time_series(supabase, period, custom, now=now)['series'])


def savings_rate(series: List[dict]) -> List[dict]:
    return [
        {
            'date': p['date'],
            'income': p['income'],
            'expense': p['expense'],
            'savings': p['net'],
            'savings_rate': _share(p['net'], p['income']),
        }
        for p in series
    ]


def get_savings_rate(supabase, period=Period.THIS_MONTH, custom=None, now=None) -> List[dict]:
    return savings_rate(get_time_series(supabase, period, custom, granularity="month", now=now)['series'])


def get_top_transactions(supabase, period=Period.THIS_MONTH, n: int = 5, kind: Optional[str] = None,
                         custom=None, now=None) -> List[dict]:
    rng = resolve_date_range(period, custom, now)
    query = (
        supabase.table('transactions')
        .select("id, title, amount, type, transaction_date, contact:contacts(name)")
        .gte('transaction_date', rng.from_.isoformat())
        .lte('transaction_date', rng.to.isoformat())
        .neq('payment_status', 'cancelled')
        .order('amount', desc=True)
        .limit(n)
    )
    if kind:
        query = query.eq('type', kind)
    resp = query.execute()

    return [
        {
            'id': r.get('id'),
            'title': r.get('title'),
            'amount': float(r.get('amount') or 0),
            'type': r.get('type'),
            'date': r.get('transaction_date'),
            'contact_name': (r.get('contact') or {}).get('name'),
        }
        for r in resp.data or []
    ]


def pending_overview(rows: List[dict], now=None) -> dict:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    in7 = to_ist_date_str(now + timedelta(days=7))
    in30 = to_ist_date_str(now + timedelta(days=30))

    out = {
        'pending_count': 0,
        'pending_amount': 0.0,
        'overdue_count': 0,
        'overdue_amount': 0.0,
        'partially_count': 0,
        'partially_amount': 0.0,
        'upcoming_7d': {'count': 0, 'amount': 0.0},
        'upcoming_30d': {'count': 0, 'amount': 0.0},
        'oldest_overdue': None,
    }

    for r in rows:
        amt = float(r.get('amount') or 0)
        status = r.get('payment_status')
        if status == 'pending':
            out['pending_count'] += 1
            out['pending_amount'] += amt
        elif status == 'overdue':
            out['overdue_count'] += 1
            out['overdue_amount'] += amt
        elif status == 'partially_paid':
            out['partially_count'] += 1
            out['partially_amount'] += amt

        due = (r.get('due_date') or '')[:10]
        if not due:
            continue
        # ISO dates compare correctly as strings
        if due <= in7:
            out['upcoming_7d']['count'] += 1
            out['upcoming_7d']['amount'] += amt
        if due <= in30:
            out['upcoming_30d']['count'] += 1
            out['upcoming_30d']['amount'] += amt
        if status == 'overdue' and (out['oldest_overdue'] is None or due < out['oldest_overdue']):
            out['oldest_overdue'] = due

    return out


def get_pending_overview(supabase, now=None) -> dict:
    resp = (
        supabase.table('transactions')
        .select("amount, payment_status, due_date")
        .in_('payment_status', [s.value for s in OPEN_STATUSES])
        .execute()
    )
    return pending_overview(resp.data or [], now)


def get_dashboard_analytics(supabase, period=Period.THIS_MONTH, custom=None, now=None) -> dict:
    comparison = get_comparison(supabase, period, custom, now)
    time_series = get_time_series(supabase, period, custom, now=now)
    return {
        'summary': comparison['current'],
        'comparison': comparison,
        'time_series': {'series': time_series['series'], 'granularity': time_series['granularity']},
        'cash_flow': get_cash_flow(supabase, period, custom, now),
        'tag_breakdown': get_tag_breakdown(supabase, period, custom, now),
        'top_contacts': get_contact_stats(supabase, period, custom, limit=5, now=now),
        'pending': get_pending_overview(supabase, now),
        'method_stats': get_payment_method_stats(supabase, period, custom, now),
        'day_of_week': get_day_of_week_stats(supabase, period, custom, now),
        'top_income': get_top_transactions(supabase, period, 5, 'income', custom, now),
        'top_expense': get_top_transactions(supabase, period, 5, 'expense', custom, now),
        'savings_rate': get_savings_rate(supabase, period, custom, now),
    }
