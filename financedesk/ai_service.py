import logging
import os
from datetime import date

import google.generativeai as genai

from .analytics import (
    DateRange,
    get_comparison,
    get_contact_stats,
    get_pending_overview,
    get_savings_rate,
    get_summary_stats,
    get_tag_breakdown,
    get_top_transactions,
)
from .reminders import get_today_active_reminders
from .settings import DEFAULT_GEMINI_MODEL
from .severity import due_severity
from .utils import format_currency, format_datetime_ist

logger = logging.getLogger(__name__)

DEFAULT_MODEL = DEFAULT_GEMINI_MODEL

SYSTEM_PROMPT = """
You are a smart financial assistant for a personal expense and income tracker app.
You help users understand their financial data by calling the available tools to fetch real data.

Guidelines:
- Always call the relevant tool(s) before answering data questions, never make up numbers.
- When a user asks a vague question like "how am I doing?", use get_summary for "this_month".
- Format currency in INR (Indian Rupees) by default unless the user says otherwise.
- When presenting numbers, be concise: use summaries, not raw JSON dumps.
- For comparisons, always mention the % change vs previous period.
- Explain what the numbers mean, not just what they are.
- If multiple tools are needed, call them all before responding.
- Periods you understand: today, this_week, this_month, this_quarter, this_year,
  last_week, last_month, last_quarter, last_year, last_7_days, last_30_days, last_90_days, last_12_months.
  For custom ranges, use the format YYYY-MM-DD.
""".strip()


def _configure():
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise RuntimeError("GEMINI_API_KEY is not set")
    genai.configure(api_key=api_key)


def gen_ai_response(prompt: str, model_name: str = None) -> str:
    try:
        _configure()
        model = genai.GenerativeModel(model_name or DEFAULT_MODEL)
        response = model.generate_content(prompt)
        return response.text
    except Exception as e:
        logger.error(f"Gemini request failed: {e}")
        return f"Error generating response: {str(e)}"


def _custom_range(from_date: str, to_date: str):
    if not from_date and not to_date:
        return None
    if not from_date or not to_date:
        raise ValueError("custom ranges need both from_date and to_date")
    rng = DateRange(date.fromisoformat(from_date), date.fromisoformat(to_date))
    if rng.from_ > rng.to:
        raise ValueError("from_date must not be after to_date")
    return rng


def _tool_call(name, fn, period, from_date, to_date):
    """Run an analytics call for the model; bad arguments come back as {'error': ...}."""
    try:
        custom = _custom_range(from_date, to_date)
        if custom is not None:
            period = "custom"
        return fn(period, custom)
    except ValueError as e:
        logger.warning(f"Assistant tool {name} rejected period={period!r} from={from_date!r} to={to_date!r}: {e}")
        return {'error': str(e)}


def build_tools(supabase):
    """Tool functions exposed to the model, bound to one Supabase client."""

    def get_summary(period: str, from_date: str = "", to_date: str = "") -> dict:
        """Income, expense, net and status counts for a period such as 'this_month'.
        For period 'custom' pass from_date and to_date as YYYY-MM-DD."""
        return _tool_call('get_summary', lambda p, c: get_summary_stats(supabase, p, c).to_dict(),
                          period, from_date, to_date)

    def compare_with_previous(period: str, from_date: str = "", to_date: str = "") -> dict:
        """Summary for a period next to the equivalent previous period, with % changes.
        For period 'custom' pass from_date and to_date as YYYY-MM-DD."""
        return _tool_call('compare_with_previous', lambda p, c: get_comparison(supabase, p, c),
                          period, from_date, to_date)

    def get_category_breakdown(period: str, from_date: str = "", to_date: str = "") -> dict:
        """Income and expense per tag, with each tag's share of the period's totals."""
        return _tool_call('get_category_breakdown',
                          lambda p, c: {'tags': get_tag_breakdown(supabase, p, c)},
                          period, from_date, to_date)

    def get_top_contacts(period: str, from_date: str = "", to_date: str = "") -> dict:
        """Contacts with the most money moved in the period."""
        return _tool_call('get_top_contacts',
                          lambda p, c: {'contacts': get_contact_stats(supabase, p, c, limit=5)},
                          period, from_date, to_date)

    def get_largest_transactions(period: str, kind: str = "", from_date: str = "", to_date: str = "") -> dict:
        """Five largest transactions in the period; kind is 'income', 'expense' or empty for both."""
        if kind not in ("", "income", "expense"):
            return {'error': f"unknown kind {kind!r}"}
        return _tool_call('get_largest_transactions',
                          lambda p, c: {'transactions': get_top_transactions(supabase, p, 5, kind or None, c)},
                          period, from_date, to_date)

    def get_savings(period: str, from_date: str = "", to_date: str = "") -> dict:
        """Month by month savings and savings rate (% of income kept)."""
        return _tool_call('get_savings', lambda p, c: {'months': get_savings_rate(supabase, p, c)},
                          period, from_date, to_date)

    def get_pending_payments() -> dict:
        """Pending, overdue and partially paid totals plus upcoming dues in 7 and 30 days."""
        return get_pending_overview(supabase)

    def get_todays_reminders() -> dict:
        """Payment reminders scheduled for today (IST)."""
        result = get_today_active_reminders(supabase)
        return {
            'date_ist': result.date_ist,
            'error': result.error,
            'reminders': [_reminder_brief(r) for r in result.reminders],
        }

    return [
        get_summary,
        compare_with_previous,
        get_category_breakdown,
        get_top_contacts,
        get_largest_transactions,
        get_savings,
        get_pending_payments,
        get_todays_reminders,
    ]


def _reminder_brief(reminder: dict) -> dict:
    txn = reminder.get('transaction') or {}
    return {
        'title': txn.get('title') or reminder.get('message') or "Reminder",
        'type': txn.get('type'),
        'amount': format_currency(txn.get('amount') or 0, txn.get('currency') or "INR"),
        'contact': (txn.get('contact') or {}).get('name'),
        'due': due_severity(txn.get('due_date')).label,
        'remind_at': format_datetime_ist(reminder.get('remind_at')),
    }


def ask_assistant(question: str, supabase, model_name: str = None, history=None) -> str:
    _configure()
    model = genai.GenerativeModel(
        model_name or DEFAULT_MODEL,
        tools=build_tools(supabase),
        system_instruction=SYSTEM_PROMPT,
    )
    chat = model.start_chat(history=history or [], enable_automatic_function_calling=True)
    response = chat.send_message(question)
    return response.text


def gen_reminder_digest(reminders, date_ist: str, model_name: str = None) -> str:
    if not reminders:
        return f"No payment reminders for {date_ist}."

    lines = "\n".join(
        f"- {b['title']} | {b['type'] or 'unknown'} | {b['amount']} | {b['contact'] or 'no contact'} | {b['due']} | {b['remind_at']}"
        for b in (_reminder_brief(r) for r in reminders)
    )
    prompt = f"""
Summarise today's payment reminders for a small business owner.

Date (IST): {date_ist}
Reminders (title | type | amount | contact | due | remind at, IST):
{lines}

Mention what to collect and what to pay first. Keep it to 2-3 sentences.
    """
    return gen_ai_response(prompt, model_name)
