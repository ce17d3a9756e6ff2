"""
HTML and plain-text rendering of the daily payment reminder digest.

Reminder rows are dicts as returned by the `reminders` query with the
joined `transaction` (and its `contact`), see financedesk.reminders.
"""
from datetime import date, datetime, timezone
from html import escape
from typing import List, Optional

from .payments import status_note
from .severity import due_severity
from .utils import format_currency, format_display_date, parse_iso

BRAND = "Finance Desk"

_LABEL_STYLE = ("margin: 0 0 2px 0; font-size: 11px; color: #6B7280; font-family: Arial, sans-serif; "
                "text-transform: uppercase; letter-spacing: 0.06em;")
_SMALL_STYLE = "margin: 2px 0 0 0; font-size: 12px; color: #6B7280; font-family: Arial, sans-serif;"


def _txn(reminder: dict) -> Optional[dict]:
    return reminder.get('transaction') or None


def _is_income(txn: Optional[dict]) -> bool:
    return bool(txn) and txn.get('type') == 'income'


def _contact(txn: Optional[dict]) -> dict:
    return (txn or {}).get('contact') or {}


def build_transaction_context(reminder: dict, today: Optional[date] = None) -> str:
    if reminder.get('message'):
        return reminder['message']

    txn = _txn(reminder)
    if not txn:
        return "Pending payment requires your attention."

    contact = _contact(txn).get('name') or "Unknown Party"
    amount = format_currency(txn.get('amount') or 0, txn.get('currency') or "INR")
    due_label = due_severity(txn.get('due_date'), today).label
    note = status_note(txn.get('payment_status'))

    if _is_income(txn):
        return (f"{note}. {contact} owes you {amount}. {due_label}. "
                "Please follow up to confirm receipt or collection.")
    return (f"{note}. You owe {amount} to {contact}. {due_label}. "
            "Please ensure timely payment to avoid penalties.")


def build_reminder_row(reminder: dict, index: int, today: Optional[date] = None) -> str:
    txn = _txn(reminder)
    income = _is_income(txn)
    severity = due_severity((txn or {}).get('due_date'), today)
    context = escape(build_transaction_context(reminder, today))
    contact = _contact(txn)

    type_color = "#059669" if income else "#DC2626"
    type_bg = "#ECFDF5" if income else "#FEF2F2"
    type_label = "RECEIVABLE" if income else "PAYABLE"
    arrow = "↓" if income else "↑"

    title = escape((txn or {}).get('title') or "Untitled Transaction")
    amount = format_currency((txn or {}).get('amount') or 0, (txn or {}).get('currency') or "INR")
    contact_name = escape(contact.get('name') or "—")
    extra = ""
    if contact.get('email'):
        extra += f'<p style="{_SMALL_STYLE}">{escape(contact["email"])}</p>'
    if contact.get('phone'):
        extra += f'<p style="{_SMALL_STYLE}">{escape(contact["phone"])}</p>'

    return f"""
    <tr>
      <td style="padding: 0 0 16px 0;">
        <table width="100%" cellpadding="0" cellspacing="0" style="background: #FFFFFF; border: 1px solid #E5E7EB; border-left: 4px solid {type_color}; border-radius: 8px;">
          <tr style="background: #F9FAFB;">
            <td style="padding: 14px 20px;">
              <span style="font-family: Georgia, serif; font-size: 15px; font-weight: 700; color: #111827;">{index + 1}. {title}</span>
              <span style="float: right; padding: 3px 10px; background: {type_bg}; color: {type_color}; font-size: 11px; font-weight: 700; border-radius: 20px; font-family: monospace;">{arrow} {type_label}</span>
            </td>
          </tr>
          <tr>
            <td style="padding: 14px 20px;">
              <table width="100%" cellpadding="0" cellspacing="0">
                <tr>
                  <td width="33%" style="vertical-align: top; padding-right: 12px;">
                    <p style="{_LABEL_STYLE}">Amount</p>
                    <p style="margin: 0; font-size: 18px; font-weight: 700; color: {type_color}; font-family: Georgia, serif;">{amount}</p>
                  </td>
                  <td width="33%" style="vertical-align: top; padding-right: 12px;">
                    <p style="{_LABEL_STYLE}">{"From" if income else "To"}</p>
                    <p style="margin: 0; font-size: 14px; font-weight: 600; color: #111827; font-family: Arial, sans-serif;">{contact_name}</p>
                    {extra}
                  </td>
                  <td width="33%" style="vertical-align: top;">
                    <p style="{_LABEL_STYLE}">Due Date</p>
                    <span style="display: inline-block; padding: 3px 10px; background: {severity.bg_color}; color: {severity.color}; font-size: 12px; font-weight: 600; border-radius: 4px;">{severity.label}</span>
                  </td>
                </tr>
              </table>
              <p style="margin: 12px 0 0 0; background: #F9FAFB; border: 1px solid #E5E7EB; border-radius: 6px; padding: 10px 14px; font-size: 13px; color: #374151; line-height: 1.5;">
                <span style="font-weight: 700; color: #6B7280;">📌 Note: </span>{context}
              </p>
            </td>
          </tr>
        </table>
      </td>
    </tr>"""


def _totals(reminders: List[dict], kind: str):
    rows = [r for r in reminders if (_txn(r) or {}).get('type') == kind]
    return len(rows), sum(float(r['transaction'].get('amount') or 0) for r in rows)


def build_reminder_email_html(reminders: List[dict], date_ist: str, today: Optional[date] = None) -> str:
    income_count, total_receivable = _totals(reminders, 'income')
    expense_count, total_payable = _totals(reminders, 'expense')
    rows = "".join(build_reminder_row(r, i, today) for i, r in enumerate(reminders))
    pretty_date = format_display_date(date_ist)
    year = datetime.now(timezone.utc).year

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0"/>
  <title>Payment Reminders – {date_ist}</title>
</head>
<body style="margin: 0; padding: 0; background: #F3F4F6; font-family: Arial, sans-serif;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background: #F3F4F6; padding: 40px 20px;">
    <tr>
      <td align="center">
        <table width="600" cellpadding="0" cellspacing="0" style="max-width: 600px; width: 100%;">
          <tr>
            <td style="background: #1E3A5F; border-radius: 12px 12px 0 0; padding: 32px 36px;">
              <p style="margin: 0 0 4px 0; font-size: 12px; color: #93C5FD; letter-spacing: 0.12em; text-transform: uppercase;">{BRAND}</p>
              <h1 style="margin: 0; font-size: 26px; font-weight: 700; color: #FFFFFF; font-family: Georgia, serif;">Payment Reminders</h1>
              <p style="margin: 6px 0 0 0; font-size: 14px; color: #BFDBFE;">{pretty_date}</p>
            </td>
          </tr>
          <tr>
            <td style="background: #1E3A5F; padding: 0 36px 24px 36px;">
              <table width="100%" cellpadding="0" cellspacing="0">
                <tr>
                  <td width="33%" style="text-align: center; padding: 16px 8px;">
                    <p style="margin: 0; font-size: 28px; font-weight: 700; color: #FFFFFF;">{len(reminders)}</p>
                    <p style="margin: 4px 0 0 0; font-size: 11px; color: #93C5FD; text-transform: uppercase;">Total Reminders</p>
                  </td>
                  <td width="33%" style="text-align: center; padding: 16px 8px;">
                    <p style="margin: 0; font-size: 16px; font-weight: 700; color: #6EE7B7;">{format_currency(total_receivable)}</p>
                    <p style="margin: 4px 0 0 0; font-size: 11px; color: #6EE7B7; text-transform: uppercase;">↓ To Receive ({income_count})</p>
                  </td>
                  <td width="33%" style="text-align: center; padding: 16px 8px;">
                    <p style="margin: 0; font-size: 16px; font-weight: 700; color: #FCA5A5;">{format_currency(total_payable)}</p>
                    <p style="margin: 4px 0 0 0; font-size: 11px; color: #FCA5A5; text-transform: uppercase;">↑ To Pay ({expense_count})</p>
                  </td>
                </tr>
              </table>
            </td>
          </tr>
          <tr>
            <td style="background: #F9FAFB; padding: 28px 36px; border-radius: 0 0 12px 12px;">
              <p style="margin: 0 0 24px 0; font-size: 14px; color: #374151; line-height: 1.6;">
                Please review the following pending transactions requiring your attention today.
              </p>
              <table width="100%" cellpadding="0" cellspacing="0">{rows}
              </table>
              <p style="margin: 8px 0 0 0; background: #EFF6FF; border: 1px solid #BFDBFE; border-radius: 8px; padding: 14px 18px; font-size: 12px; color: #1E40AF; line-height: 1.6;">
                <strong>ℹ️ Note:</strong> This is an automated reminder. Please do not reply to this email. Log in to your dashboard to manage, dismiss, or snooze these reminders.
              </p>
            </td>
          </tr>
          <tr>
            <td style="padding: 20px 0; text-align: center;">
              <p style="margin: 0; font-size: 12px; color: #9CA3AF;">© {year} {BRAND} · Automated Payment Reminders</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>"""


def _is_past_due(due_value, now: datetime) -> bool:
    if not due_value:
        return False
    try:
        due = parse_iso(due_value)
    except (TypeError, ValueError):
        return False
    # date-only values mean midnight UTC
    if due.tzinfo is None:
        due = due.replace(tzinfo=timezone.utc)
    return due < now


def build_reminder_email_subject(reminders: List[dict], date_ist: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    overdue = sum(1 for r in reminders if _is_past_due((_txn(r) or {}).get('due_date'), now))

    prefix = f"⚠️ {overdue} Overdue · " if overdue > 0 else ""
    plural = "s" if len(reminders) > 1 else ""
    return f"{prefix}{len(reminders)} Payment Reminder{plural} for {format_display_date(date_ist)}"


def build_reminder_text(reminder: dict, today: Optional[date] = None) -> str:
    txn = _txn(reminder) or {}
    title = txn.get('title') or "Payment reminder"
    return f"🔔 {title}: {build_transaction_context(reminder, today)}"
