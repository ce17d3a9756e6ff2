import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .database import mark_reminders_sent, send_email, send_whatsapp
from .reminder_email import build_reminder_email_html, build_reminder_email_subject, build_reminder_text
from .utils import compute_day_window, parse_iso

logger = logging.getLogger(__name__)


class ReminderStatus(str, Enum):
    PENDING = 'pending'
    SENT = 'sent'
    DISMISSED = 'dismissed'
    SNOOZED = 'snoozed'


ALL_STATUSES = tuple(s.value for s in ReminderStatus)

REMINDER_WITH_TRANSACTION = """
    *,
    transaction:transactions(
        id,
        title,
        type,
        amount,
        currency,
        payment_status,
        due_date,
        contact_id,
        contact:contacts(*)
    )
"""


@dataclass
class TodayRemindersResult:
    reminders: List[dict]
    date_ist: str
    range_utc: Dict[str, str]
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'reminders': self.reminders,
            'date_ist': self.date_ist,
            'range_utc': dict(self.range_utc),
            'error': self.error,
        }


def _snooze_expired(reminder: dict, now: datetime) -> bool:
    if reminder.get('status') != ReminderStatus.SNOOZED.value:
        return True
    until = reminder.get('snoozed_until')
    if not until:
        return True
    try:
        until_dt = parse_iso(until)
    except ValueError:
        logger.warning(f"Bad snoozed_until on reminder {reminder.get('id')}: {until!r}")
        return True
    if until_dt.tzinfo is None:
        until_dt = until_dt.replace(tzinfo=timezone.utc)
    return until_dt <= now


def get_today_reminders(supabase, statuses: Sequence[str] = ('pending', 'snoozed'),
                        with_transaction: bool = True, now: Optional[datetime] = None) -> TodayRemindersResult:
    """
    Fetch reminders whose remind_at falls on today's IST date, wherever the
    server runs. Snoozed reminders are kept only once their snooze expired.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    window = compute_day_window(now)
    range_utc = {'from': window.start_iso, 'to': window.end_iso}
    statuses = [getattr(s, 'value', s) for s in statuses]

    try:
        resp = (
            supabase.table('reminders')
            .select(REMINDER_WITH_TRANSACTION if with_transaction else "*")
            .gte('remind_at', window.start_iso)
            .lte('remind_at', window.end_iso)
            .in_('status', statuses)
            .order('remind_at', desc=False)
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to fetch reminders for {window.civil_date}: {e}")
        return TodayRemindersResult([], window.civil_date, range_utc, str(e) or "Failed to fetch reminders")

    reminders = [r for r in (resp.data or []) if _snooze_expired(r, now)]
    logger.info(f"{len(reminders)} reminder(s) for IST date {window.civil_date}")
    return TodayRemindersResult(reminders, window.civil_date, range_utc)


def get_today_pending_reminders(supabase, now=None):
    return get_today_reminders(supabase, statuses=['pending'], with_transaction=True, now=now)


def get_today_active_reminders(supabase, now=None):
    return get_today_reminders(supabase, statuses=['pending', 'snoozed'], now=now)


def get_today_all_reminders(supabase, now=None):
    return get_today_reminders(supabase, statuses=ALL_STATUSES, now=now)


@dataclass
class NotifyOutcome:
    success: bool
    date_ist: str
    reminders: int = 0
    emails_sent: int = 0
    whatsapp_sent: int = 0
    marked_sent: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        out = {
            'success': self.success,
            'date_ist': self.date_ist,
            'reminders': self.reminders,
            'emails_sent': self.emails_sent,
            'whatsapp_sent': self.whatsapp_sent,
            'marked_sent': self.marked_sent,
        }
        if self.error:
            out['error'] = self.error
        return out


def _whatsapp_targets(reminder: dict):
    if 'whatsapp' not in (reminder.get('notify_via') or []):
        return None
    contact = (reminder.get('transaction') or {}).get('contact') or {}
    return contact.get('phone')


def notify_today_reminders(supabase, recipients: Sequence[str], now: Optional[datetime] = None) -> NotifyOutcome:
    result = get_today_pending_reminders(supabase, now=now)
    if result.error:
        return NotifyOutcome(False, result.date_ist, error=result.error)

    reminders = result.reminders
    if not reminders:
        logger.info(f"No pending reminders for {result.date_ist}, nothing sent")
        return NotifyOutcome(True, result.date_ist)

    # badges follow the same clock as the subject when one is given
    today = date.fromisoformat(result.date_ist) if now else None
    subject = build_reminder_email_subject(reminders, result.date_ist, now=now)
    html = build_reminder_email_html(reminders, result.date_ist, today=today)

    emails_sent = sum(1 for to in recipients if send_email(to, subject, html))
    if recipients and not emails_sent:
        logger.error(f"Reminder digest for {result.date_ist} was not delivered to any recipient")

    whatsapp_sent = 0
    delivered = set()
    if emails_sent:
        delivered.update(r['id'] for r in reminders if r.get('id'))
    for r in reminders:
        phone = _whatsapp_targets(r)
        if phone and send_whatsapp(phone, build_reminder_text(r, today)):
            whatsapp_sent += 1
            if r.get('id'):
                delivered.add(r['id'])

    success = bool(emails_sent or whatsapp_sent)
    error = None if success else "No reminder could be delivered"
    marked = []
    if delivered:
        ids = [r['id'] for r in reminders if r.get('id') in delivered]
        try:
            mark_reminders_sent(supabase, ids)
            marked = ids
        except Exception as e:
            logger.error(f"Delivered {len(ids)} reminder(s) for {result.date_ist} but could not mark them sent: {e}")
            error = f"Reminders were delivered but not marked as sent: {e}"

    return NotifyOutcome(
        success=success,
        date_ist=result.date_ist,
        reminders=len(reminders),
        emails_sent=emails_sent,
        whatsapp_sent=whatsapp_sent,
        marked_sent=marked,
        error=error,
    )
