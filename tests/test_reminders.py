from datetime import datetime, timezone

import pytest

from conftest import FakeSupabase, make_reminder

import financedesk.reminders as reminders_mod
from financedesk.reminders import (
    get_today_all_reminders,
    get_today_pending_reminders,
    get_today_reminders,
    notify_today_reminders,
)

NOW = datetime(2025, 2, 24, 10, 0, tzinfo=timezone.utc)


def test_queries_ist_day_window():
    db = FakeSupabase(rows={"reminders": [make_reminder()]})
    result = get_today_reminders(db, now=NOW)

    q = db.queries_for("reminders")[0]
    assert q.args_of("gte") == [("remind_at", "2025-02-23T18:30:00.000Z")]
    assert q.args_of("lte") == [("remind_at", "2025-02-24T18:29:59.999Z")]
    assert q.args_of("in_") == [("status", ["pending", "snoozed"])]
    assert q.args_of("order") == [("remind_at",)]
    assert q.kwargs_of("order") == [{"desc": False}]
    assert "transaction:transactions(" in q.args_of("select")[0][0]

    assert result.error is None
    assert result.date_ist == "2025-02-24"
    assert result.range_utc == {"from": "2025-02-23T18:30:00.000Z", "to": "2025-02-24T18:29:59.999Z"}
    assert [r["id"] for r in result.reminders] == ["r1"]


def test_without_transaction_selects_plain_rows():
    db = FakeSupabase(rows={"reminders": []})
    get_today_reminders(db, with_transaction=False, now=NOW)
    assert db.queries_for("reminders")[0].args_of("select") == [("*",)]


def test_snoozed_reminders_only_after_snooze_expires():
    rows = [
        make_reminder("pending"),
        make_reminder("still-snoozed", status="snoozed", snoozed_until="2025-02-24T12:00:00.000Z"),
        make_reminder("woke-up", status="snoozed", snoozed_until="2025-02-24T09:00:00Z"),
        make_reminder("no-until", status="snoozed"),
    ]
    db = FakeSupabase(rows={"reminders": rows})
    result = get_today_reminders(db, now=NOW)
    assert [r["id"] for r in result.reminders] == ["pending", "woke-up", "no-until"]


def test_query_failure_is_reported_not_raised():
    db = FakeSupabase(errors={"reminders": RuntimeError("connection reset")})
    result = get_today_reminders(db, now=NOW)
    assert result.reminders == []
    assert result.error == "connection reset"
    assert result.date_ist == "2025-02-24"
    assert result.to_dict()["range_utc"]["from"] == "2025-02-23T18:30:00.000Z"


def test_status_variants():
    db = FakeSupabase(rows={"reminders": []})
    get_today_pending_reminders(db, now=NOW)
    get_today_all_reminders(db, now=NOW)
    pending_q, all_q = db.queries_for("reminders")
    assert pending_q.args_of("in_") == [("status", ["pending"])]
    assert all_q.args_of("in_") == [("status", ["pending", "sent", "dismissed", "snoozed"])]


@pytest.fixture
def outbox(monkeypatch):
    sent = {"email": [], "whatsapp": []}

    def fake_email(to, subject, html):
        sent["email"].append((to, subject, html))
        return True

    def fake_whatsapp(number, message):
        sent["whatsapp"].append((number, message))
        return True

    monkeypatch.setattr(reminders_mod, "send_email", fake_email)
    monkeypatch.setattr(reminders_mod, "send_whatsapp", fake_whatsapp)
    return sent


def test_notify_sends_digest_and_marks_sent(outbox):
    rows = [
        make_reminder("r1"),
        make_reminder("r2", kind="expense", notify_via=("email", "whatsapp")),
    ]
    db = FakeSupabase(rows={"reminders": rows})

    outcome = notify_today_reminders(db, ["owner@example.com", "cfo@example.com"], now=NOW)

    assert outcome.success
    assert outcome.reminders == 2
    assert outcome.emails_sent == 2
    assert outcome.whatsapp_sent == 1
    assert outcome.marked_sent == ["r1", "r2"]

    to, subject, html = outbox["email"][0]
    assert to == "owner@example.com"
    assert subject == "2 Payment Reminders for 24 Feb 2025"
    assert "Invoice #12" in html
    assert outbox["whatsapp"][0][0] == "+919800000001"

    update_q = db.queries_for("reminders")[-1]
    assert update_q.payload == {"status": "sent"}
    assert update_q.args_of("in_") == [("id", ["r1", "r2"])]


def test_notify_with_nothing_due_sends_nothing(outbox):
    db = FakeSupabase(rows={"reminders": []})
    outcome = notify_today_reminders(db, ["owner@example.com"], now=NOW)
    assert outcome.success
    assert outcome.to_dict()["reminders"] == 0
    assert outbox["email"] == []
    assert len(db.queries_for("reminders")) == 1


def test_notify_reports_query_error(outbox):
    db = FakeSupabase(errors={"reminders": RuntimeError("boom")})
    outcome = notify_today_reminders(db, ["owner@example.com"], now=NOW)
    assert not outcome.success
    assert outcome.error == "boom"
    assert outbox["email"] == []


def test_notify_when_delivery_fails(monkeypatch):
    monkeypatch.setattr(reminders_mod, "send_email", lambda *a: False)
    monkeypatch.setattr(reminders_mod, "send_whatsapp", lambda *a: False)
    db = FakeSupabase(rows={"reminders": [make_reminder()]})

    outcome = notify_today_reminders(db, ["owner@example.com"], now=NOW)

    assert not outcome.success
    assert outcome.reminders == 1
    assert outcome.marked_sent == []
    assert all(q.payload is None for q in db.queries_for("reminders"))


def test_notify_keeps_delivery_counts_when_marking_fails(outbox):
    db = FakeSupabase(rows={"reminders": [make_reminder("r1")]},
                      update_errors={"reminders": RuntimeError("update timed out")})

    outcome = notify_today_reminders(db, ["owner@example.com"], now=NOW)

    assert outcome.success
    assert outcome.emails_sent == 1
    assert outcome.marked_sent == []
    assert "not marked as sent" in outcome.error
    assert "update timed out" in outcome.to_dict()["error"]


def test_notify_rows_use_the_given_clock(outbox):
    # 2025-02-26 is two days after NOW whatever the host date is
    db = FakeSupabase(rows={"reminders": [make_reminder("r1", due_date="2025-02-26",
                                                        notify_via=("email", "whatsapp"))]})

    notify_today_reminders(db, ["owner@example.com"], now=NOW)

    _, subject, html = outbox["email"][0]
    assert subject == "1 Payment Reminder for 24 Feb 2025"
    assert "Due in 2d" in html
    assert "Due in 2d" in outbox["whatsapp"][0][1]
