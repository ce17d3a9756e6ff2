from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import FakeSupabase, make_reminder

import financedesk.reminders as reminders_mod
import main
from financedesk.settings import AppConfig, MemoryStorage, SettingsStore


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def store():
    return SettingsStore(MemoryStorage())


@pytest.fixture
def client(db, store):
    config = AppConfig(reminder_recipients=["owner@example.com"], settings_path=Path("unused.json"),
                       gemini_model="gemini-test")
    main.app.dependency_overrides[main.get_supabase] = lambda: db
    main.app.dependency_overrides[main.get_config] = lambda: config
    main.app.dependency_overrides[main.get_settings_store] = lambda: store
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def test_health_and_day_window(client):
    assert client.get("/health").json() == {"ok": True}
    body = client.get("/day-window").json()
    assert len(body["date_ist"]) == 10
    assert body["range_utc"]["from"].endswith("T18:30:00.000Z")
    assert body["range_utc"]["to"].endswith("T18:29:59.999Z")


def test_notify_reminders_success(client, db, monkeypatch):
    sent = []
    monkeypatch.setattr(reminders_mod, "send_email", lambda to, subject, html: sent.append((to, subject)) or True)
    db.rows["reminders"] = [make_reminder("r1")]

    resp = client.post("/notify-reminders")

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["emails_sent"] == 1
    assert body["marked_sent"] == ["r1"]
    assert sent[0][0] == "owner@example.com"
    assert "1 Payment Reminder for " in sent[0][1]


def test_notify_reminders_query_error(client, db):
    db.errors["reminders"] = RuntimeError("permission denied")
    resp = client.post("/notify-reminders")
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_notify_reminders_delivery_failure(client, db, monkeypatch):
    monkeypatch.setattr(reminders_mod, "send_email", lambda *a: False)
    db.rows["reminders"] = [make_reminder("r1")]
    resp = client.post("/notify-reminders")
    assert resp.status_code == 502
    assert resp.json()["error"] == "No reminder could be delivered"


def test_notify_reminders_unexpected_error(client, monkeypatch):
    def explode(*a, **kw):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(main, "notify_today_reminders", explode)
    resp = client.post("/notify-reminders")
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Something went wrong"}


def test_reminders_today(client, db):
    db.rows["reminders"] = [make_reminder("r1")]
    body = client.get("/reminders/today", params={"status": ["pending"]}).json()
    assert [r["id"] for r in body["reminders"]] == ["r1"]
    assert db.queries_for("reminders")[0].args_of("in_") == [("status", ["pending"])]

    assert client.get("/reminders/today", params={"status": ["archived"]}).status_code == 400


def test_reminders_digest(client, db, monkeypatch):
    monkeypatch.setattr(main, "gen_reminder_digest",
                        lambda reminders, d, model_name=None: f"{len(reminders)} to chase on {model_name}")
    db.rows["reminders"] = [make_reminder("r1"), make_reminder("r2")]
    body = client.get("/reminders/digest").json()
    assert body["digest"] == "2 to chase on gemini-test"


def test_search(client, db):
    db.rows["tags"] = [{"id": 3, "name": "rent", "color": None}]
    assert client.get("/search", params={"q": "r"}).json()["total"] == 0
    body = client.get("/search", params={"q": "rent", "kinds": ["tag"]}).json()
    assert body["total"] == 1
    assert client.get("/search", params={"q": "rent", "kinds": ["bogus"]}).status_code == 400


def test_analytics_summary_uses_millify_setting(client, db, store):
    db.rows["transactions"] = [{"type": "income", "amount": "150000", "payment_status": "paid",
                                "transaction_date": "2025-02-03"}]
    body = client.get("/analytics/summary", params={"period": "this_month"}).json()
    assert body["total_income"] == 150000.0
    assert body["display"]["total_income"] == "₹1,50,000.00"

    store.update(is_millify_number=True)
    body = client.get("/analytics/summary").json()
    assert body["display"]["total_income"] == "₹1.5L"


def test_analytics_custom_range(client, db):
    db.rows["transactions"] = []
    ok = client.get("/analytics/summary", params={"period": "custom", "from": "2025-01-01", "to": "2025-01-31"})
    assert ok.status_code == 200
    assert db.queries_for("transactions")[-1].args_of("gte") == [("transaction_date", "2025-01-01")]

    assert client.get("/analytics/summary", params={"period": "custom"}).status_code == 400
    assert client.get("/analytics/summary", params={"from": "2025-02-01", "to": "2025-01-01"}).status_code == 400


def test_analytics_pending_and_dashboard(client, db):
    db.rows["transactions"] = [{"type": "expense", "amount": 80, "payment_status": "overdue",
                                "transaction_date": "2025-02-03", "due_date": "2025-02-04"}]
    assert client.get("/analytics/pending").json()["overdue_count"] == 1
    body = client.get("/analytics/dashboard", params={"period": "last_30_days"}).json()
    assert set(body) == {
        "summary", "comparison", "time_series", "cash_flow", "tag_breakdown", "top_contacts", "pending",
        "method_stats", "day_of_week", "top_income", "top_expense", "savings_rate",
    }
    assert len(body["day_of_week"]) == 7


def test_ai_chat(client, store, monkeypatch):
    calls = []
    monkeypatch.setattr(main, "ask_assistant",
                        lambda message, supabase, model_name=None: calls.append(model_name) or "All good")

    assert client.post("/ai-chat", json={}).status_code == 400
    assert client.post("/ai-chat", json={"message": "   "}).status_code == 400

    resp = client.post("/ai-chat", json={"message": "How am I doing?"})
    assert resp.json() == {"success": True, "reply": "All good"}
    assert calls == ["gemini-test"]

    store.update(model="gemini-2.5-pro")
    client.post("/ai-chat", json={"message": "And now?"})
    client.post("/ai-chat", json={"message": "Per request", "model": "gemini-x"})
    assert calls == ["gemini-test", "gemini-2.5-pro", "gemini-x"]


def test_ai_chat_failure(client, monkeypatch):
    def fail(*a, **kw):
        raise RuntimeError("quota exceeded")

    monkeypatch.setattr(main, "ask_assistant", fail)
    resp = client.post("/ai-chat", json={"message": "hi"})
    assert resp.status_code == 500
    assert resp.json()["success"] is False


def test_settings_endpoints(client, store):
    assert client.get("/settings").json()["is_millify_number"] is False

    resp = client.put("/settings", json={"is_millify_number": True, "fields": {"receipt_url": False}})
    assert resp.status_code == 200
    assert resp.json()["fields"]["receipt_url"] is False
    assert store.get().is_millify_number is True

    assert client.put("/settings", json={"fields": {"gst": True}}).status_code == 400
