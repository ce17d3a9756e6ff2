from types import SimpleNamespace

import pytest

CHAIN_METHODS = {"select", "gte", "lte", "in_", "order", "eq", "neq", "or_", "ilike", "limit", "is_"}


class FakeQuery:
    """Records a supabase-py query chain and answers execute() from FakeSupabase."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.calls = []
        self.payload = None

    @property
    def not_(self):
        self.calls.append(("not_", (), {}))
        return self

    def __getattr__(self, name):
        if name in CHAIN_METHODS:
            def method(*args, **kwargs):
                self.calls.append((name, args, kwargs))
                return self
            return method
        raise AttributeError(name)

    def update(self, values):
        self.payload = values
        self.calls.append(("update", (values,), {}))
        return self

    def args_of(self, name):
        return [args for called, args, _ in self.calls if called == name]

    def kwargs_of(self, name):
        return [kwargs for called, _, kwargs in self.calls if called == name]

    def execute(self):
        if self.table in self.db.errors:
            raise self.db.errors[self.table]
        if self.payload is not None:
            if self.table in self.db.update_errors:
                raise self.db.update_errors[self.table]
            return SimpleNamespace(data=[])
        rows = self.db.rows.get(self.table, [])
        if callable(rows):
            rows = rows(self)
        return SimpleNamespace(data=[dict(r) for r in rows])


class FakeSupabase:
    def __init__(self, rows=None, errors=None, update_errors=None):
        self.rows = rows or {}
        self.errors = errors or {}
        self.update_errors = update_errors or {}
        self.queries = []

    def table(self, name):
        q = FakeQuery(self, name)
        self.queries.append(q)
        return q

    def queries_for(self, name):
        return [q for q in self.queries if q.table == name]


@pytest.fixture
def fake_db():
    return FakeSupabase()


def make_reminder(rid="r1", *, kind="income", amount=1500, due_date="2025-02-26", title="Invoice #12",
                  contact=None, status="pending", message=None, payment_status="pending",
                  notify_via=("email",), snoozed_until=None):
    return {
        "id": rid,
        "transaction_id": f"t-{rid}",
        "remind_at": "2025-02-24T04:30:00.000Z",
        "status": status,
        "message": message,
        "notify_via": list(notify_via),
        "snoozed_until": snoozed_until,
        "transaction": {
            "id": f"t-{rid}",
            "title": title,
            "type": kind,
            "amount": amount,
            "currency": "INR",
            "payment_status": payment_status,
            "due_date": due_date,
            "contact_id": "c1",
            "contact": contact if contact is not None else {"name": "Acme Traders", "email": "ap@acme.in", "phone": "+919800000001"},
        },
    }
