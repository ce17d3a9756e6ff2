from datetime import date, datetime, timezone

import pytest

from financedesk.severity import Severity, SeverityTier, classify_severity, due_severity, parse_due_date

TODAY = date(2025, 2, 24)


def test_no_due_date():
    s = classify_severity(None, TODAY)
    assert s == Severity("No Due Date", SeverityTier.NO_DUE_DATE)


@pytest.mark.parametrize("due,tier,label", [
    (date(2025, 2, 20), SeverityTier.OVERDUE, "Overdue by 4d"),
    (date(2025, 2, 23), SeverityTier.OVERDUE, "Overdue by 1d"),
    (date(2025, 2, 24), SeverityTier.DUE_TODAY, "Due Today"),
    (date(2025, 2, 25), SeverityTier.DUE_SOON, "Due in 1d"),
    (date(2025, 2, 27), SeverityTier.DUE_SOON, "Due in 3d"),
    (date(2025, 2, 28), SeverityTier.DUE_LATER, "Due 28 Feb 2025"),
    (date(2025, 3, 10), SeverityTier.DUE_LATER, "Due 10 Mar 2025"),
])
def test_classify(due, tier, label):
    s = classify_severity(due, TODAY)
    assert s.tier is tier
    assert s.label == label


def test_colors_follow_tier():
    overdue = classify_severity(date(2025, 2, 1), TODAY).to_dict()
    assert overdue == {"label": "Overdue by 23d", "tier": "overdue", "color": "#DC2626", "bg_color": "#FEF2F2"}
    assert classify_severity(None, TODAY).color == "#6B7280"


def test_parse_due_date_forms():
    assert parse_due_date("2025-02-20") == date(2025, 2, 20)
    assert parse_due_date(date(2025, 2, 20)) == date(2025, 2, 20)
    assert parse_due_date(datetime(2025, 2, 20, 23, 59)) == date(2025, 2, 20)
    assert parse_due_date("2025-02-20T10:15:00") == date(2025, 2, 20)


def test_parse_zoned_due_date_uses_local_clock():
    expected = datetime(2025, 2, 20, 12, 0, tzinfo=timezone.utc).astimezone().date()
    assert parse_due_date("2025-02-20T12:00:00Z") == expected


@pytest.mark.parametrize("value", [None, "", "soon", "2025-13-40", 12345])
def test_unparseable_is_no_due_date(value):
    assert parse_due_date(value) is None
    assert due_severity(value, TODAY).tier is SeverityTier.NO_DUE_DATE


def test_due_severity_from_string():
    assert due_severity("2025-02-27", TODAY).label == "Due in 3d"
    assert due_severity("2025-02-20", TODAY).label == "Overdue by 4d"


def test_due_severity_defaults_to_local_today():
    assert due_severity(date.today()).tier is SeverityTier.DUE_TODAY
