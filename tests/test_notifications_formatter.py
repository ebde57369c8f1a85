from datetime import datetime
from decimal import Decimal

from src.models import Charge, ChargeType
from src.notifications.formatter import (
    format_money,
    format_overdue_email,
    format_reminder_email,
    render_html,
)


def _charge(amount="50", currency="GBP", due=datetime(2024, 1, 1)):
    return Charge(
        user_id=1,
        amount=Decimal(amount),
        currency=currency,
        type=ChargeType.weekly_fee,
        due_date=due,
    )


class TestFormatMoney:
    def test_known_symbols(self):
        assert format_money(Decimal("50"), "GBP") == "£50.00"
        assert format_money(12.5, "eur") == "€12.50"
        assert format_money(3, "USD") == "$3.00"

    def test_unknown_currency_uses_code(self):
        assert format_money(9, "CHF") == "CHF 9.00"


def test_overdue_email():
    message = format_overdue_email(_charge())

    assert message["subject"] == "Overdue payment: £50.00"
    assert message["text"].startswith("Your charge is now overdue.")
    assert "Amount: £50.00" in message["text"]
    assert "Due date: 01/01/2024" in message["text"]
    assert "as soon as possible" in message["text"]


def test_reminder_email():
    message = format_reminder_email(_charge(amount="120.5", due=datetime(2024, 3, 2)))

    assert message["subject"] == "Upcoming payment due: £120.50"
    assert "Due date: 02/03/2024" in message["text"]
    assert "by the due date" in message["text"]


def test_missing_due_date():
    message = format_overdue_email(_charge(due=None))
    assert "Due date: N/A" in message["text"]


def test_render_html_escapes_markup():
    html = render_html("<script>alert(1)</script>\nline two")
    assert html.startswith("<pre")
    assert "&lt;script&gt;" in html
    assert "line two" in html
