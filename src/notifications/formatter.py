from __future__ import annotations

import html
from typing import Dict

from src.models.charge import Charge

CURRENCY_SYMBOLS = {
    "GBP": "£",
    "EUR": "€",
    "USD": "$",
}

_PRE_STYLE = (
    "font-family:ui-monospace, SFMono-Regular, Menlo, Monaco, Consolas, "
    "'Liberation Mono', 'Courier New', monospace; white-space:pre-wrap;"
)


def format_money(amount, currency: str = "GBP") -> str:
    """£50.00 / €12.50 / CHF 9.00"""
    code = (currency or "GBP").upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    value = f"{float(amount):.2f}"
    return f"{symbol}{value}" if symbol else f"{code} {value}"


def format_due_date(charge: Charge) -> str:
    return charge.due_date.strftime("%d/%m/%Y") if charge.due_date else "N/A"


def format_overdue_email(charge: Charge) -> Dict[str, str]:
    """Overdue notice for a single charge.

    Returns:
        dict with keys "subject" and "text".
    """
    amount = format_money(charge.amount, charge.currency)
    due = format_due_date(charge)
    return {
        "subject": f"Overdue payment: {amount}",
        "text": (
            "Your charge is now overdue.\n\n"
            f"Amount: {amount}\n"
            f"Due date: {due}\n\n"
            "Please arrange payment as soon as possible."
        ),
    }


def format_reminder_email(charge: Charge) -> Dict[str, str]:
    """Upcoming-payment reminder for a single charge."""
    amount = format_money(charge.amount, charge.currency)
    due = format_due_date(charge)
    return {
        "subject": f"Upcoming payment due: {amount}",
        "text": (
            "You have an upcoming charge due soon.\n\n"
            f"Amount: {amount}\n"
            f"Due date: {due}\n\n"
            "Please arrange payment by the due date."
        ),
    }


def render_html(text: str) -> str:
    """Wrap plain text in a monospace block for HTML mail clients."""
    return f'<pre style="{_PRE_STYLE}">{html.escape(text, quote=False)}</pre>'
