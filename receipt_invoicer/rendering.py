"""
Invoice renderer: maps each finalized LineItem to an InvoiceDocument.

The document carries display-ready strings only; the Jinja2 templates under
templates/ lay them out on an A5 landscape page.
"""

from __future__ import annotations

import calendar
import math
from datetime import date
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from receipt_invoicer.config import Settings
from receipt_invoicer.graph.state import LineItem

AMOUNT_FALLBACK = "—"
DETAIL_ROWS = 7


class DetailRow(BaseModel):
    period: str = ""
    description: str = ""
    amount: str = ""


class InvoiceDocument(BaseModel):
    """One printable invoice (請求書)."""

    title: str = "請 求 書"
    issue_date: str
    due_date: str

    recipient_name: str
    recipient_postal_code: str
    recipient_address: str
    greeting: str = "下記の通り、ご請求申し上げます。"

    sender_name: str
    sender_address_lines: List[str]
    seal_glyph: str

    amount_label: str = "ご請求金額(税込)"
    amount_display: str

    bank_info: str
    bank_payee: str
    fee_note: str = "振込手数料は御社のご負担にてお願いいたします。"

    rows: List[DetailRow] = Field(default_factory=list)
    remarks_label: str = "備考"


def seal_glyph(name: str) -> str:
    """Text inside the seal: the part of the name before the first space."""
    return (name or "").split(" ")[0]


def format_number(amount: float) -> Optional[str]:
    """Thousands-separated amount with up to 3 fraction digits, or None if not finite."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount):
        return None
    text = f"{amount:,.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def format_amount(amount: float) -> str:
    """Amount with the yen prefix, e.g. ¥6,000; a fallback dash when unreadable."""
    number = format_number(amount)
    return AMOUNT_FALLBACK if number is None else f"¥{number}"


def input_amount(amount: float) -> str:
    """Value for the verify table's number input; blank when unreadable."""
    number = format_number(amount)
    return "" if number is None else number.replace(",", "")


def split_address(address: str, placeholder: str) -> List[str]:
    """Postal code line and locality line, split at the first space."""
    postal, _, locality = (address or placeholder).partition(" ")
    return [line for line in (postal, locality.strip()) if line]


def _add_month(day: date) -> date:
    year, month = (day.year + 1, 1) if day.month == 12 else (day.year, day.month + 1)
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last))


def _era_date(day: date, era_offset: int) -> str:
    return f"{day.year - era_offset:02d}/{day.month:02d}/{day.day:02d}"


def invoice_dates(settings: Settings, today: Optional[date] = None) -> Tuple[str, str]:
    """Issue and due date strings according to settings.date_policy."""
    if settings.date_policy == "fixed":
        return settings.fixed_issue_date, settings.fixed_due_date
    today = today or date.today()
    return _era_date(today, settings.era_offset), _era_date(_add_month(today), settings.era_offset)


def render(item: LineItem, settings: Settings, today: Optional[date] = None) -> InvoiceDocument:
    """Build the invoice for one line item. Never raises on a bad amount."""
    today = today or date.today()
    issue_date, due_date = invoice_dates(settings, today)
    number = format_number(item.amount)

    rows = [DetailRow() for _ in range(DETAIL_ROWS)]
    rows[0] = DetailRow(
        period=f"{today.month}月分",
        description=settings.service_description,
        amount=AMOUNT_FALLBACK if number is None else number,
    )

    return InvoiceDocument(
        issue_date=issue_date,
        due_date=due_date,
        recipient_name=settings.recipient_name,
        recipient_postal_code=settings.recipient_postal_code,
        recipient_address=settings.recipient_address,
        sender_name=item.name,
        sender_address_lines=split_address(item.address, settings.placeholder_address),
        seal_glyph=seal_glyph(item.name),
        amount_display=format_amount(item.amount),
        bank_info=settings.bank_info,
        bank_payee=item.name,
        rows=rows,
    )


def render_all(items: List[LineItem], settings: Settings, today: Optional[date] = None) -> List[InvoiceDocument]:
    return [render(item, settings, today) for item in items]
