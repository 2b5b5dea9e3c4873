"""Tests for the invoice renderer."""

import math
from datetime import date

import pytest

from receipt_invoicer.config import Settings
from receipt_invoicer.graph.state import LineItem
from receipt_invoicer.rendering import (
    AMOUNT_FALLBACK,
    DETAIL_ROWS,
    format_amount,
    input_amount,
    invoice_dates,
    render,
    seal_glyph,
    split_address,
)


@pytest.mark.parametrize(
    "name, glyph",
    [
        ("坂口 暁子", "坂口"),
        ("上河内さや", "上河内さや"),
        ("山田太郎", "山田太郎"),
        ("", ""),
        (" 山田", ""),
        ("a b c", "a"),
    ],
)
def test_seal_glyph(name, glyph):
    assert seal_glyph(name) == glyph


@pytest.mark.parametrize(
    "amount, text",
    [
        (6000, "¥6,000"),
        (183764.0, "¥183,764"),
        (1234.5, "¥1,234.5"),
        (0, "¥0"),
        (1000000, "¥1,000,000"),
        (math.nan, AMOUNT_FALLBACK),
        (math.inf, AMOUNT_FALLBACK),
    ],
)
def test_format_amount(amount, text):
    assert format_amount(amount) == text


def test_input_amount_is_plain_number():
    assert input_amount(183764.0) == "183764"
    assert input_amount(math.nan) == ""


def test_split_address():
    assert split_address("〒523-0892 滋賀県近江八幡市出町", "unused") == ["〒523-0892", "滋賀県近江八幡市出町"]
    assert split_address("東京都", "unused") == ["東京都"]
    assert split_address("", "〒1 場所") == ["〒1", "場所"]


def test_render_invoice():
    settings = Settings()
    item = LineItem(name="山田太郎", amount=6000, address=settings.placeholder_address)

    doc = render(item, settings, today=date(2024, 6, 30))

    assert doc.amount_display == "¥6,000"
    assert doc.seal_glyph == "山田太郎"
    assert doc.sender_name == "山田太郎"
    assert doc.bank_payee == "山田太郎"
    assert doc.sender_address_lines == ["〒523-0892", "滋賀県近江八幡市出町"]
    assert doc.recipient_name == "株式会社フォナス 御中"
    assert doc.recipient_postal_code == "〒529-1551"
    assert doc.bank_info == settings.bank_info
    assert len(doc.rows) == DETAIL_ROWS
    assert (doc.rows[0].period, doc.rows[0].description, doc.rows[0].amount) == ("6月分", "配膳業務請負料", "6,000")
    assert all(row.amount == "" for row in doc.rows[1:])


def test_recipient_block_is_the_same_for_every_item():
    settings = Settings(recipient_name="テスト株式会社 御中")
    a = render(LineItem(name="A", amount=1), settings)
    b = render(LineItem(name="B", amount=2, address="x y"), settings)
    assert (a.recipient_name, a.recipient_address) == (b.recipient_name, b.recipient_address)
    assert a.recipient_name == "テスト株式会社 御中"


def test_render_never_crashes_on_bad_amount():
    doc = render(LineItem(name="坂口 暁子", amount="not a number"), Settings())
    assert doc.amount_display == AMOUNT_FALLBACK
    assert doc.rows[0].amount == AMOUNT_FALLBACK
    assert doc.seal_glyph == "坂口"


def test_fixed_dates():
    assert invoice_dates(Settings()) == ("30/06/24", "30/07/24")


def test_current_dates_follow_today():
    settings = Settings(date_policy="current")
    assert invoice_dates(settings, date(2026, 1, 31)) == ("08/01/31", "08/02/28")
    assert invoice_dates(settings, date(2025, 12, 15)) == ("07/12/15", "08/01/15")
