"""Tests for the verification store."""

import math

import pytest

from receipt_invoicer.graph.state import LineItem
from receipt_invoicer.verification import VerificationStore

PLACEHOLDER = "〒523-0892 滋賀県近江八幡市出町"


@pytest.fixture
def extracted():
    return [LineItem(name="上河内さや", amount=9900), LineItem(name="坂口 暁子", amount=183764)]


@pytest.fixture
def store(extracted):
    return VerificationStore(VerificationStore.stage(extracted, PLACEHOLDER))


def test_stage_attaches_placeholder_address(extracted):
    staged = VerificationStore.stage(extracted, PLACEHOLDER)
    assert len(staged) == len(extracted)
    assert all(item.address == PLACEHOLDER for item in staged)
    # the extracted items themselves are untouched
    assert all(item.address == "" for item in extracted)


def test_staged_rows_are_independent_of_extracted(extracted, store):
    store.set_field(0, "name", "別人")
    assert extracted[0].name == "上河内さや"


@pytest.mark.parametrize(
    "value, expected",
    [("500", 500), (" 6000 ", 6000), ("1,200", 1200), ("¥3,000", 3000), ("4500円", 4500), ("12.5", 12.5), ("", 0), (700, 700)],
)
def test_amount_is_coerced_to_number(store, value, expected):
    item = store.set_field(0, "amount", value)
    assert item.amount == expected
    assert isinstance(store.items[0].amount, float)


def test_unreadable_amount_becomes_nan(store):
    store.set_field(1, "amount", "abc")
    assert math.isnan(store.items[1].amount)


def test_text_fields_are_stored_as_given(store):
    store.set_field(1, "name", "坂口 暁子 ")
    store.set_field(1, "address", "〒100-0001 東京都千代田区")
    assert store.items[1].name == "坂口 暁子 "
    assert store.items[1].address == "〒100-0001 東京都千代田区"


@pytest.mark.parametrize("index", [2, 10, -1])
def test_out_of_range_index_fails_loudly(store, index):
    before = [item.model_copy() for item in store.items]
    with pytest.raises(IndexError):
        store.set_field(index, "amount", "1")
    assert store.items == before


def test_unknown_field_is_rejected(store):
    with pytest.raises(ValueError):
        store.set_field(0, "iban", "x")


def test_commit_copies_by_value(store):
    finalized = store.commit()
    store.set_field(0, "amount", "1")
    store.set_field(0, "name", "changed")

    assert finalized[0].amount == 9900
    assert finalized[0].name == "上河内さや"
    assert finalized[0] is not store.items[0]
