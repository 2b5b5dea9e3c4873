"""
Verification store: the editable working copy behind the verify table.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List

from receipt_invoicer.graph.state import LineItem

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "address", "amount")


class VerificationStore:
    """Field-level edits over a list of LineItems.

    The store edits the list it is given in place. commit() hands out a deep
    copy, so edits made after a commit never reach already rendered invoices.
    """

    def __init__(self, items: List[LineItem]):
        self.items = items

    @staticmethod
    def stage(extracted: Iterable[LineItem], placeholder_address: str) -> List[LineItem]:
        """Copy the extracted items and attach the placeholder address to each."""
        return [item.model_copy(update={"address": placeholder_address}, deep=True) for item in extracted]

    def check(self, index: int, field: str) -> None:
        """Raise unless (index, field) names an editable cell."""
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"unknown field {field!r}; expected one of {', '.join(EDITABLE_FIELDS)}")
        if not 0 <= index < len(self.items):
            raise IndexError(f"row {index} out of range for {len(self.items)} rows")

    def set_field(self, index: int, field: str, value: Any) -> LineItem:
        """Set one field of one row; amount is coerced to a number."""
        self.check(index, field)

        item = self.items[index]
        # validate_assignment runs the LineItem coercion validators
        setattr(item, field, value)
        logger.debug("Row %d: %s set to %r", index, field, getattr(item, field))
        return item

    def commit(self) -> List[LineItem]:
        """Return the finalized set, copied by value."""
        return [item.model_copy(deep=True) for item in self.items]
