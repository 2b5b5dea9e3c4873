"""
State schema for the Receipt Invoicer.

This file defines the Pydantic models shared by the extraction graph, the
verification store and the page controller. AppState is the single state
container for one browser session; controller actions replace it rather than
mutating module globals.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---- Utility ----
_CURRENCY_MARKS = ("¥", "￥")


def coerce_amount(value: Any) -> float:
	"""Read an amount the way the verification table does.

	Numbers pass through. Strings lose whitespace, thousands separators, a
	leading yen sign and a trailing 円; an empty string is 0. Anything else
	that cannot be read as a number becomes NaN.
	"""
	if value is None:
		return math.nan
	if isinstance(value, bool):
		return float(value)
	if isinstance(value, (int, float)):
		return float(value)
	if isinstance(value, str):
		text = value.strip().replace(",", "")
		for mark in _CURRENCY_MARKS:
			text = text.removeprefix(mark)
		text = text.removesuffix("円").strip()
		if not text:
			return 0.0
		try:
			return float(text)
		except ValueError:
			return math.nan
	return math.nan


class View(str, Enum):
	"""Which page the controller is showing."""

	UPLOAD = "upload"
	VERIFY = "verify"
	GENERATE = "generate"


class LineItem(BaseModel):
	"""One payee/amount/address record.

	- name: payee name (受取人名) as read from the receipt.
	- amount: payment amount in yen; NaN when the value could not be read.
	- address: sender address printed on the invoice; never read from the image.
	"""

	model_config = ConfigDict(validate_assignment=True)

	name: str = Field(default="")
	amount: float = Field(default=math.nan)
	address: str = Field(default="")

	@field_validator("amount", mode="before")
	@classmethod
	def _coerce_amount(cls, v: Any) -> float:
		return coerce_amount(v)

	@field_validator("name", "address", mode="before")
	@classmethod
	def _coerce_text(cls, v: Any) -> str:
		if v is None:
			return ""
		return v if isinstance(v, str) else str(v)


class ReceiptImage(BaseModel):
	"""The uploaded receipt plus its display handle (served for the preview)."""

	filename: str
	content_type: str = "image/png"
	data: bytes = Field(repr=False)
	handle: str = Field(..., description="Opaque token for GET /receipt-images/{handle}")


class ExtractionState(BaseModel):
	"""State flowing through the encode → extract graph."""

	image: ReceiptImage
	payload: Optional[str] = Field(default=None, description="Base64 image data")
	items: List[LineItem] = Field(default_factory=list)


class AppState(BaseModel):
	"""Everything one browser session knows.

	Notes:
	- editable_set is what the verify table edits.
	- extracted_set is the model output until commit, then the finalized copy
	  the invoices are rendered from.
	"""

	current_view: View = View.UPLOAD
	receipt_image: Optional[ReceiptImage] = None
	extracted_set: List[LineItem] = Field(default_factory=list)
	editable_set: List[LineItem] = Field(default_factory=list)
	loading: bool = False
	error_message: str = ""

	def snapshot(self) -> dict:
		"""JSON-safe view of the state, without the image bytes."""
		data = self.model_dump(mode="json", exclude={"receipt_image"})
		# NaN/inf amounts are not valid JSON
		for key in ("extracted_set", "editable_set"):
			for row in data[key]:
				if not isinstance(row["amount"], (int, float)) or not math.isfinite(row["amount"]):
					row["amount"] = None
		image = self.receipt_image
		data["receipt_image"] = (
			None if image is None
			else {"filename": image.filename, "content_type": image.content_type, "handle": image.handle}
		)
		return data
