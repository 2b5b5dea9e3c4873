"""
Exceptions raised by the Receipt Invoicer.

ReceiptInvoicerError (base)
├── EncodeError             receipt image could not be read
├── ExtractionError         model call failed (kind: status/schema/parse/transport)
└── InvalidTransitionError  controller action called from the wrong view
"""

from __future__ import annotations

from typing import Optional


class ReceiptInvoicerError(Exception):
    """Base class for all errors raised by this package."""
    pass


class EncodeError(ReceiptInvoicerError):
    """Raised when the uploaded receipt cannot be read into memory."""
    pass


class ExtractionError(ReceiptInvoicerError):
    """Raised when the extraction call or its response handling fails.

    kind is one of:
    - "status":    the API answered with a non-2xx status (status_code is set)
    - "schema":    the envelope has no candidates[0].content.parts[0].text
    - "parse":     that text is not a JSON array of objects
    - "transport": the request never completed (connection error, timeout)
    """

    STATUS = "status"
    SCHEMA = "schema"
    PARSE = "parse"
    TRANSPORT = "transport"

    def __init__(self, kind: str, message: str, status_code: Optional[int] = None):
        self.kind = kind
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def status(cls, status_code: int) -> "ExtractionError":
        return cls(cls.STATUS, f"API call failed with status: {status_code}", status_code=status_code)

    @classmethod
    def schema(cls, detail: str = "the AI model returned an unexpected response") -> "ExtractionError":
        return cls(cls.SCHEMA, f"Failed to extract data, {detail}")

    @classmethod
    def parse(cls, detail: str) -> "ExtractionError":
        return cls(cls.PARSE, f"Could not parse the extracted data: {detail}")

    @classmethod
    def transport(cls, detail: str) -> "ExtractionError":
        return cls(cls.TRANSPORT, f"Could not reach the extraction service: {detail}")


class InvalidTransitionError(ReceiptInvoicerError):
    """Raised when a page action is not allowed from the current view."""

    def __init__(self, action: str, current_view: str):
        self.action = action
        self.current_view = current_view
        super().__init__(f"Cannot {action} while on the '{current_view}' view.")
