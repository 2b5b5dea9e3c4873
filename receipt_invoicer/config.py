"""
Runtime configuration for the Receipt Invoicer.

Everything is read from the environment (a local .env is loaded first, never
overriding variables that are already set). The invoice recipient, bank
details and placeholder sender address are configuration constants; nothing in
them is derived from the uploaded receipt.
"""

from __future__ import annotations

import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_PLACEHOLDER_ADDRESS = "〒523-0892 滋賀県近江八幡市出町"


class Settings(BaseModel):
    """Application settings. Construct directly in tests, from_env() elsewhere."""

    # ---- Extraction ----
    google_api_key: str = Field(default="", repr=False)
    extraction_model: str = "gemini-2.0-flash"
    extraction_api_base: str = DEFAULT_API_BASE
    extraction_timeout: float = Field(default=120.0, gt=0)
    extract_rate_limit: str = "20/minute"

    # ---- Sessions ----
    # Least recently used sessions are reset and dropped beyond this many.
    max_sessions: int = Field(default=500, gt=0)

    # ---- Verification ----
    placeholder_address: str = DEFAULT_PLACEHOLDER_ADDRESS

    # ---- Invoice constants ----
    recipient_name: str = "株式会社フォナス 御中"
    recipient_postal_code: str = "〒529-1551"
    recipient_address: str = "滋賀県東近江市宮川町883-103"
    bank_info: str = "滋賀銀行 守山支店 普通口座 0405190"
    service_description: str = "配膳業務請負料"

    # ---- Invoice dates ----
    # "fixed" prints the literals below, "current" derives them from today.
    date_policy: Literal["fixed", "current"] = "fixed"
    fixed_issue_date: str = "30/06/24"
    fixed_due_date: str = "30/07/24"
    era_offset: int = 2018

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(override=False)
        defaults = cls()
        return cls(
            google_api_key=os.getenv("GOOGLE_API_KEY", ""),
            extraction_model=os.getenv("EXTRACTION_MODEL", defaults.extraction_model),
            extraction_api_base=os.getenv("EXTRACTION_API_BASE", defaults.extraction_api_base).rstrip("/"),
            extraction_timeout=float(os.getenv("EXTRACTION_TIMEOUT", str(defaults.extraction_timeout))),
            extract_rate_limit=os.getenv("EXTRACT_RATE_LIMIT", defaults.extract_rate_limit),
            max_sessions=int(os.getenv("MAX_SESSIONS", str(defaults.max_sessions))),
            placeholder_address=os.getenv("PLACEHOLDER_ADDRESS", defaults.placeholder_address),
            recipient_name=os.getenv("RECIPIENT_NAME", defaults.recipient_name),
            recipient_postal_code=os.getenv("RECIPIENT_POSTAL_CODE", defaults.recipient_postal_code),
            recipient_address=os.getenv("RECIPIENT_ADDRESS", defaults.recipient_address),
            bank_info=os.getenv("BANK_INFO", defaults.bank_info),
            service_description=os.getenv("SERVICE_DESCRIPTION", defaults.service_description),
            date_policy=os.getenv("INVOICE_DATE_POLICY", defaults.date_policy).lower(),
            fixed_issue_date=os.getenv("INVOICE_ISSUE_DATE", defaults.fixed_issue_date),
            fixed_due_date=os.getenv("INVOICE_DUE_DATE", defaults.fixed_due_date),
            era_offset=int(os.getenv("INVOICE_ERA_OFFSET", str(defaults.era_offset))),
        )
