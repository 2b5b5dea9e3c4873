"""
Extract node: reads payees and amounts from the receipt with Gemini.

Calls the generateContent REST endpoint directly so the request body and the
response envelope are exactly what we send and read:

    request:  {contents: [{role, parts: [{text}, {inlineData}]}], generationConfig}
    response: candidates[0].content.parts[0].text  ->  '[{"name": ..., "amount": ...}]'

One call per extraction. No retry, no streaming.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from receipt_invoicer.config import Settings
from receipt_invoicer.errors import ExtractionError
from receipt_invoicer.graph.state import ExtractionState, LineItem
from receipt_invoicer.prompts.extraction_prompt import EXTRACTION_PROMPT

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def build_payload(image_b64: str, mime_type: str, prompt: str = EXTRACTION_PROMPT) -> Dict[str, Any]:
    """Build the generateContent request body."""
    return {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"text": prompt},
                    {"inlineData": {"mimeType": mime_type, "data": image_b64}},
                ],
            }
        ],
        "generationConfig": {
            "responseMimeType": "application/json",
        },
    }


def _first_text(envelope: Any) -> str:
    """Return candidates[0].content.parts[0].text or raise a schema error."""
    try:
        text = envelope["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise ExtractionError.schema() from None
    if not isinstance(text, str):
        raise ExtractionError.schema()
    return text


def _extract_json(text: str) -> Any:
    """Decode model output, tolerating markdown fences."""
    cleaned = re.sub(r"^```(?:json)?\s*", "", text.strip())
    cleaned = re.sub(r"\s*```$", "", cleaned)
    return json.loads(cleaned)


def parse_line_items(text: str) -> List[LineItem]:
    """Turn the model's JSON text into LineItems.

    Field values are not validated: a missing name becomes "" and an amount
    that is not a number becomes NaN.
    """
    try:
        parsed = _extract_json(text)
    except json.JSONDecodeError as exc:
        raise ExtractionError.parse(str(exc)) from exc

    if not isinstance(parsed, list):
        raise ExtractionError.parse(f"expected a JSON array, got {type(parsed).__name__}")

    items: List[LineItem] = []
    for i, raw in enumerate(parsed):
        if not isinstance(raw, dict):
            raise ExtractionError.parse(f"entry {i} is not an object")
        items.append(LineItem(name=raw.get("name"), amount=raw.get("amount")))
    return items


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ExtractionClient:
    """Async client for the Gemini generateContent endpoint.

    transport is forwarded to httpx.AsyncClient (tests pass an httpx.MockTransport).
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport
        if not settings.google_api_key:
            logger.warning("GOOGLE_API_KEY is not set in environment/.env; extraction calls will be rejected")

    @property
    def url(self) -> str:
        return f"{self.settings.extraction_api_base}/models/{self.settings.extraction_model}:generateContent"

    async def extract(self, image_b64: str, mime_type: str) -> List[LineItem]:
        """Send one extraction request and return the line items in response order."""
        params = {"key": self.settings.google_api_key} if self.settings.google_api_key else None
        payload = build_payload(image_b64, mime_type)

        logger.info("Requesting extraction from %s", self.settings.extraction_model)
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.settings.extraction_timeout,
            ) as client:
                response = await client.post(self.url, params=params, json=payload)
        except httpx.RequestError as exc:
            raise ExtractionError.transport(str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            raise ExtractionError.status(response.status_code)

        try:
            envelope = response.json()
        except ValueError:
            raise ExtractionError.schema("the response body is not JSON") from None

        text = _first_text(envelope)
        logger.debug("Extraction model raw response:\n%s", text)

        items = parse_line_items(text)
        logger.info("Extracted %d line items from receipt image", len(items))
        return items


# ---------------------------------------------------------------------------
# Graph node
# ---------------------------------------------------------------------------

def make_extract_node(client: ExtractionClient):
    """Bind the extract node to a client."""

    async def extract_node(state: ExtractionState) -> Dict[str, Any]:
        """LangGraph node: send state.payload to the model, return the items."""
        if state.payload is None:
            raise ExtractionError.schema("no encoded image was produced")
        items = await client.extract(state.payload, state.image.content_type)
        return {"items": items}

    return extract_node
