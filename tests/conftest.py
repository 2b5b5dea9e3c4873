"""Pytest configuration and shared fixtures for Receipt Invoicer tests.

The Gemini endpoint is never contacted: every client gets an
httpx.MockTransport that answers from a FakeGemini.
"""

import json
from collections import OrderedDict
from typing import Any, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from receipt_invoicer import main
from receipt_invoicer.config import Settings
from receipt_invoicer.controller import ImageHandles, PageController
from receipt_invoicer.graph.nodes.extract import ExtractionClient
from receipt_invoicer.graph.workflow import build_graph

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def envelope(text: str) -> dict:
    """A generateContent response whose first part carries text."""
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": text}]},
                "finishReason": "STOP",
            }
        ]
    }


class FakeGemini:
    """Records requests and answers with a canned response."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.body: Any = envelope("[]")

    def reply_items(self, items: list) -> None:
        self.reply(envelope(json.dumps(items, ensure_ascii=False)))

    def reply(self, body: Any, status_code: int = 200) -> None:
        self.body = body
        self.status_code = status_code

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.body, (dict, list)):
            return httpx.Response(self.status_code, json=self.body)
        return httpx.Response(self.status_code, content=self.body)

    @property
    def last_payload(self) -> Optional[dict]:
        return json.loads(self.requests[-1].content) if self.requests else None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def settings() -> Settings:
    return Settings(google_api_key="test-key")


@pytest.fixture
def gemini() -> FakeGemini:
    return FakeGemini()


@pytest.fixture
def controller(settings: Settings, gemini: FakeGemini) -> PageController:
    app_graph = build_graph(ExtractionClient(settings, transport=gemini.transport()))
    return PageController(settings, app_graph, images=ImageHandles())


@pytest.fixture
def client(settings: Settings, gemini: FakeGemini, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    """TestClient bound to fresh app singletons and the fake model."""
    app_graph = build_graph(ExtractionClient(settings, transport=gemini.transport()))
    monkeypatch.setattr(main, "_SETTINGS", settings)
    monkeypatch.setattr(main, "_APP_GRAPH", app_graph)
    monkeypatch.setattr(main, "_IMAGES", ImageHandles())
    monkeypatch.setattr(main, "_SESSIONS", OrderedDict())
    main.limiter.reset()
    return TestClient(main.app)
