"""Shared fixtures for the diagnosis service tests."""

from __future__ import annotations

import io
import json
from types import SimpleNamespace
from typing import Any, Dict, List

import httpx
import openai
import pytest
from PIL import Image

from models.outbound_message import OutboundMessage

OPENAI_URL = "https://api.openai.com/v1/responses"


def make_jpeg(size=(64, 48), color=(200, 160, 40)) -> bytes:
    """Return a small JPEG image."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="JPEG")
    return buffer.getvalue()


def rate_limit_error(message: str = "You exceeded your current quota") -> openai.RateLimitError:
    response = httpx.Response(429, request=httpx.Request("POST", OPENAI_URL))
    return openai.RateLimitError(message, response=response, body=None)


def permission_error(message: str = "Permission denied") -> openai.PermissionDeniedError:
    response = httpx.Response(403, request=httpx.Request("POST", OPENAI_URL))
    return openai.PermissionDeniedError(message, response=response, body=None)


def server_error(message: str = "Bad request") -> openai.BadRequestError:
    response = httpx.Response(400, request=httpx.Request("POST", OPENAI_URL))
    return openai.BadRequestError(message, response=response, body=None)


def tool_response(arguments: Dict[str, Any], name: str = "report_bee_diagnosis") -> SimpleNamespace:
    """Build an object shaped like a Responses API result with one function call."""
    call = SimpleNamespace(type="function_call", name=name, arguments=json.dumps(arguments))
    usage = SimpleNamespace(input_tokens=120, output_tokens=80)
    return SimpleNamespace(output=[call], usage=usage)


class RecordingNotifier:
    """Notifier that keeps every call for assertions."""

    def __init__(self) -> None:
        self.messages: List[tuple] = []
        self.positions: List[tuple] = []
        self.operator: List[str] = []

    async def notify(self, chat_ref: str, message: OutboundMessage) -> None:
        self.messages.append((chat_ref, message))

    async def notify_queue_position(self, chat_ref: str, position: int) -> None:
        self.positions.append((chat_ref, position))

    async def notify_operator(self, text: str) -> None:
        self.operator.append(text)

    def texts_for(self, chat_ref: str) -> List[str]:
        return [m.text for ref, m in self.messages if ref == chat_ref]


@pytest.fixture
def sample_report() -> Dict[str, Any]:
    return {
        "subject_detected": True,
        "condition_name": "Varroa mite infestation",
        "severity": "MODERATE",
        "description": "Mites visible on several worker bees.",
        "recommended_treatment": ["Oxalic acid treatment", "Drone brood removal"],
        "preventative_measures": ["Monitor mite counts monthly"],
    }


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_jpeg()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
