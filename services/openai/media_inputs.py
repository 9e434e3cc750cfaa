"""Utilities to build image input payloads for the Responses API."""

import base64
from typing import Any, Dict, List


def to_image_data_url(image_bytes: bytes, mime_type: str = "image/jpeg") -> str:
    """Convert raw image bytes into a data URL suitable for vision input."""
    if not image_bytes:
        raise ValueError("Image bytes are required.")
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def build_inputs(system_prompt: str, user_prompt: str, *, image_bytes: bytes) -> List[Dict[str, Any]]:
    """Build the Responses API input array: system, instructions, image."""
    return [
        {
            "type": "message",
            "role": "system",
            "content": [{"type": "input_text", "text": system_prompt}],
        },
        {"type": "message", "role": "user", "content": [{"type": "input_text", "text": user_prompt}]},
        {
            "type": "message",
            "role": "user",
            "content": [{"type": "input_image", "image_url": to_image_data_url(image_bytes)}],
        },
    ]
