"""Helpers to parse Responses API outputs."""

import json
from typing import Any, Dict, Optional

from pydantic import ValidationError

from models.diagnosis_report import DiagnosisReport


class MalformedResponse(ValueError):
    """The model output did not contain a valid diagnosis tool call."""


def parse_diagnosis(response: Any, *, tool_name: str) -> DiagnosisReport:
    """Extract and validate the diagnosis tool call arguments."""
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) == "function_call" and getattr(item, "name", None) == tool_name:
            try:
                args = json.loads(getattr(item, "arguments", "") or "{}")
            except json.JSONDecodeError as exc:
                raise MalformedResponse(f"Tool arguments are not valid JSON: {exc}") from exc
            try:
                return DiagnosisReport.model_validate(args)
            except ValidationError as exc:
                raise MalformedResponse(f"Tool arguments violate the diagnosis schema: {exc}") from exc
    raise MalformedResponse(f"No function_call output for '{tool_name}' found in Responses API output.")


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
    """Return token usage information from the response, if present."""
    usage = getattr(response, "usage", None)
    return {
        "input_tokens": getattr(usage, "input_tokens", None) if usage else None,
        "output_tokens": getattr(usage, "output_tokens", None) if usage else None,
    }
