"""Schema definitions for the bee diagnosis tool."""

from typing import Any, Dict

from models.diagnosis_report import Severity

FUNCTION_NAME = "report_bee_diagnosis"

FUNCTION_DEFINITION: Dict[str, Any] = {
    "type": "function",
    "name": FUNCTION_NAME,
    "description": (
        "Return whether bees are visible, the likely condition, its severity, and care advice."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "subject_detected": {
                "type": "boolean",
                "description": "True when the image shows bees, brood or comb.",
            },
            "condition_name": {
                "type": "string",
                "description": "Name of the most likely disease or 'healthy'.",
            },
            "severity": {
                "type": "string",
                "description": "Severity grade of the condition.",
                "enum": [s.value for s in Severity],
            },
            "description": {
                "type": "string",
                "description": "Visible signs supporting the diagnosis.",
            },
            "recommended_treatment": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Treatment steps, most important first.",
            },
            "preventative_measures": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Measures to prevent recurrence.",
            },
        },
        "required": [
            "subject_detected",
            "condition_name",
            "severity",
            "description",
            "recommended_treatment",
            "preventative_measures",
        ],
        "additionalProperties": False,
    },
    "strict": True,
}
