"""Structured report returned by the analysis model."""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class Severity(str, Enum):
    HEALTHY = "HEALTHY"
    LOW = "LOW"
    MODERATE = "MODERATE"
    CRITICAL = "CRITICAL"
    UNKNOWN = "UNKNOWN"


class DiagnosisReport(BaseModel):
    """Validated arguments of the diagnosis tool call."""

    subject_detected: bool
    condition_name: str = ""
    severity: Severity = Severity.UNKNOWN
    description: str = ""
    recommended_treatment: List[str] = Field(default_factory=list)
    preventative_measures: List[str] = Field(default_factory=list)
