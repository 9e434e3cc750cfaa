"""User-facing texts and report rendering."""

from typing import Optional

from models.diagnosis_report import DiagnosisReport

WELCOME = (
    "BeeSense: honey-bee disease diagnosis.\n"
    "Send a clear photo of your bees, brood or comb to get a diagnosis with "
    "treatment and prevention advice."
)
ANALYSING = "Analysing your image..."
NO_SUBJECT = "No bees, brood or comb were detected in this image. Please send a clearer photo."
TECHNICAL_ERROR = "A technical error occurred during the analysis. Please try again later."
PAYMENT_REQUIRED = (
    "Your free scans are used up.\n"
    "To keep using the diagnosis service, activate a subscription and send the "
    "payment receipt or code here; the team will activate your account."
)
PAYMENT_RECEIVED = "Message received. The team will contact you once it has been verified."
ACTIVATED = "Your subscription is active. You can now use the service without limits."
FEEDBACK_THANKS = "Thank you for your feedback."
FEEDBACK_ALREADY_RECORDED = "Your feedback on this diagnosis was already recorded."
FEEDBACK_UNKNOWN = "This diagnosis is no longer available for feedback."

SEVERITY_LABELS = {
    "HEALTHY": "Healthy",
    "LOW": "Low",
    "MODERATE": "Moderate",
    "CRITICAL": "Critical",
    "UNKNOWN": "Unknown",
}


def queue_position(position: int) -> str:
    if position <= 1:
        return ANALYSING
    return f"Your image is number {position} in the queue. It will be analysed shortly."


def payment_forward(chat_ref: str, text: str) -> str:
    return f"Possible payment message from {chat_ref}:\n{text}\nTo activate: POST /admin/accounts/{chat_ref}/activate"


def render_report(report: DiagnosisReport, *, is_paid: bool, free_scans: Optional[int]) -> str:
    """Render a diagnosis as plain text for chat delivery."""
    lines = [
        "Examination results:",
        f"Condition: {report.condition_name or 'Not identified'}",
        f"Severity: {SEVERITY_LABELS.get(report.severity.value, report.severity.value)}",
        "",
        f"Description: {report.description}",
    ]
    if report.recommended_treatment:
        lines += ["", "Recommended treatment:"] + [f"- {item}" for item in report.recommended_treatment]
    if report.preventative_measures:
        lines += ["", "Prevention:"] + [f"- {item}" for item in report.preventative_measures]
    lines.append("")
    if is_paid:
        lines.append("Unlimited subscription")
    elif free_scans is not None:
        lines.append(f"Remaining free scans: {free_scans}")
    return "\n".join(lines).rstrip()
