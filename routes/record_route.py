"""FastAPI routes for diagnosis records and their feedback."""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

router = APIRouter(prefix="/records", tags=["records"])


class FeedbackPayload(BaseModel):
    chat_ref: str
    verdict: str


@router.get("/{record_id}")
async def get_record(request: Request, record_id: int):
    """Return a stored diagnosis record."""
    record = await request.app.state.record_store.get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return record.to_dict()


@router.post("/{record_id}/feedback")
async def post_feedback(request: Request, record_id: int, payload: FeedbackPayload):
    """Confirm or reject a delivered diagnosis."""
    controller = request.app.state.feedback_controller
    try:
        result = await controller.submit_feedback(payload.chat_ref, record_id, payload.verdict)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if result["outcome"] == "not_found":
        raise HTTPException(status_code=404, detail="Record not found")
    return result
