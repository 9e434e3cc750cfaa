"""FastAPI routes standing in for the chat transport."""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.submission_controller import SubmissionController

router = APIRouter(prefix="/chats", tags=["chats"])


class ImagePayload(BaseModel):
    image_url: str


class TextPayload(BaseModel):
    text: str


def _get_controller(request: Request) -> SubmissionController:
    """Retrieve the shared submission controller from the app state."""
    controller = getattr(request.app.state, "submission_controller", None)
    if controller is None:
        raise HTTPException(status_code=500, detail="Submission controller not initialized.")
    return controller


@router.post("/{chat_ref}/images", status_code=202)
async def submit_image(request: Request, chat_ref: str, payload: ImagePayload):
    """Queue an image for diagnosis and return its queue position."""
    try:
        return await _get_controller(request).submit_image(chat_ref, payload.image_url)
    except HTTPException:
        raise
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise HTTPException(status_code=500, detail="Failed to queue image.") from exc


@router.post("/{chat_ref}/messages")
async def submit_text(request: Request, chat_ref: str, payload: TextPayload):
    """Accept a free-text message (payment codes and receipts)."""
    try:
        return await _get_controller(request).submit_text(chat_ref, payload.text)
    except HTTPException:
        raise
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise HTTPException(status_code=500, detail="Failed to handle message.") from exc


@router.get("/{chat_ref}/outbox")
async def drain_outbox(request: Request, chat_ref: str):
    """Return and clear the notifications waiting for a chat."""
    notifier = getattr(request.app.state, "notifier", None)
    if notifier is None:
        raise HTTPException(status_code=500, detail="Notifier not initialized.")
    return {"chat_ref": chat_ref, "messages": [m.to_dict() for m in notifier.drain(chat_ref)]}
