from fastapi import APIRouter, Header, HTTPException, Request

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/accounts/{chat_ref}/activate")
async def activate_account(request: Request, chat_ref: str, x_admin_token: str | None = Header(None)):
    """Mark a chat's account as paid."""
    controller = request.app.state.account_controller
    controller.authorize(x_admin_token)
    try:
        return await controller.activate(chat_ref)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
