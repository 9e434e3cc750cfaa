"""Controller for operator actions on accounts."""

from typing import Any, Dict

from fastapi import HTTPException

from dal.account_store import AccountStore
from models.outbound_message import OutboundMessage
from services import messages
from services.notifier import Notifier


class AccountController:
    """Activate paid accounts on behalf of the operator."""

    def __init__(self, account_store: AccountStore, notifier: Notifier, admin_token: str) -> None:
        self.account_store = account_store
        self.notifier = notifier
        self.admin_token = admin_token

    def authorize(self, token: str | None) -> None:
        """Raise HTTPException(403) unless `token` matches the configured admin token."""
        if not self.admin_token or token != self.admin_token:
            raise HTTPException(status_code=403, detail="Admin token required.")

    async def activate(self, chat_ref: str) -> Dict[str, Any]:
        account = await self.account_store.activate(chat_ref)
        await self.notifier.notify(chat_ref, OutboundMessage(kind="text", text=messages.ACTIVATED))
        return {"chat_ref": account.chat_ref, "is_paid": account.is_paid, "free_scans": account.free_scans}
