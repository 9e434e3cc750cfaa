"""File-backed store of per-chat accounts for the free-scan quota."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Dict, Optional

from dal.json_file import JsonFile
from models.account import Account
from services.errors import StoreIOFailure

LOGGER = logging.getLogger(__name__)


class AccountStore:
    """Track free scans and paid activation for each chat.

    Args:
        path: Location of the accounts JSON file.
        free_scans: Quota granted to newly seen chats.
    """

    def __init__(self, path: Path | str, free_scans: int = 3) -> None:
        self._file = JsonFile(path, default=dict)
        self.free_scans = free_scans
        self._accounts: Dict[str, Account] = {}
        self._lock = asyncio.Lock()

    async def load(self) -> int:
        try:
            raw = await self._file.read()
        except StoreIOFailure as exc:
            LOGGER.error("Account store unreadable, starting empty: %s", exc)
            raw = {}
        accounts: Dict[str, Account] = {}
        for chat_ref, item in (raw.items() if isinstance(raw, dict) else []):
            try:
                accounts[str(chat_ref)] = Account.from_dict(item)
            except (KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("Skipping malformed account %r: %s", chat_ref, exc)
        self._accounts = accounts
        return len(accounts)

    def get(self, chat_ref: str) -> Optional[Account]:
        return self._accounts.get(chat_ref)

    async def get_or_create(self, chat_ref: str) -> Account:
        """Return the account for `chat_ref`, creating it with the free quota."""
        async with self._lock:
            account = self._accounts.get(chat_ref)
            if account is None:
                account = Account(chat_ref=chat_ref, free_scans=self.free_scans, joined_at=time.time())
                self._accounts[chat_ref] = account
                await self._flush()
            return account

    async def can_scan(self, chat_ref: str) -> bool:
        account = await self.get_or_create(chat_ref)
        return account.can_scan

    async def consume_scan(self, chat_ref: str) -> Account:
        """Spend one free scan for unpaid accounts and return the account."""
        account = await self.get_or_create(chat_ref)
        async with self._lock:
            if not account.is_paid and account.free_scans > 0:
                account.free_scans -= 1
                await self._flush()
        return account

    async def activate(self, chat_ref: str) -> Account:
        """Mark the account as paid (unlimited scans)."""
        account = await self.get_or_create(chat_ref)
        async with self._lock:
            if not account.is_paid:
                account.is_paid = True
                await self._flush()
        return account

    async def _flush(self) -> None:
        try:
            await self._file.write({ref: acc.to_dict() for ref, acc in self._accounts.items()})
        except StoreIOFailure as exc:
            LOGGER.error("Account store write failed; keeping changes in memory only: %s", exc)
