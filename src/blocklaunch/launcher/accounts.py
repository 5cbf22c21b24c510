from __future__ import annotations

from typing import Protocol

from blocklaunch.common.types import Account


OFFLINE_UUID = "00000000-0000-0000-0000-000000000000"
OFFLINE_ACCESS_TOKEN = "0"


class AccountProvider(Protocol):
    def selected_account(self) -> Account | None: ...


class StaticAccountProvider:
    """Hands out one fixed account (or none), for CLI use and tests."""

    def __init__(self, account: Account | None = None):
        self._account = account

    def selected_account(self) -> Account | None:
        return self._account


def offline_account(username: str) -> Account:
    return Account(
        username=username or "Player",
        uuid=OFFLINE_UUID,
        access_token=OFFLINE_ACCESS_TOKEN,
        type="offline",
    )


def auth_fields(account: Account) -> dict[str, str]:
    """Identity values passed to the game for this account type."""
    if account.is_microsoft:
        return {
            "username": account.username,
            "uuid": account.uuid,
            "access_token": account.access_token,
            "user_type": "msa",
        }
    return {
        "username": account.username,
        "uuid": OFFLINE_UUID,
        "access_token": OFFLINE_ACCESS_TOKEN,
        "user_type": "legacy",
    }
