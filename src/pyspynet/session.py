"""Credential lifecycle on top of the key-value store."""

from __future__ import annotations

import asyncio
import logging

from pydantic import BaseModel, ConfigDict

from pyspynet._constants import (
    ADMIN_TOKEN_KEY,
    APP_DATA_CACHE_KEY,
    TUTORIAL_COMPLETED_KEY,
    USER_PHONE_KEY,
    USER_SESSION_TOKEN_KEY,
)
from pyspynet._redact import mask_phone
from pyspynet.store.base import KeyValueStore

_logger = logging.getLogger(__name__)


class Session(BaseModel):
    """Snapshot of the stored credentials.

    Parameters
    ----------
    phone : str or None
        Unverified identity hint. Its presence alone authenticates the
        user for navigation purposes.
    session_token : str or None
        Verified session credential.
    admin_token : str or None
        Elevated-privilege credential, independent of the user session.
    tutorial_completed : bool
        Whether onboarding has been dismissed.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    phone: str | None = None
    session_token: str | None = None
    admin_token: str | None = None
    tutorial_completed: bool = False

    @property
    def is_authenticated(self) -> bool:
        return bool(self.phone)

    @property
    def is_verified(self) -> bool:
        return bool(self.session_token)

    @property
    def is_admin(self) -> bool:
        return bool(self.admin_token)


def _as_flag(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


class SessionManager:
    """Read and write the credentials the header builder picks up.

    Every write goes straight to *store*; the next outgoing request sees
    it because headers are rebuilt per request.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def load(self) -> Session:
        phone, session_token, admin_token, tutorial = await asyncio.gather(
            self._store.get(USER_PHONE_KEY),
            self._store.get(USER_SESSION_TOKEN_KEY),
            self._store.get(ADMIN_TOKEN_KEY),
            self._store.get(TUTORIAL_COMPLETED_KEY),
        )
        return Session(
            phone=phone or None,
            session_token=session_token or None,
            admin_token=admin_token or None,
            tutorial_completed=_as_flag(tutorial) if tutorial is not None else False,
        )

    async def login(self, phone: str) -> None:
        """Remember an unverified phone number."""
        _logger.debug("Login with phone %s", mask_phone(phone))
        await self._store.set(USER_PHONE_KEY, phone)

    async def login_with_token(self, phone: str, token: str) -> None:
        """Remember a phone number together with its verified session token."""
        _logger.debug("Login with verified session for %s", mask_phone(phone))
        await self._store.set(USER_PHONE_KEY, phone)
        await self._store.set(USER_SESSION_TOKEN_KEY, token)

    async def set_admin_token(self, token: str) -> None:
        await self._store.set(ADMIN_TOKEN_KEY, token)

    async def clear_admin_token(self) -> None:
        await self._store.delete(ADMIN_TOKEN_KEY)

    async def logout(self) -> None:
        """Forget the user session and its cached app data.

        The admin token survives; it belongs to a separate login.
        """
        await asyncio.gather(
            self._store.delete(USER_PHONE_KEY),
            self._store.delete(USER_SESSION_TOKEN_KEY),
            self._store.delete(APP_DATA_CACHE_KEY),
        )

    async def complete_tutorial(self) -> None:
        await self._store.set(TUTORIAL_COMPLETED_KEY, "true")

    async def reset_tutorial(self) -> None:
        """Make onboarding due again on the next authenticated session."""
        await self._store.set(TUTORIAL_COMPLETED_KEY, "false")
