"""
Collaborator contracts for accounts and saved passwords.

Implementations never raise at this boundary: every call returns a
Result carrying either the value or a human-readable error.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from ..models import AuthSession, Result, SavedPasswordRecord


@runtime_checkable
class AuthBackend(Protocol):
    async def sign_up(self, email: str, password: str) -> Result[Optional[AuthSession]]:
        """Create an account. The value is None when confirmation is pending."""
        ...

    async def sign_in(self, email: str, password: str) -> Result[AuthSession]:
        ...

    async def sign_out(self, session: AuthSession) -> Result[None]:
        ...


@runtime_checkable
class PasswordStore(Protocol):
    async def list_passwords(self, session: AuthSession) -> Result[List[SavedPasswordRecord]]:
        """The session owner's rows, newest first."""
        ...

    async def insert_password(
        self, session: AuthSession, text: str, label: Optional[str] = None
    ) -> Result[SavedPasswordRecord]:
        ...

    async def delete_password(self, session: AuthSession, record_id: str) -> Result[None]:
        ...


def check_credentials(email: str, password: str) -> Optional[str]:
    """Error message for obviously bad input, or None."""
    if not email or "@" not in email:
        return "A valid email address is required."
    if not password:
        return "Password must not be empty."
    return None


def normalize_label(label: Optional[str]) -> Optional[str]:
    if label is None:
        return None
    label = label.strip()
    return label or None
