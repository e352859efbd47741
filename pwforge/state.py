"""
Caller-owned application state.

AppState is immutable; every function takes a state and returns a new
one. Collaborator failures and generator refusals end up in
`state.error` instead of being raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from .backends.base import AuthBackend, PasswordStore
from .generator import (
    GenerationRequest,
    NoCharacterClassSelected,
    StrengthReport,
    classify_strength,
    generate,
)
from .models import AuthSession, SavedPasswordRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppState:
    request: GenerationRequest = field(default_factory=GenerationRequest)
    password: Optional[str] = None
    strength: Optional[StrengthReport] = None
    session: Optional[AuthSession] = None
    saved: Tuple[SavedPasswordRecord, ...] = ()
    error: Optional[str] = None

    @property
    def signed_in(self) -> bool:
        return self.session is not None


def initial_state(request: GenerationRequest | None = None) -> AppState:
    req = request or GenerationRequest()
    return AppState(request=req, strength=classify_strength(req))


def update_request(state: AppState, request: GenerationRequest) -> AppState:
    """Swap the request; the current password stays until regenerate()."""
    return replace(state, request=request, strength=classify_strength(request))


def regenerate(state: AppState, **generate_kwargs) -> AppState:
    """New password for state.request. Extra kwargs go to generate()."""
    strength = classify_strength(state.request)
    try:
        password = generate(state.request, **generate_kwargs)
    except NoCharacterClassSelected as exc:
        return replace(state, password=None, strength=strength, error=str(exc))
    return replace(state, password=password, strength=strength, error=None)


async def sign_in(state: AppState, auth: AuthBackend, email: str, password: str) -> AppState:
    res = await auth.sign_in(email, password)
    if not res.ok:
        return replace(state, error=res.error)
    return replace(state, session=res.value, saved=(), error=None)


async def sign_up(state: AppState, auth: AuthBackend, email: str, password: str) -> AppState:
    """
    Register. When the collaborator signs the new user in straight away
    the session is kept; otherwise (email confirmation) state stays
    signed out.
    """
    res = await auth.sign_up(email, password)
    if not res.ok:
        return replace(state, error=res.error)
    if res.value is None:
        return replace(state, error=None)
    return replace(state, session=res.value, saved=(), error=None)


async def sign_out(state: AppState, auth: AuthBackend) -> AppState:
    """Forget the session and saved list even if the collaborator complains."""
    if state.session is None:
        return replace(state, saved=(), error=None)
    res = await auth.sign_out(state.session)
    if not res.ok:
        logger.warning("sign-out reported an error: %s", res.error)
    return replace(state, session=None, saved=(), error=None if res.ok else res.error)


async def refresh_saved(state: AppState, store: PasswordStore) -> AppState:
    if state.session is None:
        return replace(state, saved=(), error="Sign in to see saved passwords.")
    res = await store.list_passwords(state.session)
    if not res.ok:
        return replace(state, error="Failed to load saved passwords: " + res.error)
    return replace(state, saved=tuple(res.value or ()), error=None)


async def save_current(
    state: AppState, store: PasswordStore, label: Optional[str] = None
) -> AppState:
    """Store state.password under the signed-in owner, then reload the list."""
    if state.session is None:
        return replace(state, error="Sign in to save passwords.")
    if not state.password:
        return replace(state, error="Generate a password first.")

    res = await store.insert_password(state.session, state.password, label)
    if not res.ok:
        return replace(state, error="Failed to save password: " + res.error)
    return await refresh_saved(state, store)


async def delete_saved(state: AppState, store: PasswordStore, record_id: str) -> AppState:
    if state.session is None:
        return replace(state, error="Sign in to delete saved passwords.")
    res = await store.delete_password(state.session, record_id)
    if not res.ok:
        return replace(state, error="Failed to delete password: " + res.error)
    return replace(
        state,
        saved=tuple(r for r in state.saved if r.id != record_id),
        error=None,
    )
