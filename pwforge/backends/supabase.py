"""
Hosted backend-as-a-service collaborator (Supabase REST API).

Auth goes through GoTrue under /auth/v1, rows through PostgREST under
/rest/v1/passwords. Row level security on the table restricts every
request to the token owner's rows; queries also filter on user_id.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from ..config import BackendSettings
from ..models import AuthSession, Result, SavedPasswordRecord
from .base import check_credentials, normalize_label

logger = logging.getLogger(__name__)

TABLE = "passwords"


def _error_message(response: httpx.Response) -> str:
    """Pull the provider's message out of an error response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Request failed with HTTP {response.status_code}."


class SupabaseBackend:
    """AuthBackend + PasswordStore over httpx.AsyncClient."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        if not url or not anon_key:
            raise ValueError("Supabase URL and anon key are required.")
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    @classmethod
    def from_settings(cls, settings: BackendSettings | None = None) -> "SupabaseBackend":
        settings = settings or BackendSettings()
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise ValueError(
                "PWFORGE_SUPABASE_URL and PWFORGE_SUPABASE_ANON_KEY must be set "
                "to use the supabase backend."
            )
        return cls(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout_seconds=settings.http_timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "SupabaseBackend":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # --- plumbing ---

    def _headers(self, session: AuthSession | None = None, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        token = session.access_token if session is not None else self.anon_key
        headers["Authorization"] = f"Bearer {token}"
        headers.update(extra)
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        session: AuthSession | None = None,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Result[httpx.Response]:
        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(
                method,
                f"{self.url}{path}",
                params=params,
                json=json,
                headers=self._headers(session, **(headers or {})),
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return Result.failure(f"Network error: {exc}")

        if response.is_error:
            message = _error_message(response)
            logger.warning("%s %s -> %s: %s", method, path, response.status_code, message)
            return Result.failure(message)
        return Result.success(response)

    @staticmethod
    def _parse_session(body: Any) -> AuthSession:
        return AuthSession.model_validate(body)

    # --- auth ---

    async def sign_up(self, email: str, password: str) -> Result[Optional[AuthSession]]:
        problem = check_credentials(email, password)
        if problem:
            return Result.failure(problem)

        res = await self._send(
            "POST", "/auth/v1/signup", json={"email": email, "password": password}
        )
        if not res.ok:
            return Result.failure(res.error)

        try:
            body = res.value.json()
        except ValueError as exc:
            return Result.failure(f"Unexpected sign-up response: {exc}")
        # With email confirmation enabled only the user comes back.
        if isinstance(body, dict) and body.get("access_token"):
            try:
                return Result.success(self._parse_session(body))
            except ValidationError as exc:
                return Result.failure(f"Unexpected sign-up response: {exc}")
        return Result.success(None)

    async def sign_in(self, email: str, password: str) -> Result[AuthSession]:
        problem = check_credentials(email, password)
        if problem:
            return Result.failure(problem)

        res = await self._send(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if not res.ok:
            return Result.failure(res.error)
        try:
            return Result.success(self._parse_session(res.value.json()))
        except (ValidationError, ValueError) as exc:
            return Result.failure(f"Unexpected sign-in response: {exc}")

    async def sign_out(self, session: AuthSession) -> Result[None]:
        res = await self._send("POST", "/auth/v1/logout", session=session)
        if not res.ok:
            return Result.failure(res.error)
        return Result.success(None)

    # --- rows ---

    async def list_passwords(self, session: AuthSession) -> Result[List[SavedPasswordRecord]]:
        res = await self._send(
            "GET",
            f"/rest/v1/{TABLE}",
            session=session,
            params={
                "select": "*",
                "user_id": f"eq.{session.user.id}",
                "order": "created_at.desc",
            },
        )
        if not res.ok:
            return Result.failure(res.error)
        try:
            rows = res.value.json() or []
            return Result.success([SavedPasswordRecord.model_validate(r) for r in rows])
        except (ValidationError, ValueError) as exc:
            return Result.failure(f"Unexpected rows in response: {exc}")

    async def insert_password(
        self, session: AuthSession, text: str, label: Optional[str] = None
    ) -> Result[SavedPasswordRecord]:
        if not text:
            return Result.failure("Nothing to save.")

        res = await self._send(
            "POST",
            f"/rest/v1/{TABLE}",
            session=session,
            json={
                "user_id": session.user.id,
                "password_text": text,
                "label": normalize_label(label),
            },
            headers={"Prefer": "return=representation"},
        )
        if not res.ok:
            return Result.failure(res.error)
        try:
            rows = res.value.json()
            row = rows[0] if isinstance(rows, list) else rows
            return Result.success(SavedPasswordRecord.model_validate(row))
        except (ValidationError, ValueError, IndexError) as exc:
            return Result.failure(f"Unexpected insert response: {exc}")

    async def delete_password(self, session: AuthSession, record_id: str) -> Result[None]:
        res = await self._send(
            "DELETE",
            f"/rest/v1/{TABLE}",
            session=session,
            params={"id": f"eq.{record_id}", "user_id": f"eq.{session.user.id}"},
            headers={"Prefer": "return=representation"},
        )
        if not res.ok:
            return Result.failure(res.error)
        try:
            deleted = res.value.json()
        except ValueError:
            deleted = None
        # RLS hides foreign rows, so deleting one matches nothing.
        if not deleted:
            return Result.failure("Password not found.")
        return Result.success(None)
