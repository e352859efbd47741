"""
Local collaborator: accounts and saved passwords in an encrypted vault file.

Vault file format (JSON text):
{
  "version": 1,
  "salt": "<base64>",
  "data": "<base64 Fernet token>"
}

The decrypted payload holds three tables:
{"users": [...], "sessions": [...], "passwords": [...]}

Every password row carries its owner's user_id; reads and deletes are
filtered on it so one account can never see or remove another's rows.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import json
import logging
import os
import secrets
import shutil
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError

from ..config import BackendSettings
from ..models import AuthSession, Result, SavedPasswordRecord, User
from .base import check_credentials, normalize_label

logger = logging.getLogger(__name__)

VAULT_VERSION = 1
KDF_ITERATIONS = 300_000
SESSION_TTL_SECONDS = 3600

# Keys every row of a table must carry.
ROW_KEYS = {
    "users": ("id", "email", "salt", "password_hash"),
    "sessions": ("token_hash", "user_id", "expires_at"),
    "passwords": ("id", "user_id"),
}


class VaultError(Exception):
    """Vault file missing, unreadable, or encrypted under another secret."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _empty_tables() -> Dict[str, list]:
    return {"users": [], "sessions": [], "passwords": []}


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class LocalVault:
    """
    Encrypted JSON tables on disk.

    Encryption key = PBKDF2-HMAC-SHA256(secret, salt), urlsafe base64
    encoded for Fernet. The salt is generated once and stored in the
    file header.
    """

    def __init__(self, path: Path, secret: str, iterations: int = KDF_ITERATIONS) -> None:
        self.path = Path(path)
        self._secret = secret
        self.iterations = iterations
        self._salt: bytes | None = None
        self._fernet: Fernet | None = None

    def exists(self) -> bool:
        return self.path.exists()

    def _derive_key(self, salt: bytes) -> bytes:
        dk = hashlib.pbkdf2_hmac(
            "sha256",
            self._secret.encode("utf-8"),
            salt,
            self.iterations,
            dklen=32,
        )
        return base64.urlsafe_b64encode(dk)

    def _fernet_for(self, salt: bytes) -> Fernet:
        if self._fernet is None or self._salt != salt:
            self._salt = salt
            self._fernet = Fernet(self._derive_key(salt))
        return self._fernet

    # ---------- backup helpers ----------

    def backup_path(self) -> Path:
        """Latest good copy, kept in a sibling 'backup' directory."""
        return self.path.parent / "backup" / (self.path.name + ".bak")

    def backup_to_disk(self) -> None:
        """Copy the (already encrypted) vault file to the backup location."""
        if not self.exists():
            return
        bpath = self.backup_path()
        try:
            bpath.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(self.path, bpath)
        except OSError as exc:
            # A failed backup must not fail the save that triggered it.
            logger.warning("Could not back up vault to %s: %s", bpath, exc)

    def restore_from_backup(self) -> bool:
        """
        Replace the vault with its backup. The current file is kept as
        *.corrupt. Returns False when no backup exists.
        """
        bpath = self.backup_path()
        if not bpath.exists():
            return False
        if self.path.exists():
            self.path.replace(self.path.with_suffix(self.path.suffix + ".corrupt"))
        shutil.copy2(bpath, self.path)
        logger.warning("Vault restored from %s", bpath)
        return True

    # ---------- load / save ----------

    def load(self) -> Dict[str, list]:
        """Decrypt and return the tables; an absent file reads as empty."""
        if not self.exists():
            return _empty_tables()

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise VaultError("Vault file is corrupted or unreadable.") from exc

        if not isinstance(payload, dict):
            raise VaultError("Vault file is corrupted.")
        if payload.get("version") != VAULT_VERSION:
            raise VaultError("Unsupported vault version.")

        try:
            salt = base64.b64decode(payload["salt"])
            ciphertext = base64.b64decode(payload["data"])
        except (KeyError, TypeError, ValueError) as exc:
            raise VaultError("Vault file is corrupted.") from exc

        try:
            plaintext = self._fernet_for(salt).decrypt(ciphertext)
        except InvalidToken as exc:
            raise VaultError("Wrong vault secret or corrupted vault.") from exc

        try:
            tables = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise VaultError("Vault data is corrupted.") from exc

        if not isinstance(tables, dict):
            raise VaultError("Vault data is corrupted.")

        out = _empty_tables()
        for name, keys in ROW_KEYS.items():
            rows = tables.get(name, [])
            if not isinstance(rows, list) or not all(
                isinstance(row, dict) and all(k in row for k in keys) for row in rows
            ):
                raise VaultError("Vault data is corrupted.")
            out[name] = rows
        return out

    def save(self, tables: Dict[str, list]) -> None:
        """Encrypt `tables` and write them, then refresh the backup."""
        if self._salt is None:
            self._salt = os.urandom(16)
        fernet = self._fernet_for(self._salt)

        ciphertext = fernet.encrypt(json.dumps(tables).encode("utf-8"))
        payload = {
            "version": VAULT_VERSION,
            "salt": base64.b64encode(self._salt).decode("ascii"),
            "data": base64.b64encode(ciphertext).decode("ascii"),
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload), encoding="utf-8")
        tmp.replace(self.path)
        self.backup_to_disk()


class LocalBackend:
    """AuthBackend + PasswordStore backed by a LocalVault."""

    def __init__(
        self,
        path: Path,
        secret: str,
        *,
        iterations: int = KDF_ITERATIONS,
        session_ttl: int = SESSION_TTL_SECONDS,
    ) -> None:
        self.vault = LocalVault(path, secret, iterations)
        self.iterations = iterations
        self.session_ttl = session_ttl
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: BackendSettings | None = None) -> "LocalBackend":
        settings = settings or BackendSettings()
        return cls(
            settings.vault_path,
            settings.vault_secret,
            iterations=settings.kdf_iterations,
        )

    # ---------- helpers ----------

    def _hash_password(self, password: str, salt: bytes) -> str:
        dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, self.iterations)
        return dk.hex()

    async def _read(self) -> Dict[str, list]:
        return await asyncio.to_thread(self.vault.load)

    async def _write(self, tables: Dict[str, list]) -> None:
        await asyncio.to_thread(self.vault.save, tables)

    def _issue_session(self, tables: Dict[str, list], user: Dict[str, Any]) -> AuthSession:
        now = int(time.time())
        # Drop expired sessions while we are here.
        tables["sessions"] = [s for s in tables["sessions"] if s["expires_at"] > now]

        token = secrets.token_urlsafe(32)
        expires_at = now + self.session_ttl
        tables["sessions"].append(
            {"token_hash": _hash_token(token), "user_id": user["id"], "expires_at": expires_at}
        )
        return AuthSession(
            access_token=token,
            expires_at=expires_at,
            user=User(id=user["id"], email=user["email"]),
        )

    @staticmethod
    def _owner_of(tables: Dict[str, list], session: AuthSession) -> Optional[str]:
        """user_id behind a live session token, or None."""
        token_hash = _hash_token(session.access_token)
        now = int(time.time())
        for s in tables["sessions"]:
            if hmac.compare_digest(s["token_hash"], token_hash) and s["expires_at"] > now:
                return s["user_id"]
        return None

    # ---------- auth ----------

    async def sign_up(self, email: str, password: str) -> Result[Optional[AuthSession]]:
        problem = check_credentials(email, password)
        if problem:
            return Result.failure(problem)
        email = email.strip().lower()

        async with self._lock:
            try:
                tables = await self._read()
                if any(u["email"] == email for u in tables["users"]):
                    return Result.failure("User already registered.")

                salt = os.urandom(16)
                user = {
                    "id": str(uuid.uuid4()),
                    "email": email,
                    "salt": salt.hex(),
                    "password_hash": self._hash_password(password, salt),
                    "created_at": _now_iso(),
                }
                tables["users"].append(user)
                session = self._issue_session(tables, user)
                await self._write(tables)
            except (VaultError, OSError) as exc:
                logger.warning("sign-up failed: %s", exc)
                return Result.failure(str(exc))

        logger.debug("registered %s", email)
        return Result.success(session)

    async def sign_in(self, email: str, password: str) -> Result[AuthSession]:
        problem = check_credentials(email, password)
        if problem:
            return Result.failure(problem)
        email = email.strip().lower()

        async with self._lock:
            try:
                tables = await self._read()
                user = next((u for u in tables["users"] if u["email"] == email), None)
                if user is None:
                    return Result.failure("Invalid login credentials")

                candidate = self._hash_password(password, bytes.fromhex(user["salt"]))
                if not hmac.compare_digest(candidate, user["password_hash"]):
                    return Result.failure("Invalid login credentials")

                session = self._issue_session(tables, user)
                await self._write(tables)
            except (VaultError, OSError) as exc:
                logger.warning("sign-in failed: %s", exc)
                return Result.failure(str(exc))

        return Result.success(session)

    async def sign_out(self, session: AuthSession) -> Result[None]:
        token_hash = _hash_token(session.access_token)
        async with self._lock:
            try:
                tables = await self._read()
                before = len(tables["sessions"])
                tables["sessions"] = [
                    s for s in tables["sessions"] if s["token_hash"] != token_hash
                ]
                if len(tables["sessions"]) != before:
                    await self._write(tables)
            except (VaultError, OSError) as exc:
                logger.warning("sign-out failed: %s", exc)
                return Result.failure(str(exc))
        return Result.success(None)

    # ---------- rows ----------

    async def list_passwords(self, session: AuthSession) -> Result[List[SavedPasswordRecord]]:
        async with self._lock:
            try:
                tables = await self._read()
            except (VaultError, OSError) as exc:
                return Result.failure(str(exc))

        owner = self._owner_of(tables, session)
        if owner is None:
            return Result.failure("Not authenticated.")

        try:
            records = [
                SavedPasswordRecord.model_validate(row)
                for row in tables["passwords"]
                if row.get("user_id") == owner
            ]
        except ValidationError as exc:
            return Result.failure(f"Vault data is corrupted: {exc}")
        records.sort(key=lambda r: r.created_at, reverse=True)
        return Result.success(records)

    async def insert_password(
        self, session: AuthSession, text: str, label: Optional[str] = None
    ) -> Result[SavedPasswordRecord]:
        if not text:
            return Result.failure("Nothing to save.")

        async with self._lock:
            try:
                tables = await self._read()
                owner = self._owner_of(tables, session)
                if owner is None:
                    return Result.failure("Not authenticated.")

                record = SavedPasswordRecord(
                    id=str(uuid.uuid4()),
                    owner=owner,
                    text=text,
                    label=normalize_label(label),
                )
                tables["passwords"].append(record.to_row())
                await self._write(tables)
            except (VaultError, OSError) as exc:
                logger.warning("insert failed: %s", exc)
                return Result.failure(str(exc))

        return Result.success(record)

    async def delete_password(self, session: AuthSession, record_id: str) -> Result[None]:
        async with self._lock:
            try:
                tables = await self._read()
                owner = self._owner_of(tables, session)
                if owner is None:
                    return Result.failure("Not authenticated.")

                kept = [
                    row
                    for row in tables["passwords"]
                    if not (row.get("id") == record_id and row.get("user_id") == owner)
                ]
                if len(kept) == len(tables["passwords"]):
                    return Result.failure("Password not found.")

                tables["passwords"] = kept
                await self._write(tables)
            except (VaultError, OSError) as exc:
                logger.warning("delete failed: %s", exc)
                return Result.failure(str(exc))

        return Result.success(None)
