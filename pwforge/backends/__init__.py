"""
Auth and saved-password collaborators.
"""

from __future__ import annotations

from ..config import BackendSettings
from .base import AuthBackend, PasswordStore
from .local import LocalBackend, LocalVault, VaultError
from .supabase import SupabaseBackend


def build_backend(settings: BackendSettings | None = None) -> LocalBackend | SupabaseBackend:
    """Instantiate the collaborator named by settings.backend."""
    settings = settings or BackendSettings()
    if settings.backend == "supabase":
        return SupabaseBackend.from_settings(settings)
    return LocalBackend.from_settings(settings)


__all__ = [
    "AuthBackend",
    "PasswordStore",
    "LocalBackend",
    "LocalVault",
    "VaultError",
    "SupabaseBackend",
    "build_backend",
]
