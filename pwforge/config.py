"""
Configuration for the pwforge password generator.

Generator settings live in a plain dataclass; backend settings are read
from the environment (prefix PWFORGE_) with pydantic-settings.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


UPPERCASE_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
LOWERCASE_CHARS = "abcdefghijklmnopqrstuvwxyz"
NUMBER_CHARS = "0123456789"
SYMBOL_CHARS = "!@#$%^&*()_+~`|}{[]:;?><,./-="

MIN_LENGTH = 8
MAX_LENGTH = 128


@dataclass
class GeneratorConfig:
    # Length used when the caller does not ask for one.
    default_length: int = 16

    # Bounds applied to user input (CLI, GenerationRequest.clamped()).
    min_length: int = MIN_LENGTH
    max_length: int = MAX_LENGTH

    # Random source names: "system", "pseudo" or "quantum".
    # Characters and shuffle positions can come from different sources.
    char_source: str = "system"
    shuffle_source: str = "system"

    # Quantum source only.
    # NOTE: Keep num_qubits <= backend limit (often 20-29 for local simulators).
    num_qubits: int = 20
    entropy_rounds: int = 2
    quantum_streams: int = 2


# Default configuration instance you can import elsewhere
DEFAULT_CONFIG = GeneratorConfig()


def get_user_config_dir() -> Path:
    """Per-user configuration directory (session file, .env)."""
    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "pwforge"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "pwforge"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "pwforge"
    return Path.home() / ".config" / "pwforge"


def get_user_data_dir() -> Path:
    """
    Per-user data directory for the local vault, kept apart from the
    working directory so the file does not follow the script around.
    """
    if os.name == "nt":
        base = os.getenv("APPDATA")
        base_path = Path(base) if base else Path.home() / "AppData" / "Roaming"
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else Path.home() / ".local" / "share"
    return base_path / "pwforge"


class BackendSettings(BaseSettings):
    """Where saved passwords go and how to reach it."""

    model_config = SettingsConfigDict(
        env_prefix="PWFORGE_",
        extra="ignore",
        case_sensitive=False,
        env_file=(".env", str(get_user_config_dir() / ".env")),
        env_file_encoding="utf-8",
    )

    backend: Literal["local", "supabase"] = Field(
        default="local",
        description="Collaborator used for accounts and saved passwords.",
    )

    supabase_url: str | None = Field(
        default=None,
        description="Project URL of the hosted backend, e.g. https://xyz.supabase.co",
    )
    supabase_anon_key: str | None = Field(
        default=None,
        description="Public (anon) API key sent as the apikey header.",
    )
    http_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Timeout per request (seconds).",
    )

    vault_path: Path = Field(
        default_factory=lambda: get_user_data_dir() / "vault.bin",
        description="Encrypted vault file used by the local backend.",
    )
    vault_secret: str = Field(
        default="pwforge-local",
        min_length=1,
        description="Secret the local vault key is derived from.",
    )
    kdf_iterations: int = Field(
        default=300_000,
        ge=1,
        description="PBKDF2 iterations for the vault key and stored account hashes.",
    )

    log_level: str = Field(
        default="WARNING",
        description="Root log level for the CLI.",
    )
