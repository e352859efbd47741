"""
pwforge: password generator with optional saved passwords.
"""

from .config import GeneratorConfig, DEFAULT_CONFIG
from .generator import (
    GenerationError,
    GenerationRequest,
    NoCharacterClassSelected,
    StrengthReport,
    StrengthTier,
    classify_strength,
    generate,
    generate_password,
    generate_password_with_meta,
)

__all__ = [
    "GeneratorConfig",
    "DEFAULT_CONFIG",
    "GenerationError",
    "GenerationRequest",
    "NoCharacterClassSelected",
    "StrengthReport",
    "StrengthTier",
    "classify_strength",
    "generate",
    "generate_password",
    "generate_password_with_meta",
]
