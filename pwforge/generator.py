"""
Password generation and strength scoring.

generate() draws one guaranteed character per enabled class, fills the
rest from the combined alphabet, shuffles (Fisher-Yates) and cuts to the
requested length. classify_strength() scores the request, not the
generated string.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from typing import List

from .config import (
    DEFAULT_CONFIG,
    GeneratorConfig,
    LOWERCASE_CHARS,
    NUMBER_CHARS,
    SYMBOL_CHARS,
    UPPERCASE_CHARS,
)
from .random_source import RandomSource, SystemRandomSource, build_source


class GenerationError(Exception):
    """Base class for generator errors."""


class NoCharacterClassSelected(GenerationError):
    """Every character class was disabled; there is nothing to draw from."""

    def __init__(self) -> None:
        super().__init__("Select at least one character type")


class CharacterClass(Enum):
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    NUMBERS = "numbers"
    SYMBOLS = "symbols"

    @property
    def chars(self) -> str:
        return _CLASS_CHARS[self]


_CLASS_CHARS = {
    CharacterClass.UPPERCASE: UPPERCASE_CHARS,
    CharacterClass.LOWERCASE: LOWERCASE_CHARS,
    CharacterClass.NUMBERS: NUMBER_CHARS,
    CharacterClass.SYMBOLS: SYMBOL_CHARS,
}


@dataclass(frozen=True)
class GenerationRequest:
    length: int = DEFAULT_CONFIG.default_length
    include_uppercase: bool = True
    include_lowercase: bool = True
    include_numbers: bool = True
    include_symbols: bool = True

    @property
    def enabled_classes(self) -> List[CharacterClass]:
        """Enabled classes in alphabet order (upper, lower, numbers, symbols)."""
        flags = (
            (CharacterClass.UPPERCASE, self.include_uppercase),
            (CharacterClass.LOWERCASE, self.include_lowercase),
            (CharacterClass.NUMBERS, self.include_numbers),
            (CharacterClass.SYMBOLS, self.include_symbols),
        )
        return [cls for cls, on in flags if on]

    @property
    def alphabet(self) -> str:
        return "".join(cls.chars for cls in self.enabled_classes)

    @property
    def can_generate(self) -> bool:
        return bool(self.enabled_classes)

    def clamped(self, config: GeneratorConfig | None = None) -> "GenerationRequest":
        """Same request with length pulled into [min_length, max_length]."""
        cfg = config or DEFAULT_CONFIG
        length = min(max(self.length, cfg.min_length), cfg.max_length)
        return self if length == self.length else replace(self, length=length)


class StrengthTier(IntEnum):
    WEAK = 1
    MEDIUM = 2
    STRONG = 3
    VERY_STRONG = 4

    @property
    def label(self) -> str:
        return _TIER_LABELS[self]

    def __str__(self) -> str:
        return self.label


_TIER_LABELS = {
    StrengthTier.WEAK: "Weak",
    StrengthTier.MEDIUM: "Medium",
    StrengthTier.STRONG: "Strong",
    StrengthTier.VERY_STRONG: "Very Strong",
}


@dataclass(frozen=True)
class StrengthReport:
    score: int
    tier: StrengthTier

    @property
    def label(self) -> str:
        return self.tier.label


def classify_strength(request: GenerationRequest) -> StrengthReport:
    """
    One point each for length >= 8, >= 12, >= 16 and for every enabled
    class (max 7). <=2 Weak, <=4 Medium, <=6 Strong, else Very Strong.
    """
    score = sum(request.length >= n for n in (8, 12, 16))
    score += len(request.enabled_classes)

    if score <= 2:
        tier = StrengthTier.WEAK
    elif score <= 4:
        tier = StrengthTier.MEDIUM
    elif score <= 6:
        tier = StrengthTier.STRONG
    else:
        tier = StrengthTier.VERY_STRONG
    return StrengthReport(score=score, tier=tier)


def _shuffle(chars: List[str], source: RandomSource) -> None:
    # Fisher-Yates, last index down to 1.
    for i in range(len(chars) - 1, 0, -1):
        j = source.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]


def generate(
    request: GenerationRequest,
    *,
    source: RandomSource | None = None,
    shuffle_source: RandomSource | None = None,
) -> str:
    """
    Build a password for `request`.

    `source` picks characters, `shuffle_source` positions them; both
    default to the system CSPRNG (shuffle falls back to `source`).

    If length is smaller than the number of enabled classes the shuffled
    guaranteed characters are cut, so not every class is represented.
    """
    if not request.can_generate:
        raise NoCharacterClassSelected()
    alphabet = request.alphabet

    source = source or SystemRandomSource()
    shuffle_source = shuffle_source or source
    length = max(0, request.length)

    guaranteed = [
        cls.chars[source.randbelow(len(cls.chars))] for cls in request.enabled_classes
    ]

    remaining = max(0, length - len(guaranteed))
    # Modulo reduction of 32-bit words; the bias is small and accepted.
    filled = [alphabet[word % len(alphabet)] for word in source.random_words(remaining)]

    combined = filled + guaranteed
    _shuffle(combined, shuffle_source)
    return "".join(combined[:length])


def estimate_entropy_bits(request: GenerationRequest) -> float:
    """Upper bound in bits: length * log2(alphabet size)."""
    alphabet = request.alphabet
    if not alphabet or request.length <= 0:
        return 0.0
    return request.length * math.log2(len(alphabet))


@dataclass
class GenerationResult:
    """
    Full result of one generation.
    """
    password: str
    request: GenerationRequest
    strength: StrengthReport
    entropy_bits: float

    # Names of the sources used for characters and shuffling
    source_name: str
    shuffle_source_name: str


def generate_password_with_meta(
    request: GenerationRequest | None = None,
    config: GeneratorConfig | None = None,
    *,
    source: RandomSource | None = None,
    shuffle_source: RandomSource | None = None,
) -> GenerationResult:
    """
    Generate with sources resolved from `config` unless given explicitly,
    and bundle the password with its strength and entropy estimate.
    """
    cfg = config or DEFAULT_CONFIG
    req = request or GenerationRequest(length=cfg.default_length)

    char_source = source or build_source(cfg.char_source, cfg)
    if shuffle_source is None:
        if cfg.shuffle_source == cfg.char_source:
            shuffle_source = char_source
        else:
            shuffle_source = build_source(cfg.shuffle_source, cfg)

    password = generate(req, source=char_source, shuffle_source=shuffle_source)

    return GenerationResult(
        password=password,
        request=req,
        strength=classify_strength(req),
        entropy_bits=estimate_entropy_bits(req),
        source_name=char_source.name,
        shuffle_source_name=shuffle_source.name,
    )


def generate_password(
    request: GenerationRequest | None = None,
    config: GeneratorConfig | None = None,
) -> str:
    return generate_password_with_meta(request, config).password
