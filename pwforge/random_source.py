"""
Random sources used by the generator.

Every source hands out unsigned 32-bit words and bounded integers. The
generator picks characters with one source and shuffles with another,
so the two roles can be configured independently.
"""

from __future__ import annotations

import logging
import random
import secrets
from typing import List, Optional, Protocol, runtime_checkable

from .config import GeneratorConfig, DEFAULT_CONFIG
from .entropy import bits_to_bytes, bytes_to_words, mix_and_expand, xor_bits, WORD_BYTES

logger = logging.getLogger(__name__)

WORD_MAX = 1 << 32


@runtime_checkable
class RandomSource(Protocol):
    name: str

    def random_words(self, count: int) -> List[int]:
        """Return `count` unsigned 32-bit integers."""
        ...

    def randbelow(self, n: int) -> int:
        """Return an integer in [0, n)."""
        ...


class SystemRandomSource:
    """OS CSPRNG via the secrets module. The default for both roles."""

    name = "system"

    def random_words(self, count: int) -> List[int]:
        if count <= 0:
            return []
        return bytes_to_words(secrets.token_bytes(count * WORD_BYTES))

    def randbelow(self, n: int) -> int:
        return secrets.randbelow(n)


class PseudoRandomSource:
    """
    General-purpose PRNG (Mersenne Twister).

    Not suitable for picking password characters. It exists for shuffling
    when the caller explicitly wants the cheaper source, and for seeded,
    reproducible tests.
    """

    name = "pseudo"

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)

    def random_words(self, count: int) -> List[int]:
        return [self._rng.getrandbits(32) for _ in range(max(0, count))]

    def randbelow(self, n: int) -> int:
        return self._rng.randrange(n)


class QuantumRandomSource:
    """
    Bits measured from qubits in superposition on the Aer simulator.

    Each refill samples `quantum_streams` independent circuits, XORs them
    into one bitstring and conditions it with SHA-256 (`entropy_rounds`),
    then expands it into a pool of at least REFILL_BYTES bytes. Draws
    consume the pool; nothing is handed out twice.

    A refill runs enough shots to measure SEED_ENTROPY_BITS random bits,
    so the expansion never stretches a seed weaker than SHA-256 itself.
    """

    name = "quantum"
    REFILL_BYTES = 256
    SEED_ENTROPY_BITS = 256

    def __init__(self, config: GeneratorConfig | None = None) -> None:
        # Imported here so qiskit is only loaded when this source is used.
        from .quantum_engine import QuantumEngine

        self.config = config or DEFAULT_CONFIG
        self._engine = QuantumEngine(self.config)
        self._pool = bytearray()

    def _sample_seed(self) -> bytes:
        """At least SEED_ENTROPY_BITS measured random bits, packed."""
        per_shot = self._engine.random_bits_per_shot
        shots = -(-self.SEED_ENTROPY_BITS // per_shot)

        combined: list[int] | None = None
        for _ in range(max(1, self.config.quantum_streams)):
            bits = self._engine.sample_bits(shots)
            combined = bits if combined is None else xor_bits(combined, bits)
        assert combined is not None
        return bits_to_bytes(combined)

    def random_bytes(self, size: int) -> bytes:
        if len(self._pool) < size:
            seed = self._sample_seed()
            block = max(size, self.REFILL_BYTES)
            logger.debug("quantum source: %d seed bytes expanded to %d", len(seed), block)
            self._pool += mix_and_expand(seed, block, rounds=self.config.entropy_rounds)
        out = bytes(self._pool[:size])
        del self._pool[:size]
        return out

    def random_words(self, count: int) -> List[int]:
        if count <= 0:
            return []
        return bytes_to_words(self.random_bytes(count * WORD_BYTES))

    def randbelow(self, n: int) -> int:
        if n <= 0:
            raise ValueError("randbelow() upper bound must be positive")
        # Rejection sampling keeps the draw uniform.
        limit = WORD_MAX - (WORD_MAX % n)
        while True:
            (word,) = self.random_words(1)
            if word < limit:
                return word % n


SOURCE_NAMES = ("system", "pseudo", "quantum")


def build_source(name: str, config: GeneratorConfig | None = None) -> RandomSource:
    """Resolve a source name from GeneratorConfig / the CLI to an instance."""
    key = (name or "").strip().lower()
    if key == "system":
        return SystemRandomSource()
    if key == "pseudo":
        return PseudoRandomSource()
    if key == "quantum":
        return QuantumRandomSource(config)
    raise ValueError(
        f"Unknown random source {name!r}; expected one of {', '.join(SOURCE_NAMES)}."
    )
