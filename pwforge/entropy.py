"""
Byte-level helpers shared by the random sources:
packing measured bits, SHA-256 mixing/expansion and 32-bit word slicing.
"""

from __future__ import annotations

import hashlib
from typing import List, Sequence

WORD_BYTES = 4


def bits_to_bytes(bits: Sequence[int]) -> bytes:
    """
    Pack bits (MSB first) into bytes. A trailing partial byte is
    zero-padded on the right.
    """
    out = bytearray()
    for start in range(0, len(bits), 8):
        chunk = list(bits[start : start + 8])
        chunk += [0] * (8 - len(chunk))
        value = 0
        for bit in chunk:
            value = (value << 1) | (bit & 1)
        out.append(value)
    return bytes(out)


def xor_bits(left: Sequence[int], right: Sequence[int]) -> List[int]:
    if len(left) != len(right):
        raise ValueError(
            f"Cannot combine bit streams of different length ({len(left)} != {len(right)})."
        )
    return [a ^ b for a, b in zip(left, right)]


def mix_and_expand(seed: bytes, size: int, rounds: int = 1) -> bytes:
    """
    Condition `seed` with `rounds` passes of SHA-256, then stretch the
    digest to `size` bytes by hashing it together with a block counter.

    rounds <= 0 skips conditioning; the seed is still expanded.
    """
    if size <= 0:
        return b""

    state = seed
    for _ in range(max(0, rounds)):
        state = hashlib.sha256(state).digest()

    out = bytearray()
    counter = 0
    while len(out) < size:
        out += hashlib.sha256(state + counter.to_bytes(8, "big")).digest()
        counter += 1
    return bytes(out[:size])


def bytes_to_words(data: bytes) -> List[int]:
    """Slice `data` into unsigned big-endian 32-bit words (tail bytes dropped)."""
    usable = len(data) - (len(data) % WORD_BYTES)
    return [
        int.from_bytes(data[i : i + WORD_BYTES], "big")
        for i in range(0, usable, WORD_BYTES)
    ]
