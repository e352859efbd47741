import pytest

from pwforge.config import GeneratorConfig
from pwforge.entropy import bits_to_bytes, bytes_to_words, mix_and_expand, xor_bits
from pwforge.generator import GenerationRequest, generate
from pwforge.quantum_engine import QuantumEngine
from pwforge.random_source import (
    PseudoRandomSource,
    QuantumRandomSource,
    RandomSource,
    SystemRandomSource,
    build_source,
)


def test_bits_to_bytes_pads_last_byte():
    assert bits_to_bytes([1, 0, 1, 0, 1, 0, 1, 0]) == b"\xaa"
    assert bits_to_bytes([1, 1, 1]) == b"\xe0"
    assert bits_to_bytes([]) == b""


def test_xor_bits_requires_same_length():
    assert xor_bits([1, 0, 1], [1, 1, 0]) == [0, 1, 1]
    with pytest.raises(ValueError):
        xor_bits([1], [1, 0])


def test_mix_and_expand_length_and_determinism():
    out = mix_and_expand(b"seed", 100, rounds=2)
    assert len(out) == 100
    assert out == mix_and_expand(b"seed", 100, rounds=2)
    assert out != mix_and_expand(b"seed", 100, rounds=1)
    assert mix_and_expand(b"seed", 0) == b""


def test_bytes_to_words_big_endian():
    assert bytes_to_words(b"\x00\x00\x01\x00\xff\xff\xff\xff\x01") == [256, 0xFFFFFFFF]


@pytest.mark.parametrize("source", [SystemRandomSource(), PseudoRandomSource(5)])
def test_words_are_32_bit(source):
    words = source.random_words(50)
    assert len(words) == 50
    assert all(0 <= w < 2**32 for w in words)
    assert source.random_words(0) == []


@pytest.mark.parametrize("source", [SystemRandomSource(), PseudoRandomSource(5)])
def test_randbelow_range(source):
    values = {source.randbelow(3) for _ in range(200)}
    assert values == {0, 1, 2}


def test_sources_satisfy_protocol():
    assert isinstance(SystemRandomSource(), RandomSource)
    assert isinstance(PseudoRandomSource(), RandomSource)


def test_build_source_names():
    assert isinstance(build_source("system"), SystemRandomSource)
    assert isinstance(build_source(" Pseudo "), PseudoRandomSource)
    with pytest.raises(ValueError, match="Unknown random source"):
        build_source("dice")


def test_quantum_source_generates_password():
    config = GeneratorConfig(num_qubits=8, quantum_streams=2, entropy_rounds=2)
    source = build_source("quantum", config)
    assert isinstance(source, QuantumRandomSource)

    words = source.random_words(80)
    assert len(words) == 80
    assert all(0 <= w < 2**32 for w in words)
    assert 0 <= source.randbelow(7) < 7

    request = GenerationRequest(length=20)
    pw = generate(request, source=source)
    assert len(pw) == 20
    assert set(pw) <= set(request.alphabet)


def test_quantum_source_rejects_too_many_qubits():
    with pytest.raises(ValueError, match="exceeds"):
        QuantumRandomSource(GeneratorConfig(num_qubits=10_000))


def test_quantum_engine_multi_shot_sampling():
    engine = QuantumEngine(GeneratorConfig(num_qubits=3))
    assert engine.random_bits_per_shot == 2

    bits = engine.sample_bits(40)
    assert len(bits) == 120
    # Odd qubits are measured after a second H and always read 0.
    assert all(bits[i] == 0 for i in range(1, len(bits), 3))


def test_quantum_source_fresh_instances_differ():
    config = GeneratorConfig(num_qubits=1, quantum_streams=1)
    request = GenerationRequest(length=16)
    passwords = {
        generate(
            request,
            source=QuantumRandomSource(config),
            shuffle_source=PseudoRandomSource(0),
        )
        for _ in range(10)
    }
    assert len(passwords) > 2
