from __future__ import annotations

"""
Quantum engine: puts qubits in superposition on a local simulator,
measures them in alternating bases and returns the raw bits.
"""
from qiskit import QuantumCircuit, transpile
from qiskit_aer import AerSimulator

from .config import GeneratorConfig, DEFAULT_CONFIG

# One shot of N qubits gives N bits; wider circuits buy nothing here.
MAX_CIRCUIT_QUBITS = 64


def _qubit_limit(backend) -> int:
    limit = getattr(backend, "num_qubits", None)
    if limit is None and hasattr(backend, "configuration"):
        cfg = backend.configuration()
        limit = getattr(cfg, "num_qubits", None) or getattr(cfg, "n_qubits", None)
    if limit is None:
        return MAX_CIRCUIT_QUBITS
    return min(int(limit), MAX_CIRCUIT_QUBITS)


class QuantumEngine:
    """
    One simulator backend plus the circuit shape taken from GeneratorConfig.
    """

    def __init__(self, config: GeneratorConfig | None = None) -> None:
        self.config = config or DEFAULT_CONFIG
        self.backend = AerSimulator()

        max_qubits = _qubit_limit(self.backend)

        if self.config.num_qubits < 1:
            raise ValueError("num_qubits must be at least 1.")
        if self.config.num_qubits > max_qubits:
            raise ValueError(
                f"Configured num_qubits={self.config.num_qubits} exceeds "
                f"backend limit ({max_qubits}). "
                "Lower num_qubits in GeneratorConfig."
            )

    def build_circuit(self) -> QuantumCircuit:
        """
        Hadamard on every qubit, then measure even qubits in the Z basis
        and odd qubits in the X basis (extra H before measuring).
        """
        n = self.config.num_qubits
        qc = QuantumCircuit(n, n)

        for i in range(n):
            qc.h(i)

        for i in range(n):
            if i % 2 == 1:
                qc.h(i)
            qc.measure(i, i)

        return qc

    @property
    def random_bits_per_shot(self) -> int:
        """
        Bits per shot that carry entropy. Odd qubits see H twice, so they
        are back in |0> and always measure 0 in the X basis.
        """
        return (self.config.num_qubits + 1) // 2

    def sample_bits(self, shots: int = 1) -> list[int]:
        """
        Run the circuit for `shots` independent shots and return the
        measured bits shot after shot, one bit per qubit.
        """
        tqc = transpile(self.build_circuit(), self.backend)
        result = self.backend.run(tqc, shots=max(1, shots), memory=True).result()

        bits: list[int] = []
        for bitstring in result.get_memory():
            # qiskit orders bits q_(n-1)..q_0.
            bits.extend(int(b) for b in bitstring[::-1])
        return bits
