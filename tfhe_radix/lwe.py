"""
Amostras LWE sobre o toro discretizado Z/2^64.

Uma amostra é um par (a, b) com a ∈ (Z/2^64)^n e b = <a, s> + μ + e.
A fase b - <a, s> recupera μ + e; o arredondamento para o múltiplo de Δ
mais próximo remove o erro.
"""

import hashlib

import numpy as np
from numpy.typing import NDArray

from .constants import TORUS_MODULUS


def dot_binary(mask: NDArray[np.uint64], secret: NDArray[np.bool_]) -> int:
    """<a, s> mod 2^64 para uma chave binária."""
    return int(mask[secret].sum(dtype=np.uint64))


class LweCiphertext:
    """
    Amostra LWE (máscara, corpo).

    Attributes:
        mask: Vetor uint64 de tamanho n
        body: Inteiro em [0, 2^64)
    """

    def __init__(self, mask: NDArray[np.uint64], body: int):
        self.mask = mask
        self.body = body % TORUS_MODULUS

    def __str__(self):
        return f"LWE(n={self.lwe_dimension}, b={self.body:#018x})"

    @property
    def lwe_dimension(self) -> int:
        return int(self.mask.shape[0])

    def phase(self, secret: NDArray[np.bool_]) -> int:
        """Calcula b - <a, s> mod 2^64."""
        return (self.body - dot_binary(self.mask, secret)) % TORUS_MODULUS

    def __add__(self, other: "LweCiphertext") -> "LweCiphertext":
        return LweCiphertext(self.mask + other.mask, self.body + other.body)

    def add_plaintext(self, plaintext: int) -> "LweCiphertext":
        """Soma um plaintext já codificado ao corpo."""
        return LweCiphertext(self.mask.copy(), self.body + plaintext)

    def scalar_mul(self, scalar: int) -> "LweCiphertext":
        """Multiplica máscara e corpo por um escalar limpo não negativo."""
        return LweCiphertext(
            self.mask * np.uint64(scalar), (self.body * scalar) % TORUS_MODULUS
        )

    def negate(self) -> "LweCiphertext":
        return LweCiphertext(np.negative(self.mask), TORUS_MODULUS - self.body)

    def copy(self) -> "LweCiphertext":
        return LweCiphertext(self.mask.copy(), self.body)

    def digest(self) -> bytes:
        """Resumo de 16 bytes do conteúdo bit a bit da amostra."""
        h = hashlib.blake2b(digest_size=16)
        h.update(self.mask.tobytes())
        h.update(self.body.to_bytes(8, "little"))
        return h.digest()

    def __eq__(self, other):
        if not isinstance(other, LweCiphertext):
            return NotImplemented
        return self.body == other.body and np.array_equal(self.mask, other.mask)

    __hash__ = None


class LweFactory:
    """Fábrica de amostras LWE para uma dimensão e nível de ruído."""

    def __init__(self, lwe_dimension: int, noise_stddev: float):
        """
        Args:
            lwe_dimension: n - tamanho da máscara
            noise_stddev: Desvio padrão do ruído em unidades de Z/2^64
        """
        self.lwe_dimension = lwe_dimension
        self.noise_stddev = noise_stddev

    def error_distribution(self, rng: np.random.Generator) -> int:
        """Amostra o erro gaussiano arredondado."""
        return int(np.rint(rng.normal(0.0, self.noise_stddev)))

    def uniform_mask(self, rng: np.random.Generator) -> NDArray[np.uint64]:
        return rng.bit_generator.random_raw(self.lwe_dimension).astype(np.uint64)

    def fresh(
        self,
        secret: NDArray[np.bool_],
        plaintext: int,
        rng: np.random.Generator,
        mask: NDArray[np.uint64] = None,
    ) -> LweCiphertext:
        """
        Criptografa um plaintext codificado com a chave secreta.

        Args:
            secret: Chave binária como vetor booleano
            plaintext: μ já multiplicado por Δ
            rng: Gerador para máscara (se não fornecida) e erro
            mask: Máscara pré-expandida de uma seed

        Returns:
            LweCiphertext: Amostra com b = <a, s> + μ + e
        """
        if mask is None:
            mask = self.uniform_mask(rng)
        body = dot_binary(mask, secret) + plaintext + self.error_distribution(rng)
        return LweCiphertext(mask, body)

    def trivial(self, plaintext: int) -> LweCiphertext:
        """Amostra sem máscara e sem ruído: a = 0, b = μ."""
        return LweCiphertext(np.zeros(self.lwe_dimension, dtype=np.uint64), plaintext)


def round_to_delta(phase: int, delta: int) -> int:
    """Arredonda a fase para o múltiplo de Δ mais próximo e retorna o quociente."""
    return ((phase + delta // 2) % TORUS_MODULUS) // delta
