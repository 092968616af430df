"""
Seeds e expansão determinística de material pseudo-aleatório.

Uma seed é um valor binário de tamanho fixo mais uma tag versionada que
identifica o procedimento de expansão (algoritmo do gerador + parâmetros).
Entidades comprimidas guardam apenas a seed; as máscaras LWE são
regeneradas sob demanda repetindo a expansão.
"""

import logging
import secrets
from typing import Dict

import numpy as np

from .constants import DEFAULT_SEED_TAG
from .errors import UnsupportedSeedVersionError

logger = logging.getLogger(__name__)

SEED_BYTES = 16

# Tags suportadas por esta versão -> fábrica do bit generator do numpy
_SEED_GENERATORS: Dict[str, type] = {
    "pcg64/v1": np.random.PCG64,
    "philox/v1": np.random.Philox,
}


def supported_seed_tags():
    """Retorna as tags de geração que esta versão consegue regenerar."""
    return sorted(_SEED_GENERATORS)


class Seed:
    """
    Valor de seed de tamanho fixo com tag de geração.

    A tag não é validada na construção, para que dados antigos possam ser
    lidos; a validação acontece na expansão.
    """

    def __init__(self, value: bytes, tag: str = DEFAULT_SEED_TAG):
        if len(value) != SEED_BYTES:
            raise ValueError(f"Seed deve ter exatamente {SEED_BYTES} bytes")
        self._value = bytes(value)
        self._tag = tag

    @classmethod
    def generate(cls, tag: str = DEFAULT_SEED_TAG) -> "Seed":
        """Cria uma seed nova a partir da entropia do sistema."""
        return cls(secrets.token_bytes(SEED_BYTES), tag)

    @property
    def value(self) -> bytes:
        return self._value

    @property
    def tag(self) -> str:
        return self._tag

    def __eq__(self, other):
        if not isinstance(other, Seed):
            return NotImplemented
        return self._value == other._value and self._tag == other._tag

    def __hash__(self):
        return hash((self._value, self._tag))

    def __repr__(self):
        return f"Seed(tag={self._tag!r}, value={self._value.hex()[:8]}...)"


class SeededStream:
    """
    Expansão sequencial de uma seed em máscaras e bits.

    Cada chamada consome a sequência na ordem; repetir as mesmas chamadas a
    partir da mesma seed produz exatamente o mesmo material.
    """

    def __init__(self, seed: Seed):
        factory = _SEED_GENERATORS.get(seed.tag)
        if factory is None:
            raise UnsupportedSeedVersionError(
                f"Tag de seed '{seed.tag}' não suportada",
                details={"tag": seed.tag, "supported": supported_seed_tags()},
            )
        logger.debug("Expandindo seed com tag %s", seed.tag)
        self.seed = seed
        entropy = int.from_bytes(seed.value, "little")
        self._bit_generator = factory(np.random.SeedSequence(entropy))
        self.offset = 0

    def next_mask(self, lwe_dimension: int) -> np.ndarray:
        """
        Retorna a próxima máscara uniforme em Z/2^64.

        Returns:
            np.ndarray: Vetor uint64 de tamanho lwe_dimension
        """
        self.offset += 1
        return self._bit_generator.random_raw(lwe_dimension).astype(np.uint64)

    def next_bits(self, count: int) -> np.ndarray:
        """Retorna os próximos `count` bits uniformes como vetor uint64."""
        raw = self._bit_generator.random_raw(count).astype(np.uint64)
        return raw & np.uint64(1)
