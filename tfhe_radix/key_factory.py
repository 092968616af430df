"""
Fábrica para geração e gerenciamento de chaves do motor radix.

Chaves geradas a partir de uma seed são comprimíveis: a seed basta para
regenerar o material aleatório. Chaves geradas com entropia do sistema não
têm seed e não podem ser comprimidas.
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np
from numpy.typing import NDArray

from .bootstrap import ReferenceBootstrapper
from .constants import RadixCryptographicParameters
from .lwe import LweCiphertext, LweFactory
from .seed import Seed, SeededStream

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_KEY_SIZE = 64


class ClientKey:
    """
    Chave secreta LWE binária.

    Attributes:
        crypto_params: Parâmetros de bloco
        secret: Vetor booleano de tamanho n
        seed: Seed de origem, ou None para chaves de entropia
    """

    def __init__(
        self,
        crypto_params: RadixCryptographicParameters,
        secret: NDArray[np.bool_],
        seed: Optional[Seed] = None,
    ):
        if secret.shape != (crypto_params.LWE_DIMENSION,):
            raise ValueError("Chave secreta com dimensão incompatível")
        self.crypto_params = crypto_params
        self.secret = secret
        self.seed = seed

    def __eq__(self, other):
        if not isinstance(other, ClientKey):
            return NotImplemented
        return (
            self.crypto_params == other.crypto_params
            and self.seed == other.seed
            and np.array_equal(self.secret, other.secret)
        )

    __hash__ = None


class PublicKey:
    """
    Chave pública formada por criptografias de zero.

    Criptografar com a chave pública soma um subconjunto aleatório das
    amostras e o plaintext codificado.
    """

    def __init__(
        self,
        crypto_params: RadixCryptographicParameters,
        zero_encryptions: List[LweCiphertext],
        seed: Optional[Seed] = None,
    ):
        if not zero_encryptions:
            raise ValueError("Chave pública não pode estar vazia")
        self.crypto_params = crypto_params
        self.zero_encryptions = zero_encryptions
        self.seed = seed

    @property
    def size(self) -> int:
        return len(self.zero_encryptions)

    def __eq__(self, other):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return (
            self.crypto_params == other.crypto_params
            and self.seed == other.seed
            and self.zero_encryptions == other.zero_encryptions
        )

    __hash__ = None


class KeyFactory:
    """
    Fábrica para geração de chaves.

    Esta classe gera:
    - ClientKey: s ← {0, 1}^n, expandida de uma seed ou da entropia do sistema
    - PublicKey: {(a_i, <a_i, s> + e_i)}, máscaras expandidas de uma seed
    - Bootstrapper: capacidade de PBS associada à chave
    """

    def __init__(self, crypto_params: RadixCryptographicParameters = None):
        """
        Inicializa a fábrica de chaves com parâmetros criptográficos.

        Args:
            crypto_params: Parâmetros do motor (usa padrão se None)
        """
        if crypto_params is None:
            crypto_params = RadixCryptographicParameters()

        self.crypto_params = crypto_params
        self.lwe_factory = LweFactory(
            crypto_params.LWE_DIMENSION, crypto_params.noise_stddev_absolute
        )

    def generate_client_key(
        self, seed: Optional[Seed] = None, compressible: bool = True
    ) -> ClientKey:
        """
        Gera a chave secreta.

        Args:
            seed: Seed explícita (gera uma nova se None e compressible)
            compressible: Se False, usa entropia do sistema e não guarda seed

        Returns:
            ClientKey: Chave secreta binária
        """
        n = self.crypto_params.LWE_DIMENSION

        if seed is None and compressible:
            seed = Seed.generate(self.crypto_params.SEED_TAG)

        if seed is None:
            rng = self.crypto_params.get_random_generator()
            secret = rng.integers(0, 2, size=n).astype(bool)
        else:
            secret = SeededStream(seed).next_bits(n).astype(bool)

        logger.info(
            "Chave secreta gerada (n=%d, comprimível=%s)", n, seed is not None
        )
        return ClientKey(self.crypto_params, secret, seed)

    def generate_public_key(
        self,
        client_key: ClientKey,
        seed: Optional[Seed] = None,
        compressible: bool = True,
        size: int = DEFAULT_PUBLIC_KEY_SIZE,
    ) -> PublicKey:
        """
        Gera a chave pública a partir da chave secreta.

        As máscaras vêm da seed; os corpos usam erro amostrado com entropia
        do sistema e precisam ser guardados junto com a seed.

        Args:
            client_key: Chave secreta
            seed: Seed das máscaras (gera uma nova se None e compressible)
            compressible: Se False, máscaras uniformes sem seed
            size: Número de criptografias de zero

        Returns:
            PublicKey: Chave pública
        """
        if seed is None and compressible:
            seed = Seed.generate(self.crypto_params.SEED_TAG)

        rng = self.crypto_params.get_random_generator()
        stream = SeededStream(seed) if seed is not None else None

        zero_encryptions = []
        for _ in range(size):
            mask = None
            if stream is not None:
                mask = stream.next_mask(self.crypto_params.LWE_DIMENSION)
            zero_encryptions.append(
                self.lwe_factory.fresh(client_key.secret, 0, rng, mask=mask)
            )

        logger.info("Chave pública gerada com %d amostras", size)
        return PublicKey(self.crypto_params, zero_encryptions, seed)

    def public_key_from_seed(self, seed: Seed, bodies: List[int]) -> PublicKey:
        """Reconstrói uma chave pública a partir da seed e dos corpos guardados."""
        stream = SeededStream(seed)
        zero_encryptions = [
            LweCiphertext(stream.next_mask(self.crypto_params.LWE_DIMENSION), body)
            for body in bodies
        ]
        return PublicKey(self.crypto_params, zero_encryptions, seed)

    def generate_bootstrapper(self, client_key: ClientKey) -> ReferenceBootstrapper:
        """Cria a capacidade de PBS associada à chave secreta."""
        return ReferenceBootstrapper(client_key)

    def generate_full_keyset(self, seed: Optional[Seed] = None) -> Dict[str, Any]:
        """
        Gera o conjunto completo de chaves.

        Returns:
            Dict[str, Any]: client_key, public_key e bootstrapper
        """
        client_key = self.generate_client_key(seed=seed)
        return {
            "client_key": client_key,
            "public_key": self.generate_public_key(client_key),
            "bootstrapper": self.generate_bootstrapper(client_key),
        }


def create_key_factory(crypto_params: RadixCryptographicParameters = None) -> KeyFactory:
    """Função de conveniência para criar uma fábrica de chaves."""
    return KeyFactory(crypto_params)
