"""
Interface de capacidade do Programmable Bootstrapping (PBS).

O PBS avalia uma tabela de consulta sobre a mensagem criptografada de um
bloco e devolve uma amostra nova com ruído nominal. A matemática do
bootstrapping (rotação cega, key switching, FFT) fica atrás da interface
ProgrammableBootstrapper; este módulo fornece também um backend de
referência.
"""

import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable

import numpy as np
from numpy.typing import NDArray

from .constants import TORUS_MODULUS, PBSVariant, RadixCryptographicParameters
from .lwe import LweCiphertext, LweFactory, round_to_delta

logger = logging.getLogger(__name__)


class LookupTable:
    """
    Tabela de consulta sobre o espaço completo [0, M) de um bloco.

    Tabelas bivariadas indexam o valor empacotado lhs * message_modulus + rhs.
    """

    def __init__(
        self,
        name: str,
        table: NDArray[np.int64],
        message_modulus: int,
        bivariate: bool = False,
    ):
        self.name = name
        self.table = table
        self.message_modulus = message_modulus
        self.bivariate = bivariate

    @classmethod
    def univariate(
        cls,
        crypto_params: RadixCryptographicParameters,
        name: str,
        func: Callable[[int], int],
    ) -> "LookupTable":
        """Constrói a tabela de f(x) para x ∈ [0, M)."""
        modulus = crypto_params.TOTAL_MODULUS
        table = np.array([func(x) % modulus for x in range(modulus)], dtype=np.int64)
        return cls(name, table, crypto_params.MESSAGE_MODULUS)

    @classmethod
    def bivariate_from(
        cls,
        crypto_params: RadixCryptographicParameters,
        name: str,
        func: Callable[[int, int], int],
    ) -> "LookupTable":
        """Constrói a tabela de f(lhs, rhs) sobre o valor empacotado."""
        modulus = crypto_params.TOTAL_MODULUS
        msg = crypto_params.MESSAGE_MODULUS
        table = np.array(
            [func(x // msg, x % msg) % modulus for x in range(modulus)],
            dtype=np.int64,
        )
        return cls(name, table, msg, bivariate=True)

    def output_degree(self, input_degree: int) -> int:
        """Maior saída alcançável com entradas em [0, input_degree]."""
        last = min(input_degree, len(self.table) - 1)
        return int(self.table[: last + 1].max())

    def output_degree_bivariate(self, lhs_degree: int, rhs_degree: int) -> int:
        """Maior saída alcançável com lhs <= lhs_degree e rhs <= rhs_degree."""
        msg = self.message_modulus
        grid = self.table.reshape(-1, msg)
        return int(
            grid[: min(lhs_degree, grid.shape[0] - 1) + 1, : min(rhs_degree, msg - 1) + 1].max()
        )

    def digest(self) -> bytes:
        h = hashlib.blake2b(digest_size=16)
        h.update(self.name.encode())
        h.update(self.table.tobytes())
        return h.digest()

    def __repr__(self):
        return f"LookupTable({self.name!r})"


class ProgrammableBootstrapper(ABC):
    """
    Capacidade de PBS consumida pelo motor.

    Cada chamada é atômica e não interrompível. Implementações devem ser
    seguras para chamadas concorrentes: o escalonador despacha vários PBS
    em paralelo.
    """

    def __init__(self, crypto_params: RadixCryptographicParameters):
        self.crypto_params = crypto_params
        self._lock = threading.Lock()
        self._pbs_count = 0
        self._blind_rotation_steps = 0

    @property
    def pbs_count(self) -> int:
        """Número de PBS executados desde a criação."""
        with self._lock:
            return self._pbs_count

    @property
    def blind_rotation_steps(self) -> int:
        """Passos de rotação cega acumulados (n por PBS clássico, n/g no multi-bit)."""
        with self._lock:
            return self._blind_rotation_steps

    def steps_per_bootstrap(self) -> int:
        params = self.crypto_params
        if params.PBS_VARIANT is PBSVariant.MULTI_BIT:
            return params.LWE_DIMENSION // params.GROUPING_FACTOR
        return params.LWE_DIMENSION

    def bootstrap(
        self, lwe: LweCiphertext, lut: LookupTable, rng: np.random.Generator
    ) -> LweCiphertext:
        """
        Avalia a tabela sobre a amostra e devolve uma amostra nova.

        Args:
            lwe: Amostra de entrada
            lut: Tabela de consulta
            rng: Gerador que fornece toda a aleatoriedade da saída

        Returns:
            LweCiphertext: Amostra com ruído nominal criptografando lut(x)
        """
        result = self._bootstrap(lwe, lut, rng)
        with self._lock:
            self._pbs_count += 1
            self._blind_rotation_steps += self.steps_per_bootstrap()
        return result

    @abstractmethod
    def _bootstrap(
        self, lwe: LweCiphertext, lut: LookupTable, rng: np.random.Generator
    ) -> LweCiphertext:
        """Implementação concreta do PBS."""


class ReferenceBootstrapper(ProgrammableBootstrapper):
    """
    Backend de referência do PBS.

    Recupera a fase com a chave secreta, aplica a tabela com a mesma regra
    negacíclica do bootstrapping real (bit de padding ligado devolve -f(x))
    e re-criptografa com ruído nominal. Serve para testes e paridade; não
    esconde a chave do servidor.
    """

    def __init__(self, client_key):
        super().__init__(client_key.crypto_params)
        self._secret = client_key.secret
        params = client_key.crypto_params
        self._lwe_factory = LweFactory(
            params.LWE_DIMENSION, params.noise_stddev_absolute
        )
        logger.info(
            "Bootstrapper de referência criado (variante=%s, agrupamento=%d)",
            params.PBS_VARIANT.value,
            params.GROUPING_FACTOR,
        )

    def _bootstrap(
        self, lwe: LweCiphertext, lut: LookupTable, rng: np.random.Generator
    ) -> LweCiphertext:
        params = self.crypto_params
        modulus = params.TOTAL_MODULUS
        index = round_to_delta(lwe.phase(self._secret), params.DELTA) % (2 * modulus)

        if index < modulus:
            plaintext = int(lut.table[index]) * params.DELTA
        else:
            # Rotação negacíclica: o bit de padding inverte o sinal da saída
            plaintext = TORUS_MODULUS - int(lut.table[index - modulus]) * params.DELTA

        return self._lwe_factory.fresh(self._secret, plaintext, rng)
