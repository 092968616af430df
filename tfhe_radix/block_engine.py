"""
Unidade de blocos: avaliação de portas via PBS e operações lineares.

Operações lineares (soma, soma escalar, multiplicação escalar, negação)
não usam bootstrapping: apenas acumulam grau e ruído. Portas avaliam uma
tabela de consulta com um PBS e devolvem um bloco com ruído nominal.
"""

import logging
import threading
from functools import partial
from typing import Callable, Dict, List, Sequence, Tuple

import numpy as np

from .block import BlockCiphertext
from .bootstrap import LookupTable, ProgrammableBootstrapper
from .errors import IncompatibleParametersError, NonCanonicalInputError
from .lwe import LweFactory

logger = logging.getLogger(__name__)

# (tabela, entradas) despachado como uma unidade do escalonador
GateRequest = Tuple[LookupTable, Tuple[BlockCiphertext, ...]]


class BlockEngine:
    """
    Motor de blocos sobre uma capacidade de PBS.

    Attributes:
        bootstrapper: Implementação do PBS
        crypto_params: Parâmetros do bloco
    """

    def __init__(self, bootstrapper: ProgrammableBootstrapper):
        self.bootstrapper = bootstrapper
        self.crypto_params = bootstrapper.crypto_params
        self._lwe_factory = LweFactory(
            self.crypto_params.LWE_DIMENSION,
            self.crypto_params.noise_stddev_absolute,
        )
        self._luts: Dict[str, LookupTable] = {}
        self._luts_lock = threading.Lock()

    # === TABELAS DE CONSULTA ===
    def lut(self, name: str, func: Callable[[int], int]) -> LookupTable:
        """Tabela univariada, construída uma vez por nome."""
        with self._luts_lock:
            table = self._luts.get(name)
            if table is None:
                table = LookupTable.univariate(self.crypto_params, name, func)
                self._luts[name] = table
            return table

    def bivariate_lut(self, name: str, func: Callable[[int, int], int]) -> LookupTable:
        """Tabela bivariada f(lhs, rhs), construída uma vez por nome."""
        with self._luts_lock:
            table = self._luts.get(name)
            if table is None:
                table = LookupTable.bivariate_from(self.crypto_params, name, func)
                self._luts[name] = table
            return table

    def message_lut(self) -> LookupTable:
        msg = self.crypto_params.MESSAGE_MODULUS
        return self.lut("message", lambda x: x % msg)

    def carry_lut(self) -> LookupTable:
        msg = self.crypto_params.MESSAGE_MODULUS
        return self.lut("carry", lambda x: x // msg)

    def identity_lut(self) -> LookupTable:
        return self.lut("identity", lambda x: x)

    def nonzero_lut(self) -> LookupTable:
        return self.lut("nonzero", lambda x: int(x != 0))

    # === VALIDAÇÃO ===
    def check_compatible(self, *blocks: BlockCiphertext):
        """
        Verifica se os blocos usam os parâmetros deste motor.

        Raises:
            IncompatibleParametersError: Se algum bloco tiver outro módulo
        """
        for block in blocks:
            if not block.crypto_params.is_compatible_with(self.crypto_params):
                raise IncompatibleParametersError(
                    "Bloco com parâmetros de módulo incompatíveis",
                    details={
                        "expected": self.crypto_params.compatibility_key(),
                        "received": block.crypto_params.compatibility_key(),
                    },
                )

    # === OPERAÇÕES LINEARES ===
    def trivial(self, value: int) -> BlockCiphertext:
        """Bloco trivial (sem máscara e sem ruído) com valor limpo."""
        modulus = self.crypto_params.TOTAL_MODULUS
        if not 0 <= value < modulus:
            raise ValueError(f"Valor trivial deve estar em [0, {modulus})")
        lwe = self._lwe_factory.trivial(value * self.crypto_params.DELTA)
        return BlockCiphertext(lwe, self.crypto_params, degree=value, noise_level=0)

    def unchecked_add(self, lhs: BlockCiphertext, rhs: BlockCiphertext) -> BlockCiphertext:
        """Soma linear; o grau resultante pode exceder o espaço de carry."""
        self.check_compatible(lhs, rhs)
        return BlockCiphertext(
            lhs.lwe + rhs.lwe,
            self.crypto_params,
            degree=lhs.degree + rhs.degree,
            noise_level=lhs.noise_level + rhs.noise_level,
        )

    def unchecked_scalar_add(self, block: BlockCiphertext, scalar: int) -> BlockCiphertext:
        self.check_compatible(block)
        return BlockCiphertext(
            block.lwe.add_plaintext(scalar * self.crypto_params.DELTA),
            self.crypto_params,
            degree=block.degree + scalar,
            noise_level=block.noise_level,
        )

    def unchecked_scalar_mul(self, block: BlockCiphertext, scalar: int) -> BlockCiphertext:
        self.check_compatible(block)
        return BlockCiphertext(
            block.lwe.scalar_mul(scalar),
            self.crypto_params,
            degree=block.degree * scalar,
            noise_level=block.noise_level * scalar,
        )

    def unchecked_neg_with_correction(
        self, block: BlockCiphertext, borrow: int = 0
    ) -> Tuple[BlockCiphertext, int]:
        """
        Negação com termo de correção.

        Calcula z - borrow - x, onde z é o menor múltiplo de message_modulus
        que mantém o resultado não negativo. O termo z / message_modulus deve
        ser descontado do bloco seguinte.

        Args:
            block: Bloco a negar
            borrow: Correção vinda do bloco anterior

        Returns:
            Tuple[BlockCiphertext, int]: (bloco negado, correção para o próximo bloco)
        """
        self.check_compatible(block)
        msg = self.crypto_params.MESSAGE_MODULUS
        z = -(-(block.degree + borrow) // msg) * msg
        lwe = block.lwe.negate().add_plaintext((z - borrow) * self.crypto_params.DELTA)
        negated = BlockCiphertext(
            lwe,
            self.crypto_params,
            degree=z - borrow,
            noise_level=block.noise_level,
        )
        return negated, z // msg

    # === PORTAS (PBS) ===
    def evaluate_gate(
        self,
        lut: LookupTable,
        *inputs: BlockCiphertext,
        rng: np.random.Generator,
        check: bool = True,
    ) -> BlockCiphertext:
        """
        Aplica uma tabela de consulta via bootstrapping.

        Uma entrada: f(x). Duas entradas: f(lhs, rhs) sobre o valor
        empacotado lhs * message_modulus + rhs.

        Args:
            lut: Tabela univariada ou bivariada
            inputs: Um ou dois blocos
            rng: Aleatoriedade da amostra de saída
            check: Se False, não valida graus (caminho unchecked)

        Returns:
            BlockCiphertext: Bloco com ruído nominal

        Raises:
            IncompatibleParametersError: Se os blocos tiverem outro módulo
            NonCanonicalInputError: Se o valor não couber no módulo M
        """
        self.check_compatible(*inputs)
        modulus = self.crypto_params.TOTAL_MODULUS
        msg = self.crypto_params.MESSAGE_MODULUS

        if len(inputs) == 1:
            (block,) = inputs
            if check and block.degree >= modulus:
                raise NonCanonicalInputError(
                    "Bloco excede o espaço de carry",
                    details={"degree": block.degree, "modulus": modulus},
                )
            packed = block.lwe
            out_degree = lut.output_degree(block.degree)
        elif len(inputs) == 2:
            lhs, rhs = inputs
            if check and (rhs.degree >= msg or lhs.degree * msg + rhs.degree >= modulus):
                raise NonCanonicalInputError(
                    "Blocos não cabem no empacotamento bivariado",
                    details={"lhs_degree": lhs.degree, "rhs_degree": rhs.degree},
                )
            packed = lhs.lwe.scalar_mul(msg) + rhs.lwe
            out_degree = lut.output_degree_bivariate(lhs.degree, rhs.degree)
        else:
            raise ValueError("Portas aceitam uma ou duas entradas")

        lwe = self.bootstrapper.bootstrap(packed, lut, rng)
        return BlockCiphertext(lwe, self.crypto_params, degree=out_degree, noise_level=1)

    def _evaluate_request(
        self, request: GateRequest, rng: np.random.Generator, check: bool
    ) -> BlockCiphertext:
        lut, inputs = request
        return self.evaluate_gate(lut, *inputs, rng=rng, check=check)

    def evaluate_batch(
        self,
        scheduler,
        label: str,
        requests: Sequence[GateRequest],
        check: bool = True,
    ) -> List[BlockCiphertext]:
        """
        Despacha portas independentes como uma fase do escalonador.

        Returns:
            List[BlockCiphertext]: Saídas na ordem dos pedidos
        """
        if not requests:
            return []
        logger.debug("Fase %s: %d PBS", label, len(requests))
        return scheduler.run_phase(
            label, partial(self._evaluate_request, check=check), requests
        )
