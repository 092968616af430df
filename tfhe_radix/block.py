"""
Classe para representar blocos criptografados (shortint) do motor radix.

Um bloco encapsula uma amostra LWE que carrega um par (mensagem, carry)
dentro do módulo M = message_modulus * carry_modulus, mais os metadados
públicos usados para decidir quando propagar carries.
"""

from typing import Optional, Tuple

from .constants import RadixCryptographicParameters
from .lwe import LweCiphertext
from .seed import Seed


class BlockCiphertext:
    """
    Bloco criptografado com espaço de mensagem e de carry.

    Attributes:
        lwe: Amostra LWE subjacente
        crypto_params: Parâmetros do bloco (imutáveis)
        degree: Cota superior pública do valor criptografado
        seed_origin: (Seed, índice) quando a máscara foi expandida de uma seed
    """

    def __init__(
        self,
        lwe: LweCiphertext,
        crypto_params: RadixCryptographicParameters,
        degree: int,
        noise_level: int = 1,
        seed_origin: Optional[Tuple[Seed, int]] = None,
    ):
        """
        Inicializa um bloco.

        Args:
            lwe: Amostra LWE
            crypto_params: Parâmetros criptográficos do bloco
            degree: Maior valor que o bloco pode conter
            noise_level: Número de ruídos nominais acumulados (0 para triviais)
            seed_origin: Proveniência da máscara, se derivada de seed

        Raises:
            ValueError: Se os parâmetros estiverem inválidos
        """
        if degree < 0:
            raise ValueError("Grau do bloco não pode ser negativo")

        if lwe.lwe_dimension != crypto_params.LWE_DIMENSION:
            raise ValueError(
                f"Máscara com dimensão {lwe.lwe_dimension}, esperado {crypto_params.LWE_DIMENSION}"
            )

        self.lwe = lwe
        self.crypto_params = crypto_params
        self.degree = degree
        self._noise_level = noise_level
        self.seed_origin = seed_origin

    @property
    def message_modulus(self) -> int:
        return self.crypto_params.MESSAGE_MODULUS

    @property
    def carry_modulus(self) -> int:
        return self.crypto_params.CARRY_MODULUS

    @property
    def noise_level(self) -> int:
        """Ruídos nominais acumulados desde o último PBS (0 para blocos triviais)."""
        return self._noise_level

    @property
    def is_canonical(self) -> bool:
        """Um bloco é canônico quando seu carry é garantidamente zero."""
        return self.degree < self.message_modulus

    def is_compatible_with(self, other: "BlockCiphertext") -> bool:
        return self.crypto_params.is_compatible_with(other.crypto_params)

    def can_add_with(self, other: "BlockCiphertext") -> bool:
        """
        Verifica se a soma cabe no espaço de carry e no orçamento de ruído.

        Args:
            other: Outro bloco

        Returns:
            bool: True se a soma não transborda o módulo M
        """
        return (
            self.degree + other.degree < self.crypto_params.TOTAL_MODULUS
            and self._noise_level + other._noise_level
            <= self.crypto_params.MAX_NOISE_LEVEL
        )

    def copy(self) -> "BlockCiphertext":
        """Cria uma cópia profunda do bloco."""
        return BlockCiphertext(
            lwe=self.lwe.copy(),
            crypto_params=self.crypto_params,
            degree=self.degree,
            noise_level=self._noise_level,
            seed_origin=self.seed_origin,
        )

    def digest(self) -> bytes:
        return self.lwe.digest()

    def __eq__(self, other):
        if not isinstance(other, BlockCiphertext):
            return NotImplemented
        return (
            self.lwe == other.lwe
            and self.degree == other.degree
            and self.crypto_params.is_compatible_with(other.crypto_params)
        )

    __hash__ = None

    def __repr__(self):
        return (
            f"BlockCiphertext(degree={self.degree}, "
            f"canonical={self.is_canonical}, msg_mod={self.message_modulus})"
        )
