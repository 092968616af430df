"""
Inteiros radix: sequências ordenadas de blocos criptografados.

O bloco 0 é o menos significativo. Um inteiro de w bits com blocos de
b bits de mensagem tem w / b blocos; o número de blocos, o sinal e a
política de overflow são fixados na construção.
"""

from enum import Enum
from typing import Optional, Sequence

from .block import BlockCiphertext
from .constants import RadixCryptographicParameters


class OperationFlavor(Enum):
    """
    Política de propagação de carries de cada operação.

    - UNCHECKED: nunca propaga nem valida; entradas não canônicas produzem
      resultados incorretos
    - CHECKED: exige entradas canônicas; propaga o resultado se necessário
    - SMART: propaga as entradas apenas quando falta espaço de carry
    - DEFAULT: limpa as entradas e sempre propaga o resultado
    """

    UNCHECKED = "unchecked"
    CHECKED = "checked"
    SMART = "smart"
    DEFAULT = "default"


class OverflowPolicy(Enum):
    """O que fazer com o carry que sai do bloco mais significativo."""

    WRAPPING = "wrapping"
    REPORT = "report"


class RadixCiphertext:
    """
    Inteiro criptografado em representação radix.

    Attributes:
        blocks: Tupla de blocos, menos significativo primeiro
        signed: Interpretação em complemento de dois
        overflow_policy: Descarta ou sinaliza o carry do bloco superior
        overflow_flag: Bloco criptografado (0/1) acumulando overflows, ou None
    """

    def __init__(
        self,
        blocks: Sequence[BlockCiphertext],
        signed: bool = False,
        overflow_policy: OverflowPolicy = OverflowPolicy.WRAPPING,
        overflow_flag: Optional[BlockCiphertext] = None,
    ):
        """
        Inicializa um inteiro radix.

        Args:
            blocks: Blocos com parâmetros compatíveis
            signed: Se True, complemento de dois
            overflow_policy: Política de overflow
            overflow_flag: Flag de overflow acumulada

        Raises:
            ValueError: Se os blocos estiverem vazios ou a configuração for inválida
        """
        if not blocks:
            raise ValueError("Lista de blocos não pode estar vazia")

        first = blocks[0]
        if not all(block.is_compatible_with(first) for block in blocks):
            raise ValueError("Todos os blocos devem ter parâmetros compatíveis")

        if signed and overflow_policy is OverflowPolicy.REPORT:
            raise ValueError(
                "Política REPORT só é suportada para inteiros sem sinal"
            )

        self.blocks = tuple(blocks)
        self.signed = signed
        self.overflow_policy = overflow_policy
        self.overflow_flag = overflow_flag

    @property
    def crypto_params(self) -> RadixCryptographicParameters:
        return self.blocks[0].crypto_params

    @property
    def num_blocks(self) -> int:
        return len(self.blocks)

    @property
    def bit_width(self) -> int:
        return self.num_blocks * self.crypto_params.MESSAGE_BITS

    @property
    def is_canonical(self) -> bool:
        """True quando nenhum bloco carrega carry."""
        return all(block.is_canonical for block in self.blocks)

    @property
    def reports_overflow(self) -> bool:
        return self.overflow_policy is OverflowPolicy.REPORT

    def has_same_layout(self, other: "RadixCiphertext") -> bool:
        """Mesmos parâmetros, número de blocos e sinal."""
        return (
            self.crypto_params.is_compatible_with(other.crypto_params)
            and self.num_blocks == other.num_blocks
            and self.signed == other.signed
        )

    def with_blocks(
        self,
        blocks: Sequence[BlockCiphertext],
        overflow_flag: Optional[BlockCiphertext] = None,
    ) -> "RadixCiphertext":
        """Novo inteiro com a mesma configuração e outros blocos."""
        return RadixCiphertext(
            blocks,
            signed=self.signed,
            overflow_policy=self.overflow_policy,
            overflow_flag=overflow_flag,
        )

    def copy(self) -> "RadixCiphertext":
        """Cria uma cópia profunda do inteiro."""
        flag = self.overflow_flag.copy() if self.overflow_flag is not None else None
        return self.with_blocks([block.copy() for block in self.blocks], flag)

    def __len__(self):
        return self.num_blocks

    def __eq__(self, other):
        if not isinstance(other, RadixCiphertext):
            return NotImplemented
        return (
            self.blocks == other.blocks
            and self.signed == other.signed
            and self.overflow_policy == other.overflow_policy
            and self.overflow_flag == other.overflow_flag
        )

    __hash__ = None

    def __repr__(self):
        kind = "signed" if self.signed else "unsigned"
        return (
            f"RadixCiphertext({self.bit_width} bits, {kind}, "
            f"blocks={self.num_blocks}, canonical={self.is_canonical})"
        )
