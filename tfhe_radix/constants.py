"""
Constantes centralizadas para o motor de inteiros radix sobre TFHE.

Esta classe organiza todos os parâmetros criptográficos de forma semântica
para facilitar manutenção e configuração do sistema:
- Espaço de mensagem e espaço de carry de cada bloco
- Dimensão LWE e ruído
- Variante de PBS e flag de execução determinística
- Tag do gerador pseudo-aleatório usado na compressão

Codificação no toro discretizado Z/2^64 com um bit de padding:
- M = message_modulus * carry_modulus
- Δ = 2^63 / M
- um valor v ∈ [0, M) é codificado como v * Δ
"""

from enum import Enum

import numpy as np

TORUS_BITS = 64
TORUS_MODULUS = 1 << TORUS_BITS
DEFAULT_SEED_TAG = "pcg64/v1"


class PBSVariant(Enum):
    """Variante do Programmable Bootstrapping."""

    CLASSIC = "classic"
    MULTI_BIT = "multi_bit"


class RadixCryptographicParameters:
    """
    Classe que centraliza todos os parâmetros criptográficos de um bloco.

    Os parâmetros são imutáveis após a construção: são consumidos na criação
    de chaves, blocos e inteiros radix e não podem mudar depois disso.

    Attributes:
        MESSAGE_MODULUS: Tamanho do espaço de mensagem de cada bloco
        CARRY_MODULUS: Tamanho do espaço de carry de cada bloco
        TOTAL_MODULUS: M = MESSAGE_MODULUS * CARRY_MODULUS
        DELTA: Fator de escala Δ = 2^63 / M
        LWE_DIMENSION: n - dimensão da máscara LWE
        LWE_NOISE_STDDEV: Desvio padrão do ruído, relativo ao toro
        MAX_NOISE_LEVEL: Número máximo de somas antes de um PBS obrigatório
        PBS_VARIANT: Variante de PBS (clássica ou multi-bit)
        GROUPING_FACTOR: Fator de agrupamento do PBS multi-bit
        DETERMINISTIC_EXECUTION: Execução com ordem fixa e reprodutível
        SEED_TAG: Tag do gerador usado para expandir seeds
    """

    def __init__(
        self,
        message_bits: int = 2,  # log2 do espaço de mensagem
        carry_bits: int = 2,  # log2 do espaço de carry
        lwe_dimension: int = 742,  # n
        lwe_noise_stddev: float = 7.069849454709433e-06,
        max_noise_level: int = 5,
        pbs_variant: PBSVariant = PBSVariant.CLASSIC,
        grouping_factor: int = 1,
        deterministic_execution: bool = False,
        seed_tag: str = DEFAULT_SEED_TAG,
    ):
        """
        Inicializa os parâmetros de bloco.

        Args:
            message_bits: Bits de mensagem por bloco
            carry_bits: Bits de carry por bloco
            lwe_dimension: Dimensão da máscara LWE
            lwe_noise_stddev: Desvio padrão do ruído gaussiano (fração do toro)
            max_noise_level: Orçamento de ruído em número de somas
            pbs_variant: PBSVariant.CLASSIC ou PBSVariant.MULTI_BIT
            grouping_factor: Fator de agrupamento (1 para clássico)
            deterministic_execution: Se True, o escalonador usa ordem fixa
            seed_tag: Tag versionada do gerador pseudo-aleatório

        Raises:
            ValueError: Se algum parâmetro estiver inconsistente
        """
        # === PARÂMETROS ESTRUTURAIS ===
        self.MESSAGE_BITS = message_bits
        self.CARRY_BITS = carry_bits
        self.MESSAGE_MODULUS = 1 << message_bits
        self.CARRY_MODULUS = 1 << carry_bits
        self.TOTAL_MODULUS = self.MESSAGE_MODULUS * self.CARRY_MODULUS
        self.DELTA = (1 << (TORUS_BITS - 1)) // self.TOTAL_MODULUS
        self.LWE_DIMENSION = lwe_dimension

        # === PARÂMETROS DE RUÍDO ===
        self.LWE_NOISE_STDDEV = lwe_noise_stddev
        self.MAX_NOISE_LEVEL = max_noise_level

        # === BOOTSTRAPPING E EXECUÇÃO ===
        self.PBS_VARIANT = pbs_variant
        self.GROUPING_FACTOR = grouping_factor
        self.DETERMINISTIC_EXECUTION = deterministic_execution

        # === COMPRESSÃO ===
        self.SEED_TAG = seed_tag

        self.validate_parameters()
        self._frozen = True

    def __setattr__(self, name, value):
        if getattr(self, "_frozen", False):
            raise AttributeError("Parâmetros criptográficos são imutáveis")
        super().__setattr__(name, value)

    # === MÉTODOS DE VALIDAÇÃO ===
    def validate_parameters(self):
        """
        Valida a consistência dos parâmetros criptográficos.

        Raises:
            ValueError: Se algum parâmetro estiver inconsistente
        """
        if self.MESSAGE_BITS <= 0:
            raise ValueError("message_bits deve ser positivo")

        if self.CARRY_BITS <= 0:
            raise ValueError("carry_bits deve ser positivo")

        if self.MESSAGE_BITS + self.CARRY_BITS > 16:
            raise ValueError("message_bits + carry_bits deve ser no máximo 16")

        if self.LWE_DIMENSION <= 0:
            raise ValueError("LWE_DIMENSION deve ser positivo")

        if self.LWE_NOISE_STDDEV <= 0:
            raise ValueError("LWE_NOISE_STDDEV deve ser positivo")

        if self.MAX_NOISE_LEVEL < 2:
            raise ValueError("MAX_NOISE_LEVEL deve ser pelo menos 2")

        if self.PBS_VARIANT is PBSVariant.CLASSIC and self.GROUPING_FACTOR != 1:
            raise ValueError("PBS clássico exige GROUPING_FACTOR igual a 1")

        if self.PBS_VARIANT is PBSVariant.MULTI_BIT:
            if self.GROUPING_FACTOR < 2:
                raise ValueError("PBS multi-bit exige GROUPING_FACTOR >= 2")
            if self.LWE_DIMENSION % self.GROUPING_FACTOR != 0:
                raise ValueError(
                    "LWE_DIMENSION deve ser múltiplo de GROUPING_FACTOR no PBS multi-bit"
                )

    # === MÉTODOS DE ACESSO ===
    @property
    def noise_stddev_absolute(self) -> float:
        """Desvio padrão do ruído em unidades do toro discretizado."""
        return self.LWE_NOISE_STDDEV * TORUS_MODULUS

    def num_blocks_for(self, bit_width: int) -> int:
        """
        Retorna o número de blocos necessários para uma largura em bits.

        Raises:
            ValueError: Se a largura não for múltipla dos bits de mensagem
        """
        if bit_width <= 0 or bit_width % self.MESSAGE_BITS != 0:
            raise ValueError(
                f"Largura de {bit_width} bits não é múltipla de {self.MESSAGE_BITS} bits por bloco"
            )
        return bit_width // self.MESSAGE_BITS

    def get_random_generator(self):
        """
        Retorna um gerador de números aleatórios com entropia do sistema.

        Returns:
            np.random.Generator: Gerador de números aleatórios
        """
        return np.random.default_rng()

    def compatibility_key(self) -> tuple:
        """Assinatura de módulo usada para verificar compatibilidade."""
        return (
            self.MESSAGE_MODULUS,
            self.CARRY_MODULUS,
            self.LWE_DIMENSION,
        )

    def is_compatible_with(self, other: "RadixCryptographicParameters") -> bool:
        """
        Verifica se dois conjuntos de parâmetros podem operar juntos.

        A flag de execução determinística não participa da comparação: ela
        escolhe o modo do escalonador, não o formato dos blocos.
        """
        return self.compatibility_key() == other.compatibility_key()

    def with_deterministic_execution(
        self, deterministic: bool = True
    ) -> "RadixCryptographicParameters":
        """Retorna uma cópia com a flag de execução determinística alterada."""
        return RadixCryptographicParameters(
            message_bits=self.MESSAGE_BITS,
            carry_bits=self.CARRY_BITS,
            lwe_dimension=self.LWE_DIMENSION,
            lwe_noise_stddev=self.LWE_NOISE_STDDEV,
            max_noise_level=self.MAX_NOISE_LEVEL,
            pbs_variant=self.PBS_VARIANT,
            grouping_factor=self.GROUPING_FACTOR,
            deterministic_execution=deterministic,
            seed_tag=self.SEED_TAG,
        )

    def _full_key(self) -> tuple:
        return self.compatibility_key() + (
            self.LWE_NOISE_STDDEV,
            self.MAX_NOISE_LEVEL,
            self.PBS_VARIANT,
            self.GROUPING_FACTOR,
            self.DETERMINISTIC_EXECUTION,
            self.SEED_TAG,
        )

    def __eq__(self, other):
        if not isinstance(other, RadixCryptographicParameters):
            return NotImplemented
        return self._full_key() == other._full_key()

    def __hash__(self):
        return hash(self._full_key())

    def __repr__(self):
        return (
            f"RadixCryptographicParameters(message_modulus={self.MESSAGE_MODULUS}, "
            f"carry_modulus={self.CARRY_MODULUS}, lwe_dimension={self.LWE_DIMENSION}, "
            f"pbs_variant={self.PBS_VARIANT.value}, "
            f"deterministic={self.DETERMINISTIC_EXECUTION})"
        )

    # === CONFIGURAÇÕES PRÉ-DEFINIDAS ===
    @classmethod
    def message_1_carry_1(cls, **overrides):
        """Blocos de 1 bit de mensagem e 1 bit de carry."""
        params = dict(message_bits=1, carry_bits=1, lwe_dimension=684)
        params.update(overrides)
        return cls(**params)

    @classmethod
    def message_2_carry_2(cls, **overrides):
        """Blocos de 2 bits de mensagem e 2 bits de carry (configuração padrão)."""
        params = dict(message_bits=2, carry_bits=2, lwe_dimension=742)
        params.update(overrides)
        return cls(**params)

    @classmethod
    def message_3_carry_3(cls, **overrides):
        """Blocos de 3 bits de mensagem e 3 bits de carry."""
        params = dict(
            message_bits=3,
            carry_bits=3,
            lwe_dimension=864,
            lwe_noise_stddev=7.06e-07,
        )
        params.update(overrides)
        return cls(**params)

    @classmethod
    def multi_bit_message_2_carry_2(cls, **overrides):
        """Blocos 2/2 com PBS multi-bit agrupado em 3."""
        params = dict(
            message_bits=2,
            carry_bits=2,
            lwe_dimension=765,
            pbs_variant=PBSVariant.MULTI_BIT,
            grouping_factor=3,
        )
        params.update(overrides)
        return cls(**params)

    def print_parameters_summary(self):
        """
        Imprime um resumo dos parâmetros configurados.
        """
        print("=== PARÂMETROS DO MOTOR RADIX ===")
        print(f"Espaço de mensagem: {self.MESSAGE_MODULUS}")
        print(f"Espaço de carry: {self.CARRY_MODULUS}")
        print(f"Dimensão LWE (n): {self.LWE_DIMENSION}")
        print(f"Ruído (desvio padrão): {self.LWE_NOISE_STDDEV}")
        print(f"PBS: {self.PBS_VARIANT.value} (agrupamento {self.GROUPING_FACTOR})")
        print(f"Execução determinística: {self.DETERMINISTIC_EXECUTION}")
        print("=" * 33)


# Validação dos parâmetros padrão
if __name__ == "__main__":
    try:
        RadixCryptographicParameters().print_parameters_summary()
        print("✓ Todos os parâmetros são válidos!")
    except ValueError as e:
        print(f"✗ Erro na validação dos parâmetros: {e}")
