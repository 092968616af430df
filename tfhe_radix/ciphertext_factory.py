"""
Fábrica para criação e leitura de inteiros radix criptografados.

Esta classe fornece a interface do lado do cliente: decomposição em dígitos
na base message_modulus, criptografia com chave secreta (máscaras expandidas
de uma seed, portanto comprimíveis), criptografia com chave pública,
inteiros triviais para constantes do servidor e descriptografia com leitura
da flag de overflow.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from .block import BlockCiphertext
from .constants import RadixCryptographicParameters
from .errors import RadixOverflowError
from .key_factory import ClientKey, PublicKey
from .lwe import LweCiphertext, LweFactory, round_to_delta
from .radix import OverflowPolicy, RadixCiphertext
from .seed import Seed, SeededStream

logger = logging.getLogger(__name__)


class RadixCiphertextFactory:
    """
    Fábrica para criptografia e descriptografia de inteiros radix.

    Esta classe encapsula as operações de codificação (dígitos na base
    message_modulus, complemento de dois para inteiros com sinal),
    criptografia e descriptografia.
    """

    def __init__(self, crypto_params: RadixCryptographicParameters = None):
        """
        Inicializa a fábrica com parâmetros criptográficos.

        Args:
            crypto_params: Parâmetros do motor (usa padrão se None)
        """
        if crypto_params is None:
            crypto_params = RadixCryptographicParameters()

        self.crypto_params = crypto_params
        self.lwe_factory = LweFactory(
            crypto_params.LWE_DIMENSION, crypto_params.noise_stddev_absolute
        )

    # === CODIFICAÇÃO ===
    def encode_digits(self, value: int, bit_width: int, signed: bool = False) -> List[int]:
        """
        Decompõe um inteiro limpo em dígitos, menos significativo primeiro.

        Args:
            value: Inteiro limpo
            bit_width: Largura em bits (múltiplo dos bits de mensagem)
            signed: Se True, aceita negativos em complemento de dois

        Returns:
            List[int]: Dígitos em [0, message_modulus)

        Raises:
            ValueError: Se o valor não couber na largura pedida
        """
        num_blocks = self.crypto_params.num_blocks_for(bit_width)
        if signed:
            low, high = -(1 << (bit_width - 1)), 1 << (bit_width - 1)
        else:
            low, high = 0, 1 << bit_width
        if not low <= value < high:
            raise ValueError(f"Valor {value} fora do intervalo [{low}, {high})")

        msg = self.crypto_params.MESSAGE_MODULUS
        remaining = value % (1 << bit_width)
        digits = []
        for _ in range(num_blocks):
            digits.append(remaining % msg)
            remaining //= msg
        return digits

    def decode_digits(self, values: Sequence[int], signed: bool = False) -> int:
        """Recompõe Σ v_i · msg^i mod 2^w, com conversão de sinal opcional."""
        msg = self.crypto_params.MESSAGE_MODULUS
        bit_width = len(values) * self.crypto_params.MESSAGE_BITS
        total = 0
        for i, value in enumerate(values):
            total += value * msg**i
        total %= 1 << bit_width
        if signed and total >= 1 << (bit_width - 1):
            total -= 1 << bit_width
        return total

    # === CRIPTOGRAFIA ===
    def encrypt_radix(
        self,
        value: int,
        client_key: ClientKey,
        bit_width: int,
        signed: bool = False,
        overflow_policy: OverflowPolicy = OverflowPolicy.WRAPPING,
        seed: Optional[Seed] = None,
    ) -> RadixCiphertext:
        """
        Criptografa um inteiro com a chave secreta.

        As máscaras de todos os blocos são expandidas de uma única seed, na
        ordem dos blocos, o que torna o resultado comprimível.

        Args:
            value: Inteiro limpo
            client_key: Chave secreta
            bit_width: Largura em bits
            signed: Complemento de dois
            overflow_policy: WRAPPING ou REPORT
            seed: Seed das máscaras (gera uma nova se None)

        Returns:
            RadixCiphertext: Inteiro canônico criptografado
        """
        self._check_key(client_key)
        digits = self.encode_digits(value, bit_width, signed)
        if seed is None:
            seed = Seed.generate(self.crypto_params.SEED_TAG)

        stream = SeededStream(seed)
        rng = self.crypto_params.get_random_generator()
        blocks = []
        for i, digit in enumerate(digits):
            mask = stream.next_mask(self.crypto_params.LWE_DIMENSION)
            lwe = self.lwe_factory.fresh(
                client_key.secret, digit * self.crypto_params.DELTA, rng, mask=mask
            )
            blocks.append(
                BlockCiphertext(
                    lwe,
                    self.crypto_params,
                    degree=self.crypto_params.MESSAGE_MODULUS - 1,
                    seed_origin=(seed, i),
                )
            )

        logger.debug("Inteiro de %d bits criptografado em %d blocos", bit_width, len(blocks))
        return RadixCiphertext(blocks, signed=signed, overflow_policy=overflow_policy)

    def encrypt_radix_with_public_key(
        self,
        value: int,
        public_key: PublicKey,
        bit_width: int,
        signed: bool = False,
        overflow_policy: OverflowPolicy = OverflowPolicy.WRAPPING,
    ) -> RadixCiphertext:
        """
        Criptografa com a chave pública somando subconjuntos aleatórios de
        criptografias de zero. O resultado não tem seed e não é comprimível.
        """
        if not public_key.crypto_params.is_compatible_with(self.crypto_params):
            raise ValueError("Chave pública com parâmetros incompatíveis")
        digits = self.encode_digits(value, bit_width, signed)
        rng = self.crypto_params.get_random_generator()

        blocks = []
        for digit in digits:
            selection = rng.integers(0, 2, size=public_key.size).astype(bool)
            lwe = self.lwe_factory.trivial(digit * self.crypto_params.DELTA)
            for zero, chosen in zip(public_key.zero_encryptions, selection):
                if chosen:
                    lwe = lwe + zero
            blocks.append(
                BlockCiphertext(
                    lwe, self.crypto_params, degree=self.crypto_params.MESSAGE_MODULUS - 1
                )
            )
        return RadixCiphertext(blocks, signed=signed, overflow_policy=overflow_policy)

    def trivial_radix(
        self,
        value: int,
        bit_width: int,
        signed: bool = False,
        overflow_policy: OverflowPolicy = OverflowPolicy.WRAPPING,
    ) -> RadixCiphertext:
        """Inteiro trivial (sem máscara e sem ruído) para constantes do servidor."""
        digits = self.encode_digits(value, bit_width, signed)
        blocks = [
            BlockCiphertext(
                self.lwe_factory.trivial(digit * self.crypto_params.DELTA),
                self.crypto_params,
                degree=digit,
                noise_level=0,
            )
            for digit in digits
        ]
        return RadixCiphertext(blocks, signed=signed, overflow_policy=overflow_policy)

    # === RECONSTRUÇÃO A PARTIR DE SEED ===
    def block_from_seed(
        self, seed: Seed, index: int, body: int, degree: int, stream: SeededStream = None
    ) -> BlockCiphertext:
        """
        Regenera um bloco cuja máscara é a `index`-ésima expansão da seed.

        Args:
            seed: Seed de origem
            index: Posição da máscara na expansão
            body: Corpo guardado
            degree: Grau guardado
            stream: Expansão já posicionada em `index` (cria uma nova se None)
        """
        if stream is None:
            stream = SeededStream(seed)
            for _ in range(index):
                stream.next_mask(self.crypto_params.LWE_DIMENSION)
        mask = stream.next_mask(self.crypto_params.LWE_DIMENSION)
        return BlockCiphertext(
            LweCiphertext(mask, body),
            self.crypto_params,
            degree=degree,
            seed_origin=(seed, index),
        )

    def radix_from_seed(
        self,
        seed: Seed,
        bodies: Sequence[int],
        degrees: Sequence[int],
        signed: bool = False,
        overflow_policy: OverflowPolicy = OverflowPolicy.WRAPPING,
    ) -> RadixCiphertext:
        """Regenera um inteiro a partir da seed, dos corpos e dos graus."""
        if len(bodies) != len(degrees):
            raise ValueError("Corpos e graus devem ter o mesmo tamanho")
        stream = SeededStream(seed)
        blocks = [
            self.block_from_seed(seed, i, body, degree, stream=stream)
            for i, (body, degree) in enumerate(zip(bodies, degrees))
        ]
        return RadixCiphertext(blocks, signed=signed, overflow_policy=overflow_policy)

    # === DESCRIPTOGRAFIA ===
    def decrypt_block(self, block: BlockCiphertext, client_key: ClientKey) -> int:
        """
        Descriptografa o valor completo (mensagem e carry) de um bloco.

        Returns:
            int: Valor em [0, M)
        """
        self._check_key(client_key)
        phase = block.lwe.phase(client_key.secret)
        return round_to_delta(phase, self.crypto_params.DELTA) % self.crypto_params.TOTAL_MODULUS

    def decrypt_radix_with_overflow(
        self, radix: RadixCiphertext, client_key: ClientKey
    ) -> Tuple[int, bool]:
        """
        Descriptografa um inteiro e lê a flag de overflow.

        Sob a política REPORT, carries ainda não propagados também contam:
        há overflow quando Σ v_i · msg^i, sem redução, não cabe em 2^w.

        Returns:
            Tuple[int, bool]: (valor, overflow ocorreu)
        """
        values = [self.decrypt_block(block, client_key) for block in radix.blocks]
        value = self.decode_digits(values, radix.signed)
        overflow = False
        if radix.overflow_flag is not None:
            overflow = self.decrypt_block(radix.overflow_flag, client_key) != 0
        if radix.reports_overflow and not overflow:
            msg = self.crypto_params.MESSAGE_MODULUS
            total = sum(v * msg**i for i, v in enumerate(values))
            overflow = total >= 1 << radix.bit_width
        return value, overflow

    def decrypt_radix(
        self, radix: RadixCiphertext, client_key: ClientKey, check_overflow: bool = True
    ) -> int:
        """
        Descriptografa um inteiro radix.

        Args:
            radix: Inteiro criptografado
            client_key: Chave secreta
            check_overflow: Se True, levanta erro quando a flag estiver ligada

        Returns:
            int: Valor limpo (com sinal se o inteiro for com sinal)

        Raises:
            RadixOverflowError: Se a política REPORT registrou overflow
        """
        value, overflow = self.decrypt_radix_with_overflow(radix, client_key)
        if overflow and check_overflow:
            raise RadixOverflowError(
                "Operação transbordou a largura do inteiro",
                details={"bit_width": radix.bit_width, "wrapped_value": value},
            )
        return value

    def _check_key(self, client_key: ClientKey):
        if not client_key.crypto_params.is_compatible_with(self.crypto_params):
            raise ValueError("Chave secreta com parâmetros incompatíveis")


def create_ciphertext_factory(
    crypto_params: RadixCryptographicParameters = None,
) -> RadixCiphertextFactory:
    """Função de conveniência para criar uma fábrica de ciphertexts radix."""
    return RadixCiphertextFactory(crypto_params)
