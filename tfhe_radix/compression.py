"""
Codec de compressão por seed.

Entidades cujo material aleatório foi expandido de uma seed são guardadas
como (tipo, parâmetros, seed, corpos): as máscaras LWE nunca são
armazenadas e são regeneradas repetindo a expansão da seed. A descompressão
reproduz a entidade original bit a bit.

Entidades comprimíveis:
- ClientKey gerada de uma seed
- PublicKey com máscaras expandidas de uma seed
- RadixCiphertext criptografado com a chave secreta (uma seed por inteiro)
- BlockCiphertext criptografado com a chave secreta
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from .block import BlockCiphertext
from .ciphertext_factory import RadixCiphertextFactory
from .constants import RadixCryptographicParameters
from .errors import NonCompressibleEntityError
from .key_factory import ClientKey, KeyFactory, PublicKey
from .radix import OverflowPolicy, RadixCiphertext
from .seed import Seed, SeededStream

logger = logging.getLogger(__name__)


class EntityKind(Enum):
    CLIENT_KEY = "client_key"
    PUBLIC_KEY = "public_key"
    RADIX = "radix"
    BLOCK = "block"


class CompressedEntity:
    """
    Forma comprimida de uma entidade.

    Attributes:
        kind: Tipo da entidade
        crypto_params: Parâmetros da entidade
        seed: Seed da expansão das máscaras (ou da chave)
        bodies: Corpos LWE, na ordem da expansão
        metadata: Dados públicos necessários à reconstrução
    """

    def __init__(
        self,
        kind: EntityKind,
        crypto_params: RadixCryptographicParameters,
        seed: Seed,
        bodies: Sequence[int] = (),
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.kind = kind
        self.crypto_params = crypto_params
        self.seed = seed
        self.bodies = tuple(bodies)
        self.metadata = dict(metadata or {})

    @property
    def stored_words(self) -> int:
        """Número de palavras de 64 bits guardadas além da seed."""
        return len(self.bodies)

    def __eq__(self, other):
        if not isinstance(other, CompressedEntity):
            return NotImplemented
        return (
            self.kind == other.kind
            and self.crypto_params == other.crypto_params
            and self.seed == other.seed
            and self.bodies == other.bodies
            and self.metadata == other.metadata
        )

    __hash__ = None

    def __repr__(self):
        return (
            f"CompressedEntity(kind={self.kind.value}, seed={self.seed!r}, "
            f"bodies={len(self.bodies)})"
        )


class CompressionCodec:
    """Compressão e descompressão de entidades derivadas de seed."""

    # === CAPACIDADE ===
    def is_compressible(self, entity: Any) -> bool:
        """
        Verifica se a entidade pode ser reconstruída a partir de uma seed.

        Args:
            entity: ClientKey, PublicKey, RadixCiphertext ou BlockCiphertext

        Returns:
            bool: True se compress() aceitar a entidade
        """
        if isinstance(entity, (ClientKey, PublicKey)):
            return entity.seed is not None
        if isinstance(entity, BlockCiphertext):
            return entity.seed_origin is not None
        if isinstance(entity, RadixCiphertext):
            return self._radix_seed(entity) is not None
        return False

    @staticmethod
    def _radix_seed(radix: RadixCiphertext) -> Optional[Seed]:
        """Seed comum quando o bloco i é a i-ésima expansão de uma única seed."""
        if radix.overflow_flag is not None:
            return None
        origins = [block.seed_origin for block in radix.blocks]
        if any(origin is None for origin in origins):
            return None
        seed = origins[0][0]
        for i, (block_seed, index) in enumerate(origins):
            if block_seed != seed or index != i:
                return None
        return seed

    # === COMPRESSÃO ===
    def compress(self, entity: Any) -> CompressedEntity:
        """
        Comprime uma entidade derivada de seed.

        Returns:
            CompressedEntity: Seed, parâmetros e corpos

        Raises:
            NonCompressibleEntityError: Se a entidade não for derivada de seed
        """
        if not self.is_compressible(entity):
            raise NonCompressibleEntityError(
                f"{type(entity).__name__} não é derivado de seed",
                details={"entity_type": type(entity).__name__},
            )

        if isinstance(entity, ClientKey):
            compressed = CompressedEntity(EntityKind.CLIENT_KEY, entity.crypto_params, entity.seed)
        elif isinstance(entity, PublicKey):
            compressed = CompressedEntity(
                EntityKind.PUBLIC_KEY,
                entity.crypto_params,
                entity.seed,
                bodies=[lwe.body for lwe in entity.zero_encryptions],
            )
        elif isinstance(entity, BlockCiphertext):
            seed, index = entity.seed_origin
            compressed = CompressedEntity(
                EntityKind.BLOCK,
                entity.crypto_params,
                seed,
                bodies=[entity.lwe.body],
                metadata={"index": index, "degree": entity.degree},
            )
        else:
            compressed = CompressedEntity(
                EntityKind.RADIX,
                entity.crypto_params,
                self._radix_seed(entity),
                bodies=[block.lwe.body for block in entity.blocks],
                metadata={
                    "degrees": [block.degree for block in entity.blocks],
                    "signed": entity.signed,
                    "overflow_policy": entity.overflow_policy.value,
                },
            )

        logger.info(
            "Entidade %s comprimida (%d corpos)", compressed.kind.value, compressed.stored_words
        )
        return compressed

    def decompress(self, compressed: CompressedEntity) -> Any:
        """
        Reconstrói a entidade regenerando as máscaras a partir da seed.

        Raises:
            UnsupportedSeedVersionError: Se a tag da seed não for suportada
        """
        # Valida a tag antes de qualquer reconstrução
        SeededStream(compressed.seed)
        params = compressed.crypto_params
        logger.info("Descomprimindo entidade %s", compressed.kind.value)

        if compressed.kind is EntityKind.CLIENT_KEY:
            return KeyFactory(params).generate_client_key(seed=compressed.seed)
        if compressed.kind is EntityKind.PUBLIC_KEY:
            return KeyFactory(params).public_key_from_seed(compressed.seed, list(compressed.bodies))

        factory = RadixCiphertextFactory(params)
        metadata = compressed.metadata
        if compressed.kind is EntityKind.BLOCK:
            return factory.block_from_seed(
                compressed.seed,
                metadata["index"],
                compressed.bodies[0],
                metadata["degree"],
            )
        return factory.radix_from_seed(
            compressed.seed,
            compressed.bodies,
            metadata["degrees"],
            signed=metadata["signed"],
            overflow_policy=OverflowPolicy(metadata["overflow_policy"]),
        )


def create_compression_codec() -> CompressionCodec:
    """Função de conveniência para criar o codec."""
    return CompressionCodec()
