# Pacote de inteiros radix homomórficos

from .block import BlockCiphertext
from .bootstrap import LookupTable, ProgrammableBootstrapper, ReferenceBootstrapper
from .ciphertext_factory import RadixCiphertextFactory, create_ciphertext_factory
from .compression import CompressedEntity, CompressionCodec, EntityKind
from .constants import PBSVariant, RadixCryptographicParameters
from .errors import (
    IncompatibleOperandsError,
    IncompatibleParametersError,
    NonCanonicalInputError,
    NonCompressibleEntityError,
    RadixEngineError,
    RadixOverflowError,
    UnsupportedSeedVersionError,
)
from .integer_engine import RadixIntegerEngine
from .key_factory import ClientKey, KeyFactory, PublicKey, create_key_factory
from .radix import OperationFlavor, OverflowPolicy, RadixCiphertext
from .scheduler import ExecutionScheduler
from .seed import Seed

__all__ = [
    "BlockCiphertext",
    "ClientKey",
    "CompressedEntity",
    "CompressionCodec",
    "EntityKind",
    "ExecutionScheduler",
    "IncompatibleOperandsError",
    "IncompatibleParametersError",
    "KeyFactory",
    "LookupTable",
    "NonCanonicalInputError",
    "NonCompressibleEntityError",
    "OperationFlavor",
    "OverflowPolicy",
    "PBSVariant",
    "ProgrammableBootstrapper",
    "PublicKey",
    "RadixCiphertext",
    "RadixCiphertextFactory",
    "RadixCryptographicParameters",
    "RadixEngineError",
    "RadixIntegerEngine",
    "RadixOverflowError",
    "ReferenceBootstrapper",
    "Seed",
    "UnsupportedSeedVersionError",
    "create_ciphertext_factory",
    "create_key_factory",
]
