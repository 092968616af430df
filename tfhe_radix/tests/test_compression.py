"""
Testes para o codec de compressão por seed.
"""

import pytest

from tfhe_radix.ciphertext_factory import RadixCiphertextFactory
from tfhe_radix.compression import CompressedEntity, CompressionCodec, EntityKind
from tfhe_radix.constants import RadixCryptographicParameters
from tfhe_radix.errors import NonCompressibleEntityError, UnsupportedSeedVersionError
from tfhe_radix.integer_engine import RadixIntegerEngine
from tfhe_radix.key_factory import KeyFactory
from tfhe_radix.radix import OverflowPolicy
from tfhe_radix.seed import Seed


class TestCompressionCodec:
    """Testes de ida e volta e de capacidade do codec"""

    def setup_method(self):
        """Configuração para cada teste."""
        self.params = RadixCryptographicParameters()
        self.key_factory = KeyFactory(self.params)
        self.client_key = self.key_factory.generate_client_key()
        self.factory = RadixCiphertextFactory(self.params)
        self.codec = CompressionCodec()

    def test_radix_round_trip(self):
        """12837 em 16 bits: descomprimir devolve o mesmo ciphertext bit a bit"""
        ct = self.factory.encrypt_radix(12_837, self.client_key, bit_width=16)
        compressed = self.codec.compress(ct)

        assert compressed.kind is EntityKind.RADIX
        assert compressed.stored_words == ct.num_blocks
        restored = self.codec.decompress(compressed)
        assert restored == ct
        assert self.factory.decrypt_radix(restored, self.client_key) == 12_837

    def test_signed_and_report_round_trip(self):
        ct = self.factory.encrypt_radix(
            -42, self.client_key, bit_width=8, signed=True
        )
        restored = self.codec.decompress(self.codec.compress(ct))
        assert restored == ct
        assert restored.signed

        ct = self.factory.encrypt_radix(
            42, self.client_key, bit_width=8, overflow_policy=OverflowPolicy.REPORT
        )
        restored = self.codec.decompress(self.codec.compress(ct))
        assert restored.overflow_policy is OverflowPolicy.REPORT

    def test_block_round_trip(self):
        ct = self.factory.encrypt_radix(200, self.client_key, bit_width=8)
        block = ct.blocks[2]
        compressed = self.codec.compress(block)
        assert compressed.kind is EntityKind.BLOCK
        assert self.codec.decompress(compressed) == block

    def test_client_key_round_trip(self):
        compressed = self.codec.compress(self.client_key)
        assert compressed.stored_words == 0
        assert self.codec.decompress(compressed) == self.client_key

    def test_public_key_round_trip(self):
        public_key = self.key_factory.generate_public_key(self.client_key, size=8)
        compressed = self.codec.compress(public_key)
        assert compressed.stored_words == 8
        assert self.codec.decompress(compressed) == public_key

    def test_entropy_key_is_not_compressible(self):
        key = self.key_factory.generate_client_key(compressible=False)
        assert not self.codec.is_compressible(key)
        with pytest.raises(NonCompressibleEntityError) as info:
            self.codec.compress(key)
        assert info.value.code == "RADIX_COMPRESS_UNSUPPORTED"

    def test_public_key_encryption_is_not_compressible(self):
        public_key = self.key_factory.generate_public_key(self.client_key, size=8)
        ct = self.factory.encrypt_radix_with_public_key(7, public_key, bit_width=8)
        assert not self.codec.is_compressible(ct)
        with pytest.raises(NonCompressibleEntityError):
            self.codec.compress(ct)

    def test_operation_results_are_not_compressible(self):
        bootstrapper = self.key_factory.generate_bootstrapper(self.client_key)
        a = self.factory.encrypt_radix(1, self.client_key, bit_width=8)
        with RadixIntegerEngine(bootstrapper, max_workers=1) as engine:
            result = engine.bitnot(a)
        assert not self.codec.is_compressible(result)
        assert not self.codec.is_compressible("não é uma entidade")

    def test_mixed_seeds_are_not_compressible(self):
        a = self.factory.encrypt_radix(1, self.client_key, bit_width=8)
        b = self.factory.encrypt_radix(2, self.client_key, bit_width=8)
        mixed = a.with_blocks([a.blocks[0], b.blocks[1], a.blocks[2], a.blocks[3]])
        assert not self.codec.is_compressible(mixed)

    def test_unsupported_seed_version(self):
        compressed = CompressedEntity(
            EntityKind.CLIENT_KEY, self.params, Seed(bytes(16), "chacha/v9")
        )
        with pytest.raises(UnsupportedSeedVersionError):
            self.codec.decompress(compressed)

    def test_alternative_seed_tag(self):
        params = RadixCryptographicParameters(seed_tag="philox/v1")
        key = KeyFactory(params).generate_client_key()
        ct = RadixCiphertextFactory(params).encrypt_radix(99, key, bit_width=8)
        assert self.codec.decompress(self.codec.compress(key)) == key
        assert self.codec.decompress(self.codec.compress(ct)) == ct


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
