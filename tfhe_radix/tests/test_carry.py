"""
Testes para o motor de propagação de carries.
"""

import pytest

from tfhe_radix.block_engine import BlockEngine
from tfhe_radix.carry import CarryPropagationEngine, PhaseKind
from tfhe_radix.ciphertext_factory import RadixCiphertextFactory
from tfhe_radix.constants import RadixCryptographicParameters
from tfhe_radix.key_factory import KeyFactory
from tfhe_radix.radix import OverflowPolicy
from tfhe_radix.scheduler import ExecutionScheduler


class TestCarryPropagation:
    """Testes para propagação, acumulação de colunas e flags"""

    def setup_method(self):
        """Configuração para cada teste."""
        self.params = RadixCryptographicParameters()
        key_factory = KeyFactory(self.params)
        self.client_key = key_factory.generate_client_key()
        self.bootstrapper = key_factory.generate_bootstrapper(self.client_key)
        self.block_engine = BlockEngine(self.bootstrapper)
        self.scheduler = ExecutionScheduler(max_workers=2)
        self.carry = CarryPropagationEngine(self.block_engine, self.scheduler)
        self.factory = RadixCiphertextFactory(self.params)

    def teardown_method(self):
        self.scheduler.shutdown()

    def encrypt(self, value, bit_width=8, **kwargs):
        return self.factory.encrypt_radix(value, self.client_key, bit_width, **kwargs)

    def decrypt(self, radix):
        return self.factory.decrypt_radix(radix, self.client_key)

    def add_unpropagated(self, lhs, rhs):
        blocks = [
            self.block_engine.unchecked_add(x, y) for x, y in zip(lhs.blocks, rhs.blocks)
        ]
        return lhs.with_blocks(blocks)

    def test_plan_is_explicit(self):
        plan = self.carry.propagation_plan()
        assert [phase.name for phase in plan] == ["extract", "absorb", "ripple"]
        assert [phase.kind for phase in plan] == [
            PhaseKind.PARALLEL,
            PhaseKind.BARRIER,
            PhaseKind.SEQUENTIAL,
        ]

    def test_canonical_input_is_untouched(self):
        radix = self.encrypt(77)
        assert self.carry.propagate(radix) is radix
        assert self.bootstrapper.pbs_count == 0

    def test_propagation_resolves_carries(self):
        total = self.add_unpropagated(self.encrypt(187), self.encrypt(59))
        assert not total.is_canonical

        propagated = self.carry.propagate(total)
        assert propagated.is_canonical
        assert self.decrypt(propagated) == (187 + 59) % 256

    def test_propagation_is_idempotent(self):
        total = self.add_unpropagated(self.encrypt(255), self.encrypt(255))
        once = self.carry.propagate(total)
        count = self.bootstrapper.pbs_count

        twice = self.carry.propagate(once)
        assert twice is once
        assert self.bootstrapper.pbs_count == count
        assert self.decrypt(twice) == 254

    def test_long_ripple(self):
        # 0xFF + 0x01 força o carry a atravessar todos os blocos
        total = self.add_unpropagated(self.encrypt(255), self.encrypt(1))
        propagated = self.carry.propagate(total)
        assert self.decrypt(propagated) == 0
        assert all(block.noise_level <= self.params.MAX_NOISE_LEVEL for block in propagated.blocks)

    def test_carry_out_capture(self):
        total = self.add_unpropagated(self.encrypt(200), self.encrypt(100))
        blocks, carry_out = self.carry.propagate_with_carry_out(total.blocks)
        assert self.factory.decrypt_block(carry_out, self.client_key) == 1
        assert self.decrypt(total.with_blocks(blocks)) == 44

    def test_report_policy_sets_flag(self):
        lhs = self.encrypt(200, overflow_policy=OverflowPolicy.REPORT)
        rhs = self.encrypt(100, overflow_policy=OverflowPolicy.REPORT)
        propagated = self.carry.propagate(self.add_unpropagated(lhs, rhs))
        assert propagated.is_canonical
        assert propagated.overflow_flag is not None

        value, overflow = self.factory.decrypt_radix_with_overflow(propagated, self.client_key)
        assert value == 44
        assert overflow

    def test_wrapping_policy_discards_top_carry(self):
        propagated = self.carry.propagate(self.add_unpropagated(self.encrypt(200), self.encrypt(100)))
        assert propagated.overflow_flag is None

    def test_sum_columns(self):
        # Seis parcelas de 15 em 4 bits: as colunas excedem o espaço de carry
        operands = [self.encrypt(15, bit_width=4) for _ in range(6)]
        columns = [[radix.blocks[i] for radix in operands] for i in range(2)]

        blocks = self.carry.sum_columns(columns)
        assert len(blocks) == 2
        result = self.carry.propagate(operands[0].with_blocks(blocks))
        assert self.decrypt(result) == (6 * 15) % 16

    def test_refresh_resets_noise(self):
        total = self.add_unpropagated(self.encrypt(1), self.encrypt(2))
        refreshed = self.carry.refresh(total)
        assert all(block.noise_level == 1 for block in refreshed.blocks)
        assert self.decrypt(refreshed) == 3

    def test_merge_flags(self):
        one = self.block_engine.trivial(1)
        zero = self.block_engine.trivial(0)
        merged = self.carry.merge_flags([zero, None, one])
        assert self.factory.decrypt_block(merged, self.client_key) == 1
        assert self.carry.merge_flags([None, None]) is None

    def test_shift_bits_requires_inner_shift(self):
        radix = self.encrypt(5)
        with pytest.raises(ValueError):
            self.carry.shift_bits(radix.blocks, 2, "left", self.block_engine.trivial(0))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
