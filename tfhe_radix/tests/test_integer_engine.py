"""
Testes para o motor de inteiros radix.

Cobre aritmética, operações bit a bit, comparações, deslocamentos,
equivalência entre flavors e os dois modos do escalonador.
"""

import pytest

from tfhe_radix.ciphertext_factory import RadixCiphertextFactory
from tfhe_radix.constants import RadixCryptographicParameters
from tfhe_radix.errors import (
    IncompatibleOperandsError,
    IncompatibleParametersError,
    NonCanonicalInputError,
)
from tfhe_radix.integer_engine import RadixIntegerEngine
from tfhe_radix.key_factory import KeyFactory
from tfhe_radix.radix import OperationFlavor
from tfhe_radix.scheduler import ExecutionScheduler

ALL_FLAVORS = list(OperationFlavor)


class EngineTestCase:
    """Base com chaves, fábrica e motor compartilhados."""

    def setup_method(self):
        """Configuração para cada teste."""
        self.params = RadixCryptographicParameters.message_2_carry_2()
        key_factory = KeyFactory(self.params)
        self.client_key = key_factory.generate_client_key()
        self.bootstrapper = key_factory.generate_bootstrapper(self.client_key)
        self.factory = RadixCiphertextFactory(self.params)
        self.engine = RadixIntegerEngine(self.bootstrapper, max_workers=4)

    def teardown_method(self):
        self.engine.close()

    def encrypt(self, value, bit_width=8, signed=False):
        return self.factory.encrypt_radix(value, self.client_key, bit_width, signed=signed)

    def decrypt(self, radix):
        return self.factory.decrypt_radix(radix, self.client_key)


class TestArithmetic(EngineTestCase):
    """Testes para soma, subtração, negação e multiplicação"""

    def test_wraparound_add(self):
        """255 + 1 em 8 bits dá 0 com saída canônica"""
        result = self.engine.add(self.encrypt(255), self.encrypt(1))
        assert self.decrypt(result) == 0
        assert result.is_canonical

    @pytest.mark.parametrize("flavor", ALL_FLAVORS)
    def test_add_flavor_equivalence(self, flavor):
        result = self.engine.add(self.encrypt(200), self.encrypt(100), flavor)
        assert self.decrypt(result) == 44

    @pytest.mark.parametrize("flavor", ALL_FLAVORS)
    def test_flavors_agree_after_propagate(self, flavor):
        """Qualquer flavor seguido de propagate dá o mesmo inteiro canônico"""
        lhs, rhs = self.encrypt(200), self.encrypt(100)
        expected = {"add": 44, "sub": 100, "mul": 32}
        for name, value in expected.items():
            result = self.engine.propagate(getattr(self.engine, name)(lhs, rhs, flavor))
            assert result.is_canonical
            assert self.decrypt(result) == value

    @pytest.mark.parametrize("flavor", ALL_FLAVORS)
    def test_sub_flavor_equivalence(self, flavor):
        result = self.engine.sub(self.encrypt(100), self.encrypt(200), flavor)
        assert self.decrypt(result) == 156

    def test_default_output_is_canonical(self):
        result = self.engine.sub(self.encrypt(9), self.encrypt(3))
        assert result.is_canonical
        assert self.decrypt(result) == 6

    def test_smart_add_chain(self):
        """Somas SMART sucessivas só propagam quando falta espaço de carry"""
        acc = self.encrypt(200)
        step = self.encrypt(100)
        for _ in range(5):
            acc = self.engine.add(acc, step, OperationFlavor.SMART)
            assert all(block.degree < self.params.TOTAL_MODULUS for block in acc.blocks)
        assert self.decrypt(acc) == (200 + 5 * 100) % 256

    def test_unchecked_leaves_carries(self):
        result = self.engine.add(self.encrypt(3), self.encrypt(3), OperationFlavor.UNCHECKED)
        assert not result.is_canonical
        assert self.decrypt(result) == 6

    def test_checked_rejects_non_canonical(self):
        pending = self.engine.add(self.encrypt(3), self.encrypt(3), OperationFlavor.UNCHECKED)
        with pytest.raises(NonCanonicalInputError):
            self.engine.add(pending, self.encrypt(1), OperationFlavor.CHECKED)

    def test_default_cleans_non_canonical_inputs(self):
        pending = self.engine.add(self.encrypt(250), self.encrypt(3), OperationFlavor.UNCHECKED)
        result = self.engine.add(pending, self.encrypt(10))
        assert self.decrypt(result) == 7

    def test_inputs_are_not_modified(self):
        lhs = self.engine.add(self.encrypt(7), self.encrypt(9), OperationFlavor.UNCHECKED)
        snapshot = lhs.copy()
        self.engine.add(lhs, self.encrypt(1), OperationFlavor.SMART)
        self.engine.mul(lhs, self.encrypt(2))
        assert lhs == snapshot

    def test_neg(self):
        assert self.decrypt(self.engine.neg(self.encrypt(5))) == 251
        assert self.decrypt(self.engine.neg(self.encrypt(0))) == 0

    def test_scalar_operations(self):
        assert self.decrypt(self.engine.scalar_add(self.encrypt(250), 10)) == 4
        assert self.decrypt(self.engine.scalar_sub(self.encrypt(3), 5)) == 254
        assert self.decrypt(self.engine.scalar_mul(self.encrypt(23), 11)) == 253
        assert self.decrypt(self.engine.scalar_mul(self.encrypt(23), 0)) == 0

    @pytest.mark.parametrize("flavor", ALL_FLAVORS)
    def test_mul_flavor_equivalence(self, flavor):
        result = self.engine.mul(self.encrypt(23), self.encrypt(11), flavor)
        assert self.decrypt(result) == 253

    def test_mul_wraps(self):
        result = self.engine.mul(self.encrypt(200), self.encrypt(3))
        assert self.decrypt(result) == 88
        assert result.is_canonical

    def test_mul_after_unchecked_add(self):
        pending = self.engine.add(self.encrypt(10), self.encrypt(5), OperationFlavor.UNCHECKED)
        result = self.engine.mul(pending, self.encrypt(4), OperationFlavor.SMART)
        assert self.decrypt(result) == 60

    def test_unchecked_accepts_pending_carries(self):
        """UNCHECKED não valida graus, mesmo em operações que usam PBS"""
        unchecked = OperationFlavor.UNCHECKED
        acc = self.encrypt(1)
        for _ in range(3):
            acc = self.engine.add(acc, self.encrypt(1), unchecked)
        assert [block.degree for block in acc.blocks] == [12, 12, 12, 12]

        two = self.encrypt(2)
        assert self.decrypt(self.engine.lt(acc, two, unchecked)) == 0
        assert self.decrypt(self.engine.gt(acc, two, unchecked)) == 1
        assert self.decrypt(self.engine.sub(acc, two, unchecked)) == 2
        # o empacotamento bivariado transborda: só a ausência de erro é garantida
        self.engine.mul(acc, two, unchecked)


class TestSignedArithmetic(EngineTestCase):
    """Testes para inteiros com sinal em complemento de dois"""

    def test_signed_add_sub(self):
        a = self.encrypt(-100, signed=True)
        b = self.encrypt(50, signed=True)
        assert self.decrypt(self.engine.add(a, b)) == -50
        assert self.decrypt(self.engine.sub(b, a)) == -106

    def test_signed_mul_and_neg(self):
        a = self.encrypt(-3, signed=True)
        b = self.encrypt(7, signed=True)
        assert self.decrypt(self.engine.mul(a, b)) == -21
        assert self.decrypt(self.engine.neg(a)) == 3
        assert self.decrypt(self.engine.neg(self.encrypt(-128, signed=True))) == -128


class TestBitwise(EngineTestCase):
    """Testes para operações bit a bit"""

    def test_bitwise_operations(self):
        a = self.encrypt(202)
        b = self.encrypt(166)
        assert self.decrypt(self.engine.bitand(a, b)) == 202 & 166
        assert self.decrypt(self.engine.bitor(a, b)) == 202 | 166
        assert self.decrypt(self.engine.bitxor(a, b)) == 202 ^ 166
        assert self.decrypt(self.engine.bitnot(a)) == 255 - 202

    def test_bitwise_checked_rejects_pending_carries(self):
        pending = self.engine.add(self.encrypt(1), self.encrypt(3), OperationFlavor.UNCHECKED)
        with pytest.raises(NonCanonicalInputError):
            self.engine.bitand(pending, self.encrypt(1), OperationFlavor.CHECKED)


class TestComparisons(EngineTestCase):
    """Testes para comparações, min, max e seleção"""

    def compare(self, name, lhs, rhs, signed=False):
        method = getattr(self.engine, name)
        result = method(self.encrypt(lhs, signed=signed), self.encrypt(rhs, signed=signed))
        return self.decrypt(result)

    @pytest.mark.parametrize("lhs,rhs", [(3, 5), (5, 3), (5, 5), (0, 255), (128, 127)])
    def test_unsigned_comparisons(self, lhs, rhs):
        assert self.compare("eq", lhs, rhs) == int(lhs == rhs)
        assert self.compare("ne", lhs, rhs) == int(lhs != rhs)
        assert self.compare("lt", lhs, rhs) == int(lhs < rhs)
        assert self.compare("le", lhs, rhs) == int(lhs <= rhs)
        assert self.compare("gt", lhs, rhs) == int(lhs > rhs)
        assert self.compare("ge", lhs, rhs) == int(lhs >= rhs)

    @pytest.mark.parametrize("lhs,rhs", [(-3, 2), (2, -3), (-128, 127), (-1, -1)])
    def test_signed_comparisons(self, lhs, rhs):
        assert self.compare("lt", lhs, rhs, signed=True) == int(lhs < rhs)
        assert self.compare("ge", lhs, rhs, signed=True) == int(lhs >= rhs)

    def test_comparison_result_layout(self):
        result = self.engine.lt(self.encrypt(1), self.encrypt(2))
        assert result.num_blocks == 4
        assert result.overflow_flag is None
        assert all(block.degree == 0 for block in result.blocks[1:])

    def test_min_max(self):
        a = self.encrypt(17)
        b = self.encrypt(200)
        assert self.decrypt(self.engine.min(a, b)) == 17
        assert self.decrypt(self.engine.max(a, b)) == 200

        c = self.encrypt(-5, signed=True)
        d = self.encrypt(3, signed=True)
        assert self.decrypt(self.engine.min(c, d)) == -5
        assert self.decrypt(self.engine.max(c, d)) == 3

    def test_if_then_else(self):
        a = self.encrypt(42)
        b = self.encrypt(99)
        true = self.engine.eq(a, a)
        false = self.engine.eq(a, b)
        assert self.decrypt(self.engine.if_then_else(true, a, b)) == 42
        assert self.decrypt(self.engine.if_then_else(false, a, b)) == 99


class TestShifts(EngineTestCase):
    """Testes para deslocamentos e rotações por quantidade limpa"""

    def test_shifts(self):
        x = self.encrypt(179)
        assert self.decrypt(self.engine.left_shift(x, 3)) == 152
        assert self.decrypt(self.engine.right_shift(x, 3)) == 22
        assert self.decrypt(self.engine.left_shift(x, 4)) == (179 << 4) % 256
        assert self.decrypt(self.engine.right_shift(x, 0)) == 179

    def test_rotations(self):
        x = self.encrypt(179)
        assert self.decrypt(self.engine.rotate_left(x, 3)) == 157
        assert self.decrypt(self.engine.rotate_right(x, 3)) == 118
        assert self.decrypt(self.engine.rotate_left(x, 11)) == 157
        assert self.decrypt(self.engine.rotate_right(x, 8)) == 179

    def test_shift_beyond_width(self):
        assert self.decrypt(self.engine.left_shift(self.encrypt(179), 8)) == 0
        assert self.decrypt(self.engine.right_shift(self.encrypt(179), 40)) == 0

    def test_arithmetic_right_shift(self):
        assert self.decrypt(self.engine.right_shift(self.encrypt(-100, signed=True), 2)) == -25
        assert self.decrypt(self.engine.right_shift(self.encrypt(-7, signed=True), 1)) == -4
        assert self.decrypt(self.engine.right_shift(self.encrypt(-100, signed=True), 20)) == -1
        assert self.decrypt(self.engine.right_shift(self.encrypt(100, signed=True), 3)) == 12

    def test_negative_amount(self):
        with pytest.raises(ValueError):
            self.engine.left_shift(self.encrypt(1), -1)

    def test_right_shift_32_bits(self):
        """673 >> 6 em 32 bits dá 10"""
        result = self.engine.right_shift(self.encrypt(673, bit_width=32), 6)
        assert self.decrypt(result) == 10


class TestOperandValidation(EngineTestCase):
    """Testes para validação de operandos e configuração"""

    def test_different_widths(self):
        with pytest.raises(IncompatibleOperandsError):
            self.engine.add(self.encrypt(1), self.encrypt(1, bit_width=16))

    def test_different_signedness(self):
        with pytest.raises(IncompatibleOperandsError):
            self.engine.mul(self.encrypt(1), self.encrypt(1, signed=True))

    def test_different_parameters(self):
        other_params = RadixCryptographicParameters.message_1_carry_1()
        other_key = KeyFactory(other_params).generate_client_key()
        other = RadixCiphertextFactory(other_params).encrypt_radix(1, other_key, bit_width=8)
        with pytest.raises(IncompatibleParametersError):
            self.engine.add(self.encrypt(1), other)

    def test_scheduler_mode_must_match_configuration(self):
        with ExecutionScheduler(max_workers=1, deterministic=True) as scheduler:
            with pytest.raises(IncompatibleParametersError):
                RadixIntegerEngine(self.bootstrapper, scheduler=scheduler)

    def test_external_scheduler_is_not_closed(self):
        with ExecutionScheduler(max_workers=1) as scheduler:
            with RadixIntegerEngine(self.bootstrapper, scheduler=scheduler) as engine:
                engine.add(self.encrypt(1), self.encrypt(2))
            assert scheduler.run_phase("still_open", lambda item, rng: item, [1]) == [1]


class TestSchedulerModes(EngineTestCase):
    """Testes para os modos paralelo e determinístico"""

    def deterministic_engine(self, seed=0):
        params = self.params.with_deterministic_execution(True)
        return RadixIntegerEngine(self.bootstrapper, crypto_params=params, max_workers=4, seed=seed)

    def test_right_shift_in_both_modes(self):
        x = self.encrypt(673, bit_width=32)
        with self.deterministic_engine() as engine:
            assert self.decrypt(engine.right_shift(x, 6)) == 10
        assert self.decrypt(self.engine.right_shift(x, 6)) == 10
        assert self.decrypt(self.engine.rotate_right(x, 5)) == ((673 >> 5) | (673 << 27)) % 2**32

    def test_deterministic_runs_are_bit_identical(self):
        a = self.encrypt(123)
        b = self.encrypt(45)
        with self.deterministic_engine(seed=9) as first, self.deterministic_engine(seed=9) as second:
            r1 = first.mul(a, b)
            r2 = second.mul(a, b)
            assert first.scheduler.trace == second.scheduler.trace

        assert r1 == r2
        assert self.decrypt(r1) == (123 * 45) % 256

    def test_parallel_runs_agree_on_plaintext(self):
        a = self.encrypt(123)
        b = self.encrypt(45)
        r1 = self.engine.mul(a, b)
        r2 = self.engine.mul(a, b)

        assert self.decrypt(r1) == self.decrypt(r2) == (123 * 45) % 256
        assert r1 != r2

    def test_pbs_are_dispatched_through_scheduler(self):
        self.engine.scheduler.reset_trace()
        self.engine.bitxor(self.encrypt(1), self.encrypt(2))
        labels = [label for label, _ in self.engine.scheduler.trace]
        assert labels.count("bitxor") == 4


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
