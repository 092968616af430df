"""
Motor de inteiros radix: aritmética, operações bit a bit, comparações e
deslocamentos sobre inteiros criptografados.

Cada operação decompõe o trabalho em portas de bloco independentes,
despacha os lotes pelo escalonador e usa o motor de carries para as
correções entre blocos. A política de propagação é escolhida por chamada
(OperationFlavor); o padrão é DEFAULT, que garante saída canônica.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from .block import BlockCiphertext
from .block_engine import BlockEngine
from .bootstrap import ProgrammableBootstrapper
from .carry import CarryPropagationEngine
from .constants import RadixCryptographicParameters
from .errors import (
    IncompatibleOperandsError,
    IncompatibleParametersError,
    NonCanonicalInputError,
)
from .radix import OperationFlavor, RadixCiphertext
from .scheduler import ExecutionScheduler

logger = logging.getLogger(__name__)

Flavor = OperationFlavor


class RadixIntegerEngine:
    """
    Operações homomórficas sobre inteiros radix.

    Operações nunca modificam os inteiros recebidos: toda limpeza de
    entradas trabalha sobre novos inteiros.

    Attributes:
        crypto_params: Parâmetros do motor (definem o modo do escalonador)
        scheduler: Escalonador dos lotes de PBS
        block_engine: Motor de blocos
        carry: Motor de propagação de carries
    """

    def __init__(
        self,
        bootstrapper: ProgrammableBootstrapper,
        crypto_params: Optional[RadixCryptographicParameters] = None,
        scheduler: Optional[ExecutionScheduler] = None,
        max_workers: Optional[int] = None,
        seed: int = 0,
    ):
        """
        Inicializa o motor.

        Args:
            bootstrapper: Capacidade de PBS
            crypto_params: Parâmetros do motor (usa os do bootstrapper se None)
            scheduler: Escalonador externo (cria e gerencia um próprio se None)
            max_workers: Tamanho do pool do escalonador próprio
            seed: Seed da derivação determinística do escalonador próprio

        Raises:
            IncompatibleParametersError: Se parâmetros, bootstrapper e
                escalonador não concordarem
        """
        if crypto_params is None:
            crypto_params = bootstrapper.crypto_params
        if not crypto_params.is_compatible_with(bootstrapper.crypto_params):
            raise IncompatibleParametersError(
                "Parâmetros do motor incompatíveis com o bootstrapper",
                details={
                    "engine": crypto_params.compatibility_key(),
                    "bootstrapper": bootstrapper.crypto_params.compatibility_key(),
                },
            )

        self._owns_scheduler = scheduler is None
        if scheduler is None:
            scheduler = ExecutionScheduler.from_parameters(crypto_params, max_workers, seed)
        elif scheduler.deterministic != crypto_params.DETERMINISTIC_EXECUTION:
            raise IncompatibleParametersError(
                "Modo do escalonador difere da configuração",
                details={
                    "scheduler_deterministic": scheduler.deterministic,
                    "configured_deterministic": crypto_params.DETERMINISTIC_EXECUTION,
                },
            )

        self.crypto_params = crypto_params
        self.scheduler = scheduler
        self.block_engine = BlockEngine(bootstrapper)
        self.carry = CarryPropagationEngine(self.block_engine, scheduler)

    # === CICLO DE VIDA ===
    def close(self):
        """Encerra o escalonador se ele pertence a este motor."""
        if self._owns_scheduler:
            self.scheduler.shutdown()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # === VALIDAÇÃO E PREPARO ===
    def _check_radix(self, radix: RadixCiphertext):
        if not radix.crypto_params.is_compatible_with(self.crypto_params):
            raise IncompatibleParametersError(
                "Inteiro com parâmetros incompatíveis com o motor",
                details={
                    "expected": self.crypto_params.compatibility_key(),
                    "received": radix.crypto_params.compatibility_key(),
                },
            )

    def _check_operands(self, lhs: RadixCiphertext, rhs: RadixCiphertext):
        """
        Raises:
            IncompatibleParametersError: Se um operando não usa os parâmetros do motor
            IncompatibleOperandsError: Se os operandos diferem em blocos ou sinal
        """
        self._check_radix(lhs)
        self._check_radix(rhs)
        if not lhs.has_same_layout(rhs):
            raise IncompatibleOperandsError(
                "Operandos com formatos diferentes",
                details={
                    "lhs": (lhs.num_blocks, lhs.signed),
                    "rhs": (rhs.num_blocks, rhs.signed),
                },
            )

    def _prepare(self, radix: RadixCiphertext, flavor: Flavor) -> RadixCiphertext:
        """Entradas prontas para uma operação que precisa de blocos canônicos."""
        if flavor is Flavor.UNCHECKED:
            return radix
        if flavor is Flavor.CHECKED and not radix.is_canonical:
            raise NonCanonicalInputError(
                "Operação CHECKED exige entradas canônicas",
                details={"degrees": [block.degree for block in radix.blocks]},
            )
        return self.carry.propagate(radix)

    def _fit(self, lhs: RadixCiphertext, rhs: RadixCiphertext, fits, flavor: Flavor):
        """
        Garante espaço para uma operação linear bloco a bloco.

        Propaga primeiro o operando da esquerda, depois o da direita e por
        fim renova o ruído de ambos, parando assim que `fits` for satisfeito.
        """
        if flavor is Flavor.UNCHECKED or fits(lhs, rhs):
            return lhs, rhs
        lhs = self.carry.propagate(lhs)
        if fits(lhs, rhs):
            return lhs, rhs
        rhs = self.carry.propagate(rhs)
        if fits(lhs, rhs):
            return lhs, rhs
        return self.carry.refresh(lhs), self.carry.refresh(rhs)

    def _finish(self, radix: RadixCiphertext, flavor: Flavor) -> RadixCiphertext:
        if flavor in (Flavor.CHECKED, Flavor.DEFAULT):
            return self.carry.propagate(radix)
        return radix

    def _merged_flag(self, *operands: RadixCiphertext) -> Optional[BlockCiphertext]:
        flags = []
        for operand in operands:
            flag = operand.overflow_flag
            if flag is not None and all(flag is not seen for seen in flags):
                flags.append(flag)
        if len(flags) <= 1:
            return flags[0] if flags else None
        return self.carry.merge_flags(flags)

    def _trivial_blocks(self, count: int) -> List[BlockCiphertext]:
        return [self.block_engine.trivial(0) for _ in range(count)]

    def _scalar_digits(self, scalar: int, num_blocks: int) -> List[int]:
        msg = self.crypto_params.MESSAGE_MODULUS
        remaining = scalar % msg**num_blocks
        digits = []
        for _ in range(num_blocks):
            digits.append(remaining % msg)
            remaining //= msg
        return digits

    def _trivial_radix(self, like: RadixCiphertext, value: int) -> RadixCiphertext:
        blocks = [
            self.block_engine.trivial(digit)
            for digit in self._scalar_digits(value, like.num_blocks)
        ]
        return like.with_blocks(blocks)

    def _boolean_result(self, like: RadixCiphertext, bit: BlockCiphertext) -> RadixCiphertext:
        """Inteiro com o bit de comparação no bloco 0 e zeros triviais acima."""
        blocks = [bit] + self._trivial_blocks(like.num_blocks - 1)
        return RadixCiphertext(blocks, signed=like.signed, overflow_policy=like.overflow_policy)

    # === PROPAGAÇÃO ===
    def propagate(self, radix: RadixCiphertext) -> RadixCiphertext:
        """Ponto de entrada explícito do motor de carries."""
        self._check_radix(radix)
        return self.carry.propagate(radix)

    # === ARITMÉTICA ===
    def add(
        self, lhs: RadixCiphertext, rhs: RadixCiphertext, flavor: Flavor = Flavor.DEFAULT
    ) -> RadixCiphertext:
        """
        Soma bloco a bloco sem PBS; os carries ficam no espaço de carry até
        a propagação. Sob a política REPORT o carry que sai do topo liga a
        flag de overflow quando o resultado é propagado.

        Args:
            lhs: Primeiro operando
            rhs: Segundo operando
            flavor: Política de propagação

        Returns:
            RadixCiphertext: lhs + rhs mod 2^w
        """
        self._check_operands(lhs, rhs)
        if flavor is Flavor.CHECKED or flavor is Flavor.DEFAULT:
            lhs, rhs = self._prepare(lhs, flavor), self._prepare(rhs, flavor)
        lhs, rhs = self._fit(lhs, rhs, self._fits_add, flavor)

        blocks = [
            self.block_engine.unchecked_add(x, y) for x, y in zip(lhs.blocks, rhs.blocks)
        ]
        result = lhs.with_blocks(blocks, overflow_flag=self._merged_flag(lhs, rhs))
        return self._finish(result, flavor)

    @staticmethod
    def _fits_add(lhs: RadixCiphertext, rhs: RadixCiphertext) -> bool:
        return all(x.can_add_with(y) for x, y in zip(lhs.blocks, rhs.blocks))

    def _negated_blocks(
        self, blocks: Sequence[BlockCiphertext]
    ) -> Tuple[List[BlockCiphertext], int]:
        """
        Negação com cadeia de correções.

        Returns:
            Tuple: (blocos que somam k · msg^n - x, k)
        """
        negated = []
        borrow = 0
        for block in blocks:
            block, borrow = self.block_engine.unchecked_neg_with_correction(block, borrow)
            negated.append(block)
        return negated, borrow

    def _fits_sub(self, lhs: RadixCiphertext, rhs: RadixCiphertext) -> bool:
        negated, _ = self._negated_blocks(rhs.blocks)
        return all(x.can_add_with(y) for x, y in zip(lhs.blocks, negated))

    def _borrow_sum(
        self, lhs: RadixCiphertext, rhs: RadixCiphertext, check: bool = True
    ) -> Tuple[List[BlockCiphertext], BlockCiphertext, int]:
        """
        Soma lhs + neg(rhs) e propaga capturando o carry do topo.

        Returns:
            Tuple: (blocos de lhs - rhs, carry do topo, k); houve empréstimo
            exatamente quando o carry do topo é menor que k
        """
        negated, k = self._negated_blocks(rhs.blocks)
        blocks = [
            self.block_engine.unchecked_add(x, y) for x, y in zip(lhs.blocks, negated)
        ]
        blocks, carry_out = self.carry.propagate_with_carry_out(
            blocks, capture_carry_out=True, check=check
        )
        if carry_out is None:
            carry_out = self.block_engine.trivial(0)
        return blocks, carry_out, k

    def _borrow_bit(
        self, carry_out: BlockCiphertext, k: int, negate: bool = False, check: bool = True
    ) -> BlockCiphertext:
        if negate:
            lut = self.block_engine.lut(f"no_borrow_{k}", lambda x: int(x >= k))
        else:
            lut = self.block_engine.lut(f"borrow_{k}", lambda x: int(x < k))
        return self.block_engine.evaluate_batch(
            self.scheduler, "borrow", [(lut, (carry_out,))], check
        )[0]

    def sub(
        self, lhs: RadixCiphertext, rhs: RadixCiphertext, flavor: Flavor = Flavor.DEFAULT
    ) -> RadixCiphertext:
        """
        Subtração como lhs + neg(rhs), com a negação corrigida por blocos.

        Sob a política REPORT o resultado é sempre propagado, para separar o
        termo de correção da negação de um empréstimo real (que liga a flag).

        Returns:
            RadixCiphertext: lhs - rhs mod 2^w
        """
        self._check_operands(lhs, rhs)
        if flavor is Flavor.CHECKED or flavor is Flavor.DEFAULT:
            lhs, rhs = self._prepare(lhs, flavor), self._prepare(rhs, flavor)
        lhs, rhs = self._fit(lhs, rhs, self._fits_sub, flavor)

        if lhs.reports_overflow:
            if flavor in (Flavor.UNCHECKED, Flavor.SMART):
                logger.warning("sub com política REPORT: resultado propagado (%s)", flavor.value)
            check = flavor is not Flavor.UNCHECKED
            blocks, carry_out, k = self._borrow_sum(lhs, rhs, check)
            borrow = self._borrow_bit(carry_out, k, check=check)
            flag = self.carry.merge_flags([lhs.overflow_flag, rhs.overflow_flag, borrow])
            return lhs.with_blocks(blocks, overflow_flag=flag)

        negated, _ = self._negated_blocks(rhs.blocks)
        blocks = [
            self.block_engine.unchecked_add(x, y) for x, y in zip(lhs.blocks, negated)
        ]
        result = lhs.with_blocks(blocks, overflow_flag=self._merged_flag(lhs, rhs))
        return self._finish(result, flavor)

    def neg(self, radix: RadixCiphertext, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        """Negação em complemento de dois: 0 - x."""
        self._check_radix(radix)
        return self.sub(self._trivial_radix(radix, 0), radix, flavor)

    def scalar_add(
        self, radix: RadixCiphertext, scalar: int, flavor: Flavor = Flavor.DEFAULT
    ) -> RadixCiphertext:
        """Soma de um escalar limpo, dígito a dígito e sem PBS."""
        self._check_radix(radix)
        if radix.reports_overflow:
            if scalar < 0:
                return self.scalar_sub(radix, -scalar, flavor)
            if scalar >= 1 << radix.bit_width:
                raise ValueError("Escalar excede a largura do inteiro")

        digits = self._scalar_digits(scalar, radix.num_blocks)
        if flavor is Flavor.CHECKED or flavor is Flavor.DEFAULT:
            radix = self._prepare(radix, flavor)
        modulus = self.crypto_params.TOTAL_MODULUS
        if flavor is not Flavor.UNCHECKED and not all(
            block.degree + digit < modulus for block, digit in zip(radix.blocks, digits)
        ):
            radix = self.carry.propagate(radix)

        blocks = [
            self.block_engine.unchecked_scalar_add(block, digit)
            for block, digit in zip(radix.blocks, digits)
        ]
        return self._finish(radix.with_blocks(blocks, radix.overflow_flag), flavor)

    def scalar_sub(
        self, radix: RadixCiphertext, scalar: int, flavor: Flavor = Flavor.DEFAULT
    ) -> RadixCiphertext:
        """Subtração de um escalar limpo."""
        self._check_radix(radix)
        if not radix.reports_overflow:
            return self.scalar_add(radix, -scalar, flavor)
        if scalar < 0:
            return self.scalar_add(radix, -scalar, flavor)
        if scalar >= 1 << radix.bit_width:
            raise ValueError("Escalar excede a largura do inteiro")
        return self.sub(radix, self._trivial_radix(radix, scalar), flavor)

    def scalar_mul(
        self, radix: RadixCiphertext, scalar: int, flavor: Flavor = Flavor.DEFAULT
    ) -> RadixCiphertext:
        """
        Multiplicação por um escalar limpo.

        Cada bloco é multiplicado por cada dígito do escalar com dois PBS
        univariados (parte baixa e parte alta do produto); as colunas de
        produtos parciais são acumuladas pelo motor de carries.
        """
        self._check_radix(radix)
        if radix.reports_overflow and not 0 <= scalar < 1 << radix.bit_width:
            raise ValueError("Escalar fora do intervalo do inteiro")

        radix = self._prepare(radix, flavor)
        n = radix.num_blocks
        width = 2 * n if radix.reports_overflow else n
        msg = self.crypto_params.MESSAGE_MODULUS
        engine = self.block_engine
        check = flavor is not Flavor.UNCHECKED

        requests = []
        targets = []
        for j, digit in enumerate(self._scalar_digits(scalar, n)):
            if digit == 0:
                continue
            low = engine.lut(f"scalar_mul_low_{digit}", lambda x, d=digit: (x * d) % msg)
            high = engine.lut(f"scalar_mul_high_{digit}", lambda x, d=digit: (x * d) // msg)
            for i, block in enumerate(radix.blocks):
                if i + j < width:
                    requests.append((low, (block,)))
                    targets.append(i + j)
                if i + j + 1 < width:
                    requests.append((high, (block,)))
                    targets.append(i + j + 1)

        columns: List[List[BlockCiphertext]] = [[] for _ in range(width)]
        outputs = engine.evaluate_batch(self.scheduler, "scalar_mul", requests, check)
        for column, output in zip(targets, outputs):
            columns[column].append(output)
        blocks = self.carry.sum_columns(columns, check)
        return self._product_result(radix, radix, blocks, flavor)

    def mul(
        self, lhs: RadixCiphertext, rhs: RadixCiphertext, flavor: Flavor = Flavor.DEFAULT
    ) -> RadixCiphertext:
        """
        Multiplicação de dois inteiros criptografados.

        Cada par de blocos (i, j) gera dois PBS bivariados, parte baixa na
        coluna i+j e parte alta na coluna i+j+1, despachados num único lote.
        DEFAULT, CHECKED e UNCHECKED acumulam as colunas e propagam uma vez;
        SMART acumula linha a linha com somas SMART. O custo é quadrático no
        número de blocos.

        Returns:
            RadixCiphertext: lhs * rhs mod 2^w
        """
        self._check_operands(lhs, rhs)
        lhs, rhs = self._prepare(lhs, flavor), self._prepare(rhs, flavor)
        n = lhs.num_blocks
        width = 2 * n if lhs.reports_overflow else n
        msg = self.crypto_params.MESSAGE_MODULUS
        engine = self.block_engine
        check = flavor is not Flavor.UNCHECKED

        low = engine.bivariate_lut("mul_low", lambda x, y: (x * y) % msg)
        high = engine.bivariate_lut("mul_high", lambda x, y: (x * y) // msg)
        # targets: (linha, coluna); a linha 2i guarda as partes baixas do
        # bloco i de lhs e a linha 2i+1 as partes altas
        requests = []
        targets = []
        for i, x in enumerate(lhs.blocks):
            for j, y in enumerate(rhs.blocks):
                if i + j < width:
                    requests.append((low, (x, y)))
                    targets.append((2 * i, i + j))
                if i + j + 1 < width:
                    requests.append((high, (x, y)))
                    targets.append((2 * i + 1, i + j + 1))
        outputs = engine.evaluate_batch(self.scheduler, "mul_partial", requests, check)

        if flavor is Flavor.SMART and not lhs.reports_overflow:
            rows = [self._trivial_blocks(n) for _ in range(2 * n)]
            for (row, column), output in zip(targets, outputs):
                rows[row][column] = output
            acc = lhs.with_blocks(rows[0], overflow_flag=self._merged_flag(lhs, rhs))
            for row in rows[1:]:
                acc = self.add(acc, lhs.with_blocks(row), Flavor.SMART)
            return acc

        columns: List[List[BlockCiphertext]] = [[] for _ in range(width)]
        for (_, column), output in zip(targets, outputs):
            columns[column].append(output)
        blocks = self.carry.sum_columns(columns, check)
        return self._product_result(lhs, rhs, blocks, flavor)

    def _product_result(
        self,
        lhs: RadixCiphertext,
        rhs: RadixCiphertext,
        blocks: List[BlockCiphertext],
        flavor: Flavor,
    ) -> RadixCiphertext:
        """Monta o produto; sob REPORT as colunas altas viram a flag de overflow."""
        n = lhs.num_blocks
        if not lhs.reports_overflow:
            result = lhs.with_blocks(blocks, overflow_flag=self._merged_flag(lhs, rhs))
            return self._finish(result, flavor)

        if flavor in (Flavor.UNCHECKED, Flavor.SMART):
            logger.warning("Produto com política REPORT: resultado propagado (%s)", flavor.value)
        check = flavor is not Flavor.UNCHECKED
        blocks, _ = self.carry.propagate_with_carry_out(
            blocks, capture_carry_out=False, check=check
        )
        any_nonzero = self.block_engine.bivariate_lut(
            "any_nonzero", lambda x, y: int(x != 0 or y != 0)
        )
        high = blocks[n:]
        if len(high) == 1:
            overflow = self.block_engine.evaluate_batch(
                self.scheduler,
                "overflow",
                [(self.block_engine.nonzero_lut(), (high[0],))],
                check,
            )[0]
        else:
            overflow = self.carry.reduce_tree("overflow", high, any_nonzero, check)
        flag = self.carry.merge_flags([lhs.overflow_flag, rhs.overflow_flag, overflow])
        return lhs.with_blocks(blocks[:n], overflow_flag=flag)

    # === BIT A BIT ===
    def _bitwise(
        self, name: str, func, lhs: RadixCiphertext, rhs: RadixCiphertext, flavor: Flavor
    ) -> RadixCiphertext:
        self._check_operands(lhs, rhs)
        lhs, rhs = self._prepare(lhs, flavor), self._prepare(rhs, flavor)
        lut = self.block_engine.bivariate_lut(name, func)
        blocks = self.block_engine.evaluate_batch(
            self.scheduler,
            name,
            [(lut, (x, y)) for x, y in zip(lhs.blocks, rhs.blocks)],
            flavor is not Flavor.UNCHECKED,
        )
        return lhs.with_blocks(blocks, overflow_flag=self._merged_flag(lhs, rhs))

    def bitand(self, lhs, rhs, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        return self._bitwise("bitand", lambda x, y: x & y, lhs, rhs, flavor)

    def bitor(self, lhs, rhs, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        return self._bitwise("bitor", lambda x, y: x | y, lhs, rhs, flavor)

    def bitxor(self, lhs, rhs, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        return self._bitwise("bitxor", lambda x, y: x ^ y, lhs, rhs, flavor)

    def bitnot(self, radix: RadixCiphertext, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        self._check_radix(radix)
        radix = self._prepare(radix, flavor)
        msg = self.crypto_params.MESSAGE_MODULUS
        lut = self.block_engine.lut("bitnot", lambda x: msg - 1 - x % msg)
        blocks = self.block_engine.evaluate_batch(
            self.scheduler,
            "bitnot",
            [(lut, (block,)) for block in radix.blocks],
            flavor is not Flavor.UNCHECKED,
        )
        return radix.with_blocks(blocks, overflow_flag=radix.overflow_flag)

    # === COMPARAÇÕES ===
    def eq(self, lhs, rhs, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        """Igualdade: 1 no bloco 0 quando todos os blocos coincidem."""
        return self._equality(lhs, rhs, flavor, equal=True)

    def ne(self, lhs, rhs, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        return self._equality(lhs, rhs, flavor, equal=False)

    def _equality(self, lhs, rhs, flavor: Flavor, equal: bool) -> RadixCiphertext:
        self._check_operands(lhs, rhs)
        lhs, rhs = self._prepare(lhs, flavor), self._prepare(rhs, flavor)
        check = flavor is not Flavor.UNCHECKED
        engine = self.block_engine
        if equal:
            per_block = engine.bivariate_lut("block_eq", lambda x, y: int(x == y))
            combine = engine.bivariate_lut("bool_and", lambda x, y: int(x != 0 and y != 0))
        else:
            per_block = engine.bivariate_lut("block_ne", lambda x, y: int(x != y))
            combine = engine.bivariate_lut("bool_or", lambda x, y: int(x != 0 or y != 0))

        bits = engine.evaluate_batch(
            self.scheduler,
            "compare_blocks",
            [(per_block, (x, y)) for x, y in zip(lhs.blocks, rhs.blocks)],
            check,
        )
        bit = self.carry.reduce_tree("compare_reduce", bits, combine, check)
        return self._boolean_result(lhs, bit)

    def _ordered_blocks(
        self, radix: RadixCiphertext, check: bool = True
    ) -> List[BlockCiphertext]:
        """Blocos cuja ordem sem sinal coincide com a ordem do inteiro."""
        blocks = list(radix.blocks)
        if radix.signed:
            msg = self.crypto_params.MESSAGE_MODULUS
            lut = self.block_engine.lut("flip_sign", lambda x: (x + msg // 2) % msg)
            blocks[-1] = self.block_engine.evaluate_batch(
                self.scheduler, "flip_sign", [(lut, (blocks[-1],))], check
            )[0]
        return blocks

    def _less_than(self, lhs, rhs, flavor: Flavor, negate: bool) -> RadixCiphertext:
        self._check_operands(lhs, rhs)
        lhs, rhs = self._prepare(lhs, flavor), self._prepare(rhs, flavor)
        check = flavor is not Flavor.UNCHECKED
        ordered_lhs = lhs.with_blocks(self._ordered_blocks(lhs, check))
        ordered_rhs = rhs.with_blocks(self._ordered_blocks(rhs, check))
        ordered_lhs, ordered_rhs = self._fit(ordered_lhs, ordered_rhs, self._fits_sub, flavor)
        _, carry_out, k = self._borrow_sum(ordered_lhs, ordered_rhs, check)
        bit = self._borrow_bit(carry_out, k, negate, check)
        return self._boolean_result(lhs, bit)

    def lt(self, lhs, rhs, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        """lhs < rhs, pelo empréstimo de lhs - rhs."""
        return self._less_than(lhs, rhs, flavor, negate=False)

    def ge(self, lhs, rhs, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        return self._less_than(lhs, rhs, flavor, negate=True)

    def gt(self, lhs, rhs, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        return self._less_than(rhs, lhs, flavor, negate=False)

    def le(self, lhs, rhs, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        return self._less_than(rhs, lhs, flavor, negate=True)

    def if_then_else(
        self,
        condition: RadixCiphertext,
        if_true: RadixCiphertext,
        if_false: RadixCiphertext,
        flavor: Flavor = Flavor.DEFAULT,
    ) -> RadixCiphertext:
        """
        Seleção criptografada: if_true quando o bloco 0 da condição é não nulo.

        Args:
            condition: Resultado de comparação (ou inteiro com 0/1 no bloco 0)
            if_true: Valor quando a condição vale 1
            if_false: Valor quando a condição vale 0

        Returns:
            RadixCiphertext: Inteiro canônico selecionado
        """
        self._check_radix(condition)
        self._check_operands(if_true, if_false)
        if_true, if_false = self._prepare(if_true, flavor), self._prepare(if_false, flavor)
        check = flavor is not Flavor.UNCHECKED
        engine = self.block_engine
        selector = condition.blocks[0]

        keep_true = engine.bivariate_lut("select_true", lambda c, x: x if c != 0 else 0)
        keep_false = engine.bivariate_lut("select_false", lambda c, x: 0 if c != 0 else x)
        requests = [(keep_true, (selector, block)) for block in if_true.blocks]
        requests += [(keep_false, (selector, block)) for block in if_false.blocks]
        outputs = engine.evaluate_batch(self.scheduler, "select", requests, check)

        n = if_true.num_blocks
        summed = [engine.unchecked_add(outputs[i], outputs[n + i]) for i in range(n)]
        blocks = engine.evaluate_batch(
            self.scheduler,
            "select_merge",
            [(engine.message_lut(), (block,)) for block in summed],
            check,
        )
        return if_true.with_blocks(blocks, overflow_flag=self._merged_flag(if_true, if_false))

    def min(self, lhs, rhs, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        lhs, rhs = self._prepare(lhs, flavor), self._prepare(rhs, flavor)
        return self.if_then_else(self.lt(lhs, rhs, flavor), lhs, rhs, flavor)

    def max(self, lhs, rhs, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        lhs, rhs = self._prepare(lhs, flavor), self._prepare(rhs, flavor)
        return self.if_then_else(self.lt(lhs, rhs, flavor), rhs, lhs, flavor)

    # === DESLOCAMENTOS ===
    def _sign_block(self, radix: RadixCiphertext, check: bool = True) -> BlockCiphertext:
        msg = self.crypto_params.MESSAGE_MODULUS
        lut = self.block_engine.lut(
            "sign_fill", lambda x: msg - 1 if x % msg >= msg // 2 else 0
        )
        return self.block_engine.evaluate_batch(
            self.scheduler, "sign_fill", [(lut, (radix.blocks[-1],))], check
        )[0]

    def _shift(
        self, radix: RadixCiphertext, amount: int, direction: str, rotate: bool, flavor: Flavor
    ) -> RadixCiphertext:
        self._check_radix(radix)
        if amount < 0:
            raise ValueError("Deslocamento deve ser não negativo")
        radix = self._prepare(radix, flavor)
        check = flavor is not Flavor.UNCHECKED
        n = radix.num_blocks
        bits = self.crypto_params.MESSAGE_BITS

        if rotate:
            amount %= radix.bit_width
        arithmetic = direction == "right" and radix.signed and not rotate
        if arithmetic:
            fill = self._sign_block(radix, check)
        else:
            fill = self.block_engine.trivial(0)

        if amount >= radix.bit_width:
            blocks = [fill.copy() for _ in range(n)]
            return radix.with_blocks(blocks, overflow_flag=radix.overflow_flag)

        block_shift, bit_shift = divmod(amount, bits)
        blocks = list(radix.blocks)
        if direction == "left":
            if rotate:
                blocks = blocks[n - block_shift:] + blocks[: n - block_shift]
                fill = blocks[-1]
            else:
                blocks = [fill.copy() for _ in range(block_shift)] + blocks[: n - block_shift]
        else:
            if rotate:
                blocks = blocks[block_shift:] + blocks[:block_shift]
                fill = blocks[0]
            else:
                blocks = blocks[block_shift:] + [fill.copy() for _ in range(block_shift)]

        if bit_shift:
            blocks = self.carry.shift_bits(blocks, bit_shift, direction, fill, check)
        logger.debug(
            "Deslocamento %s de %d bits (%d blocos, %d bits internos)",
            direction,
            amount,
            block_shift,
            bit_shift,
        )
        return radix.with_blocks(blocks, overflow_flag=radix.overflow_flag)

    def left_shift(self, radix, amount: int, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        return self._shift(radix, amount, "left", False, flavor)

    def right_shift(self, radix, amount: int, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        """Deslocamento à direita; aritmético (preenche com o sinal) para inteiros com sinal."""
        return self._shift(radix, amount, "right", False, flavor)

    def rotate_left(self, radix, amount: int, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        return self._shift(radix, amount, "left", True, flavor)

    def rotate_right(self, radix, amount: int, flavor: Flavor = Flavor.DEFAULT) -> RadixCiphertext:
        return self._shift(radix, amount, "right", True, flavor)
