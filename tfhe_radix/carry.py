"""
Motor de propagação de carries.

A propagação é uma lista explícita de fases que alterna lotes paralelos de
PBS com barreiras sequenciais:

1. extract (paralela): separa mensagem e carry de cada bloco não canônico
2. absorb (barreira): soma o carry do bloco i ao bloco i+1
3. ripple (sequencial): do menos para o mais significativo, divide o que
   ainda não for canônico e empurra o carry para o bloco seguinte

O carry que sai do bloco superior é descartado (WRAPPING) ou incorporado à
flag de overflow criptografada (REPORT).
"""

import logging
from enum import Enum
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

from .block import BlockCiphertext
from .block_engine import BlockEngine
from .radix import RadixCiphertext
from .scheduler import ExecutionScheduler

logger = logging.getLogger(__name__)


class PhaseKind(Enum):
    PARALLEL = "parallel"
    BARRIER = "barrier"
    SEQUENTIAL = "sequential"


class Phase(NamedTuple):
    name: str
    kind: PhaseKind
    run: Callable[["_PropagationState"], None]


class _PropagationState:
    """Estado compartilhado pelas fases de uma propagação."""

    def __init__(
        self, blocks: Sequence[BlockCiphertext], capture_carry_out: bool, check: bool = True
    ):
        self.blocks = list(blocks)
        self.capture_carry_out = capture_carry_out
        self.check = check
        self.carries: List[Tuple[int, BlockCiphertext]] = []
        self.carry_out: List[BlockCiphertext] = []


class CarryPropagationEngine:
    """
    Resolve carries entre os blocos de um inteiro radix.

    Attributes:
        block_engine: Motor de blocos usado para as portas
        scheduler: Escalonador das fases paralelas
    """

    def __init__(self, block_engine: BlockEngine, scheduler: ExecutionScheduler):
        self.block_engine = block_engine
        self.scheduler = scheduler

    # === PROPAGAÇÃO COMPLETA ===
    def propagation_plan(self) -> List[Phase]:
        return [
            Phase("extract", PhaseKind.PARALLEL, self._extract_phase),
            Phase("absorb", PhaseKind.BARRIER, self._absorb_phase),
            Phase("ripple", PhaseKind.SEQUENTIAL, self._ripple_phase),
        ]

    def propagate(
        self,
        radix: RadixCiphertext,
        report_overflow: Optional[bool] = None,
        check: bool = True,
    ) -> RadixCiphertext:
        """
        Leva todos os blocos à forma canônica (carry zero).

        Em uma sequência já canônica é um no-op: o próprio objeto é devolvido
        e nenhum PBS é executado.

        Args:
            radix: Inteiro a propagar
            report_overflow: Sobrescreve a política do inteiro (None usa a política)
            check: Se False, não valida graus (caminho unchecked)

        Returns:
            RadixCiphertext: Inteiro canônico
        """
        if radix.is_canonical:
            return radix

        if report_overflow is None:
            report_overflow = radix.reports_overflow

        blocks, carry_out = self.propagate_with_carry_out(
            radix.blocks, capture_carry_out=report_overflow, check=check
        )
        flag = radix.overflow_flag
        if report_overflow and carry_out is not None:
            flag = self.merge_flags([flag, carry_out])
        return radix.with_blocks(blocks, overflow_flag=flag)

    def propagate_with_carry_out(
        self,
        blocks: Sequence[BlockCiphertext],
        capture_carry_out: bool = True,
        check: bool = True,
    ) -> Tuple[List[BlockCiphertext], Optional[BlockCiphertext]]:
        """
        Executa o plano de propagação sobre uma sequência de blocos.

        Returns:
            Tuple: (blocos canônicos, soma dos carries que saíram do topo ou None)
        """
        state = _PropagationState(blocks, capture_carry_out, check)
        if all(block.is_canonical for block in state.blocks):
            return state.blocks, None

        for phase in self.propagation_plan():
            logger.debug("Propagação: fase %s (%s)", phase.name, phase.kind.value)
            phase.run(state)

        return state.blocks, self._sum_blocks(state.carry_out)

    def _extract_phase(self, state: _PropagationState):
        engine = self.block_engine
        top = len(state.blocks) - 1
        requests = []
        targets = []
        for i, block in enumerate(state.blocks):
            if block.is_canonical:
                continue
            requests.append((engine.message_lut(), (block,)))
            targets.append(("message", i))
            if i < top or state.capture_carry_out:
                requests.append((engine.carry_lut(), (block,)))
                targets.append(("carry", i))

        outputs = engine.evaluate_batch(self.scheduler, "extract", requests, state.check)
        for (kind, i), output in zip(targets, outputs):
            if kind == "message":
                state.blocks[i] = output
            else:
                state.carries.append((i, output))

    def _absorb_phase(self, state: _PropagationState):
        top = len(state.blocks) - 1
        receivers = [i + 1 for i, _ in state.carries if i < top]
        self._refresh_for_addition(state.blocks, receivers, state.check)

        for i, carry in state.carries:
            if i < top:
                state.blocks[i + 1] = self.block_engine.unchecked_add(
                    state.blocks[i + 1], carry
                )
            else:
                state.carry_out.append(carry)
        state.carries = []

    def _ripple_phase(self, state: _PropagationState):
        engine = self.block_engine
        top = len(state.blocks) - 1
        for i in range(len(state.blocks)):
            block = state.blocks[i]
            if block.is_canonical:
                continue

            requests = [(engine.message_lut(), (block,))]
            if i < top or state.capture_carry_out:
                requests.append((engine.carry_lut(), (block,)))
            outputs = engine.evaluate_batch(self.scheduler, "ripple", requests, state.check)
            state.blocks[i] = outputs[0]
            if len(outputs) == 1:
                continue

            carry = outputs[1]
            if i < top:
                if not state.blocks[i + 1].can_add_with(carry):
                    self._refresh_for_addition(state.blocks, [i + 1], state.check)
                state.blocks[i + 1] = engine.unchecked_add(state.blocks[i + 1], carry)
            else:
                state.carry_out.append(carry)

    def _refresh_for_addition(
        self, blocks: List[BlockCiphertext], indices: List[int], check: bool = True
    ):
        """Renova por PBS identidade os blocos sem orçamento de ruído para uma soma."""
        max_noise = self.block_engine.crypto_params.MAX_NOISE_LEVEL
        stale = [i for i in indices if blocks[i].noise_level + 1 > max_noise]
        if not stale:
            return
        identity = self.block_engine.identity_lut()
        outputs = self.block_engine.evaluate_batch(
            self.scheduler, "refresh", [(identity, (blocks[i],)) for i in stale],
            check,
        )
        for i, output in zip(stale, outputs):
            blocks[i] = output

    def refresh(self, radix: RadixCiphertext) -> RadixCiphertext:
        """Renova o ruído de todos os blocos que acumularam mais que o nominal."""
        blocks = list(radix.blocks)
        stale = [i for i, block in enumerate(blocks) if block.noise_level > 1]
        if not stale:
            return radix
        identity = self.block_engine.identity_lut()
        outputs = self.block_engine.evaluate_batch(
            self.scheduler, "refresh", [(identity, (blocks[i],)) for i in stale]
        )
        for i, output in zip(stale, outputs):
            blocks[i] = output
        return radix.with_blocks(blocks, overflow_flag=radix.overflow_flag)

    # === FLAGS DE OVERFLOW ===
    def _sum_blocks(self, blocks: List[BlockCiphertext]) -> Optional[BlockCiphertext]:
        if not blocks:
            return None
        total = blocks[0]
        for block in blocks[1:]:
            total = self._add_with_room(total, block)
        return total

    def _add_with_room(self, lhs: BlockCiphertext, rhs: BlockCiphertext) -> BlockCiphertext:
        engine = self.block_engine
        if not lhs.can_add_with(rhs):
            lhs = engine.evaluate_batch(
                self.scheduler, "refresh", [(engine.identity_lut(), (lhs,))]
            )[0]
        return engine.unchecked_add(lhs, rhs)

    def merge_flags(
        self, flags: Sequence[Optional[BlockCiphertext]]
    ) -> Optional[BlockCiphertext]:
        """
        OU lógico de flags criptografadas (qualquer valor não nulo conta como 1).

        Returns:
            Optional[BlockCiphertext]: Bloco 0/1, ou None se não houver flags
        """
        present = [flag for flag in flags if flag is not None]
        if not present:
            return None

        engine = self.block_engine
        nonzero = engine.nonzero_lut()
        merged = present[0]
        if merged.degree > 1:
            merged = engine.evaluate_batch(self.scheduler, "flag", [(nonzero, (merged,))])[0]
        for flag in present[1:]:
            if flag.degree > 1:
                flag = engine.evaluate_batch(self.scheduler, "flag", [(nonzero, (flag,))])[0]
            merged = engine.evaluate_batch(
                self.scheduler, "flag", [(nonzero, (self._add_with_room(merged, flag),))]
            )[0]
        return merged

    # === VARIANTES ESPECIALIZADAS ===
    def shift_bits(
        self,
        blocks: Sequence[BlockCiphertext],
        bit_shift: int,
        direction: str,
        fill: BlockCiphertext,
        check: bool = True,
    ) -> List[BlockCiphertext]:
        """
        Deslocamento dentro dos blocos com carry-in do bloco vizinho.

        Cada bloco é combinado com o vizinho por um PBS bivariado; o vizinho
        do bloco da borda é `fill` (zero, bloco de sinal ou o bloco oposto
        numa rotação). Todos os PBS formam um único lote paralelo.

        Args:
            blocks: Blocos canônicos
            bit_shift: Deslocamento em bits, 0 < bit_shift < bits por bloco
            direction: "left" ou "right"
            fill: Vizinho do bloco da borda
            check: Valida o empacotamento bivariado

        Returns:
            List[BlockCiphertext]: Blocos deslocados
        """
        engine = self.block_engine
        msg = engine.crypto_params.MESSAGE_MODULUS
        bits = engine.crypto_params.MESSAGE_BITS
        if not 0 < bit_shift < bits:
            raise ValueError(f"Deslocamento interno deve estar em (0, {bits})")

        n = len(blocks)
        requests = []
        if direction == "right":
            lut = engine.bivariate_lut(
                f"shift_right_{bit_shift}",
                lambda high, low: ((high * msg + low) >> bit_shift) % msg,
            )
            for i in range(n):
                neighbour = blocks[i + 1] if i + 1 < n else fill
                requests.append((lut, (neighbour, blocks[i])))
        elif direction == "left":
            lut = engine.bivariate_lut(
                f"shift_left_{bit_shift}",
                lambda high, low: (((high * msg + low) << bit_shift) // msg) % msg,
            )
            for i in range(n):
                neighbour = blocks[i - 1] if i > 0 else fill
                requests.append((lut, (blocks[i], neighbour)))
        else:
            raise ValueError(f"Direção desconhecida: {direction}")

        return engine.evaluate_batch(self.scheduler, f"shift_{direction}", requests, check)

    def sum_columns(
        self, columns: List[List[BlockCiphertext]], check: bool = True
    ) -> List[BlockCiphertext]:
        """
        Reduz colunas de blocos parciais a um bloco por coluna.

        Em cada rodada os blocos de uma coluna são somados enquanto couberem
        no espaço de carry e no orçamento de ruído. Nas colunas que ainda
        tenham mais de uma soma, cada soma é dividida em mensagem (fica) e
        carry (vai para a coluna seguinte, ou é descartado no topo); blocos
        isolados já canônicos e com ruído nominal ficam como estão. O
        resultado não é necessariamente canônico: falta uma propagação final.

        Args:
            columns: columns[i] são os blocos de peso message_modulus^i
            check: Valida os graus dos PBS de divisão

        Returns:
            List[BlockCiphertext]: Um bloco por coluna
        """
        engine = self.block_engine
        width = len(columns)
        columns = [list(column) for column in columns]

        while True:
            grouped = [self._group_column(column) for column in columns]
            if all(len(groups) <= 1 for groups in grouped):
                break

            requests = []
            targets = []
            columns = [[] for _ in range(width)]
            for i, groups in enumerate(grouped):
                if len(groups) <= 1:
                    columns[i].extend(block for block, _ in groups)
                    continue
                for block, members in groups:
                    if members == 1 and block.is_canonical and block.noise_level <= 1:
                        columns[i].append(block)
                        continue
                    requests.append((engine.message_lut(), (block,)))
                    targets.append(i)
                    carry = engine.carry_lut()
                    if i + 1 < width and carry.output_degree(block.degree) > 0:
                        requests.append((carry, (block,)))
                        targets.append(i + 1)

            outputs = engine.evaluate_batch(self.scheduler, "accumulate", requests, check)
            for i, output in zip(targets, outputs):
                columns[i].append(output)

        return [groups[0][0] if groups else engine.trivial(0) for groups in grouped]

    def _group_column(
        self, column: List[BlockCiphertext]
    ) -> List[Tuple[BlockCiphertext, int]]:
        """Soma gulosa: (bloco acumulado, número de parcelas) por grupo."""
        if not column:
            return []
        groups = []
        acc, members = column[0], 1
        for block in column[1:]:
            if acc.can_add_with(block):
                acc = self.block_engine.unchecked_add(acc, block)
                members += 1
            else:
                groups.append((acc, members))
                acc, members = block, 1
        groups.append((acc, members))
        return groups

    def reduce_tree(
        self,
        label: str,
        blocks: Sequence[BlockCiphertext],
        lut,
        check: bool = True,
    ) -> BlockCiphertext:
        """Combina blocos dois a dois com um PBS bivariado, em rodadas paralelas."""
        level = list(blocks)
        while len(level) > 1:
            pairs = [(lut, (level[i], level[i + 1])) for i in range(0, len(level) - 1, 2)]
            reduced = self.block_engine.evaluate_batch(self.scheduler, label, pairs, check)
            if len(level) % 2 == 1:
                reduced.append(level[-1])
            level = reduced
        return level[0]
