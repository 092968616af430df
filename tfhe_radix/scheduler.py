"""
Escalonador de execução dos PBS.

Cada fase é um lote de unidades independentes despachado para um pool de
threads com barreira fork/join: nenhuma fase retorna antes de todas as suas
unidades terminarem. Dois modos, escolhidos na configuração:

- Paralelo: cada unidade obtém sua aleatoriedade de uma fonte compartilhada
  no momento em que executa; a ordem de término é livre, então o padrão de
  bits dos ciphertexts muda entre execuções (os plaintexts não).
- Determinístico: a aleatoriedade de cada unidade é derivada da seed do
  escalonador, do rótulo da fase, do índice da unidade e do conteúdo das
  entradas; resultados e trace são combinados em ordem de índice.
"""

import hashlib
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from .constants import RadixCryptographicParameters

logger = logging.getLogger(__name__)


def _fingerprint(hasher, item: Any):
    """Alimenta o hasher com o conteúdo de uma unidade de trabalho."""
    if hasattr(item, "digest"):
        hasher.update(item.digest())
    elif isinstance(item, (tuple, list)):
        hasher.update(b"[")
        for element in item:
            _fingerprint(hasher, element)
        hasher.update(b"]")
    elif item is None or isinstance(item, (bool, int, str)):
        hasher.update(repr(item).encode())
    else:
        raise TypeError(
            f"Unidade de trabalho não determinística: {type(item).__name__}"
        )


class ExecutionScheduler:
    """
    Pool de workers com fases fork/join.

    O pool é criado explicitamente e vive até shutdown(); um escalonador
    com um único worker é válido e útil em testes.

    Attributes:
        max_workers: Tamanho do pool
        deterministic: Modo de execução determinística
        seed: Seed usada na derivação determinística, em [0, 2^64)
    """

    def __init__(
        self,
        max_workers: Optional[int] = None,
        deterministic: bool = False,
        seed: int = 0,
    ):
        if max_workers is None:
            max_workers = os.cpu_count() or 1
        if max_workers < 1:
            raise ValueError("max_workers deve ser pelo menos 1")
        if not 0 <= seed < 2**64:
            raise ValueError("seed deve estar em [0, 2^64)")

        self.max_workers = max_workers
        self.deterministic = deterministic
        self.seed = seed
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="pbs"
        )
        self._lock = threading.Lock()
        self._entropy = np.random.default_rng()
        self._trace: List[Tuple[str, int]] = []
        self._phase_count = 0
        self._closed = False
        logger.debug(
            "Escalonador criado (workers=%d, determinístico=%s)",
            max_workers,
            deterministic,
        )

    @classmethod
    def from_parameters(
        cls,
        crypto_params: RadixCryptographicParameters,
        max_workers: Optional[int] = None,
        seed: int = 0,
    ) -> "ExecutionScheduler":
        """Cria o escalonador no modo pedido pela flag dos parâmetros."""
        return cls(
            max_workers=max_workers,
            deterministic=crypto_params.DETERMINISTIC_EXECUTION,
            seed=seed,
        )

    # === CICLO DE VIDA ===
    def shutdown(self, wait_for_pending: bool = True):
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait_for_pending)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    # === AUDITORIA ===
    @property
    def trace(self) -> List[Tuple[str, int]]:
        """Registro (fase, índice) das unidades na ordem em que foram combinadas."""
        with self._lock:
            return list(self._trace)

    @property
    def phase_count(self) -> int:
        with self._lock:
            return self._phase_count

    def reset_trace(self):
        with self._lock:
            self._trace.clear()
            self._phase_count = 0

    # === EXECUÇÃO ===
    def run_phase(
        self,
        label: str,
        func: Callable[[Any, np.random.Generator], Any],
        items: Sequence[Any],
    ) -> List[Any]:
        """
        Executa um lote de unidades independentes e espera todas terminarem.

        Args:
            label: Nome da fase (entra no trace e na derivação determinística)
            func: func(item, rng) executada por unidade
            items: Entradas das unidades

        Returns:
            List[Any]: Resultados na ordem dos itens

        Raises:
            RuntimeError: Se o escalonador já foi encerrado
            Exception: A primeira falha (em ordem de índice), após a barreira
        """
        items = list(items)
        with self._lock:
            if self._closed:
                raise RuntimeError("Escalonador já foi encerrado")
            self._phase_count += 1
        if not items:
            return []

        if self.deterministic:
            rngs = [self._derived_rng(label, i, item) for i, item in enumerate(items)]
            futures = [
                self._executor.submit(func, item, rng) for item, rng in zip(items, rngs)
            ]
            wait(futures)
            results = [future.result() for future in futures]
            with self._lock:
                self._trace.extend((label, i) for i in range(len(items)))
            return results

        futures = [
            self._executor.submit(self._run_unit, label, i, func, item)
            for i, item in enumerate(items)
        ]
        wait(futures)
        return [future.result() for future in futures]

    def _run_unit(self, label: str, index: int, func, item):
        with self._lock:
            unit_seed = int(self._entropy.integers(0, 2**63))
        result = func(item, np.random.default_rng(unit_seed))
        with self._lock:
            self._trace.append((label, index))
        return result

    def _derived_rng(self, label: str, index: int, item: Any) -> np.random.Generator:
        hasher = hashlib.blake2b(digest_size=16)
        hasher.update(self.seed.to_bytes(8, "little", signed=False))
        hasher.update(label.encode())
        hasher.update(index.to_bytes(4, "little"))
        _fingerprint(hasher, item)
        return np.random.Generator(
            np.random.PCG64(int.from_bytes(hasher.digest(), "little"))
        )
