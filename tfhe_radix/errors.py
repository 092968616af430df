"""
Taxonomia de erros do motor de inteiros radix.

Todos os erros carregam:
- code: código legível por máquina (RADIX_<CATEGORIA>_<ESPECÍFICO>)
- message: descrição legível
- details: metadados estruturados (nunca material de chave ou plaintext)

Nenhum erro é tratado com nova tentativa interna: falhas de bootstrapping
são fatais para a operação em curso.
"""

from typing import Any, Dict, Optional


class RadixEngineError(Exception):
    """Exceção base para todos os erros do motor."""

    def __init__(
        self,
        message: str,
        code: str = "RADIX_INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Converte o erro em dicionário."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class IncompatibleParametersError(RadixEngineError):
    """Operandos com parâmetros de módulo incompatíveis."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="RADIX_PARAMS_INCOMPATIBLE", details=details)


class IncompatibleOperandsError(IncompatibleParametersError):
    """Inteiros radix com largura, sinal ou parâmetros diferentes."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.code = "RADIX_OPERANDS_INCOMPATIBLE"


class NonCanonicalInputError(RadixEngineError):
    """O flavor exige entrada canônica mas algum bloco carrega carry."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="RADIX_INPUT_NON_CANONICAL", details=details)


class RadixOverflowError(RadixEngineError):
    """Overflow sinalizado pela política de overflow do inteiro."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="RADIX_OVERFLOW", details=details)


class NonCompressibleEntityError(RadixEngineError):
    """A entidade não foi derivada de uma seed e não pode ser comprimida."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="RADIX_COMPRESS_UNSUPPORTED", details=details)


class UnsupportedSeedVersionError(RadixEngineError):
    """A tag de geração da seed não é suportada por esta versão."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message, code="RADIX_SEED_VERSION_UNSUPPORTED", details=details
        )
