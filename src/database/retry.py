# src/database/retry.py

# ============================================================
# 🔄 Retentativas com backoff exponencial (helper único)
# ============================================================

import time
from typing import Callable, Tuple, Type, TypeVar
from loguru import logger

T = TypeVar("T")


def executar_com_retentativa(
    operacao: Callable[[], T],
    retries: int = 5,
    delay: float = 2,
    backoff: float = 1.5,
    excecoes: Tuple[Type[BaseException], ...] = (Exception,),
    descricao: str = "operação",
) -> T:
    """
    Executa `operacao` e retenta quando uma das `excecoes` é lançada.
    A espera cresce como delay * backoff^(tentativa-1).
    Na última tentativa a exceção original é propagada.
    """
    for attempt in range(1, retries + 1):
        try:
            return operacao()
        except excecoes as e:
            if attempt == retries:
                logger.error(f"❌ {descricao} falhou após {retries} tentativas: {e}")
                raise
            wait = delay * (backoff ** (attempt - 1))
            logger.warning(
                f"⚠️ {descricao} falhou (tentativa {attempt}/{retries}): {e} — aguardando {wait:.1f}s"
            )
            if wait > 0:
                time.sleep(wait)

    raise ValueError("retries deve ser >= 1")
