# src/database/document_store.py

# ============================================================
# 📦 src/database/document_store.py
# Contrato do store chave-valor (coleção + id) e implementação em memória
# ============================================================

import json
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence
from loguru import logger

from src.database.exceptions import ConflictError, StoreError


OPERADORES_VALIDOS = ("=", "<>", "<", "<=", ">", ">=")


class StoreStatus(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass
class StoreResult:
    """Resultado explícito de toda chamada ao store: ok | not_found | cancelled | error."""
    status: StoreStatus
    data: Any = None
    error: Optional[StoreError] = None

    @classmethod
    def success(cls, data: Any = None) -> "StoreResult":
        return cls(StoreStatus.SUCCESS, data)

    @classmethod
    def not_found(cls) -> "StoreResult":
        return cls(StoreStatus.NOT_FOUND)

    @classmethod
    def cancelled(cls) -> "StoreResult":
        return cls(StoreStatus.CANCELLED)

    @classmethod
    def failed(cls, error: StoreError) -> "StoreResult":
        return cls(StoreStatus.ERROR, error=error)

    @property
    def ok(self) -> bool:
        return self.status == StoreStatus.SUCCESS

    @property
    def cancelado(self) -> bool:
        return self.status == StoreStatus.CANCELLED

    def unwrap(self) -> Any:
        """Retorna `data`; lança o StoreError quando o status é ERROR."""
        if self.status == StoreStatus.ERROR:
            raise self.error
        return self.data


@dataclass(frozen=True)
class Filtro:
    """Predicado de consulta. `campo` aceita caminho pontuado (dentist.dentist_id)."""
    campo: str
    operador: str
    valor: Any

    def __post_init__(self):
        if self.operador not in OPERADORES_VALIDOS:
            raise ValueError(f"Operador inválido: {self.operador}")


@dataclass(frozen=True)
class Condicao:
    """Condição de update: o campo precisa valer `valor` (None = ausente)."""
    campo: str
    valor: Any


def valor_no_caminho(registro: Dict[str, Any], caminho: str) -> Any:
    atual: Any = registro
    for parte in caminho.split("."):
        if not isinstance(atual, dict):
            return None
        atual = atual.get(parte)
    return atual


def _texto(valor: Any) -> Optional[str]:
    if valor is None:
        return None
    if isinstance(valor, bool):
        return "true" if valor else "false"
    if isinstance(valor, float) and valor.is_integer():
        return str(int(valor))
    return str(valor)


def filtro_atende(registro: Dict[str, Any], filtro: Filtro) -> bool:
    """Comparação textual, como os filtros de string do store de origem."""
    atual = _texto(valor_no_caminho(registro, filtro.campo))
    esperado = _texto(filtro.valor)
    if atual is None:
        return False
    if filtro.operador == "=":
        return atual == esperado
    if filtro.operador == "<>":
        return atual != esperado
    if filtro.operador == "<":
        return atual < esperado
    if filtro.operador == "<=":
        return atual <= esperado
    if filtro.operador == ">":
        return atual > esperado
    return atual >= esperado


# ============================================================
# 🧱 Contrato
# ============================================================
class DocumentStore(ABC):
    """
    Store de documentos por coleção + id.
    Todas as operações retornam StoreResult em vez de lançar exceções.
    """

    @abstractmethod
    def get(self, colecao: str, doc_id: str) -> StoreResult:
        ...

    @abstractmethod
    def put(self, colecao: str, doc_id: str, registro: Dict[str, Any]) -> StoreResult:
        """Sobrescreve o documento inteiro."""

    @abstractmethod
    def update(
        self,
        colecao: str,
        doc_id: str,
        campos: Dict[str, Any],
        condicao: Optional[Condicao] = None,
    ) -> StoreResult:
        """Merge campo a campo no documento existente."""

    @abstractmethod
    def scan(self, colecao: str) -> StoreResult:
        ...

    @abstractmethod
    def query(self, colecao: str, filtros: Sequence[Filtro]) -> StoreResult:
        ...


# ============================================================
# 🗃️ Implementação em memória (serializa como o store real)
# ============================================================
class InMemoryDocumentStore(DocumentStore):
    """
    Store em memória. Cada documento passa por JSON na escrita e na leitura,
    de modo que NaN/Infinity são rejeitados e nenhuma referência é compartilhada.
    """

    def __init__(self):
        self._colecoes: Dict[str, Dict[str, str]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _serializar(colecao: str, doc_id: str, registro: Dict[str, Any]) -> str:
        try:
            return json.dumps(registro, ensure_ascii=False, allow_nan=False, default=str)
        except ValueError as e:
            raise StoreError(f"Documento não serializável: {e}", colecao, doc_id) from e

    def get(self, colecao: str, doc_id: str) -> StoreResult:
        with self._lock:
            bruto = self._colecoes.get(colecao, {}).get(str(doc_id))
        if bruto is None:
            return StoreResult.not_found()
        return StoreResult.success(json.loads(bruto))

    def put(self, colecao: str, doc_id: str, registro: Dict[str, Any]) -> StoreResult:
        try:
            bruto = self._serializar(colecao, doc_id, registro)
        except StoreError as e:
            return StoreResult.failed(e)
        with self._lock:
            self._colecoes.setdefault(colecao, {})[str(doc_id)] = bruto
        return StoreResult.success()

    def update(
        self,
        colecao: str,
        doc_id: str,
        campos: Dict[str, Any],
        condicao: Optional[Condicao] = None,
    ) -> StoreResult:
        with self._lock:
            bruto = self._colecoes.get(colecao, {}).get(str(doc_id))
            if bruto is None:
                return StoreResult.not_found()
            atual = json.loads(bruto)
            if condicao is not None and atual.get(condicao.campo) != condicao.valor:
                return StoreResult.failed(
                    ConflictError(
                        f"Conflito em {condicao.campo}: esperado {condicao.valor!r}, "
                        f"encontrado {atual.get(condicao.campo)!r}",
                        colecao,
                        doc_id,
                    )
                )
            atual.update(campos)
            try:
                self._colecoes[colecao][str(doc_id)] = self._serializar(colecao, doc_id, atual)
            except StoreError as e:
                return StoreResult.failed(e)
        return StoreResult.success()

    def scan(self, colecao: str) -> StoreResult:
        with self._lock:
            brutos = list(self._colecoes.get(colecao, {}).values())
        return StoreResult.success([json.loads(b) for b in brutos])

    def query(self, colecao: str, filtros: Sequence[Filtro]) -> StoreResult:
        itens = self.scan(colecao).data
        return StoreResult.success(
            [item for item in itens if all(filtro_atende(item, f) for f in filtros)]
        )


# ============================================================
# 🏭 Fábrica (configurada por ambiente)
# ============================================================
KPI_STORE_BACKEND = os.getenv("KPI_STORE_BACKEND", "postgres")


def criar_store(backend: Optional[str] = None) -> DocumentStore:
    """Cria o store configurado em KPI_STORE_BACKEND (postgres | memoria)."""
    backend = (backend or KPI_STORE_BACKEND).lower()
    if backend == "memoria":
        logger.info("🗃️ Usando store de documentos em memória")
        return InMemoryDocumentStore()
    if backend == "postgres":
        from src.database.postgres_document_store import PostgresDocumentStore

        logger.info("🐘 Usando store de documentos PostgreSQL")
        store = PostgresDocumentStore()
        store.garantir_schema()
        return store
    raise ValueError(f"KPI_STORE_BACKEND inválido: {backend}")
