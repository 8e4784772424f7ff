# src/database/postgres_document_store.py

# ============================================================
# 🐘 Store de documentos sobre PostgreSQL (JSONB)
# ============================================================

import json
from typing import Any, Callable, Dict, Optional, Sequence
from psycopg2 import DatabaseError, InterfaceError, OperationalError
from psycopg2.extras import Json
from loguru import logger

from src.database.db_connection import transacao
from src.database.document_store import (
    Condicao,
    DocumentStore,
    Filtro,
    StoreResult,
)
from src.database.exceptions import ConflictError, StoreError


SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS documentos (
        colecao       TEXT        NOT NULL,
        doc_id        TEXT        NOT NULL,
        data          JSONB       NOT NULL,
        atualizado_em TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (colecao, doc_id)
    );
"""


def _dumps(registro: Dict[str, Any]) -> str:
    return json.dumps(registro, ensure_ascii=False, allow_nan=False, default=str)


class PostgresDocumentStore(DocumentStore):
    """
    Persiste cada documento como uma linha (colecao, doc_id, data JSONB).
    Erros de banco viram StoreResult.failed(StoreError); a reconexão com
    backoff fica a cargo de `transacao`.
    """

    def __init__(self, tabela: str = "documentos"):
        self.tabela = tabela

    # =========================================================
    # 🧱 Schema
    # =========================================================
    def garantir_schema(self) -> None:
        with transacao() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL.replace("documentos", self.tabela))
        logger.success(f"✅ Tabela {self.tabela} pronta")

    def _executar(
        self,
        descricao: str,
        colecao: str,
        doc_id: Optional[str],
        func: Callable[[Any], StoreResult],
    ) -> StoreResult:
        try:
            with transacao() as conn:
                with conn.cursor() as cur:
                    return func(cur)
        except (OperationalError, InterfaceError, DatabaseError, ConnectionError) as e:
            logger.error(f"❌ {descricao} falhou ({colecao}/{doc_id or '*'}): {e}")
            return StoreResult.failed(StoreError(str(e), colecao, doc_id))
        except ValueError as e:
            return StoreResult.failed(StoreError(f"Documento não serializável: {e}", colecao, doc_id))

    # =========================================================
    # 🔍 Leitura
    # =========================================================
    def get(self, colecao: str, doc_id: str) -> StoreResult:
        def _get(cur):
            cur.execute(
                f"SELECT data FROM {self.tabela} WHERE colecao = %s AND doc_id = %s;",
                (colecao, str(doc_id)),
            )
            row = cur.fetchone()
            return StoreResult.success(row[0]) if row else StoreResult.not_found()

        return self._executar("GET", colecao, doc_id, _get)

    def scan(self, colecao: str) -> StoreResult:
        def _scan(cur):
            cur.execute(
                f"SELECT data FROM {self.tabela} WHERE colecao = %s ORDER BY doc_id;",
                (colecao,),
            )
            return StoreResult.success([row[0] for row in cur.fetchall()])

        return self._executar("SCAN", colecao, None, _scan)

    def query(self, colecao: str, filtros: Sequence[Filtro]) -> StoreResult:
        clausulas = ["colecao = %s"]
        params: list = [colecao]
        for filtro in filtros:
            # operador já validado pelo Filtro
            clausulas.append(f"data #>> %s {filtro.operador} %s")
            params.extend([filtro.campo.split("."), str(filtro.valor)])

        sql = (
            f"SELECT data FROM {self.tabela} WHERE "
            + " AND ".join(clausulas)
            + " ORDER BY doc_id;"
        )

        def _query(cur):
            cur.execute(sql, params)
            return StoreResult.success([row[0] for row in cur.fetchall()])

        logger.debug(f"🔎 Query {colecao} com {len(filtros)} filtro(s)")
        return self._executar("QUERY", colecao, None, _query)

    # =========================================================
    # 💾 Escrita
    # =========================================================
    def put(self, colecao: str, doc_id: str, registro: Dict[str, Any]) -> StoreResult:
        def _put(cur):
            cur.execute(
                f"""
                INSERT INTO {self.tabela} (colecao, doc_id, data, atualizado_em)
                VALUES (%s, %s, %s, NOW())
                ON CONFLICT (colecao, doc_id)
                DO UPDATE SET data = EXCLUDED.data, atualizado_em = NOW();
                """,
                (colecao, str(doc_id), Json(registro, dumps=_dumps)),
            )
            return StoreResult.success()

        return self._executar("PUT", colecao, doc_id, _put)

    def update(
        self,
        colecao: str,
        doc_id: str,
        campos: Dict[str, Any],
        condicao: Optional[Condicao] = None,
    ) -> StoreResult:
        sql = f"""
            UPDATE {self.tabela}
               SET data = data || %s, atualizado_em = NOW()
             WHERE colecao = %s AND doc_id = %s
        """
        params: list = [Json(campos, dumps=_dumps), colecao, str(doc_id)]
        if condicao is not None:
            sql += " AND COALESCE(data -> %s, 'null'::jsonb) = %s::jsonb"
            params.extend([condicao.campo, json.dumps(condicao.valor)])

        def _update(cur):
            cur.execute(sql + ";", params)
            if cur.rowcount:
                return StoreResult.success()
            cur.execute(
                f"SELECT 1 FROM {self.tabela} WHERE colecao = %s AND doc_id = %s;",
                (colecao, str(doc_id)),
            )
            if cur.fetchone() is None:
                return StoreResult.not_found()
            return StoreResult.failed(
                ConflictError(f"Conflito em {condicao.campo}", colecao, doc_id)
            )

        return self._executar("UPDATE", colecao, doc_id, _update)
