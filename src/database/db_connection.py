# src/database/db_connection.py

import os
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Optional

import psycopg2
from psycopg2 import DatabaseError, InterfaceError, OperationalError
from loguru import logger

from src.database.retry import executar_com_retentativa


# =====================================================
# ⚙️ Parâmetros do PostgreSQL do store de KPIs
# =====================================================
@dataclass(frozen=True)
class ParametrosBanco:
    dbname: str
    user: str
    password: str
    host: str
    port: str
    connect_timeout: int
    application_name: str

    @classmethod
    def do_ambiente(cls) -> "ParametrosBanco":
        """DB_* têm prioridade; POSTGRES_* ficam como alternativa (docker-compose)."""
        return cls(
            dbname=os.getenv("DB_NAME", os.getenv("POSTGRES_DB", "cirod_kpis_db")),
            user=os.getenv("DB_USER", os.getenv("POSTGRES_USER", "postgres")),
            password=os.getenv("DB_PASSWORD", os.getenv("POSTGRES_PASSWORD", "postgres")),
            host=os.getenv("DB_HOST", os.getenv("POSTGRES_HOST", "cirod_db")),
            port=os.getenv("DB_PORT", os.getenv("POSTGRES_PORT", "5432")),
            connect_timeout=int(os.getenv("DB_CONNECT_TIMEOUT", "10")),
            application_name=os.getenv("DB_APP_NAME", "cirod_kpis"),
        )


DB_PARAMS = ParametrosBanco.do_ambiente()


def abrir_conexao(
    parametros: Optional[ParametrosBanco] = None,
    retries: int = 5,
    delay: float = 2,
    backoff: float = 1.5,
):
    """Conexão sem autocommit; OperationalError é retentado com backoff."""
    parametros = parametros or DB_PARAMS

    def _conectar():
        conn = psycopg2.connect(**asdict(parametros))
        conn.autocommit = False
        return conn

    try:
        conn = executar_com_retentativa(
            _conectar,
            retries=retries,
            delay=delay,
            backoff=backoff,
            excecoes=(OperationalError,),
            descricao=f"Conexão com {parametros.host}/{parametros.dbname}",
        )
    except OperationalError as e:
        raise ConnectionError(f"❌ Banco {parametros.dbname} indisponível após {retries} tentativas") from e

    logger.debug(f"🐘 Conectado a {parametros.host}/{parametros.dbname}")
    return conn


# =====================================================
# 🧱 Uma transação por bloco (commit/rollback + close)
# =====================================================
@contextmanager
def transacao(retries: int = 3):
    conn = abrir_conexao(retries=retries)
    try:
        yield conn
        conn.commit()
    except (OperationalError, InterfaceError, DatabaseError) as e:
        conn.rollback()
        logger.error(f"💥 Transação desfeita ({type(e).__name__}): {e}")
        raise
    except Exception:
        conn.rollback()
        raise
    finally:
        try:
            conn.close()
        except InterfaceError as e:
            logger.warning(f"⚠️ Conexão já estava fechada: {e}")


def test_db_connection() -> bool:
    """Healthcheck da API: True quando o banco responde a um SELECT."""
    try:
        with transacao(retries=1) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM pg_stat_activity WHERE application_name = %s;", (DB_PARAMS.application_name,))
                conexoes = cur.fetchone()[0]
        logger.success(f"✅ Banco {DB_PARAMS.dbname} respondendo ({conexoes} conexões do serviço)")
        return True
    except (ConnectionError, DatabaseError) as e:
        logger.error(f"❌ Banco {DB_PARAMS.dbname} não respondeu: {e}")
        return False
