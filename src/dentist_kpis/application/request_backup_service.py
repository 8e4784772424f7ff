# ============================================================
# 📦 src/dentist_kpis/application/request_backup_service.py
# ============================================================

from dataclasses import dataclass
from typing import Any, Dict, Optional
from loguru import logger

from src.database.document_store import DocumentStore, StoreStatus
from src.database.exceptions import StoreError
from src.database.session_cache import CacheWithTTL
from src.dentist_kpis.application.incremental_kpi_updater import IncrementalKPIUpdater, UpdateOutcome
from src.dentist_kpis.domain.dentist_factory import (
    COLECAO_DENTISTAS,
    COLECAO_REQUISICOES,
    cro_valido,
    novo_dentista_automatico,
)

TTL_DENTISTAS_VERIFICADOS = 10 * 60


@dataclass
class BackupResult:
    request_id: Optional[str]
    salvo: bool = False
    cancelado: bool = False
    dentista_garantido: bool = False
    kpi: Optional[UpdateOutcome] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "salvo": self.salvo,
            "cancelado": self.cancelado,
            "dentistaGarantido": self.dentista_garantido,
            "kpi": self.kpi.value if self.kpi else None,
        }


class RequestBackupService:
    """
    Backup de uma requisição já mapeada:
        1. put em `requests`
        2. garante que o dentista existe (cache de 10 min por dentist_id)
        3. atualização incremental dos KPIs

    Depois que o backup foi gravado, falhas de dentista/KPI só geram log.
    """

    def __init__(
        self,
        store: DocumentStore,
        updater: IncrementalKPIUpdater,
        dentist_check_cache: Optional[CacheWithTTL] = None,
    ):
        self.store = store
        self.updater = updater
        self.dentist_check_cache = dentist_check_cache or CacheWithTTL(
            ttl=TTL_DENTISTAS_VERIFICADOS, cleanup_interval=60
        )

    # =========================================================
    # 🦷 Dentista
    # =========================================================
    def ensure_dentist_exists(self, dentista: Dict[str, Any]) -> bool:
        dentist_id = dentista.get("dentist_id") if dentista else None
        if dentist_id in (None, ""):
            logger.info("ℹ️ dentist_id não disponível, dentista não verificado")
            return False

        chave = f"dentist_{dentist_id}"
        if self.dentist_check_cache.has(chave):
            logger.debug(f"🦷 Dentista {dentist_id} já verificado nesta sessão (cache)")
            return True

        resultado = self.store.get(COLECAO_DENTISTAS, str(dentist_id))
        if resultado.cancelado:
            return False
        if resultado.status != StoreStatus.NOT_FOUND and resultado.unwrap():
            self.dentist_check_cache.set(chave, True)
            return True

        logger.info(f"🆕 Dentista {dentist_id} não encontrado, criando novo registro...")
        novo = novo_dentista_automatico(dentist_id, cro_valido(dentista.get("dentist_cro")), dentista)
        resultado = self.store.put(COLECAO_DENTISTAS, novo["dentist_id"], novo)
        if resultado.cancelado:
            return False
        resultado.unwrap()

        logger.success(f"✅ Dentista {dentist_id} ({novo['dentist_name']}) criado com sucesso")
        self.dentist_check_cache.set(chave, True)
        return True

    # =========================================================
    # 💾 Requisição
    # =========================================================
    def save_request(self, registro: Dict[str, Any]) -> BackupResult:
        request_id = registro.get("request_id")
        if request_id in (None, ""):
            raise ValueError("Requisição sem request_id")
        request_id = str(request_id)
        resultado_backup = BackupResult(request_id=request_id)

        resultado = self.store.put(COLECAO_REQUISICOES, request_id, registro)
        if resultado.cancelado:
            logger.info(f"⏹️ Backup da requisição {request_id} cancelado")
            resultado_backup.cancelado = True
            return resultado_backup
        resultado.unwrap()
        resultado_backup.salvo = True
        logger.success(f"💾 Requisição {request_id} salva")

        try:
            resultado_backup.dentista_garantido = self.ensure_dentist_exists(registro.get("dentist") or {})
        except StoreError as e:
            logger.error(f"❌ Erro ao verificar/criar dentista da requisição {request_id}: {e}")

        try:
            resultado_backup.kpi = self.updater.update_for_request(registro)
        except StoreError as e:
            logger.error(f"❌ Erro ao atualizar KPIs da requisição {request_id}: {e}")

        return resultado_backup
