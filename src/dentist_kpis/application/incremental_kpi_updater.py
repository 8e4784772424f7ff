# ============================================================
# 📦 src/dentist_kpis/application/incremental_kpi_updater.py
# ============================================================

from enum import Enum
from typing import Any, Dict, Optional, Union
from loguru import logger

from src.database.document_store import Condicao, DocumentStore, Filtro, StoreStatus
from src.database.exceptions import ConflictError, StoreError
from src.database.retry import executar_com_retentativa
from src.database.session_cache import CacheWithTTL
from src.dentist_kpis.domain.dentist_factory import COLECAO_DENTISTAS, cro_valido, novo_dentista_automatico
from src.dentist_kpis.domain.entities import RequestEvent, parse_ano_mes
from src.dentist_kpis.domain.kpi_accumulator import MonthlyKPIAccumulator
from src.dentist_kpis.domain.kpi_serializer import KPISerializer

# requisições já contabilizadas nesta sessão ficam marcadas por 10 minutos
TTL_REQUISICOES_PROCESSADAS = 10 * 60

_CANCELADO = object()


class UpdateOutcome(str, Enum):
    UPDATED = "updated"
    IGNORED = "ignored"
    DUPLICATE = "duplicate"
    CANCELLED = "cancelled"


class IncrementalKPIUpdater:
    """
    Atualiza os KPIs de um dentista a cada requisição salva.

    - no máximo uma vez por sessão por request_id (CacheWithTTL)
    - a marca é gravada ANTES do trabalho e removida em qualquer falha
    - busca por CRO, depois por ID; cria o dentista se não existir
    - grava só o campo KPIs (merge), condicionado a kpis_revision
    """

    def __init__(
        self,
        store: DocumentStore,
        accumulator: Optional[MonthlyKPIAccumulator] = None,
        serializer: Optional[KPISerializer] = None,
        processed_cache: Optional[CacheWithTTL] = None,
        max_conflict_retries: int = 3,
        conflict_delay: float = 0.05,
    ):
        self.store = store
        self.accumulator = accumulator or MonthlyKPIAccumulator()
        self.serializer = serializer or KPISerializer(self.accumulator.unidades)
        self.processed_cache = processed_cache or CacheWithTTL(ttl=TTL_REQUISICOES_PROCESSADAS, cleanup_interval=60)
        self.max_conflict_retries = max_conflict_retries
        self.conflict_delay = conflict_delay

    # =========================================================
    # 🚪 Entrada principal
    # =========================================================
    def update_for_request(self, evento: Union[RequestEvent, Dict[str, Any]]) -> UpdateOutcome:
        if isinstance(evento, dict):
            evento = RequestEvent.from_record(evento)

        if not evento.dentist_cro and not evento.dentist_id:
            logger.info("ℹ️ Requisição sem CRO e sem ID do dentista, ignorando cálculo de KPIs")
            return UpdateOutcome.IGNORED

        request_id = str(evento.request_id)
        if self.processed_cache.has(request_id):
            logger.info(f"🔁 Requisição {request_id} já processada nesta sessão, ignorando")
            return UpdateOutcome.DUPLICATE

        # marca antes de qualquer I/O: fecha a janela entre chamadas concorrentes
        self.processed_cache.set(request_id, True)

        periodo = parse_ano_mes(evento.creation_date_inv)
        if periodo is None:
            logger.warning(f"⚠️ Requisição {request_id} sem data válida ({evento.creation_date_inv!r}), ignorando KPIs")
            return UpdateOutcome.IGNORED

        ano, mes = periodo
        logger.info(
            f"📊 Atualizando KPIs | dentista={evento.identificador} | unidade={evento.clinic_id} "
            f"| valor=R${evento.total_value:.2f} | período={ano}/{mes}"
        )

        try:
            resultado = self._processar(evento, ano, mes)
        except Exception as e:
            logger.error(f"❌ Erro ao atualizar KPIs da requisição {request_id}: {e}")
            self.processed_cache.delete(request_id)
            raise

        if resultado == UpdateOutcome.CANCELLED:
            logger.info(f"⏹️ Atualização de KPIs da requisição {request_id} cancelada")
            self.processed_cache.delete(request_id)
        return resultado

    # =========================================================
    # 🔍 Busca do dentista
    # =========================================================
    def _buscar_por_cro(self, cro: str):
        resultado = self.store.query(COLECAO_DENTISTAS, [Filtro("dentist_cro", "=", cro)])
        if resultado.cancelado:
            return _CANCELADO
        dentistas = resultado.unwrap() or []
        return dentistas[0] if dentistas else None

    def _buscar_por_id(self, dentist_id: str):
        resultado = self.store.get(COLECAO_DENTISTAS, str(dentist_id))
        if resultado.cancelado:
            return _CANCELADO
        if resultado.status == StoreStatus.NOT_FOUND:
            return None
        return resultado.unwrap()

    def _buscar_dentista(self, evento: RequestEvent):
        dentista = None
        if evento.dentist_cro:
            dentista = self._buscar_por_cro(evento.dentist_cro)
        if dentista is None and evento.dentist_id:
            if evento.dentist_cro:
                logger.debug(f"🔎 Dentista não encontrado por CRO, tentando por ID: {evento.dentist_id}")
            dentista = self._buscar_por_id(evento.dentist_id)
        return dentista

    def _criar_dentista(self, evento: RequestEvent):
        novo = novo_dentista_automatico(evento.dentist_id, evento.dentist_cro, evento.dentist)
        resultado = self.store.put(COLECAO_DENTISTAS, novo["dentist_id"], novo)
        if resultado.cancelado:
            return _CANCELADO
        resultado.unwrap()
        logger.success(f"🆕 Dentista {novo['dentist_name']} (ID: {novo['dentist_id']}) criado automaticamente")
        return novo

    # =========================================================
    # 🧮 Acumulação + persistência
    # =========================================================
    def _processar(self, evento: RequestEvent, ano: str, mes: str) -> UpdateOutcome:
        dentista = self._buscar_dentista(evento)
        if dentista is _CANCELADO:
            return UpdateOutcome.CANCELLED

        if dentista is None:
            if not evento.dentist_id:
                logger.warning(f"⚠️ Dentista {evento.identificador} não encontrado e sem ID para criação")
                return UpdateOutcome.IGNORED
            logger.info(f"🆕 Dentista {evento.identificador} não encontrado, criando automaticamente...")
            dentista = self._criar_dentista(evento)
            if dentista is _CANCELADO:
                return UpdateOutcome.CANCELLED

        dentist_id = str(dentista["dentist_id"])
        estado = {"dentista": dentista, "tentativa": 0}

        def _aplicar() -> UpdateOutcome:
            if estado["tentativa"] > 0:
                atual = self._buscar_por_id(dentist_id)
                if atual is _CANCELADO:
                    return UpdateOutcome.CANCELLED
                if atual is None:
                    raise StoreError("Dentista removido durante a atualização", COLECAO_DENTISTAS, dentist_id)
                estado["dentista"] = atual
            estado["tentativa"] += 1
            return self._gravar_kpis(estado["dentista"], evento, ano, mes)

        resultado = executar_com_retentativa(
            _aplicar,
            retries=self.max_conflict_retries,
            delay=self.conflict_delay,
            backoff=2,
            excecoes=(ConflictError,),
            descricao=f"Update de KPIs do dentista {dentist_id}",
        )
        if resultado == UpdateOutcome.UPDATED:
            logger.success(
                f"✅ KPIs atualizados para {estado['dentista'].get('dentist_name')} ({ano}/{mes})"
            )
        return resultado

    def _gravar_kpis(self, dentista: Dict[str, Any], evento: RequestEvent, ano: str, mes: str) -> UpdateOutcome:
        kpis = self.serializer.from_wire(dentista.get("KPIs"))
        self.accumulator.accumulate(kpis, ano, mes, evento.clinic_id, evento.total_value)
        self.accumulator.recalc_expectations(kpis)

        revisao = dentista.get("kpis_revision")
        campos = {"KPIs": self.serializer.to_wire(kpis), "kpis_revision": (revisao or 0) + 1}
        cro = cro_valido(dentista.get("dentist_cro"))
        if cro and cro != dentista.get("dentist_cro"):
            # CRO gravado sem espaços: a busca por CRO é por igualdade exata
            campos["dentist_cro"] = cro

        resultado = self.store.update(
            COLECAO_DENTISTAS,
            str(dentista["dentist_id"]),
            campos,
            condicao=Condicao("kpis_revision", revisao),
        )
        if resultado.cancelado:
            return UpdateOutcome.CANCELLED
        if resultado.status == StoreStatus.NOT_FOUND:
            raise StoreError("Dentista não encontrado ao salvar KPIs", COLECAO_DENTISTAS, str(dentista["dentist_id"]))
        resultado.unwrap()
        return UpdateOutcome.UPDATED
