# ============================================================
# 📦 src/dentist_kpis/application/full_recalculation_service.py
# ============================================================

from collections import Counter
from typing import Any, Dict, List, Optional, Tuple
from loguru import logger

from src.database.document_store import DocumentStore
from src.dentist_kpis.domain.dentist_factory import (
    COLECAO_DENTISTAS,
    COLECAO_REQUISICOES,
    cro_valido,
    novo_dentista_automatico,
)
from src.dentist_kpis.domain.entities import (
    DentistKPIs,
    RecalculationSummary,
    RequestEvent,
    parse_ano_mes,
)
from src.dentist_kpis.domain.kpi_accumulator import MonthlyKPIAccumulator
from src.dentist_kpis.domain.kpi_serializer import KPISerializer


class FullRecalculationService:
    """
    Reconstrói os KPIs de todos os dentistas a partir de todas as requisições.

    Fluxo:
        1. scan de requisições e de dentistas
        2. índices por CRO (não vazio) e por ID
        3. cada requisição → dentista (CRO, depois ID; cria se necessário)
        4. acumulação em memória + finalize
        5. put do registro completo de cada dentista tocado

    Idempotente: rodar duas vezes sobre os mesmos dados grava os mesmos KPIs.
    Não há rollback; em caso de falha no meio, basta rodar de novo.
    """

    def __init__(
        self,
        store: DocumentStore,
        accumulator: Optional[MonthlyKPIAccumulator] = None,
        serializer: Optional[KPISerializer] = None,
    ):
        self.store = store
        self.accumulator = accumulator or MonthlyKPIAccumulator()
        self.serializer = serializer or KPISerializer(self.accumulator.unidades)

    # =========================================================
    # 1️⃣ Leitura
    # =========================================================
    def _scan(self, colecao: str) -> Optional[List[Dict[str, Any]]]:
        resultado = self.store.scan(colecao)
        if resultado.cancelado:
            return None
        return resultado.unwrap() or []

    @staticmethod
    def _indexar(dentistas: List[Dict[str, Any]]) -> Tuple[Dict[str, dict], Dict[str, dict]]:
        por_cro: Dict[str, dict] = {}
        por_id: Dict[str, dict] = {}
        for dentista in dentistas:
            cro = cro_valido(dentista.get("dentist_cro"))
            if cro:
                por_cro[cro] = dentista
            if dentista.get("dentist_id") not in (None, ""):
                por_id[str(dentista["dentist_id"])] = dentista
        logger.info(f"🗂️ Índices de dentistas: {len(por_cro)} por CRO, {len(por_id)} por ID")
        return por_cro, por_id

    # =========================================================
    # 2️⃣ Recálculo
    # =========================================================
    def recalculate_all(self) -> RecalculationSummary:
        resumo = RecalculationSummary()
        logger.info("🚀 Iniciando recálculo completo de KPIs...")
        habilitadas = [f"{u.name}({u.id})" for u in self.accumulator.unidades if u.enabled and not u.agregada]
        logger.info(f"🏥 Unidades habilitadas: {', '.join(habilitadas)}")

        requisicoes = self._scan(COLECAO_REQUISICOES)
        if requisicoes is None:
            logger.warning("⏹️ Leitura de requisições cancelada")
            resumo.cancelled = True
            return resumo
        logger.info(f"📥 {len(requisicoes)} requisições encontradas")

        contagem_clinicas = Counter(
            str((r.get("clinic") or {}).get("id")) for r in requisicoes
        )
        logger.debug(f"🏷️ Requisições por clinic.id: {dict(contagem_clinicas)}")

        dentistas = self._scan(COLECAO_DENTISTAS)
        if dentistas is None:
            logger.warning("⏹️ Leitura de dentistas cancelada")
            resumo.cancelled = True
            return resumo
        logger.info(f"🦷 {len(dentistas)} dentistas encontrados")

        por_cro, por_id = self._indexar(dentistas)
        acumulados: Dict[str, Tuple[Dict[str, Any], DentistKPIs]] = {}

        for registro in requisicoes:
            evento = RequestEvent.from_record(registro)

            periodo = parse_ano_mes(evento.creation_date_inv)
            if periodo is None:
                logger.debug(f"⚠️ Requisição {evento.request_id} sem data válida, ignorada")
                resumo.requests_skipped += 1
                continue

            dentista = None
            if evento.dentist_cro:
                dentista = por_cro.get(evento.dentist_cro)
            if dentista is None and evento.dentist_id:
                dentista = por_id.get(evento.dentist_id)

            if dentista is None:
                if not evento.dentist_id:
                    logger.debug(f"⚠️ Requisição {evento.request_id} sem dados para identificar o dentista")
                    resumo.requests_skipped += 1
                    continue
                dentista = novo_dentista_automatico(evento.dentist_id, evento.dentist_cro, evento.dentist)
                por_id[dentista["dentist_id"]] = dentista
                if evento.dentist_cro:
                    por_cro[evento.dentist_cro] = dentista
                resumo.dentists_created += 1
                logger.info(
                    f"🆕 Dentista {dentista['dentist_name']} (ID: {dentista['dentist_id']}) preparado para criação"
                )

            chave = str(dentista["dentist_id"])
            if chave not in acumulados:
                acumulados[chave] = (dentista, DentistKPIs())
            ano, mes = periodo
            self.accumulator.accumulate(acumulados[chave][1], ano, mes, evento.clinic_id, evento.total_value)
            resumo.requests_processed += 1

        # =====================================================
        # 3️⃣ Persistência (put do registro completo)
        # =====================================================
        for chave, (dentista, kpis) in acumulados.items():
            self.accumulator.finalize(kpis)
            registro = dict(dentista)
            registro["KPIs"] = self.serializer.to_wire(kpis)
            cro = cro_valido(dentista.get("dentist_cro"))
            if cro:
                registro["dentist_cro"] = cro
            registro["kpis_revision"] = (dentista.get("kpis_revision") or 0) + 1

            resultado = self.store.put(COLECAO_DENTISTAS, chave, registro)
            if resultado.cancelado:
                logger.warning(f"⏹️ Recálculo cancelado após {resumo.dentists_updated} dentistas")
                resumo.cancelled = True
                return resumo
            resultado.unwrap()
            resumo.dentists_updated += 1
            logger.debug(f"💾 KPIs gravados para {dentista.get('dentist_cro') or 'ID:' + chave}")

        logger.success(
            f"✅ Recálculo concluído: {resumo.dentists_updated} dentistas atualizados "
            f"| {resumo.requests_processed} requisições processadas | {resumo.requests_skipped} ignoradas"
        )
        return resumo
