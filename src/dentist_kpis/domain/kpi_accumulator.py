# ==========================================================
# 📦 src/dentist_kpis/domain/kpi_accumulator.py
# ==========================================================

import math
from typing import Optional, Sequence
from loguru import logger

from src.dentist_kpis.config.business_units import CIROD_UNITS, BusinessUnit
from src.dentist_kpis.domain.entities import DentistKPIs, MonthKPI, UnitTotals


# Filtros de "mês significativo" para as expectativas
LIMIAR_FATURAMENTO_MES = 500
LIMIAR_PEDIDOS_MES = 4


def arredondar(valor: float, casas: int) -> float:
    """Arredondamento half-up (2.345 → 2.35), não o bancário do round()."""
    fator = 10 ** casas
    return math.floor(valor * fator + 0.5) / fator


class MonthlyKPIAccumulator:
    """
    Dono do formato e da aritmética de KPIs.periodKPIs.
    Usado tanto pelo cálculo incremental quanto pelo recálculo completo,
    com a mesma regra de `enabled` nos dois caminhos.
    """

    def __init__(self, unidades: Sequence[BusinessUnit] = CIROD_UNITS):
        self.unidades = tuple(unidades)
        self._por_id = {u.id: u for u in self.unidades if not u.agregada}

    # =========================================================
    # 1️⃣ Resolução da unidade
    # =========================================================
    def resolve_unit(self, clinic_id: Optional[int]) -> Optional[BusinessUnit]:
        """Unidade habilitada correspondente ao clinic.id, ou None."""
        if clinic_id is None:
            return None
        unidade = self._por_id.get(clinic_id)
        if unidade is None or not unidade.enabled:
            return None
        return unidade

    # =========================================================
    # 2️⃣ Template de mês vazio
    # =========================================================
    def empty_month(self) -> MonthKPI:
        # um balde por unidade configurada, inclusive as desabilitadas
        return MonthKPI(unidades={u.id: UnitTotals() for u in self._por_id.values()})

    def ensure_month(self, kpis: DentistKPIs, year: str, month: str) -> MonthKPI:
        meses = kpis.period_kpis.setdefault(year, {})
        if month not in meses:
            meses[month] = self.empty_month()
        return meses[month]

    # =========================================================
    # 3️⃣ Acumulação
    # =========================================================
    def apply_request(self, month_kpi: MonthKPI, unidade: Optional[BusinessUnit], valor: float) -> None:
        month_kpi.faturamento_total += valor
        month_kpi.total_pedidos += 1

        if unidade is not None and unidade.enabled and not unidade.agregada:
            totais = month_kpi.unidades.setdefault(unidade.id, UnitTotals())
            totais.faturamento += valor
            totais.pedidos += 1

        if month_kpi.total_pedidos > 0:
            month_kpi.avg_ticket = arredondar(month_kpi.faturamento_total / month_kpi.total_pedidos, 2)

    # =========================================================
    # 4️⃣ Expectativas mensais
    # =========================================================
    def recalc_expectations(self, kpis: DentistKPIs) -> None:
        """
        Média dos meses com faturamento > 500 (2 casas) e dos meses com
        >= 4 pedidos (1 casa). Sem meses qualificados → 0.
        """
        receitas = []
        quantidades = []
        for _, _, month_kpi in kpis.meses():
            if month_kpi.faturamento_total > LIMIAR_FATURAMENTO_MES:
                receitas.append(month_kpi.faturamento_total)
            if month_kpi.total_pedidos >= LIMIAR_PEDIDOS_MES:
                quantidades.append(month_kpi.total_pedidos)

        kpis.expected_monthly_revenue = (
            arredondar(sum(receitas) / len(receitas), 2) if receitas else 0.0
        )
        kpis.expected_monthly_qtd = (
            arredondar(sum(quantidades) / len(quantidades), 1) if quantidades else 0.0
        )

    def finalize(self, kpis: DentistKPIs) -> None:
        """Ticket médio de todos os meses + expectativas (fim do recálculo)."""
        for _, _, month_kpi in kpis.meses():
            if month_kpi.total_pedidos > 0:
                month_kpi.avg_ticket = arredondar(month_kpi.faturamento_total / month_kpi.total_pedidos, 2)
        self.recalc_expectations(kpis)

    def accumulate(self, kpis: DentistKPIs, year: str, month: str, clinic_id: Optional[int], valor: float) -> MonthKPI:
        """ensure_month + apply_request para um evento."""
        month_kpi = self.ensure_month(kpis, year, month)
        unidade = self.resolve_unit(clinic_id)
        if clinic_id is not None and unidade is None:
            logger.debug(f"🏷️ clinic.id={clinic_id} não mapeado (ou desabilitado) nas unidades CIROD")
        self.apply_request(month_kpi, unidade, valor)
        return month_kpi
