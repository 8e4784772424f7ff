# ==========================================================
# 📦 src/dentist_kpis/domain/kpi_serializer.py
# Conversão KPIs tipados ↔ formato plano gravado no store
# ==========================================================

import math
from typing import Any, Dict, Optional, Sequence

from src.dentist_kpis.config.business_units import CIROD_UNITS, BusinessUnit
from src.dentist_kpis.domain.entities import DentistKPIs, MonthKPI, UnitTotals


def _numero(valor: Any, tipo=float):
    try:
        numero = float(valor)
    except (TypeError, ValueError):
        return tipo(0)
    if not math.isfinite(numero):
        return tipo(0)
    return tipo(numero)


class KPISerializer:
    """
    Formato no store (compatível com o histórico):
        {"expectedMonthlyRevenue", "expectedMonthlyQtd",
         "periodKPIs": {"2025": {"03": {"faturamentoTotalMes", "totalPedidos",
                                        "avgTicket", "faturamento<Sufixo>",
                                        "totalPedidos<Sufixo>", ...}}}}
    A unidade Geral (sufixo TotalMes) espelha os totais globais.
    """

    def __init__(self, unidades: Sequence[BusinessUnit] = CIROD_UNITS):
        self.unidades = tuple(unidades)

    # =========================================================
    # Mês
    # =========================================================
    def month_to_wire(self, month_kpi: MonthKPI) -> Dict[str, Any]:
        wire: Dict[str, Any] = {}
        for unidade in self.unidades:
            if unidade.agregada:
                wire[unidade.campo_faturamento] = month_kpi.faturamento_total
                wire[unidade.campo_pedidos] = month_kpi.total_pedidos
                continue
            totais = month_kpi.unidades.get(unidade.id, UnitTotals())
            wire[unidade.campo_faturamento] = totais.faturamento
            wire[unidade.campo_pedidos] = totais.pedidos

        wire["faturamentoTotalMes"] = month_kpi.faturamento_total
        wire["totalPedidos"] = month_kpi.total_pedidos
        wire["avgTicket"] = month_kpi.avg_ticket
        return wire

    def month_from_wire(self, wire: Optional[Dict[str, Any]]) -> MonthKPI:
        wire = wire or {}
        month_kpi = MonthKPI(
            faturamento_total=_numero(wire.get("faturamentoTotalMes")),
            total_pedidos=_numero(wire.get("totalPedidos"), int),
            avg_ticket=_numero(wire.get("avgTicket")),
        )
        for unidade in self.unidades:
            if unidade.agregada:
                continue
            month_kpi.unidades[unidade.id] = UnitTotals(
                faturamento=_numero(wire.get(unidade.campo_faturamento)),
                pedidos=_numero(wire.get(unidade.campo_pedidos), int),
            )
        return month_kpi

    # =========================================================
    # KPIs completos
    # =========================================================
    def to_wire(self, kpis: DentistKPIs) -> Dict[str, Any]:
        return {
            "expectedMonthlyRevenue": kpis.expected_monthly_revenue,
            "expectedMonthlyQtd": kpis.expected_monthly_qtd,
            "periodKPIs": {
                ano: {mes: self.month_to_wire(m) for mes, m in sorted(meses.items())}
                for ano, meses in sorted(kpis.period_kpis.items())
            },
        }

    def from_wire(self, wire: Optional[Dict[str, Any]]) -> DentistKPIs:
        wire = wire or {}
        kpis = DentistKPIs(
            expected_monthly_revenue=_numero(wire.get("expectedMonthlyRevenue")),
            expected_monthly_qtd=_numero(wire.get("expectedMonthlyQtd")),
        )
        for ano, meses in (wire.get("periodKPIs") or {}).items():
            kpis.period_kpis[str(ano)] = {
                str(mes): self.month_from_wire(dados) for mes, dados in (meses or {}).items()
            }
        return kpis


def kpis_vazios() -> Dict[str, Any]:
    return {"expectedMonthlyRevenue": 0, "expectedMonthlyQtd": 0, "periodKPIs": {}}
