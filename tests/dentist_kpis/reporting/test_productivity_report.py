# tests/dentist_kpis/reporting/test_productivity_report.py

import json
from datetime import date

import pandas as pd
import pytest

from src.dentist_kpis.reporting.exporters.csv_exporter import CSVExporter
from src.dentist_kpis.reporting.exporters.json_exporter import JSONExporter
from src.dentist_kpis.reporting.productivity_report_service import (
    COLUNAS_RELATORIO,
    ProductivityReportService,
    mes_atual_e_anterior,
)
from tests.factories import dentista


def _mes(faturamento, pedidos, icarai=0.0, pedidos_icarai=0):
    return {
        "faturamentoTotalMes": faturamento,
        "totalPedidos": pedidos,
        "faturamentoIcarai": icarai,
        "totalPedidosIcarai": pedidos_icarai,
        "avgTicket": round(faturamento / pedidos, 2) if pedidos else 0,
    }


@pytest.fixture
def dentistas():
    return [
        dentista("101", "RJ-1", "Dra. Ana", KPIs={
            "expectedMonthlyRevenue": 900.0,
            "expectedMonthlyQtd": 5.0,
            "periodKPIs": {"2025": {"05": _mes(800.0, 4, 300.0, 1), "06": _mes(1000.0, 5, 1000.0, 5)}},
        }),
        dentista("202", "RJ-2", "Dr. Bruno", KPIs={
            "expectedMonthlyRevenue": 0,
            "expectedMonthlyQtd": 0,
            "periodKPIs": {"2025": {"06": _mes(1000.0, 2)}},
        }),
        dentista("303", "RJ-3", "Dr. Caio"),
    ]


def test_mes_atual_e_anterior_vira_o_ano():
    assert mes_atual_e_anterior(date(2025, 6, 15)) == (("2025", "06"), ("2025", "05"))
    assert mes_atual_e_anterior(date(2025, 1, 3)) == (("2025", "01"), ("2024", "12"))


def test_relatorio_geral(dentistas):
    df = ProductivityReportService().gerar(dentistas, hoje=date(2025, 6, 15))

    assert list(df.columns) == COLUNAS_RELATORIO
    # empate no faturamento resolvido pelo nome
    assert list(df["dentist_name"]) == ["Dr. Bruno", "Dra. Ana", "Dr. Caio"]

    ana = df[df["dentist_id"] == "101"].iloc[0]
    assert ana["faturamento_mes_atual"] == 1000.0
    assert ana["faturamento_mes_anterior"] == 800.0
    assert ana["diferenca"] == 200.0
    assert ana["pedidos_mes_anterior"] == 4
    assert ana["bairros"] == "Icaraí / Centro"

    caio = df[df["dentist_id"] == "303"].iloc[0]
    assert caio["faturamento_mes_atual"] == 0
    assert caio["expected_monthly_revenue"] == 0


def test_relatorio_por_unidade(dentistas):
    df = ProductivityReportService().gerar(dentistas, unidade_id=5778, hoje=date(2025, 6, 15))

    assert df.iloc[0]["dentist_name"] == "Dra. Ana"
    ana = df.iloc[0]
    assert ana["faturamento_mes_atual"] == 1000.0
    assert ana["faturamento_mes_anterior"] == 300.0
    assert ana["pedidos_mes_anterior"] == 1


def test_unidade_desconhecida():
    with pytest.raises(ValueError):
        ProductivityReportService().gerar([], unidade_id=42)


def test_csv_exporter(tmp_path, dentistas):
    df = ProductivityReportService().gerar(dentistas, hoje=date(2025, 6, 15))
    caminho = CSVExporter.export(df, str(tmp_path / "saida" / "relatorio.csv"))

    conteudo = (tmp_path / "saida" / "relatorio.csv").read_bytes()
    assert caminho.endswith("relatorio.csv")
    assert conteudo.startswith(b"\xef\xbb\xbf")

    lido = pd.read_csv(caminho, sep=";", encoding="utf-8-sig", dtype={"dentist_id": str})
    assert len(lido) == 3
    assert "1000.00" in conteudo.decode("utf-8-sig")


def test_csv_em_pasta_gera_nome_com_carimbo(tmp_path, dentistas):
    df = ProductivityReportService().gerar(dentistas, hoje=date(2025, 6, 15))
    caminho = CSVExporter.export(df, str(tmp_path), nome_base="produtividade")
    assert caminho.startswith(str(tmp_path))
    assert caminho.rsplit("/", 1)[-1].startswith("produtividade_")


def test_exporters_ignoram_relatorio_vazio(tmp_path):
    vazio = pd.DataFrame(columns=COLUNAS_RELATORIO)
    assert CSVExporter.export(vazio, str(tmp_path)) is None
    assert JSONExporter.export(vazio, str(tmp_path / "r.json")) is None
    assert JSONExporter.export({}, str(tmp_path / "r.json")) is None


def test_json_exporter(tmp_path, dentistas):
    df = ProductivityReportService().gerar(dentistas, hoje=date(2025, 6, 15))
    caminho = JSONExporter.export(df, str(tmp_path / "json" / "relatorio.json"))

    with open(caminho, encoding="utf-8") as f:
        registros = json.load(f)
    assert registros[0]["dentist_name"] == "Dr. Bruno"
    assert registros[1]["bairros"] == "Icaraí / Centro"
