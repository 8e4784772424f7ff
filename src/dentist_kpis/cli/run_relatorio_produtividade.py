# ============================================================
# 📦 src/dentist_kpis/cli/run_relatorio_produtividade.py
# ============================================================

import argparse
import os
import sys
from loguru import logger

from src.database.exceptions import StoreError
from src.dentist_kpis.config.business_units import CIROD_UNITS, GERAL_ID
from src.dentist_kpis.infrastructure.service_container import get_services
from src.dentist_kpis.reporting.exporters.csv_exporter import CSVExporter
from src.dentist_kpis.reporting.exporters.json_exporter import JSONExporter
from src.dentist_kpis.reporting.productivity_report_service import ProductivityReportService


def main(argv=None):
    parser = argparse.ArgumentParser(description="Gera o relatório de produtividade dos dentistas (mês atual x anterior)")
    parser.add_argument(
        "--unidade",
        type=int,
        default=GERAL_ID,
        choices=[u.id for u in CIROD_UNITS],
        help="ID da unidade CIROD (0 = Geral)",
    )
    parser.add_argument("--saida", type=str, default="output/reports", help="Diretório ou arquivo .csv de saída")
    parser.add_argument("--json", action="store_true", help="Também grava o relatório em JSON")
    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stdout, colorize=True, format="<green>{time:HH:mm:ss}</green> | <level>{message}</level>")

    try:
        # garante os KPIs do dia antes de montar o relatório
        diario = get_services().daily.ensure_daily_recalculation()
    except StoreError as e:
        logger.error(f"❌ Falha ao carregar KPIs: {e}")
        return 1

    if diario.cancelado:
        logger.warning("⏹️ Carregamento de KPIs cancelado")
        return 1

    df = ProductivityReportService().gerar(diario.dentistas, unidade_id=args.unidade)
    caminho = CSVExporter.export(df, args.saida)

    if args.json and caminho:
        JSONExporter.export(df, os.path.splitext(caminho)[0] + ".json")
    return 0


if __name__ == "__main__":
    sys.exit(main())
