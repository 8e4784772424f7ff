# ============================================================
# 📦 src/partnership_health/cli/run_saude_parcerias.py
# ============================================================

import argparse
import sys
from collections import Counter

import pandas as pd
from loguru import logger

from src.database.exceptions import StoreError
from src.dentist_kpis.infrastructure.service_container import get_services
from src.dentist_kpis.reporting.exporters.csv_exporter import CSVExporter
from src.partnership_health.domain.health_engine import format_gap


def main(argv=None):
    parser = argparse.ArgumentParser(description="Calcula a saúde das parcerias dos dentistas em um ano")
    parser.add_argument("--ano", type=int, default=None, help="Ano analisado (padrão: ano corrente)")
    parser.add_argument("--forcar", action="store_true", help="Recalcula mesmo que já exista cache de hoje")
    parser.add_argument("--csv", type=str, default=None, help="Diretório ou arquivo .csv para exportar a tabela")
    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stdout, colorize=True, format="<green>{time:HH:mm:ss}</green> | <level>{message}</level>")

    try:
        resultado = get_services().health.load_health_data(year=args.ano, force=args.forcar)
    except StoreError as e:
        logger.error(f"❌ Falha no store ao calcular saúde das parcerias: {e}")
        return 1

    if resultado.cancelado:
        logger.warning("⏹️ Cálculo cancelado")
        return 1

    origem = "cache" if resultado.do_cache else "cálculo"
    logger.info(f"📊 {len(resultado.linhas)} dentistas ({origem}, {resultado.ultima_data} {resultado.ultima_hora})")
    for status, total in Counter(l["status"] for l in resultado.linhas).most_common():
        logger.info(f"   • {status}: {total}")

    if args.csv:
        df = pd.DataFrame(resultado.linhas)
        if not df.empty:
            df["gapDisplay"] = df["gapDays"].apply(lambda g: format_gap(None if pd.isna(g) else int(g)))
            df = df.sort_values("scoreChurn", ascending=False, na_position="last")
        CSVExporter.export(df, args.csv, nome_base=f"saude_parcerias_{resultado.ano}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
