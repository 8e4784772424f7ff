# ============================================================
# 📦 src/dentist_kpis/cli/run_recalculo_kpis.py
# ============================================================

import argparse
import json
import sys
from loguru import logger

from src.database.exceptions import StoreError
from src.dentist_kpis.infrastructure.service_container import get_services


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Recalcula os KPIs de todos os dentistas a partir das requisições salvas"
    )
    parser.add_argument("--diario", action="store_true", help="Só recalcula se ainda não rodou hoje (usa config/kpi)")
    parser.add_argument("--forcar", action="store_true", help="Com --diario, ignora o cache do dia")
    args = parser.parse_args(argv)

    # ======================================================
    # 🔧 Configuração de log
    # ======================================================
    logger.remove()
    logger.add(sys.stdout, colorize=True, format="<green>{time:HH:mm:ss}</green> | <level>{message}</level>")

    servicos = get_services()

    try:
        if args.diario:
            resultado = servicos.daily.ensure_daily_recalculation(force=args.forcar).to_dict()
        else:
            if args.forcar:
                logger.warning("⚠️ --forcar só tem efeito junto com --diario")
            resultado = servicos.recalculation.recalculate_all().to_dict()
    except StoreError as e:
        logger.error(f"❌ Falha no store durante o recálculo: {e}")
        return 1

    # resumo final em JSON numa única linha (lido pelos jobs)
    print(json.dumps(resultado, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
