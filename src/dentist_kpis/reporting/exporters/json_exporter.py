#src/dentist_kpis/reporting/exporters/json_exporter.py

import json
from pathlib import Path

import pandas as pd
from loguru import logger


class JSONExporter:
    """Grava DataFrame (como lista de registros) ou dict/lista em JSON indentado."""

    @staticmethod
    def export(dados, caminho: str):
        if isinstance(dados, pd.DataFrame):
            if dados.empty:
                logger.warning("⚠️ Relatório vazio — nenhum JSON gerado.")
                return None
            conteudo = json.loads(dados.to_json(orient="records", force_ascii=False))
        elif not dados:
            logger.warning("⚠️ Nenhum dado para exportar.")
            return None
        else:
            conteudo = dados

        destino = Path(caminho)
        destino.parent.mkdir(parents=True, exist_ok=True)
        with open(destino, "w", encoding="utf-8") as f:
            json.dump(conteudo, f, ensure_ascii=False, indent=2)

        logger.success(f"✅ JSON salvo em {destino}")
        return str(destino)
