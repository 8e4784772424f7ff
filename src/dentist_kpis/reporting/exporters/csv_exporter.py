#src/dentist_kpis/reporting/exporters/csv_exporter.py

import os
from datetime import datetime

import pandas as pd
from loguru import logger


class CSVExporter:
    """
    Exporta relatórios de KPIs em CSV pronto para o Excel (pt-BR):
    separador ";", BOM utf-8 e valores com 2 casas.
    """

    @staticmethod
    def caminho_saida(destino: str, nome_base: str) -> str:
        if destino.endswith(".csv"):
            pasta = os.path.dirname(destino)
            if pasta:
                os.makedirs(pasta, exist_ok=True)
            return destino
        os.makedirs(destino, exist_ok=True)
        carimbo = datetime.now().strftime("%Y%m%d_%H%M%S")
        return os.path.join(destino, f"{nome_base}_{carimbo}.csv")

    @staticmethod
    def export(df: pd.DataFrame, destino: str = "output/reports", nome_base: str = "produtividade_dentistas"):
        if df is None or df.empty:
            logger.warning("⚠️ Relatório vazio — nenhum CSV gerado.")
            return None

        caminho = CSVExporter.caminho_saida(destino, nome_base)

        saida = df.copy()
        colunas_float = saida.select_dtypes(include=["float"]).columns
        saida[colunas_float] = saida[colunas_float].round(2)

        saida.to_csv(caminho, index=False, sep=";", encoding="utf-8-sig", float_format="%.2f")
        logger.success(f"✅ CSV salvo em {caminho} ({len(saida)} linhas)")
        return caminho
