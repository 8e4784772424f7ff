#src/dentist_kpis/api/main_kpis_api.py

import os

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

# .env precisa estar carregado antes das rotas (JWT_SECRET_KEY, DB_*, REDIS_URL)
load_dotenv()

from src.dentist_kpis.api.routes import router  # noqa: E402

app = FastAPI(
    title="CIROD KPIs API",
    version="1.0.0",
    description="API de KPIs de dentistas e saúde das parcerias"
)

app.include_router(router, prefix="/kpis")


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("KPI_API_PORT", "8010")))
