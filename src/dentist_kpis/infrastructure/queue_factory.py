#src/dentist_kpis/infrastructure/queue_factory.py

import os

from redis import Redis
from rq import Queue

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
FILA_KPIS = os.getenv("KPI_QUEUE_NAME", "kpi_jobs")

redis_conn = Redis.from_url(REDIS_URL)


def fila_kpis():
    # recálculo completo varre todas as requisições: timeout folgado
    return Queue(FILA_KPIS, connection=redis_conn, default_timeout=1800)
