#src/dentist_kpis/api/dependencies.py

import os
import jwt
from fastapi import Request, HTTPException, status

from src.dentist_kpis.infrastructure.service_container import KPIServices, get_services

# =====================================================
# 🔐 JWT emitido pelo serviço de autenticação (segredo vem do .env)
# =====================================================
try:
    JWT_SECRET_KEY = os.environ["JWT_SECRET_KEY"]
except KeyError:
    raise RuntimeError("JWT_SECRET_KEY não definido no ambiente")

JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

CAMPOS_OBRIGATORIOS_TOKEN = ("user_id", "role", "email")


def _nao_autorizado(detalhe: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detalhe)


def decodificar_token(token: str) -> dict:
    """Payload validado (assinatura, expiração e campos mínimos) ou 401."""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise _nao_autorizado("Token expirado.")
    except jwt.InvalidTokenError:
        raise _nao_autorizado("Token inválido.")

    ausentes = [campo for campo in CAMPOS_OBRIGATORIOS_TOKEN if campo not in payload]
    if ausentes:
        raise _nao_autorizado(f"Token inválido: campo '{ausentes[0]}' ausente.")
    return payload


# =====================================================
# 🔐 Dependency das rotas /kpis
# =====================================================
async def verify_token(request: Request):
    """Injeta o usuário do token em request.state.user."""
    auth_header = request.headers.get("Authorization") or ""
    if not auth_header.startswith("Bearer "):
        raise _nao_autorizado("Token ausente ou inválido.")

    payload = decodificar_token(auth_header[len("Bearer "):].strip())
    request.state.user = {campo: payload[campo] for campo in CAMPOS_OBRIGATORIOS_TOKEN}


# =====================================================
# 🧩 Serviços (um conjunto por processo)
# =====================================================
def servicos() -> KPIServices:
    return get_services()
