# src/core/security/auth.py

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt
from fastapi import HTTPException, Request

from src.core.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------
# Tipos / Modelos
# ---------------------------------------------------------------------

ROLE_ADMIN = "admin"
ROLE_EDITOR = "editor"
ROLE_VIEWER = "viewer"


@dataclass
class AuthContext:
    user_id: str
    role: str
    email: Optional[str] = None


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def decode_token(token: str) -> Dict[str, Any]:
    """
    Valida firma y expiración del token emitido por el proveedor de identidad.
    La emisión de sesiones es externa: aquí solo se verifica.
    """
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
            options={"verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expirado")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Token inválido")


def context_from_claims(payload: Dict[str, Any]) -> AuthContext:
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token sin sujeto")

    # El rol puede venir plano o dentro de app_metadata
    app_metadata = payload.get("app_metadata") or {}
    role = payload.get("user_role") or app_metadata.get("role") or ROLE_VIEWER

    return AuthContext(user_id=str(user_id), role=str(role), email=payload.get("email"))


# ---------------------------------------------------------------------
# Public API: FastAPI dependency
# ---------------------------------------------------------------------

async def get_auth_context(request: Request) -> AuthContext:
    request_path = request.url.path
    request_method = request.method

    # 1) Extraer Bearer token
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        logger.warning(
            "❌ Auth header inválido o ausente | method=%s path=%s has_auth_header=%s",
            request_method,
            request_path,
            bool(auth),
        )
        raise HTTPException(status_code=401, detail="Falta el token Bearer")

    token = auth[len("Bearer "):].strip()
    if not token:
        logger.warning("❌ Token bearer vacío | method=%s path=%s", request_method, request_path)
        raise HTTPException(status_code=401, detail="Token vacío")

    # 2) Verificación criptográfica
    ctx = context_from_claims(decode_token(token))

    logger.info(
        "✅ AuthContext resuelto | path=%s user_id=%s role=%s token_hash_prefix=%s",
        request_path,
        ctx.user_id,
        ctx.role,
        sha256_hex(token)[:12],
    )
    return ctx
