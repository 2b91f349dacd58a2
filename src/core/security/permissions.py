import logging

from fastapi import Depends

from src.core.errors import PermissionDenied
from src.core.security.auth import AuthContext, get_auth_context

logger = logging.getLogger(__name__)


def check_role(ctx: AuthContext, *roles: str) -> AuthContext:
    if ctx.role not in roles:
        logger.warning("⛔ Rol insuficiente | user_id=%s role=%s required=%s", ctx.user_id, ctx.role, roles)
        raise PermissionDenied(f"Se requiere uno de los roles: {', '.join(roles)}")
    return ctx


class RequireRole:
    """
    Dependencia de FastAPI que restringe un endpoint a ciertos roles.

        ctx: AuthContext = Depends(RequireRole("admin"))
    """

    def __init__(self, *roles: str):
        self.roles = roles

    async def __call__(self, ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        return check_role(ctx, *self.roles)
