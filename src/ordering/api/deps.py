"""Request-scoped dependencies: who is calling and which roles a route admits.

Authentication itself happens upstream; the gateway forwards the verified
identity in the ``X-User-Id`` and ``X-User-Role`` headers.
"""

from fastapi import Depends, Header

from ordering.access import Requester, Role
from ordering.errors import ForbiddenError, NotAuthenticatedError
from ordering.order.service import OrderService, get_order_service

_KNOWN_ROLES = {role.value for role in Role}


def get_requester(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default=Role.CLIENT.value),
) -> Requester:
    if not x_user_id:
        raise NotAuthenticatedError()
    if x_user_role not in _KNOWN_ROLES:
        raise ForbiddenError(f"El rol {x_user_role} no está autorizado para acceder a esta ruta")
    return Requester(user_id=x_user_id, role=x_user_role)


def require_roles(*roles: Role):
    """Dependency admitting only requesters whose role is one of `roles`."""
    allowed = {role.value for role in roles}

    def _dependency(requester: Requester = Depends(get_requester)) -> Requester:
        if requester.role not in allowed:
            raise ForbiddenError(f"El rol {requester.role} no está autorizado para acceder a esta ruta")
        return requester

    return _dependency


async def order_service() -> OrderService:
    # Async so it resolves on the event loop, inside the domain context the middleware pushed.
    return get_order_service()
