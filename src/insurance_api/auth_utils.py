from typing import Callable

from fastapi import Request

from src.insurance_api.errors import ForbiddenError

AdminPredicate = Callable[[Request], bool]

ADMIN_ROLE_HEADER = "X-Role"


# PUBLIC_INTERFACE
def header_role_is_admin(request: Request) -> bool:
    """
    Treat the caller as admin when the X-Role header is exactly "ADMIN".

    The header is caller-supplied and unsigned, so anyone can set it. Swap
    the predicate installed on the app for a real credential check to harden.
    """
    return request.headers.get(ADMIN_ROLE_HEADER, "") == "ADMIN"


# PUBLIC_INTERFACE
def require_admin(request: Request) -> None:
    """Dependency that rejects the request unless the app's admin predicate accepts it."""
    is_admin: AdminPredicate = getattr(request.app.state, "admin_predicate", header_role_is_admin)
    if not is_admin(request):
        raise ForbiddenError("ADMIN_ONLY")
