# tesorito/auth.py
from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Security
from fastapi.security.api_key import APIKeyHeader, APIKeyQuery
from sqlmodel import Session, select

from .db import get_session_dep
from .errors import AuthError, PermissionDeniedError
from .models_users import User, UserRole

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
# i monitor cucina non possono impostare header: accettiamo anche ?api_key=
api_key_query = APIKeyQuery(name="api_key", auto_error=False)


def get_current_user(
    session: Annotated[Session, Depends(get_session_dep)],
    header_key: Optional[str] = Security(api_key_header),
    query_key: Optional[str] = Security(api_key_query),
) -> User:
    key = (header_key or query_key or "").strip()
    if not key:
        raise AuthError("Missing API key")
    user = session.exec(select(User).where(User.api_key == key)).first()
    if not user:
        raise AuthError("Invalid API key")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: UserRole):
    allowed = set(roles)

    def _guard(user: CurrentUser) -> User:
        if user.role not in allowed:
            raise PermissionDeniedError(
                f"Role {user.role.value} not allowed",
                details=[f"Requires one of: {', '.join(sorted(r.value for r in allowed))}"],
            )
        return user

    return _guard


AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
ManagerUser = Annotated[User, Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER))]
StockUser = Annotated[User, Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.CHEF))]
