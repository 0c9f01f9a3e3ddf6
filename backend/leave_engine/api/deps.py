# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, Path

from leave_engine.exceptions import AuthorizationFailure
from leave_engine.models.enums import Role
from leave_engine.schemas.auth import AuthContext


async def get_auth_context(
    x_tenant_id: uuid.UUID = Header(),
    x_user_id: uuid.UUID = Header(),
    x_role: Role = Header(default=Role.WORKER),
) -> AuthContext:
    """Extract dev auth context from request headers."""
    return AuthContext(tenant_id=x_tenant_id, user_id=x_user_id, role=x_role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_hr_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require the HR_ADMIN role for the request."""
    if not auth.is_hr_admin:
        raise AuthorizationFailure("HR admin access required")
    return auth


HRAdminDep = Annotated[AuthContext, Depends(require_hr_admin)]


async def validate_tenant_scope(
    tenant_id: uuid.UUID = Path(),
    auth: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Ensure the path tenant_id matches the auth header tenant_id."""
    if tenant_id != auth.tenant_id:
        raise AuthorizationFailure("Tenant ID mismatch")
    return auth
