"""
Request-scoped collaborators for the routers.

Authentication happens upstream; the gateway forwards the caller's identity
as ``X-User-Id`` / ``X-Tenant-Id`` headers and every query here is scoped by
that pair.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    tenant_id: str


def get_auth_context(
    x_user_id: Optional[str] = Header(default=None),
    x_tenant_id: Optional[str] = Header(default=None),
) -> AuthContext:
    if not x_user_id or not x_tenant_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return AuthContext(user_id=x_user_id, tenant_id=x_tenant_id)
