"""Caller identity.

Authentication happens upstream (the auth gateway verifies tokens and OTP logins) and
forwards the verified identity in headers. This module only reads those headers.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException


@dataclass(frozen=True, slots=True)
class Caller:
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_caller(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Caller:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required")

    return Caller(user_id=user_id, role=(x_user_role or "customer").strip().lower())


def require_admin(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Caller:
    caller = get_caller(x_user_id=x_user_id, x_user_role=x_user_role)
    if not caller.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return caller
