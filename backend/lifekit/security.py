from __future__ import annotations
from dataclasses import dataclass
from typing import Any
from uuid import UUID
import jwt
from lifekit.config import settings

JWT_ALG = "HS256"


@dataclass(frozen=True)
class AuthContext:
    """The verified caller, passed explicitly into every operation."""
    user_id: UUID
    email: str | None = None
    email_verified: bool = False


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(
        token,
        settings.auth_jwt_secret,
        algorithms=[JWT_ALG],
        audience=settings.auth_jwt_audience,
        options={"require": ["sub", "exp"]},
    )


def auth_context_from_claims(data: dict[str, Any]) -> AuthContext:
    # The identity provider marks verification either with a timestamp or a boolean claim
    meta = data.get("user_metadata") or {}
    verified = bool(data.get("email_confirmed_at") or data.get("email_verified") or meta.get("email_verified"))
    return AuthContext(user_id=UUID(str(data["sub"])), email=data.get("email"), email_verified=verified)
