from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ISSUER = os.getenv("JWT_ISSUER", "buildtrack")
JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", "60"))


class TokenError(Exception):
    pass


def create_access_token(
    *,
    user_id: str,
    organization_id: str | None = None,
    permissions: list[str] | None = None,
    expires_minutes: int | None = None,
) -> str:
    """Mint a bearer token; production tokens come from the identity provider."""
    issued_at = datetime.now(UTC)
    claims: dict[str, Any] = {
        "iss": JWT_ISSUER,
        "sub": user_id,
        "org_id": organization_id,
        "permissions": list(permissions or []),
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expires_minutes or JWT_EXPIRES_MIN),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    try:
        claims = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            issuer=JWT_ISSUER,
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as exc:
        raise TokenError(str(exc)) from exc
    if not isinstance(claims.get("sub"), str):
        raise TokenError("token subject must be a user id")
    return claims
