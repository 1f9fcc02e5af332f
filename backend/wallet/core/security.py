from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from wallet.core.config import get_settings

settings = get_settings()


def create_access_token(user_id: str, *, expires_in: timedelta | None = None) -> str:
    """Issue a bearer token for ``user_id``; used by local tooling and tests."""
    lifetime = expires_in or timedelta(minutes=settings.access_token_expire_minutes)
    payload: dict[str, Any] = {"sub": user_id, "exp": datetime.now(UTC) + lifetime}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as exc:
        raise ValueError("Invalid token") from exc


def user_id_from_token(token: str) -> str:
    user_id = str(decode_access_token(token).get("sub") or "").strip()
    if not user_id:
        raise ValueError("Token has no subject")
    return user_id
