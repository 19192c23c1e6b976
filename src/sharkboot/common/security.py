"""Bearer token issuance/verification and password hashing."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Header
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext

from sharkboot.common.exceptions import AuthenticationError

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(frozen=True)
class Principal:
    """Verified caller identity: the user and the tenant it belongs to."""
    user_id: str
    client_id: str
    name: str = ""


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return _pwd_context.verify(password, password_hash)


def _get_serializer(secret_key: str | None = None) -> URLSafeTimedSerializer:
    if secret_key is None:
        from sharkboot.common.config import get_settings
        secret_key = get_settings().secret_key
    return URLSafeTimedSerializer(secret_key, salt="auth-token")


def issue_token(principal: Principal, secret_key: str | None = None) -> str:
    """Sign a principal into a bearer token."""
    s = _get_serializer(secret_key)
    return s.dumps({
        "user_id": principal.user_id,
        "client_id": principal.client_id,
        "name": principal.name,
    })


def verify_token(
    token: str, secret_key: str | None = None, max_age: int | None = None,
) -> Principal:
    """Verify a bearer token and return its principal."""
    if max_age is None:
        from sharkboot.common.config import get_settings
        max_age = get_settings().token_max_age
    s = _get_serializer(secret_key)
    try:
        payload = s.loads(token, max_age=max_age)
    except SignatureExpired:
        raise AuthenticationError("Token expired")
    except BadSignature:
        raise AuthenticationError("Invalid token")

    if not isinstance(payload, dict) or not payload.get("user_id") or not payload.get("client_id"):
        raise AuthenticationError("Invalid token structure")
    return Principal(
        user_id=payload["user_id"],
        client_id=payload["client_id"],
        name=payload.get("name") or "",
    )


async def require_principal(
    authorization: str = Header("", alias="Authorization"),
) -> Principal:
    """FastAPI dependency that resolves the caller from the bearer token."""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("No token provided")
    return verify_token(token.strip())
