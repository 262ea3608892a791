"""Password hashing and the signed client session token.

The token is stateless: it carries the client id and is checked against
SECRET_KEY and SESSION_MAX_AGE_SECONDS on every request.
"""

from __future__ import annotations

from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext

from scribo.core.config import settings

SESSION_SALT = "scribo.client-session"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.SECRET_KEY, salt=SESSION_SALT)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # unknown or malformed hash
        return False


def sign_session(payload: dict) -> str:
    return _serializer().dumps(payload)


def verify_session(token: str, max_age_seconds: int | None = None) -> dict | None:
    try:
        payload = _serializer().loads(token, max_age=max_age_seconds or settings.SESSION_MAX_AGE_SECONDS)
    except (BadSignature, SignatureExpired):
        return None
    return payload if isinstance(payload, dict) else None


def issue_client_token(client_id: int) -> str:
    return sign_session({"client_id": int(client_id)})


def client_id_from_token(token: str) -> Optional[int]:
    payload = verify_session(token)
    if payload is None:
        return None
    try:
        return int(payload["client_id"])
    except (KeyError, TypeError, ValueError):
        return None
