from fastapi import Request, Depends, HTTPException
from sqlalchemy.orm import Session

from scribo.db.session import get_db
from scribo.core.security import client_id_from_token
from scribo.db.models.client import Client

SESSION_COOKIE = "sid"


def _token_from_request(request: Request) -> str | None:
    """The "sid" cookie wins over an Authorization: Bearer header."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token
    auth = request.headers.get("authorization") or ""
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def get_current_client(request: Request, db: Session = Depends(get_db)) -> Client:
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Access denied. No token provided.")
    client_id = client_id_from_token(token)
    if client_id is None:
        raise HTTPException(status_code=401, detail="Invalid token.")
    client = db.get(Client, client_id)
    if not client:
        raise HTTPException(status_code=401, detail="Access denied. Invalid token.")
    return client
