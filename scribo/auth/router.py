from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from scribo.auth.deps import SESSION_COOKIE, get_current_client
from scribo.core.config import settings
from scribo.core.rbac import require
from scribo.core.security import hash_password, issue_client_token, verify_password
from scribo.db.models.client import Client
from scribo.db.session import get_db
from scribo.schemas.auth import LoginIn, RegisterIn

logger = logging.getLogger("scribo.auth")

router = APIRouter(prefix="/client/auth", tags=["auth"])


def serialize_client(c: Client) -> dict:
    return {
        "id": c.id,
        "firstName": c.first_name,
        "lastName": c.last_name,
        "fullName": c.full_name,
        "email": c.email,
        "profileImage": c.profile_image,
    }


def _session_response(client: Client, status_code: int = 200, message: str = "") -> JSONResponse:
    sid = issue_client_token(client.id)
    resp = JSONResponse(
        status_code=status_code,
        content={"message": message, "token": sid, "client": serialize_client(client)},
    )
    resp.set_cookie(
        SESSION_COOKIE,
        sid,
        httponly=True,
        samesite=settings.COOKIE_SAMESITE,
        secure=settings.COOKIE_SECURE,
        domain=settings.COOKIE_DOMAIN or None,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
    )
    return resp


@router.post("/register")
def register(body: RegisterIn, db: Session = Depends(get_db)):
    email = body.email.strip().lower()
    exists = db.query(Client.id).filter(Client.email == email).first()
    require(exists is None, "Email already registered", 409)

    client = Client(
        first_name=body.first_name.strip(),
        last_name=body.last_name.strip(),
        email=email,
        password_hash=hash_password(body.password),
    )
    db.add(client)
    db.commit()
    db.refresh(client)
    logger.info("Client %s registered", client.id)
    return _session_response(client, 201, "Registered")


@router.post("/login")
def login(body: LoginIn, db: Session = Depends(get_db)):
    client = db.query(Client).filter(Client.email == body.email.strip().lower()).first()
    require(
        client is not None and verify_password(body.password, client.password_hash),
        "Invalid email or password",
        400,
    )
    return _session_response(client, 200, "Logged in")


@router.post("/logout")
def logout():
    resp = JSONResponse({"message": "Logged out"})
    resp.delete_cookie(SESSION_COOKIE, domain=settings.COOKIE_DOMAIN or None)
    return resp


@router.get("/me")
def me(client=Depends(get_current_client)):
    return {"client": serialize_client(client)}
