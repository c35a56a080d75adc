"""Shared-password gate.

When a password is configured, every ``/api`` request except the auth and
health endpoints must carry the session cookie set by ``POST /api/auth/login``.
The cookie value is an HMAC of the password, so changing the password or the
secret key invalidates existing sessions. No password = open (dev mode).
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger(__name__)

COOKIE_NAME = "sentinel_session"
_OPEN_PATHS = ("/api/auth/", "/api/health")


class PasswordGate:
    def __init__(self, password: str, secret_key: str) -> None:
        self.password = password
        self.secret_key = secret_key

    @property
    def enabled(self) -> bool:
        return bool(self.password)

    def session_token(self) -> str:
        return hmac.new(
            self.secret_key.encode(), self.password.encode(), hashlib.sha256,
        ).hexdigest()

    def check_password(self, candidate: str) -> bool:
        return hmac.compare_digest(candidate.encode(), self.password.encode())

    def is_authed(self, cookie: str | None) -> bool:
        if not self.enabled:
            return True
        return bool(cookie) and hmac.compare_digest(cookie, self.session_token())


class PasswordGateMiddleware(BaseHTTPMiddleware):
    """Reject gated /api requests without a valid session cookie."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        gate: PasswordGate = request.app.state.auth
        path = request.url.path
        if (
            not gate.enabled
            or request.method == "OPTIONS"
            or not path.startswith("/api/")
            or path.startswith(_OPEN_PATHS)
        ):
            return await call_next(request)

        if not gate.is_authed(request.cookies.get(COOKIE_NAME)):
            return JSONResponse(status_code=401, content={"detail": "unauthorized"})
        return await call_next(request)


# ── Routes ───────────────────────────────────────────────────────────────────

auth_router = APIRouter(prefix="/auth", tags=["auth"])


class LoginBody(BaseModel):
    password: str


@auth_router.post("/login")
def login(body: LoginBody, request: Request, response: Response) -> dict[str, Any]:
    gate: PasswordGate = request.app.state.auth
    if not gate.enabled:
        return {"ok": True, "required": False}
    if not gate.check_password(body.password):
        logger.warning("Rejected login attempt from %s", request.client.host if request.client else "?")
        raise HTTPException(status_code=401, detail="Incorrect password")
    response.set_cookie(COOKIE_NAME, gate.session_token(), httponly=True, samesite="lax")
    return {"ok": True, "required": True}


@auth_router.post("/logout")
def logout(response: Response) -> dict[str, Any]:
    response.delete_cookie(COOKIE_NAME)
    return {"ok": True}


@auth_router.get("/status")
def auth_status(request: Request) -> dict[str, Any]:
    gate: PasswordGate = request.app.state.auth
    return {
        "required": gate.enabled,
        "authenticated": gate.is_authed(request.cookies.get(COOKIE_NAME)),
    }
