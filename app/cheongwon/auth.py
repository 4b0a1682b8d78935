from __future__ import annotations

import uuid

from flask import Blueprint, current_app, g, request

from app.cheongwon.audit import record_event
from app.cheongwon.db import db_session
from app.cheongwon.errors import AuthenticationError, RequestValidationError
from app.cheongwon.models import User
from app.cheongwon.modules.users.service import (
    authenticate,
    certify_email_code,
    normalize_email,
    register_user,
    send_email_code,
    user_to_dict,
    validate_credentials_payload,
    withdraw_user,
)
from app.cheongwon.rbac import require_login
from app.cheongwon.tokens import TokenError, TokenService
from app.cheongwon.utils import json_payload, ok

bp = Blueprint("auth", __name__)

REFRESH_COOKIE = "refresh_token"
EMAIL_COOKIE = "email_certified"


def _tokens() -> TokenService:
    return current_app.extensions["token_service"]


def _verifier():
    return current_app.extensions["email_verifier"]


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def load_current_user() -> None:
    """
    Loads g.current_user from the bearer access token.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    g.current_user = None
    g.access_token = None

    token = _bearer_token()
    if not token:
        return

    s = db_session()
    try:
        payload = _tokens().verify_access_token(s, token)
    except TokenError as e:
        current_app.logger.debug("Ignoring bearer token (request_id=%s): %s", g.request_id, e.message)
        return

    user = s.get(User, int(payload.get("uid") or 0))
    if not user or not user.is_active or user.email != payload.get("sub"):
        return
    g.current_user = user
    g.access_token = token


def _set_refresh_cookie(resp, refresh_token: str) -> None:
    resp.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        max_age=current_app.config["REFRESH_COOKIE_MAX_AGE"],
        httponly=True,
        secure=current_app.config.get("COOKIE_SECURE", False),
        samesite="Lax",
        path="/auth",
    )


@bp.post("/signup")
def signup():
    payload = json_payload()
    errors = validate_credentials_payload(payload)
    if errors:
        raise RequestValidationError(errors)

    s = db_session()
    user = register_user(s, email=payload["email"], password=payload["password"], verifier=_verifier())
    s.commit()
    current_app.logger.info("User registered user_id=%s", user.id)
    return ok(user_to_dict(user), 201)


@bp.post("/login")
def login():
    payload = json_payload()
    s = db_session()
    try:
        user = authenticate(s, payload.get("email") or "", payload.get("password") or "")
    except AuthenticationError:
        # keep the auth.login_failed audit row
        s.commit()
        raise

    tokens = _tokens().issue_tokens(s, user)
    s.commit()

    body, status = ok({"user": user_to_dict(user), **tokens})
    resp = current_app.make_response((body, status))
    _set_refresh_cookie(resp, tokens["refresh_token"])
    return resp


@bp.post("/refresh")
def refresh():
    payload = json_payload() if request.content_length else {}
    refresh_token = payload.get("refresh_token") or request.cookies.get(REFRESH_COOKIE)
    if not refresh_token:
        raise TokenError("Refresh token is missing.")

    s = db_session()
    user, tokens = _tokens().refresh(s, refresh_token)
    s.commit()

    body, status = ok({"user": user_to_dict(user), **tokens})
    resp = current_app.make_response((body, status))
    _set_refresh_cookie(resp, tokens["refresh_token"])
    return resp


@bp.post("/logout")
@require_login
def logout():
    s = db_session()
    user: User = g.current_user
    _tokens().destroy_token(s, user.email, g.access_token)

    record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
    s.commit()

    body, status = ok()
    resp = current_app.make_response((body, status))
    resp.delete_cookie(REFRESH_COOKIE, path="/auth")
    return resp


@bp.delete("/withdraw")
@require_login
def withdraw():
    s = db_session()
    user: User = g.current_user
    withdraw_user(s, user.email, g.access_token, tokens=_tokens())
    s.commit()
    g.current_user = None

    body, status = ok()
    resp = current_app.make_response((body, status))
    resp.delete_cookie(REFRESH_COOKIE, path="/auth")
    return resp


@bp.get("/me")
@require_login
def me():
    return ok(user_to_dict(g.current_user))


@bp.post("/email/send")
def email_send():
    payload = json_payload()
    email = normalize_email(payload.get("email"))
    if not email or "@" not in email:
        raise RequestValidationError(["A valid email is required."])
    result = send_email_code(_verifier(), email, current_app.config["UNIV_NAME"])
    return ok(result)


@bp.post("/email/certify")
def email_certify():
    payload = json_payload()
    email = normalize_email(payload.get("email"))
    errors = []
    if not email or "@" not in email:
        errors.append("A valid email is required.")
    try:
        code = int(payload.get("code"))
    except (TypeError, ValueError):
        errors.append("code must be a number.")
        code = 0
    if errors:
        raise RequestValidationError(errors)

    result = certify_email_code(_verifier(), email, current_app.config["UNIV_NAME"], code)
    body, status = ok(result)
    resp = current_app.make_response((body, status))
    if result.get("success"):
        resp.set_cookie(
            EMAIL_COOKIE,
            email,
            max_age=current_app.config["EMAIL_COOKIE_MAX_AGE"],
            httponly=True,
            secure=current_app.config.get("COOKIE_SECURE", False),
            samesite="Lax",
        )
    return resp
