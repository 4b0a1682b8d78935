"""
User account lifecycle: registration behind institutional email certification,
login, and withdrawal.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.cheongwon.audit import record_event
from app.cheongwon.constants import ROLE_USER, USER_STATUS_ACTIVE
from app.cheongwon.errors import (
    AuthenticationError,
    DuplicateResourceError,
    EmailNotCertifiedError,
    ErrorCode,
    ResourceNotFoundError,
)
from app.cheongwon.models import User
from app.cheongwon.modules.petitions.service import delete_user_agreements
from app.cheongwon.utils import isoformat

if TYPE_CHECKING:
    from app.cheongwon.tokens import TokenService

logger = logging.getLogger(__name__)

PASSWORD_MIN = 8
PASSWORD_MAX = 128


class EmailVerifier(Protocol):
    def status(self, email: str) -> dict[str, Any]: ...

    def certify(self, email: str, univ_name: str, univ_check: bool = True) -> dict[str, Any]: ...

    def certify_code(self, email: str, univ_name: str, code: int) -> dict[str, Any]: ...


def normalize_email(email: object) -> str:
    return email.strip().lower() if isinstance(email, str) else ""


def validate_credentials_payload(payload: dict) -> list[str]:
    errors = []
    email = normalize_email(payload.get("email"))
    password = payload.get("password") or ""
    if not email or "@" not in email or email.startswith("@") or email.endswith("@"):
        errors.append("A valid email is required.")
    if not isinstance(password, str) or not (PASSWORD_MIN <= len(password) <= PASSWORD_MAX):
        errors.append(f"Password must be {PASSWORD_MIN}-{PASSWORD_MAX} characters.")
    return errors


def email_exists(s: Session, email: str) -> bool:
    return s.scalar(select(select(User.id).where(User.email == email).exists())) or False


def find_user_by_email(s: Session, email: str) -> User | None:
    return s.scalars(select(User).where(User.email == normalize_email(email))).first()


def register_user(s: Session, *, email: str, password: str, verifier: EmailVerifier) -> User:
    """
    Create an account for an email the certification service has already verified.
    Duplicate emails are rejected before the service is consulted.
    """
    email = normalize_email(email)
    if email_exists(s, email):
        raise DuplicateResourceError(ErrorCode.EMAIL_DUPLICATED)

    response = verifier.status(email)
    if not response.get("success"):
        logger.info("Signup refused, email not certified: %s", email)
        raise EmailNotCertifiedError()

    user = User(
        email=email,
        password_hash=generate_password_hash(password),
        status=USER_STATUS_ACTIVE,
        role=ROLE_USER,
    )
    try:
        with s.begin_nested():
            s.add(user)
    except IntegrityError as e:
        raise DuplicateResourceError(ErrorCode.EMAIL_DUPLICATED) from e

    record_event(s, actor=user, action="user.register", entity_type="User", entity_id=str(user.id))
    return user


def send_email_code(verifier: EmailVerifier, email: str, univ_name: str) -> dict[str, Any]:
    return verifier.certify(normalize_email(email), univ_name, True)


def certify_email_code(verifier: EmailVerifier, email: str, univ_name: str, code: int) -> dict[str, Any]:
    return verifier.certify_code(normalize_email(email), univ_name, code)


def authenticate(s: Session, email: str, password: str) -> User:
    email = normalize_email(email)
    password = password if isinstance(password, str) else ""
    user = find_user_by_email(s, email)
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
        )
        raise AuthenticationError(ErrorCode.INVALID_CREDENTIALS)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    return user


def withdraw_user(s: Session, username: str, token: str, *, tokens: TokenService) -> None:
    """
    Revoke the caller's credentials and delete the account.
    The user's petitions, agreements and reports go with it; counters of petitions the
    user agreed with are decremented first.
    """
    user = find_user_by_email(s, username)
    if user is None:
        raise ResourceNotFoundError(ErrorCode.USER_NOT_FOUND)

    tokens.destroy_token(s, username, token)

    record_event(
        s,
        actor=None,
        action="user.withdraw",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email},
    )
    s.flush()

    removed = delete_user_agreements(s, user.id)
    s.execute(delete(User).where(User.email == user.email))
    logger.info("User withdrawn user_id=%s agreements_removed=%s", user.id, removed)


def user_to_dict(user: User) -> dict[str, Any]:
    return {
        "user_id": user.id,
        "email": user.email,
        "role": user.role,
        "status": user.status,
        "created_at": isoformat(user.created_at),
    }
