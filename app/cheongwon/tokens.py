"""
Access/refresh token lifecycle.

Access tokens are short-lived HS256 JWTs checked against the revoked_tokens blocklist.
Refresh tokens are JWTs whose jti must still exist in refresh_tokens; they rotate on use.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.cheongwon.constants import REFRESH_COOKIE_MAX_AGE
from app.cheongwon.errors import AuthenticationError, ErrorCode
from app.cheongwon.models import RefreshToken, RevokedToken, User
from app.cheongwon.utils import utcnow

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class TokenError(AuthenticationError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(ErrorCode.TOKEN_INVALID, message)


@dataclass(frozen=True)
class TokenService:
    secret_key: str
    access_ttl: timedelta = timedelta(minutes=30)
    refresh_ttl: timedelta = REFRESH_COOKIE_MAX_AGE

    def _encode(self, payload: dict[str, Any]) -> str:
        return jwt.encode(payload, self.secret_key, algorithm=ALGORITHM)

    def _decode(self, token: str, *, expected_type: str) -> dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "jti", "sub", "type"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenError("Token has expired.") from e
        except jwt.InvalidTokenError as e:
            raise TokenError() from e
        if payload.get("type") != expected_type:
            raise TokenError(f"Expected a {expected_type} token.")
        return payload

    def issue_tokens(self, s: Session, user: User) -> dict[str, Any]:
        """Issue an access/refresh pair and remember the refresh token's jti."""
        now = datetime.now(timezone.utc)
        access_exp = now + self.access_ttl
        refresh_exp = now + self.refresh_ttl
        refresh_jti = uuid.uuid4().hex

        access_token = self._encode(
            {
                "sub": user.email,
                "uid": user.id,
                "role": user.role,
                "jti": uuid.uuid4().hex,
                "iat": now,
                "exp": access_exp,
                "type": "access",
            }
        )
        refresh_token = self._encode(
            {
                "sub": user.email,
                "uid": user.id,
                "jti": refresh_jti,
                "iat": now,
                "exp": refresh_exp,
                "type": "refresh",
            }
        )
        s.add(
            RefreshToken(
                user_id=user.id,
                jti=refresh_jti,
                expires_at=refresh_exp.replace(tzinfo=None),
            )
        )
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "Bearer",
            "expires_in": int(self.access_ttl.total_seconds()),
        }

    def verify_access_token(self, s: Session, token: str) -> dict[str, Any]:
        payload = self._decode(token, expected_type="access")
        revoked = s.scalar(select(RevokedToken.id).where(RevokedToken.jti == payload["jti"]))
        if revoked is not None:
            raise TokenError("Token has been revoked.")
        return payload

    def refresh(self, s: Session, refresh_token: str) -> tuple[User, dict[str, Any]]:
        """Exchange a refresh token for a new pair. The old refresh token stops working."""
        payload = self._decode(refresh_token, expected_type="refresh")
        stored = s.scalars(select(RefreshToken).where(RefreshToken.jti == payload["jti"])).first()
        if stored is None:
            raise TokenError("Refresh token is no longer valid.")
        user = s.get(User, stored.user_id)
        if user is None or not user.is_active or user.email != payload["sub"]:
            raise TokenError("Refresh token is no longer valid.")
        s.delete(stored)
        return user, self.issue_tokens(s, user)

    def destroy_token(self, s: Session, username: str, token: str) -> None:
        """
        Blocklist the given access token until it expires and drop every refresh token of `username`.
        """
        payload = self._decode(token, expected_type="access")
        if payload["sub"] != username:
            raise TokenError("Token does not belong to this user.")
        already = s.scalar(select(RevokedToken.id).where(RevokedToken.jti == payload["jti"]))
        if already is None:
            s.add(
                RevokedToken(
                    jti=payload["jti"],
                    expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc).replace(tzinfo=None),
                )
            )
        user_ids = select(User.id).where(User.email == username)
        s.execute(delete(RefreshToken).where(RefreshToken.user_id.in_(user_ids)))
        s.flush()
        logger.info("Tokens destroyed for %s", username)

    def prune_revoked(self, s: Session, *, now: datetime | None = None) -> int:
        """Delete blocklist and refresh rows that have expired anyway."""
        now = now or utcnow()
        n = s.execute(delete(RevokedToken).where(RevokedToken.expires_at < now)).rowcount or 0
        n += s.execute(delete(RefreshToken).where(RefreshToken.expires_at < now)).rowcount or 0
        return n


def token_service_from_config(config: dict) -> TokenService:
    return TokenService(
        secret_key=str(config.get("SECRET_KEY") or ""),
        access_ttl=timedelta(minutes=int(config.get("ACCESS_TOKEN_MINUTES") or 30)),
        refresh_ttl=timedelta(seconds=int(config.get("REFRESH_COOKIE_MAX_AGE") or REFRESH_COOKIE_MAX_AGE.total_seconds())),
    )
