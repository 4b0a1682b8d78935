from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.cheongwon.errors import AuthenticationError, ErrorCode, PermissionDeniedError
from app.cheongwon.models import User


def current_user() -> User | None:
    return getattr(g, "current_user", None)


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user = current_user()
        # Unauthenticated -> 401 (expired and revoked tokens land here too)
        if not user or not user.is_active:
            raise AuthenticationError(ErrorCode.LOGIN_REQUIRED)
        return fn(*args, **kwargs)

    return wrapped


def require_admin(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user = current_user()
        if not user or not user.is_active:
            raise AuthenticationError(ErrorCode.LOGIN_REQUIRED)
        # Authenticated but not an administrator -> 403
        if not user.is_admin:
            raise PermissionDeniedError()
        return fn(*args, **kwargs)

    return wrapped
