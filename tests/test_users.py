"""Tests for signup, login, token lifecycle, withdrawal and email certification."""
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from werkzeug.security import check_password_hash, generate_password_hash

from app.cheongwon import create_app
from app.cheongwon.db import session_scope
from app.cheongwon.models import AuditEvent, Base, RefreshToken, RevokedToken, User
from app.cheongwon.modules.petitions.models import Agreement, Petition
from app.cheongwon.modules.users import service as user_service
from app.cheongwon.modules.users.univcert_client import UnivCertError
from app.cheongwon.tokens import TokenError, TokenService

PASSWORD = "correct-horse-battery"
SECRET = "test-secret-key-with-enough-length-for-hs256"


class FakeVerifier:
    """Stands in for the UnivCert API. Emails in `certified` pass the status check."""

    def __init__(self, certified=(), code=1234):
        self.certified = set(certified)
        self.code = code
        self.calls = []
        self.fail = False

    def _call(self, name, *args):
        self.calls.append((name, *args))
        if self.fail:
            raise UnivCertError("connection refused")

    def status(self, email):
        self._call("status", email)
        if email in self.certified:
            return {"success": True, "certified_date": "2026-03-01T10:00:00"}
        return {"success": False, "message": "인증되지 않은 이메일입니다."}

    def certify(self, email, univ_name, univ_check=True):
        self._call("certify", email, univ_name, univ_check)
        return {"success": True}

    def certify_code(self, email, univ_name, code):
        self._call("certify_code", email, univ_name, code)
        if code == self.code:
            self.certified.add(email)
            return {"success": True, "univName": univ_name, "certified_email": email}
        return {"success": False, "message": "일치하지 않는 인증코드입니다."}


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", SECRET)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("UNIV_NAME", "한국외국어대학교")
    monkeypatch.delenv("UNIVCERT_API_KEY", raising=False)

    app = create_app()
    app.extensions["email_verifier"] = FakeVerifier(certified={"new@hufs.ac.kr"})
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        pw = generate_password_hash(PASSWORD)
        s.add_all(
            [
                User(email="alice@hufs.ac.kr", password_hash=pw),
                User(email="bob@hufs.ac.kr", password_hash=pw),
            ]
        )
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, who):
    r = client.post("/auth/login", json={"email": f"{who}@hufs.ac.kr", "password": PASSWORD})
    assert r.status_code == 200
    return r.json["data"]


def _bearer(tokens):
    return {"Authorization": f"Bearer {tokens['access_token']}"}


def _set_cookies(r):
    return r.headers.getlist("Set-Cookie")


# ---------- Signup ----------
def test_signup_certified_email(app, client):
    r = client.post("/auth/signup", json={"email": "New@HUFS.ac.kr", "password": "s3cret-pass"})
    assert r.status_code == 201
    assert r.json["data"]["email"] == "new@hufs.ac.kr"
    assert r.json["data"]["role"] == "USER"

    with session_scope(app) as s:
        user = s.scalars(select(User).where(User.email == "new@hufs.ac.kr")).one()
        assert user.password_hash != "s3cret-pass"
        assert check_password_hash(user.password_hash, "s3cret-pass")

    r = client.post("/auth/login", json={"email": "new@hufs.ac.kr", "password": "s3cret-pass"})
    assert r.status_code == 200


def test_signup_duplicate_email_skips_verification(app, client):
    verifier = app.extensions["email_verifier"]
    r = client.post("/auth/signup", json={"email": "alice@hufs.ac.kr", "password": "another-pass"})
    assert r.status_code == 409
    assert r.json["code"] == "EMAIL_DUPLICATED"
    assert verifier.calls == []


def test_signup_uncertified_email(app, client):
    r = client.post("/auth/signup", json={"email": "stranger@hufs.ac.kr", "password": "another-pass"})
    assert r.status_code == 400
    assert r.json["code"] == "EMAIL_UNCERTIFIED"
    with session_scope(app) as s:
        assert s.scalar(select(func.count(User.id))) == 2


def test_signup_validation(client):
    r = client.post("/auth/signup", json={"email": "nope", "password": "short"})
    assert r.status_code == 400
    assert len(r.json["errors"]) == 2


def test_signup_verifier_unavailable(app, client):
    app.extensions["email_verifier"].fail = True
    r = client.post("/auth/signup", json={"email": "new@hufs.ac.kr", "password": "s3cret-pass"})
    assert r.status_code == 502
    assert r.json["code"] == "EMAIL_VERIFICATION_FAILED"


# ---------- Login / tokens ----------
def test_login_wrong_password_is_audited(app, client):
    r = client.post("/auth/login", json={"email": "alice@hufs.ac.kr", "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json["code"] == "INVALID_CREDENTIALS"

    r = client.post("/auth/login", json={"email": "ghost@hufs.ac.kr", "password": PASSWORD})
    assert r.status_code == 401

    with session_scope(app) as s:
        n = s.scalar(select(func.count(AuditEvent.id)).where(AuditEvent.action == "auth.login_failed"))
        assert n == 2


def test_login_issues_tokens_and_refresh_cookie(client):
    r = client.post("/auth/login", json={"email": "alice@hufs.ac.kr", "password": PASSWORD})
    data = r.json["data"]
    assert data["token_type"] == "Bearer"
    assert data["expires_in"] == 30 * 60
    assert data["user"]["email"] == "alice@hufs.ac.kr"
    assert any(c.startswith("refresh_token=") and "HttpOnly" in c for c in _set_cookies(r))

    r = client.get("/auth/me", headers=_bearer(data))
    assert r.status_code == 200
    assert r.json["data"]["email"] == "alice@hufs.ac.kr"


def test_refresh_rotates_refresh_token(client):
    tokens = _login(client, "alice")

    r = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 200
    rotated = r.json["data"]
    assert rotated["refresh_token"] != tokens["refresh_token"]
    assert client.get("/auth/me", headers=_bearer(rotated)).status_code == 200

    # The old refresh token is spent
    r = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 401
    assert r.json["code"] == "TOKEN_INVALID"


def test_refresh_from_cookie(client):
    _login(client, "alice")
    r = client.post("/auth/refresh")
    assert r.status_code == 200
    assert r.json["data"]["user"]["email"] == "alice@hufs.ac.kr"


def test_access_token_cannot_refresh(client):
    tokens = _login(client, "alice")
    r = client.post("/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert r.status_code == 401


def test_logout_revokes_tokens(app, client):
    tokens = _login(client, "alice")
    r = client.post("/auth/logout", headers=_bearer(tokens))
    assert r.status_code == 200

    r = client.get("/auth/me", headers=_bearer(tokens))
    assert r.status_code == 401
    r = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 401

    with session_scope(app) as s:
        assert s.scalar(select(func.count(RevokedToken.id))) == 1
        assert s.scalar(select(func.count(RefreshToken.id))) == 0


def test_expired_access_token_is_rejected(app):
    short = TokenService(secret_key=SECRET, access_ttl=timedelta(seconds=-5))
    with session_scope(app) as s:
        user = s.scalars(select(User).where(User.email == "alice@hufs.ac.kr")).one()
        tokens = short.issue_tokens(s, user)
        with pytest.raises(TokenError):
            short.verify_access_token(s, tokens["access_token"])


def test_destroy_token_checks_owner(app):
    service = app.extensions["token_service"]
    with session_scope(app) as s:
        user = s.scalars(select(User).where(User.email == "alice@hufs.ac.kr")).one()
        tokens = service.issue_tokens(s, user)
        with pytest.raises(TokenError):
            service.destroy_token(s, "bob@hufs.ac.kr", tokens["access_token"])


# ---------- Withdraw ----------
def test_withdraw_removes_account_and_agreements(app, client):
    alice = _login(client, "alice")
    bob = _login(client, "bob")
    pid = client.post(
        "/petitions",
        json={"title": "Longer lunch break", "category": "academics", "content": "Please."},
        headers=_bearer(alice),
    ).json["data"]["id"]
    client.post("/petitions", json={"title": "Bob's", "category": "misc", "content": "x"}, headers=_bearer(bob))
    r = client.post(f"/petitions/{pid}/agreements", headers=_bearer(bob))
    assert r.json["data"]["agree_count"] == 1

    r = client.delete("/auth/withdraw", headers=_bearer(bob))
    assert r.status_code == 200

    r = client.get(f"/petitions/{pid}")
    assert r.json["data"]["agree_count"] == 0

    r = client.post("/auth/login", json={"email": "bob@hufs.ac.kr", "password": PASSWORD})
    assert r.status_code == 401
    assert client.get("/auth/me", headers=_bearer(bob)).status_code == 401

    with session_scope(app) as s:
        assert s.scalar(select(func.count(User.id)).where(User.email == "bob@hufs.ac.kr")) == 0
        assert s.scalar(select(func.count(Agreement.id))) == 0
        assert s.scalar(select(func.count(Petition.id))) == 1
        assert s.scalar(select(func.count(AuditEvent.id)).where(AuditEvent.action == "user.withdraw")) == 1


def test_withdraw_requires_login(client):
    assert client.delete("/auth/withdraw").status_code == 401


# ---------- Email certification ----------
def test_email_send_uses_configured_university(app, client):
    r = client.post("/auth/email/send", json={"email": "Someone@hufs.ac.kr"})
    assert r.status_code == 200
    assert r.json["data"] == {"success": True}
    assert app.extensions["email_verifier"].calls == [("certify", "someone@hufs.ac.kr", "한국외국어대학교", True)]


def test_email_certify_sets_cookie_on_success(client):
    r = client.post("/auth/email/certify", json={"email": "someone@hufs.ac.kr", "code": "1234"})
    assert r.status_code == 200
    assert r.json["data"]["success"] is True
    assert any(c.startswith("email_certified=") for c in _set_cookies(r))


def test_email_certify_wrong_code(client):
    r = client.post("/auth/email/certify", json={"email": "someone@hufs.ac.kr", "code": 9999})
    assert r.status_code == 200
    assert r.json["data"]["success"] is False
    assert not any(c.startswith("email_certified=") for c in _set_cookies(r))


def test_email_certify_validation(client):
    r = client.post("/auth/email/certify", json={"email": "", "code": "abc"})
    assert r.status_code == 400
    assert len(r.json["errors"]) == 2


def test_certified_email_can_then_sign_up(client):
    client.post("/auth/email/send", json={"email": "fresh@hufs.ac.kr"})
    client.post("/auth/email/certify", json={"email": "fresh@hufs.ac.kr", "code": 1234})
    r = client.post("/auth/signup", json={"email": "fresh@hufs.ac.kr", "password": "s3cret-pass"})
    assert r.status_code == 201


# ---------- Malformed input ----------
def test_signup_non_text_email_is_rejected(client):
    r = client.post("/auth/signup", json={"email": 5, "password": "s3cret-pass"})
    assert r.status_code == 400
    assert "A valid email is required." in r.json["errors"]


def test_login_non_text_credentials(client):
    r = client.post("/auth/login", json={"email": ["alice@hufs.ac.kr"], "password": 12345678})
    assert r.status_code == 401
    assert r.json["code"] == "INVALID_CREDENTIALS"

    r = client.post("/auth/login", json={"email": "alice@hufs.ac.kr", "password": {"pw": PASSWORD}})
    assert r.status_code == 401


def test_email_endpoints_non_text_email(client):
    assert client.post("/auth/email/send", json={"email": 5}).status_code == 400
    assert client.post("/auth/email/certify", json={"email": [], "code": 1234}).status_code == 400


def test_signup_duplicate_stopped_by_unique_constraint(app, client, monkeypatch):
    app.extensions["email_verifier"].certified.add("alice@hufs.ac.kr")
    # Simulate a concurrent signup that passed the existence check
    monkeypatch.setattr(user_service, "email_exists", lambda s, email: False)

    r = client.post("/auth/signup", json={"email": "alice@hufs.ac.kr", "password": "another-pass"})
    assert r.status_code == 409
    assert r.json["code"] == "EMAIL_DUPLICATED"

    with session_scope(app) as s:
        assert s.scalar(select(func.count(User.id)).where(User.email == "alice@hufs.ac.kr")) == 1
