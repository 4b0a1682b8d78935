"""Tests for the operational scripts (admin seed, token pruning, startup)."""
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, inspect, select
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.cheongwon.models import Base, RevokedToken, User
from app.cheongwon.utils import utcnow
from scripts import init_db, prune_tokens, release
from scripts.start import gunicorn_argv, validate_port


@pytest.fixture()
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path/'ops.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
    engine = create_engine(url)
    Base.metadata.create_all(bind=engine)
    engine.dispose()
    return url


def _users(url):
    engine = create_engine(url)
    try:
        with Session(engine) as s:
            return {u.email: (u.role, u.password_hash) for u in s.scalars(select(User))}
    finally:
        engine.dispose()


def test_seed_creates_admin(db_url, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAIL", "Admin@HUFS.ac.kr")
    monkeypatch.setenv("ADMIN_PASSWORD", "very-secret")
    init_db.seed_only(database_url=db_url)

    users = _users(db_url)
    role, pw_hash = users["admin@hufs.ac.kr"]
    assert role == "ADMIN"
    assert check_password_hash(pw_hash, "very-secret")


def test_seed_promotes_without_touching_password(db_url, monkeypatch):
    engine = create_engine(db_url)
    with Session(engine) as s:
        s.add(User(email="admin@hufs.ac.kr", password_hash=generate_password_hash("original")))
        s.commit()
    engine.dispose()

    monkeypatch.setenv("ADMIN_EMAIL", "admin@hufs.ac.kr")
    monkeypatch.setenv("ADMIN_PASSWORD", "ignored")
    init_db.seed_only(database_url=db_url)
    init_db.seed_only(database_url=db_url)

    role, pw_hash = _users(db_url)["admin@hufs.ac.kr"]
    assert role == "ADMIN"
    assert check_password_hash(pw_hash, "original")


def test_seed_skips_without_admin_email(db_url, monkeypatch):
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    assert init_db.seed_only(database_url=db_url) is None
    assert _users(db_url) == {}


def test_seed_requires_password_for_new_admin(db_url, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAIL", "admin@hufs.ac.kr")
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    with pytest.raises(RuntimeError):
        init_db.seed_only(database_url=db_url)


def test_prune_removes_only_expired_rows(db_url):
    now = utcnow()
    engine = create_engine(db_url)
    with Session(engine) as s:
        s.add_all(
            [
                RevokedToken(jti="old", expires_at=now - timedelta(minutes=1)),
                RevokedToken(jti="live", expires_at=now + timedelta(minutes=29)),
            ]
        )
        s.commit()

    assert prune_tokens.prune(database_url=db_url) == 1

    with Session(engine) as s:
        assert s.scalars(select(RevokedToken.jti)).all() == ["live"]
    engine.dispose()


def test_validate_port():
    assert validate_port("") == "8080"
    assert validate_port(" 5000 ") == "5000"
    with pytest.raises(SystemExit):
        validate_port("http")
    with pytest.raises(SystemExit):
        validate_port("70000")


def test_gunicorn_argv(monkeypatch):
    monkeypatch.setenv("WEB_CONCURRENCY", "4")
    argv = gunicorn_argv("5000")
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert "0.0.0.0:5000" in argv
    assert argv[argv.index("--workers") + 1] == "4"


def test_release_migrates_seeds_and_prunes(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path/'release.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
    monkeypatch.setenv("ADMIN_EMAIL", "admin@hufs.ac.kr")
    monkeypatch.setenv("ADMIN_PASSWORD", "very-secret")
    monkeypatch.delenv("ENV", raising=False)

    summary = release.run_release()
    assert summary == {"migrated": True, "admin": "admin@hufs.ac.kr", "pruned": 0}

    engine = create_engine(url)
    tables = set(inspect(engine).get_table_names())
    engine.dispose()
    assert {"users", "petitions", "links", "agreements", "reports", "boards", "revoked_tokens"} <= tables
    assert _users(url)["admin@hufs.ac.kr"][0] == "ADMIN"

    # Second deploy is a no-op for schema and seed
    assert release.run_release(skip_seed=True)["admin"] is None


def test_release_refuses_sqlite_in_production(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///prod.db")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError):
        release.run_release()
