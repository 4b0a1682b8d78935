"""Tests for the notice/FAQ boards."""
import pytest
from werkzeug.security import generate_password_hash

from app.cheongwon import create_app
from app.cheongwon.db import session_scope
from app.cheongwon.models import Base, User


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("UNIVCERT_API_KEY", raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add_all(
            [
                User(email="admin@hufs.ac.kr", password_hash=generate_password_hash("admin-pass"), role="ADMIN"),
                User(email="student@hufs.ac.kr", password_hash=generate_password_hash("student-pass")),
            ]
        )

    return app.test_client()


def _login(client, email, password):
    r = client.post("/auth/login", json={"email": email, "password": password})
    return {"Authorization": f"Bearer {r.json['data']['access_token']}"}


def _admin(client):
    return _login(client, "admin@hufs.ac.kr", "admin-pass")


def test_board_create_requires_admin(client):
    payload = {"board_type": "NOTICE", "title": "Exam schedule", "content": "See attached."}
    assert client.post("/admin/boards", json=payload).status_code == 401

    headers = _login(client, "student@hufs.ac.kr", "student-pass")
    r = client.post("/admin/boards", json=payload, headers=headers)
    assert r.status_code == 403


def test_board_create_and_detail(client):
    headers = _admin(client)
    r = client.post(
        "/admin/boards",
        json={"board_type": "notice", "title": "Exam schedule", "content": "See attached."},
        headers=headers,
    )
    assert r.status_code == 201
    board = r.json["data"]
    assert board["board_type"] == "NOTICE"
    assert board["writer"] == "admin@hufs.ac.kr"

    r = client.get(f"/boards/{board['id']}")
    assert r.status_code == 200
    assert r.json["data"]["title"] == "Exam schedule"


def test_board_validation(client):
    r = client.post("/admin/boards", json={"board_type": "BLOG", "title": ""}, headers=_admin(client))
    assert r.status_code == 400
    assert len(r.json["errors"]) == 3


def test_board_list_filter_by_type(client):
    headers = _admin(client)
    client.post("/admin/boards", json={"board_type": "NOTICE", "title": "n1", "content": "c"}, headers=headers)
    client.post(
        "/admin/boards",
        json={"board_type": "FAQ", "writer": "학생지원팀", "title": "f1", "content": "c"},
        headers=headers,
    )

    r = client.get("/boards")
    assert r.json["data"]["total"] == 2

    r = client.get("/boards?type=faq")
    items = r.json["data"]["items"]
    assert [b["title"] for b in items] == ["f1"]
    assert items[0]["writer"] == "학생지원팀"

    assert client.get("/boards?type=BLOG").status_code == 400


def test_board_delete(client):
    headers = _admin(client)
    bid = client.post(
        "/admin/boards", json={"board_type": "NOTICE", "title": "tmp", "content": "c"}, headers=headers
    ).json["data"]["id"]

    r = client.delete(f"/admin/boards/{bid}", headers=headers)
    assert r.status_code == 200

    r = client.get(f"/boards/{bid}")
    assert r.status_code == 404
    assert r.json["code"] == "BOARD_NOT_FOUND"


def test_board_non_text_fields(client):
    headers = _admin(client)
    r = client.post(
        "/admin/boards",
        json={"board_type": ["NOTICE"], "title": 5, "content": "c"},
        headers=headers,
    )
    assert r.status_code == 400
    assert len(r.json["errors"]) == 2

    r = client.post(
        "/admin/boards",
        json={"board_type": "FAQ", "writer": 7, "title": "t", "content": "c"},
        headers=headers,
    )
    assert r.status_code == 201
    assert r.json["data"]["writer"] == "admin@hufs.ac.kr"
