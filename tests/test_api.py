"""End-to-end API tests for auth, gadget inventory and the self-destruct routes."""

import os
import sys
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from app import create_app
from app.core.config import AppSettings
from app.db.session import get_db

START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@contextmanager
def _build_test_client(clock: FakeClock) -> Generator[TestClient, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db() -> Generator[Session, None, None]:
        session = testing_session_local()
        try:
            yield session
        finally:
            session.close()

    app = create_app(
        AppSettings(),
        engine=engine,
        clock=clock,
        token_bytes=lambda count: bytes.fromhex("a1b2c3d4"),
    )
    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


def _register(client: TestClient, email: str, role: str) -> dict[str, str]:
    response = client.post("/api/auth/register", json={"email": email, "password": "s3cret-pass", "role": role})
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _create_gadget(client: TestClient, headers: dict[str, str], name: str = "Exploding Pen") -> dict:
    response = client.post("/api/gadgets", json={"name": name, "description": "Click three times"}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_health_and_security_headers():
    with _build_test_client(FakeClock()) as client:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "pending_self_destructs": 0}
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Request-ID"]


def test_register_login_and_refresh():
    with _build_test_client(FakeClock()) as client:
        _register(client, "q@example.com", "ADMIN")

        duplicate = client.post(
            "/api/auth/register",
            json={"email": "Q@example.com", "password": "s3cret-pass", "role": "AGENT"},
        )
        assert duplicate.status_code == 400

        bad_login = client.post("/api/auth/login", json={"email": "q@example.com", "password": "wrong"})
        assert bad_login.status_code == 401

        login = client.post("/api/auth/login", json={"email": "q@example.com", "password": "s3cret-pass"})
        assert login.status_code == 200
        body = login.json()
        assert body["user"]["role"] == "ADMIN"
        assert body["token_type"] == "bearer"

        refreshed = client.post("/api/auth/refresh", json={"refresh_token": body["refresh_token"]})
        assert refreshed.status_code == 200
        assert refreshed.json()["user"]["email"] == "q@example.com"

        # An access token is not accepted where a refresh token is expected.
        wrong_type = client.post("/api/auth/refresh", json={"refresh_token": body["access_token"]})
        assert wrong_type.status_code == 401


def test_gadget_routes_require_authentication():
    with _build_test_client(FakeClock()) as client:
        assert client.get("/api/gadgets").status_code == 401
        invalid = client.get("/api/gadgets", headers={"Authorization": "Bearer not-a-jwt"})
        assert invalid.status_code == 401
        assert invalid.json()["code"] == "http_error"


def test_gadget_crud_and_status_filter():
    with _build_test_client(FakeClock()) as client:
        admin = _register(client, "m@example.com", "ADMIN")
        agent = _register(client, "bond@example.com", "AGENT")

        pen = _create_gadget(client, agent, "Exploding Pen")
        watch = _create_gadget(client, agent, "Laser Watch")
        assert pen["status"] == "Active"
        assert pen["codename"].startswith("The ")

        patched = client.patch(f"/api/gadgets/{pen['id']}", json={"description": "Click four times"}, headers=agent)
        assert patched.status_code == 200
        assert patched.json()["description"] == "Click four times"

        # Decommissioning is an ADMIN action.
        assert client.delete(f"/api/gadgets/{watch['id']}", headers=agent).status_code == 403
        deleted = client.delete(f"/api/gadgets/{watch['id']}", headers=admin)
        assert deleted.status_code == 200
        assert deleted.json() == {"message": "Gadget decommissioned successfully"}

        active = client.get("/api/gadgets", params={"status": "Active"}, headers=agent).json()
        assert [g["id"] for g in active] == [pen["id"]]
        retired = client.get("/api/gadgets", params={"status": "Decommissioned"}, headers=agent).json()
        assert retired[0]["decommissioned_at"] is not None

        invalid = client.get("/api/gadgets", params={"status": "Exploded"}, headers=agent)
        assert invalid.status_code == 400

        resurrect = client.patch(f"/api/gadgets/{watch['id']}", json={"status": "Active"}, headers=agent)
        assert resurrect.status_code == 400
        assert resurrect.json()["code"] == "invalid_state"

        missing = client.patch("/api/gadgets/nope", json={"name": "x"}, headers=agent)
        assert missing.status_code == 404
        assert missing.json()["code"] == "not_found"


def test_self_destruct_happy_path():
    clock = FakeClock()
    with _build_test_client(clock) as client:
        admin = _register(client, "m@example.com", "ADMIN")
        gadget = _create_gadget(client, admin)
        base = f"/api/gadgets/{gadget['id']}/self-destruct"

        initiated = client.post(base, headers=admin)
        assert initiated.status_code == 200
        body = initiated.json()
        assert body["confirmationCode"] == "A1B2C3D4"
        assert body["expiresIn"] == 300
        assert body["expiresAt"].startswith("2024-01-01T12:05:00")
        assert initiated.headers["Cache-Control"] == "no-store"
        assert client.get("/health").json()["pending_self_destructs"] == 1

        confirmed = client.post(f"{base}/confirm", json={"confirmationCode": "a1b2c3d4"}, headers=admin)
        assert confirmed.status_code == 200
        result = confirmed.json()
        assert result["message"] == "Self-destruct sequence completed successfully"
        assert result["gadget"]["status"] == "Destroyed"
        assert result["gadget"]["decommissioned_at"] is not None

        again = client.post(f"{base}/confirm", json={"confirmationCode": "A1B2C3D4"}, headers=admin)
        assert again.status_code == 400
        assert again.json()["code"] == "no_pending_sequence"

        rearm = client.post(base, headers=admin)
        assert rearm.status_code == 400
        assert rearm.json()["code"] == "invalid_state"


def test_self_destruct_error_mapping():
    clock = FakeClock()
    with _build_test_client(clock) as client:
        admin = _register(client, "m@example.com", "ADMIN")
        agent = _register(client, "bond@example.com", "AGENT")
        gadget = _create_gadget(client, admin)
        base = f"/api/gadgets/{gadget['id']}/self-destruct"

        assert client.post(base, headers=agent).status_code == 403
        assert client.post("/api/gadgets/nope/self-destruct", headers=admin).status_code == 404

        assert client.post(base, headers=admin).status_code == 200
        conflict = client.post(base, headers=admin)
        assert conflict.status_code == 409
        assert conflict.json()["details"]["remaining_attempts"] == 3
        assert "confirmationCode" not in conflict.json()

        empty = client.post(f"{base}/confirm", json={}, headers=admin)
        assert empty.status_code == 400
        assert empty.json()["code"] == "bad_request"

        wrong = client.post(f"{base}/confirm", json={"confirmationCode": "00000000"}, headers=admin)
        assert wrong.status_code == 400
        assert wrong.json() == {
            "code": "invalid_code",
            "message": "Invalid confirmation code",
            "details": {"remaining_attempts": 2},
        }

        clock.advance(301)
        expired = client.post(f"{base}/confirm", json={"confirmationCode": "A1B2C3D4"}, headers=admin)
        assert expired.status_code == 400
        assert expired.json()["code"] == "expired"

        assert client.post(base, headers=admin).status_code == 200
        for code in ("00000000", "11111111"):
            client.post(f"{base}/confirm", json={"confirmationCode": code}, headers=admin)
        aborted = client.post(f"{base}/confirm", json={"confirmationCode": "A1B2C3D4"}, headers=admin)
        assert aborted.status_code == 400
        assert aborted.json()["code"] == "too_many_attempts"

        listed = client.get("/api/gadgets", headers=admin).json()
        assert listed[0]["status"] == "Active"


def test_non_string_confirmation_code_is_bad_request():
    with _build_test_client(FakeClock()) as client:
        admin = _register(client, "m@example.com", "ADMIN")
        gadget = _create_gadget(client, admin)
        base = f"/api/gadgets/{gadget['id']}/self-destruct"
        assert client.post(base, headers=admin).status_code == 200

        numeric = client.post(f"{base}/confirm", json={"confirmationCode": 12345678}, headers=admin)
        assert numeric.status_code == 400
        assert numeric.json()["code"] == "bad_request"

        # No attempt was spent on the malformed body.
        wrong = client.post(f"{base}/confirm", json={"confirmationCode": "00000000"}, headers=admin)
        assert wrong.json()["details"] == {"remaining_attempts": 2}

        confirmed = client.post(f"{base}/confirm", json={"confirmationCode": "A1B2C3D4"}, headers=admin)
        assert confirmed.status_code == 200
