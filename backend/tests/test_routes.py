"""API tests against a throwaway SQLite database."""
import asyncio
from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from aquascore import routes
from aquascore.database import Base, get_db, make_engine
from aquascore.main import create_app
from aquascore.models import Livestock, MaintenanceTask, WaterBody, WaterTestAlert
from aquascore.orchestrator import HealthOrchestrator

from conftest import FakeProvider


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'aquascore-test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def water_body(db):
    wb = WaterBody(name="Test Tank", body_type="freshwater")
    db.add(wb)
    db.commit()
    db.refresh(wb)
    return wb


@pytest.fixture
def app(engine, session_factory):
    app = create_app(session_factory=session_factory, bind=engine, seed=False)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}


def test_list_water_bodies(client, water_body):
    resp = client.get("/api/v1/water-bodies")
    assert resp.status_code == 200
    assert resp.json() == [{"id": water_body.id, "name": "Test Tank", "body_type": "freshwater"}]


def test_health_for_unknown_water_body_is_404(client):
    assert client.get("/api/v1/water-bodies/999/health").status_code == 404


def test_health_of_empty_water_body(client, water_body):
    resp = client.get(f"/api/v1/water-bodies/{water_body.id}/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["score"] == 61
    assert body["label"] == "Fair"
    assert body["breakdown"] == {
        "waterTests": 30,
        "livestockHealth": 100,
        "maintenance": 80,
        "careConsistency": 50,
    }
    assert body["trend"] == {"direction": "stable", "change": 0}
    assert body["alerts"] == 0
    assert body["overdueTasks"] == 0
    assert body["lastWaterTest"] is None
    assert body["state"] == "ready"
    assert body["waterBodyId"] == water_body.id


def test_logging_a_test_invalidates_cached_health(client, water_body):
    url = f"/api/v1/water-bodies/{water_body.id}/health"
    assert client.get(url).json()["score"] == 61

    resp = client.post(
        f"/api/v1/water-bodies/{water_body.id}/tests",
        json={
            "parameters": [
                {"parameter_name": "pH", "value": 7.2, "status": "optimal"},
                {"parameter_name": "Ammonia", "value": 0.0, "unit": "ppm", "status": "optimal"},
                {"parameter_name": "Nitrite", "value": 0.0, "unit": "ppm", "status": "optimal"},
            ]
        },
    )
    assert resp.status_code == 201
    assert resp.json()["parameter_count"] == 3

    body = client.get(url).json()
    assert body["breakdown"]["waterTests"] == 100
    assert body["breakdown"]["careConsistency"] == 53
    assert body["score"] == 89
    assert body["label"] == "Good"
    assert body["lastWaterTest"] is not None


def test_log_test_rejects_unknown_parameter_status(client, water_body):
    resp = client.post(
        f"/api/v1/water-bodies/{water_body.id}/tests",
        json={"parameters": [{"parameter_name": "pH", "status": "great"}]},
    )
    assert resp.status_code == 422


def test_cached_until_invalidated(client, db, water_body):
    url = f"/api/v1/water-bodies/{water_body.id}/health"
    assert client.get(url).json()["breakdown"]["livestockHealth"] == 100

    db.add_all([
        Livestock(water_body_id=water_body.id, species="Neon Tetra", quantity=5, health_status="healthy"),
        Livestock(water_body_id=water_body.id, species="Guppy", quantity=5, health_status="sick"),
    ])
    db.commit()

    assert client.get(url).json()["breakdown"]["livestockHealth"] == 100
    assert client.get(url, params={"refresh": True}).json()["breakdown"]["livestockHealth"] == 63

    resp = client.post(f"/api/v1/water-bodies/{water_body.id}/health/invalidate")
    assert resp.json() == {"ok": True, "water_body_id": water_body.id}
    assert client.get(url).json()["breakdown"]["livestockHealth"] == 63


def test_overdue_tasks_from_database(client, db, water_body):
    today = date.today()
    db.add_all([
        MaintenanceTask(water_body_id=water_body.id, task_name="Water change", status="pending", due_date=today - timedelta(days=2)),
        MaintenanceTask(water_body_id=water_body.id, task_name="Filter rinse", status="pending", due_date=today - timedelta(days=3)),
        MaintenanceTask(water_body_id=water_body.id, task_name="Glass clean", status="pending", due_date=today + timedelta(days=4)),
        MaintenanceTask(
            water_body_id=water_body.id,
            task_name="Old task",
            status="completed",
            due_date=today - timedelta(days=60),
            created_at=datetime.utcnow() - timedelta(days=60),
        ),
    ])
    db.commit()

    body = client.get(f"/api/v1/water-bodies/{water_body.id}/health").json()
    assert body["overdueTasks"] == 2
    # 0 completed of 3 in window, 2 overdue -> max(0, 0 - 30)
    assert body["breakdown"]["maintenance"] == 0


def test_dismissing_an_alert_updates_health(client, db, water_body):
    alerts = [
        WaterTestAlert(water_body_id=water_body.id, parameter_name="Ammonia", message="Ammonia rising", severity="warning"),
        WaterTestAlert(water_body_id=water_body.id, parameter_name="pH", message="pH unstable", severity="info"),
    ]
    db.add_all(alerts)
    db.commit()
    alert_id = alerts[0].id

    url = f"/api/v1/water-bodies/{water_body.id}/health"
    assert client.get(url).json()["alerts"] == 2

    resp = client.post(f"/api/v1/alerts/{alert_id}/dismiss")
    assert resp.status_code == 200
    assert resp.json()["is_dismissed"] is True

    assert client.get(url).json()["alerts"] == 1
    listed = client.get(f"/api/v1/water-bodies/{water_body.id}/alerts").json()
    assert [a["parameter_name"] for a in listed] == ["pH"]


def test_dismiss_unknown_alert_is_404(client):
    assert client.post("/api/v1/alerts/12345/dismiss").status_code == 404


def test_unavailable_health_is_503(app, client, water_body):
    app.state.health = HealthOrchestrator(FakeProvider(*(RuntimeError("down") for _ in range(4))))

    resp = client.get(f"/api/v1/water-bodies/{water_body.id}/health")
    assert resp.status_code == 503
    detail = resp.json()["detail"]
    assert detail["state"] == "unavailable"
    assert detail["label"] == "Unavailable"
    assert detail["score"] == 0


def test_health_without_waiting_reports_loading_then_ready(client, water_body):
    url = f"/api/v1/water-bodies/{water_body.id}/health"

    resp = client.get(url, params={"wait": False})
    assert resp.status_code == 202
    body = resp.json()
    assert body["state"] == "loading"
    assert body["label"] == "Loading"

    resp = client.get(url)
    assert resp.status_code == 200
    assert resp.json()["state"] == "ready"

    resp = client.get(url, params={"wait": False})
    assert resp.status_code == 200
    assert resp.json()["score"] == 61


def test_health_route_checks_water_body_off_the_event_loop(client, water_body, monkeypatch):
    seen = []
    ensure = routes._ensure_water_body

    def recording_ensure(db, water_body_id):
        try:
            asyncio.get_running_loop()
            seen.append("event loop")
        except RuntimeError:
            seen.append("worker thread")
        return ensure(db, water_body_id)

    monkeypatch.setattr(routes, "_ensure_water_body", recording_ensure)

    resp = client.get(f"/api/v1/water-bodies/{water_body.id}/health")
    assert resp.status_code == 200
    assert seen == ["worker thread"]


def test_run_serves_the_app_with_uvicorn(monkeypatch):
    from aquascore import main

    calls = []
    monkeypatch.setattr(main.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

    main.run()

    assert calls == [("aquascore.main:app", {"host": main.HOST, "port": main.PORT})]
