"""Tests for health and session pricing endpoints."""

from fastapi.testclient import TestClient

from studio_pricing.api.app import create_app
from studio_pricing.domain.pricing import PricingMode
from tests.conftest import make_session, make_table


def _client(container, configuration_repository) -> TestClient:
    configuration_repository.mode = PricingMode.GLOBAL_TABLE
    configuration_repository.global_table = make_table([(1, 5, "10"), (6, None, "8")])
    container.configuration_service.load()
    return TestClient(create_app(container))


def test_health_endpoint(container) -> None:
    client = TestClient(create_app(container))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_lifespan_loads_configuration(container, configuration_repository) -> None:
    configuration_repository.mode = PricingMode.PER_CATEGORY_TABLE

    with TestClient(create_app(container)) as client:
        response = client.get(
            "/admin/pricing/configuration", headers={"X-Admin-Token": "admin-token"}
        )

    assert response.json()["mode"] == "per-category-table"


def test_quantity_endpoint_recomputes_silently(
    container, configuration_repository, session_repository
) -> None:
    session_repository.add(make_session("s1"))
    client = _client(container, configuration_repository)

    response = client.post("/sessions/s1/quantity", json={"quantity": 10})

    assert response.status_code == 200
    data = response.json()
    assert data["unitPrice"] == 8.0
    assert data["totalPrice"] == 80.0
    assert data["frozen"] is True
    assert data["needsMigration"] is False


def test_negative_quantity_is_treated_as_zero(
    container, configuration_repository, session_repository
) -> None:
    session_repository.add(
        make_session("s1", quantity=2, unit_price="10", total_price="20")
    )
    client = _client(container, configuration_repository)

    response = client.post("/sessions/s1/quantity", json={"quantity": -4})

    assert response.json()["quantity"] == 0
    assert response.json()["totalPrice"] == 0.0


def test_pricing_endpoint_reports_legacy_state(
    container, configuration_repository, session_repository
) -> None:
    session_repository.add(make_session("s1", quantity=3))
    client = _client(container, configuration_repository)

    response = client.get("/sessions/s1/pricing")

    data = response.json()
    assert data["totalPrice"] == 30.0
    assert data["mode"] == "global-table"
    assert data["frozen"] is False
    assert data["needsMigration"] is True


def test_price_edit_endpoint_is_loud(
    container, configuration_repository, session_repository, audit_repository
) -> None:
    session_repository.add(make_session("s1", quantity=3))
    client = _client(container, configuration_repository)

    response = client.put(
        "/sessions/s1/prices", json={"unitPrice": 9, "totalPrice": 27}
    )

    assert response.status_code == 200
    assert response.json()["silent"] is False
    assert len(audit_repository.events) == 1


def test_price_edit_rejects_negative_values(
    container, configuration_repository, session_repository
) -> None:
    session_repository.add(make_session("s1"))
    client = _client(container, configuration_repository)

    response = client.put(
        "/sessions/s1/prices", json={"unitPrice": -1, "totalPrice": 0}
    )

    assert response.status_code == 422


def test_freeze_endpoint(
    container, configuration_repository, session_repository
) -> None:
    session_repository.add(make_session("s1"))
    client = _client(container, configuration_repository)

    first = client.post("/sessions/s1/freeze")
    second = client.post("/sessions/s1/freeze")

    assert first.json()["frozen"] is True
    assert first.json()["snapshot"]["globalTable"]["ranges"][1]["max"] is None
    assert second.json()["snapshot"] == first.json()["snapshot"]


def test_unknown_session_is_404(container, configuration_repository) -> None:
    client = _client(container, configuration_repository)

    response = client.get("/sessions/missing/pricing")

    assert response.status_code == 404


def test_persistence_failure_is_502(
    container, configuration_repository, session_repository
) -> None:
    session_repository.add(make_session("s1"))
    session_repository.failing_ids.add("s1")
    client = _client(container, configuration_repository)

    response = client.post("/sessions/s1/quantity", json={"quantity": 3})

    assert response.status_code == 502


def test_quantity_endpoint_waits_for_edits_to_settle(
    container, configuration_repository, session_repository, monkeypatch
) -> None:
    session_repository.add(make_session("s1"))
    client = _client(container, configuration_repository)
    debouncer = container.quantity_debouncer
    pushed: list[tuple[str, object]] = []
    push = debouncer.push

    def recording_push(session_id: str, quantity: object) -> object:
        pushed.append((session_id, quantity))
        return push(session_id, quantity)

    monkeypatch.setattr(debouncer, "push", recording_push)

    response = client.post("/sessions/s1/quantity", json={"quantity": 4})

    assert pushed == [("s1", 4)]
    assert response.json()["totalPrice"] == 40.0
    assert session_repository.sessions["s1"].extra_photo_quantity == 4


def test_recalculate_endpoint(
    container, configuration_repository, session_repository
) -> None:
    session_repository.add(make_session("s1", quantity=3))
    client = _client(container, configuration_repository)

    first = client.post("/sessions/s1/recalculate")
    second = client.post("/sessions/s1/recalculate")

    assert first.json()["update"] == {
        "sessionId": "s1",
        "unitPrice": 10.0,
        "totalPrice": 30.0,
        "silent": True,
    }
    assert second.json()["update"] is None
    assert session_repository.sessions["s1"].total_price == 30
