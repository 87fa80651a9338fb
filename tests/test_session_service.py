"""Tests for session pricing orchestration."""

from decimal import Decimal

import pytest

from studio_pricing.domain.payloads import snapshot_to_json
from studio_pricing.domain.pricing import PricingMode
from studio_pricing.domain.snapshots import MANUAL_HISTORICAL
from studio_pricing.exceptions import SessionNotFoundError
from tests.conftest import make_session, make_table


@pytest.fixture
def global_container(container, configuration_repository):
    configuration_repository.mode = PricingMode.GLOBAL_TABLE
    configuration_repository.global_table = make_table([(1, 5, "10"), (6, None, "8")])
    container.configuration_service.load()
    return container


def test_quantity_edit_freezes_legacy_session_before_pricing(
    global_container, session_repository
) -> None:
    session_repository.add(make_session("s1"))
    service = global_container.session_pricing_service

    pricing = service.update_quantity("s1", 3)

    stored = session_repository.sessions["s1"]
    assert session_repository.writes == [("rules", "s1"), ("prices", "s1")]
    assert stored.frozen_rules["mode"] == "global-table"
    assert (stored.extra_photo_quantity, stored.total_price) == (3, Decimal("30"))
    assert pricing.frozen
    assert not pricing.needs_migration


def test_frozen_session_ignores_later_table_changes(
    global_container, session_repository
) -> None:
    session_repository.add(make_session("s1"))
    service = global_container.session_pricing_service
    service.freeze_session("s1")

    global_container.configuration_service.save_global_table(
        make_table([(1, None, "50")], table_id="t2")
    )
    pricing = service.update_quantity("s1", 10)

    assert pricing.unit_price == Decimal("8")
    assert pricing.total_price == Decimal("80")


def test_quantity_zero_resets_prices(global_container, session_repository) -> None:
    session_repository.add(make_session("s1"))
    service = global_container.session_pricing_service
    service.update_quantity("s1", 4)

    pricing = service.update_quantity("s1", 0)

    assert (pricing.unit_price, pricing.total_price) == (0, 0)
    assert session_repository.sessions["s1"].total_price == 0


def test_unchanged_quantity_writes_nothing(
    global_container, session_repository
) -> None:
    session_repository.add(make_session("s1"))
    service = global_container.session_pricing_service
    service.update_quantity("s1", 2)
    session_repository.writes.clear()

    service.update_quantity("s1", 2)

    assert session_repository.writes == []


def test_manual_historical_prices_never_change(
    global_container, session_repository
) -> None:
    session_repository.add(
        make_session("s1", quantity=2, unit_price="17", total_price="34")
    )
    service = global_container.session_pricing_service
    service.mark_manual_historical("s1")

    pricing = service.update_quantity("s1", 9)

    stored = session_repository.sessions["s1"]
    assert stored.frozen_rules["source"] == MANUAL_HISTORICAL
    assert (stored.unit_price, stored.total_price) == (Decimal("17"), Decimal("34"))
    assert stored.extra_photo_quantity == 9
    assert pricing.manual_historical
    assert service.recalculate_session("s1") is None
    assert service.refreeze("s1") is None


def test_manual_price_edit_is_audited(
    global_container, session_repository, audit_repository
) -> None:
    session_repository.add(
        make_session("s1", quantity=3, unit_price="10", total_price="30")
    )
    service = global_container.session_pricing_service

    update = service.set_manual_prices("s1", Decimal("9"), Decimal("27"))

    assert not update.silent
    assert session_repository.sessions["s1"].total_price == Decimal("27")
    assert audit_repository.events == [
        {
            "entity_type": "session",
            "entity_id": "s1",
            "event_type": "extra_photo_price_edited",
            "before": {"unitPrice": 10.0, "totalPrice": 30.0},
            "after": {"unitPrice": 9.0, "totalPrice": 27.0},
        }
    ]


def test_freeze_session_is_noop_when_already_frozen(
    global_container, session_repository
) -> None:
    session_repository.add(make_session("s1"))
    service = global_container.session_pricing_service
    first = service.freeze_session("s1")
    session_repository.writes.clear()

    second = service.freeze_session("s1")

    assert second == first
    assert session_repository.writes == []


def test_mode_change_reprices_only_legacy_sessions(
    global_container, session_repository
) -> None:
    session_repository.add(make_session("legacy", quantity=3))
    session_repository.add(make_session("frozen", quantity=3))
    service = global_container.session_pricing_service
    service.freeze_session("frozen")
    service.recalculate_session("frozen")

    global_container.configuration_service.set_mode(PricingMode.FIXED)

    assert session_repository.sessions["legacy"].total_price == Decimal("105")
    assert session_repository.sessions["frozen"].total_price == Decimal("30")
    assert session_repository.sessions["legacy"].frozen_rules is None


def test_migrate_all_and_integrity(global_container, session_repository) -> None:
    session_repository.add(make_session("a"))
    session_repository.add(
        make_session("b", frozen_rules={"modelo": "fixo", "valorFixo": 20})
    )
    service = global_container.session_pricing_service

    issues_before = service.check_integrity()
    report = service.migrate_all()
    issues_after = service.check_integrity()

    assert {issue.session_id for issue in issues_before} == {"a", "b"}
    assert (report.migrated, report.skipped, report.failed) == (1, 1, 0)
    assert [issue.session_id for issue in issues_after] == ["b"]


def test_refreeze_replaces_rules_and_reprices(
    global_container, session_repository, audit_repository
) -> None:
    session_repository.add(make_session("s1", quantity=2))
    service = global_container.session_pricing_service
    service.update_quantity("s1", 2)
    global_container.configuration_service.save_global_table(
        make_table([(1, None, "50")], table_id="t2")
    )

    pricing = service.refreeze("s1")

    stored = session_repository.sessions["s1"]
    assert stored.frozen_rules["globalTable"]["id"] == "t2"
    assert pricing.total_price == Decimal("100")
    assert stored.total_price == Decimal("100")
    assert audit_repository.events[-1]["event_type"] == "pricing_rules_refrozen"


def test_stored_legacy_rules_are_read_as_frozen(
    global_container, session_repository
) -> None:
    session_repository.add(
        make_session(
            "s1",
            quantity=4,
            frozen_rules={"regras_congeladas": {"modelo": "fixo", "valorFixo": 15}},
        )
    )

    pricing = global_container.session_pricing_service.get_pricing("s1")

    assert pricing.mode is PricingMode.FIXED
    assert pricing.total_price == Decimal("60")
    assert pricing.frozen


def test_canonical_rules_round_trip_through_store(
    global_container, session_repository
) -> None:
    service = global_container.session_pricing_service
    session_repository.add(make_session("s1"))
    snapshot = service.freeze_session("s1")

    assert session_repository.sessions["s1"].frozen_rules == snapshot_to_json(snapshot)


def test_unknown_session_raises(global_container) -> None:
    with pytest.raises(SessionNotFoundError):
        global_container.session_pricing_service.get_pricing("missing")
