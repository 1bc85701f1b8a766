from datetime import date, timedelta
from decimal import Decimal

import pytest

from exceptions import BusinessRuleError, ContractOverlapError, NotFoundError, ValidationError
from models import Contract, ContractStatus, DueStatus, Flat, MonthlyDue
from services.events import (
    ContractCancelled,
    ContractCreated,
    ContractModified,
    ContractRenewed,
    ContractStatusChanged,
    MonthlyDuesGenerated,
)
from tests.conftest import TODAY


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

def test_create_future_contract_is_pending(make_contract, publisher):
    contract = make_contract()

    assert contract.id is not None
    assert contract.status == ContractStatus.PENDING
    assert contract.dues_generated is False
    assert contract.created_by == "manager"
    created = publisher.of_type(ContractCreated)
    assert len(created) == 1
    assert created[0].contract_id == contract.id


def test_create_contract_starting_today_is_active(make_contract):
    contract = make_contract(start_date=TODAY, day_of_month=10)
    assert contract.status == ContractStatus.ACTIVE


def test_create_with_immediate_dues(make_contract, db_session, publisher, building):
    contract = make_contract(generate_dues_immediately=True)

    dues = (
        db_session.query(MonthlyDue)
        .filter(MonthlyDue.contract_id == contract.id)
        .order_by(MonthlyDue.due_date)
        .all()
    )
    assert len(dues) == 12
    assert contract.dues_generated is True
    assert all(d.status == DueStatus.UNPAID for d in dues)
    assert dues[0].description == f"Contract #{contract.id} - Monthly rent for January 2026"
    generated = publisher.of_type(MonthlyDuesGenerated)
    assert generated[0].count == 12
    assert generated[0].building_id == building.id


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"start_date": TODAY - timedelta(days=1)}, "start_date"),
        ({"end_date": date(2026, 1, 15)}, "end_date"),
        ({"end_date": date(2026, 1, 1)}, "end_date"),
        ({"monthly_rent": Decimal("0")}, "monthly_rent"),
        ({"day_of_month": 32}, "day_of_month"),
        ({"tenant_name": "  "}, "tenant_name"),
    ],
)
def test_create_validation(make_contract, db_session, overrides, field):
    with pytest.raises(ValidationError) as exc:
        make_contract(**overrides)
    assert exc.value.field == field
    assert db_session.query(Contract).count() == 0


def test_create_for_missing_flat(contract_service, actor):
    with pytest.raises(NotFoundError):
        contract_service.create_contract(
            flat_id=999,
            tenant_name="Nobody",
            start_date=date(2026, 2, 1),
            end_date=date(2026, 6, 30),
            monthly_rent=Decimal("500.00"),
            day_of_month=1,
            actor=actor,
        )


def test_create_for_inactive_flat(make_contract, db_session, flat):
    flat.is_active = False
    db_session.flush()
    with pytest.raises(BusinessRuleError):
        make_contract()


# ---------------------------------------------------------------------------
# Overlap
# ---------------------------------------------------------------------------

def test_overlap_rejected_later_contract(make_contract):
    make_contract(start_date=date(2026, 1, 15), end_date=date(2026, 6, 30))
    with pytest.raises(ContractOverlapError):
        make_contract(start_date=date(2026, 3, 1), end_date=date(2026, 12, 31))


def test_overlap_rejected_earlier_contract(make_contract):
    make_contract(start_date=date(2026, 3, 1), end_date=date(2026, 12, 31))
    with pytest.raises(ContractOverlapError):
        make_contract(start_date=date(2026, 1, 15), end_date=date(2026, 6, 30))


def test_overlap_on_shared_boundary_day(make_contract):
    make_contract(start_date=date(2026, 1, 15), end_date=date(2026, 6, 30))
    with pytest.raises(ContractOverlapError):
        make_contract(start_date=date(2026, 6, 30), end_date=date(2026, 12, 31))


def test_adjacent_contracts_allowed(make_contract, contract_service, flat):
    make_contract(start_date=date(2026, 1, 15), end_date=date(2026, 6, 30))
    second = make_contract(start_date=date(2026, 7, 1), end_date=date(2026, 12, 31))
    assert second.status == ContractStatus.PENDING
    assert not contract_service.is_date_range_available(flat.id, date(2026, 6, 1), date(2026, 7, 15))


def test_cancelled_contract_frees_the_period(make_contract, contract_service, actor):
    first = make_contract(start_date=TODAY, end_date=date(2026, 6, 30), day_of_month=10)
    contract_service.cancel_contract(first.id, "Tenant left", actor)
    second = make_contract(start_date=date(2026, 3, 1), end_date=date(2026, 12, 31))
    assert second.id != first.id


def test_overlap_is_per_flat(make_contract, other_flat):
    make_contract()
    contract = make_contract(flat_id=other_flat.id)
    assert contract.flat_id == other_flat.id


# ---------------------------------------------------------------------------
# Renewal
# ---------------------------------------------------------------------------

def test_renew_active_contract(make_contract, contract_service, actor, db_session, publisher):
    current = make_contract(start_date=TODAY, end_date=date(2026, 3, 31), day_of_month=10)

    renewed = contract_service.renew_contract(
        current.id,
        actor,
        new_end_date=date(2026, 12, 31),
        new_monthly_rent=Decimal("1100.00"),
        generate_dues_immediately=True,
    )

    assert renewed.start_date == date(2026, 4, 1)
    assert renewed.end_date == date(2026, 12, 31)
    assert renewed.status == ContractStatus.PENDING
    assert renewed.previous_contract_id == current.id
    assert renewed.monthly_rent == Decimal("1100.00")
    assert renewed.day_of_month == 10
    assert renewed.tenant_name == current.tenant_name

    assert current.status == ContractStatus.RENEWED
    assert current.status_change_reason == f"Renewed with contract ID: {renewed.id}"
    assert current.status_changed_by == "manager"

    dues = (
        db_session.query(MonthlyDue)
        .filter(MonthlyDue.contract_id == renewed.id)
        .order_by(MonthlyDue.due_date)
        .all()
    )
    assert [d.due_date for d in dues][:2] == [date(2026, 4, 10), date(2026, 5, 10)]
    assert len(dues) == 9
    assert all(d.description.endswith(" (Extension)") for d in dues)
    assert all(d.due_amount == Decimal("1100.00") for d in dues)
    assert renewed.dues_generated is False

    event = publisher.of_type(ContractRenewed)[0]
    assert event.old_contract_id == current.id
    assert event.new_contract_id == renewed.id


def test_renew_defaults_to_one_year(make_contract, contract_service, actor):
    current = make_contract(start_date=TODAY, end_date=date(2026, 3, 31), day_of_month=10)
    renewed = contract_service.renew_contract(current.id, actor)
    assert renewed.end_date == date(2027, 3, 31)
    assert renewed.monthly_rent == current.monthly_rent


def test_renew_requires_active(make_contract, contract_service, actor):
    pending = make_contract()
    with pytest.raises(BusinessRuleError):
        contract_service.renew_contract(pending.id, actor, new_end_date=date(2027, 12, 31))


def test_renew_end_must_be_after_current_end(make_contract, contract_service, actor):
    current = make_contract(start_date=TODAY, end_date=date(2026, 3, 31), day_of_month=10)
    with pytest.raises(ValidationError):
        contract_service.renew_contract(current.id, actor, new_end_date=date(2026, 3, 31))
    assert current.status == ContractStatus.ACTIVE


def test_renew_for_a_single_day(make_contract, contract_service, actor):
    current = make_contract(start_date=TODAY, end_date=date(2026, 6, 30), day_of_month=10)

    renewed = contract_service.renew_contract(current.id, actor, new_end_date=date(2026, 7, 1))

    assert renewed.start_date == date(2026, 7, 1)
    assert renewed.end_date == date(2026, 7, 1)
    assert current.status == ContractStatus.RENEWED


def test_renew_blocked_by_following_contract(make_contract, contract_service, actor):
    current = make_contract(start_date=TODAY, end_date=date(2026, 3, 31), day_of_month=10)
    make_contract(start_date=date(2026, 6, 1), end_date=date(2026, 12, 31))
    with pytest.raises(ContractOverlapError):
        contract_service.renew_contract(current.id, actor, new_end_date=date(2026, 8, 31))
    assert current.status == ContractStatus.ACTIVE


def test_contract_chain(make_contract, contract_service, actor):
    first = make_contract(start_date=TODAY, end_date=date(2026, 3, 31), day_of_month=10)
    second = contract_service.renew_contract(first.id, actor, new_end_date=date(2026, 9, 30))
    third = contract_service.modify_contract(
        second.id, date(2026, 4, 1), actor, new_monthly_rent=Decimal("1200.00"), regenerate_dues=False
    )

    chain = contract_service.get_contract_chain(third.id)
    assert [c.id for c in chain] == [first.id, second.id, third.id]


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

def test_cancel_contract_keeps_paid_dues(
    make_contract, contract_service, payment_service, actor, db_session, publisher
):
    contract = make_contract(generate_dues_immediately=True)
    payment_service.create_payment(contract.flat_id, Decimal("1000.00"), actor)

    cancelled = contract_service.cancel_contract(
        contract.id, "Tenant moved out", actor, refund_deposit=True
    )

    assert cancelled.status == ContractStatus.CANCELLED
    assert cancelled.cancellation_reason == "Tenant moved out"
    assert cancelled.cancellation_date == TODAY
    assert cancelled.cancelled_by == "manager"
    assert cancelled.deposit_refunded is True

    dues = (
        db_session.query(MonthlyDue)
        .filter(MonthlyDue.contract_id == contract.id)
        .order_by(MonthlyDue.due_date)
        .all()
    )
    assert dues[0].status == DueStatus.PAID
    assert all(d.status == DueStatus.CANCELLED for d in dues[1:])
    assert dues[1].description.endswith(" - Cancelled due to contract cancellation")

    event = publisher.of_type(ContractCancelled)[0]
    assert event.cancelled_dues_count == 11
    assert event.refund_deposit is True


def test_cancel_without_touching_dues(make_contract, contract_service, actor, db_session):
    contract = make_contract(generate_dues_immediately=True)
    contract_service.cancel_contract(contract.id, "Dispute", actor, cancel_unpaid_dues=False)
    statuses = {d.status for d in db_session.query(MonthlyDue).all()}
    assert statuses == {DueStatus.UNPAID}


def test_cancel_twice(make_contract, contract_service, actor):
    contract = make_contract()
    contract_service.cancel_contract(contract.id, "First", actor)
    with pytest.raises(BusinessRuleError) as exc:
        contract_service.cancel_contract(contract.id, "Second", actor)
    assert exc.value.message == "Contract is already cancelled"


def test_cancel_renewed_contract_is_rejected(make_contract, contract_service, actor):
    current = make_contract(start_date=TODAY, end_date=date(2026, 3, 31), day_of_month=10)
    contract_service.renew_contract(current.id, actor)
    with pytest.raises(BusinessRuleError):
        contract_service.cancel_contract(current.id, "Too late", actor)


def test_cancel_effective_date_cannot_be_future(make_contract, contract_service, actor):
    contract = make_contract()
    with pytest.raises(ValidationError):
        contract_service.cancel_contract(
            contract.id, "Later", actor, effective_date=TODAY + timedelta(days=1)
        )
    assert contract.status == ContractStatus.PENDING


# ---------------------------------------------------------------------------
# Modification
# ---------------------------------------------------------------------------

def test_modify_contract_supersedes(make_contract, contract_service, actor, db_session, publisher):
    current = make_contract(start_date=TODAY, end_date=date(2026, 6, 30), day_of_month=10)

    modified = contract_service.modify_contract(
        current.id,
        effective_date=TODAY,
        actor=actor,
        new_monthly_rent=Decimal("1250.00"),
        new_day_of_month=20,
    )

    assert modified.start_date == current.start_date
    assert modified.status == ContractStatus.ACTIVE
    assert modified.previous_contract_id == current.id
    assert modified.monthly_rent == Decimal("1250.00")
    assert current.status == ContractStatus.SUPERSEDED
    assert current.status_change_reason == f"Superseded by modified contract ID: {modified.id}"

    # No dues existed, so the new terms get a full schedule
    dues = db_session.query(MonthlyDue).filter(MonthlyDue.contract_id == modified.id).all()
    assert modified.dues_generated is True
    assert sorted(d.due_date for d in dues)[0] == date(2026, 1, 20)
    assert len(dues) == 6

    event = publisher.of_type(ContractModified)[0]
    assert "Monthly rent: 1000.00 -> 1250.00" in event.modification_details


def test_modify_without_regeneration(make_contract, contract_service, actor, db_session):
    current = make_contract()
    modified = contract_service.modify_contract(
        current.id, date(2026, 2, 1), actor, new_end_date=date(2026, 10, 15), regenerate_dues=False
    )
    assert modified.end_date == date(2026, 10, 15)
    assert modified.dues_generated is False
    assert db_session.query(MonthlyDue).count() == 0


def test_modify_rejected_once_dues_generated(make_contract, contract_service, actor):
    contract = make_contract(generate_dues_immediately=True)
    with pytest.raises(BusinessRuleError):
        contract_service.modify_contract(
            contract.id, date(2026, 2, 1), actor, new_monthly_rent=Decimal("900.00")
        )
    assert contract.status == ContractStatus.PENDING


def test_modify_rejects_terminated_contract(make_contract, contract_service, actor):
    contract = make_contract()
    contract_service.cancel_contract(contract.id, "Gone", actor)
    with pytest.raises(BusinessRuleError):
        contract_service.modify_contract(
            contract.id, date(2026, 2, 1), actor, new_monthly_rent=Decimal("900.00")
        )


def test_modify_effective_date_outside_contract(make_contract, contract_service, actor):
    contract = make_contract()
    with pytest.raises(ValidationError) as exc:
        contract_service.modify_contract(
            contract.id, date(2027, 1, 1), actor, new_monthly_rent=Decimal("900.00")
        )
    assert exc.value.field == "effective_date"


def test_modify_requires_a_change(make_contract, contract_service, actor):
    contract = make_contract()
    with pytest.raises(ValidationError):
        contract_service.modify_contract(contract.id, date(2026, 2, 1), actor)


def test_modify_renewed_contract_regenerates_future_dues(make_contract, contract_service, actor, db_session):
    first = make_contract(start_date=TODAY, end_date=date(2026, 3, 31), day_of_month=10)
    renewed = contract_service.renew_contract(
        first.id, actor, new_end_date=date(2026, 12, 31), generate_dues_immediately=True
    )

    modified = contract_service.modify_contract(
        renewed.id, date(2026, 7, 1), actor, new_monthly_rent=Decimal("1500.00")
    )

    kept = (
        db_session.query(MonthlyDue)
        .filter(MonthlyDue.contract_id == renewed.id)
        .order_by(MonthlyDue.due_date)
        .all()
    )
    assert [d.due_date for d in kept] == [date(2026, 4, 10), date(2026, 5, 10), date(2026, 6, 10)]

    regenerated = (
        db_session.query(MonthlyDue)
        .filter(MonthlyDue.contract_id == modified.id)
        .order_by(MonthlyDue.due_date)
        .all()
    )
    assert regenerated[0].due_date == date(2026, 7, 10)
    assert regenerated[-1].due_date == date(2026, 12, 10)
    assert len(regenerated) == 6
    assert all(d.due_amount == Decimal("1500.00") for d in regenerated)
    assert all(d.description.endswith(" (Modified)") for d in regenerated)
    assert modified.dues_generated is True


# ---------------------------------------------------------------------------
# Status sweep
# ---------------------------------------------------------------------------

def test_status_sweep_activates_and_expires(make_contract, contract_service, clock, publisher):
    contract = make_contract(start_date=date(2026, 2, 1), end_date=date(2026, 3, 31), day_of_month=1)

    clock.set(date(2026, 2, 1))
    assert contract_service.update_contract_statuses() == {"activated": 1, "expired": 0}
    assert contract.status == ContractStatus.ACTIVE
    assert contract.status_changed_by == "SYSTEM"
    assert contract.status_change_reason == "Contract activated on start date"

    clock.set(date(2026, 3, 31))
    assert contract_service.update_contract_statuses() == {"activated": 0, "expired": 0}

    clock.set(date(2026, 4, 1))
    assert contract_service.update_contract_statuses() == {"activated": 0, "expired": 1}
    assert contract.status == ContractStatus.EXPIRED
    assert contract.status_change_reason == "Contract expired"

    assert contract_service.update_contract_statuses() == {"activated": 0, "expired": 0}
    changes = publisher.of_type(ContractStatusChanged)
    assert [(c.old_status, c.new_status) for c in changes] == [
        ("PENDING", "ACTIVE"),
        ("ACTIVE", "EXPIRED"),
    ]


def test_status_sweep_catches_up_in_one_run(make_contract, contract_service, clock):
    contract = make_contract(start_date=date(2026, 2, 1), end_date=date(2026, 3, 31), day_of_month=1)
    clock.set(date(2026, 5, 1))
    assert contract_service.update_contract_statuses() == {"activated": 1, "expired": 1}
    assert contract.status == ContractStatus.EXPIRED


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def test_expiring_and_renewable(make_contract, contract_service, other_flat, clock, actor):
    soon = make_contract(start_date=TODAY, end_date=date(2026, 2, 5), day_of_month=10,
                         generate_dues_immediately=True)
    later = make_contract(flat_id=other_flat.id, start_date=TODAY, end_date=date(2026, 12, 31),
                          day_of_month=10)

    assert [c.id for c in contract_service.list_expiring_contracts(30)] == [soon.id]
    assert [c.id for c in contract_service.list_renewable_contracts(30)] == [soon.id]

    # The Jan 10 due is now past and unpaid
    clock.set(date(2026, 1, 20))
    assert contract_service.list_renewable_contracts(30) == []
    assert [c.id for c in contract_service.list_contracts_with_overdue_dues()] == [soon.id]
    assert later.id not in [c.id for c in contract_service.list_expiring_contracts(30)]


def test_active_contract_for_flat(make_contract, contract_service, flat):
    assert contract_service.has_active_contract(flat.id) is False
    contract = make_contract(start_date=TODAY, day_of_month=10)
    assert contract_service.get_active_contract_for_flat(flat.id).id == contract.id


def test_search_by_tenant_name(make_contract, contract_service, other_flat):
    make_contract(tenant_name="Alice Johnson")
    make_contract(flat_id=other_flat.id, tenant_name="Bob Smith")

    contracts, total = contract_service.search_by_tenant_name("JOHN")
    assert total == 1
    assert contracts[0].tenant_name == "Alice Johnson"


def test_list_by_building_paginates(make_contract, contract_service, building, db_session):
    flats = []
    for number in ("C-1", "C-2", "C-3"):
        flat = Flat(building_id=building.id, flat_number=number, is_active=True)
        db_session.add(flat)
        flats.append(flat)
    db_session.flush()
    for flat in flats:
        make_contract(flat_id=flat.id)

    page_one, total = contract_service.list_contracts_by_building(building.id, page=1, page_size=2)
    page_two, _ = contract_service.list_contracts_by_building(building.id, page=2, page_size=2)
    assert total == 3
    assert len(page_one) == 2
    assert len(page_two) == 1


def test_list_by_flat_latest_first(make_contract, contract_service, flat):
    first = make_contract(start_date=date(2026, 1, 15), end_date=date(2026, 6, 30))
    second = make_contract(start_date=date(2026, 7, 1), end_date=date(2026, 12, 31))
    assert [c.id for c in contract_service.list_contracts_by_flat(flat.id)] == [second.id, first.id]


def test_contract_statistics(make_contract, contract_service, building, other_flat, actor):
    active = make_contract(start_date=TODAY, day_of_month=10)
    pending = make_contract(flat_id=other_flat.id, monthly_rent=Decimal("800.00"))
    contract_service.cancel_contract(pending.id, "Withdrawn", actor)

    stats = contract_service.get_contract_statistics(building.id)
    assert stats["total_contracts"] == 2
    assert stats["active_contracts"] == 1
    assert stats["cancelled_contracts"] == 1
    assert stats["total_monthly_rent"] == active.monthly_rent


def test_generate_dues_later(make_contract, contract_service):
    contract = make_contract()
    dues = contract_service.generate_dues(contract.id)
    assert len(dues) == 12
    with pytest.raises(BusinessRuleError):
        contract_service.generate_dues(contract.id)


def test_get_missing_contract(contract_service):
    with pytest.raises(NotFoundError):
        contract_service.get_contract(12345)
