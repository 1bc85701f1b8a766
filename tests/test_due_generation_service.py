from datetime import date
from decimal import Decimal

import pytest

from exceptions import BusinessRuleError
from models import DueStatus, DueSource
from services.due_generation_service import CANCELLATION_NOTE, DueGenerationService, contract_due_description


def test_generate_for_contract(make_contract, due_generation_service):
    contract = make_contract(start_date=date(2026, 1, 20), end_date=date(2026, 4, 30), day_of_month=31)

    dues = due_generation_service.generate_for_contract(contract)

    assert [d.due_date for d in dues] == [
        date(2026, 1, 31),
        date(2026, 2, 28),
        date(2026, 3, 31),
        date(2026, 4, 30),
    ]
    assert all(d.source == DueSource.CONTRACT for d in dues)
    assert all(d.paid_amount == Decimal("0") for d in dues)
    assert dues[1].description == f"Contract #{contract.id} - Monthly rent for February 2026"
    assert contract.dues_generated is True


def test_generate_twice_is_rejected(make_contract, due_generation_service, db_session):
    contract = make_contract()
    due_generation_service.generate_for_contract(contract)

    with pytest.raises(BusinessRuleError):
        due_generation_service.generate_for_contract(contract)

    # Flag lost but rows present still blocks a second schedule
    contract.dues_generated = False
    with pytest.raises(BusinessRuleError):
        due_generation_service.generate_for_contract(contract)
    assert len(due_generation_service.get_dues_for_contract(contract.id)) == 12


def test_generate_extension_keeps_flag(make_contract, due_generation_service):
    contract = make_contract(start_date=date(2026, 1, 15), end_date=date(2026, 6, 30), day_of_month=5)

    dues = due_generation_service.generate_extension(contract, date(2026, 4, 6))

    assert [d.due_date for d in dues] == [date(2026, 5, 5), date(2026, 6, 5)]
    assert dues[0].description.endswith(" (Extension)")
    assert contract.dues_generated is False


def test_cancel_unpaid_dues_leaves_paid_ones(make_contract, due_generation_service, db_session):
    contract = make_contract(start_date=date(2026, 1, 15), end_date=date(2026, 3, 15))
    dues = due_generation_service.generate_for_contract(contract)
    dues[0].mark_fully_paid(Decimal("1000.00"), date(2026, 1, 15))
    dues[1].mark_partially_paid(Decimal("250.00"), date(2026, 2, 15))
    db_session.flush()

    cancelled = due_generation_service.cancel_unpaid_dues(contract)

    assert cancelled == 2
    assert dues[0].status == DueStatus.PAID
    assert dues[1].status == DueStatus.CANCELLED
    assert dues[1].paid_amount == Decimal("250.00")
    assert dues[2].description.endswith(CANCELLATION_NOTE)


def test_preview_does_not_persist(due_generation_service, db_session):
    preview = DueGenerationService.preview_schedule(
        date(2026, 1, 15), date(2026, 3, 15), 15, Decimal("900.00")
    )

    assert [item["due_date"] for item in preview] == [
        date(2026, 1, 15),
        date(2026, 2, 15),
        date(2026, 3, 15),
    ]
    assert preview[0]["description"] == "Monthly rent for January 2026"
    assert all(item["due_amount"] == Decimal("900.00") for item in preview)
    assert due_generation_service.get_dues_for_contract(1) == []


def test_description_format():
    assert (
        contract_due_description(7, date(2026, 3, 1), " (Modified)")
        == "Contract #7 - Monthly rent for March 2026 (Modified)"
    )
