from datetime import date
from decimal import Decimal

import pytest

from exceptions import BusinessRuleError
from models import MonthlyDue, DueStatus, DueSource


def make_due(amount="1000.00", status=DueStatus.UNPAID, paid="0.00", due_date=date(2026, 1, 15)):
    return MonthlyDue(
        flat_id=1,
        due_date=due_date,
        due_amount=Decimal(amount),
        paid_amount=Decimal(paid),
        status=status,
        source=DueSource.CONTRACT,
        description="Monthly rent for January 2026",
    )


def test_mark_fully_paid():
    due = make_due()
    due.mark_fully_paid(Decimal("1000.00"), date(2026, 1, 12))

    assert due.status == DueStatus.PAID
    assert due.paid_amount == Decimal("1000.00")
    assert due.payment_date == date(2026, 1, 12)
    assert due.outstanding_amount == Decimal("0")


def test_mark_fully_paid_rejects_paid_due():
    due = make_due(status=DueStatus.PAID, paid="1000.00")
    with pytest.raises(BusinessRuleError):
        due.mark_fully_paid(Decimal("1000.00"), date(2026, 1, 12))


def test_mark_fully_paid_requires_exact_amount():
    with pytest.raises(BusinessRuleError):
        make_due().mark_fully_paid(Decimal("999.00"), date(2026, 1, 12))


def test_partial_payments_accumulate_to_paid():
    due = make_due()
    due.mark_partially_paid(Decimal("400.00"), date(2026, 1, 12))
    assert due.status == DueStatus.PARTIALLY_PAID
    assert due.paid_amount == Decimal("400.00")

    due.mark_partially_paid(Decimal("600.00"), date(2026, 1, 20))
    assert due.status == DueStatus.PAID
    assert due.paid_amount == Decimal("1000.00")


def test_partial_payment_cannot_exceed_due():
    due = make_due(status=DueStatus.PARTIALLY_PAID, paid="900.00")
    with pytest.raises(BusinessRuleError):
        due.mark_partially_paid(Decimal("200.00"), date(2026, 1, 12))
    assert due.paid_amount == Decimal("900.00")


def test_overdue_paid_partially():
    due = make_due(status=DueStatus.OVERDUE)
    due.mark_partially_paid(Decimal("100.00"), date(2026, 2, 1))
    assert due.status == DueStatus.PARTIALLY_PAID


def test_mark_overdue_only_from_unpaid_past_due():
    due = make_due()
    due.mark_overdue(date(2026, 1, 16))
    assert due.status == DueStatus.OVERDUE

    not_yet = make_due()
    with pytest.raises(BusinessRuleError):
        not_yet.mark_overdue(date(2026, 1, 15))

    partial = make_due(status=DueStatus.PARTIALLY_PAID, paid="10.00")
    with pytest.raises(BusinessRuleError):
        partial.mark_overdue(date(2026, 2, 1))


@pytest.mark.parametrize("status", [DueStatus.UNPAID, DueStatus.PARTIALLY_PAID, DueStatus.OVERDUE])
def test_cancel_open_due(status):
    due = make_due(status=status)
    due.cancel(" - Cancelled due to contract cancellation")
    assert due.status == DueStatus.CANCELLED
    assert due.description.endswith(" - Cancelled due to contract cancellation")


def test_cancel_paid_due_is_rejected():
    due = make_due(status=DueStatus.PAID, paid="1000.00")
    with pytest.raises(BusinessRuleError):
        due.cancel()
    assert due.status == DueStatus.PAID


def test_cancel_twice_is_rejected():
    due = make_due(status=DueStatus.CANCELLED)
    with pytest.raises(BusinessRuleError):
        due.cancel()


def test_reverse_resets_payment():
    due = make_due()
    due.mark_fully_paid(Decimal("1000.00"), date(2026, 1, 12))
    due.reverse()
    assert due.status == DueStatus.UNPAID
    assert due.paid_amount == Decimal("0")
    assert due.payment_date is None


def test_reverse_allocation_partial_and_full():
    due = make_due()
    due.mark_partially_paid(Decimal("300.00"), date(2026, 1, 12))
    due.mark_partially_paid(Decimal("700.00"), date(2026, 1, 13))

    due.reverse_allocation(Decimal("700.00"))
    assert due.status == DueStatus.PARTIALLY_PAID
    assert due.paid_amount == Decimal("300.00")

    due.reverse_allocation(Decimal("300.00"))
    assert due.status == DueStatus.UNPAID
    assert due.payment_date is None


def test_reverse_allocation_more_than_paid():
    due = make_due(status=DueStatus.PARTIALLY_PAID, paid="100.00")
    with pytest.raises(BusinessRuleError):
        due.reverse_allocation(Decimal("200.00"))


def test_reverse_allocation_keeps_cancelled_due_cancelled():
    due = make_due()
    due.mark_partially_paid(Decimal("400.00"), date(2026, 1, 12))
    due.cancel(" - Cancelled due to contract cancellation")

    due.reverse_allocation(Decimal("400.00"))

    assert due.status == DueStatus.CANCELLED
    assert due.paid_amount == Decimal("0")
    assert due.payment_date is None
