from datetime import date, datetime
from decimal import Decimal

from models import Contract
from services.events import (
    CompositeEventPublisher,
    ContractCancelled,
    ContractCreated,
    ContractStatusChanged,
    InMemoryEventPublisher,
    PaymentRecorded,
)
from services.notification_service import ContractNotificationListener


def _created(contract_id=1):
    return ContractCreated(
        contract_id=contract_id,
        flat_id=3,
        start_date=date(2026, 2, 1),
        end_date=date(2027, 1, 31),
        monthly_rent=Decimal("1000.00"),
        generate_dues_immediately=True,
    )


def test_composite_keeps_going_after_subscriber_failure():
    received = InMemoryEventPublisher()

    def broken(event):
        raise RuntimeError("mail server down")

    publisher = CompositeEventPublisher(broken, received.publish)
    publisher.publish(_created())

    assert len(received.events) == 1
    assert received.events[0].name == "ContractCreated"


def test_subscribe_adds_subscriber():
    received = InMemoryEventPublisher()
    publisher = CompositeEventPublisher()
    publisher.subscribe(received.publish)

    publisher.publish(ContractStatusChanged(contract_id=1, old_status="PENDING", new_status="ACTIVE"))

    assert received.of_type(ContractStatusChanged)[0].new_status == "ACTIVE"


def test_notification_messages():
    listener = ContractNotificationListener()

    listener(_created(contract_id=5))
    listener(
        ContractCancelled(
            contract_id=5,
            flat_id=3,
            cancellation_reason="Tenant moved out",
            cancellation_date=date(2026, 3, 1),
            cancel_unpaid_dues=True,
            refund_deposit=False,
        )
    )
    listener(
        PaymentRecorded(
            payment_id=1,
            flat_id=3,
            building_id=1,
            amount=Decimal("100.00"),
            payment_date=datetime(2026, 3, 1, 9, 0),
        )
    )
    listener(ContractStatusChanged(contract_id=5, old_status="PENDING", new_status="ACTIVE"))

    assert listener.sent == [
        "Contract #5 created for flat 3 from 2026-02-01 to 2027-01-31",
        "Contract #5 cancelled: Tenant moved out",
    ]


def test_notify_expiring():
    listener = ContractNotificationListener()
    contract = Contract(id=9, tenant_name="Jane Doe", end_date=date(2026, 2, 5))

    assert listener.notify_expiring([contract]) == 1
    assert listener.sent == ["Contract #9 for Jane Doe expires on 2026-02-05"]
