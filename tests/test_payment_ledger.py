from decimal import Decimal
from types import SimpleNamespace

import pytest

from repairshop.domain.orders.exceptions import NotFound, ValidationError
from repairshop.domain.orders.payments import (
    PaymentLedger,
    compute_balance,
    iva_amount,
    payment_status_for,
    sum_payments,
    to_money,
)
from repairshop.domain.orders.statuses import PaymentStatus
from repairshop.models import ServiceOrder

from conftest import ACTOR


@pytest.fixture
def order(db, shop):
    order = ServiceOrder(
        order_code="NEV2610190001",
        order_number="NEV-261019-0001",
        client_id=shop["client"].id,
        total_amount=Decimal("100.00"),
        paid_amount=Decimal("0.00"),
        created_by=ACTOR,
    )
    db.add(order)
    db.commit()
    return order


@pytest.mark.parametrize(
    "paid,total,expected",
    [
        ("0", "100", PaymentStatus.PENDING),
        ("40", "100", PaymentStatus.PARTIAL),
        ("100", "100", PaymentStatus.PAID),
        ("120", "100", PaymentStatus.PAID),
        ("0", "0", PaymentStatus.PENDING),
    ],
)
def test_payment_status_for(paid, total, expected):
    assert payment_status_for(paid, total) == expected


def test_money_helpers():
    assert to_money(None) == Decimal("0.00")
    assert to_money(10.005) == Decimal("10.01")
    assert sum_payments(["10.10", Decimal("0.20"), 5]) == Decimal("15.30")
    assert iva_amount("100", include_iva=True) == Decimal("16.00")
    assert iva_amount("100", include_iva=False) == Decimal("0.00")


def test_balance_applies_iva_only_when_included():
    order = SimpleNamespace(total_amount=Decimal("100"), paid_amount=Decimal("50"), include_iva=True)
    balance = compute_balance(order)
    assert balance.iva_amount == Decimal("16.00")
    assert balance.grand_total == Decimal("116.00")
    assert balance.outstanding == Decimal("66.00")
    assert balance.payment_status == PaymentStatus.PARTIAL

    order.include_iva = False
    assert compute_balance(order).outstanding == Decimal("50.00")


def test_paid_amount_is_sum_of_payments(db, order):
    ledger = PaymentLedger(db)

    ledger.record_payment(order.id, "40", "CASH", ACTOR)
    db.commit()
    db.refresh(order)
    assert order.paid_amount == Decimal("40.00")
    assert order.payment_status == "PARTIAL"

    ledger.record_payment(order.id, Decimal("60"), "ZELLE", ACTOR, reference="ZL-1")
    db.commit()
    db.refresh(order)
    assert order.paid_amount == Decimal("100.00")
    assert order.payment_status == "PAID"
    assert len(order.payments) == 2


def test_overpayment_is_accepted(db, order):
    ledger = PaymentLedger(db)
    ledger.record_payment(order.id, "150", "TRANSFER", ACTOR)
    db.commit()
    db.refresh(order)
    assert order.paid_amount == Decimal("150.00")
    assert order.payment_status == "PAID"


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_non_positive_amount_rejected(db, order, amount):
    with pytest.raises(ValidationError):
        PaymentLedger(db).record_payment(order.id, amount, "CASH", ACTOR)
    assert order.payments == []


def test_unknown_order(db, shop):
    with pytest.raises(NotFound):
        PaymentLedger(db).record_payment("missing", "10", "CASH", ACTOR)
