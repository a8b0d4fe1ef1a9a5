"""Payment reconciliation and IVA math for service orders"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...config import IVA_RATE
from ...models import Payment, ServiceOrder
from .exceptions import NotFound, ValidationError
from .repository import ServiceOrderRepository
from .statuses import PaymentStatus

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce int/float/str/Decimal/None into a 2-decimal Decimal"""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def payment_status_for(paid_amount, total_amount) -> PaymentStatus:
    """
    PENDING while nothing is paid, PAID when paid >= total (overpayment is
    accepted, not rejected), PARTIAL in between.
    """
    paid = to_money(paid_amount)
    if paid <= 0:
        return PaymentStatus.PENDING
    if paid >= to_money(total_amount):
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def sum_payments(amounts: Iterable) -> Decimal:
    return to_money(sum((to_money(a) for a in amounts), Decimal("0")))


def iva_amount(amount, include_iva: bool, rate=IVA_RATE) -> Decimal:
    if not include_iva:
        return Decimal("0.00")
    return to_money(to_money(amount) * Decimal(str(rate)))


@dataclass(frozen=True)
class OrderBalance:
    total_amount: Decimal
    iva_amount: Decimal
    grand_total: Decimal
    paid_amount: Decimal
    outstanding: Decimal
    payment_status: PaymentStatus


def compute_balance(order: ServiceOrder, rate=IVA_RATE) -> OrderBalance:
    total = to_money(order.total_amount)
    iva = iva_amount(total, bool(order.include_iva), rate)
    grand_total = total + iva
    paid = to_money(order.paid_amount)
    outstanding = max(grand_total - paid, Decimal("0.00"))
    return OrderBalance(
        total_amount=total,
        iva_amount=iva,
        grand_total=grand_total,
        paid_amount=paid,
        outstanding=outstanding,
        payment_status=payment_status_for(paid, total),
    )


class PaymentLedger:
    """Appends payments and keeps the order's paid amount / payment status in sync"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ServiceOrderRepository()

    def record_payment(
        self,
        order_id: str,
        amount,
        method: str,
        actor_id: str,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Payment:
        """
        Append a payment and recompute the order's running balance.

        The caller owns the transaction: rows are flushed, not committed.
        """
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")
        if not method:
            raise ValidationError("Payment method is required")

        order = self.repo.get_order_for_update(self.db, order_id)
        if not order:
            raise NotFound("Service order not found")

        payment = self.repo.add_payment(
            self.db,
            service_order_id=order.id,
            amount=amount,
            payment_method=method,
            reference=(reference or "").strip() or None,
            notes=(notes or "").strip() or None,
            created_by=actor_id,
        )

        new_paid = sum_payments(self.repo.get_payment_amounts(self.db, order.id))
        status = payment_status_for(new_paid, order.total_amount)
        self.repo.update_order(
            self.db,
            order,
            paid_amount=new_paid,
            payment_status=status.value,
            updated_by=actor_id,
        )

        logger.info(
            f"💰 Payment {amount} recorded for order {order.order_number}: "
            f"paid={new_paid} total={to_money(order.total_amount)} status={status.value}"
        )
        return payment
