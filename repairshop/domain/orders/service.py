"""Service order service - Business logic for the order lifecycle"""

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import OPERATOR_PHONE
from ...models import DeliveryNote, Payment, ServiceOrder, StatusHistoryEntry, utcnow
from ...services.notification_service import (
    NotificationDispatcher,
    OutgoingMessage,
    Recipient,
    build_default_dispatcher,
)
from . import messages
from .codes import OrderCodeGenerator, code_prefix, format_order_code
from .exceptions import (
    DuplicateOrderCode,
    NotFound,
    OrderEngineError,
    PersistenceError,
    ValidationError,
)
from .payments import OrderBalance, PaymentLedger, compute_balance, to_money
from .repository import ServiceOrderRepository
from .schemas import DeliveryNoteCreate, ServiceOrderCreate, ServiceOrderUpdate
from .statuses import (
    UNASSIGNED,
    OrderStatus,
    PaymentStatus,
    parse_priority,
    parse_status,
)
from .warranty import sort_by_warranty_priority, validate_warranty

logger = logging.getLogger(__name__)

NON_NULLABLE_FIELDS = (
    "total_amount",
    "include_iva",
    "garantia_ilimitada",
    "rescheduled_from_cancellation",
    "client_notifications_enabled",
)


@dataclass
class StatusTransition:
    old_status: str
    new_status: str


class ServiceOrderService:
    """
    Service layer for the order lifecycle.

    Every write workflow is one transaction: the repository flushes, this class
    commits once at the end and rolls back on any failure. Notifications are
    sent after commit and never affect the outcome.
    """

    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationDispatcher] = None,
        code_generator: Optional[OrderCodeGenerator] = None,
        operator_phone: Optional[str] = OPERATOR_PHONE,
    ):
        self.db = db
        self.repo = ServiceOrderRepository()
        self.ledger = PaymentLedger(db)
        self.notifier = notifier or build_default_dispatcher()
        self.code_generator = code_generator or OrderCodeGenerator(
            exists=lambda code: self.repo.order_code_exists(self.db, code)
        )
        self.operator_phone = operator_phone

    # ========================================================================
    # READS
    # ========================================================================

    def get_order(self, order_id: str) -> ServiceOrder:
        order = self.repo.get_order(self.db, order_id)
        if not order:
            raise NotFound("Service order not found")
        return order

    def list_orders(self) -> list[ServiceOrder]:
        return self.repo.list_orders(self.db)

    def list_orders_under_warranty(self) -> list[ServiceOrder]:
        """Orders with any warranty coverage or claim, highest priority first"""
        candidates = self.repo.list_warranty_candidates(
            self.db, OrderStatus.GARANTIA_APLICADA.value
        )
        return sort_by_warranty_priority(candidates)

    def get_status_history(self, order_id: str) -> list[StatusHistoryEntry]:
        self.get_order(order_id)
        return self.repo.get_status_history(self.db, order_id)

    def list_payments(self, order_id: str) -> list[Payment]:
        self.get_order(order_id)
        return self.repo.get_payments(self.db, order_id)

    def get_balance(self, order_id: str) -> OrderBalance:
        return compute_balance(self.get_order(order_id))

    def list_delivery_notes(self, order_id: str) -> list[DeliveryNote]:
        self.get_order(order_id)
        return self.repo.get_delivery_notes(self.db, order_id)

    # ========================================================================
    # CREATE
    # ========================================================================

    async def create_order(self, data: ServiceOrderCreate, actor_id: str) -> ServiceOrder:
        """Create an order with a unique code, its appliances, assignment and first history row"""
        client_id = (data.client_id or "").strip()
        if not client_id:
            raise ValidationError("Client is required")

        issues = []
        if data.appliance_id:
            issues.append((data.appliance_id, data.falla))
        for issue in data.appliances:
            if issue.appliance_id != data.appliance_id:
                issues.append((issue.appliance_id, issue.falla))
        if not issues:
            raise ValidationError("At least one appliance is required")

        client = self.repo.get_client(self.db, client_id)
        if not client:
            raise ValidationError("Client not found")

        known = {a.id: a for a in self.repo.get_client_appliances(self.db, [i for i, _ in issues])}
        missing = [appliance_id for appliance_id, _ in issues if appliance_id not in known]
        if missing:
            raise ValidationError(f"Appliance not found: {', '.join(missing)}")

        technician_id = data.technician_id
        if technician_id == UNASSIGNED:
            technician_id = None
        if technician_id and not self.repo.get_technician(self.db, technician_id):
            raise ValidationError("Technician not found")

        if data.is_pre_order:
            status = OrderStatus.PREORDER
        elif technician_id:
            status = OrderStatus.ASSIGNED
        else:
            status = OrderStatus.PENDING

        prefix = code_prefix(known[issues[0][0]].appliance_type)
        logger.info(f"📥 Creating service order for client {client_id} (status={status.value})")

        def insert(code: str) -> ServiceOrder:
            try:
                return self.repo.insert_order(
                    self.db,
                    order_code=code,
                    order_number=format_order_code(code),
                    client_id=client_id,
                    reference=data.reference,
                    description=data.description,
                    status=status.value,
                    payment_status=PaymentStatus.PENDING.value,
                    total_amount=to_money(data.total_amount),
                    paid_amount=to_money(0),
                    include_iva=False,
                    client_notifications_enabled=True,
                    fecha_captacion=utcnow(),
                    fecha_agendado=data.fecha_agendado,
                    created_by=actor_id,
                    updated_by=actor_id,
                )
            except IntegrityError as e:
                # The order row is the first write of the transaction
                self.db.rollback()
                if "order_code" in str(e.orig):
                    raise DuplicateOrderCode(code) from e
                logger.error(f"❌ Integrity error inserting service order: {e}")
                raise PersistenceError("Failed to create service order") from e

        try:
            order = await self.code_generator.create_with_unique_code(insert, prefix)

            for appliance_id, falla in issues:
                self.repo.add_order_appliance(
                    self.db,
                    service_order_id=order.id,
                    client_appliance_id=appliance_id,
                    falla=(falla or "").strip() or None,
                    created_by=actor_id,
                    updated_by=actor_id,
                )

            if technician_id:
                self.repo.add_assignment(
                    self.db,
                    service_order_id=order.id,
                    technician_id=technician_id,
                    created_by=actor_id,
                    updated_by=actor_id,
                )

            label = "Pre-order" if data.is_pre_order else "Order"
            self.repo.add_history_entry(
                self.db,
                service_order_id=order.id,
                status=status.value,
                previous_status=None,
                notes=f"{label} created with status {status.value}",
                created_by=actor_id,
            )

            self.db.commit()
        except OrderEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create service order: {e}")
            raise PersistenceError("Failed to create service order") from e

        order = self.repo.get_order(self.db, order.id)
        logger.info(f"✅ Service order {order.order_number} created")

        await self._notify_operator(messages.order_created_operator(order))
        if client.whatsapp:
            await self._notify_safely(
                Recipient(client.whatsapp, "client", client.name),
                messages.order_created_client(order),
            )
        return order

    # ========================================================================
    # UPDATE / TRANSITIONS
    # ========================================================================

    async def update_order(
        self, order_id: str, patch: ServiceOrderUpdate, actor_id: str
    ) -> ServiceOrder:
        """Apply a partial update; a status change is audited and notified"""
        changes = patch.model_dump(exclude_unset=True)
        appliance_updates = changes.pop("appliances", None) or []
        technician_id = changes.pop("technician_id", None)
        requested_status = changes.pop("status", None)

        order = self.get_order(order_id)

        new_status = None
        if requested_status is not None:
            new_status = parse_status(requested_status)
            if not new_status:
                raise ValidationError(f"Unknown status: {requested_status}")

        if changes.get("garantia_prioridad") is not None:
            if not parse_priority(changes["garantia_prioridad"]):
                raise ValidationError(
                    f"Unknown warranty priority: {changes['garantia_prioridad']}"
                )

        if "client_id" in changes:
            if not changes["client_id"] or not self.repo.get_client(self.db, changes["client_id"]):
                raise ValidationError("Client not found")

        if technician_id == UNASSIGNED:
            technician_id = None
        if technician_id and not self.repo.get_technician(self.db, technician_id):
            raise ValidationError("Technician not found")

        for key in ("total_amount", "presupuesto_amount"):
            if changes.get(key) is not None:
                changes[key] = to_money(changes[key])
        # Null on a non-nullable column means "leave as is"
        for key in NON_NULLABLE_FIELDS:
            if key in changes and changes[key] is None:
                changes.pop(key)

        for warning in validate_warranty(
            changes.get("garantia_start_date", order.garantia_start_date),
            changes.get("garantia_end_date", order.garantia_end_date),
            changes.get("garantia_ilimitada", order.garantia_ilimitada),
            changes.get("garantia_prioridad", order.garantia_prioridad),
        ):
            logger.warning(f"⚠️ Order {order.order_number}: {warning}")

        transition = None
        new_technician = None
        try:
            self.repo.update_order(self.db, order, **changes, updated_by=actor_id)

            if new_status and new_status.value != order.status:
                transition = self._transition_status(order, new_status, actor_id)

            for update in appliance_updates:
                link = self.repo.get_order_appliance(self.db, order.id, update["appliance_id"])
                if not link:
                    logger.warning(
                        f"⚠️ Appliance {update['appliance_id']} is not part of order {order.order_number}"
                    )
                    continue
                link.falla = update.get("falla")
                link.solucion = update.get("solucion")
                link.updated_by = actor_id
                self.db.flush()

            if technician_id:
                new_technician = self._reassign_technician(order, technician_id, actor_id)
                still_pending = order.status == OrderStatus.PENDING.value
                if new_technician and requested_status is None and still_pending:
                    transition = self._transition_status(order, OrderStatus.ASSIGNED, actor_id)

            self.db.commit()
        except OrderEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to update service order {order_id}: {e}")
            raise PersistenceError("Failed to update service order") from e

        order = self.repo.get_order(self.db, order_id)
        logger.info(f"✅ Service order {order.order_number} updated")

        if transition:
            await self._notify_transition(order, transition)
        if new_technician:
            await self._notify_technician(new_technician, messages.technician_assigned(order, new_technician))
        return order

    def _transition_status(
        self,
        order: ServiceOrder,
        new_status: OrderStatus,
        actor_id: str,
        note_prefix: Optional[str] = None,
    ) -> StatusTransition:
        """
        The single path for changing an order's status.

        Stamps lifecycle dates and appends a history row. Flushes only.
        """
        old_status = order.status
        updates = {"status": new_status.value, "updated_by": actor_id}
        now = utcnow()
        if new_status == OrderStatus.COMPLETED:
            updates["completed_date"] = now
        elif new_status == OrderStatus.DELIVERED:
            updates["delivered_date"] = now
        self.repo.update_order(self.db, order, **updates)

        notes = f"Status changed from {old_status} to {new_status.value}"
        if new_status == OrderStatus.CANCELLED and order.cancellation_notes:
            notes += f". Reason: {order.cancellation_notes}"
        if new_status == OrderStatus.PENDING and order.rescheduled_from_cancellation:
            notes += ". Rescheduled after cancellation"
            if order.cancellation_notes:
                notes += f". Reason: {order.cancellation_notes}"
        if new_status == OrderStatus.GARANTIA_APLICADA and order.razon_garantia:
            notes += f". Reason: {order.razon_garantia}"
        if order.presupuesto_amount:
            notes += f" with budget amount {to_money(order.presupuesto_amount)}"
            if order.include_iva:
                notes += " (IVA included)"
        if note_prefix:
            notes = f"{note_prefix}. {notes}"

        self.repo.add_history_entry(
            self.db,
            service_order_id=order.id,
            status=new_status.value,
            previous_status=old_status,
            presupuesto_amount=order.presupuesto_amount,
            notes=notes,
            created_by=actor_id,
        )
        logger.info(f"🔄 Order {order.order_number}: {old_status} -> {new_status.value}")
        return StatusTransition(old_status, new_status.value)

    # ========================================================================
    # TECHNICIAN ASSIGNMENT
    # ========================================================================

    def _reassign_technician(self, order: ServiceOrder, technician_id: str, actor_id: str, notes=None):
        """
        Make technician_id the active assignment.

        Returns the newly assigned Technician, or None when they already were.
        """
        active = self.repo.get_active_assignment(self.db, order.id)
        if active and active.technician_id == technician_id:
            if notes is not None:
                active.notes = notes
                active.updated_by = actor_id
                self.db.flush()
            return None

        if active:
            self.repo.deactivate_assignment(self.db, active, actor_id)
        self.repo.add_assignment(
            self.db,
            service_order_id=order.id,
            technician_id=technician_id,
            notes=notes,
            created_by=actor_id,
            updated_by=actor_id,
        )
        return self.repo.get_technician(self.db, technician_id)

    async def assign_technician(
        self, order_id: str, technician_id: str, actor_id: str, notes: Optional[str] = None
    ) -> ServiceOrder:
        if not technician_id or technician_id == UNASSIGNED:
            raise ValidationError("Technician is required")
        order = self.get_order(order_id)
        if not self.repo.get_technician(self.db, technician_id):
            raise ValidationError("Technician not found")

        transition = None
        try:
            technician = self._reassign_technician(order, technician_id, actor_id, notes)
            if technician and order.status == OrderStatus.PENDING.value:
                transition = self._transition_status(order, OrderStatus.ASSIGNED, actor_id)
            self.db.commit()
        except OrderEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to assign technician to order {order_id}: {e}")
            raise PersistenceError("Failed to assign technician") from e

        order = self.repo.get_order(self.db, order_id)
        if technician:
            logger.info(f"👨‍🔧 Technician {technician.name} assigned to order {order.order_number}")
            if transition:
                await self._notify_transition(order, transition)
            await self._notify_technician(technician, messages.technician_assigned(order, technician))
        return order

    async def unassign_technician(
        self,
        order_id: str,
        technician_id: str,
        actor_id: str,
        replacement_id: Optional[str] = None,
    ) -> ServiceOrder:
        """Deactivate a technician's active assignment, optionally handing the order to another"""
        order = self.get_order(order_id)
        active = self.repo.get_active_assignment(self.db, order.id)
        if not active or active.technician_id != technician_id:
            raise NotFound("Active assignment not found for this technician")
        if replacement_id and not self.repo.get_technician(self.db, replacement_id):
            raise ValidationError("Technician not found")

        removed = active.technician
        replacement = None
        try:
            self.repo.deactivate_assignment(self.db, active, actor_id)
            if replacement_id and replacement_id != technician_id:
                replacement = self._reassign_technician(order, replacement_id, actor_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to unassign technician from order {order_id}: {e}")
            raise PersistenceError("Failed to unassign technician") from e

        order = self.repo.get_order(self.db, order_id)
        logger.info(f"🔄 Technician {technician_id} unassigned from order {order.order_number}")
        if removed:
            await self._notify_technician(removed, messages.technician_unassigned(order, removed))
        if replacement:
            await self._notify_technician(replacement, messages.technician_assigned(order, replacement))
        return order

    # ========================================================================
    # PAYMENTS / DELIVERY
    # ========================================================================

    async def record_payment(
        self,
        order_id: str,
        amount,
        method: str,
        actor_id: str,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Payment:
        try:
            payment = self.ledger.record_payment(order_id, amount, method, actor_id, reference, notes)
            self.db.commit()
        except OrderEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to record payment for order {order_id}: {e}")
            raise PersistenceError("Failed to record payment") from e

        order = self.repo.get_order(self.db, order_id)
        await self._notify_operator(messages.payment_received(order, payment))
        return payment

    async def create_delivery_note(
        self, order_id: str, data: DeliveryNoteCreate, actor_id: str
    ) -> DeliveryNote:
        """
        Record the hand-over and move the order to DELIVERED.

        Further notes for an order that is already DELIVERED restamp
        delivered_date without another status change or history row.
        """
        received_by = (data.received_by or "").strip()
        if not received_by:
            raise ValidationError("Receiver name is required")
        order = self.get_order(order_id)

        try:
            note = self.repo.add_delivery_note(
                self.db,
                service_order_id=order.id,
                note_number=f"DN-{int(time.time() * 1000)}-{secrets.token_hex(3)}",
                received_by=received_by,
                amount=to_money(data.amount) if data.amount is not None else None,
                include_iva=data.include_iva,
                notes=data.notes,
                created_by=actor_id,
            )
            if order.status == OrderStatus.DELIVERED.value:
                transition = None
                self.repo.update_order(
                    self.db,
                    order,
                    delivered_date=utcnow(),
                    updated_by=actor_id,
                )
            else:
                transition = self._transition_status(
                    order,
                    OrderStatus.DELIVERED,
                    actor_id,
                    note_prefix=f"Delivery note created. Received by: {received_by}",
                )
            self.db.commit()
        except OrderEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create delivery note for order {order_id}: {e}")
            raise PersistenceError("Failed to create delivery note") from e

        order = self.repo.get_order(self.db, order_id)
        logger.info(f"🚚 Delivery note {note.note_number} created for order {order.order_number}")
        if transition:
            await self._notify_transition(
                order, transition, messages.delivery_note_created(order, note)
            )
        else:
            await self._notify_client(order, messages.delivery_note_created(order, note))
        return note

    # ========================================================================
    # NOTIFICATIONS (best-effort, after commit)
    # ========================================================================

    async def _notify_safely(self, recipient: Recipient, text: str) -> None:
        try:
            result = await self.notifier.notify(recipient, OutgoingMessage(text=text))
        except Exception as e:
            logger.error(f"❌ Notification to {recipient.role} failed: {e}")
            return
        if not result.ok:
            logger.warning(f"⚠️ {recipient.role.capitalize()} not notified: {result.reason}")

    async def _notify_operator(self, text: str) -> None:
        if not self.operator_phone:
            logger.debug("⚠️ OPERATOR_PHONE not set, skipping operator notification")
            return
        await self._notify_safely(Recipient(self.operator_phone, "operator"), text)

    async def _notify_client(self, order: ServiceOrder, text: str) -> None:
        client = order.client
        if not client or not client.whatsapp:
            return
        if not order.client_notifications_enabled:
            logger.debug(f"🔕 Client notifications disabled for order {order.order_number}")
            return
        await self._notify_safely(Recipient(client.whatsapp, "client", client.name), text)

    async def _notify_technician(self, technician, text: str) -> None:
        if not technician or not technician.phone:
            return
        await self._notify_safely(Recipient(technician.phone, "technician", technician.name), text)

    async def _notify_transition(
        self, order: ServiceOrder, transition: StatusTransition, client_text: Optional[str] = None
    ) -> None:
        await self._notify_operator(
            messages.status_changed_operator(order, transition.old_status, transition.new_status)
        )
        await self._notify_client(
            order,
            client_text
            or messages.status_changed_client(order, transition.old_status, transition.new_status),
        )
