"""Service order repository - Database operations for the order aggregate"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload, selectinload

from ...models import (
    Client,
    ClientAppliance,
    DeliveryNote,
    Payment,
    ServiceOrder,
    ServiceOrderAppliance,
    StatusHistoryEntry,
    Technician,
    TechnicianAssignment,
)


class ServiceOrderRepository:
    """
    Repository for service order database operations.

    Writes only flush; the service layer commits once per workflow so a
    failure part-way leaves nothing behind.
    """

    # Orders
    @staticmethod
    def order_code_exists(db: Session, order_code: str) -> bool:
        return (
            db.query(ServiceOrder.id).filter(ServiceOrder.order_code == order_code).first()
            is not None
        )

    @staticmethod
    def insert_order(db: Session, **order_data) -> ServiceOrder:
        """Insert an order row; raises IntegrityError on a duplicate order_code"""
        order = ServiceOrder(**order_data)
        db.add(order)
        db.flush()
        return order

    @staticmethod
    def get_order(db: Session, order_id: str) -> Optional[ServiceOrder]:
        """Get an order with its client, appliances and assignments loaded"""
        return (
            db.query(ServiceOrder)
            .options(
                joinedload(ServiceOrder.client),
                selectinload(ServiceOrder.appliances).joinedload(
                    ServiceOrderAppliance.client_appliance
                ),
                selectinload(ServiceOrder.technician_assignments).joinedload(
                    TechnicianAssignment.technician
                ),
            )
            .filter(ServiceOrder.id == order_id)
            .first()
        )

    @staticmethod
    def get_order_for_update(db: Session, order_id: str) -> Optional[ServiceOrder]:
        # Row lock on databases that support it; SQLite ignores FOR UPDATE
        return db.query(ServiceOrder).filter(ServiceOrder.id == order_id).with_for_update().first()

    @staticmethod
    def list_orders(db: Session) -> list[ServiceOrder]:
        return (
            db.query(ServiceOrder)
            .options(
                joinedload(ServiceOrder.client),
                selectinload(ServiceOrder.appliances).joinedload(
                    ServiceOrderAppliance.client_appliance
                ),
                selectinload(ServiceOrder.technician_assignments).joinedload(
                    TechnicianAssignment.technician
                ),
            )
            .order_by(ServiceOrder.created_at.desc())
            .all()
        )

    @staticmethod
    def list_warranty_candidates(db: Session, warranty_status: str) -> list[ServiceOrder]:
        """Orders with a warranty window, an unlimited warranty, or a warranty claim applied"""
        return (
            db.query(ServiceOrder)
            .options(
                joinedload(ServiceOrder.client),
                selectinload(ServiceOrder.appliances).joinedload(
                    ServiceOrderAppliance.client_appliance
                ),
            )
            .filter(
                or_(
                    ServiceOrder.garantia_end_date.isnot(None),
                    ServiceOrder.garantia_ilimitada.is_(True),
                    ServiceOrder.status == warranty_status,
                )
            )
            .all()
        )

    @staticmethod
    def update_order(db: Session, order: ServiceOrder, **updates) -> ServiceOrder:
        """Apply updates verbatim - None is a valid value (clears the field)"""
        for key, value in updates.items():
            if hasattr(order, key):
                setattr(order, key, value)
        db.flush()
        return order

    # Appliances
    @staticmethod
    def add_order_appliance(db: Session, **data) -> ServiceOrderAppliance:
        link = ServiceOrderAppliance(**data)
        db.add(link)
        db.flush()
        return link

    @staticmethod
    def get_order_appliance(
        db: Session, order_id: str, appliance_id: str
    ) -> Optional[ServiceOrderAppliance]:
        return (
            db.query(ServiceOrderAppliance)
            .filter(
                ServiceOrderAppliance.service_order_id == order_id,
                ServiceOrderAppliance.client_appliance_id == appliance_id,
            )
            .first()
        )

    # Technician assignments
    @staticmethod
    def get_active_assignment(db: Session, order_id: str) -> Optional[TechnicianAssignment]:
        return (
            db.query(TechnicianAssignment)
            .filter(
                TechnicianAssignment.service_order_id == order_id,
                TechnicianAssignment.is_active.is_(True),
            )
            .order_by(TechnicianAssignment.created_at.desc())
            .first()
        )

    @staticmethod
    def get_assignments(db: Session, order_id: str) -> list[TechnicianAssignment]:
        return (
            db.query(TechnicianAssignment)
            .filter(TechnicianAssignment.service_order_id == order_id)
            .order_by(TechnicianAssignment.created_at.asc())
            .all()
        )

    @staticmethod
    def add_assignment(db: Session, **data) -> TechnicianAssignment:
        assignment = TechnicianAssignment(is_active=True, **data)
        db.add(assignment)
        db.flush()
        return assignment

    @staticmethod
    def deactivate_assignment(
        db: Session, assignment: TechnicianAssignment, actor_id: str
    ) -> TechnicianAssignment:
        assignment.is_active = False
        assignment.updated_by = actor_id
        db.flush()
        return assignment

    # Payments
    @staticmethod
    def add_payment(db: Session, **data) -> Payment:
        payment = Payment(**data)
        db.add(payment)
        db.flush()
        return payment

    @staticmethod
    def get_payment_amounts(db: Session, order_id: str) -> list:
        rows = db.query(Payment.amount).filter(Payment.service_order_id == order_id).all()
        return [row.amount for row in rows]

    @staticmethod
    def get_payments(db: Session, order_id: str) -> list[Payment]:
        return (
            db.query(Payment)
            .filter(Payment.service_order_id == order_id)
            .order_by(Payment.created_at.asc())
            .all()
        )

    # Delivery notes
    @staticmethod
    def add_delivery_note(db: Session, **data) -> DeliveryNote:
        note = DeliveryNote(**data)
        db.add(note)
        db.flush()
        return note

    @staticmethod
    def get_delivery_notes(db: Session, order_id: str) -> list[DeliveryNote]:
        return (
            db.query(DeliveryNote)
            .filter(DeliveryNote.service_order_id == order_id)
            .order_by(DeliveryNote.created_at.desc())
            .all()
        )

    # Status history
    @staticmethod
    def add_history_entry(db: Session, **data) -> StatusHistoryEntry:
        entry = StatusHistoryEntry(**data)
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def get_status_history(db: Session, order_id: str) -> list[StatusHistoryEntry]:
        return (
            db.query(StatusHistoryEntry)
            .filter(StatusHistoryEntry.service_order_id == order_id)
            .order_by(StatusHistoryEntry.timestamp.desc())
            .all()
        )

    # Collaborators
    @staticmethod
    def get_client(db: Session, client_id: str) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id).first()

    @staticmethod
    def get_client_appliances(db: Session, appliance_ids: list[str]) -> list[ClientAppliance]:
        if not appliance_ids:
            return []
        return db.query(ClientAppliance).filter(ClientAppliance.id.in_(appliance_ids)).all()

    @staticmethod
    def get_technician(db: Session, technician_id: str) -> Optional[Technician]:
        return db.query(Technician).filter(Technician.id == technician_id).first()
