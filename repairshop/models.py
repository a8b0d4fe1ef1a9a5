import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate a UUID primary key"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp (columns are stored without timezone)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# COLLABORATOR TABLES (managed by client / appliance / technician CRUD)
# ============================================================================


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    whatsapp = Column(String(50), nullable=True)  # Contact channel for order notifications
    address = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appliances = relationship("ClientAppliance", back_populates="client")
    service_orders = relationship("ServiceOrder", back_populates="client")


class ClientAppliance(Base):
    __tablename__ = "client_appliances"

    id = Column(String(36), primary_key=True, default=generate_id)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False)
    name = Column(String(255), nullable=False)  # Model name
    brand = Column(String(100), nullable=True)
    appliance_type = Column(String(100), nullable=True)  # nevera, lavadora, ...
    created_at = Column(DateTime, server_default=func.now())

    client = relationship("Client", back_populates="appliances")


class Technician(Base):
    __tablename__ = "technicians"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


# ============================================================================
# SERVICE ORDER AGGREGATE
# ============================================================================


class ServiceOrder(Base):
    __tablename__ = "service_orders"

    id = Column(String(36), primary_key=True, default=generate_id)
    order_code = Column(String(32), unique=True, nullable=False, index=True)
    order_number = Column(String(40), nullable=False)  # Display form of order_code
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False)

    reference = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    diagnostics = Column(Text, nullable=True)

    # Lifecycle
    status = Column(String(30), nullable=False, default="PENDING")
    razon_no_aprobado = Column(Text, nullable=True)  # Why the budget was rejected
    cancellation_notes = Column(Text, nullable=True)
    rescheduled_from_cancellation = Column(Boolean, default=False, nullable=False)

    # Money
    payment_status = Column(String(20), nullable=False, default="PENDING")
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    presupuesto_amount = Column(Numeric(12, 2), nullable=True)  # Budget quoted to the client
    include_iva = Column(Boolean, default=False, nullable=False)

    # Warranty
    garantia_start_date = Column(DateTime, nullable=True)
    garantia_end_date = Column(DateTime, nullable=True)
    garantia_ilimitada = Column(Boolean, default=False, nullable=False)
    garantia_prioridad = Column(String(10), nullable=True)  # BAJA, MEDIA, ALTA
    razon_garantia = Column(Text, nullable=True)

    # Scheduling
    fecha_captacion = Column(DateTime, nullable=True)  # When the order was taken
    fecha_agendado = Column(DateTime, nullable=True)  # Scheduled visit
    fecha_reparacion = Column(DateTime, nullable=True)
    fecha_seguimiento = Column(DateTime, nullable=True)  # Follow-up call
    received_date = Column(DateTime, nullable=True)
    completed_date = Column(DateTime, nullable=True)
    delivered_date = Column(DateTime, nullable=True)

    client_notifications_enabled = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(255), nullable=False)
    updated_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    client = relationship("Client", back_populates="service_orders")
    appliances = relationship(
        "ServiceOrderAppliance", back_populates="service_order", cascade="all, delete-orphan"
    )
    technician_assignments = relationship(
        "TechnicianAssignment",
        back_populates="service_order",
        cascade="all, delete-orphan",
        order_by="TechnicianAssignment.created_at",
    )
    payments = relationship(
        "Payment", back_populates="service_order", order_by="Payment.created_at"
    )
    delivery_notes = relationship("DeliveryNote", back_populates="service_order")
    status_history = relationship(
        "StatusHistoryEntry",
        back_populates="service_order",
        order_by="StatusHistoryEntry.timestamp.desc()",
    )

    @property
    def active_assignment(self):
        """The currently responsible technician assignment, if any"""
        for assignment in self.technician_assignments:
            if assignment.is_active:
                return assignment
        return None

    def __repr__(self):
        return f"<ServiceOrder(code={self.order_code}, status='{self.status}')>"


class ServiceOrderAppliance(Base):
    """Appliance brought in with an order, with its reported fault and resolution"""

    __tablename__ = "service_order_appliances"

    id = Column(String(36), primary_key=True, default=generate_id)
    service_order_id = Column(String(36), ForeignKey("service_orders.id"), nullable=False)
    client_appliance_id = Column(String(36), ForeignKey("client_appliances.id"), nullable=False)
    falla = Column(Text, nullable=True)  # Reported fault
    solucion = Column(Text, nullable=True)  # Applied fix
    created_by = Column(String(255), nullable=False)
    updated_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    service_order = relationship("ServiceOrder", back_populates="appliances")
    client_appliance = relationship("ClientAppliance")


class TechnicianAssignment(Base):
    """Assignment history - rows are deactivated, never re-pointed to another technician"""

    __tablename__ = "technician_assignments"

    id = Column(String(36), primary_key=True, default=generate_id)
    service_order_id = Column(String(36), ForeignKey("service_orders.id"), nullable=False)
    technician_id = Column(String(36), ForeignKey("technicians.id"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(String(255), nullable=False)
    updated_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    service_order = relationship("ServiceOrder", back_populates="technician_assignments")
    technician = relationship("Technician")


class Payment(Base):
    """Append-only payment record"""

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_id)
    service_order_id = Column(String(36), ForeignKey("service_orders.id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)
    reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    service_order = relationship("ServiceOrder", back_populates="payments")


class DeliveryNote(Base):
    __tablename__ = "delivery_notes"

    id = Column(String(36), primary_key=True, default=generate_id)
    service_order_id = Column(String(36), ForeignKey("service_orders.id"), nullable=False)
    note_number = Column(String(40), unique=True, nullable=False)
    received_by = Column(String(255), nullable=False)
    amount = Column(Numeric(12, 2), nullable=True)
    include_iva = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    service_order = relationship("ServiceOrder", back_populates="delivery_notes")


class StatusHistoryEntry(Base):
    """Audit row written on every status change"""

    __tablename__ = "service_order_status_history"

    id = Column(String(36), primary_key=True, default=generate_id)
    service_order_id = Column(String(36), ForeignKey("service_orders.id"), nullable=False)
    status = Column(String(30), nullable=False)  # New status
    previous_status = Column(String(30), nullable=True)
    presupuesto_amount = Column(Numeric(12, 2), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(255), nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    service_order = relationship("ServiceOrder", back_populates="status_history")
