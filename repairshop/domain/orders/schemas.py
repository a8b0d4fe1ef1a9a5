"""Service order domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, field_validator


class ApplianceIssue(BaseModel):
    """An appliance brought in with the order and its reported fault"""

    appliance_id: str
    falla: Optional[str] = None


class ServiceOrderCreate(BaseModel):
    """
    Schema for creating a service order.

    Either a single appliance_id/falla pair or an `appliances` list is accepted;
    both may be given and are merged.
    """

    client_id: Optional[str] = None
    appliance_id: Optional[str] = None
    falla: Optional[str] = None
    appliances: list[ApplianceIssue] = []
    technician_id: Optional[str] = None
    is_pre_order: bool = False
    reference: Optional[str] = None
    description: Optional[str] = None
    total_amount: Optional[Decimal] = None
    fecha_agendado: Optional[datetime] = None

    @field_validator("total_amount")
    @classmethod
    def non_negative_total(cls, v):
        if v is not None and v < 0:
            raise ValueError("Total amount cannot be negative")
        return v


class ApplianceUpdate(BaseModel):
    appliance_id: str
    falla: Optional[str] = None
    solucion: Optional[str] = None


class ServiceOrderUpdate(BaseModel):
    """
    Partial update. Only fields present in the request are applied; an explicit
    null clears the stored value.
    """

    client_id: Optional[str] = None
    reference: Optional[str] = None
    description: Optional[str] = None
    diagnostics: Optional[str] = None
    total_amount: Optional[Decimal] = None
    presupuesto_amount: Optional[Decimal] = None
    include_iva: Optional[bool] = None
    status: Optional[str] = None
    razon_no_aprobado: Optional[str] = None
    cancellation_notes: Optional[str] = None
    rescheduled_from_cancellation: Optional[bool] = None
    client_notifications_enabled: Optional[bool] = None

    fecha_agendado: Optional[datetime] = None
    fecha_reparacion: Optional[datetime] = None
    fecha_seguimiento: Optional[datetime] = None
    received_date: Optional[datetime] = None

    garantia_start_date: Optional[datetime] = None
    garantia_end_date: Optional[datetime] = None
    garantia_ilimitada: Optional[bool] = None
    garantia_prioridad: Optional[str] = None
    razon_garantia: Optional[str] = None

    appliances: Optional[list[ApplianceUpdate]] = None
    technician_id: Optional[str] = None

    @field_validator("status", "garantia_prioridad")
    @classmethod
    def upper_enum(cls, v):
        if v:
            return v.strip().upper()
        return v

    @field_validator("total_amount", "presupuesto_amount")
    @classmethod
    def non_negative_amount(cls, v):
        if v is not None and v < 0:
            raise ValueError("Amounts cannot be negative")
        return v


class PaymentCreate(BaseModel):
    amount: Decimal
    payment_method: str
    reference: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("payment_method")
    @classmethod
    def upper_method(cls, v):
        return v.strip().upper()


class DeliveryNoteCreate(BaseModel):
    received_by: str
    notes: Optional[str] = None
    amount: Optional[Decimal] = None
    include_iva: bool = False


class TechnicianAssign(BaseModel):
    technician_id: str
    notes: Optional[str] = None


class TechnicianUnassign(BaseModel):
    replacement_id: Optional[str] = None


# ============================================================================
# RESPONSES
# ============================================================================


class ClientSummary(BaseModel):
    id: str
    name: str
    phone: Optional[str] = None
    whatsapp: Optional[str] = None

    class Config:
        from_attributes = True


class ClientApplianceSummary(BaseModel):
    id: str
    name: str
    brand: Optional[str] = None
    appliance_type: Optional[str] = None

    class Config:
        from_attributes = True


class OrderApplianceResponse(BaseModel):
    client_appliance_id: str
    falla: Optional[str] = None
    solucion: Optional[str] = None
    client_appliance: Optional[ClientApplianceSummary] = None

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    id: str
    technician_id: str
    is_active: bool
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ServiceOrderResponse(BaseModel):
    id: str
    order_code: str
    order_number: str
    client_id: str
    status: str
    payment_status: str
    total_amount: Decimal
    paid_amount: Decimal
    presupuesto_amount: Optional[Decimal] = None
    include_iva: bool
    reference: Optional[str] = None
    description: Optional[str] = None
    diagnostics: Optional[str] = None
    razon_no_aprobado: Optional[str] = None
    cancellation_notes: Optional[str] = None
    rescheduled_from_cancellation: bool = False
    client_notifications_enabled: bool = True
    garantia_start_date: Optional[datetime] = None
    garantia_end_date: Optional[datetime] = None
    garantia_ilimitada: bool = False
    garantia_prioridad: Optional[str] = None
    razon_garantia: Optional[str] = None
    fecha_captacion: Optional[datetime] = None
    fecha_agendado: Optional[datetime] = None
    fecha_reparacion: Optional[datetime] = None
    fecha_seguimiento: Optional[datetime] = None
    received_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    created_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    client: Optional[ClientSummary] = None
    appliances: list[OrderApplianceResponse] = []
    technician_assignments: list[AssignmentResponse] = []

    class Config:
        from_attributes = True


class WarrantyOrderResponse(ServiceOrderResponse):
    under_warranty: bool
    days_remaining: Optional[int] = None


class PaymentResponse(BaseModel):
    id: str
    service_order_id: str
    amount: Decimal
    payment_method: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeliveryNoteResponse(BaseModel):
    id: str
    service_order_id: str
    note_number: str
    received_by: str
    amount: Optional[Decimal] = None
    include_iva: bool
    notes: Optional[str] = None
    created_by: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StatusHistoryResponse(BaseModel):
    id: str
    status: str
    previous_status: Optional[str] = None
    presupuesto_amount: Optional[Decimal] = None
    notes: Optional[str] = None
    created_by: str
    timestamp: datetime

    class Config:
        from_attributes = True


class BalanceResponse(BaseModel):
    total_amount: Decimal
    iva_amount: Decimal
    grand_total: Decimal
    paid_amount: Decimal
    outstanding: Decimal
    payment_status: str

    class Config:
        from_attributes = True


class ActionResult(BaseModel):
    """Envelope returned by every write endpoint"""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
