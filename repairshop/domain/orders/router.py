"""Service order router - FastAPI endpoints for the order lifecycle"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import get_actor_id
from ...database import get_db
from .exceptions import OrderEngineError
from .schemas import (
    ActionResult,
    BalanceResponse,
    DeliveryNoteCreate,
    DeliveryNoteResponse,
    PaymentCreate,
    PaymentResponse,
    ServiceOrderCreate,
    ServiceOrderResponse,
    ServiceOrderUpdate,
    StatusHistoryResponse,
    TechnicianAssign,
    TechnicianUnassign,
    WarrantyOrderResponse,
)
from .service import ServiceOrderService
from .warranty import days_remaining, is_under_warranty

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/service-orders", tags=["Service Orders"])


def get_service_order_service(db: Session = Depends(get_db)) -> ServiceOrderService:
    """Dependency injection for ServiceOrderService"""
    return ServiceOrderService(db)


def ok(data) -> ActionResult:
    return ActionResult(success=True, data=data)


def failed(error: OrderEngineError) -> JSONResponse:
    """Business failures carry their message; infrastructure failures stay opaque"""
    if error.status_code >= 500:
        logger.error(f"❌ {type(error).__name__}: {error.message}")
    else:
        logger.info(f"⚠️ {type(error).__name__}: {error.message}")
    result = ActionResult(success=False, error=error.message)
    return JSONResponse(status_code=error.status_code, content=result.model_dump(mode="json"))


def not_found(error: OrderEngineError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


def order_data(order) -> dict:
    return ServiceOrderResponse.model_validate(order).model_dump(mode="json")


# ============================================================================
# ORDERS
# ============================================================================


@router.post("", response_model=ActionResult)
async def create_service_order(
    data: ServiceOrderCreate,
    actor_id: str = Depends(get_actor_id),
    service: ServiceOrderService = Depends(get_service_order_service),
):
    """Create a new service order"""
    try:
        order = await service.create_order(data, actor_id)
    except OrderEngineError as e:
        return failed(e)
    return ok(order_data(order))


@router.get("", response_model=list[ServiceOrderResponse])
async def list_service_orders(service: ServiceOrderService = Depends(get_service_order_service)):
    """All orders, newest first"""
    return service.list_orders()


@router.get("/warranty", response_model=list[WarrantyOrderResponse])
async def list_orders_under_warranty(
    service: ServiceOrderService = Depends(get_service_order_service),
):
    """Orders with warranty coverage, highest priority first"""
    return [
        WarrantyOrderResponse(
            **ServiceOrderResponse.model_validate(order).model_dump(),
            under_warranty=is_under_warranty(order),
            days_remaining=days_remaining(order),
        )
        for order in service.list_orders_under_warranty()
    ]


@router.get("/{order_id}", response_model=ServiceOrderResponse)
async def get_service_order(
    order_id: str, service: ServiceOrderService = Depends(get_service_order_service)
):
    try:
        return service.get_order(order_id)
    except OrderEngineError as e:
        raise not_found(e)


@router.patch("/{order_id}", response_model=ActionResult)
async def update_service_order(
    order_id: str,
    patch: ServiceOrderUpdate,
    actor_id: str = Depends(get_actor_id),
    service: ServiceOrderService = Depends(get_service_order_service),
):
    """Partial update; changing the status writes history and notifies"""
    try:
        order = await service.update_order(order_id, patch, actor_id)
    except OrderEngineError as e:
        return failed(e)
    return ok(order_data(order))


@router.get("/{order_id}/history", response_model=list[StatusHistoryResponse])
async def get_status_history(
    order_id: str, service: ServiceOrderService = Depends(get_service_order_service)
):
    """Status changes, most recent first"""
    try:
        return service.get_status_history(order_id)
    except OrderEngineError as e:
        raise not_found(e)


# ============================================================================
# PAYMENTS
# ============================================================================


@router.post("/{order_id}/payments", response_model=ActionResult)
async def record_payment(
    order_id: str,
    data: PaymentCreate,
    actor_id: str = Depends(get_actor_id),
    service: ServiceOrderService = Depends(get_service_order_service),
):
    try:
        payment = await service.record_payment(
            order_id, data.amount, data.payment_method, actor_id, data.reference, data.notes
        )
    except OrderEngineError as e:
        return failed(e)
    return ok(PaymentResponse.model_validate(payment).model_dump(mode="json"))


@router.get("/{order_id}/payments", response_model=list[PaymentResponse])
async def list_payments(
    order_id: str, service: ServiceOrderService = Depends(get_service_order_service)
):
    try:
        return service.list_payments(order_id)
    except OrderEngineError as e:
        raise not_found(e)


@router.get("/{order_id}/balance", response_model=BalanceResponse)
async def get_balance(
    order_id: str, service: ServiceOrderService = Depends(get_service_order_service)
):
    """Totals with IVA, amount paid and what is still owed"""
    try:
        balance = service.get_balance(order_id)
    except OrderEngineError as e:
        raise not_found(e)
    return BalanceResponse(
        total_amount=balance.total_amount,
        iva_amount=balance.iva_amount,
        grand_total=balance.grand_total,
        paid_amount=balance.paid_amount,
        outstanding=balance.outstanding,
        payment_status=balance.payment_status.value,
    )


# ============================================================================
# DELIVERY NOTES
# ============================================================================


@router.post("/{order_id}/delivery-notes", response_model=ActionResult)
async def create_delivery_note(
    order_id: str,
    data: DeliveryNoteCreate,
    actor_id: str = Depends(get_actor_id),
    service: ServiceOrderService = Depends(get_service_order_service),
):
    """Record the hand-over to the client; the order becomes DELIVERED"""
    try:
        note = await service.create_delivery_note(order_id, data, actor_id)
    except OrderEngineError as e:
        return failed(e)
    return ok(DeliveryNoteResponse.model_validate(note).model_dump(mode="json"))


@router.get("/{order_id}/delivery-notes", response_model=list[DeliveryNoteResponse])
async def list_delivery_notes(
    order_id: str, service: ServiceOrderService = Depends(get_service_order_service)
):
    try:
        return service.list_delivery_notes(order_id)
    except OrderEngineError as e:
        raise not_found(e)


# ============================================================================
# TECHNICIANS
# ============================================================================


@router.post("/{order_id}/technicians", response_model=ActionResult)
async def assign_technician(
    order_id: str,
    data: TechnicianAssign,
    actor_id: str = Depends(get_actor_id),
    service: ServiceOrderService = Depends(get_service_order_service),
):
    try:
        order = await service.assign_technician(order_id, data.technician_id, actor_id, data.notes)
    except OrderEngineError as e:
        return failed(e)
    return ok(order_data(order))


@router.delete("/{order_id}/technicians/{technician_id}", response_model=ActionResult)
async def unassign_technician(
    order_id: str,
    technician_id: str,
    data: TechnicianUnassign = Depends(),
    actor_id: str = Depends(get_actor_id),
    service: ServiceOrderService = Depends(get_service_order_service),
):
    """Remove a technician; `replacement_id` hands the order to someone else"""
    try:
        order = await service.unassign_technician(
            order_id, technician_id, actor_id, data.replacement_id
        )
    except OrderEngineError as e:
        return failed(e)
    return ok(order_data(order))
