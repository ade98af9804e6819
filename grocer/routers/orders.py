from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth import Identity, require_customer, require_identity, require_vendor
from ..schemas import OrderCreate, OrderStatusUpdate
from ..services import Services, get_services

router = APIRouter(prefix="/api")


@router.post("/orders", status_code=201)
def create_order(payload: OrderCreate, identity: Identity = Depends(require_identity), services: Services = Depends(get_services)):
    return services.orders.create_order(payload.model_dump(), identity)


@router.get("/orders/{order_id}")
def get_order(order_id: str, identity: Identity = Depends(require_identity), services: Services = Depends(get_services)):
    return services.orders.get_order(order_id, identity)


@router.patch("/orders/{order_id}")
def update_order_status(order_id: str, payload: OrderStatusUpdate, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.orders.update_status(order_id, payload.status, identity.id)


@router.get("/customer/orders")
def customer_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    identity: Identity = Depends(require_customer),
    services: Services = Depends(get_services),
):
    return services.orders.list_orders_for_customer(identity.id, page, limit, status)


@router.get("/vendor/orders")
def vendor_orders(status: Optional[str] = None, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.orders.list_orders_for_vendor(identity.id, status)
