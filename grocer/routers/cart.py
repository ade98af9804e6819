from fastapi import APIRouter, Depends

from ..auth import Identity, require_customer
from ..errors import NotFoundError
from ..schemas import CartAdd, CartRemove, CartUpdate, CheckoutIn
from ..services import Services, get_services

router = APIRouter(prefix="/api/cart")


@router.get("")
def get_cart(identity: Identity = Depends(require_customer), services: Services = Depends(get_services)):
    return services.carts.get_cart(identity.id)


@router.post("")
def add_to_cart(payload: CartAdd, identity: Identity = Depends(require_customer), services: Services = Depends(get_services)):
    items = services.carts.add_item(identity.id, payload.productId, payload.quantity)
    return {"success": True, "items": items}


@router.put("")
def update_cart(payload: CartUpdate, identity: Identity = Depends(require_customer), services: Services = Depends(get_services)):
    return services.carts.set_quantity(identity.id, payload.itemId, payload.quantity)


@router.delete("")
def remove_from_cart(payload: CartRemove, identity: Identity = Depends(require_customer), services: Services = Depends(get_services)):
    if not services.carts.has_cart(identity.id):
        raise NotFoundError("Cart not found")
    services.carts.remove_item(identity.id, payload.productId)
    return {"success": True, "items": services.carts.get_cart(identity.id)}


@router.post("/checkout", status_code=201)
def checkout(payload: CheckoutIn, identity: Identity = Depends(require_customer), services: Services = Depends(get_services)):
    address = payload.deliveryAddress.model_dump() if payload.deliveryAddress else None
    orders = services.orders.checkout(identity.id, payload.customerName, address)
    return {"orders": orders}
