"""Orders: creation from a cart or item list, status updates, listings.

An order stores a snapshot of each item's name, price and image at the time
it was placed. After creation only ``status`` and ``updatedAt`` change.
"""

from collections import OrderedDict
from typing import Any, Dict, List, Optional
from uuid import uuid4

import structlog
from pymongo import DESCENDING, ReturnDocument

from .auth import Identity
from .cart import CartService
from .catalog import CatalogService, require_fields
from .database import CUSTOMERS, ORDERS, Database, serialize_doc, to_object_id, utcnow
from .deliveries import DeliveryService
from .errors import ForbiddenError, NotFoundError, ValidationError
from .schemas import ORDER_STATUSES, Address, Order, OrderItem

logger = structlog.get_logger(__name__)

ORDER_REQUIRED_FIELDS = ("userId", "vendorId", "products", "totalAmount")
# statuses that mean the vendor has started fulfilling the order
FULFILLMENT_STATUSES = ("Preparing", "Out for Delivery")


def check_order_status(status: Any) -> str:
    if status not in ORDER_STATUSES:
        raise ValidationError("Invalid status value")
    return status


def _new_order_id() -> str:
    return f"ORD-{uuid4().hex[:8].upper()}"


def _summary(doc: Dict[str, Any]) -> Dict[str, Any]:
    item = serialize_doc(doc)
    item["itemCount"] = sum(i.get("quantity", 0) for i in doc.get("items", []))
    return item


class OrderService:
    def __init__(self, database: Database, catalog: CatalogService, carts: CartService, deliveries: DeliveryService):
        self.database = database
        self.catalog = catalog
        self.carts = carts
        self.deliveries = deliveries

    @property
    def orders(self):
        return self.database[ORDERS]

    def _customer_name(self, user_id: str) -> Optional[str]:
        try:
            customer = self.database[CUSTOMERS].find_one({"_id": to_object_id(user_id)}, {"name": 1})
        except ValidationError:
            return None
        return (customer or {}).get("name")

    def _snapshot_items(self, vendor_id: str, products: List[Dict[str, Any]]) -> List[OrderItem]:
        for entry in products:
            if not isinstance(entry, dict) or not entry.get("productId"):
                raise ValidationError("Each product needs a productId")
            quantity = entry.get("quantity")
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
                raise ValidationError(f"Invalid quantity for product {entry['productId']}")

        current = self.catalog.find_products(e["productId"] for e in products)
        items = []
        for entry in products:
            product = current.get(entry["productId"])
            if product is not None:
                if product.get("vendorId") != vendor_id:
                    raise ValidationError(f"Product {entry['productId']} is not sold by vendor {vendor_id}")
                name, price, image = product.get("name"), product.get("price"), product.get("imageUrl")
            elif entry.get("name") is not None and entry.get("price") is not None:
                name, price, image = entry["name"], entry["price"], entry.get("imageUrl")
            else:
                raise NotFoundError(f"Product not found: {entry['productId']}")
            items.append(OrderItem(
                productId=entry["productId"],
                quantity=entry["quantity"],
                price=price,
                name=name,
                imageUrl=image,
            ))
        return items

    def create_order(self, data: Dict[str, Any], identity: Optional[Identity] = None) -> Dict[str, Any]:
        require_fields(data, ORDER_REQUIRED_FIELDS)
        products = data["products"]
        if not isinstance(products, list) or not products:
            raise ValidationError("Products must be a non-empty array")
        if identity is not None and identity.role == "customer" and identity.id != data["userId"]:
            raise ForbiddenError("Customers can only place orders for themselves")
        try:
            total = float(data["totalAmount"])
        except (TypeError, ValueError):
            raise ValidationError("Invalid value for field 'totalAmount'")
        if total < 0:
            raise ValidationError("totalAmount must be >= 0")

        address = data.get("deliveryAddress")
        order = Order(
            orderId=_new_order_id(),
            userId=data["userId"],
            vendorId=data["vendorId"],
            customerName=data.get("customerName") or self._customer_name(data["userId"]),
            items=self._snapshot_items(data["vendorId"], products),
            totalAmount=total,
            deliveryAddress=Address(**address) if isinstance(address, dict) else address,
        )
        new_id = self.database.create_document(ORDERS, order)
        logger.info("order_created", order_id=new_id, user_id=order.userId, vendor_id=order.vendorId, total=total)
        return serialize_doc(self.orders.find_one({"_id": to_object_id(new_id)}))

    def checkout(self, user_id: str, customer_name: Optional[str] = None, delivery_address: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Turn the customer's cart into one order per vendor and drop the ordered lines."""
        lines = self.carts.lines(user_id)
        if not lines:
            raise ValidationError("Cart is empty")
        products = self.catalog.find_products(line["productId"] for line in lines)

        by_vendor: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
        for line in lines:
            product = products.get(line["productId"])
            if product is None or product.get("isAvailable") is False:
                raise ValidationError(f"Product is no longer available: {line['productId']}")
            by_vendor.setdefault(product["vendorId"], []).append(line)

        created = []
        for vendor_id, vendor_lines in by_vendor.items():
            total = round(sum(products[l["productId"]]["price"] * l["quantity"] for l in vendor_lines), 2)
            created.append(self.create_order({
                "userId": user_id,
                "vendorId": vendor_id,
                "products": vendor_lines,
                "totalAmount": total,
                "customerName": customer_name,
                "deliveryAddress": delivery_address,
            }))
        self.carts.clear(user_id, [line["productId"] for line in lines])
        logger.info("cart_checked_out", user_id=user_id, orders=len(created))
        return created

    def get_order(self, order_id: str, identity: Identity) -> Dict[str, Any]:
        owner_field = "vendorId" if identity.role == "vendor" else "userId"
        doc = self.orders.find_one({"_id": to_object_id(order_id, "order id"), owner_field: identity.id})
        if not doc:
            raise NotFoundError("Order not found")
        return serialize_doc(doc)

    def update_status(self, order_id: str, new_status: Any, acting_vendor_id: Optional[str] = None) -> Dict[str, Any]:
        status = check_order_status(new_status)
        query: Dict[str, Any] = {"_id": to_object_id(order_id, "order id")}
        if acting_vendor_id is not None:
            query["vendorId"] = acting_vendor_id
        before = self.orders.find_one_and_update(
            query,
            {"$set": {"status": status, "updatedAt": utcnow()}},
            return_document=ReturnDocument.BEFORE,
        )
        if before is None:
            raise NotFoundError("Order not found or access denied")
        logger.info("order_status_changed", order_id=order_id, status=status, previous=before.get("status"))

        if status in FULFILLMENT_STATUSES:
            self.deliveries.create_for_order(dict(before, status=status))
        return {"success": True, "updated": before.get("status") != status}

    def list_orders_for_vendor(self, vendor_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"vendorId": vendor_id}
        if status:
            query["status"] = check_order_status(status)
        return [_summary(d) for d in self.orders.find(query).sort("createdAt", DESCENDING)]

    def list_orders_for_customer(self, customer_id: str, page: int = 1, limit: int = 10, status: Optional[str] = None) -> Dict[str, Any]:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be >= 1")
        query: Dict[str, Any] = {"userId": customer_id}
        if status:
            query["status"] = check_order_status(status)
        total = self.orders.count_documents(query)
        cursor = self.orders.find(query).sort("createdAt", DESCENDING).skip((page - 1) * limit).limit(limit)
        return {
            "items": [_summary(d) for d in cursor],
            "total": total,
            "page": page,
            "pages": (total + limit - 1) // limit,
        }
