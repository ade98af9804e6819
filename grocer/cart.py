"""Per-customer shopping cart.

A cart holds at most one line per product and never persists a zero
quantity. Every mutation is a single conditional update against the cart
document so concurrent requests for the same customer cannot lose writes.
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog
from pymongo.errors import DuplicateKeyError

from .catalog import CatalogService
from .database import CARTS, Database, to_object_id, utcnow
from .errors import InternalError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

# Attempts at the increment-or-push pair before giving up. Each miss means a
# concurrent request changed the line between the two updates.
ADD_ATTEMPTS = 3


def _check_quantity(quantity: Any, minimum: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity < minimum:
        raise ValidationError(f"quantity must be >= {minimum}")
    return quantity


class CartService:
    def __init__(self, database: Database, catalog: CatalogService):
        self.database = database
        self.catalog = catalog

    @property
    def carts(self):
        return self.database[CARTS]

    def _ensure_cart(self, user_id: str) -> None:
        now = utcnow()
        try:
            self.carts.update_one(
                {"userId": user_id},
                {"$setOnInsert": {"items": [], "createdAt": now}},
                upsert=True,
            )
        except DuplicateKeyError:
            # another request created the cart first
            pass

    def has_cart(self, user_id: str) -> bool:
        return self.carts.count_documents({"userId": user_id}, limit=1) > 0

    def lines(self, user_id: str) -> List[Dict[str, Any]]:
        cart = self.carts.find_one({"userId": user_id})
        if not cart:
            return []
        return [{"productId": i["productId"], "quantity": i["quantity"]} for i in cart.get("items", [])]

    def get_cart(self, user_id: str) -> List[Dict[str, Any]]:
        """Cart lines with product details joined in; [] when there is no cart."""
        lines = self.lines(user_id)
        products = self.catalog.find_products(line["productId"] for line in lines)
        out = []
        for line in lines:
            product = products.get(line["productId"])
            item = dict(line)
            if product:
                item["product"] = {
                    "id": str(product["_id"]),
                    "name": product.get("name"),
                    "price": product.get("price"),
                    "imageUrl": product.get("imageUrl"),
                    "vendorId": product.get("vendorId"),
                }
            else:
                item["product"] = None
            out.append(item)
        return out

    def add_item(self, user_id: str, product_id: str, quantity: int) -> List[Dict[str, Any]]:
        _check_quantity(quantity, 1)
        product = self.catalog.products.find_one({"_id": to_object_id(product_id, "product id")}, {"_id": 1})
        if not product:
            raise NotFoundError("Product not found")

        self._ensure_cart(user_id)
        for _ in range(ADD_ATTEMPTS):
            now = utcnow()
            res = self.carts.update_one(
                {"userId": user_id, "items.productId": product_id},
                {"$inc": {"items.$.quantity": quantity}, "$set": {"updatedAt": now}},
            )
            if res.matched_count:
                break
            res = self.carts.update_one(
                {"userId": user_id, "items.productId": {"$ne": product_id}},
                {"$push": {"items": {"productId": product_id, "quantity": quantity}}, "$set": {"updatedAt": now}},
            )
            if res.matched_count:
                break
        else:
            raise InternalError("Could not update cart, please retry")

        logger.info("cart_item_added", user_id=user_id, product_id=product_id, quantity=quantity)
        return self.get_cart(user_id)

    def set_quantity(self, user_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
        _check_quantity(quantity, 0)
        query = {"userId": user_id, "items.productId": product_id}
        now = utcnow()
        if quantity == 0:
            update = {"$pull": {"items": {"productId": product_id}}, "$set": {"updatedAt": now}}
        else:
            update = {"$set": {"items.$.quantity": quantity, "updatedAt": now}}
        res = self.carts.update_one(query, update)
        if res.matched_count == 0:
            raise NotFoundError("Item not found in cart")
        logger.info("cart_item_updated", user_id=user_id, product_id=product_id, quantity=quantity)
        return {"productId": product_id, "quantity": quantity, "removed": quantity == 0}

    def remove_item(self, user_id: str, product_id: str) -> None:
        """Remove a line; removing an absent line is not an error."""
        self.carts.update_one(
            {"userId": user_id},
            {"$pull": {"items": {"productId": product_id}}, "$set": {"updatedAt": utcnow()}},
        )

    def clear(self, user_id: str, product_ids: Optional[Iterable[str]] = None) -> None:
        if product_ids is None:
            update = {"$set": {"items": [], "updatedAt": utcnow()}}
        else:
            update = {
                "$pull": {"items": {"productId": {"$in": list(product_ids)}}},
                "$set": {"updatedAt": utcnow()},
            }
        self.carts.update_one({"userId": user_id}, update)
