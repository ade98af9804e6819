"""Vendor catalog: products and categories.

Every vendor mutation filters on ``vendorId`` as well as ``_id``; a document
owned by someone else is indistinguishable from a missing one.
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError
from pymongo import DESCENDING, ReturnDocument

from .database import CATEGORIES, PRODUCTS, Database, serialize_doc, to_object_id, utcnow
from .errors import MissingFieldError, NotFoundError, ValidationError
from .schemas import Category, Product

logger = structlog.get_logger(__name__)

PRODUCT_REQUIRED_FIELDS = ("name", "category", "price", "stock", "imageUrl", "vendorId")
PRODUCT_UPDATABLE_FIELDS = {
    "name", "description", "category", "categoryId", "price", "stock",
    "unit", "imageUrl", "isAvailable", "tags",
}
CATEGORY_UPDATABLE_FIELDS = {"name", "color", "bgColor", "icon", "subcategories"}
PROTECTED_FIELDS = {"_id", "id", "vendorId", "createdAt", "updatedAt"}


def require_fields(data: Dict[str, Any], fields: Iterable[str]) -> None:
    for field in fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise MissingFieldError(field)


def _clean_patch(patch: Dict[str, Any], allowed: set) -> Dict[str, Any]:
    return {
        k: v for k, v in patch.items()
        if k in allowed and k not in PROTECTED_FIELDS and v is not None
    }


def _check_bounds(data: Dict[str, Any]) -> None:
    for field, cast in (("price", float), ("stock", int)):
        if field not in data:
            continue
        try:
            value = cast(data[field])
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid value for field '{field}'")
        if value < 0:
            raise ValidationError(f"{field} must be >= 0")
        data[field] = value


class CatalogService:
    def __init__(self, database: Database):
        self.database = database

    @property
    def products(self):
        return self.database[PRODUCTS]

    @property
    def categories(self):
        return self.database[CATEGORIES]

    # -------------------------
    # Products
    # -------------------------

    def list_available_products(self, category: Optional[str] = None, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        query: Dict[str, Any] = {"isAvailable": {"$ne": False}}
        if category:
            query["category"] = category
        total = self.products.count_documents(query)
        cursor = (
            self.products.find(query)
            .sort("createdAt", DESCENDING)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        items = self._with_category_names(list(cursor))
        return {"items": items, "total": total, "page": page, "pages": (total + limit - 1) // limit}

    def get_product(self, product_id: str) -> Dict[str, Any]:
        doc = self.products.find_one({"_id": to_object_id(product_id, "product id")})
        if not doc:
            raise NotFoundError("Product not found")
        return self._with_category_names([doc])[0]

    def find_products(self, product_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """Load products by id; ids that do not resolve are simply absent."""
        object_ids = [to_object_id(pid, "product id") for pid in set(product_ids)]
        if not object_ids:
            return {}
        return {str(doc["_id"]): doc for doc in self.products.find({"_id": {"$in": object_ids}})}

    def list_vendor_products(self, vendor_id: str) -> List[Dict[str, Any]]:
        docs = list(self.products.find({"vendorId": vendor_id}).sort("createdAt", DESCENDING))
        return self._with_category_names(docs)

    def get_vendor_product(self, product_id: str, vendor_id: str) -> Dict[str, Any]:
        doc = self.products.find_one({"_id": to_object_id(product_id, "product id"), "vendorId": vendor_id})
        if not doc:
            raise NotFoundError("Product not found or you do not have permission to view it")
        return serialize_doc(doc)

    def create_product(self, vendor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        data = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS and v is not None}
        data["vendorId"] = vendor_id
        require_fields(data, PRODUCT_REQUIRED_FIELDS)
        _check_bounds(data)
        if int(data["stock"]) > 0:
            data["lastRestocked"] = utcnow()
        try:
            product = Product(**data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid product: {e.errors()[0]['msg']}")
        new_id = self.database.create_document(PRODUCTS, product)
        logger.info("product_created", product_id=new_id, vendor_id=vendor_id)
        return serialize_doc(self.products.find_one({"_id": to_object_id(new_id)}))

    def update_product(self, product_id: str, vendor_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        data = _clean_patch(patch, PRODUCT_UPDATABLE_FIELDS)
        if not data:
            raise ValidationError("No fields to update")
        _check_bounds(data)
        now = utcnow()
        data["updatedAt"] = now
        query = {"_id": to_object_id(product_id, "product id"), "vendorId": vendor_id}

        if "stock" in data:
            # A restock is a strict increase over the stored value; checking it in
            # the filter keeps the comparison and the write in one operation.
            restock = dict(data, lastRestocked=now)
            doc = self.products.find_one_and_update(
                dict(query, stock={"$lt": data["stock"]}),
                {"$set": restock},
                return_document=ReturnDocument.AFTER,
            )
            if doc:
                logger.info("product_restocked", product_id=product_id, stock=data["stock"])
                return serialize_doc(doc)

        doc = self.products.find_one_and_update(query, {"$set": data}, return_document=ReturnDocument.AFTER)
        if not doc:
            raise NotFoundError("Product not found or you do not have permission to update it")
        return serialize_doc(doc)

    def delete_product(self, product_id: str, vendor_id: str) -> None:
        res = self.products.delete_one({"_id": to_object_id(product_id, "product id"), "vendorId": vendor_id})
        if res.deleted_count == 0:
            raise NotFoundError("Product not found or you do not have permission to delete it")
        logger.info("product_deleted", product_id=product_id, vendor_id=vendor_id)

    def _with_category_names(self, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        category_ids = {d["categoryId"] for d in docs if d.get("categoryId")}
        names: Dict[str, str] = {}
        valid = [to_object_id(c) for c in category_ids if _is_object_id(c)]
        if valid:
            names = {str(c["_id"]): c.get("name") for c in self.categories.find({"_id": {"$in": valid}})}
        out = []
        for doc in docs:
            item = serialize_doc(doc)
            # a deleted category leaves the reference dangling
            item["categoryName"] = names.get(doc.get("categoryId")) if doc.get("categoryId") else None
            out.append(item)
        return out

    # -------------------------
    # Categories
    # -------------------------

    def list_public_categories(self) -> List[Dict[str, Any]]:
        return [serialize_doc(c) for c in self.categories.find().sort("name", 1)]

    def list_categories(self, vendor_id: str) -> List[Dict[str, Any]]:
        categories = list(self.categories.find({"vendorId": vendor_id}))
        if not categories:
            return []
        category_ids = [str(c["_id"]) for c in categories]
        counts = self.products.aggregate([
            {"$match": {"vendorId": vendor_id, "categoryId": {"$in": category_ids}}},
            {"$group": {"_id": "$categoryId", "count": {"$sum": 1}}},
        ])
        count_map = {row["_id"]: row["count"] for row in counts}
        out = []
        for category in categories:
            item = serialize_doc(category)
            item["productCount"] = count_map.get(item["id"], 0)
            out.append(item)
        return out

    def create_category(self, vendor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if not (data.get("name") or "").strip():
            raise ValidationError("Category name is required")
        fields = _clean_patch(data, CATEGORY_UPDATABLE_FIELDS)
        category = Category(vendorId=vendor_id, **fields)
        new_id = self.database.create_document(CATEGORIES, category)
        logger.info("category_created", category_id=new_id, vendor_id=vendor_id)
        item = serialize_doc(self.categories.find_one({"_id": to_object_id(new_id)}))
        item["productCount"] = 0
        return item

    def update_category(self, category_id: str, vendor_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        data = _clean_patch(patch, CATEGORY_UPDATABLE_FIELDS)
        if not data:
            raise ValidationError("Update data is required")
        data["updatedAt"] = utcnow()
        res = self.categories.update_one(
            {"_id": to_object_id(category_id, "category id"), "vendorId": vendor_id},
            {"$set": data},
        )
        if res.matched_count == 0:
            raise NotFoundError("Category not found or you do not have permission to update it")
        return {"message": "Category updated successfully", "updated": res.modified_count > 0}

    def delete_category(self, category_id: str, vendor_id: str) -> None:
        res = self.categories.delete_one({"_id": to_object_id(category_id, "category id"), "vendorId": vendor_id})
        if res.deleted_count == 0:
            raise NotFoundError("Category not found or you do not have permission to delete it")
        logger.info("category_deleted", category_id=category_id, vendor_id=vendor_id)

    def list_category_products(self, category_id: str, vendor_id: str) -> List[Dict[str, Any]]:
        docs = self.products.find({"categoryId": category_id, "vendorId": vendor_id})
        return [serialize_doc(d) for d in docs]


def _is_object_id(value: Any) -> bool:
    try:
        to_object_id(value)
    except ValidationError:
        return False
    return True
