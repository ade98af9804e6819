"""Public catalog and vendor inventory routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth import Identity, require_vendor
from ..schemas import CategoryCreate, CategoryUpdate, ProductCreate, ProductUpdate
from ..services import Services, get_services

router = APIRouter(prefix="/api")


# -------------------------
# Public catalog
# -------------------------

@router.get("/products")
def list_products(
    category: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    services: Services = Depends(get_services),
):
    return services.catalog.list_available_products(category, page, limit)


@router.get("/products/{product_id}")
def get_product(product_id: str, services: Services = Depends(get_services)):
    return services.catalog.get_product(product_id)


@router.get("/categories")
def list_categories(services: Services = Depends(get_services)):
    return services.catalog.list_public_categories()


# -------------------------
# Vendor categories (declared before /vendor/inventory/{product_id})
# -------------------------

@router.get("/vendor/inventory/categories")
def vendor_categories(identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.catalog.list_categories(identity.id)


@router.post("/vendor/inventory/categories", status_code=201)
def create_category(payload: CategoryCreate, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.catalog.create_category(identity.id, payload.model_dump(exclude_none=True))


@router.put("/vendor/inventory/categories/{category_id}")
def update_category(category_id: str, payload: CategoryUpdate, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.catalog.update_category(category_id, identity.id, payload.model_dump(exclude_none=True))


@router.delete("/vendor/inventory/categories/{category_id}")
def delete_category(category_id: str, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    services.catalog.delete_category(category_id, identity.id)
    return {"message": "Category deleted successfully", "deleted": True}


@router.get("/vendor/inventory/categories/{category_id}/products")
def category_products(category_id: str, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.catalog.list_category_products(category_id, identity.id)


# -------------------------
# Vendor products
# -------------------------

@router.get("/vendor/inventory")
def vendor_inventory(identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.catalog.list_vendor_products(identity.id)


@router.post("/vendor/inventory", status_code=201)
def create_product(payload: ProductCreate, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    product = services.catalog.create_product(identity.id, payload.model_dump(exclude_none=True))
    return {"message": "Product created successfully", "product": product}


@router.get("/vendor/inventory/{product_id}")
def vendor_product(product_id: str, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.catalog.get_vendor_product(product_id, identity.id)


@router.put("/vendor/inventory/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    product = services.catalog.update_product(product_id, identity.id, payload.model_dump(exclude_none=True))
    return {"message": "Product updated successfully", "product": product}


@router.delete("/vendor/inventory/{product_id}")
def delete_product(product_id: str, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    services.catalog.delete_product(product_id, identity.id)
    return {"message": "Product deleted successfully", "deleted": True}
