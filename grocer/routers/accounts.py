"""Sign-up/sign-in plus customer and vendor profile routes."""

from datetime import timedelta

from fastapi import APIRouter, Depends, Request, Response

from ..auth import SESSION_KEY, TOKEN_COOKIE, Identity, require_customer, require_identity, require_vendor
from ..config import Settings
from ..schemas import (
    Address,
    CustomerProfileUpdate,
    PhoneNumberIn,
    SigninIn,
    SignupIn,
    StoreSettingsUpdate,
    VendorProfileUpdate,
)
from ..services import Services, get_services

router = APIRouter(prefix="/api")


def _start_session(request: Request, response: Response, result: dict) -> dict:
    settings: Settings = request.app.state.settings
    # no session middleware when no signing secret is configured
    if "session" in request.scope:
        request.session[SESSION_KEY] = {"id": result["user"]["id"], "role": result["user"]["role"]}
    response.set_cookie(
        TOKEN_COOKIE,
        result["token"],
        max_age=int(timedelta(days=settings.jwt_expires_days).total_seconds()),
        httponly=True,
        samesite="lax",
    )
    return result


@router.post("/auth/signup", status_code=201)
def signup(payload: SignupIn, request: Request, response: Response, services: Services = Depends(get_services)):
    result = services.accounts.signup(payload.name, payload.email, payload.password, payload.role)
    return dict(_start_session(request, response, result), message="User created successfully")


@router.post("/auth/signin")
def signin(payload: SigninIn, request: Request, response: Response, services: Services = Depends(get_services)):
    result = services.accounts.signin(payload.email, payload.password, payload.role)
    return dict(_start_session(request, response, result), message="Signed in successfully")


@router.post("/auth/signout")
def signout(request: Request, response: Response):
    if "session" in request.scope:
        request.session.clear()
    response.delete_cookie(TOKEN_COOKIE)
    return {"success": True}


@router.get("/auth/me")
def me(identity: Identity = Depends(require_identity), services: Services = Depends(get_services)):
    return services.accounts.profile(identity)


# -------------------------
# Customer profile
# -------------------------

@router.put("/customer/profile")
def update_customer_profile(payload: CustomerProfileUpdate, identity: Identity = Depends(require_customer), services: Services = Depends(get_services)):
    return services.accounts.update_customer_profile(identity.id, payload.model_dump())


@router.post("/customer/profile/phone", status_code=201)
def add_phone_number(payload: PhoneNumberIn, identity: Identity = Depends(require_customer), services: Services = Depends(get_services)):
    phone = services.accounts.add_phone_number(identity.id, payload.number, payload.type)
    return {"message": "Phone number added successfully", "phone": phone}


@router.post("/customer/profile/address", status_code=201)
def add_address(payload: Address, identity: Identity = Depends(require_customer), services: Services = Depends(get_services)):
    address = services.accounts.add_address(identity.id, payload.model_dump())
    return {"message": "Address added successfully", "address": address}


@router.delete("/customer/profile/address/{address_id}")
def remove_address(address_id: str, identity: Identity = Depends(require_customer), services: Services = Depends(get_services)):
    services.accounts.remove_address(identity.id, address_id)
    return {"message": "Address deleted successfully"}


# -------------------------
# Vendor profile & store settings
# -------------------------

@router.put("/vendor/profile")
def update_vendor_profile(payload: VendorProfileUpdate, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    vendor = services.accounts.update_vendor_profile(identity.id, payload.model_dump(exclude_none=True))
    return {"message": "Profile updated successfully", "vendor": vendor}


@router.get("/vendor/settings")
def store_settings(identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.accounts.store_settings(identity.id)


@router.put("/vendor/settings")
def update_store_settings(payload: StoreSettingsUpdate, identity: Identity = Depends(require_vendor), services: Services = Depends(get_services)):
    return services.accounts.update_store_settings(identity.id, payload.model_dump(exclude_none=True))
