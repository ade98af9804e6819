"""Identity resolution, tokens and account sign-up/sign-in.

A caller is identified by the session first, then by a bearer token in the
Authorization header, then by the ``token`` cookie. Sessions are only
trusted when a signing secret is configured. Every protected route resolves
the identity through the dependencies defined here.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
import jwt
import structlog
from bson import ObjectId
from fastapi import Depends, Request
from pydantic import ValidationError as PydanticValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from .config import Settings
from .database import CUSTOMERS, VENDORS, Database, serialize_doc, to_object_id, utcnow
from .errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from .schemas import Address, Customer, StoreSettings, Vendor

logger = structlog.get_logger(__name__)

ROLES = ("vendor", "customer")
ROLE_COLLECTIONS = {"vendor": VENDORS, "customer": CUSTOMERS}
TOKEN_ALGORITHM = "HS256"
TOKEN_COOKIE = "token"
SESSION_KEY = "user"


@dataclass(frozen=True)
class Identity:
    id: str
    role: str


# -------------------------
# Passwords and tokens
# -------------------------

def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        return False


def issue_token(settings: Settings, user_id: str, role: str, **claims: Any) -> str:
    if not settings.jwt_secret:
        raise InternalError("JWT_SECRET is not configured")
    payload = dict(claims)
    payload.update({
        "_id": user_id,
        "role": role,
        "exp": utcnow() + timedelta(days=settings.jwt_expires_days),
    })
    return jwt.encode(payload, settings.jwt_secret, algorithm=TOKEN_ALGORITHM)


def decode_token(settings: Settings, token: str) -> Dict[str, Any]:
    if not settings.jwt_secret:
        raise UnauthenticatedError("Invalid or expired token")
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[TOKEN_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.info("token_rejected", reason=str(e))
        raise UnauthenticatedError("Invalid or expired token")
    if not payload.get("_id"):
        raise UnauthenticatedError("Invalid token payload")
    return payload


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def resolve_identity(request: Request, settings: Settings) -> Identity:
    """Return the caller's identity or raise UnauthenticatedError."""
    if settings.jwt_secret and "session" in request.scope:
        user = request.session.get(SESSION_KEY) or {}
        if user.get("id") and user.get("role") in ROLES:
            return Identity(id=str(user["id"]), role=user["role"])

    token = _bearer_token(request) or request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise UnauthenticatedError("Authentication token missing")
    payload = decode_token(settings, token)
    role = payload.get("role")
    if role not in ROLES:
        raise UnauthenticatedError("Invalid token payload")
    return Identity(id=str(payload["_id"]), role=role)


# -------------------------
# FastAPI dependencies
# -------------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_identity(request: Request, settings: Settings = Depends(get_settings)) -> Identity:
    return resolve_identity(request, settings)


def require_role(role: str):
    def dependency(identity: Identity = Depends(require_identity)) -> Identity:
        if identity.role != role:
            raise ForbiddenError(f"Forbidden: access restricted to {role}s")
        return identity

    return dependency


require_vendor = require_role("vendor")
require_customer = require_role("customer")


# -------------------------
# Accounts
# -------------------------

def _check_role(role: str) -> str:
    if role not in ROLES:
        raise ValidationError('Invalid role. Must be either "vendor" or "customer"')
    return role


def _public_user(doc: Dict[str, Any], role: str) -> Dict[str, Any]:
    user = serialize_doc({k: v for k, v in doc.items() if k != "password"})
    user["role"] = role
    return user


class AccountService:
    def __init__(self, database: Database, settings: Settings):
        self.database = database
        self.settings = settings

    def _email_taken(self, email: str) -> bool:
        return any(
            self.database[name].find_one({"email": email}, {"_id": 1}) is not None
            for name in ROLE_COLLECTIONS.values()
        )

    def _session_result(self, doc: Dict[str, Any], role: str) -> Dict[str, Any]:
        user = _public_user(doc, role)
        token = issue_token(self.settings, user["id"], role, name=user.get("name"), email=user.get("email"))
        return {"token": token, "user": user}

    def signup(self, name: str, email: str, password: str, role: str) -> Dict[str, Any]:
        _check_role(role)
        email = (email or "").strip().lower()
        if not name or not email or not password:
            raise ValidationError("Missing required fields")
        if self._email_taken(email):
            raise ConflictError("Email already exists")

        model = Vendor if role == "vendor" else Customer
        try:
            account = model(name=name, email=email, password=hash_password(password, self.settings.bcrypt_rounds))
        except PydanticValidationError:
            raise ValidationError(f"Invalid email address: {email}")

        collection = ROLE_COLLECTIONS[role]
        try:
            user_id = self.database.create_document(collection, account)
        except DuplicateKeyError:
            raise ConflictError("Email already exists")
        logger.info("account_created", role=role, user_id=user_id)
        doc = self.database[collection].find_one({"_id": to_object_id(user_id)})
        return self._session_result(doc, role)

    def signin(self, email: str, password: str, role: str) -> Dict[str, Any]:
        _check_role(role)
        email = (email or "").strip().lower()
        if not email or not password:
            raise ValidationError("Email, password, and role are required")
        doc = self.database[ROLE_COLLECTIONS[role]].find_one({"email": email})
        if not doc or not verify_password(password, doc.get("password", "")):
            logger.info("signin_failed", role=role)
            raise UnauthenticatedError(f"Invalid credentials for {role}")
        logger.info("signin_succeeded", role=role, user_id=str(doc["_id"]))
        return self._session_result(doc, role)

    def profile(self, identity: Identity) -> Dict[str, Any]:
        doc = self.database[ROLE_COLLECTIONS[identity.role]].find_one({"_id": to_object_id(identity.id, "user id")})
        if not doc:
            raise NotFoundError(f"{identity.role.capitalize()} not found")
        return _public_user(doc, identity.role)

    # -------------------------
    # Profile management
    # -------------------------

    def _set_fields(self, role: str, user_id: str, fields: Dict[str, Any]) -> bool:
        """$set fields on an account; return whether any value changed."""
        before = self.database[ROLE_COLLECTIONS[role]].find_one_and_update(
            {"_id": to_object_id(user_id, "user id")},
            {"$set": dict(fields, updatedAt=utcnow())},
            return_document=ReturnDocument.BEFORE,
        )
        if before is None:
            raise NotFoundError(f"{role.capitalize()} not found")
        logger.info("profile_updated", role=role, user_id=user_id, fields=sorted(fields))
        return any(before.get(k) != v for k, v in fields.items())

    def update_customer_profile(self, customer_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Name is required; email changes are ignored."""
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Name is required")
        fields = {"name": name}
        if data.get("phone") is not None:
            fields["phone"] = str(data["phone"]).strip()
        self._set_fields("customer", customer_id, fields)
        return {"success": True}

    def add_phone_number(self, customer_id: str, number: str, kind: str = "secondary") -> Dict[str, Any]:
        number = (number or "").strip()
        if not number:
            raise ValidationError("Phone number is required")
        entry = {"_id": ObjectId(), "number": number, "type": kind or "secondary"}
        res = self.database[CUSTOMERS].update_one(
            {"_id": to_object_id(customer_id, "user id")},
            {"$push": {"phoneNumbers": entry}, "$set": {"updatedAt": utcnow()}},
        )
        if res.matched_count == 0:
            raise NotFoundError("Customer not found")
        return serialize_doc(entry)

    def add_address(self, customer_id: str, address: Dict[str, Any]) -> Dict[str, Any]:
        try:
            entry = dict(Address(**address).model_dump(), _id=ObjectId())
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid address: {e.errors()[0]['msg']}")
        res = self.database[CUSTOMERS].update_one(
            {"_id": to_object_id(customer_id, "user id")},
            {"$push": {"addresses": entry}, "$set": {"updatedAt": utcnow()}},
        )
        if res.matched_count == 0:
            raise NotFoundError("Customer not found")
        logger.info("address_added", user_id=customer_id, address_id=str(entry["_id"]))
        return serialize_doc(entry)

    def remove_address(self, customer_id: str, address_id: str) -> None:
        res = self.database[CUSTOMERS].update_one(
            {"_id": to_object_id(customer_id, "user id")},
            {"$pull": {"addresses": {"_id": to_object_id(address_id, "address id")}}},
        )
        if res.modified_count == 0:
            raise NotFoundError("Address not found or failed to delete")
        logger.info("address_removed", user_id=customer_id, address_id=address_id)

    def update_vendor_profile(self, vendor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: str(data[k]).strip() for k in ("name", "phone") if data.get(k) is not None}
        if not fields:
            raise ValidationError("No update fields provided")
        if "name" in fields and not fields["name"]:
            raise ValidationError("Name cannot be empty")
        self._set_fields("vendor", vendor_id, fields)
        return self.profile(Identity(id=vendor_id, role="vendor"))

    def store_settings(self, vendor_id: str) -> Dict[str, Any]:
        doc = self.database[VENDORS].find_one({"_id": to_object_id(vendor_id, "user id")})
        if not doc:
            raise NotFoundError("Vendor not found")
        stored = {k: doc[k] for k in StoreSettings.model_fields if doc.get(k) is not None}
        settings = StoreSettings(**stored).model_dump()
        settings.update(
            storeId=f"STORE-{vendor_id[:5]}",
            email=doc.get("email"),
            isApproved=doc.get("isApproved", False),
        )
        return settings

    def update_store_settings(self, vendor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: data[k] for k in StoreSettings.model_fields if data.get(k) is not None}
        if not fields:
            raise ValidationError("Missing update data")
        updated = self._set_fields("vendor", vendor_id, fields)
        return {"message": "Settings updated successfully", "updated": updated}
