"""
Database Schemas for the Grocer marketplace

Each collection model below describes the documents stored in MongoDB; the
request models further down describe API payloads.

Collections:
- customers / vendors (accounts, one collection per role)
- products, categories (vendor catalog)
- carts (one per customer)
- orders
- deliveries (one per order)
- deliveryAgents (vendor courier roster)
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["vendor", "customer"]

ORDER_STATUSES = ["Pending", "Preparing", "Out for Delivery", "Delivered", "Cancelled"]
VEHICLE_TYPES = ["Bike", "Car", "Scooter", "Other"]
PACKAGE_SIZES = ["Small", "Medium", "Large"]

PackageSize = Literal["Small", "Medium", "Large"]


# -------------------------
# Collection models
# -------------------------

class Address(BaseModel):
    street: str = Field("", description="Street and house number")
    city: str = Field("", description="City")
    postalCode: str = Field("", description="Postal / ZIP code")


class PhoneNumber(BaseModel):
    number: str
    type: str = "secondary"


class BusinessHours(BaseModel):
    day: str
    open: str = Field(..., description="HH:MM")
    close: str = Field(..., description="HH:MM")
    enabled: bool = True


def _default_business_hours() -> List[BusinessHours]:
    weekdays = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
    hours = [BusinessHours(day=d, open="08:00", close="22:00") for d in weekdays]
    hours.append(BusinessHours(day="Saturday", open="09:00", close="20:00"))
    hours.append(BusinessHours(day="Sunday", open="10:00", close="18:00", enabled=False))
    return hours


class DeliverySettings(BaseModel):
    deliveryRadius: float = Field(5, ge=0, description="Kilometres")
    freeDelivery: bool = True
    freeDeliveryThreshold: float = Field(500, ge=0)
    expressDelivery: bool = False
    expressDeliveryTime: int = Field(30, ge=0, description="Minutes")


class Account(BaseModel):
    name: str = Field(..., description="Display name")
    email: EmailStr = Field(..., description="Login email, stored lowercase")
    password: str = Field(..., description="bcrypt hash")


class Customer(Account):
    phone: str = ""
    phoneNumbers: List[PhoneNumber] = Field(default_factory=list)
    addresses: List[Address] = Field(default_factory=list)


class StoreSettings(BaseModel):
    """Vendor store settings; missing values fall back to these defaults."""
    storeName: str = ""
    storeDescription: str = ""
    phone: str = ""
    businessHours: List[BusinessHours] = Field(default_factory=_default_business_hours)
    deliverySettings: DeliverySettings = Field(default_factory=DeliverySettings)


class Vendor(Account, StoreSettings):
    isApproved: bool = False


class Product(BaseModel):
    name: str = Field(..., description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    category: str = Field(..., description="Category label")
    categoryId: Optional[str] = Field(None, description="Weak reference to a vendor category")
    price: float = Field(..., ge=0, description="Unit price")
    stock: int = Field(..., ge=0, description="Units in stock")
    unit: Optional[str] = Field(None, description="e.g. kg, piece, litre")
    vendorId: str = Field(..., description="Owning vendor")
    imageUrl: str = Field(..., description="Public image URL")
    isAvailable: bool = Field(True, description="Listed in the public catalog")
    tags: List[str] = Field(default_factory=list)
    lastRestocked: Optional[datetime] = None


class Category(BaseModel):
    vendorId: str
    name: str
    color: str = "text-blue-500"
    bgColor: str = "bg-blue-50"
    icon: str = "ShoppingBasket"
    subcategories: List[str] = Field(default_factory=list)


class CartItem(BaseModel):
    productId: str
    quantity: int = Field(..., ge=1)


class Cart(BaseModel):
    userId: str
    items: List[CartItem] = Field(default_factory=list)


class OrderItem(BaseModel):
    productId: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price at order time")
    name: str = Field(..., description="Product name at order time")
    imageUrl: Optional[str] = None


class Order(BaseModel):
    orderId: str = Field(..., description="Customer-facing order reference")
    userId: str
    vendorId: str
    customerName: Optional[str] = None
    items: List[OrderItem]
    totalAmount: float = Field(..., ge=0)
    deliveryAddress: Optional[Address] = None
    status: Literal["Pending", "Preparing", "Out for Delivery", "Delivered", "Cancelled"] = "Pending"


class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class Delivery(BaseModel):
    deliveryId: str
    orderId: str
    vendorId: str
    customerId: str
    customerName: str
    customerAddress: Address
    customerPhone: Optional[str] = None
    assignedAgentId: Optional[str] = None
    status: str = "Pending Assignment"
    estimatedDeliveryTime: Optional[datetime] = None
    actualDeliveryTime: Optional[datetime] = None
    lastLocationUpdate: Optional[datetime] = None
    currentLocation: Optional[Location] = None
    deliveryNotes: Optional[str] = None
    orderValue: Optional[float] = None
    packageSize: Optional[PackageSize] = None


class DeliveryAgent(BaseModel):
    vendorId: str
    name: str
    phone: str
    vehicleType: Literal["Bike", "Car", "Scooter", "Other"] = "Bike"
    vehicleDetails: Optional[str] = None
    isActive: bool = True


# -------------------------
# Request payloads
# -------------------------

class SignupIn(BaseModel):
    name: str
    email: str
    password: str = Field(..., min_length=6)
    role: str


class SigninIn(BaseModel):
    email: str
    password: str
    role: str


class CustomerProfileUpdate(BaseModel):
    name: str
    phone: Optional[str] = None


class PhoneNumberIn(BaseModel):
    number: str
    type: str = "secondary"


class VendorProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None


class StoreSettingsUpdate(BaseModel):
    storeName: Optional[str] = None
    storeDescription: Optional[str] = None
    phone: Optional[str] = None
    businessHours: Optional[List[BusinessHours]] = None
    deliverySettings: Optional[DeliverySettings] = None


class ProductCreate(BaseModel):
    name: str
    category: str
    price: float = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    imageUrl: str
    description: Optional[str] = None
    categoryId: Optional[str] = None
    unit: Optional[str] = None
    isAvailable: Optional[bool] = None
    tags: Optional[List[str]] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    categoryId: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    unit: Optional[str] = None
    imageUrl: Optional[str] = None
    isAvailable: Optional[bool] = None
    tags: Optional[List[str]] = None


class CategoryCreate(BaseModel):
    name: str
    color: Optional[str] = None
    bgColor: Optional[str] = None
    icon: Optional[str] = None
    subcategories: Optional[List[str]] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    bgColor: Optional[str] = None
    icon: Optional[str] = None
    subcategories: Optional[List[str]] = None


class CartAdd(BaseModel):
    productId: str
    quantity: int = Field(..., gt=0)


class CartUpdate(BaseModel):
    itemId: str = Field(..., description="Product id of the cart line")
    quantity: int = Field(..., ge=0, description="0 removes the line")


class CartRemove(BaseModel):
    productId: str


class CheckoutIn(BaseModel):
    customerName: Optional[str] = None
    deliveryAddress: Optional[Address] = None


class OrderItemIn(BaseModel):
    productId: str
    quantity: int = Field(..., ge=1)
    price: Optional[float] = Field(None, ge=0)
    name: Optional[str] = None
    imageUrl: Optional[str] = None


class OrderCreate(BaseModel):
    userId: str
    vendorId: str
    products: List[OrderItemIn]
    totalAmount: float = Field(..., ge=0)
    customerName: Optional[str] = None
    deliveryAddress: Optional[Address] = None


class OrderStatusUpdate(BaseModel):
    status: str


class DeliveryCreate(BaseModel):
    orderId: str
    customerPhone: Optional[str] = None
    estimatedDeliveryTime: Optional[datetime] = None
    packageSize: Optional[PackageSize] = None
    deliveryNotes: Optional[str] = None


class DeliveryStatusUpdate(BaseModel):
    newStatus: str


class AssignAgentIn(BaseModel):
    agentId: Optional[str] = Field(..., description="Agent id, or null to unassign")


class LocationUpdate(Location):
    estimatedDeliveryTime: Optional[datetime] = None


class AgentCreate(BaseModel):
    name: str
    phone: str
    vehicleType: Optional[str] = None
    vehicleDetails: Optional[str] = None
    isActive: Optional[bool] = None


class AgentUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    vehicleType: Optional[str] = None
    vehicleDetails: Optional[str] = None
    isActive: Optional[bool] = None
