"""
Database Schemas

Pydantic models for the MongoDB collections and the request bodies of the
storefront API. Model name is converted to lowercase for the collection name:
- User -> "user" collection
- Product -> "product" collection
- Order -> "order" collection

Stored documents use the storefront's camelCase keys, so fields that differ
from their Python name carry an alias.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

ORDER_STATUSES = ("pending", "completed", "cancelled")
OrderStatus = Literal["pending", "completed", "cancelled"]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CartLine(CamelModel):
    product: str = Field(..., description="Product ObjectId as string")
    quantity: int = Field(1, ge=1)


class SavedAddress(CamelModel):
    label: Optional[str] = None
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    pincode: Optional[str] = None
    is_default: bool = Field(False, alias="isDefault")


class User(CamelModel):
    """
    Users collection schema
    Collection name: "user"
    """
    name: Optional[str] = Field(None, description="Display name")
    email: str = Field(..., description="Unique login email")
    password_hash: str = Field(..., alias="passwordHash", description="bcrypt hash")
    phone: Optional[str] = Field(None, description="Contact phone")
    role: Literal["user", "admin"] = Field("user", description="Role: user | admin")
    cart: List[CartLine] = Field(default_factory=list)
    addresses: List[SavedAddress] = Field(default_factory=list)


class Product(CamelModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: str = Field(..., description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: float = Field(..., description="Unit price")
    category: Optional[str] = Field(None, description="Product category")
    unit: str = Field("", description='Unit label, e.g. "1 kg packet"')
    image: str = Field("", description="Image URL, empty when there is no image")


class SnapshotModel(BaseModel):
    # Numbers sent for text fields (phone, pincode, ids) are stored as strings.
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class OrderItem(SnapshotModel):
    """Snapshot of a product taken when the order is placed."""
    product_id: Optional[str] = Field(None, alias="productId")
    name: Optional[str] = None
    price: Optional[float] = None
    quantity: Optional[int] = None


class DeliveryAddress(SnapshotModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    pincode: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    notes: Optional[str] = None


class Order(CamelModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    user_id: str = Field(..., alias="userId", description="Owning account id")
    items: List[dict] = Field(..., description="OrderItem snapshots as submitted")
    total: float
    delivery_address: Optional[dict] = Field(None, alias="deliveryAddress")
    status: OrderStatus = "pending"


# Request bodies

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdateRequest(CamelModel):
    current_password: Optional[str] = Field(None, alias="currentPassword")
    email: Optional[EmailStr] = None
    new_password: Optional[str] = Field(None, alias="newPassword")


class MeUpdateRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    addresses: Optional[List[SavedAddress]] = None


class CheckoutRequest(CamelModel):
    items: List[OrderItem] = Field(default_factory=list)
    total: Optional[float] = None
    delivery_address: Optional[DeliveryAddress] = Field(None, alias="deliveryAddress")


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None


class CartAddRequest(CamelModel):
    product_id: str = Field(..., alias="productId")
    quantity: int = Field(1, ge=1)
