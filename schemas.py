"""
Request and response schemas for the Pet Palace API.

Money fields are ``Decimal`` on the way in and plain JSON numbers on the way
out; storage keeps integer cents (see ``pricing.py``).
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, PlainSerializer

from pricing import apply_discount, from_cents

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

Role = Literal["admin", "customer"]
UserStatus = Literal["active", "blocked"]
PetType = Literal["cat", "dog", "bird", "fish", "rodent"]
ProductType = Literal["food", "toys", "accessories", "cages", "care", "medicine"]

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
TERMINAL_STATUSES = ("delivered", "cancelled")


# ----------------------------------------------------------------------------
# Users & auth
# ----------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    full_name: str
    username: str
    email: EmailStr
    phone: Optional[str] = None
    password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserUpdateRequest(BaseModel):
    full_name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: Optional[Role] = None
    status: Optional[UserStatus] = None


class UserOut(BaseModel):
    id: int
    full_name: str
    username: str
    email: str
    phone: Optional[str] = None
    role: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, user) -> "UserOut":
        return cls(
            id=user.id,
            full_name=user.full_name,
            username=user.username,
            email=user.email,
            phone=user.phone,
            role=user.role,
            status=user.status,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class LoginResponse(BaseModel):
    message: str = "Login successful"
    token: str
    token_type: str = "bearer"
    user: UserOut


# ----------------------------------------------------------------------------
# Products
# ----------------------------------------------------------------------------

class ProductCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    price: Money = Field(..., gt=0, decimal_places=2)
    image_url: Optional[str] = None
    category: str = Field(..., min_length=1)
    pet_type: PetType
    product_type: ProductType
    discount: int = Field(0, ge=0, le=100, description="Percentage discount 0-100")
    is_new: bool = False
    in_stock: bool = True
    brand: Optional[str] = None
    weight: Optional[str] = None
    specifications: List[str] = Field(default_factory=list)


class ProductUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[Money] = Field(None, gt=0, decimal_places=2)
    image_url: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    pet_type: Optional[PetType] = None
    product_type: Optional[ProductType] = None
    discount: Optional[int] = Field(None, ge=0, le=100)
    is_new: Optional[bool] = None
    in_stock: Optional[bool] = None
    brand: Optional[str] = None
    weight: Optional[str] = None
    specifications: Optional[List[str]] = None


class ProductOut(BaseModel):
    id: int
    name: str
    description: str
    price: Money
    final_price: Money = Field(..., description="Price after discount")
    image_url: Optional[str] = None
    category: str
    pet_type: str
    product_type: str
    discount: int
    is_new: bool
    in_stock: bool
    brand: Optional[str] = None
    weight: Optional[str] = None
    specifications: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, p) -> "ProductOut":
        return cls(
            id=p.id,
            name=p.name,
            description=p.description or "",
            price=from_cents(p.price_cents),
            final_price=from_cents(apply_discount(p.price_cents, p.discount)),
            image_url=p.image_url,
            category=p.category,
            pet_type=p.pet_type,
            product_type=p.product_type,
            discount=p.discount,
            is_new=p.is_new,
            in_stock=p.in_stock,
            brand=p.brand,
            weight=p.weight,
            specifications=list(p.specifications or []),
            created_at=p.created_at,
            updated_at=p.updated_at,
        )


# ----------------------------------------------------------------------------
# Cart
# ----------------------------------------------------------------------------

class AddCartRequest(BaseModel):
    product_id: int
    quantity: int = 1


class UpdateCartRequest(BaseModel):
    quantity: int


class CartItemOut(BaseModel):
    id: int
    product_id: int
    quantity: int


class CartLineOut(BaseModel):
    cart_item_id: int
    product_id: int
    quantity: int
    product_name: str
    product_price: Money
    product_final_price: Money
    product_image_url: Optional[str] = None

    @classmethod
    def from_row(cls, line) -> "CartLineOut":
        p = line.product
        return cls(
            cart_item_id=line.id,
            product_id=line.product_id,
            quantity=line.quantity,
            product_name=p.name,
            product_price=from_cents(p.price_cents),
            product_final_price=from_cents(apply_discount(p.price_cents, p.discount)),
            product_image_url=p.image_url,
        )


# ----------------------------------------------------------------------------
# Orders
# ----------------------------------------------------------------------------

class OrderItemIn(BaseModel):
    product_id: int
    quantity: int
    price: Money


class PlaceOrderRequest(BaseModel):
    # Optional here so that missing fields surface as a 400 from the service
    total: Optional[Money] = None
    shipping_street: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    items: List[OrderItemIn] = Field(default_factory=list)


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = Field(None, description="pending | processing | shipped | delivered | cancelled")


class OrderLineOut(BaseModel):
    id: int
    product_id: Optional[int] = None
    quantity: int
    price: Money


class OrderOut(BaseModel):
    id: int
    user_id: int
    total: Money
    shipping_street: str
    shipping_city: str
    shipping_postal_code: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, o) -> "OrderOut":
        return cls(
            id=o.id,
            user_id=o.user_id,
            total=from_cents(o.total_cents),
            shipping_street=o.shipping_street,
            shipping_city=o.shipping_city,
            shipping_postal_code=o.shipping_postal_code,
            status=o.status,
            created_at=o.created_at,
            updated_at=o.updated_at,
        )


class OrderDetailOut(OrderOut):
    items: List[OrderLineOut] = Field(default_factory=list)

    @classmethod
    def from_row(cls, o) -> "OrderDetailOut":
        base = OrderOut.from_row(o).model_dump()
        lines = [
            OrderLineOut(id=i.id, product_id=i.product_id, quantity=i.quantity, price=from_cents(i.price_cents))
            for i in o.items
        ]
        return cls(**base, items=lines)
