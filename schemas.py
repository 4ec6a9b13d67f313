"""
Jaipur Gadgets Database Schemas

Each Pydantic model below represents one MongoDB collection. The collection name is the lowercase
class name. Example: class User -> collection "user".

References between collections are stored as string ids.
"""
from datetime import datetime
from typing import List, Optional, Dict, Literal
from pydantic import BaseModel, Field, EmailStr

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
ENQUIRY_STATUSES = ("pending", "contacted", "converted", "cancelled")

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
EnquiryStatus = Literal["pending", "contacted", "converted", "cancelled"]
PaymentMethod = Literal["cod", "upi"]


class Address(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str = "India"


class ShippingAddress(Address):
    name: str
    phone: str
    address: str
    city: str


class User(BaseModel):
    name: str
    email: EmailStr
    password_hash: str
    phone: Optional[str] = None
    role: str = Field("user", description="user | admin")
    is_banned: bool = False
    wishlist: List[str] = []
    addresses: List[Address] = []
    total_orders: int = 0
    total_spent: float = 0.0


class Category(BaseModel):
    name: str
    icon: str = "📱"
    description: Optional[str] = None
    image: Optional[str] = None


class Ratings(BaseModel):
    average: float = Field(0, ge=0, le=5)
    count: int = 0
    total: float = 0


class Product(BaseModel):
    name: str
    description: str
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    images: List[str] = []
    category: str
    brand: Optional[str] = None
    stock: int = Field(0, ge=0)
    specifications: Dict[str, str] = {}
    ratings: Ratings = Field(default_factory=Ratings)
    status: Literal["active", "inactive"] = "active"
    featured: bool = False
    sales_count: int = 0


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class Cart(BaseModel):
    user_id: str
    items: List[CartItem] = []


class OrderItem(BaseModel):
    product_id: str
    name: str
    price: float
    quantity: int
    image: Optional[str] = None


class StatusEntry(BaseModel):
    status: str
    date: datetime
    note: str = ""


class Order(BaseModel):
    user_id: str
    items: List[OrderItem]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    items_price: float
    tax_price: float = 0.0
    shipping_price: float = 0.0
    discount: float = 0.0
    coupon_code: Optional[str] = None
    total_price: float
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    status: OrderStatus = "pending"
    status_history: List[StatusEntry] = []


class Enquiry(BaseModel):
    user_id: Optional[str] = None
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    items: List[OrderItem]
    shipping_address: Address
    total_price: float
    status: EnquiryStatus = "pending"
    notes: Optional[str] = None
    status_history: List[StatusEntry] = []


class Review(BaseModel):
    product_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
