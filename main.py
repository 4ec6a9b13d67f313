import logging
from contextlib import asynccontextmanager
from typing import Optional, List, Dict, Any

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field, ValidationError
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException

import accounts
import analytics
import cart as carts
import catalog
import enquiries
import orders
import payments
import reviews
import settings
from database import ensure_indexes, get_db, serialize_doc
from errors import StoreError
from images import ImageStore, get_image_store
from payments import PaymentGateways, get_payment_gateways
from schemas import Address, EnquiryStatus, OrderStatus, PaymentMethod, ShippingAddress
from security import get_current_user, require_admin

# Logging
logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger("jaipurgadgets")


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes(get_db())
    logger.info("%s API started (database %s)", settings.STORE_NAME, settings.DATABASE_NAME)
    yield


app = FastAPI(title="Jaipur Gadgets API", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handlers
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def _first_error(errors) -> str:
    if not errors:
        return "Invalid request"
    err = errors[0]
    field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
    return f"{field}: {err.get('msg')}" if field else err.get("msg", "Invalid request")


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error(400, _first_error(exc.errors()))


@app.exception_handler(ValidationError)
async def model_validation_handler(request: Request, exc: ValidationError):
    return _error(400, _first_error(exc.errors()))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return _error(500, "Internal Server Error")


# Health
@app.get("/")
def root():
    return {"name": settings.STORE_NAME, "status": "ok"}


@app.get("/health")
def health():
    return {"status": "OK", "message": "Server is running"}


# Auth
class RegisterDTO(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None


class LoginDTO(BaseModel):
    email: EmailStr
    password: str


@app.post("/auth/register", status_code=201)
def register(data: RegisterDTO, db: Database = Depends(get_db)):
    return {"success": True, **accounts.register(db, data.name, data.email, data.password, data.phone)}


@app.post("/auth/login")
def login(data: LoginDTO, db: Database = Depends(get_db)):
    return {"success": True, **accounts.login(db, data.email, data.password)}


@app.get("/auth/me")
def me(user: Dict[str, Any] = Depends(get_current_user)):
    return {"success": True, "user": serialize_doc(user)}


# Products
@app.get("/products")
def list_products(page: int = 1, limit: int = 12, category: Optional[str] = None, search: Optional[str] = None,
                  minPrice: Optional[float] = None, maxPrice: Optional[float] = None, brand: Optional[str] = None,
                  sort: str = "-created_at", status: str = "active", db: Database = Depends(get_db)):
    result = catalog.list_products(db, page=page, limit=limit, category=category, search=search,
                                   min_price=minPrice, max_price=maxPrice, brand=brand, sort=sort, status=status)
    return {"success": True, **result}


@app.get("/products/categories/all")
def list_categories(db: Database = Depends(get_db)):
    return {"success": True, "categories": catalog.list_categories(db)}


@app.get("/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return {"success": True, "product": catalog.get_product(db, product_id)}


# Cart
class CartAddDTO(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class CartQuantityDTO(BaseModel):
    quantity: int = Field(..., ge=1)


class GuestCartDTO(BaseModel):
    items: List[CartAddDTO] = []


@app.get("/cart")
def get_cart(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    cart = carts.get_or_create_cart(db, str(user["_id"]))
    return {"success": True, "cart": carts.cart_view(db, cart)}


@app.post("/cart")
def add_to_cart(data: CartAddDTO, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    cart = carts.add_item(db, str(user["_id"]), data.product_id, data.quantity)
    return {"success": True, "cart": carts.cart_view(db, cart)}


@app.post("/cart/merge")
def merge_guest_cart(data: GuestCartDTO, user: Dict[str, Any] = Depends(get_current_user),
                     db: Database = Depends(get_db)):
    cart = carts.merge_guest_cart(db, str(user["_id"]), [i.model_dump() for i in data.items])
    return {"success": True, "cart": carts.cart_view(db, cart)}


@app.put("/cart/{item_id}")
def update_cart_item(item_id: str, data: CartQuantityDTO, user: Dict[str, Any] = Depends(get_current_user),
                     db: Database = Depends(get_db)):
    cart = carts.update_item_quantity(db, str(user["_id"]), item_id, data.quantity)
    return {"success": True, "cart": carts.cart_view(db, cart)}


@app.delete("/cart/{item_id}")
def remove_cart_item(item_id: str, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    cart = carts.remove_item(db, str(user["_id"]), item_id)
    return {"success": True, "cart": carts.cart_view(db, cart)}


@app.delete("/cart")
def clear_cart(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    carts.clear_cart(db, str(user["_id"]))
    return {"success": True, "message": "Cart cleared"}


# Orders
class OrderDTO(BaseModel):
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    discount: float = Field(0.0, ge=0)
    coupon_code: Optional[str] = None


@app.post("/orders", status_code=201)
def create_order(data: OrderDTO, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    order = orders.place_order(db, str(user["_id"]), data.shipping_address.model_dump(), data.payment_method,
                               data.discount, data.coupon_code)
    return {"success": True, "order": order}


@app.get("/orders")
def list_orders(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "orders": orders.list_orders(db, str(user["_id"]))}


@app.get("/orders/{order_id}")
def get_order(order_id: str, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "order": orders.get_order(db, order_id, user)}


# Enquiries
class EnquiryDTO(BaseModel):
    shipping_address: Address
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[EmailStr] = None


@app.post("/enquiries", status_code=201)
def create_enquiry(data: EnquiryDTO, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    enquiry = enquiries.create_enquiry(db, user, data.shipping_address.model_dump(), data.customer_name,
                                       data.customer_phone, data.customer_email)
    return {"success": True, "enquiry": enquiry}


@app.get("/enquiries")
def list_enquiries(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "enquiries": enquiries.list_enquiries(db, str(user["_id"]))}


@app.get("/enquiries/{enquiry_id}")
def get_enquiry(enquiry_id: str, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "enquiry": enquiries.get_enquiry(db, enquiry_id, str(user["_id"]))}


# Checkout: orders inside the service area, enquiries everywhere else
class CheckoutDTO(BaseModel):
    shipping_address: Address
    payment_method: PaymentMethod = "upi"
    discount: float = Field(0.0, ge=0)
    coupon_code: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[EmailStr] = None


@app.post("/checkout", status_code=201)
def checkout(data: CheckoutDTO, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    address = data.shipping_address.model_dump()
    if enquiries.in_service_area(data.shipping_address.city):
        order = orders.place_order(db, str(user["_id"]), address, data.payment_method, data.discount,
                                   data.coupon_code)
        return {"success": True, "type": "order", "order": order}
    enquiry = enquiries.create_enquiry(db, user, address, data.customer_name, data.customer_phone,
                                       data.customer_email)
    return {"success": True, "type": "enquiry", "enquiry": enquiry}


# Reviews
class ReviewDTO(BaseModel):
    product_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


@app.get("/reviews/product/{product_id}")
def product_reviews(product_id: str, db: Database = Depends(get_db)):
    return {"success": True, "reviews": reviews.list_reviews(db, product_id)}


@app.post("/reviews", status_code=201)
def create_review(data: ReviewDTO, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    review = reviews.submit_review(db, user, data.product_id, data.rating, data.comment)
    return {"success": True, "review": review}


# Users
class ProfileDTO(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    addresses: Optional[List[Address]] = None


class WishlistDTO(BaseModel):
    product_id: str


@app.get("/users/profile")
def get_profile(user: Dict[str, Any] = Depends(get_current_user)):
    return {"success": True, "user": serialize_doc(user)}


@app.put("/users/profile")
def update_profile(data: ProfileDTO, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    addresses = [a.model_dump() for a in data.addresses] if data.addresses is not None else None
    updated = accounts.update_profile(db, user, data.name, data.phone, addresses)
    return {"success": True, "user": updated}


@app.get("/users/wishlist")
def get_wishlist(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "wishlist": accounts.get_wishlist(db, user)}


@app.post("/users/wishlist")
def add_to_wishlist(data: WishlistDTO, user: Dict[str, Any] = Depends(get_current_user),
                    db: Database = Depends(get_db)):
    return {"success": True, "wishlist": accounts.add_to_wishlist(db, user, data.product_id)}


@app.delete("/users/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, user: Dict[str, Any] = Depends(get_current_user),
                         db: Database = Depends(get_db)):
    return {"success": True, "wishlist": accounts.remove_from_wishlist(db, user, product_id)}


# Payments
class PaymentDTO(BaseModel):
    order_id: str


@app.post("/payments/stripe/create-payment-intent")
def stripe_payment_intent(data: PaymentDTO, user: Dict[str, Any] = Depends(get_current_user),
                          db: Database = Depends(get_db), gateways: PaymentGateways = Depends(get_payment_gateways)):
    result = payments.stripe_payment_intent(db, gateways, data.order_id, str(user["_id"]))
    return {"success": True, **result}


@app.post("/payments/razorpay/create-order")
def razorpay_create_order(data: PaymentDTO, user: Dict[str, Any] = Depends(get_current_user),
                          db: Database = Depends(get_db), gateways: PaymentGateways = Depends(get_payment_gateways)):
    result = payments.razorpay_order(db, gateways, data.order_id, str(user["_id"]))
    return {"success": True, **result}


# Admin analytics
@app.get("/admin/analytics")
def admin_analytics(admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    return {"success": True, "analytics": analytics.dashboard(db)}


# Admin products
class ProductDTO(BaseModel):
    name: str
    description: str
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: str
    brand: Optional[str] = None
    stock: int = Field(0, ge=0)
    specifications: Dict[str, str] = {}
    images: List[str] = []
    status: str = "active"
    featured: bool = False


class ProductUpdateDTO(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    brand: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    specifications: Optional[Dict[str, str]] = None
    images: Optional[List[str]] = None
    status: Optional[str] = None
    featured: Optional[bool] = None


@app.get("/admin/products")
def admin_list_products(page: int = 1, limit: int = 10, search: Optional[str] = None, status: Optional[str] = None,
                        admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    result = catalog.list_products(db, page=page, limit=limit, search=search, status=status)
    return {"success": True, **result}


@app.post("/admin/products", status_code=201)
def admin_create_product(data: ProductDTO, admin: Dict[str, Any] = Depends(require_admin),
                         db: Database = Depends(get_db)):
    return {"success": True, "product": catalog.create_product(db, data.model_dump())}


@app.put("/admin/products/{product_id}")
def admin_update_product(product_id: str, data: ProductUpdateDTO, admin: Dict[str, Any] = Depends(require_admin),
                         db: Database = Depends(get_db)):
    changes = data.model_dump(exclude_none=True)
    return {"success": True, "product": catalog.update_product(db, product_id, changes)}


@app.delete("/admin/products/{product_id}")
def admin_delete_product(product_id: str, admin: Dict[str, Any] = Depends(require_admin),
                         db: Database = Depends(get_db), image_store: ImageStore = Depends(get_image_store)):
    catalog.delete_product(db, product_id, image_store)
    return {"success": True, "message": "Product deleted"}


# Admin categories
class CategoryDTO(BaseModel):
    name: str
    icon: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None


class CategoryUpdateDTO(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None


@app.get("/admin/categories")
def admin_list_categories(admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    return {"success": True, "categories": catalog.list_categories(db)}


@app.post("/admin/categories", status_code=201)
def admin_create_category(data: CategoryDTO, admin: Dict[str, Any] = Depends(require_admin),
                          db: Database = Depends(get_db)):
    return {"success": True, "category": catalog.create_category(db, data.model_dump())}


@app.put("/admin/categories/{category_id}")
def admin_update_category(category_id: str, data: CategoryUpdateDTO, admin: Dict[str, Any] = Depends(require_admin),
                          db: Database = Depends(get_db)):
    changes = data.model_dump(exclude_unset=True)
    return {"success": True, "category": catalog.update_category(db, category_id, changes)}


@app.delete("/admin/categories/{category_id}")
def admin_delete_category(category_id: str, admin: Dict[str, Any] = Depends(require_admin),
                          db: Database = Depends(get_db)):
    catalog.delete_category(db, category_id)
    return {"success": True, "message": "Category deleted"}


# Admin orders
class OrderStatusDTO(BaseModel):
    status: OrderStatus
    note: Optional[str] = None


@app.get("/admin/orders")
def admin_list_orders(page: int = 1, limit: int = 10, status: Optional[str] = None, search: Optional[str] = None,
                      admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    return {"success": True, **orders.admin_list_orders(db, page, limit, status, search)}


@app.put("/admin/orders/{order_id}/status")
def admin_update_order_status(order_id: str, data: OrderStatusDTO, admin: Dict[str, Any] = Depends(require_admin),
                              db: Database = Depends(get_db)):
    return {"success": True, "order": orders.update_order_status(db, order_id, data.status, data.note)}


@app.delete("/admin/orders/{order_id}")
def admin_delete_order(order_id: str, admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    orders.delete_order(db, order_id)
    return {"success": True, "message": "Order deleted successfully"}


# Admin enquiries
class EnquiryStatusDTO(BaseModel):
    status: EnquiryStatus
    note: Optional[str] = None


@app.get("/admin/enquiries")
def admin_list_enquiries(page: int = 1, limit: int = 10, status: Optional[str] = None, search: Optional[str] = None,
                         admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    return {"success": True, **enquiries.admin_list_enquiries(db, page, limit, status, search)}


@app.put("/admin/enquiries/{enquiry_id}/status")
def admin_update_enquiry_status(enquiry_id: str, data: EnquiryStatusDTO,
                                admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    return {"success": True, "enquiry": enquiries.update_enquiry_status(db, enquiry_id, data.status, data.note)}


@app.delete("/admin/enquiries/{enquiry_id}")
def admin_delete_enquiry(enquiry_id: str, admin: Dict[str, Any] = Depends(require_admin),
                         db: Database = Depends(get_db)):
    enquiries.delete_enquiry(db, enquiry_id)
    return {"success": True, "message": "Enquiry deleted successfully"}


# Admin reviews
@app.delete("/admin/reviews/{review_id}")
def admin_delete_review(review_id: str, admin: Dict[str, Any] = Depends(require_admin),
                        db: Database = Depends(get_db)):
    reviews.delete_review(db, review_id)
    return {"success": True, "message": "Review deleted"}


# Admin users
class AdminCreateDTO(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None


class PasswordChangeDTO(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


@app.get("/admin/users")
def admin_list_users(page: int = 1, limit: int = 10, search: Optional[str] = None,
                     admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    return {"success": True, **accounts.admin_list_users(db, page, limit, search)}


@app.put("/admin/users/{user_id}/ban")
def admin_toggle_ban(user_id: str, admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    return {"success": True, "user": accounts.toggle_ban(db, user_id)}


@app.post("/admin/admins", status_code=201)
def admin_create_admin(data: AdminCreateDTO, admin: Dict[str, Any] = Depends(require_admin),
                       db: Database = Depends(get_db)):
    user = accounts.create_admin(db, data.name, data.email, data.password, data.phone)
    return {"success": True, "user": user}


@app.put("/admin/me/password")
def admin_change_password(data: PasswordChangeDTO, admin: Dict[str, Any] = Depends(require_admin),
                          db: Database = Depends(get_db)):
    accounts.change_password(db, admin, data.current_password, data.new_password)
    return {"success": True, "message": "Password updated successfully"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
