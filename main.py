import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import accounts
import cart
import catalog
import orders
from config import ADMIN_EMAIL, ADMIN_PASSWORD, CORS_ORIGINS, LOG_LEVEL, PORT, SEED_ON_STARTUP
from database import SessionLocal, get_db, init_db
from errors import StoreError
from models import Product, User
from pricing import to_cents
from schemas import (
    AddCartRequest,
    CartItemOut,
    CartLineOut,
    LoginRequest,
    LoginResponse,
    OrderDetailOut,
    OrderOut,
    PlaceOrderRequest,
    ProductCreateRequest,
    ProductOut,
    ProductUpdateRequest,
    RegisterRequest,
    StatusUpdateRequest,
    UpdateCartRequest,
    UserOut,
    UserUpdateRequest,
)
from security import Identity, get_current_admin, get_current_user, hash_password

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("petpalace")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    if SEED_ON_STARTUP:
        try:
            with SessionLocal() as db:
                seed_data(db)
        except SQLAlchemyError:
            logger.exception("seeding failed, continuing with an empty store")
    yield


# ----------------------------------------------------------------------------
# App setup
# ----------------------------------------------------------------------------

app = FastAPI(title="Pet Palace API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def store_error_handler(_request: Request, exc: StoreError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(_request: Request, exc: SQLAlchemyError):
    logger.error("storage failure: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Storage is temporarily unavailable"})


@app.exception_handler(OverflowError)
async def overflow_handler(_request: Request, exc: OverflowError):
    # ids and numbers past the INTEGER column range never reach a row
    logger.warning("value out of range: %s", exc)
    return JSONResponse(status_code=400, content={"detail": "Value out of range"})


# ----------------------------------------------------------------------------
# Users & auth
# ----------------------------------------------------------------------------

@app.post("/api/users/register", status_code=201)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    user = accounts.register(db, body)
    return {"message": "User registered", "user": UserOut.from_row(user)}


@app.post("/api/users/login", response_model=LoginResponse)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user, token = accounts.authenticate(db, str(body.email), body.password)
    return LoginResponse(token=token, user=UserOut.from_row(user))


@app.get("/api/users/me", response_model=UserOut)
def me(current: Identity = Depends(get_current_user), db: Session = Depends(get_db)):
    return UserOut.from_row(accounts.get_user(db, current, current.user_id))


@app.get("/api/users", response_model=List[UserOut])
def list_users(_admin: Identity = Depends(get_current_admin), db: Session = Depends(get_db)):
    return [UserOut.from_row(u) for u in accounts.list_users(db)]


@app.get("/api/users/{user_id}", response_model=UserOut)
def get_user(user_id: int, current: Identity = Depends(get_current_user), db: Session = Depends(get_db)):
    return UserOut.from_row(accounts.get_user(db, current, user_id))


@app.put("/api/users/{user_id}")
def update_user(
    user_id: int,
    body: UserUpdateRequest,
    current: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = accounts.update_user(db, current, user_id, body)
    return {"message": "User updated", "user": UserOut.from_row(user)}


@app.delete("/api/users/{user_id}")
def delete_user(user_id: int, _admin: Identity = Depends(get_current_admin), db: Session = Depends(get_db)):
    accounts.delete_user(db, user_id)
    return {"message": "User deleted"}


# ----------------------------------------------------------------------------
# Products
# ----------------------------------------------------------------------------

@app.post("/api/products", status_code=201)
def create_product(body: ProductCreateRequest, _admin: Identity = Depends(get_current_admin), db: Session = Depends(get_db)):
    product = catalog.create_product(db, body)
    return {"message": "Product created", "product": ProductOut.from_row(product)}


@app.get("/api/products", response_model=List[ProductOut])
def list_products(
    q: Optional[str] = Query(None),
    pet_type: Optional[str] = Query(None),
    product_type: Optional[str] = Query(None),
    min_price: Optional[Decimal] = Query(None),
    max_price: Optional[Decimal] = Query(None),
    only_new: bool = False,
    only_discounted: bool = False,
    in_stock: bool = False,
    sort: Optional[str] = Query(None, description="price | date_added | name"),
    direction: str = Query("asc", description="asc | desc"),
    db: Session = Depends(get_db),
):
    filters = catalog.ProductFilters(
        q=q,
        pet_type=pet_type,
        product_type=product_type,
        min_price=min_price,
        max_price=max_price,
        only_new=only_new,
        only_discounted=only_discounted,
        in_stock=in_stock,
        sort=sort,
        direction=direction,
    )
    return [ProductOut.from_row(p) for p in catalog.list_products(db, filters)]


@app.get("/api/products/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return ProductOut.from_row(catalog.get_product(db, product_id))


@app.put("/api/products/{product_id}")
def update_product(
    product_id: int,
    body: ProductUpdateRequest,
    _admin: Identity = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    product = catalog.update_product(db, product_id, body)
    return {"message": "Product updated", "product": ProductOut.from_row(product)}


@app.delete("/api/products/{product_id}")
def delete_product(product_id: int, _admin: Identity = Depends(get_current_admin), db: Session = Depends(get_db)):
    catalog.delete_product(db, product_id)
    return {"message": "Product deleted"}


# ----------------------------------------------------------------------------
# Orders
# ----------------------------------------------------------------------------

@app.post("/api/orders", status_code=201)
def place_order(body: PlaceOrderRequest, current: Identity = Depends(get_current_user), db: Session = Depends(get_db)):
    order_id = orders.place_order(db, current.user_id, body)
    return {"message": "Order placed", "order_id": order_id}


@app.get("/api/orders", response_model=List[OrderOut])
def list_orders(_admin: Identity = Depends(get_current_admin), db: Session = Depends(get_db)):
    return [OrderOut.from_row(o) for o in orders.list_all(db)]


@app.get("/api/orders/my", response_model=List[OrderOut])
def my_orders(current: Identity = Depends(get_current_user), db: Session = Depends(get_db)):
    return [OrderOut.from_row(o) for o in orders.list_for_user(db, current.user_id)]


@app.get("/api/orders/{order_id}", response_model=OrderDetailOut)
def get_order(order_id: int, current: Identity = Depends(get_current_user), db: Session = Depends(get_db)):
    return OrderDetailOut.from_row(orders.get_order(db, current, order_id))


@app.put("/api/orders/{order_id}/status")
def update_order_status(
    order_id: int,
    body: StatusUpdateRequest,
    _admin: Identity = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    order = orders.update_status(db, order_id, body.status)
    return {"message": "Order status updated", "order": OrderOut.from_row(order)}


@app.delete("/api/orders/{order_id}")
def delete_order(order_id: int, _admin: Identity = Depends(get_current_admin), db: Session = Depends(get_db)):
    orders.delete_order(db, order_id)
    return {"message": "Order deleted"}


# ----------------------------------------------------------------------------
# Cart
# ----------------------------------------------------------------------------

@app.post("/api/cart", status_code=201)
def add_to_cart(body: AddCartRequest, current: Identity = Depends(get_current_user), db: Session = Depends(get_db)):
    line, created = cart.add(db, current.user_id, body.product_id, body.quantity)
    item = CartItemOut(id=line.id, product_id=line.product_id, quantity=line.quantity)
    if created:
        return {"message": "Product added to cart", "cart_item": item}
    return JSONResponse(
        status_code=200,
        content={"message": "Cart quantity updated", "cart_item": item.model_dump()},
    )


@app.get("/api/cart", response_model=List[CartLineOut])
def get_cart(current: Identity = Depends(get_current_user), db: Session = Depends(get_db)):
    return [CartLineOut.from_row(line) for line in cart.list_lines(db, current.user_id)]


# declared before /api/cart/{line_id} so "clear" is never taken for an id
@app.delete("/api/cart/clear")
def clear_cart(current: Identity = Depends(get_current_user), db: Session = Depends(get_db)):
    removed = cart.clear(db, current.user_id)
    return {"message": "Cart cleared", "removed": removed}


@app.put("/api/cart/{line_id}")
def update_cart_item(
    line_id: int,
    body: UpdateCartRequest,
    current: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    line = cart.update_quantity(db, current.user_id, line_id, body.quantity)
    if line is None:
        return {"message": "Cart item removed", "cart_item": None}
    return {
        "message": "Cart quantity updated",
        "cart_item": CartItemOut(id=line.id, product_id=line.product_id, quantity=line.quantity),
    }


@app.delete("/api/cart/{line_id}")
def remove_cart_item(line_id: int, current: Identity = Depends(get_current_user), db: Session = Depends(get_db)):
    cart.remove(db, current.user_id, line_id)
    return {"message": "Cart item removed"}


# ----------------------------------------------------------------------------
# Health
# ----------------------------------------------------------------------------

@app.get("/")
def root():
    return {"message": "Pet Palace API running"}


# ----------------------------------------------------------------------------
# Seed Data (idempotent)
# ----------------------------------------------------------------------------

SAMPLE_PRODUCTS = [
    {
        "name": "Grain-Free Salmon Cat Food 2kg",
        "description": "Complete dry food for adult cats with wild salmon.",
        "price": "24.90",
        "category": "food",
        "pet_type": "cat",
        "product_type": "food",
        "discount": 10,
        "is_new": True,
        "brand": "Purrfect",
        "weight": "2 kg",
        "specifications": ["Grain-free", "Adult 1+ years"],
    },
    {
        "name": "Rope Tug Toy",
        "description": "Durable cotton rope toy for medium and large dogs.",
        "price": "8.50",
        "category": "toys",
        "pet_type": "dog",
        "product_type": "toys",
        "brand": "Wagster",
    },
    {
        "name": "Budgie Cage Deluxe",
        "description": "Spacious cage with perches, feeders and a pull-out tray.",
        "price": "59.00",
        "category": "cages",
        "pet_type": "bird",
        "product_type": "cages",
        "discount": 15,
        "weight": "4.2 kg",
    },
    {
        "name": "Aquarium Water Conditioner",
        "description": "Neutralises chlorine and heavy metals in tap water.",
        "price": "6.75",
        "category": "care",
        "pet_type": "fish",
        "product_type": "care",
        "in_stock": False,
    },
    {
        "name": "Hamster Chew Sticks",
        "description": "Natural wood sticks that keep rodent teeth healthy.",
        "price": "3.20",
        "category": "accessories",
        "pet_type": "rodent",
        "product_type": "accessories",
        "is_new": True,
    },
]


def seed_data(db: Session) -> None:
    # Create admin if not exists
    if db.scalars(select(User).where(User.email == ADMIN_EMAIL)).first() is None:
        db.add(
            User(
                full_name="Administrator",
                username="admin",
                email=ADMIN_EMAIL,
                password_hash=hash_password(ADMIN_PASSWORD),
                role="admin",
                status="active",
            )
        )
        logger.info("seeded admin user %s", ADMIN_EMAIL)

    # Seed products if the catalog is empty
    if db.scalars(select(Product.id)).first() is None:
        for p in SAMPLE_PRODUCTS:
            data = dict(p)
            db.add(Product(price_cents=to_cents(data.pop("price")), **data))
        logger.info("seeded %d sample products", len(SAMPLE_PRODUCTS))
    db.commit()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PORT)
