import logging
import re
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pymongo.errors import DuplicateKeyError, PyMongoError

import config
import database
import seed
from auth import TokenUser, get_current_user, hash_password, issue_token, require_admin, verify_password
from errors import AuthInvalid, Conflict, Internal, InvalidRequest, NotFound
from media import UploadError, upload_image
from notifications import OrderEventHub
from orders import AuthenticatedCheckout, GuestCheckout, place_order
from schemas import (
    ORDER_STATUSES,
    CartAddRequest,
    CheckoutRequest,
    LoginRequest,
    MeUpdateRequest,
    Order,
    Product,
    ProfileUpdateRequest,
    RegisterRequest,
    StatusUpdateRequest,
    User,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Grocery Store API", version="1.0.0")
app.state.order_events = OrderEventHub()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def no_cache(request: Request, call_next):
    response = await call_next(request)
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    response.headers["Surrogate-Control"] = "no-store"
    return response


# --------------------- Errors ---------------------

@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_error(request: Request, exc: DuplicateKeyError):
    return await http_exception_handler(request, Conflict())


@app.exception_handler(PyMongoError)
async def store_error(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return await http_exception_handler(request, Internal(str(exc)))


@app.exception_handler(database.DatabaseUnavailable)
async def database_unavailable(request: Request, exc: database.DatabaseUnavailable):
    return await http_exception_handler(request, Internal(str(exc)))


@app.exception_handler(UploadError)
async def upload_error(request: Request, exc: UploadError):
    return await http_exception_handler(request, Internal(str(exc)))


# --------------------- Dependencies ---------------------

def get_order_events(request: Request) -> OrderEventHub:
    return request.app.state.order_events


def require_object_id(value: str, what: str = "id"):
    oid = database.parse_object_id(value)
    if oid is None:
        raise InvalidRequest(f"Invalid {what}")
    return oid


def load_account(user: TokenUser) -> dict:
    oid = database.parse_object_id(user.id)
    account = database.find_by_id("user", oid) if oid else None
    if not account:
        raise NotFound("User not found")
    return account


def public_user(account: dict) -> dict:
    return {
        "id": str(account["_id"]),
        "name": account.get("name"),
        "email": account.get("email"),
        "role": account.get("role", "user"),
    }


@app.on_event("startup")
def seed_database():
    if database.db is None:
        logger.warning("DATABASE_URL not set, skipping seed")
        return
    seed.run()


# --------------------- Routes ---------------------

@app.get("/")
def root():
    return {"message": "Grocery Store API is running"}


@app.get("/schema")
def get_schema():
    return {
        "user": User.model_json_schema(by_alias=True),
        "product": Product.model_json_schema(by_alias=True),
        "order": Order.model_json_schema(by_alias=True),
    }


# Products
@app.get("/api/products")
def list_products(search: Optional[str] = None, category: Optional[str] = None):
    query = {}
    if category:
        query["category"] = category
    if search:
        query["name"] = {"$regex": re.escape(search), "$options": "i"}
    docs = database.get_documents("product", query, sort=[("name", 1)])
    return [database.serialize_doc(d) for d in docs]


@app.get("/api/products/{product_id}")
def get_product(product_id: str):
    oid = require_object_id(product_id, "product id")
    doc = database.find_by_id("product", oid)
    if not doc:
        raise NotFound("Product not found")
    return database.serialize_doc(doc)


# Auth
@app.post("/api/auth/register", status_code=201)
def register(req: RegisterRequest):
    if database.require_db()["user"].find_one({"email": req.email}):
        raise Conflict()
    user_doc = User(name=req.name, email=req.email, password_hash=hash_password(req.password), phone=req.phone)
    user_id = database.create_document("user", user_doc)
    token = issue_token(user_id, user_doc.role, user_doc.name)
    return {"token": token, "user": {"id": user_id, "name": req.name, "email": req.email, "role": user_doc.role}}


@app.post("/api/auth/login")
def login(req: LoginRequest):
    user = database.require_db()["user"].find_one({"email": req.email})
    if not user or not verify_password(req.password, user.get("passwordHash", "")):
        raise AuthInvalid("Invalid credentials")
    token = issue_token(str(user["_id"]), user.get("role", "user"), user.get("name"))
    return {"token": token, "user": public_user(user)}


@app.put("/api/auth/profile")
def update_profile(req: ProfileUpdateRequest, user: TokenUser = Depends(get_current_user)):
    account = load_account(user)
    if not verify_password(req.current_password or "", account.get("passwordHash", "")):
        raise AuthInvalid("Current password incorrect")

    changes = {}
    if req.email and req.email != account.get("email"):
        taken = database.require_db()["user"].find_one({"email": req.email, "_id": {"$ne": account["_id"]}})
        if taken:
            raise Conflict()
        changes["email"] = req.email
    if req.new_password:
        changes["passwordHash"] = hash_password(req.new_password)

    if changes:
        account = database.update_document("user", account["_id"], changes)
    return {"success": True, "email": account["email"]}


@app.get("/api/me")
def get_me(user: TokenUser = Depends(get_current_user)):
    return database.serialize_doc(load_account(user), exclude=("passwordHash",))


@app.put("/api/me")
def update_me(req: MeUpdateRequest, user: TokenUser = Depends(get_current_user)):
    account = load_account(user)
    changes = req.model_dump(by_alias=True, exclude_unset=True)
    if changes.get("addresses") is None:
        changes.pop("addresses", None)
    if changes:
        account = database.update_document("user", account["_id"], changes)
    return {
        "success": True,
        "user": {
            "id": str(account["_id"]),
            "name": account.get("name"),
            "email": account.get("email"),
            "phone": account.get("phone"),
            "addresses": account.get("addresses", []),
        },
    }


# Cart
@app.get("/api/cart")
def get_cart(user: TokenUser = Depends(get_current_user)):
    account = load_account(user)
    lines = []
    for line in account.get("cart", []):
        oid = database.parse_object_id(line.get("product"))
        product = database.find_by_id("product", oid) if oid else None
        lines.append({"product": database.serialize_doc(product), "quantity": line.get("quantity", 1)})
    return lines


@app.post("/api/cart")
def add_to_cart(req: CartAddRequest, user: TokenUser = Depends(get_current_user)):
    account = load_account(user)
    oid = require_object_id(req.product_id, "product id")
    if not database.find_by_id("product", oid):
        raise NotFound("Product not found")

    cart = list(account.get("cart", []))
    for line in cart:
        if line.get("product") == req.product_id:
            line["quantity"] = line.get("quantity", 0) + req.quantity
            break
    else:
        cart.append({"product": req.product_id, "quantity": req.quantity})
    account = database.update_document("user", account["_id"], {"cart": cart})
    return account["cart"]


@app.delete("/api/cart/{product_id}")
def remove_from_cart(product_id: str, user: TokenUser = Depends(get_current_user)):
    account = load_account(user)
    cart = [line for line in account.get("cart", []) if line.get("product") != product_id]
    account = database.update_document("user", account["_id"], {"cart": cart})
    return account["cart"]


# Orders
@app.post("/api/placeGuestOrder", status_code=201)
def place_guest_order(req: CheckoutRequest, hub: OrderEventHub = Depends(get_order_events)):
    address = req.delivery_address.model_dump(exclude_unset=True) if req.delivery_address else None
    order_id = place_order(GuestCheckout(address), req, hub)
    return {"success": True, "orderId": order_id}


@app.post("/api/orders", status_code=201)
def create_order(req: CheckoutRequest, user: TokenUser = Depends(get_current_user),
                 hub: OrderEventHub = Depends(get_order_events)):
    order_id = place_order(AuthenticatedCheckout(user.id), req, hub)
    return {"success": True, "orderId": order_id}


@app.get("/api/orders/my")
def my_orders(user: TokenUser = Depends(get_current_user)):
    orders = database.get_documents("order", {"userId": user.id}, sort=[("createdAt", -1)])
    return [database.serialize_doc(o) for o in orders]


# Admin orders
@app.get("/api/admin/orders")
def admin_list_orders(admin: TokenUser = Depends(require_admin)):
    orders = database.get_documents("order", {}, limit=500, sort=[("createdAt", -1)])
    owner_ids = {database.parse_object_id(o.get("userId")) for o in orders} - {None}
    owners = {
        str(u["_id"]): u
        for u in database.require_db()["user"].find(
            {"_id": {"$in": list(owner_ids)}}, {"name": 1, "email": 1, "phone": 1}
        )
    }
    result = []
    for o in orders:
        d = database.serialize_doc(o)
        owner = owners.get(d.get("userId"))
        d["user"] = database.serialize_doc(owner) if owner else None
        result.append(d)
    return result


@app.put("/api/admin/orders/{order_id}/status")
def admin_update_order_status(order_id: str, req: Optional[StatusUpdateRequest] = None,
                              admin: TokenUser = Depends(require_admin)):
    oid = require_object_id(order_id, "order id")
    status = (req.status if req else None) or "completed"
    if status not in ORDER_STATUSES:
        raise InvalidRequest(f"Invalid status: {status}")
    doc = database.update_document("order", oid, {"status": status})
    if not doc:
        raise NotFound("Order not found")
    return database.serialize_doc(doc)


@app.delete("/api/admin/orders/{order_id}")
def admin_delete_order(order_id: str, admin: TokenUser = Depends(require_admin)):
    oid = require_object_id(order_id, "order id")
    doc = database.find_by_id("order", oid)
    if doc is None:
        return {"success": True}
    if doc.get("status", "pending") not in ("completed", "cancelled"):
        raise InvalidRequest("Only completed or cancelled orders can be deleted")
    database.delete_document("order", oid)
    return {"success": True}


# Admin products
def parse_price(raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise InvalidRequest("Price must be a number")


@app.post("/api/admin/products", status_code=201)
def admin_create_product(
    name: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    unit: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    admin: TokenUser = Depends(require_admin),
):
    if not name or not price:
        raise InvalidRequest("Name and price are required")
    product = Product(
        name=name,
        price=parse_price(price),
        description=description,
        category=category,
        unit=unit or "",
        image=upload_image(image, config.PRODUCT_IMAGE_FOLDER),
    )
    product_id = database.create_document("product", product)
    return database.serialize_doc(database.find_by_id("product", database.parse_object_id(product_id)))


@app.put("/api/admin/products/{product_id}")
def admin_update_product(
    product_id: str,
    name: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    unit: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    admin: TokenUser = Depends(require_admin),
):
    oid = require_object_id(product_id, "product id")
    changes = {
        k: v
        for k, v in {"name": name, "description": description, "category": category, "unit": unit}.items()
        if v is not None
    }
    if price not in (None, ""):
        changes["price"] = parse_price(price)
    if image is not None and image.filename:
        changes["image"] = upload_image(image, config.PRODUCT_IMAGE_FOLDER)

    doc = database.update_document("product", oid, changes)
    if not doc:
        raise NotFound("Product not found")
    return database.serialize_doc(doc)


@app.delete("/api/admin/products/{product_id}")
def admin_delete_product(product_id: str, admin: TokenUser = Depends(require_admin)):
    oid = require_object_id(product_id, "product id")
    if not database.delete_document("product", oid):
        raise NotFound("Product not found")
    return {"success": True}


# Admin dashboards
@app.get("/events")
async def order_events(hub: OrderEventHub = Depends(get_order_events)):
    return StreamingResponse(
        hub.stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-store", "Connection": "keep-alive"},
    )


@app.get("/test")
def health():
    status = {
        "backend": "running",
        "database": "not-configured",
        "orderEventSubscribers": app.state.order_events.subscriber_count(),
    }
    if database.db is not None:
        try:
            database.db.list_collection_names()
            status["database"] = "connected"
        except PyMongoError as e:
            status["database"] = f"error: {e}"
    return status


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
