import os
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from auth import (
    get_current_user,
    list_users,
    login_user,
    register_user,
    require_admin,
    signing_secret,
    toggle_user_active,
)
from catalog import create_product, delete_product, get_product, list_products, update_product
from database import db, ensure_indexes, get_db
from errors import CommerceError, StorageFailure
from logging_config import configure_logging
from orders import list_all_orders, list_orders_for_user, place_order
from schemas import CurrentUser, LoginPayload, OrderPayload, Product, ProductUpdate, RegisterPayload

configure_logging()
logger = structlog.get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    signing_secret()
    if db is not None:
        ensure_indexes(db)
    yield

app = FastAPI(title="Fashion Commerce API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------
# Error mapping
# -----------------

@app.exception_handler(CommerceError)
async def commerce_error_handler(request: Request, exc: CommerceError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [{"field": ".".join(str(p) for p in e["loc"][1:]), "message": e["msg"]} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"message": "Invalid request", "errors": errors})

@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.error("Storage failure", path=request.url.path, error=str(exc))
    failure = StorageFailure()
    return JSONResponse(status_code=failure.status_code, content={"message": failure.message})

@app.get("/")
def root():
    return {"name": "Fashion Commerce API", "status": "ok"}

# -----------------
# Auth
# -----------------

@app.post("/api/auth/register", status_code=201)
def register(payload: RegisterPayload, database=Depends(get_db)):
    user, token = register_user(database, payload.name, payload.email, payload.password)
    return {"id": user["id"], "name": user["name"], "email": user["email"], "role": user["role"], "token": token}

@app.post("/api/auth/login")
def login(payload: LoginPayload, database=Depends(get_db)):
    user, token = login_user(database, payload.email, payload.password)
    return {"id": user["id"], "name": user["name"], "email": user["email"], "role": user["role"], "token": token}

@app.get("/api/auth/me", response_model=CurrentUser)
def me(current_user: CurrentUser = Depends(get_current_user)):
    return current_user

# -----------------
# Catalog
# -----------------

@app.get("/api/products")
def products_index(category: Optional[str] = None, database=Depends(get_db)):
    return list_products(database, category)

@app.get("/api/products/{product_id}")
def products_show(product_id: str, database=Depends(get_db)):
    return get_product(database, product_id)

# -----------------
# Admin (catalog)
# -----------------

@app.post("/api/products", status_code=201)
def admin_create_product(payload: Product, admin: CurrentUser = Depends(require_admin), database=Depends(get_db)):
    return create_product(database, payload)

@app.put("/api/products/{product_id}")
def admin_update_product(product_id: str, payload: ProductUpdate, admin: CurrentUser = Depends(require_admin), database=Depends(get_db)):
    return update_product(database, product_id, payload)

@app.delete("/api/products/{product_id}")
def admin_delete_product(product_id: str, admin: CurrentUser = Depends(require_admin), database=Depends(get_db)):
    delete_product(database, product_id)
    return {"message": "Product removed."}

# -----------------
# Orders
# -----------------

@app.post("/api/orders", status_code=201)
def create_order(payload: OrderPayload, current_user: CurrentUser = Depends(get_current_user), database=Depends(get_db)):
    return place_order(database, current_user, payload.items, payload.shipping_address)

@app.get("/api/orders/my-orders")
def my_orders(current_user: CurrentUser = Depends(get_current_user), database=Depends(get_db)):
    return list_orders_for_user(database, current_user)

@app.get("/api/orders")
def admin_orders(admin: CurrentUser = Depends(require_admin), database=Depends(get_db)):
    return list_all_orders(database)

# -----------------
# Admin (users)
# -----------------

@app.get("/api/users")
def admin_users(admin: CurrentUser = Depends(require_admin), database=Depends(get_db)):
    return list_users(database)

@app.put("/api/users/{user_id}/toggle-active")
def admin_toggle_user(user_id: str, admin: CurrentUser = Depends(require_admin), database=Depends(get_db)):
    is_active = toggle_user_active(database, user_id)
    return {"message": f"User {'activated' if is_active else 'deactivated'}.", "is_active": is_active}

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
