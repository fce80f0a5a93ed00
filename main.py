"""
Storefront - Application Entry Point
=======================================
FastAPI app initialization, middleware, exception handlers, and router registration.
"""

import logging
import time as _time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from config.database import Base, engine
from common.exceptions import ShopError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
http_logger = logging.getLogger("shop.http")

# ==========================================
# Import ALL models so Alembic/Base can see them
# ==========================================
from modules.user.models import User  # noqa: F401,E402
from modules.catalog.models import Product  # noqa: F401,E402
from modules.coupon.models import Coupon, CouponUsage  # noqa: F401,E402
from modules.cart.models import Cart, CartItem  # noqa: F401,E402
from modules.order.models import Order, OrderItem, OrderStatusLog  # noqa: F401,E402

# ==========================================
# Import routers
# ==========================================
from modules.cart.routes import router as cart_router  # noqa: E402
from modules.coupon.routes import router as coupon_api_router  # noqa: E402
from modules.coupon.admin_routes import router as coupon_admin_router  # noqa: E402
from modules.order.routes import router as order_router  # noqa: E402
from modules.order.admin_routes import router as order_admin_router  # noqa: E402


APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)
    yield


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="Storefront",
    description="Cart, coupon and checkout API",
    version=APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)


# ==========================================
# Exception handlers: {"success": false, "message": ...}
# ==========================================
@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError):
    return JSONResponse(
        {"success": False, "message": exc.message},
        status_code=exc.status_code,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"invalid {field}: {first.get('msg', 'bad request')}" if field else "invalid request"
    return JSONResponse({"success": False, "message": message}, status_code=422)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        {"success": False, "message": str(exc.detail)},
        status_code=exc.status_code,
    )


# ==========================================
# Middleware: Request Log
# ==========================================
_SKIP_PATHS = ("/health", "/favicon.ico")


@app.middleware("http")
async def request_logger(request: Request, call_next):
    """Log method, path, status and latency of every API request."""
    path = request.url.path
    if any(path.startswith(p) for p in _SKIP_PATHS):
        return await call_next(request)

    start = _time.time()
    response = await call_next(request)
    elapsed_ms = int((_time.time() - start) * 1000)
    http_logger.info("%s %s -> %s (%d ms)", request.method, path, response.status_code, elapsed_ms)
    return response


# ==========================================
# Register Routers
# ==========================================
app.include_router(cart_router)
app.include_router(coupon_api_router)
app.include_router(coupon_admin_router)
app.include_router(order_router)
app.include_router(order_admin_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": APP_VERSION}
