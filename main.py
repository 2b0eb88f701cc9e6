import logging
import os
import platform
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pymongo.errors import PyMongoError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

import config
import database
from cart import router as cart_router
from errors import ShopError
from orders import router as order_router
from products import router as product_router
from reviews import router as review_router
from users import router as user_router
from wishlist import router as wishlist_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("storefront")

STARTED_AT = time.time()

app = FastAPI(title="Storefront API")

# One shared request budget per client IP; the service routes at the bottom are exempt
limiter = Limiter(key_func=get_remote_address, application_limits=[config.api_rate_limit])
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1024)

allowed_origins = [
    "http://localhost:5173",
    "http://localhost:5174",
    config.FRONTEND_URL,
    config.ADMIN_URL,
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o for o in allowed_origins if o],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----- Error envelope -----
# Failures are always HTTP 200 with {"success": false, "message": ...}

def failure(message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message})


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError):
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.kind, exc.message)
    return failure(exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    message = first.get("msg", "Invalid request")
    logger.info("%s %s -> invalid payload: %s", request.method, request.url.path, errors)
    return failure(f"{field}: {message}" if field else message)


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    # called synchronously from the limiter middleware
    logger.warning("Rate limit hit by %s on %s", get_remote_address(request), request.url.path)
    return JSONResponse(
        {
            "success": False,
            "message": "Too many requests from this IP, please try again later.",
            "retryAfter": f"{config.RATE_LIMIT_WINDOW_MINUTES} minutes",
        },
        status_code=429,
    )


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("%s %s -> database error: %s", request.method, request.url.path, exc)
    return failure(str(exc))


@app.middleware("http")
async def unexpected_error_middleware(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as e:
        logger.exception("%s %s failed", request.method, request.url.path)
        return failure(str(e))


# ----- Routers -----

app.include_router(user_router)
app.include_router(product_router)
app.include_router(review_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(wishlist_router)


# ----- Health -----

@app.get("/")
@limiter.exempt
def read_root():
    return PlainTextResponse("API Working")


@app.get("/health")
@limiter.exempt
def health():
    state = database.ping()
    body = {
        "status": "healthy" if state["connected"] else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.time() - STARTED_AT, 1),
        "version": platform.python_version(),
        "database": "connected" if state["connected"] else "disconnected",
    }
    return JSONResponse(body, status_code=200 if state["connected"] else 503)


@app.get("/test")
@limiter.exempt
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
        "stripe": "❌ Not Set" if config.is_placeholder(config.STRIPE_SECRET_KEY) else "✅ Set",
        "razorpay": "❌ Not Set" if config.is_placeholder(config.RAZORPAY_KEY_ID) else "✅ Set",
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            try:
                response["collections"] = database.db.list_collection_names()[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:80]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"

    response["database_url"] = "✅ Set" if config.DATABASE_URL else "❌ Not Set"
    response["database_name"] = "✅ Set" if config.DATABASE_NAME else "❌ Not Set"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", config.PORT))
    uvicorn.run(app, host="0.0.0.0", port=port)
