import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.api import admin, auth, orders, products
from storefront.core.config import settings
from storefront.core.csrf import CSRF_HEADER, csrf_protect
from storefront.core.exceptions import RateLimited, StorefrontError, TransactionFailure
from storefront.core.logging import bind_request_id, setup_logging, get_logger
from storefront.db.session import init_db

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[CSRF_HEADER, "Retry-After", "Idempotency-Replayed", "X-Request-ID"],
)

app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(products.router)
app.include_router(orders.router)


@app.middleware("http")
async def access_log(request: Request, call_next):
    request_id = bind_request_id(request.headers.get("x-request-id", "")[:64] or None)
    request.state.request_id = request_id
    started = time.perf_counter()
    # Unhandled exceptions propagate past us to the 500 handler
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        duration_ms = round((time.perf_counter() - started) * 1000, 1)
        logger.info(
            f"{request.method} {request.url.path} {status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": duration_ms,
            },
        )


# ============= ERROR HANDLERS =============

@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    if isinstance(exc, TransactionFailure):
        logger.warning(f"{request.method} {request.url.path} failed: {exc.code}")
    else:
        logger.debug(f"{request.method} {request.url.path} rejected: {exc.code}")

    headers = exc.headers() if isinstance(exc, RateLimited) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = []
    for error in exc.errors():
        loc = list(error.get("loc", ()))
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        details.append({
            "field": ".".join(str(part) for part in loc) or "body",
            "message": error.get("msg", "Invalid value"),
        })
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "code": "validation_error", "details": details},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "An internal server error occurred. Please try again later."},
        headers={"X-Request-ID": getattr(request.state, "request_id", "")},
    )


# ============= ROUTES =============

@app.get("/health")
async def health():
    return {"status": "ok", "version": settings.APP_VERSION}


@app.get("/api/csrf-token")
async def get_csrf_token(request: Request, _: None = Depends(csrf_protect)):
    """Issue (or reuse) the caller's CSRF token; also sent as the X-CSRF-Token header."""
    return {"csrfToken": csrf_protect.issue(request)}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
