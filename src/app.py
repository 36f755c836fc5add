"""Contact Service - FastAPI server for the institute's public contact form and its admin inbox."""

import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.shared.common.config import get_cors_origins
from src.shared.common.database import init_db
from src.shared.contact.errors import ContactRejection
from src.shared.contact.routes import router as contact_router
from src.shared.admin.routes import router as admin_messages_router
from src.shared.settings.routes import admin_router as admin_settings_router
from src.shared.settings.routes import public_router as public_settings_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

CORS_ORIGINS = get_cors_origins()

CONTACT_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

app = FastAPI(
    title="Contact Service",
    description="Public contact form with layered abuse defenses, plus the admin inbox",
    version="0.1.0"
)


# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    try:
        init_db()
        logging.info("Database initialization completed on startup")
    except Exception as e:
        # Log error but don't crash the app
        logging.error(f"Database initialization error on startup: {str(e)}")


# Include contact routes
app.include_router(contact_router)

# Include admin routes
app.include_router(admin_messages_router)
app.include_router(admin_settings_router)

# Include public settings routes
app.include_router(public_settings_router)

# CORS configuration - must be added before exception handlers
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Retry-After"],
)


@app.middleware("http")
async def contact_security_headers(request: Request, call_next):
    """Add hardening headers to every contact endpoint response."""
    response = await call_next(request)
    if request.url.path.startswith("/api/contact"):
        for header, value in CONTACT_SECURITY_HEADERS.items():
            response.headers[header] = value
    return response


def _cors_headers(request: Request) -> dict:
    """CORS headers for error responses produced outside the CORS middleware."""
    headers = {}
    origin = request.headers.get("origin")
    if origin in CORS_ORIGINS:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
        headers["Access-Control-Allow-Methods"] = "*"
        headers["Access-Control-Allow-Headers"] = "*"
    return headers


@app.exception_handler(ContactRejection)
async def contact_rejection_handler(request: Request, exc: ContactRejection):
    """Render pipeline rejections as {success: false, message}."""
    headers = _cors_headers(request)
    headers.update(exc.headers())
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_content(),
        headers=headers
    )


# Global exception handlers to ensure CORS headers are always added
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Ensure CORS headers are added to FastAPI HTTP exceptions."""
    headers = _cors_headers(request)
    if exc.headers:
        headers.update(exc.headers)

    # Handle both string and dict detail formats
    if isinstance(exc.detail, dict):
        content = exc.detail
    elif isinstance(exc.detail, str):
        content = {"detail": exc.detail}
    else:
        content = {"detail": str(exc.detail)}

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=headers
    )


@app.exception_handler(StarletteHTTPException)
async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Ensure CORS headers are added to Starlette HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail} if isinstance(exc.detail, (str, dict)) else {"detail": str(exc.detail)},
        headers=_cors_headers(request)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Ensure CORS headers are added to validation errors."""
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors())},
        headers=_cors_headers(request)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Ensure CORS headers are added to all exceptions."""
    logging.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers=_cors_headers(request)
    )


@app.get("/")
async def root():
    return {"message": "Contact Service API is running", "status": "ok"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
