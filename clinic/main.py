from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
import time
import logging
import os

from .api.v1.auth import router as auth_router
from .api.v1.users import router as users_router
from .api.v1.patients import router as patients_router
from .api.v1.doctors import router as doctors_router
from .api.v1.appointments import router as appointments_router
from .api.v1.invoices import router as invoices_router
from .api.v1.medical_records import router as medical_records_router
from .api.v1.dashboard import router as dashboard_router
from .core.config import settings
from .core.database import SessionLocal, init_db
from .core.exceptions import ReferentialConflictError
from .core.rate_limit import build_rate_limiter, get_client_ip
from .services.user_service import seed_roles

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Clinic management: patients, doctors, appointments, invoices and medical records",
    openapi_url="/api/v1/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Middleware setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Only add TrustedHostMiddleware in production, not in testing
if not os.getenv("TESTING"):
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=["localhost", "127.0.0.1", "*.localhost", "testserver"]
    )

@app.middleware("http")
async def rate_limit_requests(request: Request, call_next):
    limiter = getattr(request.app.state, "rate_limiter", None)
    path = request.url.path
    if limiter is None or not path.startswith("/api"):
        return await call_next(request)

    peer = request.client.host if request.client else None
    key = f"{get_client_ip(request.headers, fallback=peer)}:{path}"
    strict = path in settings.RATE_LIMIT_STRICT_ROUTES
    result = limiter.hit(
        key,
        max_requests=settings.RATE_LIMIT_STRICT_MAX_REQUESTS if strict else None
    )

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(result.reset_at)),
    }
    if not result.allowed:
        retry_after = result.retry_after()
        logger.warning(f"Rate limit exceeded for {key}")
        return JSONResponse(
            status_code=429,
            content={
                "error": "Too Many Requests",
                "message": "Too many requests, please try again later",
                "retry_after": retry_after
            },
            headers={**headers, "Retry-After": str(retry_after)}
        )

    response = await call_next(request)
    response.headers.update(headers)
    return response

# Custom middleware for request logging and timing
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    # Log request
    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Time: {process_time:.4f}s"
    )

    return response

# Exception handlers
@app.exception_handler(ReferentialConflictError)
async def referential_conflict_handler(request: Request, exc: ReferentialConflictError):
    return JSONResponse(
        status_code=409,
        content={
            "error": "Conflict",
            "cannot_delete": True,
            "message": exc.detail
        }
    )

@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    detail = getattr(exc, "detail", None)
    return JSONResponse(
        status_code=404,
        content={
            "error": "Not Found",
            "detail": detail or "The requested resource was not found",
            "path": str(request.url.path)
        }
    )

@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    logger.error(f"Internal server error: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred"
        }
    )

# Include routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(patients_router, prefix="/api/v1")
app.include_router(doctors_router, prefix="/api/v1")
app.include_router(appointments_router, prefix="/api/v1")
app.include_router(invoices_router, prefix="/api/v1")
app.include_router(medical_records_router, prefix="/api/v1")
app.include_router(dashboard_router, prefix="/api/v1")

# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    logger.info("Starting Clinic Management System...")

    # Check database connection
    db_url = settings.get_database_url
    db_type = "PostgreSQL" if "postgresql" in db_url else "SQLite" if "sqlite" in db_url else "Unknown"
    logger.info(f"Using {db_type} database")

    # Initialize database
    try:
        init_db()
        db = SessionLocal()
        try:
            seed_roles(db)
        finally:
            db.close()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    if settings.RATE_LIMIT_ENABLED:
        app.state.rate_limiter = build_rate_limiter(settings)
        logger.info(f"Rate limiting enabled ({settings.RATE_LIMIT_BACKEND} backend)")
    else:
        app.state.rate_limiter = None

    logger.info("Application startup complete")

@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown."""
    logger.info("Shutting down Clinic Management System...")
    limiter = getattr(app.state, "rate_limiter", None)
    if limiter is not None:
        limiter.close()

# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.VERSION
    }

# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Welcome to Clinic Management System API",
        "version": settings.VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health"
    }

# API Info endpoint
@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.VERSION,
        "endpoints": {
            "authentication": "/api/v1/auth",
            "roles": "/api/v1/roles",
            "users": "/api/v1/users",
            "patients": "/api/v1/patients",
            "doctors": "/api/v1/doctors",
            "appointments": "/api/v1/appointments",
            "invoices": "/api/v1/invoices",
            "medical_records": "/api/v1/medical-records",
            "dashboard": "/api/v1/dashboard",
            "docs": "/docs",
            "openapi": "/api/v1/openapi.json"
        }
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "clinic.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info"
    )
