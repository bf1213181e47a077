"""Main FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dashboard import config
from dashboard.database import engine, Base, SessionLocal
from dashboard.api.routes import router
from dashboard.services.errors import DashboardError, ValidationError
from dashboard.services.seed import bootstrap
# Import models to register them with SQLAlchemy Base
from dashboard.models.domain import User, InviteCode
from dashboard.models.audit import AuditLog
from dashboard.models.session import SessionRecord

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, purge expired sessions and seed the admin account."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        bootstrap(db)
    finally:
        db.close()
    yield


app = FastAPI(
    title="Akcent Dashboard",
    description="Invite-gated user dashboard: registration, sessions, downloads and admin tooling.",
    version="0.1.0",
    lifespan=lifespan
)

# Cookies need explicit origins; "*" is not allowed with credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DashboardError)
def handle_dashboard_error(request: Request, exc: DashboardError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    logger.debug("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=ValidationError.status_code,
        content={"message": ValidationError.default_message}
    )


@app.exception_handler(StarletteHTTPException)
def handle_http_exception(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"}
    )


# Include API routes
app.include_router(router, prefix="/api", tags=["Dashboard"])


# Health check
@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "Akcent Dashboard"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
