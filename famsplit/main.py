import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from famsplit.core.config import settings
from famsplit.core.errors import DomainError, StorageError
from famsplit.core.logging_config import configure_logging
from famsplit.routers import auth, expenses, families, health, projects, wallets

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Family Split Ledger API",
    version="1.0.0",
    description="API for shared family expenses, split calculation, wallet balances and settlements.",
    # The API is proxied under a path prefix at the edge; /docs below points Swagger at the prefixed schema.
    docs_url=None,
    root_path=settings.root_path,
)


@app.get("/docs", include_in_schema=False)
def swagger_ui():
    prefix = (settings.root_path or "").rstrip("/")
    openapi_url = f"{prefix}{app.openapi_url}"
    return get_swagger_ui_html(openapi_url=openapi_url, title=f"{app.title} - Docs")


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error("domain_error", path=request.url.path, error=type(exc).__name__, detail=exc.detail)
    else:
        logger.info("request_rejected", path=request.url.path, error=type(exc).__name__, status=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("integrity_error", path=request.url.path, error=str(exc.orig))
    return JSONResponse(status_code=409, content={"detail": "conflicting or invalid reference"})


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("storage_error", path=request.url.path, exc_info=exc)
    error = StorageError()
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(families.router)
app.include_router(projects.router)
app.include_router(expenses.router)
app.include_router(wallets.router)
