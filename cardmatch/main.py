import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cardmatch.config import LOG_LEVEL
from cardmatch.db.db import Base, SessionLocal, engine
from cardmatch.dependencies.services import get_categorization_service
from cardmatch.errors import CardMatchError
from cardmatch.routes import categorization_router, portfolio_router, recommendation_router
from cardmatch.services.catalog_repository import load_catalog_file, seed_catalog

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def init_catalog() -> None:
    """Create tables and load the packaged sample catalog into an empty database."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_catalog(db, load_catalog_file())
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler - runs on startup and shutdown"""
    # Startup
    init_catalog()
    await get_categorization_service().prepare()
    yield
    # Shutdown


app = FastAPI(
    title="CardMatch API",
    version="0.1.0",
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(CardMatchError)
async def cardmatch_exception_handler(request, exc: CardMatchError):  # type: ignore[override]
    """Map service-layer errors to their HTTP status and the shared error envelope."""
    if exc.status_code >= 500:
        logger.warning("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):  # type: ignore[override]
    """Handle validation errors with HTTP 400 to keep one error contract."""
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request payload.",
                # ctx may hold exception objects that are not JSON serializable
                "details": {"errors": [{k: v for k, v in e.items() if k != "ctx"} for e in exc.errors()]},
            }
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):  # type: ignore[override]
    """Handle general exceptions - log and return 500 error"""
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "Internal server error.",
                "details": {},
            }
        },
    )


# Register routers
app.include_router(categorization_router)
app.include_router(recommendation_router)
app.include_router(portfolio_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
