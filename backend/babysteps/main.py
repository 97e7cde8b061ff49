import logging
from contextlib import asynccontextmanager

import psycopg
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .categories import router as categories_router
from .chat import router as chat_router
from .config import settings
from .database import close_db_pool, database_status, init_db_pool
from .goals import router as goals_router
from .investments import router as investments_router
from .progress import router as progress_router
from .responses import ErrorResponse
from .transactions import router as transactions_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    await init_db_pool()
    yield
    await close_db_pool()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(categories_router)
app.include_router(goals_router)
app.include_router(investments_router)
app.include_router(progress_router)
app.include_router(transactions_router)
app.include_router(chat_router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(psycopg.Error)
async def persistence_exception_handler(request: Request, exc: psycopg.Error) -> JSONResponse:
    logger.exception("Persistence failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=ErrorResponse(error="Database operation failed").model_dump())


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "database": database_status()}
