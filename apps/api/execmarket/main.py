import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from execmarket.core import MarketplaceError, get_settings, limiter, setup_logging
from execmarket.core.constants import REQUEST_ID_HEADER
from execmarket.core.logging import reset_request_id, set_request_id
from execmarket.routers import ROUTERS

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    setup_logging()
    logger.info("execmarket API starting")
    yield


app = FastAPI(
    title="ExecMarket API",
    description="Anonymized candidate search, faceting and paid profile disclosure.",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    token = set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        reset_request_id(token)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(_request: Request, exc: MarketplaceError):
    body = {"detail": exc.message, "code": exc.code}
    field = getattr(exc, "field", None)
    if field:
        body["field"] = field
    payment_ref = getattr(exc, "payment_ref", None)
    if payment_ref:
        body["payment_ref"] = payment_ref
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Service temporarily unavailable. Please try again.", "code": "dependency_unavailable"},
    )


for router in ROUTERS:
    app.include_router(router)


@app.get("/health")
async def health():
    return {"status": "ok"}
