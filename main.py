from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from database import init_db
from api.applications import router as applications_router
from api.guarantors import router as guarantors_router
from api.loan_types import router as loan_types_router
from api.loans import router as loans_router
from api.qr import router as qr_router
from services.errors import LoanServiceError
from utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, settings.log_json)
    await init_db()
    logger.info("startup_complete", app_name=settings.app_name)
    yield


app = FastAPI(
    title=settings.app_name,
    description="Cooperative loan lifecycle and guarantor verification API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LoanServiceError)
async def loan_service_error_handler(request: Request, exc: LoanServiceError):
    logger.info(
        "request_rejected", path=request.url.path, error=exc.code, status_code=exc.status_code, detail=exc.message
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("database_error", path=request.url.path)
    return JSONResponse(
        status_code=503,
        content={"detail": "Service temporarily unavailable", "error": "system_error"},
    )


app.include_router(loan_types_router)
app.include_router(applications_router)
app.include_router(loans_router)
app.include_router(guarantors_router)
app.include_router(qr_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
