import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from spend_circle.db.database import check_db_connection, init_db
from spend_circle.api.v1.routes.circles import router as circles_router
from spend_circle.api.v1.routes.expenses import router as expenses_router
from spend_circle.api.v1.routes.debts import router as debts_router
from spend_circle.api.v1.routes.settlements import router as settlements_router
from spend_circle.api.v1.routes.claims import router as claims_router
from spend_circle.rabbitmq.producer import close_rabbitmq_producer
from spend_circle.rabbitmq.topology import init_rabbitmq
from spend_circle.services.errors import (
    IndexRequiredError, InvalidStateError, LedgerError, NotFoundError,
    PermissionDeniedError, UnexpectedError, ValidationError
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: 400,
    PermissionDeniedError: 403,
    NotFoundError: 404,
    InvalidStateError: 409,
    IndexRequiredError: 412,
    UnexpectedError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    # Initialize RabbitMQ
    init_rabbitmq()
    yield
    close_rabbitmq_producer()


app = FastAPI(
    title="Spend Circle - Shared Expense Ledger",
    description="Manages circles, split expenses, debts, settlements and expense claims",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    status_code = ERROR_STATUS.get(type(exc), 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


app.include_router(circles_router)
app.include_router(expenses_router)
app.include_router(debts_router)
app.include_router(settlements_router)
app.include_router(claims_router)


@app.get("/")
def read_root():
    return {"message": "Spend Circle API", "version": "1.0.0"}


@app.get("/health")
def health_check():
    if not check_db_connection():
        return JSONResponse(status_code=503, content={"status": "unhealthy"})
    return {"status": "healthy"}
