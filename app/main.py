import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.endpoints import auth as auth_api
from app.api.endpoints import agencies as agencies_api
from app.api.endpoints import clients as clients_api
from app.api.endpoints import commissions as commissions_api
from app.core.exceptions import (
    CoreError,
    NotFound,
    InvalidParent,
    DuplicateEmail,
    DuplicateClient,
    HasChildren,
    InvalidTransition,
    ConcurrentModification,
    Unauthorized,
    AgencyRequired,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Agency Referral Tracker API", version="0.1.0")

# Checked in order, so subclasses (AccessDenied -> NotFound) resolve to their base's code
ERROR_STATUS_CODES = (
    (NotFound, 404),
    (InvalidParent, 400),
    (AgencyRequired, 400),
    (InvalidTransition, 400),
    (DuplicateEmail, 400),
    (DuplicateClient, 400),
    (HasChildren, 409),
    (ConcurrentModification, 409),
    (Unauthorized, 403),
    (StoreUnavailable, 503),
)

@app.exception_handler(CoreError)
async def core_error_handler(request: Request, exc: CoreError):
    status_code = next((code for error_type, code in ERROR_STATUS_CODES if isinstance(exc, error_type)), 400)
    headers = {"Retry-After": "1"} if isinstance(exc, StoreUnavailable) else None
    return JSONResponse(status_code=status_code, content={"detail": str(exc)}, headers=headers)

# Include API routers
app.include_router(auth_api.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(agencies_api.router, prefix="/api/v1/agencies", tags=["Agencies"])
app.include_router(clients_api.router, prefix="/api/v1/clients", tags=["Clients"])
app.include_router(commissions_api.router, prefix="/api/v1/commissions", tags=["Commissions"])

@app.get("/ping", tags=["Health Check"])
async def ping():
    return {"message": "pong"}
