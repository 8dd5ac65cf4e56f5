"""FastAPI application setup for the Neura insights dashboard gateway."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from neura_dashboard.api import router as api_router
from neura_dashboard.check_backend import get_backend_status
from neura_dashboard.errors import ApiError, AuthError, FieldValidationError, MutationInFlight, XeroNotConnected
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="neura_dashboard/main")

app = FastAPI(title="Neura Dashboard")


@app.exception_handler(ApiError)
def handle_api_error(request: Request, exc: ApiError):
    """Relay backend failures with the backend's status (502 when there was none)."""
    status_code = exc.status if 400 <= exc.status < 600 else 502
    body = {"detail": exc.message, "status_text": exc.status_text}
    if exc.is_unauthorized:
        body["redirect"] = exc.login_redirect
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(FieldValidationError)
def handle_field_error(request: Request, exc: FieldValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(MutationInFlight)
def handle_mutation_in_flight(request: Request, exc: MutationInFlight):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(XeroNotConnected)
def handle_xero_not_connected(request: Request, exc: XeroNotConnected):
    return JSONResponse(status_code=409, content={"detail": str(exc), "action": "connect_xero"})


@app.exception_handler(AuthError)
def handle_auth_error(request: Request, exc: AuthError):
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.get("/healthz")
def healthz():
    """Liveness plus a non-fatal backend probe."""
    backend = get_backend_status()
    return {"status": "ok", "backend": backend}


# API routes
app.include_router(api_router, prefix="/v1")
