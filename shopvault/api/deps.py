"""
ShopVault — API dependencies and error mapping
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from shopvault.core.errors import ShopVaultError, Transient, ValidationFailed
from shopvault.db.container import ShopVault

logger = logging.getLogger(__name__)


def get_vault(request: Request) -> ShopVault:
    return request.app.state.vault


async def shopvault_error_handler(request: Request, exc: ShopVaultError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def database_error_handler(request: Request, exc: OperationalError | InterfaceError) -> JSONResponse:
    # store reads that reach the route without going through translate_db_errors
    return await shopvault_error_handler(request, Transient.from_db(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationFailed.from_pydantic(exc)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(ShopVaultError, shopvault_error_handler)
    app.add_exception_handler(OperationalError, database_error_handler)
    app.add_exception_handler(InterfaceError, database_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
