"""
Response envelope and app-level exception handlers.

Every response body is {"success": true, "data": ...} or
{"success": false, "error": "...", ["details": [...]]}. Store failures and
any other unhandled error are logged in full here and reach the client only
as a generic 500.
"""
import logging
from typing import Any, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from promptsync.store.base import StoreError

logger = logging.getLogger(__name__)


class AuthenticationRequired(Exception):
    """Raised by require_user when no user could be resolved."""


def ok(data: Any) -> dict:
    return {"success": True, "data": data}


def error_response(
    status_code: int, error: str, details: Optional[List[dict]] = None
) -> JSONResponse:
    body = {"success": False, "error": error}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def _validation_details(exc: RequestValidationError) -> List[dict]:
    # exc.errors() can carry exception objects in "ctx"; keep only plain fields
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


async def _handle_auth(request: Request, exc: AuthenticationRequired) -> JSONResponse:
    return error_response(401, "Unauthorized")


async def _handle_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(400, "Invalid request body", _validation_details(exc))


async def _handle_store_failure(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Store failure on %s %s", request.method, request.url.path, exc_info=exc
    )
    return error_response(500, "Internal server error")


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return error_response(500, "Internal server error")


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthenticationRequired, _handle_auth)
    app.add_exception_handler(RequestValidationError, _handle_validation)
    app.add_exception_handler(StoreError, _handle_store_failure)
    app.add_exception_handler(SQLAlchemyError, _handle_store_failure)
    app.add_exception_handler(Exception, _handle_unexpected)
