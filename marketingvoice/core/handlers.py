# marketingvoice/core/handlers.py
import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ..utils.errors import APIError, BadRequestError

logger = logging.getLogger(__name__)


def _failure(code: str, message: str, details=None) -> dict:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details
        },
        "success": False,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


async def api_error_handler(request: Request, exc: APIError):
    if exc.status_code >= 500:
        logger.error(f"API Error: {exc.error_message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError):
    error = BadRequestError("Invalid request body", details=[
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()
    ])
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database Error: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content=_failure("DATABASE_ERROR", "Database operation failed")
    )


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected Error: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content=_failure("INTERNAL_ERROR", "An error occurred while processing your request")
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
