"""HTTP error taxonomy and the handlers that translate failures into responses."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ValidationError(HTTPException):
    """A required field is missing or holds an invalid value."""

    def __init__(self, detail: Any = "Invalid request") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class AuthError(HTTPException):
    """Credentials did not match."""

    def __init__(self, detail: Any = "Invalid credentials") -> None:
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class NotFoundError(HTTPException):
    """The referenced row does not exist."""

    def __init__(self, detail: Any = "Not found") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    """A unique key is already taken."""

    def __init__(self, detail: Any = "Conflict") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class StoreError(HTTPException):
    """The database rejected or failed a statement."""

    def __init__(self, detail: Any = "Database error") -> None:
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies as 400 instead of FastAPI's 422."""

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Turn any database failure that escaped a handler into a 500."""

    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    details = str(getattr(exc, "orig", None) or exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error", "details": details},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)
