import logging
import os
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import (
    DomainException,
    RepositoryException,
    TransientStoreException,
    is_store_busy,
    store_error_cause,
)

logger = logging.getLogger(__name__)


def _title_from_status(status_code: int) -> str:
    mapping = {
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        409: "Conflict",
        422: "Unprocessable Entity",
        500: "Internal Server Error",
        503: "Service Unavailable",
    }
    return mapping.get(status_code, "Error")


def _problem(
    *,
    status: int,
    title: Optional[str] = None,
    detail: Optional[Any] = None,
    instance: Optional[str] = None,
    type_: str = "about:blank",
    code: Optional[str] = None,
    errors: Optional[Any] = None,
) -> Dict[str, Any]:
    problem: Dict[str, Any] = {
        "type": type_,
        "title": title or _title_from_status(status),
        "status": status,
        "detail": detail or "",
        "instance": instance or "",
    }
    if code:
        problem["code"] = code
    if errors is not None:
        problem["errors"] = errors
    return problem


def _parse_detail(detail: Any) -> tuple[Optional[str], Optional[str], Optional[Any]]:
    if isinstance(detail, dict):
        code = detail.get("code") if isinstance(detail.get("code"), str) else None
        message = detail.get("message") or detail.get("detail")
        detail_text = message if isinstance(message, str) else None
        errors = detail.get("details") or detail.get("errors")
        return detail_text, code, errors
    if isinstance(detail, str):
        return detail, None, None
    if detail is None:
        return None, None, None
    return str(detail), None, None


def _http_problem_response(
    request: Request, exc: StarletteHTTPException, media_type: str
) -> JSONResponse:
    detail_text, code, errors = _parse_detail(exc.detail)
    problem = _problem(
        status=exc.status_code,
        detail=detail_text,
        instance=request.url.path,
        code=code,
        errors=jsonable_encoder(errors) if errors is not None else None,
    )
    return JSONResponse(
        problem,
        status_code=exc.status_code,
        media_type=media_type,
        headers=getattr(exc, "headers", None),
    )


def _validation_problem_response(
    request: Request, errors: Any, strict_schemas: bool, media_type: str
) -> JSONResponse:
    detail_list = jsonable_encoder(errors)
    if strict_schemas:
        problem = _problem(
            status=422,
            title=_title_from_status(422),
            detail="Request validation failed",
            instance=request.url.path,
            code="validation_error",
            errors=detail_list,
        )
        return JSONResponse(problem, status_code=422, media_type=media_type)
    return JSONResponse(
        content={
            "type": "about:blank",
            "title": _title_from_status(422),
            "status": 422,
            "detail": detail_list,
            "instance": request.url.path,
            "code": "validation_error",
            "errors": detail_list,
        },
        status_code=422,
        media_type="application/json",
    )


def register_error_handlers(app: FastAPI) -> None:
    """Render every error as a problem-details style JSON envelope with a stable ``code``."""
    strict_schemas = os.getenv("STRICT_SCHEMAS", "").strip().lower() in {
        "1",
        "true",
        "yes",
        "on",
    }
    default_media_type = "application/problem+json" if strict_schemas else "application/json"

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _http_problem_response(request, exc, default_media_type)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return _http_problem_response(request, exc, default_media_type)

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        # Routes normally translate these; this covers dependencies and stray raises.
        if exc.status_code >= 500:
            logger.error(f"Unhandled domain error on {request.url.path}: {exc.code}")
        return _http_problem_response(request, exc.to_http_exception(), default_media_type)

    @app.exception_handler(RepositoryException)
    @app.exception_handler(SQLAlchemyError)
    async def store_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        if is_store_busy(store_error_cause(exc)):
            logger.warning(f"Store busy on {request.url.path}: {exc}")
            return _http_problem_response(
                request, TransientStoreException().to_http_exception(), default_media_type
            )
        logger.error(f"Database error on {request.url.path}: {exc}")
        problem = _problem(
            status=500,
            detail="Database operation failed",
            instance=request.url.path,
            code="DATABASE_ERROR",
        )
        return JSONResponse(problem, status_code=500, media_type=default_media_type)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _validation_problem_response(
            request, exc.errors(), strict_schemas, default_media_type
        )

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _validation_problem_response(
            request, exc.errors(), strict_schemas, default_media_type
        )
