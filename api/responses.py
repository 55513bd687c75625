"""Response envelope helpers shared by the API routers."""

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from crawlers.core.exceptions import ScrapeHubError
from utils.logging import get_logger

logger = get_logger("api")


def ok(data: Any = None, message: str = "OK", **extra) -> dict:
    """성공 응답 {success, message, data, ...}"""
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def fail(status_code: int, message: str, error: dict) -> JSONResponse:
    """실패 응답 {success, message, error}"""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": error},
    )


def pagination(page: int, limit: int, total: int) -> dict:
    return {
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit if limit else 0,
        "totalItems": total,
        "itemsPerPage": limit,
    }


async def scrape_hub_error_handler(request: Request, exc: ScrapeHubError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return fail(exc.http_status, exc.message, exc.to_dict())


async def request_validation_error_handler(request: Request,
                                           exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return fail(400, "Validation error", {
        "code": "VALIDATION_ERROR",
        "message": "Validation error",
        "details": {"errors": errors},
    })


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return fail(500, "Internal server error", {
        "code": "INTERNAL_ERROR",
        "message": str(exc) or type(exc).__name__,
        "details": {},
    })


def request_meta(request: Request) -> dict:
    """작업 레코드에 남길 요청 정보"""
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
        "request_headers": dict(request.headers),
    }
