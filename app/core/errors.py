"""
JSON error envelope.

Every error response has the shape the frontend forms expect:

    {"message": "...", "errors": {"field": ["...", ...]}}

`errors` is empty when the failure is not tied to a specific field.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.core.tiers import TierTransitionError

logger = logging.getLogger(__name__)


def error_body(message: str, errors: dict[str, list[str]] | None = None, **extra) -> dict:
    return {"message": message, "errors": errors or {}, **extra}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        # Structured details (e.g. LIMIT_EXCEEDED) keep their extra keys
        body = error_body(
            detail.get("message", "Request failed"),
            detail.get("errors"),
            **{k: v for k, v in detail.items() if k not in ("message", "errors")},
        )
    else:
        body = error_body(str(detail))
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        # Drop the location prefix ('body', 'query', ...) to key by field name
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        field = ".".join(loc) or "request"
        message = err.get("msg", "Invalid value").removeprefix("Value error, ")
        errors.setdefault(field, []).append(message)

    first = next(iter(errors.values()))[0] if errors else "The given data was invalid."
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(first, errors),
    )


async def tier_transition_handler(request: Request, exc: TierTransitionError) -> JSONResponse:
    logger.info(f"Tier transition rejected on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(exc.message, exc.errors),
    )


def register_exception_handlers(app: FastAPI) -> None:
    # Starlette's base class, so router-level 404 and 405 get the envelope too
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(TierTransitionError, tier_transition_handler)
