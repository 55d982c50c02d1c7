"""Exception handlers turning domain errors into HTTP responses."""

import logging
from urllib.parse import urlencode

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from impactos.core.errors import ImpactOSError, NoOrganization, Unauthenticated
from impactos.core.structured_logging import log_json
from impactos.schemas.errors import ErrorResponse

logger = logging.getLogger(__name__)


def is_page_request(request: Request) -> bool:
    """Browser navigations get redirects; everything else gets JSON."""
    return request.method == "GET" and not request.url.path.startswith("/api/")


def error_body(exc: ImpactOSError) -> dict:
    body = ErrorResponse(
        error=exc.code,
        message=exc.message,
        details=exc.details,
        redirect_to=getattr(exc, "redirect_to", None),
    )
    return body.model_dump(exclude_none=True)


async def impactos_error_handler(request: Request, exc: ImpactOSError):
    if is_page_request(request):
        if isinstance(exc, Unauthenticated):
            query = urlencode({"error": exc.login_reason, "next": request.url.path})
            return RedirectResponse(url=f"/login?{query}")
        if isinstance(exc, NoOrganization):
            return RedirectResponse(url=exc.redirect_to)

    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    log_json(
        logger,
        level,
        "request_failed",
        path=request.url.path,
        error=exc.code,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        details[".".join(loc) or "body"] = err.get("msg", "Invalid value")
    body = ErrorResponse(
        error="validation_error",
        message="Request validation failed",
        details=jsonable_encoder(details),
    )
    return JSONResponse(status_code=422, content=body.model_dump(exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ImpactOSError, impactos_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
