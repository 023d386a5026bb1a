import logging

from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from hostpanel.services.errors import (
    HostPanelException,
    IntegrityException,
    NotFoundException,
    QuotaExceededException,
    ValidationException,
)

ERROR_STATUS = {
    IntegrityException: 409,
    NotFoundException: 404,
    QuotaExceededException: 403,
    ValidationException: 400,
}

logger = logging.getLogger(__name__)


def _error_body(error: str, details=None) -> dict:
    body = {"success": False, "error": error}
    if details:
        body["details"] = jsonable_encoder(details)
    return body


def _exception_handler(request: Request, exc: Exception):
    status = ERROR_STATUS.get(type(exc), 500)
    if status >= 500:
        logger.exception("Unhandled application error for path=%s: %s", request.url.path, exc)
    else:
        logger.warning("Request failed path=%s status=%s error=%s", request.url.path, status, exc)
    return JSONResponse(_error_body(str(exc), getattr(exc, "details", None)), status_code=status)


def _request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("Request validation failed path=%s", request.url.path)
    return JSONResponse(_error_body("Validation error", exc.errors()), status_code=400)


def register_exception_handlers(app):
    app.exception_handler(HostPanelException)(_exception_handler)
    app.exception_handler(RequestValidationError)(_request_validation_handler)
