import logging

from starlette.requests import Request
from starlette.responses import JSONResponse

from s3broker.services.errors import (
    BrokerException,
    ConflictException,
    InvalidNameException,
    NotFoundException,
    UnsupportedPlanException,
)

ERROR_STATUS = {
    UnsupportedPlanException: 400,
    InvalidNameException: 400,
    ConflictException: 409,
    NotFoundException: 404,
}

logger = logging.getLogger(__name__)


def status_for(exc: BrokerException, method: str = "GET") -> int:
    if exc.retryable:
        return 503
    status = next((ERROR_STATUS[cls] for cls in type(exc).__mro__ if cls in ERROR_STATUS), 500)
    # Deleting something already gone is 410 Gone for the platform.
    if status == 404 and method == "DELETE":
        return 410
    return status


def _exception_handler(request: Request, exc: Exception):
    status = status_for(exc, request.method)
    if status >= 500:
        logger.exception("Unhandled broker error for path=%s: %s", request.url.path, exc)
    else:
        logger.warning("Request failed path=%s status=%s error=%s", request.url.path, status, exc)
    return JSONResponse({"description": str(exc)}, status_code=status)


def register_exception_handlers(app):
    app.exception_handler(BrokerException)(_exception_handler)
