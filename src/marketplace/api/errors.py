"""HTTP mapping of domain errors.

Protean's handlers are installed first for everything it knows; the
marketplace's own error types then take over with a uniform body
``{"success": false, "error": "<message>"}``. A commit that lost a race
against a concurrent writer is a conflict, like any rejected transition.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers as register_protean_handlers

from marketplace.domain import logger
from marketplace.shared.errors import ExternalServiceError, IntegrityConflict, TransitionError, first_message

_STATUS_CODES = {
    ValidationError: 400,
    ObjectNotFoundError: 404,
    TransitionError: 409,
    IntegrityConflict: 409,
    ExpectedVersionError: 409,
    ExternalServiceError: 502,
}


def _error_response(status_code, exc):
    return JSONResponse(status_code=status_code, content={"success": False, "error": first_message(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    register_protean_handlers(app)

    for exc_class, status_code in _STATUS_CODES.items():

        async def handler(request: Request, exc: Exception, status_code=status_code):
            if status_code >= 500:
                logger.error("request_failed", path=request.url.path, error=first_message(exc))
            return _error_response(status_code, exc)

        app.add_exception_handler(exc_class, handler)
