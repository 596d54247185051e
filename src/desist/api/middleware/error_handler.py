"""
Error Handler Middleware

Provides consistent error handling and response formatting.
Logs errors with correlation IDs for debugging.

Domain errors map to client errors:
- TransitionRejected -> 409 with the rejection reason
- ContactNotFound -> 404
Anything else becomes a sanitized 500.
"""

import traceback
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from desist.config.logging_config import bind_correlation_id, clear_context, get_logger
from desist.domain.exceptions import ContactNotFound, TransitionRejected

logger = get_logger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    Provides:
    - Correlation ID tracking for all requests
    - Consistent error response format
    - Error logging without request bodies (unlock tokens, phone numbers)
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request with error handling."""

        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid4())
        bind_correlation_id(correlation_id)

        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            return response

        except Exception as e:
            logger.error(
                "Unhandled exception",
                path=request.url.path,
                method=request.method,
                error_type=type(e).__name__,
                error_message=str(e),
                traceback=traceback.format_exc(),
            )

            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "correlation_id": correlation_id,
                    "message": "An unexpected error occurred. Please try again.",
                },
                headers={"X-Correlation-ID": correlation_id},
            )

        finally:
            clear_context()


async def transition_rejected_handler(request: Request, exc: TransitionRejected) -> JSONResponse:
    logger.info(
        "Transition rejected",
        path=request.url.path,
        transition=exc.event,
        mode=exc.mode,
        reason=exc.reason,
    )
    return JSONResponse(
        status_code=409,
        content={
            "error": "Transition rejected",
            "event": exc.event,
            "mode": exc.mode,
            "reason": exc.reason,
        },
    )


async def contact_not_found_handler(request: Request, exc: ContactNotFound) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            "error": "Contact not found",
            "contact_id": exc.contact_id,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TransitionRejected, transition_rejected_handler)
    app.add_exception_handler(ContactNotFound, contact_not_found_handler)
