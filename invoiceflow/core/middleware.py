from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from invoiceflow.core.security import extract_session_token
import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)

PROTECTED_PREFIX = "/api"

class SessionGateMiddleware(BaseHTTPMiddleware):
    """Rejects unauthenticated /api calls before routing and logs every request."""

    async def dispatch(self, request: Request, call_next: Callable):
        endpoint = request.url.path
        method = request.method
        started = time.perf_counter()

        if endpoint.startswith(PROTECTED_PREFIX):
            settings = request.app.state.settings
            token = extract_session_token(request, settings.SESSION_COOKIE_NAME)
            if not request.app.state.sessions.resolve(token):
                # No store access happens for a rejected request
                logger.warning(f"Rejected {method} {endpoint}: no valid session")
                return JSONResponse(
                    status_code=401,
                    content={"detail": "Unauthorized", "error": "unauthorized"}
                )

        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{method} {endpoint} -> {response.status_code} ({elapsed_ms:.1f} ms)")
        return response
