from fastapi import Request
import logging
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("app")

class AuthLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        has_auth = bool(request.headers.get("Authorization"))

        response = await call_next(request)

        # Log auth-related status codes
        if response.status_code == 401:
            logger.warning(f"Auth error: 401 on {request.method} {path} (auth header {'present' if has_auth else 'missing'})")
        elif response.status_code == 403:
            logger.warning(f"Permission denied: 403 on {request.method} {path}")

        return response
