"""Security middleware for FastAPI - bearer token verification gate."""

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.session import SessionManager
from auth.exceptions import AuthError, ServiceUnavailableError
from api.base import error_response, ErrorCodes
from api.errors import auth_error_status


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that verifies the access token and attaches identity.

    For protected routes:
    1. Extracts the bearer token from the Authorization header
    2. Verifies signature, expiry and salt liveness via SessionManager
    3. Sets user_id and salt in request.state

    Public paths bypass authentication entirely.
    """

    PUBLIC_PATHS = [
        "/auth/register",
        "/auth/activate/",
        "/auth/login",
        "/auth/refresh",
        "/auth/password/",
        "/health",
        "/docs",
        "/openapi.json",
        "/storage/",
    ]

    def __init__(self, app, session_manager: SessionManager):
        super().__init__(app)
        self._session_manager = session_manager

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path):
                return True
        return False

    @staticmethod
    def _bearer_token(request: Request) -> str | None:
        header = request.headers.get("Authorization")
        if not header:
            return None
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        path = request.url.path

        # Skip auth for public paths
        if self._is_public_path(path):
            return await call_next(request)

        token = self._bearer_token(request)

        if not token:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.NOT_AUTHENTICATED,
                    "Bearer token is required for authentication",
                    request,
                ).model_dump(mode="json"),
            )

        try:
            # Salt lookup is a blocking database call
            context = await run_in_threadpool(self._session_manager.verify_access_token, token)
        except AuthError as e:
            status_code, code = auth_error_status(e)
            headers = None
            message = "Bearer token is expired" if code == ErrorCodes.TOKEN_EXPIRED else "Authentication failed. Please login."
            if isinstance(e, ServiceUnavailableError):
                headers = {"Retry-After": str(e.retry_after_seconds)}
                message = "Service temporarily unavailable. Please retry."
            return JSONResponse(
                status_code=status_code,
                headers=headers,
                content=error_response(code, message, request).model_dump(mode="json"),
            )

        request.state.user_id = context.user_id
        request.state.salt = context.salt

        return await call_next(request)
