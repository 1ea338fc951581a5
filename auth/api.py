"""HTTP routes for authentication and account management.

Thin layer over AuthService: parses requests, sends mail, moves avatar
files and shapes responses. Routes are sync so bcrypt and database calls
run in the threadpool instead of blocking the event loop.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Request, Response

from api.base import success_response
from auth.config import AuthConfig
from auth.exceptions import ForbiddenError, UnauthorizedError
from auth.service import AuthService
from auth.types import (
    AvatarRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPair,
    UpdatePasswordRequest,
    UpdateUserRequest,
)
from clients.email_client import EmailGatewayClient, EmailGatewayError
from clients.storage_client import FileStorageClient

logger = logging.getLogger(__name__)

REFRESH_COOKIE = "refresh_token"


def create_auth_router(
    auth_service: AuthService,
    config: AuthConfig,
    email_client: EmailGatewayClient,
    storage_client: FileStorageClient,
) -> APIRouter:
    """Create auth router with injected service and collaborators."""
    router = APIRouter(tags=["auth"])

    def _set_refresh_cookie(response: Response, tokens: TokenPair) -> None:
        response.set_cookie(
            key=REFRESH_COOKIE,
            value=tokens.refresh_token,
            httponly=True,
            secure=config.secure_cookies,
            samesite="lax",
            max_age=tokens.duration * 3600,
        )

    def _send_activation(email: str, code: str) -> None:
        try:
            email_client.send_activation_email(
                email=email,
                code=code,
                activation_url=config.activation_url(code),
                app_name=config.app_name,
            )
        except EmailGatewayError:
            logger.exception(f"Activation email to {email} was not delivered")

    def _send_reset(email: str, token: str) -> None:
        try:
            email_client.send_password_reset_email(
                email=email,
                token=token,
                reset_url=config.password_reset_url(token),
                app_name=config.app_name,
            )
        except EmailGatewayError:
            logger.exception(f"Password reset email to {email} was not delivered")

    # -------------------------------------------------------------------------
    # Public
    # -------------------------------------------------------------------------

    @router.post("/register", status_code=201)
    def register(request: Request, body: RegisterRequest, background_tasks: BackgroundTasks):
        """Register an inactive account and email its activation link."""
        result = auth_service.register_user(
            name=body.name,
            email=body.email,
            password=body.password,
        )
        background_tasks.add_task(_send_activation, result.email, result.salt)

        return success_response(
            {"message": f"Successfully registered. Please check your email '{result.email}' for the activation link."},
            request,
        )

    @router.get("/activate/{code}")
    def activate(request: Request, code: str):
        profile = auth_service.activate_user(code)
        return success_response(
            {
                "message": f"User with email '{profile.email}' successfully activated.",
                "user": profile.model_dump(mode="json"),
            },
            request,
        )

    @router.post("/login")
    def login(request: Request, response: Response, body: LoginRequest):
        """Authenticate and open a session.

        The refresh token only travels in an http-only cookie.
        """
        result = auth_service.authenticate_user(
            email=body.email,
            password=body.password,
            remember_me=body.remember_me,
        )
        _set_refresh_cookie(response, result.tokens)

        return success_response(
            {
                "access_token": result.tokens.access_token,
                "lifetime": result.tokens.lifetime,
                "user": result.profile.model_dump(mode="json"),
            },
            request,
        )

    @router.post("/refresh", status_code=201)
    def refresh(request: Request, response: Response):
        """Exchange the refresh cookie for a new pair. Each cookie works once."""
        refresh_token = request.cookies.get(REFRESH_COOKIE)
        if not refresh_token:
            raise UnauthorizedError("Authentication failed. Please login.")

        tokens = auth_service.refresh_token(refresh_token)
        _set_refresh_cookie(response, tokens)

        return success_response(
            {"access_token": tokens.access_token, "lifetime": tokens.lifetime},
            request,
        )

    @router.post("/password/forgot", status_code=201)
    def forgot_password(request: Request, body: ForgotPasswordRequest, background_tasks: BackgroundTasks):
        result = auth_service.create_reset_token(body.email)
        background_tasks.add_task(_send_reset, result.email, result.token)

        return success_response(
            {"message": f"A password reset link has been sent to '{result.email}'."},
            request,
        )

    @router.post("/password/reset")
    def reset_password(request: Request, body: ResetPasswordRequest):
        """Set a new password. Logs the account out everywhere."""
        email = auth_service.reset_password(token=body.token, password=body.password)
        return success_response(
            {"message": f"Password for '{email}' has been reset successfully."},
            request,
        )

    # -------------------------------------------------------------------------
    # Authenticated (request.state populated by AuthMiddleware)
    # -------------------------------------------------------------------------

    @router.get("/me")
    def get_me(request: Request):
        profile = auth_service.get_user(request.state.user_id)
        return success_response(profile.model_dump(mode="json"), request)

    @router.patch("/me")
    def update_me(request: Request, body: UpdateUserRequest):
        profile = auth_service.update_user(request.state.user_id, name=body.name, email=body.email)
        return success_response(profile.model_dump(mode="json"), request)

    @router.put("/me/avatar")
    def update_avatar(request: Request, body: AvatarRequest):
        """Store the new avatar, point the user at it, then drop the old file."""
        user_id = request.state.user_id
        previous_url = auth_service.get_avatar_url(user_id)

        url = storage_client.store(body.file)
        profile = auth_service.update_avatar(user_id, url)

        if previous_url:
            storage_client.delete(previous_url)

        return success_response(profile.model_dump(mode="json"), request)

    @router.put("/me/password")
    def update_password(request: Request, body: UpdatePasswordRequest):
        profile = auth_service.update_password(request.state.user_id, body.password)
        return success_response(profile.model_dump(mode="json"), request)

    @router.post("/logout")
    def logout(request: Request, response: Response):
        """Revoke the current session and clear the refresh cookie."""
        refresh_token = request.cookies.get(REFRESH_COOKIE)
        if not refresh_token:
            raise ForbiddenError("Logout failed. Refresh token missing.")

        auth_service.logout_user(salt=request.state.salt, refresh_token=refresh_token)

        response.delete_cookie(key=REFRESH_COOKIE, httponly=True)

        return success_response({"message": "Logged out successfully"}, request)

    return router
