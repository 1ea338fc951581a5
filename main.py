"""Application entry point.

Builds every collaborator from Vault secrets and wires them into the app.
Nothing is a module-level singleton except the app itself.
"""

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from api.base import success_response
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router
from auth.config import AuthConfig
from auth.passwords import PasswordHasher
from auth.repositories import (
    PasswordResetRepository,
    RefreshTokenRepository,
    SaltRepository,
    UserRepository,
)
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionManager
from auth.tokens import TokenCodec
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.storage_client import FileStorageClient
from clients.vault_client import (
    get_database_url,
    get_email_config,
    get_jwt_secret,
    get_storage_config,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    PostgresClient.close_all_pools()


def build_app(
    config: AuthConfig,
    auth_service: AuthService,
    session_manager: SessionManager,
    email_client: EmailGatewayClient,
    storage_client: FileStorageClient,
) -> FastAPI:
    """Assemble routes, middleware and error handlers around ready services."""
    app = FastAPI(title=f"{config.app_name} API", lifespan=lifespan)

    # Added last runs first: request ids exist before the auth gate answers
    app.add_middleware(AuthMiddleware, session_manager=session_manager)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(
        create_auth_router(auth_service, config, email_client, storage_client),
        prefix="/auth",
    )
    app.mount("/storage", StaticFiles(directory=storage_client.storage_dir), name="storage")

    @app.get("/health")
    async def health():
        return success_response({"status": "ok"})

    return app


def create_app(config: AuthConfig | None = None) -> FastAPI:
    """Create the FastAPI app with all services wired."""
    config = config or AuthConfig(
        app_base_url=os.getenv("APP_BASE_URL", "http://localhost:8000"),
        app_name=os.getenv("APP_NAME", "Accounts"),
    )

    db = PostgresClient(get_database_url())
    email_client = EmailGatewayClient(**get_email_config())
    storage = get_storage_config()
    storage_client = FileStorageClient(storage_dir=storage["dir"], public_url=storage["public_url"])

    salts = SaltRepository(db)
    session_manager = SessionManager(
        config=config,
        codec=TokenCodec(get_jwt_secret()),
        salts=salts,
        refresh_tokens=RefreshTokenRepository(db),
    )
    auth_service = AuthService(
        config=config,
        users=UserRepository(db),
        salts=salts,
        password_resets=PasswordResetRepository(db),
        session_manager=session_manager,
        password_hasher=PasswordHasher(rounds=config.password_hash_rounds),
        security_logger=SecurityLogger(db),
    )

    return build_app(config, auth_service, session_manager, email_client, storage_client)


if __name__ == "__main__":
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(), host="0.0.0.0", port=int(os.getenv("APP_PORT", "8000")))
