"""Starlette application setup for the auth service."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from koro_i18n.auth.service import AuthService
from koro_i18n.servers.auth import build_auth_routes
from koro_i18n.servers.context import AppContext
from koro_i18n.servers.correlation import CorrelationIdMiddleware, SecurityHeadersMiddleware
from koro_i18n.servers.csrf import CsrfMiddleware
from koro_i18n.servers.middleware import DEFAULT_PUBLIC_PATHS, AuthMiddleware
from koro_i18n.utils.environment import AppConfig, load_config

logger = logging.getLogger("koro-i18n.server.main")


async def health_check(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def _cleanup_loop(service: AuthService, interval: float) -> None:
    """Periodically reap expired state tokens and sessions."""
    while True:
        await asyncio.sleep(interval)
        try:
            states, sessions = await service.cleanup()
        except Exception as e:  # keep the loop alive; next tick retries
            logger.error(f"Session cleanup failed: {e}", exc_info=True)
            continue
        if states or sessions:
            logger.debug(f"Cleanup removed {states} state tokens and {sessions} sessions")


def _build_lifespan(context: AppContext):
    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        config = context.config
        service = context.auth_service
        logger.info(
            f"Auth service starting (session backend: {service.sessions.backend})..."
        )
        cleanup_task = asyncio.create_task(
            _cleanup_loop(service, config.session_cleanup_interval_seconds)
        )
        try:
            yield
        finally:
            logger.info("Auth service shutting down...")
            cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await cleanup_task
            try:
                await service.aclose()
            except Exception as e:
                logger.error(f"Error during cleanup: {e}", exc_info=True)
            logger.info("Auth service shutdown complete.")

    return lifespan


def create_app(
    config: AppConfig | None = None,
    *,
    auth_service: AuthService | None = None,
    extra_routes: list[Route] | None = None,
) -> Starlette:
    """Build the ASGI application.

    *config* defaults to :func:`load_config`, which raises
    :class:`~koro_i18n.auth.errors.ConfigurationError` when required settings
    are missing.  *auth_service* may be supplied to inject test doubles;
    otherwise it is wired from *config*.
    """
    config = config or load_config()
    service = auth_service or AuthService.from_config(config)
    context = AppContext(config=config, auth_service=service)

    routes: list[Route] = [
        Route("/healthz", health_check, methods=["GET"], include_in_schema=False),
        *build_auth_routes(service, config),
        *(extra_routes or []),
    ]

    middleware = [
        Middleware(CorrelationIdMiddleware),
        Middleware(SecurityHeadersMiddleware, hsts=config.cookie_secure),
    ]
    if config.cors_origins:
        middleware.append(
            Middleware(
                CORSMiddleware,
                allow_origins=list(config.cors_origins),
                allow_credentials=True,
                allow_methods=["*"],
                allow_headers=["*"],
            )
        )
    middleware.append(Middleware(CsrfMiddleware))
    middleware.append(
        Middleware(
            AuthMiddleware,
            auth_service=service,
            required=True,
            public_paths=DEFAULT_PUBLIC_PATHS,
        )
    )

    app = Starlette(routes=routes, middleware=middleware, lifespan=_build_lifespan(context))
    app.state.context = context
    logger.info("Added /healthz endpoint and /auth routes")
    return app
