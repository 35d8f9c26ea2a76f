"""Main entry point for the OIDC intermediary application."""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, Response

from oidc_intermediary import __version__
from oidc_intermediary.api.routes import build_intermediary_jwks, router
from oidc_intermediary.auth.exceptions import IntermediaryError, UpstreamError
from oidc_intermediary.auth.keys import KeyRole, load_signing_key
from oidc_intermediary.auth.models import ServiceContext
from oidc_intermediary.auth.translator import TokenTranslationService
from oidc_intermediary.core.config import get_settings
from oidc_intermediary.core.logging import get_logger, setup_logging

logger = get_logger(__name__)


def _build_lifespan(
    context: Optional[ServiceContext],
    http_client: Optional[httpx.AsyncClient],
    jwks_file: Optional[str]
):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan management
        Builds the translation service on startup and closes it on shutdown
        """
        logger.info("Starting OIDC intermediary...")

        service_context = context
        static_jwks_file = jwks_file
        if service_context is None:
            settings = get_settings()
            service_context = settings.get_service_context()
            static_jwks_file = static_jwks_file or settings.INTERMEDIARY_JWKS_FILE

        # Fail fast on unusable key material
        load_signing_key(service_context, KeyRole.CLIENT_ASSERTION)
        load_signing_key(service_context, KeyRole.RESIGNING)

        service = TokenTranslationService(service_context, http_client)
        app.state.translation_service = service
        app.state.intermediary_jwks = build_intermediary_jwks(service_context, static_jwks_file)

        logger.info(
            "Intermediary configuration",
            rp_client_id=service_context.rp_client_id,
            token_endpoint=service_context.token_endpoint,
            jwks_uri=service_context.jwks_uri,
            idp_signing_alg=service_context.idp_signing_alg,
            intermediary_signing_alg=service_context.intermediary_signing_alg
        )

        yield

        logger.info("Shutting down OIDC intermediary...")
        await service.close()
        app.state.translation_service = None

    return lifespan


async def upstream_exception_handler(request: Request, exc: UpstreamError):
    """Mirror IdP token endpoint errors verbatim"""
    logger.warning(
        "Mirroring upstream error",
        url=str(request.url),
        status_code=exc.status_code
    )
    return Response(
        content=exc.content,
        status_code=exc.status_code,
        media_type=exc.media_type
    )


async def intermediary_exception_handler(request: Request, exc: IntermediaryError):
    """Render pipeline failures as OAuth2 error responses"""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Token request failed",
        url=str(request.url),
        error=exc.error_code,
        error_description=exc.message,
        status_code=exc.status_code
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error_code, "error_description": exc.message}
    )


async def general_exception_handler(request: Request, exc: Exception):
    """General exception handler for unhandled errors"""
    logger.error(
        "Unhandled exception",
        url=str(request.url),
        method=request.method,
        error=str(exc),
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "server_error", "error_description": str(exc)}
    )


def create_app(
    context: Optional[ServiceContext] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    jwks_file: Optional[str] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        context: Service configuration (read from settings at startup if omitted)
        http_client: HTTP client for IdP calls (created by the service if omitted)
        jwks_file: Static intermediary JWKS file (overrides settings)
    """
    app = FastAPI(
        title="OIDC Intermediary",
        description="Token-exchange intermediary that re-signs IdP identity tokens",
        version=__version__,
        lifespan=_build_lifespan(context, http_client, jwks_file),
        openapi_tags=[
            {
                "name": "token",
                "description": "Authorization-code exchange and identity token translation"
            },
            {
                "name": "keys",
                "description": "Intermediary public keys"
            },
            {
                "name": "health",
                "description": "Health check and system status"
            }
        ]
    )

    # Add custom exception handlers
    app.add_exception_handler(UpstreamError, upstream_exception_handler)
    app.add_exception_handler(IntermediaryError, intermediary_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(router)

    return app


# Create app instance for uvicorn to find
app = create_app()


def main() -> None:
    """Main entry point for the application."""
    settings = get_settings()
    setup_logging(settings)

    logger.info("Starting OIDC intermediary...", host=settings.HOST, port=settings.PORT)

    uvicorn.run(
        create_app(),
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.effective_log_level.lower(),
        access_log=True,
        server_header=False,
        date_header=True,
    )


if __name__ == "__main__":
    main()
