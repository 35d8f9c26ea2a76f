"""
OIDC Intermediary API Routes
Defines the token endpoint, the intermediary key set and the health check
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import ValidationError

from oidc_intermediary import __version__
from oidc_intermediary.auth.exceptions import ClientAuthError, IntermediaryError
from oidc_intermediary.auth.keys import KeyRole, load_signing_key, public_jwk
from oidc_intermediary.auth.models import ServiceContext, TokenRequest
from oidc_intermediary.auth.translator import TokenTranslationService

logger = logging.getLogger(__name__)

# Create API router
router = APIRouter()

TOKEN_REQUEST_FIELDS = ("client_id", "code", "redirect_uri", "code_verifier", "client_secret")


def get_translation_service(request: Request) -> TokenTranslationService:
    """Dependency injection for the translation service created at startup"""
    service = getattr(request.app.state, "translation_service", None)
    if service is None:
        raise RuntimeError("Translation service not initialized")
    return service


def build_intermediary_jwks(context: ServiceContext, jwks_file: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the public key set relying parties verify re-signed tokens with.

    Args:
        context: Service configuration
        jwks_file: Optional static JWKS file taking precedence over the derived set

    Returns:
        Dict: JWKS document
    """
    if jwks_file:
        jwks = json.loads(Path(jwks_file).read_text(encoding="utf-8"))
        logger.info("Serving static intermediary JWKS", extra={"jwks_file": jwks_file})
        return jwks

    signing_key = load_signing_key(context, KeyRole.RESIGNING)
    return {"keys": [public_jwk(signing_key)]}


async def _read_body(request: Request) -> Dict[str, Any]:
    """Read a form or JSON request body into a plain dict"""
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("application/json"):
            body = await request.json()
        else:
            body = dict(await request.form())
    except ValueError as e:
        raise IntermediaryError(f"Malformed request body: {e}", "invalid_request", 400) from e

    if not isinstance(body, dict):
        raise IntermediaryError("Request body must be an object", "invalid_request", 400)
    return body


async def parse_token_request(request: Request) -> TokenRequest:
    """
    Parse the relying party's token request from a form or JSON body

    Raises:
        ClientAuthError: If client_id is missing
        IntermediaryError: If the body is malformed
    """
    body = await _read_body(request)

    if not body.get("client_id"):
        raise ClientAuthError("Missing client_id", status_code=400)

    try:
        return TokenRequest(**{
            field: body[field] for field in TOKEN_REQUEST_FIELDS
            if body.get(field) is not None
        })
    except ValidationError as e:
        raise IntermediaryError(
            f"Invalid token request: {e.error_count()} invalid field(s)",
            "invalid_request",
            400
        ) from e


@router.post("/token",
             tags=["token"],
             summary="Token Endpoint",
             description="Exchange an authorization code at the IdP and translate the id_token")
async def token(
    token_request: TokenRequest = Depends(parse_token_request),
    service: TokenTranslationService = Depends(get_translation_service)
):
    """Authorization-code token endpoint for the relying party"""
    result = await service.exchange_code(token_request)

    logger.info(
        "Token request completed",
        extra={"status_code": result.status_code, "translated": result.translated}
    )

    return Response(
        content=result.content,
        status_code=result.status_code,
        media_type=result.media_type,
        headers={"Cache-Control": "no-store", "Pragma": "no-cache"}
    )


@router.get("/intermediary.jwks",
            tags=["keys"],
            summary="Intermediary JWKS",
            description="Public keys that verify identity tokens re-signed by the intermediary")
async def intermediary_jwks(request: Request):
    """Public key set of the intermediary"""
    return request.app.state.intermediary_jwks


@router.get("/health",
            tags=["health"],
            summary="Health Check",
            description="Check if the intermediary is running and healthy")
async def health_check():
    """Health check endpoint with basic service information"""
    return {
        "status": "healthy",
        "service": "oidc-intermediary",
        "version": __version__
    }
