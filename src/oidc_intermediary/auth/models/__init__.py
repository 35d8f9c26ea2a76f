"""
Token translation models package.

The models are organized into focused modules:
- service_context: immutable configuration of one token-exchange hop
- token_request: the relying party's authorization-code request
- token_response: upstream, intermediate and translated token responses

Example Usage:
    from oidc_intermediary.auth.models import ServiceContext, TokenRequest

    request = TokenRequest(
        client_id="rp1",
        code="abc",
        redirect_uri="https://rp/cb"
    )
"""

from .service_context import ServiceContext, SUPPORTED_ALGORITHMS
from .token_request import TokenRequest
from .token_response import (
    UpstreamTokenResponse,
    IdentityTokenHeader,
    VerifiedIdentityToken,
    TranslatedResponse
)

__all__ = [
    # Configuration
    "ServiceContext",
    "SUPPORTED_ALGORITHMS",

    # Request and responses
    "TokenRequest",
    "UpstreamTokenResponse",
    "IdentityTokenHeader",
    "VerifiedIdentityToken",
    "TranslatedResponse",
]
