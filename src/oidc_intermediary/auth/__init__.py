"""
Token translation module for the OIDC intermediary.

This module provides the token-exchange pipeline: private-key JWT client
assertions, the authorization-code exchange with the IdP, identity token
verification against the IdP key set, claim transformation and
re-signing with the intermediary's key.
"""

from .translator import TokenTranslationService
from .token_exchange import TokenExchangeClient
from .token_validator import IdentityTokenVerifier
from .models import ServiceContext, TokenRequest, TranslatedResponse
from .exceptions import (
    IntermediaryError,
    ClientAuthError,
    UpstreamError,
    TransportError,
    MalformedTokenError,
    AlgorithmMismatchError,
    SignatureVerificationError,
    AtHashMismatchError,
    SigningError,
    KeyLoadError
)

__all__ = [
    "TokenTranslationService",
    "TokenExchangeClient",
    "IdentityTokenVerifier",
    "ServiceContext",
    "TokenRequest",
    "TranslatedResponse",
    "IntermediaryError",
    "ClientAuthError",
    "UpstreamError",
    "TransportError",
    "MalformedTokenError",
    "AlgorithmMismatchError",
    "SignatureVerificationError",
    "AtHashMismatchError",
    "SigningError",
    "KeyLoadError"
]
