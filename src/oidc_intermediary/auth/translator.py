"""
Token translation service.

This module runs the whole token-exchange hop for a relying party:
client checks, client assertion, authorization-code exchange, and, when
the IdP signs with an algorithm the downstream consumer does not trust,
verification, claim transformation and re-signing of the identity token.
"""

import hmac
import logging
from typing import Optional

import httpx

from .claims import transform_claims
from .client_assertion import generate_assertion
from .exceptions import ClientAuthError, MalformedTokenError
from .id_token import inspect_header
from .models import ServiceContext, TokenRequest, TranslatedResponse
from .resigner import resign
from .token_exchange import TokenExchangeClient
from .token_validator import IdentityTokenVerifier

logger = logging.getLogger(__name__)


class TokenTranslationService:
    """
    Token-exchange intermediary between a relying party and its IdP.

    Each call to ``exchange_code`` is independent. The only state shared
    between requests is the read-only context, the memoized private keys,
    the cached IdP key set and the pooled HTTP client.
    """

    def __init__(
        self,
        context: ServiceContext,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the translation service.

        Args:
            context: Service configuration
            http_client: HTTP client for IdP calls (created and owned if omitted)
        """
        self.context = context

        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(context.upstream_timeout),
            headers={'User-Agent': 'OIDC-Intermediary/1.0'}
        )

        self.exchange_client = TokenExchangeClient(context, self.http_client)
        self.verifier = IdentityTokenVerifier(context, self.http_client)

        logger.info(
            "Token translation service initialized",
            extra={
                "token_endpoint": context.token_endpoint,
                "idp_signing_alg": context.idp_signing_alg,
                "intermediary_signing_alg": context.intermediary_signing_alg
            }
        )

    def authenticate_client(self, request: TokenRequest) -> None:
        """
        Check the relying party's identity before any network call.

        Args:
            request: Relying party token request

        Raises:
            ClientAuthError: 400 on secret mismatch, 401 on unknown client_id
        """
        # An empty secret is treated as not supplied
        if request.client_secret:
            expected = self.context.rp_client_secret
            if expected is None or not hmac.compare_digest(
                request.client_secret.encode('utf-8'),
                expected.encode('utf-8')
            ):
                raise ClientAuthError("Client authentication failed", status_code=400)

        if not hmac.compare_digest(
            request.client_id.encode('utf-8'),
            self.context.rp_client_id.encode('utf-8')
        ):
            raise ClientAuthError("Invalid request, client_id is incorrect", status_code=401)

    async def exchange_code(self, request: TokenRequest) -> TranslatedResponse:
        """
        Exchange an authorization code and translate the identity token.

        Args:
            request: Relying party token request

        Returns:
            TranslatedResponse: Upstream response, unchanged or with a re-signed id_token

        Raises:
            IntermediaryError: Any failure aborts the whole request
        """
        self.authenticate_client(request)

        assertion = generate_assertion(self.context)
        upstream = await self.exchange_client.exchange(request, assertion)

        if not upstream.data:
            raise MalformedTokenError("IdP token response is not a JSON object")

        id_token = upstream.id_token
        if not id_token:
            raise MalformedTokenError("IdP token response has no id_token")

        header = inspect_header(id_token)
        if header.alg == self.context.intermediary_signing_alg:
            logger.info(
                "Identity token already uses the target algorithm, passing through",
                extra={"alg": header.alg}
            )
            return TranslatedResponse.passthrough(upstream)

        verified = await self.verifier.verify(id_token, header)
        payload = transform_claims(
            verified,
            upstream.access_token,
            self.context.intermediary_signing_alg
        )
        new_id_token = resign(payload, self.context)

        logger.info(
            "Identity token translated",
            extra={
                "from_alg": verified.alg,
                "to_alg": self.context.intermediary_signing_alg,
                "sub": verified.claims.get('sub')
            }
        )

        return TranslatedResponse.translated_from(upstream, new_id_token, verified.claims)

    async def close(self) -> None:
        """Clean up resources."""
        if self._owns_client:
            await self.http_client.aclose()
        logger.debug("Token translation service closed")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
