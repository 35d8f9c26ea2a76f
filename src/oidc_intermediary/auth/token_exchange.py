"""
Authorization-code exchange against the upstream IdP token endpoint.

This module performs the OAuth2 authorization-code grant on behalf of the
relying party, authenticating with a private-key JWT client assertion
and forwarding the optional PKCE verifier.
"""

import json
import logging
from typing import Any, Dict

import httpx

from .client_assertion import CLIENT_ASSERTION_TYPE
from .exceptions import TransportError, UpstreamError
from .models import ServiceContext, TokenRequest, UpstreamTokenResponse

logger = logging.getLogger(__name__)


class TokenExchangeClient:
    """
    Client for the IdP token endpoint.

    Non-2xx answers are surfaced verbatim as UpstreamError so that the
    relying party sees exactly what the IdP said. Failures to obtain any
    answer (connection errors, timeouts) surface as TransportError.
    """

    def __init__(self, context: ServiceContext, http_client: httpx.AsyncClient):
        """
        Initialize the token exchange client.

        Args:
            context: Service configuration
            http_client: Shared HTTP client used for IdP calls
        """
        self.context = context
        self.http_client = http_client

    def build_form(self, request: TokenRequest, assertion: str) -> Dict[str, str]:
        """
        Build the form-encoded grant parameters.

        Args:
            request: Relying party token request
            assertion: Signed client assertion

        Returns:
            Dict of form fields; absent optional values are omitted
        """
        form = {
            'grant_type': 'authorization_code',
            'client_id': self.context.rp_client_id,
            'client_assertion_type': CLIENT_ASSERTION_TYPE,
            'client_assertion': assertion,
        }

        if request.code is not None:
            form['code'] = request.code
        if request.redirect_uri is not None:
            form['redirect_uri'] = request.redirect_uri
        if request.code_verifier:
            form['code_verifier'] = request.code_verifier

        return form

    async def exchange(self, request: TokenRequest, assertion: str) -> UpstreamTokenResponse:
        """
        Exchange an authorization code for tokens.

        Args:
            request: Relying party token request
            assertion: Signed client assertion

        Returns:
            UpstreamTokenResponse: Raw and parsed upstream answer

        Raises:
            UpstreamError: If the IdP answers with a non-2xx status
            TransportError: If no answer could be obtained
        """
        form = self.build_form(request, assertion)

        logger.debug(
            "Performing authorization code exchange",
            extra={
                "token_endpoint": self.context.token_endpoint,
                "has_code_verifier": 'code_verifier' in form
            }
        )

        try:
            response = await self.http_client.post(
                self.context.token_endpoint,
                data=form,
                headers={'Accept': 'application/json'}
            )
        except httpx.HTTPError as e:
            logger.error(
                f"HTTP error during token exchange: {e}",
                extra={
                    "token_endpoint": self.context.token_endpoint,
                    "error_type": type(e).__name__
                }
            )
            raise TransportError(str(e) or type(e).__name__, type(e).__name__) from e

        media_type = response.headers.get('content-type')

        if not response.is_success:
            logger.warning(
                "IdP rejected token exchange",
                extra={"status_code": response.status_code}
            )
            raise UpstreamError(response.status_code, response.content, media_type)

        logger.info(
            "Token exchange successful",
            extra={"status_code": response.status_code}
        )

        return UpstreamTokenResponse(
            status_code=response.status_code,
            content=response.content,
            media_type=media_type,
            data=self._parse_body(response)
        )

    @staticmethod
    def _parse_body(response: httpx.Response) -> Dict[str, Any]:
        """
        Parse the upstream body as a JSON object.

        Args:
            response: HTTP response from the IdP

        Returns:
            Dict: Parsed object, or an empty dict when the body is not one
        """
        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return {}
        return data if isinstance(data, dict) else {}
