"""
Identity token verification against the IdP's published key set.

This module verifies the signature, issuer and audience of identity
tokens issued by the upstream IdP. The remote key set is cached across
requests and re-fetched once when a token names an unknown key id, which
covers routine key rotation at the IdP.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Set, Tuple

import httpx
from authlib.jose import JsonWebKey, JsonWebToken, JWTClaims, JoseError
from authlib.jose.errors import InvalidClaimError

from .exceptions import AlgorithmMismatchError, SignatureVerificationError
from .models import IdentityTokenHeader, ServiceContext, VerifiedIdentityToken

logger = logging.getLogger(__name__)

# Minimum seconds between two kid-miss refreshes of the key set
MIN_FORCED_REFRESH_INTERVAL = 30


class IdentityTokenClaims(JWTClaims):
    """Identity token claims whose iat is checked for type only."""

    def validate_iat(self, now, leeway):
        iat = self.get('iat')
        if iat is not None and (isinstance(iat, bool) or not isinstance(iat, (int, float))):
            raise InvalidClaimError('iat')


class IdentityTokenVerifier:
    """
    Identity token verifier with a cached remote key set.

    This class handles:
    - Algorithm policy (only the IdP's native algorithm is verified)
    - JWKS retrieval with TTL caching and a kid-miss refresh
    - Signature, issuer, audience and time-claim validation
    """

    def __init__(self, context: ServiceContext, http_client: httpx.AsyncClient):
        """
        Initialize the verifier.

        Args:
            context: Service configuration
            http_client: Shared HTTP client used for JWKS retrieval
        """
        self.context = context
        self.http_client = http_client
        self.jwt = JsonWebToken([context.idp_signing_alg])

        # Cache for the IdP key set
        self._jwks_cache: Optional[Any] = None
        self._jwks_kids: Set[str] = set()
        self._jwks_cache_time: Optional[float] = None
        self._last_forced_refresh: Optional[float] = None
        self._jwks_lock = asyncio.Lock()

        logger.info(
            "IdentityTokenVerifier initialized",
            extra={
                "jwks_uri": self.context.jwks_uri,
                "idp_signing_alg": self.context.idp_signing_alg
            }
        )

    async def verify(self, raw_token: str, header: IdentityTokenHeader) -> VerifiedIdentityToken:
        """
        Verify an identity token issued by the IdP.

        Args:
            raw_token: Compact serialized identity token
            header: Unverified header read from the same token

        Returns:
            VerifiedIdentityToken: Verified claims and protected header

        Raises:
            AlgorithmMismatchError: If the token is not signed with the IdP's native algorithm
            SignatureVerificationError: If verification fails for any reason
        """
        if header.alg != self.context.idp_signing_alg:
            raise AlgorithmMismatchError(
                f"id_token signing algorithm mismatch, expected "
                f"{self.context.idp_signing_alg}, got: {header.alg}",
                header.alg
            )

        key_set, kids = await self._get_jwks()
        if header.kid and header.kid not in kids and self._may_force_refresh():
            logger.info(
                "Identity token names an unknown key, refreshing JWKS",
                extra={"kid": header.kid}
            )
            self._last_forced_refresh = time.monotonic()
            key_set, kids = await self._get_jwks(force_refresh=True)

        try:
            claims = self.jwt.decode(
                raw_token,
                key_set,
                claims_cls=IdentityTokenClaims,
                claims_options=self._claims_options()
            )
            claims.validate(
                now=int(time.time()),
                leeway=self.context.clock_skew_tolerance
            )
        except JoseError as e:
            raise SignatureVerificationError(
                f"id_token verification failed: {e}",
                e.error
            ) from e
        except ValueError as e:
            # Raised by the key set when no key matches the token
            raise SignatureVerificationError(
                f"id_token verification failed: {e}",
                str(e)
            ) from e

        verified = VerifiedIdentityToken(claims=dict(claims), header=dict(claims.header))

        logger.info(
            "Identity token verified",
            extra={"sub": verified.claims.get('sub'), "kid": verified.header.get('kid')}
        )
        logger.debug("Verified identity token claims", extra={"claims": verified.claims})

        return verified

    def _may_force_refresh(self) -> bool:
        if self._last_forced_refresh is None:
            return True
        return time.monotonic() - self._last_forced_refresh >= MIN_FORCED_REFRESH_INTERVAL

    def _claims_options(self) -> Dict[str, Any]:
        return {
            "iss": {"essential": True, "value": self.context.issuer},
            "aud": {"essential": True, "value": self.context.idp_client_id},
            "exp": {"essential": True},
        }

    async def _get_jwks(self, force_refresh: bool = False) -> Tuple[Any, Set[str]]:
        """
        Get the IdP key set with caching.

        Args:
            force_refresh: Bypass the cache and fetch a fresh key set

        Returns:
            Tuple of the authlib key set and the key ids it contains

        Raises:
            SignatureVerificationError: If unable to retrieve the key set
        """
        async with self._jwks_lock:
            now = time.monotonic()
            if (not force_refresh and self._jwks_cache is not None and
                    self._jwks_cache_time is not None and
                    now - self._jwks_cache_time < self.context.jwks_cache_ttl):
                return self._jwks_cache, self._jwks_kids

            try:
                logger.info(f"Fetching JWKS from {self.context.jwks_uri}")

                response = await self.http_client.get(
                    self.context.jwks_uri,
                    headers={'Accept': 'application/json'}
                )
                response.raise_for_status()

                jwks_data = response.json()
                key_set = JsonWebKey.import_key_set(jwks_data)

            except httpx.HTTPError as e:
                logger.error(
                    f"Failed to fetch JWKS from URL: {self.context.jwks_uri} - Error: {e}",
                    extra={
                        "jwks_uri": self.context.jwks_uri,
                        "error_type": type(e).__name__
                    }
                )
                raise SignatureVerificationError(
                    f"Unable to fetch IdP JWKS: {e}",
                    str(e)
                ) from e
            except Exception as e:
                logger.error(
                    f"Invalid JWKS from URL: {self.context.jwks_uri} - Error: {e}",
                    extra={"jwks_uri": self.context.jwks_uri, "error_type": type(e).__name__},
                    exc_info=True
                )
                raise SignatureVerificationError(
                    f"Invalid IdP JWKS: {e}",
                    str(e)
                ) from e

            self._jwks_cache = key_set
            self._jwks_kids = {
                key['kid'] for key in jwks_data.get('keys', [])
                if isinstance(key, dict) and key.get('kid')
            }
            self._jwks_cache_time = now

            logger.info(
                "JWKS refreshed successfully",
                extra={
                    "keys_count": len(jwks_data.get('keys', [])),
                    "cache_ttl": self.context.jwks_cache_ttl
                }
            )

            return self._jwks_cache, self._jwks_kids

