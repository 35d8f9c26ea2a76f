"""
Private-key JWT client assertions (RFC 7523).

The intermediary authenticates to the IdP token endpoint with a short
lived assertion signed by the relying party's key instead of a shared
secret. A fresh assertion is generated for every exchange so that the
jti is never reused.
"""

import logging
import time
import uuid
from typing import Optional

from .keys import KeyRole, load_signing_key, sign_claims
from .models import ServiceContext

logger = logging.getLogger(__name__)

CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


def generate_assertion(context: ServiceContext, now: Optional[int] = None) -> str:
    """
    Generate a signed client assertion for the IdP token endpoint.

    Args:
        context: Service configuration
        now: Current Unix time (defaults to the wall clock)

    Returns:
        str: Compact serialized JWT

    Raises:
        SigningError: If the key cannot be loaded or signing fails
    """
    if now is None:
        now = int(time.time())

    claims = {
        "iss": context.rp_client_id,
        "sub": context.rp_client_id,
        "aud": context.assertion_audience,
        "exp": now + context.client_assertion_lifetime,
        "jti": str(uuid.uuid4()),
    }
    if context.client_assertion_include_iat:
        claims["iat"] = now

    signing_key = load_signing_key(context, KeyRole.CLIENT_ASSERTION)
    assertion = sign_claims(signing_key, claims)

    logger.debug(
        "Client assertion generated",
        extra={"jti": claims["jti"], "kid": signing_key.kid, "aud": claims["aud"]}
    )
    return assertion
