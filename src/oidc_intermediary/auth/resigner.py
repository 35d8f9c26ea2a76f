"""
Re-signing of transformed identity tokens with the intermediary's key.
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional

from .keys import KeyRole, load_signing_key, sign_claims
from .models import ServiceContext

logger = logging.getLogger(__name__)


def resign(payload: Dict[str, Any], context: ServiceContext, now: Optional[int] = None) -> str:
    """
    Issue a new identity token carrying transformed claims.

    The registered claims iat, iss, aud, exp and jti are set by the
    intermediary and override any upstream values.

    Args:
        payload: Transformed claims
        context: Service configuration
        now: Current Unix time (defaults to the wall clock)

    Returns:
        str: Compact serialized JWT signed with the intermediary algorithm

    Raises:
        SigningError: If the key cannot be loaded or signing fails
    """
    if now is None:
        now = int(time.time())

    claims = {key: value for key, value in payload.items() if key != 'nonce'}
    claims.update({
        "iat": now,
        "iss": context.issuer,
        "aud": context.rp_client_id,
        "exp": now + context.id_token_lifetime,
        "jti": str(uuid.uuid4()),
    })

    signing_key = load_signing_key(context, KeyRole.RESIGNING)
    token = sign_claims(signing_key, claims, {"typ": "JWT"})

    logger.info(
        "Identity token re-signed",
        extra={"sub": claims.get('sub'), "alg": signing_key.alg, "kid": signing_key.kid}
    )
    return token
