"""
Claim transformation between verification and re-signing.

The verified upstream payload is carried over to the re-signed token
with two changes: the authorization-time nonce is dropped, and the
access token hash is re-bound to the intermediary's algorithm after the
original binding has been checked.
"""

import logging
from typing import Any, Dict, Optional

from authlib.common.encoding import to_native
from authlib.oidc.core.util import create_half_hash

from .exceptions import AtHashMismatchError
from .models import VerifiedIdentityToken

logger = logging.getLogger(__name__)

# Ed25519 binds at_hash with SHA-512
_HASH_ALG_ALIASES = {"EdDSA": "RS512"}


def compute_at_hash(access_token: str, alg: str) -> str:
    """
    Compute the OIDC at_hash of an access token for a JWS algorithm.

    The value is the base64url encoded left half of the access token's
    hash, using the hash function of the algorithm.

    Args:
        access_token: Access token returned next to the identity token
        alg: JWS algorithm of the identity token

    Returns:
        str: at_hash value

    Raises:
        AtHashMismatchError: If the algorithm has no defined hash function
    """
    value = create_half_hash(access_token, _HASH_ALG_ALIASES.get(alg, alg))
    if value is None:
        raise AtHashMismatchError(f"Cannot compute at_hash for algorithm {alg}")
    return to_native(value)


def transform_claims(
    verified: VerifiedIdentityToken,
    access_token: Optional[str],
    target_alg: str
) -> Dict[str, Any]:
    """
    Prepare verified claims for re-signing.

    Args:
        verified: Verified identity token
        access_token: Access token from the same upstream response
        target_alg: Algorithm the claims will be re-signed with

    Returns:
        Dict: New claim set; the verified token is left untouched

    Raises:
        AtHashMismatchError: If at_hash does not match the access token
    """
    payload = dict(verified.claims)
    payload.pop('nonce', None)

    claimed = payload.get('at_hash')
    if claimed and access_token:
        calculated = compute_at_hash(access_token, verified.alg)
        if calculated != claimed:
            logger.warning(
                "at_hash mismatch",
                extra={"sub": payload.get('sub'), "alg": verified.alg}
            )
            raise AtHashMismatchError(
                f"at_hash mismatch, expected {claimed}, got: {calculated}"
            )
        payload['at_hash'] = compute_at_hash(access_token, target_alg)

    return payload
