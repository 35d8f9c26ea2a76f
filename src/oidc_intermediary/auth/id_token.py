"""
Unverified identity token header inspection.

The header is read only to decide whether translation is required.
Nothing read here is trusted until the verifier has checked the
signature.
"""

import binascii

from authlib.common.encoding import json_loads, to_bytes, urlsafe_b64decode

from .exceptions import MalformedTokenError
from .models import IdentityTokenHeader


def inspect_header(raw_token: str) -> IdentityTokenHeader:
    """
    Decode the JOSE header of a compact token without verifying it.

    Args:
        raw_token: Compact serialized JWT

    Returns:
        IdentityTokenHeader: Algorithm and key id named by the token

    Raises:
        MalformedTokenError: If the token or its header cannot be parsed
    """
    if not isinstance(raw_token, str):
        raise MalformedTokenError("Identity token is not a string")

    segments = raw_token.split('.')
    if len(segments) < 2 or not segments[0]:
        raise MalformedTokenError("Identity token is not a compact serialized JWT")

    try:
        header = json_loads(urlsafe_b64decode(to_bytes(segments[0])))
    except (binascii.Error, ValueError) as e:
        raise MalformedTokenError(f"Identity token header is not parseable: {e}") from e

    if not isinstance(header, dict):
        raise MalformedTokenError("Identity token header is not a JSON object")

    alg = header.get('alg')
    if not isinstance(alg, str) or not alg:
        raise MalformedTokenError("Identity token header has no alg")

    kid = header.get('kid')
    return IdentityTokenHeader(
        alg=alg,
        kid=kid if isinstance(kid, str) else None,
        raw=header
    )
