"""
Token request model.

This module contains the TokenRequest model which represents the
authorization-code grant a relying party posts to the intermediary.
"""

from typing import Optional
from pydantic import BaseModel, Field


class TokenRequest(BaseModel):
    """
    Authorization-code token request from the relying party.

    The request is ephemeral: one instance per call to ``POST /token``.
    Only ``client_id`` is required here; the IdP decides whether the
    remaining grant parameters are acceptable.
    """

    client_id: str = Field(
        ...,
        min_length=1,
        description="Client ID of the calling relying party"
    )

    code: Optional[str] = Field(
        None,
        description="Authorization code issued by the IdP"
    )

    redirect_uri: Optional[str] = Field(
        None,
        description="Redirect URI used in the authorization request"
    )

    code_verifier: Optional[str] = Field(
        None,
        description="PKCE code verifier, forwarded when present"
    )

    client_secret: Optional[str] = Field(
        None,
        repr=False,
        description="Client secret, checked locally and never forwarded"
    )
