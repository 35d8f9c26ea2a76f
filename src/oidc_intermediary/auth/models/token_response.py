"""
Token response models.

This module contains the models that flow through the translation
pipeline: the raw upstream token response, the unverified identity token
header, the verified identity token, and the response handed back to
the relying party.
"""

import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class UpstreamTokenResponse(BaseModel):
    """
    Successful response from the IdP token endpoint.

    The raw body is kept next to the parsed JSON object so the
    pass-through path can hand the bytes back unchanged.
    """

    model_config = ConfigDict(frozen=True)

    status_code: int = Field(..., description="Upstream HTTP status code (2xx)")
    content: bytes = Field(..., description="Raw upstream response body")
    media_type: Optional[str] = Field(None, description="Upstream Content-Type header")
    data: Dict[str, Any] = Field(
        default_factory=dict,
        description="Parsed JSON object (empty when the body is not an object)"
    )

    @property
    def access_token(self) -> Optional[str]:
        return self.data.get('access_token')

    @property
    def id_token(self) -> Optional[str]:
        return self.data.get('id_token')


class IdentityTokenHeader(BaseModel):
    """
    Unverified JOSE header of an identity token.

    This is a structural read used only to branch the pipeline. It is
    never a trust decision.
    """

    model_config = ConfigDict(frozen=True)

    alg: str = Field(..., description="Signing algorithm named by the token")
    kid: Optional[str] = Field(None, description="Key ID named by the token")
    raw: Dict[str, Any] = Field(default_factory=dict, description="Full decoded header")


class VerifiedIdentityToken(BaseModel):
    """Claims and protected header of an identity token that passed verification."""

    model_config = ConfigDict(frozen=True)

    claims: Dict[str, Any] = Field(..., description="Verified payload")
    header: Dict[str, Any] = Field(..., description="Verified protected header")

    @property
    def alg(self) -> str:
        return self.header['alg']


class TranslatedResponse(BaseModel):
    """
    Token response returned to the relying party.

    On the pass-through path the upstream bytes are returned unchanged
    and ``claims`` is None. On the translated path ``content`` is the
    upstream JSON object with ``id_token`` replaced, and ``claims`` holds
    the verified upstream payload for in-process inspection. The claims
    are never serialized into the response body.
    """

    model_config = ConfigDict(frozen=True)

    status_code: int = Field(200, description="HTTP status to answer with")
    content: bytes = Field(..., description="Response body")
    media_type: Optional[str] = Field("application/json", description="Response Content-Type")
    translated: bool = Field(False, description="Whether the identity token was re-signed")
    claims: Optional[Dict[str, Any]] = Field(
        None,
        description="Verified upstream claims (translated path only)"
    )

    @classmethod
    def passthrough(cls, upstream: UpstreamTokenResponse) -> "TranslatedResponse":
        """Build a response that mirrors the upstream response byte for byte."""
        return cls(
            status_code=upstream.status_code,
            content=upstream.content,
            media_type=upstream.media_type,
            translated=False
        )

    @classmethod
    def translated_from(
        cls,
        upstream: UpstreamTokenResponse,
        id_token: str,
        claims: Dict[str, Any]
    ) -> "TranslatedResponse":
        """Build a response carrying the re-signed identity token."""
        body = dict(upstream.data)
        body['id_token'] = id_token
        return cls(
            status_code=200,
            content=json.dumps(body).encode('utf-8'),
            media_type="application/json",
            translated=True,
            claims=claims
        )

    def body_json(self) -> Dict[str, Any]:
        """Decode the response body as JSON."""
        return json.loads(self.content)
