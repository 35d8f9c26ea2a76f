"""
Service context model.

This module contains the ServiceContext model which carries every
configuration value the token translation pipeline needs. It is built
once at process start and passed explicitly to each component.
"""

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


SUPPORTED_ALGORITHMS = (
    "RS256", "RS384", "RS512",
    "PS256", "PS384", "PS512",
    "ES256", "ES384", "ES512",
    "EdDSA",
)


class ServiceContext(BaseModel):
    """
    Immutable configuration for one token-exchange hop.

    The context describes the relying party the intermediary fronts, the
    upstream IdP it exchanges codes with, and the key material used for
    the two signing roles: authenticating to the IdP with a client
    assertion, and re-signing identity tokens.

    Example:
        context = ServiceContext(
            rp_client_id="rp1",
            idp_domain="idp.example.com",
            idp_client_id="intermediary-at-idp",
            rp_private_key=rp_pem,
            rp_key_id="rp-key-1",
            intermediary_private_key=intermediary_pem,
            intermediary_key_id="intermediary-key-1"
        )
    """

    model_config = ConfigDict(frozen=True)

    # Relying party the intermediary acts for
    rp_client_id: str = Field(
        ...,
        min_length=1,
        description="Client ID the relying party presents on the token endpoint"
    )

    rp_client_secret: Optional[str] = Field(
        None,
        description="Client secret the relying party may present (checked, never forwarded)"
    )

    # Upstream identity provider
    idp_domain: str = Field(
        ...,
        min_length=1,
        description="Host name of the identity provider (e.g., tenant.eu.auth0.com)"
    )

    idp_token_endpoint_path: str = Field(
        default="/oauth/token",
        description="Path of the IdP token endpoint"
    )

    idp_jwks_endpoint_path: str = Field(
        default="/.well-known/jwks.json",
        description="Path of the IdP JSON Web Key Set"
    )

    idp_client_id: str = Field(
        ...,
        min_length=1,
        description="Client ID registered at the IdP; the audience of its identity tokens"
    )

    idp_signing_alg: str = Field(
        default="ES256",
        description="Algorithm the IdP natively signs identity tokens with"
    )

    # Re-signing key material
    intermediary_signing_alg: str = Field(
        default="RS256",
        description="Algorithm the downstream consumer trusts"
    )

    intermediary_private_key: str = Field(
        ...,
        repr=False,
        description="PKCS8 PEM private key used to re-sign identity tokens"
    )

    intermediary_key_id: str = Field(
        ...,
        min_length=1,
        description="Key ID placed in re-signed token headers"
    )

    # Client assertion key material
    client_assertion_signing_alg: str = Field(
        default="RS256",
        description="Algorithm used to sign the private-key JWT client assertion"
    )

    rp_private_key: str = Field(
        ...,
        repr=False,
        description="PKCS8 PEM private key used to sign client assertions"
    )

    rp_key_id: str = Field(
        ...,
        min_length=1,
        description="Key ID placed in client assertion headers"
    )

    client_assertion_include_iat: bool = Field(
        default=False,
        description="Add an issued-at claim to client assertions"
    )

    # Lifetimes and tolerances
    client_assertion_lifetime: int = Field(
        default=120,
        ge=1,
        le=3600,
        description="Client assertion lifetime in seconds"
    )

    id_token_lifetime: int = Field(
        default=120,
        ge=1,
        le=86400,
        description="Re-signed identity token lifetime in seconds"
    )

    jwks_cache_ttl: int = Field(
        default=3600,
        ge=0,
        le=86400,
        description="Time to live for the cached IdP key set in seconds"
    )

    clock_skew_tolerance: int = Field(
        default=0,
        ge=0,
        le=900,
        description="Leeway in seconds applied to exp/nbf/iat checks"
    )

    upstream_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for calls to the IdP"
    )

    @field_validator(
        'idp_signing_alg',
        'intermediary_signing_alg',
        'client_assertion_signing_alg'
    )
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        """Reject algorithms the pipeline cannot sign or verify with."""
        if v not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Algorithm must be one of {list(SUPPORTED_ALGORITHMS)}")
        return v

    @field_validator('idp_domain')
    @classmethod
    def validate_idp_domain(cls, v: str) -> str:
        """Accept a bare host; strip a scheme or trailing slash if given."""
        for prefix in ("https://", "http://"):
            if v.startswith(prefix):
                v = v[len(prefix):]
        return v.rstrip('/')

    @field_validator('idp_token_endpoint_path', 'idp_jwks_endpoint_path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        return v if v.startswith('/') else f"/{v}"

    @property
    def issuer(self) -> str:
        """Issuer of IdP identity tokens, and of the re-signed ones."""
        return f"https://{self.idp_domain}"

    @property
    def token_endpoint(self) -> str:
        return f"https://{self.idp_domain}{self.idp_token_endpoint_path}"

    @property
    def jwks_uri(self) -> str:
        return f"https://{self.idp_domain}{self.idp_jwks_endpoint_path}"

    @property
    def assertion_audience(self) -> str:
        """
        Audience of client assertions.

        The IdP accepts assertions addressed to its canonical token URL,
        independent of the configured token endpoint path.
        """
        return f"https://{self.idp_domain}/token"

    def key_material(self, role: str) -> Tuple[str, str, str]:
        """
        Get (pem, algorithm, key id) for a signing role.

        Args:
            role: "client_assertion" or "resigning"

        Returns:
            Tuple of PEM text, algorithm and key id
        """
        if role == "client_assertion":
            return self.rp_private_key, self.client_assertion_signing_alg, self.rp_key_id
        if role == "resigning":
            return (
                self.intermediary_private_key,
                self.intermediary_signing_alg,
                self.intermediary_key_id
            )
        raise ValueError(f"Unknown signing role: {role}")
