"""Configuration management for the OIDC intermediary."""

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from oidc_intermediary.auth.models import ServiceContext, SUPPORTED_ALGORITHMS


def _with_alg_suffixes(name: str) -> AliasChoices:
    """Accept NAME as well as the per-algorithm NAME_<ALG> variables."""
    return AliasChoices(name, *(f"{name}_{alg}" for alg in SUPPORTED_ALGORITHMS))


class Settings(BaseSettings):
    """Application settings read from the environment and a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Server configuration
    HOST: str = Field(default="127.0.0.1", description="Server host")
    PORT: int = Field(default=3000, description="Server port")
    DEBUG: bool = Field(default=False, description="Debug mode")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="json", description="Logging format: json or text")

    # Relying party
    RP_ID: str = Field(..., description="Client ID of the relying party")
    A0_CLIENT_SECRET: Optional[str] = Field(default=None, description="Client secret of the relying party")

    # Upstream identity provider
    IDP_DOMAIN: str = Field(..., description="IdP host name")
    IDP_TOKEN_ENDPOINT: str = Field(default="/oauth/token", description="IdP token endpoint path")
    IDP_JWKS_ENDPOINT: str = Field(default="/.well-known/jwks.json", description="IdP JWKS path")
    IDP_CLIENT_ID: str = Field(..., description="Client ID of the intermediary at the IdP")
    IDP_TOKEN_SIGNING_ALG: str = Field(default="ES256", description="IdP identity token algorithm")

    # Re-signing
    INTERMEDIARY_SIGNING_ALG: str = Field(default="RS256", description="Target identity token algorithm")
    INTERMEDIARY_PRIVATE_KEY: str = Field(..., repr=False, description="PKCS8 PEM re-signing key")
    INTERMEDIARY_KEY_KID: str = Field(..., description="Key ID of the re-signing key")
    INTERMEDIARY_JWKS_FILE: Optional[str] = Field(
        default=None,
        description="Static JWKS file served on /intermediary.jwks (derived from the key if unset)"
    )

    # Client assertion
    RP_CLIENT_ASSERTION_SIGNING_ALG: str = Field(default="RS256", description="Client assertion algorithm")
    RP_PRIVATE_KEY: str = Field(
        ...,
        repr=False,
        validation_alias=_with_alg_suffixes("RP_PRIVATE_KEY"),
        description="PKCS8 PEM client assertion key"
    )
    RP_KID: str = Field(
        ...,
        validation_alias=_with_alg_suffixes("RP_KID"),
        description="Key ID of the client assertion key"
    )
    CLIENT_ASSERTION_INCLUDE_IAT: bool = Field(default=False, description="Add iat to client assertions")

    # Lifetimes and timeouts
    CLIENT_ASSERTION_LIFETIME: int = Field(default=120, description="Client assertion lifetime in seconds")
    ID_TOKEN_LIFETIME: int = Field(default=120, description="Re-signed id_token lifetime in seconds")
    JWKS_CACHE_TTL: int = Field(default=3600, description="IdP JWKS cache TTL in seconds")
    CLOCK_SKEW_TOLERANCE: int = Field(default=0, description="Clock skew tolerance in seconds")
    UPSTREAM_TIMEOUT: float = Field(default=10.0, description="IdP request timeout in seconds")

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator('LOG_FORMAT')
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format"""
        valid_formats = ['json', 'text']
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of {valid_formats}")
        return v.lower()

    @field_validator('IDP_TOKEN_SIGNING_ALG', 'INTERMEDIARY_SIGNING_ALG', 'RP_CLIENT_ASSERTION_SIGNING_ALG')
    @classmethod
    def validate_algorithm(cls, v):
        """Validate signing algorithm"""
        if v not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Algorithm must be one of {list(SUPPORTED_ALGORITHMS)}")
        return v

    @field_validator('INTERMEDIARY_PRIVATE_KEY', 'RP_PRIVATE_KEY')
    @classmethod
    def normalize_pem(cls, v):
        """Expand escaped newlines of single-line PEM values"""
        return v.replace('\\n', '\n').strip() + '\n'

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.DEBUG else self.LOG_LEVEL

    def get_service_context(self) -> ServiceContext:
        """Create ServiceContext from settings"""
        return ServiceContext(
            rp_client_id=self.RP_ID,
            rp_client_secret=self.A0_CLIENT_SECRET,
            idp_domain=self.IDP_DOMAIN,
            idp_token_endpoint_path=self.IDP_TOKEN_ENDPOINT,
            idp_jwks_endpoint_path=self.IDP_JWKS_ENDPOINT,
            idp_client_id=self.IDP_CLIENT_ID,
            idp_signing_alg=self.IDP_TOKEN_SIGNING_ALG,
            intermediary_signing_alg=self.INTERMEDIARY_SIGNING_ALG,
            intermediary_private_key=self.INTERMEDIARY_PRIVATE_KEY,
            intermediary_key_id=self.INTERMEDIARY_KEY_KID,
            client_assertion_signing_alg=self.RP_CLIENT_ASSERTION_SIGNING_ALG,
            rp_private_key=self.RP_PRIVATE_KEY,
            rp_key_id=self.RP_KID,
            client_assertion_include_iat=self.CLIENT_ASSERTION_INCLUDE_IAT,
            client_assertion_lifetime=self.CLIENT_ASSERTION_LIFETIME,
            id_token_lifetime=self.ID_TOKEN_LIFETIME,
            jwks_cache_ttl=self.JWKS_CACHE_TTL,
            clock_skew_tolerance=self.CLOCK_SKEW_TOLERANCE,
            upstream_timeout=self.UPSTREAM_TIMEOUT
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get application settings (for dependency injection)"""
    return Settings()
