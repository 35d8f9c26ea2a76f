"""
Shared fixtures for the OIDC intermediary test suite.

Key material is generated once per session. The upstream IdP is replaced
by an httpx MockTransport that serves the token endpoint and the JWKS.
"""

import json
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from authlib.common.encoding import json_dumps, to_native, urlsafe_b64encode
from authlib.jose import JsonWebKey, JsonWebToken

from oidc_intermediary.auth.claims import compute_at_hash
from oidc_intermediary.auth.models import ServiceContext


IDP_DOMAIN = "idp.test.com"
IDP_KID = "idp-key-1"
RP_ID = "rp1"
IDP_CLIENT_ID = "intermediary-client"
ACCESS_TOKEN = "AT1"


def _pem(key) -> str:
    return to_native(key.as_pem(is_private=True))


@pytest.fixture(scope="session")
def rp_key():
    """RSA key the relying party signs client assertions with."""
    return JsonWebKey.generate_key("RSA", 2048, is_private=True)


@pytest.fixture(scope="session")
def intermediary_key():
    """RSA key the intermediary re-signs identity tokens with."""
    return JsonWebKey.generate_key("RSA", 2048, is_private=True)


@pytest.fixture(scope="session")
def idp_key():
    """EC P-256 key the IdP signs identity tokens with."""
    return JsonWebKey.generate_key("EC", "P-256", is_private=True)


@pytest.fixture(scope="session")
def other_ec_key():
    """EC P-256 key unknown to the IdP key set."""
    return JsonWebKey.generate_key("EC", "P-256", is_private=True)


@pytest.fixture
def service_context(rp_key, intermediary_key):
    """Create test service context: ES256 at the IdP, RS256 downstream."""
    return ServiceContext(
        rp_client_id=RP_ID,
        rp_client_secret="rp-secret",
        idp_domain=IDP_DOMAIN,
        idp_token_endpoint_path="/oauth/token",
        idp_jwks_endpoint_path="/.well-known/jwks.json",
        idp_client_id=IDP_CLIENT_ID,
        idp_signing_alg="ES256",
        intermediary_signing_alg="RS256",
        intermediary_private_key=_pem(intermediary_key),
        intermediary_key_id="intermediary-key-1",
        client_assertion_signing_alg="RS256",
        rp_private_key=_pem(rp_key),
        rp_key_id="rp-key-1",
    )


@pytest.fixture
def idp_jwks(idp_key) -> Dict[str, Any]:
    """Public key set published by the IdP."""
    return {"keys": [idp_key.as_dict(is_private=False, kid=IDP_KID, alg="ES256", use="sig")]}


@pytest.fixture
def make_id_token(idp_key) -> Callable[..., str]:
    """Factory for IdP identity tokens."""

    def _make(
        claims: Optional[Dict[str, Any]] = None,
        key=None,
        alg: str = "ES256",
        kid: str = IDP_KID,
        **overrides
    ) -> str:
        now = int(time.time())
        payload = {
            "iss": f"https://{IDP_DOMAIN}",
            "sub": "auth0|user-123",
            "aud": IDP_CLIENT_ID,
            "iat": now,
            "exp": now + 300,
            "nonce": "n-0S6_WzA2Mj",
            "at_hash": compute_at_hash(ACCESS_TOKEN, alg),
            "email": "user@example.com",
        }
        if claims is not None:
            payload = dict(claims)
        payload.update(overrides)
        token = JsonWebToken([alg]).encode({"alg": alg, "kid": kid}, payload, key or idp_key)
        return to_native(token)

    return _make


def unsigned_token(header: Dict[str, Any], payload: Dict[str, Any]) -> str:
    """Build a compact token with an arbitrary header and a dummy signature."""
    return ".".join([
        to_native(urlsafe_b64encode(json_dumps(header).encode("utf-8"))),
        to_native(urlsafe_b64encode(json_dumps(payload).encode("utf-8"))),
        "dummy-signature",
    ])


class FakeIdP:
    """
    Stub identity provider served through httpx.MockTransport.

    The token endpoint answers with ``token_status`` and ``token_body``.
    ``jwks_responses`` are (status, body) pairs served in order from the
    JWKS endpoint, the last one repeating.
    """

    def __init__(self, jwks: Dict[str, Any]):
        self.token_status = 200
        self.token_body: bytes = b"{}"
        self.token_content_type = "application/json"
        self.jwks_responses: List[Tuple[int, Any]] = [(200, jwks)]
        self.token_error: Optional[Exception] = None
        self.requests: List[httpx.Request] = []

    def set_token_response(self, data: Any, status: int = 200) -> None:
        self.token_status = status
        self.token_body = json.dumps(data).encode("utf-8")
        self.token_content_type = "application/json"

    @property
    def token_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/oauth/token"]

    @property
    def jwks_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/.well-known/jwks.json"]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.path == "/oauth/token":
            if self.token_error is not None:
                raise self.token_error
            return httpx.Response(
                self.token_status,
                content=self.token_body,
                headers={"content-type": self.token_content_type}
            )

        if request.url.path == "/.well-known/jwks.json":
            if len(self.jwks_responses) > 1:
                status, body = self.jwks_responses.pop(0)
            else:
                status, body = self.jwks_responses[0]
            return httpx.Response(status, json=body)

        return httpx.Response(404, json={"error": "not_found"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))


@pytest.fixture
def fake_idp(idp_jwks) -> FakeIdP:
    return FakeIdP(idp_jwks)
