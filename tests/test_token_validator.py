"""Tests for identity token verification against the IdP key set."""

import time

import pytest

from conftest import IDP_KID, unsigned_token
from oidc_intermediary.auth import token_validator
from oidc_intermediary.auth.exceptions import AlgorithmMismatchError, SignatureVerificationError
from oidc_intermediary.auth.id_token import inspect_header
from oidc_intermediary.auth.token_validator import IdentityTokenVerifier


async def _verify(verifier, token):
    return await verifier.verify(token, inspect_header(token))


class TestIdentityTokenVerifier:

    @pytest.mark.asyncio
    async def test_valid_token(self, service_context, fake_idp, make_id_token):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())

        verified = await _verify(verifier, make_id_token())

        assert verified.alg == "ES256"
        assert verified.header["kid"] == IDP_KID
        assert verified.claims["sub"] == "auth0|user-123"
        assert verified.claims["nonce"] == "n-0S6_WzA2Mj"
        assert str(fake_idp.jwks_requests[0].url) == "https://idp.test.com/.well-known/jwks.json"

    @pytest.mark.asyncio
    async def test_algorithm_mismatch_before_key_fetch(self, service_context, fake_idp):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())
        token = unsigned_token({"alg": "HS256"}, {"sub": "x"})

        with pytest.raises(AlgorithmMismatchError, match="expected ES256, got: HS256"):
            await _verify(verifier, token)

        assert fake_idp.requests == []

    @pytest.mark.asyncio
    async def test_wrong_audience(self, service_context, fake_idp, make_id_token):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())

        with pytest.raises(SignatureVerificationError):
            await _verify(verifier, make_id_token(aud="someone-else"))

    @pytest.mark.asyncio
    async def test_audience_list(self, service_context, fake_idp, make_id_token):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())

        verified = await _verify(
            verifier,
            make_id_token(aud=["intermediary-client", "https://idp.test.com/userinfo"])
        )

        assert "intermediary-client" in verified.claims["aud"]

    @pytest.mark.asyncio
    async def test_wrong_issuer(self, service_context, fake_idp, make_id_token):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())

        with pytest.raises(SignatureVerificationError):
            await _verify(verifier, make_id_token(iss="https://evil.example.com"))

    @pytest.mark.asyncio
    async def test_expired_token(self, service_context, fake_idp, make_id_token):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())
        past = int(time.time()) - 3600

        with pytest.raises(SignatureVerificationError):
            await _verify(verifier, make_id_token(iat=past - 300, exp=past))

    @pytest.mark.asyncio
    async def test_bad_signature(self, service_context, fake_idp, make_id_token, other_ec_key):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())

        with pytest.raises(SignatureVerificationError):
            await _verify(verifier, make_id_token(key=other_ec_key))

    @pytest.mark.asyncio
    async def test_key_set_is_cached(self, service_context, fake_idp, make_id_token):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())

        await _verify(verifier, make_id_token())
        await _verify(verifier, make_id_token())

        assert len(fake_idp.jwks_requests) == 1

    @pytest.mark.asyncio
    async def test_unknown_kid_refreshes_once(
        self, service_context, fake_idp, make_id_token, idp_jwks
    ):
        fake_idp.jwks_responses = [(200, {"keys": []}), (200, idp_jwks)]
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())

        verified = await _verify(verifier, make_id_token())

        assert verified.claims["sub"] == "auth0|user-123"
        assert len(fake_idp.jwks_requests) == 2

    @pytest.mark.asyncio
    async def test_unknown_kid_after_refresh(
        self, service_context, fake_idp, make_id_token, other_ec_key
    ):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())

        with pytest.raises(SignatureVerificationError):
            await _verify(verifier, make_id_token(key=other_ec_key, kid="rotated-away"))

        assert len(fake_idp.jwks_requests) == 2

    @pytest.mark.asyncio
    async def test_key_set_fetch_failure(self, service_context, fake_idp, make_id_token):
        fake_idp.jwks_responses = [(503, {"error": "unavailable"})]
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())

        with pytest.raises(SignatureVerificationError, match="Unable to fetch IdP JWKS"):
            await _verify(verifier, make_id_token())

    @pytest.mark.asyncio
    async def test_issued_slightly_in_the_future(self, service_context, fake_idp, make_id_token):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())
        now = int(time.time())

        verified = await _verify(verifier, make_id_token(iat=now + 5, exp=now + 300))

        assert verified.claims["iat"] == now + 5

    @pytest.mark.asyncio
    async def test_non_numeric_iat(self, service_context, fake_idp, make_id_token):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())

        with pytest.raises(SignatureVerificationError, match="iat"):
            await _verify(verifier, make_id_token(iat="yesterday"))

    @pytest.mark.asyncio
    async def test_unknown_kid_refresh_is_rate_limited(
        self, service_context, fake_idp, make_id_token, other_ec_key
    ):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())
        token = make_id_token(key=other_ec_key, kid="rotated-away")

        for _ in range(3):
            with pytest.raises(SignatureVerificationError):
                await _verify(verifier, token)

        assert len(fake_idp.jwks_requests) == 2

    @pytest.mark.asyncio
    async def test_unknown_kid_refreshes_again_after_interval(
        self, service_context, fake_idp, make_id_token, other_ec_key, monkeypatch
    ):
        verifier = IdentityTokenVerifier(service_context, fake_idp.client())
        token = make_id_token(key=other_ec_key, kid="rotated-away")

        with pytest.raises(SignatureVerificationError):
            await _verify(verifier, token)
        monkeypatch.setattr(token_validator, "MIN_FORCED_REFRESH_INTERVAL", 0)
        with pytest.raises(SignatureVerificationError):
            await _verify(verifier, token)

        assert len(fake_idp.jwks_requests) == 3
