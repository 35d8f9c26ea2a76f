"""
Custom exceptions for the token translation pipeline.

This module defines specific exception types for each failure scenario
of a token exchange, providing clear error categorization and the HTTP
status code the intermediary answers with.
"""

from typing import Optional


class IntermediaryError(Exception):
    """
    Base exception for token translation failures.

    Every failure aborts the whole request; there is no partial success
    and no fallback to the untranslated identity token.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "server_error"
        if status_code is not None:
            self.status_code = status_code


class ClientAuthError(IntermediaryError):
    """
    Exception raised when the calling relying party fails client checks.

    This includes scenarios like:
    - Missing client_id (400)
    - Client secret mismatch (400)
    - Unknown client_id (401)
    """

    def __init__(self, message: str, status_code: int = 401):
        error_code = "invalid_client" if status_code == 401 else "invalid_request"
        super().__init__(message, error_code, status_code)


class UpstreamError(IntermediaryError):
    """
    Exception raised when the IdP token endpoint answers with a non-2xx status.

    The upstream status code and body are kept verbatim so the relying
    party can apply its own IdP-specific error handling.
    """

    def __init__(
        self,
        status_code: int,
        content: bytes,
        media_type: Optional[str] = None
    ):
        super().__init__(
            f"IdP token endpoint returned HTTP {status_code}",
            "upstream_error",
            status_code
        )
        self.content = content
        self.media_type = media_type


class TransportError(IntermediaryError):
    """
    Exception raised when no response could be obtained from the IdP.

    Covers connection failures and timeouts of the upstream call.
    """

    def __init__(self, message: str, transport_error: Optional[str] = None):
        super().__init__(message, "temporarily_unavailable")
        self.transport_error = transport_error


class MalformedTokenError(IntermediaryError):
    """Exception raised when a token or token response cannot be parsed."""

    def __init__(self, message: str):
        super().__init__(message, "malformed_token")


class AlgorithmMismatchError(IntermediaryError):
    """
    Exception raised when the identity token is signed with an algorithm
    that is neither the IdP's native algorithm nor the target algorithm.
    """

    def __init__(self, message: str, algorithm: Optional[str] = None):
        super().__init__(message, "algorithm_mismatch")
        self.algorithm = algorithm


class SignatureVerificationError(IntermediaryError):
    """
    Exception raised when the identity token fails verification.

    This includes scenarios like:
    - Invalid signature or unknown signing key
    - Wrong issuer or audience
    - Expired or not yet valid token
    - IdP key set could not be retrieved
    """

    def __init__(self, message: str, verification_error: Optional[str] = None):
        super().__init__(message, "invalid_id_token")
        self.verification_error = verification_error


class AtHashMismatchError(IntermediaryError):
    """
    Exception raised when the access token does not match the at_hash claim.

    Signals a possible token substitution between the identity token and
    the access token returned in the same response.
    """

    def __init__(self, message: str):
        super().__init__(message, "at_hash_mismatch")


class SigningError(IntermediaryError):
    """Exception raised when a local signing operation fails."""

    def __init__(self, message: str, error_code: str = "signing_failed"):
        super().__init__(message, error_code)


class KeyLoadError(SigningError):
    """
    Exception raised when private key material cannot be loaded.

    The underlying parser error is chained as ``__cause__``.
    """

    def __init__(self, message: str):
        super().__init__(message, "key_load_failed")
