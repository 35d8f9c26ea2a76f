"""OIDC token-translation intermediary."""

__version__ = "0.1.0"
