"""Core configuration and logging for the OIDC intermediary."""
