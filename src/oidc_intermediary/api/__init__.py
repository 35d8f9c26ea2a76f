"""HTTP API for the OIDC intermediary."""
