"""HTTP API for SecureAPI."""
