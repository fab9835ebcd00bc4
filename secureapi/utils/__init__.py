"""Utility helpers for SecureAPI."""
