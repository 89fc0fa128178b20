"""Test environment: settings must be valid before any app module is imported."""

import os

os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-at-least-32-bytes-long")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TOKEN_SWEEP_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import app.core.security as security  # noqa: E402

# Minimum bcrypt cost keeps register/login tests fast.
security.BCRYPT_ROUNDS = 4
