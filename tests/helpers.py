"""Shared test values."""

TEST_SECRET = "a" * 64
TEST_FINGERPRINT = "B" * 64
