"""
Redis Connection Tests

Tests for the optional-client fallback used at startup.
"""

import pytest

from persistence.connection import get_optional_redis_client, get_redis_client


class TestOptionalClient:
    """Missing or unreachable Redis yields None."""

    def test_missing_password(self, monkeypatch):
        monkeypatch.delenv("REDIS_PASSWORD", raising=False)
        get_redis_client.cache_clear()

        with pytest.raises(ValueError):
            get_redis_client()
        assert get_optional_redis_client() is None
        print("\n✅ No password → in-process fallback")

    def test_unreachable_server(self, monkeypatch):
        monkeypatch.setenv("REDIS_PASSWORD", "secret")
        monkeypatch.setenv("REDIS_HOST", "127.0.0.1")
        monkeypatch.setenv("REDIS_PORT", "1")
        get_redis_client.cache_clear()

        assert get_optional_redis_client() is None
        get_redis_client.cache_clear()
