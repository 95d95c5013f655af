"""
Unit tests for dockmanager/core/security.py
"""

from datetime import timedelta

import pytest
from jose import JWTError

from dockmanager.core.security import create_access_token, decode_access_token


class TestAccessTokens:
    def test_round_trip_carries_subject_and_version(self):
        token = create_access_token({"sub": "abc"}, token_version=3)
        payload = decode_access_token(token)

        assert payload["sub"] == "abc"
        assert payload["tv"] == 3
        assert "exp" in payload

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "abc"}, expires_delta=timedelta(seconds=-10))
        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_tampered_token_rejected(self):
        token = create_access_token({"sub": "abc"})
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        with pytest.raises(JWTError):
            decode_access_token(tampered)
