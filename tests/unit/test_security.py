"""Unit tests for signatures, bearer tokens and masking."""

import hashlib
import hmac

import pytest

from app.utils.exceptions import AuthError
from app.utils.security import (
    compute_signature,
    generate_webhook_secret,
    mask_address,
    mask_sensitive,
    verify_bearer_token,
    verify_signature,
)


class TestSignatures:
    """Tests for delivery HMAC signatures."""

    def test_compute_signature_is_hmac_sha256(self):
        body = b'{"webhookId":"hw-1","events":[]}'
        expected = hmac.new(b"secret", body, hashlib.sha256).hexdigest()

        assert compute_signature(body, "secret") == expected

    def test_valid_signature_passes(self):
        body = b"payload"
        verify_signature(body, compute_signature(body, "secret"), "secret")

    def test_signature_is_case_insensitive(self):
        body = b"payload"
        verify_signature(body, compute_signature(body, "secret").upper(), "secret")

    def test_missing_signature(self):
        with pytest.raises(AuthError, match="Missing"):
            verify_signature(b"payload", None, "secret")

    def test_wrong_secret(self):
        body = b"payload"
        with pytest.raises(AuthError, match="Invalid"):
            verify_signature(body, compute_signature(body, "other"), "secret")

    def test_tampered_body(self):
        signature = compute_signature(b"payload", "secret")
        with pytest.raises(AuthError):
            verify_signature(b"payload ", signature, "secret")

    def test_non_ascii_signature_is_rejected(self):
        with pytest.raises(AuthError, match="Invalid"):
            verify_signature(b"payload", "\u00e9" * 64, "secret")

    def test_generated_secrets_are_unique_hex(self):
        first, second = generate_webhook_secret(), generate_webhook_secret()

        assert first != second
        assert len(first) == 64
        int(first, 16)


class TestBearerToken:
    """Tests for cron endpoint authorization."""

    def test_valid_token(self):
        verify_bearer_token("Bearer s3cret", "s3cret")

    @pytest.mark.parametrize("header", [None, "", "s3cret", "Basic s3cret"])
    def test_missing_token(self, header):
        with pytest.raises(AuthError, match="Missing"):
            verify_bearer_token(header, "s3cret")

    def test_wrong_token(self):
        with pytest.raises(AuthError, match="Invalid"):
            verify_bearer_token("Bearer nope", "s3cret")

    def test_non_ascii_token_is_rejected(self):
        with pytest.raises(AuthError, match="Invalid"):
            verify_bearer_token("Bearer s3cr\u00e9t", "s3cret")

    def test_unconfigured_secret_rejects_everything(self):
        with pytest.raises(AuthError, match="not configured"):
            verify_bearer_token("Bearer anything", None)


class TestMasking:
    """Tests for log masking helpers."""

    def test_mask_sensitive(self):
        assert mask_sensitive("my_secret_key_1234567890") == "my_s...7890"

    def test_mask_short_value(self):
        assert mask_sensitive("short") == "***"
        assert mask_sensitive(None) == "***"

    def test_mask_address(self):
        address = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"
        assert mask_address(address) == "9xQe...VFin"
