"""
Security utilities.

Delivery signatures and masking of sensitive values in logs:
- Webhook secrets
- Subscription IDs
- Bearer tokens
"""

import hashlib
import hmac
import secrets

from app.utils.exceptions import AuthError


SIGNATURE_ALGORITHM = "sha256"


def _header_bytes(value: str) -> bytes:
    """Header text as bytes; compare_digest rejects non-ASCII str."""
    return value.encode("utf-8", "surrogateescape")


def generate_webhook_secret() -> str:
    """
    Generate a per-webhook shared secret.

    Returns:
        64 hex characters (32 random bytes)
    """
    return secrets.token_hex(32)


def compute_signature(body: bytes, secret: str) -> str:
    """
    Compute the delivery signature of a raw request body.

    Args:
        body: Raw request body, exactly as received
        secret: Webhook secret

    Returns:
        Hex HMAC-SHA256 digest
    """
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str) -> None:
    """
    Verify a delivery signature in constant time.

    Args:
        body: Raw request body
        signature: Hex digest from the x-signature header
        secret: Webhook secret

    Raises:
        AuthError: If the signature is missing or does not match
    """
    if not signature:
        raise AuthError("Missing webhook signature")

    expected = compute_signature(body, secret)
    if not hmac.compare_digest(expected.encode(), _header_bytes(signature.strip().lower())):
        raise AuthError("Invalid webhook signature")


def verify_bearer_token(header: str | None, expected: str | None) -> None:
    """
    Check an Authorization: Bearer header against a shared secret.

    Args:
        header: Raw Authorization header
        expected: Configured secret; None disables the endpoint

    Raises:
        AuthError: If the token is missing, wrong or not configured
    """
    if not expected:
        raise AuthError("Cron secret is not configured")
    if not header or not header.startswith("Bearer "):
        raise AuthError("Missing bearer token")

    token = header[len("Bearer "):].strip()
    if not hmac.compare_digest(_header_bytes(token), _header_bytes(expected)):
        raise AuthError("Invalid bearer token")


def mask_sensitive(value: str | None, show_chars: int = 4) -> str:
    """
    Mask sensitive string (secrets, tokens, etc).

    Args:
        value: Sensitive value to mask
        show_chars: Number of characters to show at start and end

    Returns:
        Masked value or '***' if too short

    Examples:
        >>> mask_sensitive("my_secret_key_1234567890", show_chars=4)
        'my_s...7890'
        >>> mask_sensitive("short")
        '***'
        >>> mask_sensitive(None)
        '***'
    """
    if not value or len(value) <= show_chars * 2:
        return "***"
    return f"{value[:show_chars]}...{value[-show_chars:]}"


def mask_address(address: str | None) -> str:
    """
    Mask an account address for logging.

    Args:
        address: Base58 account address

    Returns:
        Masked address showing first 4 and last 4 characters

    Examples:
        >>> mask_address("9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin")
        '9xQe...VFin'
        >>> mask_address(None)
        '***'
    """
    return mask_sensitive(address, show_chars=4)
