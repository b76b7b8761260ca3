from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from app.core.security import decode_token


def _sign(private_pem: str, **claims) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": "user-xyz", "iat": now, "exp": now + timedelta(minutes=5)}
    payload.update(claims)
    return jwt.encode(payload, private_pem, algorithm="RS256")


def test_access_token_from_identity_provider_is_accepted(patch_jwt_keys):
    decoded = decode_token(_sign(patch_jwt_keys, type="access"))

    assert decoded["sub"] == "user-xyz"
    assert decoded["type"] == "access"


def test_token_without_type_claim_is_accepted(patch_jwt_keys):
    assert decode_token(_sign(patch_jwt_keys))["sub"] == "user-xyz"


def test_refresh_token_is_refused_for_api_access(patch_jwt_keys):
    with pytest.raises(ValueError, match="Unexpected token type"):
        decode_token(_sign(patch_jwt_keys, type="refresh"))


def test_expired_token_is_refused(patch_jwt_keys):
    past = datetime.now(timezone.utc) - timedelta(hours=1)

    with pytest.raises(ValueError, match="Invalid token"):
        decode_token(_sign(patch_jwt_keys, iat=past - timedelta(minutes=5), exp=past))


def test_token_signed_with_another_key_is_refused(patch_jwt_keys):
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    other = rsa.generate_private_key(public_exponent=65537, key_size=2048).private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

    with pytest.raises(ValueError):
        decode_token(_sign(other.decode(), type="access"))
