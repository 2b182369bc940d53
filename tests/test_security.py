"""Service de tokens et hachage des mots de passe."""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from app.core.config import settings
from app.core.context import CurrentIdentity
from app.core.exceptions import InvalidSignature, MalformedToken, TokenError, TokenExpired
from app.core.security import (
    create_access_token,
    decode_token,
    get_password_hash,
    verify_password,
)


@pytest.fixture()
def identity():
    return CurrentIdentity(id=7, email="asha@example.com", role="user")


def _encode(payload, secret=None):
    return jwt.encode(payload, secret or settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


class TestIssue:
    def test_round_trip_returns_claims(self, identity):
        claims = decode_token(create_access_token(identity))

        assert claims.identity_id == 7
        assert claims.email == "asha@example.com"
        assert claims.role == "user"

    def test_expiry_is_after_issuance(self, identity):
        claims = decode_token(create_access_token(identity))

        assert claims.expires_at > claims.issued_at
        assert claims.expires_at - claims.issued_at == timedelta(
            minutes=settings.jwt_access_token_expire_minutes
        )

    def test_custom_lifetime(self, identity):
        issued_at = datetime.now(timezone.utc).replace(microsecond=0)
        token = create_access_token(identity, expires_delta=timedelta(minutes=5), issued_at=issued_at)

        claims = decode_token(token)

        assert claims.issued_at == issued_at
        assert claims.expires_at == issued_at + timedelta(minutes=5)

    def test_admin_role_is_carried(self):
        admin = CurrentIdentity(id=1, email="admin@example.com", role="admin")

        assert decode_token(create_access_token(admin)).role == "admin"


class TestVerify:
    def test_expired_token(self, identity):
        token = create_access_token(
            identity,
            issued_at=datetime.now(timezone.utc) - timedelta(hours=2),
            expires_delta=timedelta(hours=1),
        )

        with pytest.raises(TokenExpired):
            decode_token(token)

    def test_wrong_secret(self, identity):
        token = create_access_token(identity)
        payload = jwt.get_unverified_claims(token)

        with pytest.raises(InvalidSignature):
            decode_token(_encode(payload, secret="another-secret"))

    def test_tampered_payload(self, identity):
        header, _, signature = create_access_token(identity).split(".")
        forged = {
            "sub": "7",
            "email": "asha@example.com",
            "role": "admin",
            "iat": int(datetime.now(timezone.utc).timestamp()),
            "exp": int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp()),
        }
        forged_payload = base64.urlsafe_b64encode(json.dumps(forged).encode()).rstrip(b"=").decode()

        with pytest.raises(InvalidSignature):
            decode_token(f"{header}.{forged_payload}.{signature}")

    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c", "abc.def"])
    def test_malformed_token(self, token):
        with pytest.raises(MalformedToken):
            decode_token(token)

    def test_missing_claims(self):
        now = datetime.now(timezone.utc)
        token = _encode({"sub": "7", "iat": now, "exp": now + timedelta(hours=1)})

        with pytest.raises(MalformedToken):
            decode_token(token)

    def test_unknown_role(self):
        now = datetime.now(timezone.utc)
        token = _encode({
            "sub": "7",
            "email": "asha@example.com",
            "role": "superuser",
            "iat": now,
            "exp": now + timedelta(hours=1),
        })

        with pytest.raises(MalformedToken):
            decode_token(token)

    def test_all_failures_share_the_invalid_token_reason(self, identity):
        expired = create_access_token(identity, expires_delta=timedelta(seconds=-1))

        for token in (expired, "not-a-token"):
            with pytest.raises(TokenError) as exc_info:
                decode_token(token)
            assert exc_info.value.reason == "InvalidToken"
            assert exc_info.value.status_code == 401


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = get_password_hash("Password123")

        assert hashed != "Password123"
        assert verify_password("Password123", hashed)
        assert not verify_password("Password124", hashed)

    def test_hashes_are_salted(self):
        assert get_password_hash("Password123") != get_password_hash("Password123")
