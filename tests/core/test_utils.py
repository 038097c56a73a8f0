"""
Test suite for core utility functions.

Run tests:
    pytest tests/core/test_utils.py -v
"""

from datetime import timedelta

import bcrypt
import pytest

from app.core.utils import (
    create_jwt_token,
    decode_jwt_token,
    generate_invitation_token,
    hash_password,
    hmac_hash_token,
    write_to_file_async,
)


class TestPasswordHashing:

    def test_hash_is_bcrypt(self):
        hashed = hash_password("correct horse")

        assert hashed != "correct horse"
        assert bcrypt.checkpw(b"correct horse", hashed.encode("utf-8"))
        assert not bcrypt.checkpw(b"battery staple", hashed.encode("utf-8"))

    def test_long_passwords_are_truncated_to_72_bytes(self):
        hashed = hash_password("x" * 100)

        assert bcrypt.checkpw(b"x" * 72, hashed.encode("utf-8"))

    def test_hash_none_raises(self):
        with pytest.raises(ValueError):
            hash_password(None)


class TestJWT:

    def test_round_trip_claims(self):
        token = create_jwt_token({"sub": "user-1", "type": "access"})

        payload = decode_jwt_token(token)

        assert payload["sub"] == "user-1"
        assert {"exp", "iat", "jti"} <= set(payload)

    def test_expired_token(self):
        token = create_jwt_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-1))

        assert decode_jwt_token(token) is None

    def test_tampered_token(self):
        token = create_jwt_token({"sub": "user-1"})

        assert decode_jwt_token(token[:-2] + "xx") is None
        assert decode_jwt_token("") is None

    def test_none_data_raises(self):
        with pytest.raises(ValueError):
            create_jwt_token(None)


class TestInvitationTokens:

    def test_tokens_are_unique_and_url_safe(self):
        tokens = {generate_invitation_token() for _ in range(50)}

        assert len(tokens) == 50
        assert all(len(t) == 43 for t in tokens)
        assert all("/" not in t and "+" not in t for t in tokens)

    def test_hash_is_deterministic(self):
        token = generate_invitation_token()

        assert hmac_hash_token(token) == hmac_hash_token(token)
        assert len(hmac_hash_token(token)) == 64

    def test_hash_depends_on_secret(self):
        assert hmac_hash_token("abc", "one") != hmac_hash_token("abc", "two")

    @pytest.mark.parametrize("token,secret", [(None, "s"), ("", "s"), ("abc", "")])
    def test_hash_rejects_empty_input(self, token, secret):
        with pytest.raises(ValueError):
            hmac_hash_token(token, secret)


class TestWriteToFile:

    @pytest.mark.asyncio
    async def test_writes_content(self, tmp_path):
        target = tmp_path / "openapi.json"

        await write_to_file_async(str(target), '{"openapi": "3.1.0"}')

        assert target.read_text(encoding="utf-8") == '{"openapi": "3.1.0"}'

    @pytest.mark.asyncio
    async def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await write_to_file_async(str(tmp_path / "nope" / "x.json"), "{}")
