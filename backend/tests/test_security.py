# tests/test_security.py
from __future__ import annotations

import pytest
from fastapi import HTTPException

from app.core.security import (
    create_access_token,
    decode_access_token,
    generate_invitation_token,
    generate_magic_code,
)


@pytest.mark.parametrize(
    "wrap",
    [
        lambda t: t,
        lambda t: f"  {t}  ",
        lambda t: f'"{t}"',
        lambda t: f"Bearer {t}",
        lambda t: f"'Bearer {t}'",
    ],
)
def test_decode_tolerates_copy_paste_noise(wrap):
    token = create_access_token(subject="user-1")
    assert decode_access_token(wrap(token)) == "user-1"


@pytest.mark.parametrize("token", [None, "", "   ", "not.a.jwt"])
def test_decode_rejects_missing_or_garbage(token):
    with pytest.raises(HTTPException) as exc:
        decode_access_token(token)
    assert exc.value.status_code == 401


def test_expired_token_is_rejected():
    token = create_access_token(subject="user-1", expires_minutes=-1)
    with pytest.raises(HTTPException) as exc:
        decode_access_token(token)
    assert exc.value.status_code == 401


def test_generated_secrets_shape():
    code = generate_magic_code()
    assert len(code) == 6 and code.isdigit()

    token = generate_invitation_token()
    assert len(token) == 32
    assert token.isalnum()
    assert generate_invitation_token() != token
