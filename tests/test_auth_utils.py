from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from fishing_api import auth_utils
from fishing_api.errors import ForbiddenError


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_hash_and_verify_password():
    hashed = auth_utils.hash_password("secret1")

    assert hashed != "secret1"
    assert auth_utils.verify_password("secret1", hashed)
    assert not auth_utils.verify_password("secret2", hashed)


def test_hashes_are_salted():
    assert auth_utils.hash_password("secret1") != auth_utils.hash_password("secret1")


def test_verify_password_with_unknown_hash_format():
    assert auth_utils.verify_password("secret1", "not-a-hash") is False


def test_token_resolves_to_user(fake_repo):
    user = fake_repo.create_account("alice", "hash")
    token = auth_utils.create_user_access_token(user["id"], user["username"])

    assert auth_utils.get_current_user(_credentials(token)) == {"id": user["id"], "username": "alice"}


def test_token_for_deleted_user_is_rejected(fake_repo):
    token = auth_utils.create_user_access_token(42, "ghost")

    with pytest.raises(HTTPException) as exc_info:
        auth_utils.get_current_user(_credentials(token))
    assert exc_info.value.status_code == 401


def test_expired_token_is_rejected(fake_repo):
    user = fake_repo.create_account("alice", "hash")
    token = auth_utils._create_access_token({"sub": str(user["id"])}, expires_delta=timedelta(minutes=-1))

    with pytest.raises(HTTPException) as exc_info:
        auth_utils.get_current_user(_credentials(token))
    assert exc_info.value.detail == "Invalid token"


def test_token_without_subject_is_rejected(fake_repo):
    token = auth_utils._create_access_token({"username": "alice"}, expires_delta=timedelta(minutes=5))

    with pytest.raises(HTTPException) as exc_info:
        auth_utils.get_current_user(_credentials(token))
    assert exc_info.value.detail == "Invalid token payload"


def test_missing_jwt_secret(monkeypatch):
    monkeypatch.delenv("JWT_SECRET")

    with pytest.raises(RuntimeError, match="JWT_SECRET"):
        auth_utils.create_user_access_token(1, "alice")


def test_ensure_owner():
    auth_utils.ensure_owner(3, {"id": 3, "username": "alice"})
    with pytest.raises(ForbiddenError):
        auth_utils.ensure_owner(4, {"id": 3, "username": "alice"})
