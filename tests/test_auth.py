# tests/test_auth.py

from datetime import timedelta

import jwt
import pytest

from taskmanager.auth import (
    UserIdentity,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from taskmanager.config import Settings
from taskmanager.errors import InvalidCredentialsError, UnauthorizedError, UsernameTakenError


def test_hash_password_is_salted_and_verifiable():
    first = hash_password("pw1")
    second = hash_password("pw1")

    assert first != "pw1"
    assert first != second
    assert verify_password("pw1", first)
    assert not verify_password("pw2", first)


def test_verify_password_rejects_malformed_hash():
    assert not verify_password("pw1", "not-a-bcrypt-hash")


def test_register_stores_hashed_password(auth_service, user_repo):
    user = auth_service.register("alice", "pw1")

    stored = user_repo.find_by_username("alice")
    assert stored is user
    assert stored.password_hash != "pw1"
    assert verify_password("pw1", stored.password_hash)


def test_register_twice_fails_and_keeps_first_user(auth_service, user_repo):
    first = auth_service.register("alice", "pw1")

    with pytest.raises(UsernameTakenError) as excinfo:
        auth_service.register("alice", "other")

    assert excinfo.value.message == "Error: Username is already taken!"
    assert len(user_repo.users) == 1
    assert verify_password("pw1", user_repo.find_by_username("alice").password_hash)
    assert user_repo.find_by_username("alice").id == first.id


def test_login_issues_token_bound_to_user(auth_service):
    user = auth_service.register("alice", "pw1")

    token = auth_service.login("alice", "pw1")

    assert auth_service.authenticate(token) == UserIdentity(id=user.id, username="alice")


def test_login_failures_are_indistinguishable(auth_service):
    auth_service.register("alice", "pw1")

    with pytest.raises(InvalidCredentialsError) as wrong_password:
        auth_service.login("alice", "nope")
    with pytest.raises(InvalidCredentialsError) as unknown_user:
        auth_service.login("mallory", "pw1")

    assert wrong_password.value.message == unknown_user.value.message == "Invalid username or password"
    assert wrong_password.value.status_code == unknown_user.value.status_code == 401


def test_expired_token_is_rejected():
    token = create_access_token(1, "alice", expires_delta=timedelta(seconds=-5))

    with pytest.raises(UnauthorizedError):
        decode_access_token(token)


def test_token_signed_with_other_secret_is_rejected():
    foreign = Settings(jwt_secret="someone-elses-secret")
    token = create_access_token(1, "alice", settings=foreign)

    with pytest.raises(UnauthorizedError):
        decode_access_token(token)


def test_token_without_user_id_is_rejected():
    settings = Settings()
    token = jwt.encode({"sub": "alice", "exp": 9999999999}, settings.jwt_secret, algorithm=settings.jwt_algorithm)

    with pytest.raises(UnauthorizedError):
        decode_access_token(token, settings=settings)


def test_garbage_token_is_rejected(auth_service):
    with pytest.raises(UnauthorizedError):
        auth_service.authenticate("not.a.token")
