"""
Authentication: password hashing, JWT access tokens and the auth service.

Tokens are stateless. A protected route depends on ``get_current_identity``,
which decodes the bearer token once and hands the resulting ``UserIdentity``
to the route, which passes it on to the services explicitly.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .database import get_db
from .errors import InvalidCredentialsError, UnauthorizedError, UsernameTakenError
from .models import User
from .repositories import SqlUserRepository, UserRepository

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class UserIdentity:
    id: int
    username: str


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def create_access_token(
    user_id: int,
    username: str,
    expires_delta: Optional[timedelta] = None,
    settings: Optional[Settings] = None,
) -> str:
    """
    Create a signed access token.

    Carries the username as ``sub`` and the user id as ``uid``.
    """
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": username,
        "uid": user_id,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Optional[Settings] = None) -> UserIdentity:
    """
    Verify signature and expiry of a token and return who it belongs to.

    Raises:
        UnauthorizedError: token is malformed, tampered with or expired.
    """
    settings = settings or get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub", "uid"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token")

    user_id = payload["uid"]
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise UnauthorizedError("Invalid token")
    return UserIdentity(id=user_id, username=payload["sub"])


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.users = users
        self.settings = settings or get_settings()
        self.logger = logger or logging.getLogger(__name__)

    def register(self, username: str, password: str) -> User:
        self.logger.info("Registering new user: %s", username)
        if self.users.exists_by_username(username):
            self.logger.warning("Username %s is already taken", username)
            raise UsernameTakenError()

        user = self.users.save(User(username=username, password_hash=hash_password(password)))
        self.logger.info("User %s registered successfully", username)
        return user

    def login(self, username: str, password: str) -> str:
        """
        Check credentials and issue an access token.

        Unknown user and wrong password fail the same way.
        """
        self.logger.info("Authenticating user: %s", username)
        user = self.users.find_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            self.logger.warning("Authentication failed for user: %s", username)
            raise InvalidCredentialsError()

        token = create_access_token(user.id, user.username, settings=self.settings)
        self.logger.info("User %s logged in successfully", username)
        return token

    def authenticate(self, token: str) -> UserIdentity:
        return decode_access_token(token, settings=self.settings)


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    return AuthService(SqlUserRepository(db))


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth: AuthService = Depends(get_auth_service),
) -> UserIdentity:
    """Resolve the caller from the ``Authorization: Bearer`` header or reject with 401."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        logger.warning("Rejected request without bearer token")
        raise UnauthorizedError()
    try:
        return auth.authenticate(credentials.credentials)
    except UnauthorizedError as exc:
        logger.warning("Rejected bearer token: %s", exc.message)
        raise
