from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

import bcrypt

from domain.errors import Conflict, Unauthorized, ValidationError, ensure_text
from domain.models import Session, User, utcnow
from domain.repositories import IdentityRepository, SessionRepository, UserRepository


log = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6
TOKEN_LIFETIME = timedelta(hours=24)
LEADERBOARD_SIZE = 20
BCRYPT_ROUNDS = 12


@dataclass
class ExternalContext:
    """
    Information about the caller from a particular channel (Telegram, web).

    The application layer never depends on concrete SDK types; it only sees
    this small context object.
    """

    provider: str
    provider_user_id: str
    first_name: str
    last_name: str

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.provider_user_id


@dataclass
class AuthResult:
    """A user together with a freshly issued bearer token."""

    user: User
    token: str


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(BCRYPT_ROUNDS)).decode("utf-8")


def check_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def issue_token(user_id: str, session_repo: SessionRepository) -> str:
    now = utcnow()
    session = Session(
        token=secrets.token_urlsafe(32),
        user_id=user_id,
        created_at=now,
        expires_at=now + TOKEN_LIFETIME,
    )
    session_repo.add_session(session)
    return session.token


def register(
    username: str,
    email: str,
    password: str,
    user_repo: UserRepository,
    session_repo: SessionRepository,
) -> AuthResult:
    """
    Create a password-protected account and log it in.

    - All fields are required; usernames need 3+ characters and passwords 6+.
    - Usernames and emails must be unique.
    - New players start with a zero balance; rewards come from wins only.
    """

    username = ensure_text(username, "Username").strip()
    email = ensure_text(email, "Email").strip().lower()
    password = ensure_text(password, "Password")

    if not username or not email or not password:
        raise ValidationError("All fields are required.")
    if len(username) < MIN_USERNAME_LENGTH:
        raise ValidationError(f"Username must be at least {MIN_USERNAME_LENGTH} characters.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if "@" not in email:
        raise ValidationError("Email address is not valid.")

    if user_repo.get_by_username(username) or user_repo.get_by_email(email):
        raise Conflict("Username or email already exists.")

    user = User(
        id=uuid.uuid4().hex,
        display_name=username,
        username=username,
        email=email,
        password_hash=hash_password(password),
    )
    user_repo.add_user(user)
    log.info("Registered user %s (%s)", user.username, user.id)

    return AuthResult(user=user, token=issue_token(user.id, session_repo))


def login(
    username_or_email: str,
    password: str,
    user_repo: UserRepository,
    session_repo: SessionRepository,
) -> AuthResult:
    """
    Check credentials and issue a fresh token.

    Unknown users, inactive users and wrong passwords all raise the same
    `ValidationError`; `Unauthorized` is kept for bad tokens.
    """

    key = ensure_text(username_or_email, "Username").strip()
    password = ensure_text(password, "Password")
    if not key or not password:
        raise ValidationError("Username and password are required.")

    if "@" in key:
        user = user_repo.get_by_email(key.lower())
    else:
        user = user_repo.get_by_username(key)

    if user is None or not user.active or not check_password(password, user.password_hash):
        log.warning("Failed login for %s", key)
        raise ValidationError("Invalid username or password.")

    now = utcnow()
    user_repo.set_last_login(user.id, now)
    user.last_login = now

    return AuthResult(user=user, token=issue_token(user.id, session_repo))


def authenticate(
    token: Optional[str],
    user_repo: UserRepository,
    session_repo: SessionRepository,
) -> User:
    """Resolve a bearer token to its user or raise `Unauthorized`."""

    if not token:
        raise Unauthorized("Access token required.")

    session = session_repo.get_session(token)
    if session is None:
        raise Unauthorized("Invalid token.")
    if session.is_expired():
        session_repo.delete_session(token)
        raise Unauthorized("Token expired.")

    user = user_repo.get_user(session.user_id)
    if user is None or not user.active:
        raise Unauthorized("Invalid token.")
    return user


def get_or_create_chat_user(
    external_ctx: ExternalContext,
    identity_repo: IdentityRepository,
    user_repo: UserRepository,
) -> User:
    """
    Return the user bound to a chat identity, creating one on first contact.

    Chat users have no credentials; they reach the web surface through a
    token handed out by the bot.
    """

    existing = identity_repo.find_user_by_external(
        external_ctx.provider,
        external_ctx.provider_user_id,
    )
    if existing is not None:
        return existing

    user = User(id=uuid.uuid4().hex, display_name=external_ctx.display_name)
    user_repo.add_user(user)
    identity_repo.set_external_identity(
        external_ctx.provider,
        external_ctx.provider_user_id,
        user.id,
    )
    log.info(
        "Created user %s for %s:%s",
        user.id,
        external_ctx.provider,
        external_ctx.provider_user_id,
    )
    return user


def leaderboard(user_repo: UserRepository, limit: int = LEADERBOARD_SIZE) -> List[User]:
    return user_repo.top_by_balance(max(0, min(limit, LEADERBOARD_SIZE)))
