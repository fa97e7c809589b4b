"""
Auth service: invite-gated signup, password login, bearer tokens.

Passwords are hashed with bcrypt. Tokens are HMAC-signed JWTs carrying the
user's id and phone; nothing about a session is stored server-side, so
logout is the client discarding its token.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import bcrypt
import jwt
from sqlalchemy.orm import Session

from app import storage
from app.config import settings
from app.errors import ConflictError, ForbiddenError, InvalidInputError, UnauthorizedError
from app.metrics import record_auth_event

logger = logging.getLogger(__name__)

# bcrypt ignores (newer releases reject) input past this many bytes
BCRYPT_MAX_PASSWORD_BYTES = 72

INVALID_CREDENTIALS = "invalid credentials"


@dataclass(frozen=True)
class TokenClaims:
    """Identity embedded in a bearer token at issuance time."""
    id: int
    phone: str


@dataclass(frozen=True)
class AuthResult:
    token: str
    user: TokenClaims


class AuthService:
    """
    Signup/login and token handling.

    All secrets are passed in at construction; use get_auth_service() for
    the instance configured from settings.
    """

    def __init__(
        self,
        jwt_secret: str,
        invite_code: str,
        algorithm: str = "HS256",
        bcrypt_rounds: int = 10,
        token_ttl_minutes: Optional[int] = None,
    ):
        self.jwt_secret = jwt_secret
        self.invite_code = invite_code
        self.algorithm = algorithm
        self.bcrypt_rounds = bcrypt_rounds
        self.token_ttl_minutes = token_ttl_minutes
        self._dummy_hash: Optional[bytes] = None

    # -------------------------------------------------------------------------
    # Passwords
    # -------------------------------------------------------------------------

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(
            password.encode("utf-8"),
            bcrypt.gensalt(rounds=self.bcrypt_rounds)
        ).decode("utf-8")

    def check_password(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed stored hash or over-long password
            return False

    def _burn_password_check(self, password: str) -> None:
        """Spend one bcrypt verification so unknown phones cost the same as wrong passwords."""
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"not-a-password", bcrypt.gensalt(rounds=self.bcrypt_rounds))
        self.check_password(password, self._dummy_hash.decode("utf-8"))

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    def issue_token(self, user) -> str:
        """Sign a token embedding the user's id and phone."""
        payload = {"id": user.id, "phone": user.phone}
        if self.token_ttl_minutes:
            payload["exp"] = datetime.now(timezone.utc) + timedelta(minutes=self.token_ttl_minutes)
        return jwt.encode(payload, self.jwt_secret, algorithm=self.algorithm)

    def verify_token(self, token: Optional[str]) -> TokenClaims:
        """
        Check a token's signature (and expiry, when present) and return its claims.

        Raises:
            UnauthorizedError: token missing, malformed, forged or expired
        """
        if not token:
            record_auth_event("token", "unauthorized")
            raise UnauthorizedError("Missing token")

        try:
            payload = jwt.decode(token, self.jwt_secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            record_auth_event("token", "unauthorized")
            raise UnauthorizedError("Token expired")
        except jwt.InvalidTokenError as e:
            logger.debug(f"Token rejected: {e}")
            record_auth_event("token", "unauthorized")
            raise UnauthorizedError("Invalid token")

        user_id = payload.get("id")
        phone = payload.get("phone")
        # bool is an int subclass; a claim of `true` is not an id
        if not isinstance(user_id, int) or isinstance(user_id, bool) or not isinstance(phone, str):
            record_auth_event("token", "unauthorized")
            raise UnauthorizedError("Invalid token")

        return TokenClaims(id=user_id, phone=phone)

    # -------------------------------------------------------------------------
    # Signup / login
    # -------------------------------------------------------------------------

    def signup(
        self,
        db: Session,
        phone: Optional[str],
        password: Optional[str],
        invite_code: Optional[str],
    ) -> AuthResult:
        """
        Register a new user and log them in.

        Raises:
            InvalidInputError: a field is missing/empty or the password is too long
            ForbiddenError: invite code does not match
            ConflictError: phone already registered
        """
        if not phone or not password or not invite_code:
            record_auth_event("signup", "invalid_input")
            raise InvalidInputError("phone, password and invite_code required")

        if invite_code != self.invite_code:
            logger.warning("Signup rejected: invalid invite code")
            record_auth_event("signup", "forbidden")
            raise ForbiddenError("invalid invite code")

        if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            record_auth_event("signup", "invalid_input")
            raise InvalidInputError(f"password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes")

        if storage.get_user_by_phone(db, phone) is not None:
            record_auth_event("signup", "conflict")
            raise ConflictError("phone already registered")

        try:
            user = storage.create_user(db, phone, self.hash_password(password))
        except ConflictError:
            record_auth_event("signup", "conflict")
            raise

        record_auth_event("signup", "ok")
        claims = TokenClaims(id=user.id, phone=user.phone)
        return AuthResult(token=self.issue_token(claims), user=claims)

    def login(self, db: Session, phone: Optional[str], password: Optional[str]) -> AuthResult:
        """
        Exchange phone and password for a token.

        Unknown phone and wrong password raise the same UnauthorizedError.
        """
        if not phone or not password:
            record_auth_event("login", "invalid_input")
            raise InvalidInputError("phone and password required")

        user = storage.get_user_by_phone(db, phone)
        if user is None:
            self._burn_password_check(password)
            record_auth_event("login", "unauthorized")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not self.check_password(password, user.password_hash):
            record_auth_event("login", "unauthorized")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        record_auth_event("login", "ok")
        claims = TokenClaims(id=user.id, phone=user.phone)
        return AuthResult(token=self.issue_token(claims), user=claims)


@lru_cache()
def get_auth_service() -> AuthService:
    """AuthService configured from settings, built once per process."""
    return AuthService(
        jwt_secret=settings.JWT_SECRET,
        invite_code=settings.INVITE_CODE,
        algorithm=settings.JWT_ALGORITHM,
        bcrypt_rounds=settings.BCRYPT_ROUNDS,
        token_ttl_minutes=settings.JWT_EXPIRES_MINUTES,
    )
