from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from schemas import TokenClaims


class TokenExpired(Exception):
    pass


class TokenInvalid(Exception):
    pass


class PasswordHasher:
    """One-way salted bcrypt hashing with a configurable work factor."""

    def __init__(self, rounds: int = 10):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return self._context.verify(password, password_hash)
        except ValueError:
            # Stored value is not a recognizable hash
            return False


class TokenService:
    """Issues and verifies signed, time-limited bearer tokens.

    Tokens are stateless: they carry ``{id, email, iat, exp}`` and cannot be
    revoked before ``exp``.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", expires_in: int = 3600):
        self.secret = secret
        self.algorithm = algorithm
        self.expires_in = expires_in

    def issue(self, user_id: int, email: str, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "id": user_id,
            "email": email,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.expires_in)).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["id", "email", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired("Token expired")
        except jwt.InvalidTokenError as exc:
            raise TokenInvalid(str(exc))
        try:
            return TokenClaims(**payload)
        except ValueError as exc:
            raise TokenInvalid(str(exc))


def bearer_token(authorization: str) -> str:
    """Return the token segment of ``Bearer <token>``, or "" when there is none."""
    parts = authorization.split(" ")
    return parts[1] if len(parts) > 1 else ""
