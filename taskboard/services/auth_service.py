import bcrypt
import jwt
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import BaseModel

from taskboard.errors import Unauthorized


# ---------------- PASSWORD HASHING ----------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


# ---------------- SESSION TOKENS ----------------

class Claim(BaseModel):
    user_id: str
    email: str
    issued_at: datetime
    expires_at: datetime

    def public(self) -> dict:
        return {"userId": self.user_id, "email": self.email}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """
    Mints and checks signed, time-bounded session tokens (JWT).

    Stateless apart from the shared secret and the expiry policy; the clock is
    injectable so expiry can be tested deterministically.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expire_minutes: int = 120,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = timedelta(minutes=expire_minutes)
        self._clock = clock

    def issue(self, user_id: str, email: str) -> str:
        """Generate a JWT embedding the user's id and email."""
        issued = self._clock()
        payload = {
            "sub": str(user_id),
            "email": email,
            "iat": int(issued.timestamp()),
            "exp": int((issued + self._ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Claim:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                # expiry is checked against our own clock below
                options={"require": ["sub", "email", "iat", "exp"], "verify_exp": False, "verify_iat": False},
            )
        except jwt.PyJWTError as exc:
            raise Unauthorized("Invalid token") from exc

        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        if expires_at <= self._clock():
            raise Unauthorized("Token expired")
        return Claim(
            user_id=payload["sub"],
            email=payload["email"],
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=expires_at,
        )
