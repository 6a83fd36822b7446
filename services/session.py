# services/session.py
import time
from datetime import timedelta

import jwt

from services.errors import TokenExpired, TokenInvalidSignature, TokenMalformed

JWT_ALGORITHM = "HS256"
DEFAULT_SESSION_TTL = timedelta(days=30)


class SessionIssuer:
    """Issues and validates stateless HS256 session tokens.

    Expiry is checked against the injected clock rather than PyJWT's own,
    so the boundary (iat + ttl) is exact and testable. There is no
    revocation list: rotating the secret is the only way to end sessions
    early.
    """

    def __init__(self, secret: str, clock=time.time):
        if not secret:
            raise ValueError("session secret must not be empty")
        self._secret = secret
        self._clock = clock

    def issue(self, user_id: int, ttl: timedelta | float = DEFAULT_SESSION_TTL) -> str:
        seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
        # NumericDate may be fractional; truncating would expire tokens early
        issued_at = float(self._clock())
        claims = {
            "sub": str(user_id),
            "uid": int(user_id),
            "iat": issued_at,
            "exp": issued_at + seconds,
        }
        return jwt.encode(claims, self._secret, algorithm=JWT_ALGORITHM)

    def validate(self, token: str) -> int:
        """Return the user id bound to the token."""
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": ["sub", "uid", "exp"],
                },
            )
        except jwt.InvalidSignatureError as e:
            raise TokenInvalidSignature() from e
        except jwt.InvalidTokenError as e:
            raise TokenMalformed(f"token is malformed: {e}") from e

        try:
            expires_at = float(claims["exp"])
            user_id = int(claims["uid"])
        except (TypeError, ValueError) as e:
            raise TokenMalformed("token claims are malformed") from e

        if self._clock() >= expires_at:
            raise TokenExpired()
        return user_id
