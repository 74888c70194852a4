"""
Bearer token → user identity.

Tokens are HS256 JWTs issued by the identity provider; the ``sub`` claim is
the owner id used for every row and storage path.
"""

from typing import Protocol

from jose import JWTError, jwt

from rubrica.errors import AuthRequiredError


class TokenResolver(Protocol):
    def resolve(self, token: str) -> str: ...


class JWTTokenResolver:
    def __init__(self, secret: str, *, algorithm: str = "HS256", audience: str | None = None):
        if not secret:
            raise ValueError("JWT secret is required")
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience

    def resolve(self, token: str) -> str:
        """Return the user id for ``token`` or raise AuthRequiredError."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                options={"verify_aud": self._audience is not None},
            )
        except (JWTError, ValueError, TypeError) as ex:
            raise AuthRequiredError(f"invalid token: {ex}") from ex
        sub = payload.get("sub")
        if not sub or not isinstance(sub, str):
            raise AuthRequiredError("token has no subject")
        return sub


def create_access_token(secret: str, subject: str, *, algorithm: str = "HS256", **claims) -> str:
    """Issue a token for ``subject``; used by the CLI and tests."""
    return jwt.encode({"sub": subject, **claims}, secret, algorithm=algorithm)
