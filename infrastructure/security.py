from typing import Optional

from jose import JWTError, jwt

from domain.auth import Actor
from domain.enums import ActorRole


class InvalidTokenError(Exception):
    """Bearer token could not be verified"""


def decode_access_token(token: str, secret_key: str, algorithm: str = "HS256") -> Actor:
    """Verify a JWT issued by the authentication service and build the caller"""
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as e:
        raise InvalidTokenError(str(e))

    subject: Optional[str] = payload.get("sub")
    if not subject:
        raise InvalidTokenError("Token has no subject")

    try:
        role = ActorRole(str(payload.get("role", ActorRole.GUEST.value)).upper())
    except ValueError:
        raise InvalidTokenError(f"Unknown role: {payload.get('role')}")

    return Actor(actor_id=subject, role=role)
