"""API Dependencies - Caller resolution and service wiring"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from application.services import ReservationService
from domain.auth import Actor
from domain.exceptions import ForbiddenError
from infrastructure.config import Settings
from infrastructure.security import InvalidTokenError, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_reservation_service(request: Request) -> ReservationService:
    return request.app.state.reservation_service


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings)
) -> Actor:
    """Caller from the bearer token; requests without one act as an anonymous guest"""
    if credentials is None:
        return Actor.guest()
    try:
        return decode_access_token(
            credentials.credentials,
            settings.SECRET_KEY.get_secret_value(),
            settings.ALGORITHM
        )
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_staff(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_privileged:
        raise ForbiddenError("Staff access required")
    return actor
