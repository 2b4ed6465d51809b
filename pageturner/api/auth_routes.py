"""Authentication API routes."""

import logging
import time
from typing import Annotated

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, HTTPException, status

from pageturner.api.schemas import LoginRequest, SignupRequest, TokenResponse, UserResponse
from pageturner.core.dependencies import CurrentUser, get_auth_service, oauth2_scheme
from pageturner.core.redis_client import get_redis, revoke_token
from pageturner.core.security import decode_access_token
from pageturner.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> UserResponse:
    """Register a new user."""
    try:
        user = await auth_service.signup(body.username, body.email, body.password)
        return UserResponse.model_validate(user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> TokenResponse:
    """Authenticate and return JWT."""
    token = await auth_service.login(body.email, body.password)
    return TokenResponse(access_token=token)


@router.get("/me", response_model=UserResponse)
async def me(current_user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.post("/logout", status_code=status.HTTP_200_OK)
async def logout(
    current_user: CurrentUser,
    token: Annotated[str, Depends(oauth2_scheme)],
    redis_client: Annotated[aioredis.Redis, Depends(get_redis)],
) -> dict:
    """Log out the current user.

    The token's ``jti`` is written to the Redis revocation blacklist with a
    TTL equal to the token's remaining lifetime.
    """
    payload = decode_access_token(token)
    if payload:
        jti: str | None = payload.get("jti")
        exp: int | None = payload.get("exp")
        if jti and exp:
            ttl = max(int(exp - time.time()), 1)
            await revoke_token(redis_client, jti, ttl)
            logger.info("Token jti=%s revoked (TTL=%ds) for user %s", jti, ttl, current_user.id)
    return {"detail": "Successfully logged out"}
