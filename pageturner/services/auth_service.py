"""Authentication service."""

import logging
from datetime import timedelta
from typing import Optional
from uuid import uuid4

from pageturner.core.config import settings
from pageturner.core.constants import MESSAGES
from pageturner.core.errors import AuthError
from pageturner.core.security import create_access_token, hash_password, verify_password
from pageturner.domain.entities import User
from pageturner.domain.repositories import IUserRepository

logger = logging.getLogger(__name__)


class AuthService:
    """Handles signup, login and profile changes."""

    def __init__(self, user_repository: IUserRepository):
        self.user_repository = user_repository

    async def signup(self, username: str, email: str, password: str) -> User:
        """Register a new user."""
        if await self.user_repository.get_by_email(email):
            raise ValueError(MESSAGES["email_in_use"])
        if await self.user_repository.get_by_username(username):
            raise ValueError("Username already taken")

        created = await self.user_repository.create(
            User(
                id=uuid4(),
                username=username,
                email=email,
                hashed_password=hash_password(password),
            )
        )
        logger.info("User registered: %s", created.id)
        return created

    async def login(self, email: str, password: str) -> str:
        """Authenticate and return a JWT access token."""
        user = await self.user_repository.get_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            raise AuthError(MESSAGES["invalid_credentials"], code="auth/invalid-credentials")
        if not user.is_active:
            raise AuthError("Account is deactivated", code="auth/inactive")

        token = create_access_token(
            data={"sub": str(user.id)},
            expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
        )
        logger.info("User logged in: %s", user.id)
        return token

    async def update_profile(
        self, user: User, username: Optional[str] = None, email: Optional[str] = None
    ) -> User:
        """Change username and/or email; values held by another account are rejected."""
        if email and email != user.email:
            existing = await self.user_repository.get_by_email(email)
            if existing and existing.id != user.id:
                raise ValueError(MESSAGES["email_in_use"])
            user.email = email
        if username and username != user.username:
            existing = await self.user_repository.get_by_username(username)
            if existing and existing.id != user.id:
                raise ValueError("Username already taken")
            user.username = username
        updated = await self.user_repository.update(user)
        logger.info("Profile updated: %s", updated.id)
        return updated
