"""Auth Repository. Refresh token CRUD and credential lookup by email.

Provides database operations for authentication workflows including
token lifecycle management and credential-based user retrieval.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.token import RefreshToken
from app.models.user import User


class AuthRepository:
    """Repository handling authentication-related database queries."""

    async def get_user_by_email(
        self,
        db: AsyncSession,
        email: str,
    ) -> User | None:
        """Retrieve a user by email (case-insensitive) with the role loaded.

        Args:
            db: Async database session
            email: Email to look up

        Returns:
            User | None: Found user or None
        """
        query: Select = (
            select(User)
            .options(selectinload(User.role))
            .where(func.lower(User.email) == email.strip().lower())
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def create_refresh_token(
        self,
        db: AsyncSession,
        user_id: UUID,
        token: str,
        expires_at: datetime,
    ) -> RefreshToken:
        """Persist a newly issued refresh token."""
        db_token: RefreshToken = RefreshToken(
            user_id=user_id,
            token=token,
            expires_at=expires_at,
        )
        db.add(db_token)
        await db.flush()
        return db_token

    async def get_refresh_token(
        self,
        db: AsyncSession,
        token: str,
    ) -> RefreshToken | None:
        """Retrieve a refresh token record by its token string."""
        query: Select = select(RefreshToken).where(RefreshToken.token == token)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def delete_refresh_token(
        self,
        db: AsyncSession,
        token: str,
    ) -> bool:
        """Delete a specific refresh token.

        Returns:
            bool: Whether a token was deleted
        """
        db_token: RefreshToken | None = await self.get_refresh_token(db, token)
        if db_token is None:
            return False

        await db.delete(db_token)
        await db.flush()
        return True

    async def delete_user_refresh_tokens(
        self,
        db: AsyncSession,
        user_id: UUID,
    ) -> None:
        """Delete all refresh tokens of a user (logout from all devices)."""
        await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
        await db.flush()


# Singleton instance
auth_repository: AuthRepository = AuthRepository()
