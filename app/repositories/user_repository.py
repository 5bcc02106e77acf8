"""User Repository. Queries for user accounts and their settings.

Provides filtered list queries for the user management endpoints and
get-or-create access to per-user settings.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.user import Role, User, UserSettings
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """User table queries."""

    def __init__(self) -> None:
        super().__init__(User)

    async def get_with_role(self, db: AsyncSession, user_id: UUID) -> User | None:
        """Load a user with its role eagerly loaded."""
        return await self.get_by_id(db, user_id, options=[selectinload(User.role)])

    async def email_exists(
        self, db: AsyncSession, email: str, exclude_id: UUID | None = None
    ) -> bool:
        """Whether another account already uses ``email`` (case-insensitive)."""
        query: Select = select(func.count()).select_from(User).where(
            func.lower(User.email) == email.strip().lower()
        )
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        count: int = (await db.execute(query)).scalar() or 0
        return count > 0

    def build_list_query(
        self,
        email: str | None = None,
        is_active: bool | None = None,
        role: str | None = None,
        search: str | None = None,
    ) -> Select:
        """List query for the admin user table, newest first.

        Args:
            email: Email substring filter
            is_active: Active flag filter
            role: Role name filter
            search: Matches first name, last name or email

        Returns:
            Select: Query with role eagerly loaded
        """
        query: Select = select(User).options(selectinload(User.role))

        if email:
            query = query.where(User.email.ilike(f"%{email}%"))
        if is_active is not None:
            query = query.where(User.is_active == is_active)
        if role:
            query = query.join(Role, Role.id == User.role_id).where(Role.name == role.upper())
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern),
                    User.email.ilike(pattern),
                )
            )

        return query.order_by(User.created_at.desc())

    async def count_by_role(self, db: AsyncSession, role_name: str) -> int:
        """Number of users holding ``role_name``."""
        result = await db.execute(
            select(func.count())
            .select_from(User)
            .join(Role, Role.id == User.role_id)
            .where(Role.name == role_name)
        )
        return result.scalar() or 0

    # --- Settings ---

    async def get_settings(self, db: AsyncSession, user_id: UUID) -> UserSettings | None:
        result = await db.execute(select(UserSettings).where(UserSettings.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_or_create_settings(self, db: AsyncSession, user_id: UUID) -> UserSettings:
        """Return the user's settings row, creating it with defaults if missing."""
        user_settings: UserSettings | None = await self.get_settings(db, user_id)
        if user_settings is None:
            user_settings = UserSettings(user_id=user_id)
            db.add(user_settings)
            await db.flush()
        return user_settings

    async def count_all(self, db: AsyncSession) -> int:
        return int((await db.execute(select(func.count(User.id)))).scalar() or 0)

    async def count_grouped_by_role(self, db: AsyncSession) -> dict[str, int]:
        """{role name: user count} across every role."""
        result = await db.execute(
            select(Role.name, func.count(User.id))
            .join(User, User.role_id == Role.id, isouter=True)
            .group_by(Role.name)
        )
        return {name: int(count) for name, count in result.all()}

    async def get_created_between(self, db: AsyncSession, since: datetime, until: datetime) -> list[datetime]:
        """Signup timestamps in ``[since, until)``, oldest first."""
        result = await db.execute(
            select(User.created_at)
            .where(User.created_at >= since, User.created_at < until)
            .order_by(User.created_at)
        )
        return list(result.scalars().all())

    async def count_active_between(self, db: AsyncSession, since: datetime, until: datetime) -> int:
        """Users who logged in during ``[since, until)``."""
        result = await db.execute(
            select(func.count(User.id)).where(User.last_login_at >= since, User.last_login_at < until)
        )
        return int(result.scalar() or 0)


# Singleton instance
user_repository: UserRepository = UserRepository()
