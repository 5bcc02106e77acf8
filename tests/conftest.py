"""Test infrastructure. Database, session, httpx client and data fixtures.

Runs against an in-memory SQLite database by default; set
TEST_DATABASE_URL to an async PostgreSQL URL to run against Postgres.
The schema is created per test and dropped afterwards.
"""

import os
from collections.abc import AsyncGenerator
from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  register all models with metadata
from app.database import Base, get_db
from app.main import app
from app.models.payment import Payment, PaymentMethod, PaymentStatus
from app.models.reservation import Reservation, ReservationStatus
from app.models.user import Role, RoleName, User, UserSettings
from app.models.venue import Service, Venue
from app.seed import seed_permissions, seed_role_grants, seed_roles
from app.utils.dates import utcnow
from app.utils.jwt import create_access_token
from app.utils.password import hash_password

TEST_DATABASE_URL: str = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")
TEST_PASSWORD: str = "password123"


# ---------------------------------------------------------------------------
# Engine, session, client
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    if TEST_DATABASE_URL.startswith("sqlite"):
        eng = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        eng = create_async_engine(TEST_DATABASE_URL, pool_pre_ping=True)

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """One session shared by the test and the app under test."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI test client with the DB session overridden."""
    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Roles and users
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def roles(db: AsyncSession) -> dict[str, Role]:
    """System roles with the default permission grants."""
    result = await seed_roles(db)
    permissions = await seed_permissions(db)
    await seed_role_grants(db, result, permissions)
    return result


async def create_user(
    db: AsyncSession,
    role: Role,
    email: str,
    first_name: str = "Test",
    last_name: str = "User",
    password: str = TEST_PASSWORD,
) -> User:
    user = User(
        role=role,
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
    )
    db.add(user)
    await db.flush()
    db.add(UserSettings(user_id=user.id))
    await db.flush()
    return user


@pytest_asyncio.fixture
async def super_admin(db: AsyncSession, roles) -> User:
    return await create_user(db, roles[RoleName.SUPER_ADMIN], "root@test.com", "Root", "Admin")


@pytest_asyncio.fixture
async def admin_user(db: AsyncSession, roles) -> User:
    """ADMIN owning the ``venue`` fixture."""
    return await create_user(db, roles[RoleName.ADMIN], "owner@test.com", "Olivia", "Owner")


@pytest_asyncio.fixture
async def other_admin(db: AsyncSession, roles) -> User:
    return await create_user(db, roles[RoleName.ADMIN], "rival@test.com", "Rita", "Rival")


@pytest_asyncio.fixture
async def manager_user(db: AsyncSession, roles) -> User:
    return await create_user(db, roles[RoleName.MANAGER], "manager@test.com", "Mario", "Manager")


@pytest_asyncio.fixture
async def employee_user(db: AsyncSession, roles) -> User:
    return await create_user(db, roles[RoleName.EMPLOYEE], "staff@test.com", "Elena", "Staff")


@pytest_asyncio.fixture
async def guest(db: AsyncSession, roles) -> User:
    return await create_user(db, roles[RoleName.USER], "guest@test.com", "Gina", "Guest")


@pytest_asyncio.fixture
async def other_guest(db: AsyncSession, roles) -> User:
    return await create_user(db, roles[RoleName.USER], "other@test.com", "Oscar", "Other")


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def venue(db: AsyncSession, admin_user: User) -> Venue:
    v = Venue(
        owner_id=admin_user.id,
        name="Hotel Playa",
        description="Beachfront hotel",
        category="ACCOMMODATION",
        city="Cancun",
        country="Mexico",
        latitude=21.1619,
        longitude=-86.8515,
        rating=4.5,
        images=[],
        amenities=["pool", "wifi"],
    )
    db.add(v)
    await db.flush()
    return v


@pytest_asyncio.fixture
async def service(db: AsyncSession, venue: Venue) -> Service:
    """Nightly room, 1000.00 per night, two guests."""
    s = Service(
        venue_id=venue.id,
        name="Ocean View Suite",
        category="ACCOMMODATION",
        price=Decimal("1000.00"),
        currency="MXN",
        capacity=2,
        images=[],
        amenities=[],
    )
    db.add(s)
    await db.flush()
    return s


@pytest_asyncio.fixture
async def spa_service(db: AsyncSession, venue: Venue) -> Service:
    """Timed service, 500.00 per guest, 60 minutes."""
    s = Service(
        venue_id=venue.id,
        name="Hot Stone Massage",
        category="SPA_WELLNESS",
        price=Decimal("500.00"),
        currency="MXN",
        capacity=4,
        duration=60,
        images=[],
        amenities=[],
    )
    db.add(s)
    await db.flush()
    return s


async def create_reservation(
    db: AsyncSession,
    user: User,
    service: Service,
    days_ahead: int = 10,
    nights: int = 2,
    guests: int = 1,
    status: str = ReservationStatus.PENDING,
    code: str = "RSV-TEST0001",
) -> Reservation:
    check_in = utcnow() + timedelta(days=days_ahead)
    reservation = Reservation(
        confirmation_code=code,
        user_id=user.id,
        service_id=service.id,
        venue_id=service.venue_id,
        check_in=check_in,
        check_out=check_in + timedelta(days=nights),
        guests=guests,
        total_amount=Decimal(service.price) * nights,
        currency=service.currency,
        status=status,
    )
    db.add(reservation)
    await db.flush()
    return reservation


@pytest_asyncio.fixture
async def reservation(db: AsyncSession, guest: User, service: Service) -> Reservation:
    """PENDING two-night booking ten days ahead, 2000.00."""
    return await create_reservation(db, guest, service)


async def create_payment(
    db: AsyncSession,
    reservation: Reservation,
    status: str = PaymentStatus.COMPLETED,
    stripe_payment_id: str | None = "pi_test_1",
    amount: Decimal | None = None,
    method: str = PaymentMethod.STRIPE,
) -> Payment:
    payment = Payment(
        reservation_id=reservation.id,
        user_id=reservation.user_id,
        amount=amount if amount is not None else reservation.total_amount,
        currency=reservation.currency,
        status=status,
        method=method,
        stripe_payment_id=stripe_payment_id,
        refunded_amount=Decimal("0"),
        metadata_={},
        paid_at=utcnow() if status == PaymentStatus.COMPLETED else None,
    )
    db.add(payment)
    await db.flush()
    return payment


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
def make_token(user: User) -> str:
    """Access token for ``user`` (role must be loaded)."""
    return create_access_token({
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.name,
        "level": user.role.level,
    })


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def super_admin_token(super_admin) -> str:
    return make_token(super_admin)


@pytest.fixture
def admin_token(admin_user) -> str:
    return make_token(admin_user)


@pytest.fixture
def manager_token(manager_user) -> str:
    return make_token(manager_user)


@pytest.fixture
def employee_token(employee_user) -> str:
    return make_token(employee_user)


@pytest.fixture
def guest_token(guest) -> str:
    return make_token(guest)


@pytest.fixture
def other_guest_token(other_guest) -> str:
    return make_token(other_guest)
