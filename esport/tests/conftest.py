"""
Shared fixtures: an in-memory database per test, a configured app client
and a few user/competition factories.
"""
import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from esport.config.settings import Settings, get_settings
from esport.database import get_db, build_sessionmaker
from esport.main import app
from esport.orm import (
    Base, User, UserRole, Competition, CompetitionStatus, CompetitionRegistration, RegistrationStatus
)
from esport.rate_limit import limiter
from esport.rbac import create_access_token

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "Str0ng!Pass"
WEBHOOK_KEY = "test-gateway-key"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        db_connection=TEST_DATABASE_URL,
        jwt_secret="test-secret",
        payment_gateway_key=WEBHOOK_KEY,
        mail_transport="console",
        environment="test",
        rate_limit_enabled=False,
        public_api_url="http://api.test/api",
        cms_api_url="http://cms.test/wp-json",
        cms_api_key="cms-key",
    )


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database; StaticPool keeps the single connection alive."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    async with build_sessionmaker(engine)() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session, settings) -> AsyncGenerator[AsyncClient, None]:
    """Test client with database and settings overrides."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    limiter.enabled = False

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# =============================================================================
# Factories
# =============================================================================

async def make_user(db: AsyncSession, username: str, role: UserRole = UserRole.user,
                    password_hash: str = "not-a-real-hash") -> User:
    """Insert a user directly; skips bcrypt for speed."""
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=password_hash,
        role=role,
        is_active=True
    )
    db.add(user)
    await db.commit()
    return user


async def make_competition(db: AsyncSession, name: str = "Spring Cup", fee: str = "0",
                           status: CompetitionStatus = CompetitionStatus.open,
                           max_participants: int = 0) -> Competition:
    start = datetime(2026, 3, 1, 18, 0)
    competition = Competition(
        name=name,
        game="Rocket League",
        description="",
        start_date=start,
        end_date=start + timedelta(days=2),
        registration_fee=Decimal(fee),
        max_participants=max_participants,
        status=status
    )
    db.add(competition)
    await db.commit()
    return competition


async def enroll(db: AsyncSession, competition: Competition, *users: User) -> None:
    """Active registrations for the given users, committed."""
    for user in users:
        db.add(CompetitionRegistration(
            user_id=user.id,
            competition_id=competition.id,
            status=RegistrationStatus.active
        ))
    await db.commit()


def auth_headers(user: User, settings: Settings) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user, settings)}"}


@pytest_asyncio.fixture
async def players(db_session):
    """Two players; in a fresh database they get ids 1 and 2."""
    alice = await make_user(db_session, "alice")
    bob = await make_user(db_session, "bob")
    return alice, bob


@pytest_asyncio.fixture
async def admin(db_session):
    return await make_user(db_session, "admin", role=UserRole.admin)
