# tests/conftest.py — Shared test fixtures
import os
import uuid
import tempfile
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("ATTACHMENT_STORAGE_ROOT", tempfile.mkdtemp(prefix="taskboard-attachments-"))

from models import Base, Team, TeamMember, TeamRole, User
from auth import AuthService, _login_attempts
from database import get_db_session
from mailer import Mailer
from queries import load_team
from read_cache import ReadCache
from main import app

TEST_PASSWORD = "TestPassword123"


class RecordingMailer(Mailer):
    """Keeps every outgoing message instead of talking to SMTP"""

    def __init__(self, deliver: bool = True):
        super().__init__(host="smtp.test", username="test", password="test")
        self.deliver = deliver
        self.sent: List[Tuple[str, str, str]] = []

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        self.sent.append((to_address, subject, html_body))
        return self.deliver

    def sent_to(self, address: str) -> List[Tuple[str, str, str]]:
        return [m for m in self.sent if m[0] == address]


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def read_cache():
    cache = ReadCache()
    app.state.read_cache = cache
    return cache


@pytest.fixture
def mailer():
    recording = RecordingMailer()
    app.state.mailer = recording
    return recording


@pytest_asyncio.fixture(scope="function")
async def client(db_engine, read_cache, mailer):
    """HTTP test client with overridden DB dependency, fresh cache and recording mailer"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    _login_attempts.clear()
    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_user(db_session, email: str, first_name: str = "", last_name: str = "") -> User:
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        first_name=first_name,
        last_name=last_name,
        password_hash=AuthService.hash_password(TEST_PASSWORD),
        is_active=True,
        email_confirmed=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


async def make_team(db_session, owner: User, name: str = "Test Team",
                    members: Optional[List[Tuple[User, TeamRole]]] = None) -> Team:
    """Team with the owner's Owner row plus any extra (user, role) rows"""
    team = Team(id=str(uuid.uuid4()), name=name, owner_id=owner.id)
    db_session.add(team)
    db_session.add(TeamMember(user_id=owner.id, team_id=team.id, role=TeamRole.OWNER))
    for user, role in members or []:
        db_session.add(TeamMember(user_id=user.id, team_id=team.id, role=role))
    await db_session.commit()
    return team


async def reload_team(db_session, team_id: str) -> Team:
    """Fresh copy of a team and its member rows, as written by the API"""
    return await load_team(db_session, team_id)


@pytest_asyncio.fixture
async def owner_user(db_session):
    """Creates the team in most scenarios"""
    return await make_user(db_session, "owner@taskboard.dev", "Olive", "Owner")


@pytest_asyncio.fixture
async def admin_user(db_session):
    return await make_user(db_session, "admin@taskboard.dev", "Adam", "Admin")


@pytest_asyncio.fixture
async def member_user(db_session):
    return await make_user(db_session, "member@taskboard.dev", "Mia", "Member")


@pytest_asyncio.fixture
async def outsider_user(db_session):
    return await make_user(db_session, "outsider@taskboard.dev", "Oscar", "Outsider")


@pytest_asyncio.fixture
async def team(db_session, owner_user, admin_user, member_user):
    """Owner, one Admin and one Member"""
    return await make_team(
        db_session, owner_user, "Platform Team",
        members=[(admin_user, TeamRole.ADMIN), (member_user, TeamRole.MEMBER)],
    )


def get_auth_headers(user: User) -> dict:
    """Generate auth headers for a user"""
    token = AuthService.create_session_token(user)
    return {"Authorization": f"Bearer {token}"}
