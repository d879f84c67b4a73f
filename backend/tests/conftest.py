"""Pytest configuration and fixtures for Voxen backend tests"""
import uuid
from datetime import datetime, timedelta
from typing import AsyncGenerator, Callable, Dict

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

from voxen.main import app
from voxen.models.database import enable_sqlite_foreign_keys, engine_options, get_db, init_db
from voxen.api.deps import create_access_token, get_chain
from voxen.models.space import Space
from voxen.services.space_service import SpaceService

# Load environment variables
load_dotenv()

# In-memory SQLite shared by every connection of one test's engine
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture(scope="function")
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh in-memory database for each test"""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool, **engine_options(TEST_DATABASE_URL))
    enable_sqlite_foreign_keys(engine)
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Database session for each test"""
    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


class FakeChainClient:
    """Chain client returning preset on-chain content hashes"""

    def __init__(self):
        self.content_hashes: Dict[int, str] = {}
        self.calls = []

    async def get_content_hash(self, proposal_id: int, contract_address=None) -> str:
        self.calls.append(proposal_id)
        return self.content_hashes[proposal_id]


@pytest.fixture
def fake_chain() -> FakeChainClient:
    return FakeChainClient()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, fake_chain: FakeChainClient) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client"""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    async def override_get_chain():
        return fake_chain

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chain] = override_get_chain

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def new_user_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def auth_headers() -> Callable[[str], Dict[str, str]]:
    """Build bearer headers for a user id"""

    def _headers(user_id: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers


@pytest.fixture
def owner_id() -> str:
    return new_user_id()


@pytest_asyncio.fixture
async def space(db_session: AsyncSession, owner_id: str) -> Space:
    """A public space owned by owner_id"""
    space = await SpaceService(db_session).create_space(creator_id=owner_id, name="Test Space")
    await db_session.commit()
    return space


@pytest.fixture
def mock_proposal():
    """Proposal request body"""
    return {
        "title": "Treasury allocation",
        "description": "How should the Q3 treasury be spent?",
        "voting_type": "single",
        "options": ["Grants", "Marketing", "Reserve"],
        "end_date": (datetime.utcnow() + timedelta(days=7)).isoformat(),
    }
