import json
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient, Response
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from jsonapi_atomic.main import app
from jsonapi_atomic.api.deps import get_db
from jsonapi_atomic.core.media_types import JSON_API_ATOMIC
from jsonapi_atomic.core.identifiers import generate_gid
from jsonapi_atomic.database import Base, enable_sqlite_foreign_keys
from jsonapi_atomic.models import Article, Author, Tag

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

OPERATIONS_URL = "/api/operations"

# Create test engine
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    future=True,
)
enable_sqlite_foreign_keys(test_engine)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with the test database session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def atomic_headers() -> Dict[str, str]:
    """Headers of a well-formed atomic operations request."""
    return {
        "Content-Type": JSON_API_ATOMIC,
        "Accept": JSON_API_ATOMIC,
    }


@pytest.fixture
def post_operations(
    client: AsyncClient,
    atomic_headers: Dict[str, str],
) -> Callable[..., Awaitable[Response]]:
    """POST a list of operations to the atomic endpoint."""

    async def post(
        operations: List[Dict[str, Any]],
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Response:
        return await client.post(
            OPERATIONS_URL,
            content=json.dumps({"atomic:operations": operations}),
            headers=headers if headers is not None else atomic_headers,
            params=params,
        )

    return post


@pytest_asyncio.fixture
async def test_author(db_session: AsyncSession) -> Author:
    """Create a test author."""
    author = Author(
        gid=generate_gid(),
        name="Test Author",
        email="author@example.com",
    )
    db_session.add(author)
    await db_session.commit()
    await db_session.refresh(author)
    return author


@pytest_asyncio.fixture
async def other_author(db_session: AsyncSession) -> Author:
    """Create a second author."""
    author = Author(
        gid=generate_gid(),
        name="Other Author",
        email="other@example.com",
    )
    db_session.add(author)
    await db_session.commit()
    await db_session.refresh(author)
    return author


@pytest_asyncio.fixture
async def test_tags(db_session: AsyncSession) -> List[Tag]:
    """Create three tags."""
    tags = [Tag(gid=generate_gid(), name=name) for name in ("python", "rust", "sql")]
    db_session.add_all(tags)
    await db_session.commit()
    return tags


@pytest_asyncio.fixture
async def test_article(db_session: AsyncSession, test_author: Author, test_tags: List[Tag]) -> Article:
    """Create an article by the test author tagged "python"."""
    article = Article(
        gid=generate_gid(),
        title="Atomic Operations",
        body="Many changes, one transaction.",
        author_gid=test_author.gid,
        tags=[test_tags[0]],
    )
    db_session.add(article)
    await db_session.commit()
    return article
