"""Test fixtures — async test client, test database, feed builders."""
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.models  # noqa: F401
from app.database import Base
from app.api.deps import get_feed_client, get_property_storage
from app.main import app
from app.services.storage_service import PropertyStorage


TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables and yield a session factory bound to the test database."""
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def storage(session_factory) -> PropertyStorage:
    # Small chunks so multi-chunk upserts are exercised with a handful of rows.
    return PropertyStorage(session_factory, chunk_size=2)


class StubFeedClient:
    """Stands in for FeedClient: serves fixed content or raises a fixed error."""

    def __init__(self, content: bytes = b"", error: Optional[Exception] = None):
        self.content = content
        self.error = error
        self.calls = 0
        self.closed = False

    def fetch(self) -> bytes:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.content

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def feed_client() -> StubFeedClient:
    return StubFeedClient(
        make_feed_xml(
            make_property_xml("NS100"),
            make_property_xml("NS101", property_type="VH", private_amenities=None),
        ).encode("utf-8")
    )


@pytest_asyncio.fixture(scope="function")
async def client(storage: PropertyStorage, feed_client: StubFeedClient) -> AsyncGenerator[AsyncClient, None]:
    """Yield an HTTP test client with the test storage and stub feed injected."""
    app.dependency_overrides[get_property_storage] = lambda: storage
    app.dependency_overrides[get_feed_client] = lambda: feed_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()



def make_property_xml(reference: Optional[str] = "NS100", **overrides) -> str:
    """Build one vendor <property> element. A None override omits the tag."""
    fields = {
        "offering_type": "RS",
        "property_type": "AP",
        "price": "<yearly>1,500,000</yearly>",
        "city": "Dubai",
        "community": "Dubai Marina",
        "sub_community": "Marina Gate",
        "property_name": "Marina Gate Tower 1",
        "title_en": "Two bedroom apartment with marina view",
        "description_en": "<![CDATA[Bright corner unit & large terrace.]]>",
        "private_amenities": "BA,SP",
        "size": "1,250",
        "bedroom": "2",
        "bathroom": "3",
        "furnished": "Partly furnished",
        "completion_status": "completed",
        "permit_number": "71234567",
        "agent": "<id>17</id><name>Jane Doe</name>",
        "photo": (
            "<url>https://cdn.example.com/ns/1.jpg</url>"
            "<url>https://cdn.example.com/ns/2.jpg</url>"
        ),
    }
    fields.update(overrides)

    parts = [] if reference is None else [f"<reference_number>{reference}</reference_number>"]
    parts += [f"<{tag}>{value}</{tag}>" for tag, value in fields.items() if value is not None]
    return "<property>" + "".join(parts) + "</property>"


def make_feed_xml(*properties: str) -> str:
    """Wrap property elements in a <list> feed document."""
    return '<?xml version="1.0" encoding="UTF-8"?>\n<list>' + "".join(properties) + "</list>"
