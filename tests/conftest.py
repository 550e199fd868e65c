import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from sajsonapi import Registry
from sajsonapi.db import SATransaction

from fakes import FakeModel
from models import Base, Book, Person, Profile, Tag, make_registry


@pytest.fixture
def fake_registry() -> Registry:
    """
    Users -< Books >- Tags, Books -- Covers (to-one without foreign key)
    """
    return Registry(
        {
            "Users": {
                "model": FakeModel(["id", "name", "email", "password", "karma"]),
                "base_path": "/users",
                "has_many": {"books": {"type": "Books"}},
                "special_columns": {"hidden": ["password"], "meta": ["karma"]},
            },
            "Books": {
                "model": FakeModel(["id", "title", "author_id", "created"]),
                "base_path": "/books",
                "has_one": {"author": {"type": "Users", "column": "author_id"}, "cover": {"type": "Covers"}},
                "has_many": {"tags": {"type": "Tags"}, "reviews": {"type": "Users", "readonly": True}},
                "special_columns": {"meta": ["created"], "updated": "updated"},
            },
            "Tags": {
                "model": FakeModel(["id", "label"]),
                "base_path": "/api/tags",
            },
            "Covers": {
                "model": FakeModel(["id", "color"]),
                "base_path": "/covers",
                "has_one": {"book": {"type": "Books", "column": "book_id", "included": True}},
            },
        }
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def transaction(engine) -> SATransaction:
    transaction = SATransaction.from_engine(engine)

    async def seed(tx):
        alice = Person(id=1, name="alice", email="alice@example.com", password="secret")
        bob = Person(id=2, name="bob", email="bob@example.com", password="hunter2")
        python = Tag(id=1, name="python")
        sql = Tag(id=2, name="sql")
        tx.add_all([alice, bob, python, sql])
        tx.add_all(
            [
                Book(id=1, title="Dune", rating=5, author=alice, tags=[python, sql]),
                Book(id=2, title="Emma", rating=3, author=alice, tags=[python]),
                Book(id=3, title="Ulysses", rating=4, author=bob),
                Profile(id=1, bio="writer", person=alice),
            ]
        )
        await tx.flush()

    await transaction.run(seed)
    return transaction


@pytest.fixture
def registry() -> Registry:
    return make_registry()
