"""
Basic example of using projloader with Strawberry GraphQL and SQLAlchemy.

This example demonstrates:
- Declaring entity shapes next to the SQLAlchemy models
- Building one set of loaders per request
- Resolving a relation for every post with a single, projected SELECT
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

import strawberry
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from projloader import EntityShape, LoaderConfig, ShapeRegistry, field, relation
from projloader.core.utils import get_db_session
from projloader.integrations.strawberry import fields_from_info, load_for_info


# SQLAlchemy Models
class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Post(Base):
    __tablename__ = 'posts'

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    content = Column(String(5000))
    author_id = Column(Integer, ForeignKey('users.id'), nullable=False)


# Entity shapes: which fields exist and where relations are stored
registry = ShapeRegistry(LoaderConfig(log_batches=True))


@registry.entity(model=User, alias='users')
class UserShape(EntityShape):
    id = field()
    name = field()
    email = field()
    created_at = field()


@registry.entity(model=Post, alias='posts')
class PostShape(EntityShape):
    id = field()
    title = field()
    content = field()
    author = relation('UserShape', 'author_id')


registry.validate()


# Strawberry GraphQL Types
@strawberry.type
class UserType:
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None


@strawberry.type
class PostType:
    id: int
    title: Optional[str] = None
    content: Optional[str] = None
    author_id: strawberry.Private[Optional[int]] = None

    @strawberry.field
    async def author(self, info: strawberry.Info) -> Optional[UserType]:
        """Author loaded through the request's user loader."""
        row = await load_for_info(info, UserShape, self.author_id)
        return UserType(**row) if row else None


@strawberry.type
class Query:
    @strawberry.field
    async def posts(self, info: strawberry.Info, limit: Optional[int] = None) -> List[PostType]:
        """List posts, selecting only the columns the query asks for."""
        columns = [getattr(Post, name) for name in sorted(fields_from_info(info, PostShape))]
        stmt = select(*columns).order_by(Post.id).limit(limit)
        result = await get_db_session(info).execute(stmt)
        return [PostType(**dict(row._mapping)) for row in result]


schema = strawberry.Schema(query=Query)


async def setup_database(session_factory, engine):
    """Setup demo database with sample data."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        session.add_all([
            User(id=1, name="Alice Johnson", email="alice@example.com"),
            User(id=2, name="Bob Smith", email="bob@example.com"),
            User(id=3, name="Charlie Brown", email="charlie@example.com"),
        ])
        session.add_all([
            Post(title="First Post", content="Hello world!", author_id=1),
            Post(title="GraphQL is Great", content="I love GraphQL!", author_id=1),
            Post(title="SQLAlchemy Tips", content="Some useful tips...", author_id=2),
            Post(title="Getting Started", content="A beginner's guide", author_id=3),
        ])
        await session.commit()


async def main():
    """Main demo function."""
    logging.basicConfig(level=logging.INFO)
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=True)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await setup_database(session_factory, engine)

    query = """
    query {
        posts(limit: 10) {
            title
            author { name }
        }
    }
    """

    async with session_factory() as session:
        # Loaders live exactly as long as this request
        context = {'db_session': session, 'loaders': registry.create_loaders(session)}
        result = await schema.execute(query, context_value=context)

    if result.errors:
        print("Errors:", result.errors)
    else:
        print("Result:", result.data)
        print("Loader stats:", context['loaders'].stats())

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
