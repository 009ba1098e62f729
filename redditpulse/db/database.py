# redditpulse/db/database.py
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession

from redditpulse.core.settings import settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


# ---------------------------
# Async (API + pipelines)
# ---------------------------
ASYNC_SQLALCHEMY_DATABASE_URL = settings.database_url
if ASYNC_SQLALCHEMY_DATABASE_URL.startswith("sqlite://"):
    ASYNC_SQLALCHEMY_DATABASE_URL = ASYNC_SQLALCHEMY_DATABASE_URL.replace("sqlite://", "sqlite+aiosqlite://", 1)


def make_async_engine(url: str = ASYNC_SQLALCHEMY_DATABASE_URL):
    # aiosqlite connections are bound to the loop that opened them
    if _is_sqlite(url):
        return create_async_engine(url, poolclass=NullPool)
    return create_async_engine(url, pool_pre_ping=True)


def make_session_maker(bind) -> sessionmaker:
    return sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async_engine = make_async_engine()
async_session_maker = make_session_maker(async_engine)
