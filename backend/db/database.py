import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from core.config import settings
from core.errors import TransactionFailure

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    engine = create_async_engine(url, echo=echo, pool_pre_ping="sqlite" not in url)

    if "sqlite" in url:
        # WAL for concurrent readers; BEGIN IMMEDIATE so every transaction
        # takes the write lock up front and writers are serialized.
        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=10000")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = build_engine(settings.database_url, echo=settings.database_echo)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def create_db_and_tables(bind: AsyncEngine = engine):
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


@asynccontextmanager
async def transaction(db: AsyncSession, operation: str = "write"):
    """
    Run one all-or-nothing unit of work on `db`.

    The session may already be inside an autobegun transaction (e.g. the
    auth dependency loaded the user with it), so this commits/rolls back the
    current transaction instead of calling `db.begin()`.
    Storage errors are logged and surfaced as a single TransactionFailure.
    """
    try:
        yield db
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("[inventory] %s failed, rolled back", operation)
        raise TransactionFailure()
    except BaseException:
        await db.rollback()
        raise


# Models are imported last so they can use Base; routers import them from here.
from db.users import User  # noqa: E402
from db.ingredient import Ingredient  # noqa: E402
from db.product import Product, ProductVariant  # noqa: E402
from db.inventory.ingredient_movement import IngredientMovement  # noqa: E402
from db.inventory.stock_movement import StockMovement  # noqa: E402
from db.inventory.product_stock import ProductStock  # noqa: E402
from db.inventory.ingredient_stock import IngredientStock  # noqa: E402
