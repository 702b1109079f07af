from sqlalchemy import Table, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from conduit.config import settings


def _connect_args(url: str) -> dict:
    # command_timeout is an asyncpg option; other drivers reject it.
    if url.startswith("postgresql+asyncpg"):
        return {"command_timeout": settings.DB_COMMAND_TIMEOUT}
    return {}


# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def configure_sqlite_engine(engine: AsyncEngine) -> None:
    """
    Make a SQLite *engine* behave like PostgreSQL for the service layer:

    - foreign keys are enforced, so ``ON DELETE CASCADE`` fires;
    - the driver's implicit transaction handling is disabled and BEGIN is
      emitted explicitly, which SAVEPOINT (``begin_nested``) requires.

    No-op for other dialects.
    """
    sync_engine = engine.sync_engine
    if sync_engine.dialect.name != "sqlite":
        return

    @event.listens_for(sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def is_unique_violation(exc: IntegrityError, table: Table, constraint_name: str) -> bool:
    """
    Return True when *exc* was raised by the unique constraint
    *constraint_name* on *table*.

    PostgreSQL reports the constraint by name; SQLite only lists the
    constrained columns (``UNIQUE constraint failed: t.a, t.b``).
    """
    message = str(exc.orig)
    if f'"{constraint_name}"' in message:
        return True

    for constraint in table.constraints:
        if constraint.name == constraint_name:
            columns = ", ".join(f"{table.name}.{column.name}" for column in constraint.columns)
            return f"UNIQUE constraint failed: {columns}" in message
    return False
