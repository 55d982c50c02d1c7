"""Database connection and session management."""

from __future__ import annotations

import logging
import os
import time
from uuid import UUID

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from impactos.core.config import get_settings
from impactos.core.structured_logging import log_json

settings = get_settings()
logger = logging.getLogger(__name__)

# Use NullPool for testing environments to avoid connection pool issues
engine = create_async_engine(
    settings.database_url.replace("postgresql://", "postgresql+asyncpg://"),
    echo=False,
    poolclass=NullPool if "test" in settings.database_url else None,
)

_slow_query_threshold_ms = float(os.getenv("SLOW_QUERY_MS", "0") or "0")
if _slow_query_threshold_ms > 0:

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _before_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ) -> None:
        context._query_start_time = time.perf_counter()

    @event.listens_for(engine.sync_engine, "after_cursor_execute")
    def _after_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ) -> None:
        start = getattr(context, "_query_start_time", None)
        if start is None:
            return

        duration_ms = (time.perf_counter() - start) * 1000
        if duration_ms < _slow_query_threshold_ms:
            return

        max_len = 2000
        stmt = str(statement)
        if len(stmt) > max_len:
            stmt = stmt[: max_len - 3] + "..."

        log_json(
            logger,
            logging.WARNING,
            "slow_query",
            duration_ms=round(duration_ms, 2),
            statement=stmt,
        )

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncSession:
    """Get database session dependency.

    Yields:
        AsyncSession: Database session, committed when the request succeeds
        and rolled back when it raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Session.info keys holding the values the row-level-security policies read
RLS_USER_KEY = "rls_user_id"
RLS_INVITATION_TOKEN_KEY = "rls_invitation_token"

_RLS_SETTINGS = (
    (RLS_USER_KEY, "app.current_user_id"),
    (RLS_INVITATION_TOKEN_KEY, "app.invitation_token"),
)


def rls_settings(info: dict) -> dict[str, str]:
    """Postgres settings to apply for a session, from its ``info`` dict."""
    return {name: info[key] for key, name in _RLS_SETTINGS if info.get(key)}


@event.listens_for(Session, "after_begin")
def _apply_rls_settings(session, transaction, connection) -> None:
    """Re-apply the RLS role and settings at the start of every transaction.

    ``set_config(..., true)`` and ``SET LOCAL ROLE`` end with the
    transaction, so a route that commits and keeps querying would otherwise
    run the next transaction unbound.
    """
    if connection.dialect.name != "postgresql":
        return
    role = get_settings().database_role
    if role:
        connection.execute(text(f'SET LOCAL ROLE "{role}"'))
    for name, value in rls_settings(session.info).items():
        connection.execute(
            text("SELECT set_config(:name, :value, true)"), {"name": name, "value": value}
        )


async def _bind(db: AsyncSession, key: str, value: str) -> None:
    db.info[key] = value
    if not db.in_transaction() or db.bind is None or db.bind.dialect.name != "postgresql":
        # Applied by _apply_rls_settings when the next transaction begins
        return
    name = dict(_RLS_SETTINGS)[key]
    await db.execute(
        text("SELECT set_config(:name, :value, true)"), {"name": name, "value": value}
    )


async def bind_rls_user(db: AsyncSession, user_id: UUID) -> None:
    """Expose the acting user to Postgres row-level-security policies.

    The policies call ``get_active_organization_id()``, which reads the
    ``user_sessions`` row of ``app.current_user_id``. The value is kept on
    the session and applied to every transaction it opens. Other dialects
    have no RLS; the value is only recorded.
    """
    await _bind(db, RLS_USER_KEY, str(user_id))


async def bind_invitation_token(db: AsyncSession, token: str) -> None:
    """Let the invitation policy show the one invitation behind ``token``.

    Invitation links are opened by people who are not members yet (or are
    acting in another organization), so the tenant policy alone would hide
    the row.
    """
    await _bind(db, RLS_INVITATION_TOKEN_KEY, token)
