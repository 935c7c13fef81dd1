"""
Membership Sequence Service - issues membership numbers

Numbers look like ``MEM2500001``: configurable prefix, two digit year, then the
per-year ordinal zero padded to five digits. The counter row for a year is
created lazily and bumped with a single ``UPDATE ... SET last_number =
last_number + 1`` so the database write lock (row lock on PostgreSQL, database
lock on SQLite) linearizes concurrent issuers. Reading first and writing later
would let two transactions see the same value.
"""

import asyncio
from datetime import date, datetime
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tla_portal.core.database import Database
from tla_portal.core.exceptions import SequenceGenerationError
from tla_portal.core.logging_config import logger
from tla_portal.models.membership import MembershipSequence

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03"}

TRANSIENT_MESSAGES = (
    "deadlock",
    "database is locked",
    "database is busy",
    "database table is locked",
    "lock wait timeout",
    "could not serialize",
    "server closed the connection",
    "connection refused",
    "connection was closed",
    "lost connection",
)


def year_key(today: Optional[date] = None) -> str:
    """Two digit year the counter is keyed by"""
    return (today or datetime.utcnow().date()).strftime("%y")


def format_membership_number(prefix: str, year: str, ordinal: int) -> str:
    return f"{prefix}{year}{ordinal:05d}"


def _create_year_row(dialect_name: str, year: str):
    """INSERT of a zeroed counter row that is a no-op when the row exists"""
    values = {"year": year, "last_number": 0}
    if dialect_name == "postgresql":
        return pg_insert(MembershipSequence).values(**values).on_conflict_do_nothing(
            index_elements=["year"]
        )
    if dialect_name == "sqlite":
        return sqlite_insert(MembershipSequence).values(**values).on_conflict_do_nothing(
            index_elements=["year"]
        )
    if dialect_name in ("mysql", "mariadb"):
        return insert(MembershipSequence).values(**values).prefix_with("IGNORE")
    raise SequenceGenerationError(f"Unsupported database dialect: {dialect_name}")


async def next_membership_number(
    session: AsyncSession,
    prefix: str = "MEM",
    today: Optional[date] = None,
) -> str:
    """
    Issue the next number inside the caller's transaction.

    Nothing is committed here: the increment becomes visible together with
    whatever else the caller writes, or is rolled back with it.
    """
    year = year_key(today)

    await session.execute(_create_year_row(session.bind.dialect.name, year))
    await session.execute(
        update(MembershipSequence)
        .where(MembershipSequence.year == year)
        .values(last_number=MembershipSequence.last_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(
        select(MembershipSequence.last_number).where(MembershipSequence.year == year)
    )
    ordinal = result.scalar_one()

    number = format_membership_number(prefix, year, ordinal)
    logger.debug(f"Issued membership number {number}")
    return number


def is_transient_error(exc: BaseException) -> bool:
    """Lock timeouts, deadlocks and dropped connections are worth retrying"""
    if isinstance(exc, IntegrityError):
        return False
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    if not isinstance(exc, DBAPIError):
        return False

    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    # class 08 is connection_exception
    if sqlstate and (sqlstate in TRANSIENT_SQLSTATES or sqlstate.startswith("08")):
        return True

    # schema and syntax errors are OperationalError too and never succeed on retry
    message = str(orig if orig is not None else exc).lower()
    return any(marker in message for marker in TRANSIENT_MESSAGES)


async def _commit_unit(database: Database, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
    async with database.session() as session:
        result = await work(session)
        await session.commit()
        return result


async def run_unit_of_work(
    database: Database,
    work: Callable[[AsyncSession], Awaitable[T]],
    operation: str,
) -> T:
    """
    Run ``work`` in a fresh session and commit it.

    Transient database errors restart the whole unit up to
    SEQUENCE_MAX_RETRIES times. Every attempt is bounded by
    DB_TRANSACTION_TIMEOUT_SECONDS; a timed out attempt is cancelled and
    rolled back. Portal errors and integrity violations propagate unchanged.
    """
    settings = database.settings
    max_attempts = max(1, settings.SEQUENCE_MAX_RETRIES)

    for attempt in range(1, max_attempts + 1):
        try:
            return await asyncio.wait_for(
                _commit_unit(database, work),
                timeout=settings.DB_TRANSACTION_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"{operation} timed out after {settings.DB_TRANSACTION_TIMEOUT_SECONDS}s",
                extra={"event_type": "sequence_timeout", "operation": operation, "attempt": attempt},
            )
            raise SequenceGenerationError(f"{operation} timed out", attempts=attempt)
        except DBAPIError as e:
            if not is_transient_error(e):
                raise
            logger.warning(
                f"{operation} attempt {attempt}/{max_attempts} failed: {type(e).__name__}",
                extra={"event_type": "sequence_retry", "operation": operation, "attempt": attempt},
            )
            if attempt < max_attempts:
                await asyncio.sleep(settings.SEQUENCE_RETRY_DELAY_SECONDS * attempt)

    raise SequenceGenerationError(attempts=max_attempts)


async def generate_membership_number(database: Database, today: Optional[date] = None) -> str:
    """Issue a number in its own committed unit of work"""
    prefix = database.settings.MEMBERSHIP_NUMBER_PREFIX
    return await run_unit_of_work(
        database,
        lambda session: next_membership_number(session, prefix, today),
        "generate_membership_number",
    )
