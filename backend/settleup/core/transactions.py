import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from settleup.core.config import settings
from settleup.core.errors import Conflict, PersistenceFailure, SettlementError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_in_transaction(
    db: AsyncSession,
    attempt: Callable[[], Awaitable[T]],
    retries: int | None = None,
) -> T:
    """
    Run one read-validate-write unit and commit it.

    `attempt` must re-read everything it touches: on a version mismatch the
    session is rolled back and `attempt` runs again from scratch, up to
    `retries` times, after which Conflict is raised. Domain errors roll back
    and propagate untouched; any other database error becomes
    PersistenceFailure. Nothing is ever left half-committed.
    """
    limit = retries or settings.conflict_retry_limit
    for n in range(1, limit + 1):
        try:
            result = await attempt()
            await db.commit()
            return result
        except StaleDataError:
            await db.rollback()
            logger.info(f"Version conflict on attempt {n}/{limit}, retrying")
        except SettlementError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Database error, transaction rolled back: {e}")
            raise PersistenceFailure() from e
    raise Conflict()
