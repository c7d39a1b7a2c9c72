"""
Translation of driver-level failures into the core's transient error kind.
"""
import functools
from typing import Awaitable, Callable, TypeVar
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_rbac.core.exceptions import StorageUnavailableError
from tenant_rbac.utils import get_logger


log = get_logger(__name__)

T = TypeVar("T")


def storage_errors(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """
    Roll back and re-raise DBAPI failures as StorageUnavailableError.

    The wrapped coroutine must take the AsyncSession as its first argument.
    Errors the service already translated (RBACError subclasses) pass through.
    """
    @functools.wraps(fn)
    async def wrapper(db: AsyncSession, *args, **kwargs) -> T:
        try:
            return await fn(db, *args, **kwargs)
        except DBAPIError as e:
            await db.rollback()
            log.warning("Storage failure in %s: %s", fn.__name__, e.__class__.__name__)
            raise StorageUnavailableError(
                f"Storage unavailable during {fn.__name__}",
                details={"operation": fn.__name__},
            ) from e

    return wrapper
