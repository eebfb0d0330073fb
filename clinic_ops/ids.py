"""Short object ids in the platform's 10-character alphanumeric scheme."""

from __future__ import annotations

import logging
import secrets
import string
from typing import Awaitable, Callable, TypeVar

import asyncpg

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
OBJECT_ID_LENGTH = 10
DEFAULT_ATTEMPTS = 5

T = TypeVar("T")


class IdCollisionError(Exception):
    """Raised when every generated id collided with an existing row."""


def generate_object_id(length: int = OBJECT_ID_LENGTH) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


async def insert_with_new_id(
    insert: Callable[[str], Awaitable[T]],
    conn: asyncpg.Connection | None = None,
    attempts: int = DEFAULT_ATTEMPTS,
    generate: Callable[[], str] = generate_object_id,
) -> tuple[str, T]:
    """Run ``insert(object_id)`` with a fresh id, regenerating on collision.

    Only unique-constraint violations are retried; anything else propagates.
    When ``conn`` is given each attempt runs in its own savepoint so a
    collision does not poison the enclosing transaction.
    Returns the id that was accepted along with the insert's result.
    """
    for attempt in range(1, attempts + 1):
        object_id = generate()
        try:
            if conn is None:
                return object_id, await insert(object_id)
            async with conn.transaction():
                return object_id, await insert(object_id)
        except asyncpg.UniqueViolationError:
            logger.warning(
                "Object id %s already taken (attempt %d/%d)",
                object_id,
                attempt,
                attempts,
            )
    raise IdCollisionError(f"No free object id after {attempts} attempts")
