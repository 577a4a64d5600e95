"""
Translation of driver-level database failures into TransientInfraError.

Integrity errors pass through untouched: they carry business meaning
(a taken slot, a registered email) and are interpreted by the stores.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import DBAPIError, IntegrityError

from tablebook.core.exceptions import TransientInfraError
from tablebook.core.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def database_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError:
        raise
    except DBAPIError as exc:
        logger.error("database_unavailable", operation=operation, error=str(exc.orig))
        raise TransientInfraError("database", detail=operation) from exc
