# Overview: Transaction runner for checkout; one fresh transaction per attempt.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)

# Lock timeouts, deadlock victims and optimistic version conflicts. Nothing
# else is worth replaying: business errors would fail the same way again.
RETRYABLE_ERRORS = (OperationalError, StaleDataError)

MAX_BACKOFF_SECONDS = 2.0


def retry_delay(attempt: int, backoff_base: float) -> float:
    return min(backoff_base * (2 ** attempt), MAX_BACKOFF_SECONDS)


def run_in_transaction(work, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run work() and commit, replaying the whole unit on lock conflicts.

    Every attempt starts from a rolled-back session, so work() re-reads stock
    and re-prices instead of trusting state from the failed attempt. Any
    exception, including KeyboardInterrupt or a cancelled worker, rolls the
    session back before it propagates. Only RETRYABLE_ERRORS are replayed;
    the last one is re-raised once attempts run out.
    """
    attempts = max(attempts, 1)
    for attempt in range(attempts):
        try:
            result = work()
            db.session.commit()
            return result
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            delay = retry_delay(attempt, backoff_base)
            logger.info(
                "Transaction conflict (%s), replaying in %.2fs (attempt %d/%d)",
                exc.__class__.__name__,
                delay,
                attempt + 1,
                attempts,
            )
            time.sleep(delay)
        except BaseException:
            db.session.rollback()
            raise
