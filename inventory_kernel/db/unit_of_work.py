"""
Module: inventory_kernel.db.unit_of_work
Responsibility: One bounded database transaction per ledger operation.  Opens
    a session, applies the isolation level and the wait/execution budget,
    commits exactly once on success and rolls back on any failure.
Architecture position: Kernel > DB.  Imports exceptions, logging and the
    Clock abstraction.  Services never commit; only this module (driven by
    the InventoryLedger facade) does.

Invariants enforced:
    - All writes of an operation commit together or not at all.
    - Waiting for a connection or a row lock longer than max_wait_ms, and
      running longer than timeout_ms, both abort the transaction.
    - SQLite transactions run one at a time in this process; the turn is
      part of the acquire budget.

Failure modes:
    - TransactionTimeoutError(phase="acquire") when the pool cannot hand out a
      connection in time, when acquisition itself exceeded max_wait_ms, when
      another SQLite transaction holds the turn for longer than max_wait_ms,
      or when the database reports a lock wait (SQLSTATE 55P03, SQLITE_BUSY).
    - TransactionTimeoutError(phase="execute") when a checkpoint finds the
      wall-clock budget spent, or PostgreSQL reports statement_timeout
      (SQLSTATE 57014).
    - Every other exception is re-raised unchanged after rollback.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Generator

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.exceptions import TransactionTimeoutError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.unit_of_work")

LOCK_NOT_AVAILABLE = "55P03"
QUERY_CANCELED = "57014"
SQLITE_LOCK_ERRORS = frozenset({"SQLITE_BUSY", "SQLITE_LOCKED"})

# pysqlite cannot interleave transactions on one connection, and an in-memory
# database has only one
_sqlite_turn = threading.Lock()


@dataclass(frozen=True)
class TransactionBudget:
    """Wait and execution limits for one transaction, in milliseconds."""

    max_wait_ms: int = 5000
    timeout_ms: int = 10000
    isolation_level: str = "READ COMMITTED"

    def __post_init__(self) -> None:
        if self.max_wait_ms <= 0:
            raise ValueError(f"max_wait_ms must be positive, got {self.max_wait_ms}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")


class UnitOfWork:
    """
    Handle yielded by unit_of_work().

    Exposes the transaction's session and a deadline check that callers run
    between steps.
    """

    def __init__(
        self,
        session: Session,
        budget: TransactionBudget,
        clock: Clock,
        started_at: float,
    ):
        self.session = session
        self.budget = budget
        self._clock = clock
        self._started_at = started_at

    @property
    def elapsed_ms(self) -> float:
        return (self._clock.monotonic() - self._started_at) * 1000.0

    def checkpoint(self, step: str) -> None:
        """
        Raise if the execution budget is spent.

        Raises:
            TransactionTimeoutError: phase "execute".
        """
        elapsed = self.elapsed_ms
        if elapsed > self.budget.timeout_ms:
            raise TransactionTimeoutError(
                phase="execute",
                budget_ms=self.budget.timeout_ms,
                elapsed_ms=elapsed,
                step=step,
            )


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _map_db_timeout(
    exc: DBAPIError,
    budget: TransactionBudget,
    elapsed_ms: float,
) -> TransactionTimeoutError | None:
    code = _sqlstate(exc)
    sqlite_error = getattr(exc.orig, "sqlite_errorname", None)
    if code == LOCK_NOT_AVAILABLE or sqlite_error in SQLITE_LOCK_ERRORS:
        return TransactionTimeoutError(
            phase="acquire", budget_ms=budget.max_wait_ms, elapsed_ms=elapsed_ms
        )
    if code == QUERY_CANCELED:
        return TransactionTimeoutError(
            phase="execute", budget_ms=budget.timeout_ms, elapsed_ms=elapsed_ms
        )
    return None


def _begin(session: Session, budget: TransactionBudget) -> None:
    """Check out a connection and start the transaction with the budget applied."""
    bind = session.get_bind()
    if bind.dialect.name != "postgresql":
        session.connection()
        return

    session.connection(execution_options={"isolation_level": budget.isolation_level})
    # SET does not accept bind parameters; values are validated ints
    session.execute(text(f"SET LOCAL lock_timeout = {int(budget.max_wait_ms)}"))
    session.execute(text(f"SET LOCAL statement_timeout = {int(budget.timeout_ms)}"))


@contextmanager
def unit_of_work(
    session_factory: Callable[[], Session],
    budget: TransactionBudget | None = None,
    clock: Clock | None = None,
) -> Generator[UnitOfWork, None, None]:
    """
    Run the enclosed block as one transaction.

    Preconditions: session_factory returns a fresh Session.
    Postconditions: On normal exit the transaction is committed; on any
        exception it is rolled back and the session closed.

    Usage:
        with unit_of_work(factory, budget) as uow:
            service = SomeService(uow.session, clock)
            service.do_work()
            uow.checkpoint("after_work")

    Raises:
        TransactionTimeoutError: see module docstring.
    """
    budget = budget or TransactionBudget()
    clock = clock or SystemClock()
    started_at = clock.monotonic()
    session = session_factory()
    uow = UnitOfWork(session, budget, clock, started_at)
    turn = _sqlite_turn if session.get_bind().dialect.name == "sqlite" else None
    has_turn = False

    try:
        if turn is not None:
            has_turn = turn.acquire(timeout=budget.max_wait_ms / 1000.0)
            if not has_turn:
                raise TransactionTimeoutError(
                    phase="acquire",
                    budget_ms=budget.max_wait_ms,
                    elapsed_ms=uow.elapsed_ms,
                    step="sqlite_turn",
                )
        try:
            _begin(session, budget)
        except PoolTimeoutError as exc:
            raise TransactionTimeoutError(
                phase="acquire",
                budget_ms=budget.max_wait_ms,
                elapsed_ms=uow.elapsed_ms,
            ) from exc

        acquired_ms = uow.elapsed_ms
        if acquired_ms > budget.max_wait_ms:
            raise TransactionTimeoutError(
                phase="acquire",
                budget_ms=budget.max_wait_ms,
                elapsed_ms=acquired_ms,
            )
        logger.debug("transaction_started", extra={"acquired_ms": acquired_ms})

        yield uow

        uow.checkpoint("commit")
        session.commit()
        logger.debug(
            "transaction_committed",
            extra={"elapsed_ms": uow.elapsed_ms},
        )
    except DBAPIError as exc:
        session.rollback()
        mapped = _map_db_timeout(exc, budget, uow.elapsed_ms)
        if mapped is None:
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        logger.warning(
            "transaction_timeout",
            extra={"phase": mapped.phase, "budget_ms": mapped.budget_ms},
        )
        raise mapped from exc
    except TransactionTimeoutError as exc:
        session.rollback()
        logger.warning(
            "transaction_timeout",
            extra={
                "phase": exc.phase,
                "budget_ms": exc.budget_ms,
                "elapsed_ms": exc.elapsed_ms,
                "step": exc.step,
            },
        )
        raise
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()
        if has_turn:
            turn.release()
