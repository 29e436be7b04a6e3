"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service.  Services receive a SQLAlchemy ``Session``
    and use ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit.  The caller (``session_scope()`` or a
      test harness) owns commit/rollback.
    - Atomic operations: every mutating operation runs inside
      ``atomic()``, a SAVEPOINT that is rolled back on any failure, so a
      failed voucher or bootstrap leaves no partial rows behind even when
      the caller keeps using the session.

Failure modes:
    - LedgerKernelError subclasses propagate unchanged after rollback.
    - Any other SQLAlchemyError is logged and surfaced as an opaque
      PersistenceError.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import LedgerKernelError, PersistenceError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.base")


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage the outer transaction lifecycle.
        - Does NOT provide query-only methods -- those belong in
          ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    @contextmanager
    def atomic(self, operation: str) -> Iterator[Session]:
        """
        Run a block as one all-or-nothing unit inside the caller's transaction.

        Usage:
            with self.atomic("voucher_create"):
                self._session.add(voucher)
        """
        savepoint = self._session.begin_nested()
        try:
            yield self._session
            self._session.flush()
        except LedgerKernelError:
            savepoint.rollback()
            raise
        except SQLAlchemyError as exc:
            savepoint.rollback()
            logger.error(
                "persistence_failure",
                extra={"operation": operation},
                exc_info=True,
            )
            raise PersistenceError(operation) from exc
        except Exception:
            savepoint.rollback()
            raise
        else:
            savepoint.commit()
