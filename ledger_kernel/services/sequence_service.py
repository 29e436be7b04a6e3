"""
SequenceService -- monotonic counter allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers per business and voucher
    type, and formats them as voucher numbers (``JV-0001``, ``PV-0002``...).
    Uses a dedicated counter table with row-level locking
    (``SELECT ... FOR UPDATE``) so concurrent allocations serialize.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by VoucherService when a voucher is created without a number.

Invariants enforced:
    - The locked counter row is the sole source of truth for the next
      value; counting existing vouchers is never used.
    - The increment is only visible after the caller's transaction
      commits.  Rollback returns the value.
    - A generated number never collides with a number the user typed in:
      taken numbers are skipped.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence import SequenceCounter
from ledger_kernel.models.voucher import VOUCHER_NUMBER_PREFIXES, Voucher, VoucherType

logger = get_logger("services.sequence")

# Generated numbers that are already taken are skipped, up to this many
MAX_SKIPS = 1000


def voucher_sequence_name(business_id: UUID, voucher_type: VoucherType | str) -> str:
    return f"voucher:{business_id}:{VoucherType(voucher_type).value}"


def format_voucher_number(voucher_type: VoucherType | str, value: int) -> str:
    """``format_voucher_number(VoucherType.PAYMENT, 7) == 'PV-0007'``."""
    return f"{VOUCHER_NUMBER_PREFIXES[VoucherType(voucher_type)]}-{value:04d}"


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The increment is transactional -- it is only
        committed when the caller's transaction commits.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT guarantee gap-free voucher numbers; skipped user-taken
          numbers leave gaps in the counter.

    Usage:
        with session_scope() as session:
            number = SequenceService(session).next_voucher_number(
                business_id, VoucherType.JOURNAL,
            )
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the counter row (creating it on first use), increments it
        and returns the new value.  Always > 0.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use.  Another transaction may create the row at the same
            # time; the savepoint keeps the caller's work intact on a clash.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def next_voucher_number(self, business_id: UUID, voucher_type: VoucherType | str) -> str:
        """
        Allocate the next free number for ``voucher_type`` in the business.

        Raises:
            RuntimeError: more than MAX_SKIPS consecutive numbers are taken.
        """
        sequence_name = voucher_sequence_name(business_id, voucher_type)
        for _ in range(MAX_SKIPS):
            number = format_voucher_number(voucher_type, self.next_value(sequence_name))
            taken = self._session.execute(
                select(Voucher.id).where(
                    Voucher.business_id == business_id,
                    Voucher.voucher_number == number,
                )
            ).first()
            if taken is None:
                return number
            logger.debug(
                "voucher_number_skipped",
                extra={"voucher_number": number, "business_id": str(business_id)},
            )
        raise RuntimeError(f"Could not allocate a voucher number for {sequence_name}")
