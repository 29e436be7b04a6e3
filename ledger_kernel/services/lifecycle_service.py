"""
LifecycleService -- the voucher state machine.

Responsibility:
    Drives vouchers through DRAFT -> POSTED -> CANCELLED and produces
    reversal vouchers.  Every transition is looked up in VOUCHER_WORKFLOW
    before any row changes.

Architecture position:
    Kernel > Services -- imperative shell.  Uses VoucherService for the
    shared write path and the ownership check.

Invariants enforced:
    - Posting re-validates the STORED postings: balance at two decimals
      and ownership, so a draft that went stale cannot reach the books.
    - Cancellation keeps postings in place; balances skip them by status.
    - A reversal is a new POSTED voucher with every side flipped and
      amounts unchanged, never dated before the original.
    - Each transition is one savepoint; a failure leaves nothing behind.
    - All transitions respect the books-opened gate.

Failure modes:
    - InvalidTransitionError: action not allowed from the current status.
    - InvalidReversalDateError: explicit reversal date before the original.
    - UnbalancedVoucherError / AccountOwnershipError on post.
    - VoucherNotFoundError, BooksNotOpenedError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.config import LedgerConfig
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import EntryLine, VoucherPayload, VoucherRecord
from ledger_kernel.domain.validation import validate_entries
from ledger_kernel.domain.workflow import require_transition
from ledger_kernel.exceptions import (
    InvalidReversalDateError,
    ValidationError,
    VoucherNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import EntryType
from ledger_kernel.models.voucher import Voucher, VoucherStatus
from ledger_kernel.selectors.voucher_selector import VoucherSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.business_service import BusinessService
from ledger_kernel.services.voucher_service import VoucherService

logger = get_logger("services.lifecycle")

REVERSAL_PREFIX = "REV-"


class CreateMode(str, Enum):
    """How ``LifecycleService.create`` leaves the new voucher."""

    DRAFT = "DRAFT"
    POST = "POST"


@dataclass(frozen=True)
class ReversalResult:
    original_voucher_id: UUID
    reversal_voucher_id: UUID
    reversal_number: str
    reversal_date: date


class LifecycleService(BaseService):
    """
    Post, cancel and reverse vouchers.

    Usage:
        with session_scope() as session:
            lifecycle = LifecycleService(session, clock)
            lifecycle.post(voucher_id, business_id)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._vouchers = VoucherService(session, self._clock, config)
        self._selector = VoucherSelector(session)
        self._businesses = BusinessService(session, self._clock)

    def create(
        self,
        payload: VoucherPayload,
        mode: CreateMode | str = CreateMode.DRAFT,
    ) -> VoucherRecord:
        """Create a voucher, left as DRAFT or posted straight away."""
        try:
            mode = CreateMode(mode.upper())
        except (AttributeError, ValueError):
            raise ValidationError("mode must be DRAFT or POST", field="mode") from None
        status = VoucherStatus.POSTED if mode is CreateMode.POST else VoucherStatus.DRAFT
        voucher_id = self._vouchers.create_voucher(payload, status=status)
        return self._selector.get(voucher_id, payload.business_id)

    def post(self, voucher_id: UUID, business_id: UUID) -> VoucherRecord:
        """DRAFT -> POSTED after re-validating what is actually stored."""
        self._businesses.require_initialized(business_id)
        with LogContext.bind(business_id=business_id, voucher_id=voucher_id):
            with self.atomic("voucher_post"):
                voucher = self._load(voucher_id, business_id)
                require_transition(voucher_id, voucher.status, "post")

                stored = [
                    EntryLine(
                        account_id=p.account_id,
                        entry_type=EntryType(p.entry_type),
                        amount=p.amount,
                    )
                    for p in voucher.postings
                ]
                validate_entries(stored)
                self._vouchers.check_ownership(business_id, (e.account_id for e in stored))

                voucher.status = VoucherStatus.POSTED
                voucher.posted_at = self._clock.now_utc()
            logger.info(
                "voucher_posted",
                extra={"voucher_number": voucher.voucher_number},
            )
        return self._selector.get(voucher_id, business_id)

    def cancel(
        self,
        voucher_id: UUID,
        business_id: UUID,
        reason: str | None = None,
    ) -> VoucherRecord:
        """DRAFT or POSTED -> CANCELLED.  Postings stay for audit."""
        self._businesses.require_initialized(business_id)
        with LogContext.bind(business_id=business_id, voucher_id=voucher_id):
            with self.atomic("voucher_cancel"):
                voucher = self._load(voucher_id, business_id)
                previous = VoucherStatus(voucher.status)
                require_transition(voucher_id, previous, "cancel")

                voucher.status = VoucherStatus.CANCELLED
                voucher.cancelled_at = self._clock.now_utc()
                voucher.cancel_reason = (reason or "").strip() or None
            logger.info(
                "voucher_cancelled",
                extra={
                    "voucher_number": voucher.voucher_number,
                    "previous_status": previous.value,
                    "reason": voucher.cancel_reason,
                },
            )
        return self._selector.get(voucher_id, business_id)

    def reverse(
        self,
        voucher_id: UUID,
        business_id: UUID,
        reversal_date: date | None = None,
        narration: str | None = None,
        reversal_number: str | None = None,
        actor_id: UUID | None = None,
    ) -> ReversalResult:
        """
        Create a POSTED mirror of a POSTED voucher.

        The date defaults to today, or the original's date when today is
        earlier.  The number defaults to ``REV-<original>``; later
        reversals of the same voucher get ``-2``, ``-3``...
        """
        self._businesses.require_initialized(business_id)
        with LogContext.bind(business_id=business_id, voucher_id=voucher_id, actor_id=actor_id):
            with self.atomic("voucher_reverse"):
                original = self._load(voucher_id, business_id)
                require_transition(voucher_id, original.status, "reverse")

                if reversal_date is None:
                    reversal_date = max(self._clock.today(), original.voucher_date)
                elif reversal_date < original.voucher_date:
                    raise InvalidReversalDateError(
                        voucher_id=str(voucher_id),
                        original_date=original.voucher_date.isoformat(),
                        reversal_date=reversal_date.isoformat(),
                    )

                entries = [
                    EntryLine(
                        account_id=p.account_id,
                        entry_type=EntryType(p.entry_type).opposite,
                        amount=p.amount,
                    )
                    for p in original.postings
                ]
                number = reversal_number or self._reversal_number(
                    business_id, original.voucher_number
                )
                reversal = self._vouchers.write_voucher(
                    business_id=business_id,
                    voucher_type=original.voucher_type,
                    voucher_date=reversal_date,
                    entries=entries,
                    status=VoucherStatus.POSTED,
                    voucher_number=number,
                    narration=narration or f"Reversal of {original.voucher_number}",
                    actor_id=actor_id,
                    reversal_of_id=original.id,
                    operation="voucher_reversal_write",
                )
            logger.info(
                "voucher_reversed",
                extra={
                    "original_number": original.voucher_number,
                    "reversal_voucher_id": str(reversal.id),
                    "reversal_number": reversal.voucher_number,
                    "reversal_date": reversal_date.isoformat(),
                },
            )
        return ReversalResult(
            original_voucher_id=original.id,
            reversal_voucher_id=reversal.id,
            reversal_number=reversal.voucher_number,
            reversal_date=reversal_date,
        )

    def _load(self, voucher_id: UUID, business_id: UUID) -> Voucher:
        voucher = self._selector.find(voucher_id, business_id)
        if voucher is None:
            raise VoucherNotFoundError(str(voucher_id))
        return voucher

    def _reversal_number(self, business_id: UUID, original_number: str) -> str:
        base = f"{REVERSAL_PREFIX}{original_number}"
        number = base
        suffix = 2
        while self._selector.exists_number(business_id, number):
            number = f"{base}-{suffix}"
            suffix += 1
        return number
