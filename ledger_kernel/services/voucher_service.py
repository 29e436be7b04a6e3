"""
VoucherService -- voucher authoring: create, edit, delete, read.

Responsibility:
    Turns a validated VoucherPayload into a Voucher header plus its
    Postings, atomically.  Editing and deleting are limited to DRAFT
    vouchers; anything posted is corrected by cancellation or reversal
    (services/lifecycle_service.py).

Architecture position:
    Kernel > Services -- imperative shell.
    Pure checks come from domain/validation.py; reads are delegated to
    VoucherSelector so callers get frozen DTOs.

Invariants enforced:
    - Debits equal credits at two decimals before any row is written.
    - Every posting account belongs to the voucher's business.
    - Ordinary vouchers are rejected until the business is initialized;
      system-generated vouchers (opening position) bypass the gate.
    - Voucher numbers are unique per business.  The unique constraint is
      the final word; the pre-check only gives a clearer error.
    - Header and postings are written in one savepoint.

Failure modes:
    - ValidationError / UnbalancedVoucherError from validate_entries.
    - BooksNotOpenedError when the business is not initialized.
    - AccountOwnershipError when a posting names a foreign account.
    - DuplicateVoucherNumberError on a clashing number.
    - VoucherNotFoundError / VoucherNotEditableError on update and delete.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.config import LedgerConfig
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    DaybookEntry,
    EntryLine,
    VoucherFilter,
    VoucherPage,
    VoucherPayload,
    VoucherRecord,
)
from ledger_kernel.domain.validation import validate_entries
from ledger_kernel.exceptions import (
    AccountOwnershipError,
    DuplicateVoucherNumberError,
    VoucherNotEditableError,
    VoucherNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.voucher import Posting, Voucher, VoucherStatus, VoucherType
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.voucher_selector import VoucherSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.business_service import BusinessService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.voucher")


class VoucherService(BaseService):
    """
    Write side of voucher authoring.

    Contract:
        ``create_voucher`` returns the new voucher id; reads return frozen
        DTOs.  Nothing here commits.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._config = config or LedgerConfig.with_defaults()
        self._businesses = BusinessService(session, self._clock)
        self._accounts = AccountSelector(session)
        self._vouchers = VoucherSelector(
            session,
            default_page_size=self._config.default_page_size,
            max_page_size=self._config.max_page_size,
        )
        self._sequences = SequenceService(session)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_voucher(
        self,
        payload: VoucherPayload,
        status: VoucherStatus | str = VoucherStatus.DRAFT,
    ) -> UUID:
        """
        Validate and store a new voucher.

        Preconditions:
            The business is initialized.
        Postconditions:
            One header and ``len(payload.entries)`` postings exist, numbered
            from 1 in payload order.  ``posted_at`` is stamped when created
            POSTED.
        """
        status = VoucherStatus(status)
        totals = validate_entries(payload.entries)
        self._businesses.require_initialized(payload.business_id)
        self.check_ownership(payload.business_id, (e.account_id for e in payload.entries))

        with LogContext.bind(business_id=payload.business_id, actor_id=payload.actor_id):
            voucher = self.write_voucher(
                business_id=payload.business_id,
                voucher_type=payload.voucher_type,
                voucher_date=payload.voucher_date,
                entries=payload.entries,
                status=status,
                voucher_number=payload.voucher_number,
                narration=payload.narration,
                actor_id=payload.actor_id,
                operation="voucher_create",
            )
            logger.info(
                "voucher_created",
                extra={
                    "voucher_id": str(voucher.id),
                    "voucher_number": voucher.voucher_number,
                    "voucher_type": VoucherType(voucher.voucher_type).value,
                    "status": status.value,
                    "gross_amount": str(totals.gross_amount),
                },
            )
        return voucher.id

    def update_voucher(self, voucher_id: UUID, payload: VoucherPayload) -> VoucherRecord:
        """
        Replace a DRAFT voucher's header fields and its whole posting set.

        A missing ``voucher_number`` in the payload keeps the current number.
        """
        validate_entries(payload.entries)
        self._businesses.require_initialized(payload.business_id)

        with self.atomic("voucher_update"):
            voucher = self._editable(voucher_id, payload.business_id)
            self.check_ownership(payload.business_id, (e.account_id for e in payload.entries))

            number = payload.voucher_number or voucher.voucher_number
            if number != voucher.voucher_number and self._vouchers.exists_number(
                payload.business_id, number
            ):
                raise DuplicateVoucherNumberError(str(payload.business_id), number)

            # Old lines go first; (voucher_id, line_no) is unique.
            voucher.postings.clear()
            self.session.flush()

            voucher.voucher_type = payload.voucher_type
            voucher.voucher_number = number
            voucher.voucher_date = payload.voucher_date
            voucher.narration = payload.narration
            voucher.postings.extend(
                self._build_postings(payload.entries, payload.voucher_date)
            )
            try:
                self.session.flush()
            except IntegrityError:
                raise DuplicateVoucherNumberError(str(payload.business_id), number) from None

        logger.info(
            "voucher_updated",
            extra={
                "voucher_id": str(voucher_id),
                "business_id": str(payload.business_id),
                "entry_count": len(payload.entries),
            },
        )
        return self._vouchers.get(voucher_id, payload.business_id)

    def delete_voucher(self, voucher_id: UUID, business_id: UUID) -> None:
        """Remove a DRAFT voucher together with its postings."""
        self._businesses.require_initialized(business_id)
        with self.atomic("voucher_delete"):
            voucher = self._editable(voucher_id, business_id)
            number = voucher.voucher_number
            self.session.delete(voucher)
        logger.info(
            "voucher_deleted",
            extra={
                "voucher_id": str(voucher_id),
                "business_id": str(business_id),
                "voucher_number": number,
            },
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_voucher(self, voucher_id: UUID, business_id: UUID) -> VoucherRecord:
        return self._vouchers.get(voucher_id, business_id)

    def list_vouchers(self, criteria: VoucherFilter) -> VoucherPage:
        return self._vouchers.list(criteria)

    def daybook(self, business_id: UUID, day: date) -> list[DaybookEntry]:
        return self._vouchers.daybook(business_id, day)

    # ------------------------------------------------------------------
    # Shared with the lifecycle and opening-position services
    # ------------------------------------------------------------------

    def check_ownership(self, business_id: UUID, account_ids: Iterable[UUID]) -> None:
        """
        Raises:
            AccountOwnershipError: any id is not an account of the business.
        """
        foreign = self._accounts.foreign_account_ids(business_id, account_ids)
        if foreign:
            logger.warning(
                "voucher_foreign_accounts",
                extra={
                    "business_id": str(business_id),
                    "account_ids": [str(a) for a in foreign],
                },
            )
            raise AccountOwnershipError(str(business_id), [str(a) for a in foreign])

    def write_voucher(
        self,
        business_id: UUID,
        voucher_type: VoucherType | str,
        voucher_date: date,
        entries: Iterable[EntryLine],
        status: VoucherStatus = VoucherStatus.DRAFT,
        voucher_number: str | None = None,
        narration: str | None = None,
        actor_id: UUID | None = None,
        is_system_generated: bool = False,
        reversal_of_id: UUID | None = None,
        operation: str = "voucher_write",
    ) -> Voucher:
        """
        Insert a header and its postings in one savepoint.

        No balance, gate or ownership checks happen here; callers run
        them first.  Allocates a number when ``voucher_number`` is None.
        """
        voucher_type = VoucherType(voucher_type)
        with self.atomic(operation):
            number = voucher_number or self._sequences.next_voucher_number(
                business_id, voucher_type
            )
            if self._vouchers.exists_number(business_id, number):
                logger.warning(
                    "voucher_number_conflict",
                    extra={"business_id": str(business_id), "voucher_number": number},
                )
                raise DuplicateVoucherNumberError(str(business_id), number)

            voucher = Voucher(
                business_id=business_id,
                voucher_type=voucher_type,
                voucher_number=number,
                voucher_date=voucher_date,
                narration=narration,
                status=status,
                is_system_generated=is_system_generated,
                reversal_of_id=reversal_of_id,
                posted_at=self._clock.now_utc() if status is VoucherStatus.POSTED else None,
                created_by_id=actor_id,
            )
            voucher.postings = self._build_postings(entries, voucher_date, actor_id)
            self.session.add(voucher)
            try:
                self.session.flush()
            except IntegrityError:
                raise DuplicateVoucherNumberError(str(business_id), number) from None
        return voucher

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _editable(self, voucher_id: UUID, business_id: UUID) -> Voucher:
        voucher = self._vouchers.find(voucher_id, business_id)
        if voucher is None:
            raise VoucherNotFoundError(str(voucher_id))
        if not voucher.is_draft:
            raise VoucherNotEditableError(str(voucher_id), VoucherStatus(voucher.status).value)
        return voucher

    @staticmethod
    def _build_postings(
        entries: Iterable[EntryLine],
        posting_date: date,
        actor_id: UUID | None = None,
    ) -> list[Posting]:
        return [
            Posting(
                line_no=line_no,
                account_id=entry.account_id,
                entry_type=entry.entry_type,
                amount=entry.amount,
                posting_date=posting_date,
                created_by_id=actor_id,
            )
            for line_no, entry in enumerate(entries, start=1)
        ]
