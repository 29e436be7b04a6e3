"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: opening balances, ledger lines with
    running balances, closing balances, account statements and per-account
    movement aggregates for reporting.  There are no stored balances; every
    figure derives from the account's opening balance and its postings.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only postings of POSTED vouchers count.  DRAFT vouchers are work in
      progress and CANCELLED vouchers are retained for audit but excluded.
    - Ledger order is (posting date, voucher number, amount, line number,
      posting id); the running balance is one forward prefix-sum pass over
      that order, seeded with the opening balance as of the range start.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.dtos import LedgerLine, LedgerStatement
from ledger_kernel.domain.running_balance import running_balances, signed_opening
from ledger_kernel.exceptions import AccountNotFoundError, ValidationError
from ledger_kernel.models.account import Account, EntryType
from ledger_kernel.models.voucher import Posting, Voucher, VoucherStatus, VoucherType
from ledger_kernel.selectors.base import BaseSelector


@dataclass
class AccountMovement:
    """Debit and credit totals of one account over a date range."""

    account_id: UUID
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Signed movement (debits - credits)."""
        return self.debit_total - self.credit_total


_DEBIT_SUM = func.coalesce(
    func.sum(case((Posting.entry_type == EntryType.DR, Posting.amount), else_=ZERO)),
    ZERO,
)
_CREDIT_SUM = func.coalesce(
    func.sum(case((Posting.entry_type == EntryType.CR, Posting.amount), else_=ZERO)),
    ZERO,
)


class LedgerSelector(BaseSelector):
    """Derived views over posted postings."""

    def _account(self, account_id: UUID, business_id: UUID | None = None) -> Account:
        query = select(Account).where(Account.id == account_id)
        if business_id is not None:
            query = query.where(Account.business_id == business_id)
        account = self.session.execute(query).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def _posted_sum(
        self,
        account_id: UUID,
        before: date | None = None,
        through: date | None = None,
    ) -> Decimal:
        query = (
            select(_DEBIT_SUM - _CREDIT_SUM)
            .select_from(Posting)
            .join(Voucher, Posting.voucher_id == Voucher.id)
            .where(
                Posting.account_id == account_id,
                Voucher.status == VoucherStatus.POSTED,
            )
        )
        if before is not None:
            query = query.where(Posting.posting_date < before)
        if through is not None:
            query = query.where(Posting.posting_date <= through)
        return Decimal(self.session.execute(query).scalar_one() or ZERO)

    def opening_balance(
        self,
        account_id: UUID,
        as_of_exclusive: date | None = None,
        business_id: UUID | None = None,
    ) -> Decimal:
        """
        Signed opening balance plus signed postings dated before ``as_of_exclusive``.

        With no date, this is the account's own opening balance.
        """
        account = self._account(account_id, business_id)
        opening = signed_opening(account.opening_balance, account.opening_balance_type)
        if as_of_exclusive is None:
            return opening
        return opening + self._posted_sum(account_id, before=as_of_exclusive)

    def ledger_lines(
        self,
        account_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
        business_id: UUID | None = None,
    ) -> list[LedgerLine]:
        """Postings in range, in ledger order, each with its running balance."""
        opening = self.opening_balance(account_id, date_from, business_id)
        return self._lines(account_id, opening, date_from, date_to)

    def _lines(
        self,
        account_id: UUID,
        opening: Decimal,
        date_from: date | None,
        date_to: date | None,
    ) -> list[LedgerLine]:
        query = (
            select(
                Posting.voucher_id,
                Posting.posting_date,
                Posting.line_no,
                Posting.entry_type,
                Posting.amount,
                Voucher.voucher_number,
                Voucher.voucher_type,
                Voucher.narration,
            )
            .join(Voucher, Posting.voucher_id == Voucher.id)
            .where(
                Posting.account_id == account_id,
                Voucher.status == VoucherStatus.POSTED,
            )
            .order_by(
                Posting.posting_date,
                Voucher.voucher_number,
                Posting.amount,
                Posting.line_no,
                Posting.id,
            )
        )
        if date_from is not None:
            query = query.where(Posting.posting_date >= date_from)
        if date_to is not None:
            query = query.where(Posting.posting_date <= date_to)

        rows = self.session.execute(query).all()
        return [
            LedgerLine(
                voucher_id=row.voucher_id,
                voucher_number=row.voucher_number,
                voucher_type=VoucherType(row.voucher_type),
                posting_date=row.posting_date,
                line_no=row.line_no,
                entry_type=EntryType(row.entry_type),
                amount=row.amount,
                narration=row.narration,
                running_balance=balance,
            )
            for row, balance in running_balances(opening, rows)
        ]

    def closing_balance(
        self,
        account_id: UUID,
        date_to: date | None = None,
        business_id: UUID | None = None,
    ) -> Decimal:
        """Signed opening plus every posted movement dated on or before ``date_to``."""
        account = self._account(account_id, business_id)
        opening = signed_opening(account.opening_balance, account.opening_balance_type)
        return opening + self._posted_sum(account_id, through=date_to)

    def statement(
        self,
        account_id: UUID,
        business_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> LedgerStatement:
        """
        Opening balance, lines and closing balance for one account.

        Raises:
            AccountNotFoundError: the account is not in ``business_id``.
            ValidationError: ``date_from`` is after ``date_to``.
        """
        if date_from is not None and date_to is not None and date_from > date_to:
            raise ValidationError("date_from must not be after date_to", field="date_from")
        opening = self.opening_balance(account_id, date_from, business_id)
        lines = self._lines(account_id, opening, date_from, date_to)
        closing = lines[-1].running_balance if lines else opening
        return LedgerStatement(
            account_id=account_id,
            date_from=date_from,
            date_to=date_to,
            opening_balance=opening,
            closing_balance=closing,
            lines=tuple(lines),
        )

    def movements(
        self,
        business_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> dict[UUID, AccountMovement]:
        """Posted debit/credit totals per account, both bounds inclusive."""
        query = (
            select(
                Posting.account_id,
                _DEBIT_SUM.label("debit_total"),
                _CREDIT_SUM.label("credit_total"),
            )
            .join(Voucher, Posting.voucher_id == Voucher.id)
            .where(
                Voucher.business_id == business_id,
                Voucher.status == VoucherStatus.POSTED,
            )
            .group_by(Posting.account_id)
        )
        if date_from is not None:
            query = query.where(Posting.posting_date >= date_from)
        if date_to is not None:
            query = query.where(Posting.posting_date <= date_to)

        return {
            row.account_id: AccountMovement(
                account_id=row.account_id,
                debit_total=Decimal(row.debit_total or ZERO),
                credit_total=Decimal(row.credit_total or ZERO),
            )
            for row in self.session.execute(query).all()
        }

    def movements_before(self, business_id: UUID, before: date) -> dict[UUID, AccountMovement]:
        """Posted movement strictly before ``before``."""
        return self.movements(business_id, date_to=before - timedelta(days=1))

    def closing_balances(
        self,
        business_id: UUID,
        as_of: date | None = None,
    ) -> dict[UUID, Decimal]:
        """Signed closing balance of every account in the business as of ``as_of``."""
        moved = self.movements(business_id, date_to=as_of)
        accounts = self.session.execute(
            select(Account.id, Account.opening_balance, Account.opening_balance_type)
            .where(Account.business_id == business_id)
        ).all()
        result: dict[UUID, Decimal] = {}
        for account_id, opening_balance, opening_type in accounts:
            movement = moved.get(account_id)
            result[account_id] = signed_opening(opening_balance, opening_type) + (
                movement.balance if movement else ZERO
            )
        return result
