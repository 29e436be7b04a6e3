"""
VoucherSelector -- read-only voucher queries.

Provides voucher detail (header plus ordered postings), filtered and
paginated listings with gross amounts, the daybook for one date, and the
most recent vouchers for the dashboard.  Cancelled vouchers remain
readable here; only balance queries exclude them.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import selectinload

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.dtos import (
    DaybookEntry,
    VoucherFilter,
    VoucherPage,
    VoucherRecord,
    VoucherSummary,
)
from ledger_kernel.exceptions import VoucherNotFoundError
from ledger_kernel.models.account import EntryType
from ledger_kernel.models.voucher import Posting, Voucher, VoucherStatus, VoucherType
from ledger_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


def _escape_like(text: str) -> str:
    """Make ``%`` and ``_`` in user search text match literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _gross_amounts():
    """Sum of posting amounts per voucher."""
    return (
        select(
            Posting.voucher_id.label("voucher_id"),
            func.sum(Posting.amount).label("gross_amount"),
        )
        .group_by(Posting.voucher_id)
        .subquery()
    )


class VoucherSelector(BaseSelector):
    """Read-side access to vouchers."""

    def __init__(
        self,
        session,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        super().__init__(session)
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    def find(self, voucher_id: UUID, business_id: UUID) -> Voucher | None:
        """Model lookup for services; the caller decides how to lock or mutate."""
        return self.session.execute(
            select(Voucher)
            .where(Voucher.id == voucher_id, Voucher.business_id == business_id)
            .options(selectinload(Voucher.postings).joinedload(Posting.account))
        ).scalar_one_or_none()

    def get(self, voucher_id: UUID, business_id: UUID) -> VoucherRecord:
        """
        Raises:
            VoucherNotFoundError: absent, or owned by another business.
        """
        voucher = self.find(voucher_id, business_id)
        if voucher is None:
            raise VoucherNotFoundError(str(voucher_id))
        return VoucherRecord.from_model(voucher)

    def exists_number(self, business_id: UUID, voucher_number: str) -> bool:
        return (
            self.session.execute(
                select(Voucher.id).where(
                    Voucher.business_id == business_id,
                    Voucher.voucher_number == voucher_number,
                )
            ).first()
            is not None
        )

    def list(self, criteria: VoucherFilter) -> VoucherPage:
        """Filtered page of vouchers, newest first, with the total match count."""
        limit = min(criteria.limit or self._default_page_size, self._max_page_size)
        offset = max(criteria.offset, 0)

        conditions = [Voucher.business_id == criteria.business_id]
        if criteria.date_from is not None:
            conditions.append(Voucher.voucher_date >= criteria.date_from)
        if criteria.date_to is not None:
            conditions.append(Voucher.voucher_date <= criteria.date_to)
        if criteria.voucher_type is not None:
            conditions.append(Voucher.voucher_type == criteria.voucher_type)
        if criteria.status is not None:
            conditions.append(Voucher.status == criteria.status)
        if criteria.search:
            pattern = f"%{_escape_like(criteria.search)}%"
            conditions.append(
                or_(
                    Voucher.voucher_number.ilike(pattern, escape="\\"),
                    Voucher.narration.ilike(pattern, escape="\\"),
                )
            )

        total = self.session.execute(
            select(func.count(Voucher.id)).where(*conditions)
        ).scalar_one()

        gross = _gross_amounts()
        rows = self.session.execute(
            select(Voucher, func.coalesce(gross.c.gross_amount, ZERO).label("gross_amount"))
            .outerjoin(gross, gross.c.voucher_id == Voucher.id)
            .where(*conditions)
            .order_by(Voucher.voucher_date.desc(), Voucher.voucher_number.desc())
            .limit(limit)
            .offset(offset)
        ).all()

        return VoucherPage(
            items=tuple(self._summary(v, g) for v, g in rows),
            total=total,
            limit=limit,
            offset=offset,
        )

    def recent(self, business_id: UUID, limit: int) -> list[VoucherSummary]:
        """Most recent vouchers of any status, newest first."""
        gross = _gross_amounts()
        query = (
            select(Voucher, func.coalesce(gross.c.gross_amount, ZERO).label("gross_amount"))
            .outerjoin(gross, gross.c.voucher_id == Voucher.id)
            .where(Voucher.business_id == business_id)
            .order_by(
                Voucher.voucher_date.desc(),
                Voucher.created_at.desc(),
                Voucher.voucher_number.desc(),
            )
            .limit(limit)
        )
        return [self._summary(v, g) for v, g in self.session.execute(query).all()]

    def daybook(self, business_id: UUID, day: date) -> list[DaybookEntry]:
        """Vouchers dated ``day`` with debit/credit totals; cancelled ones excluded."""
        query = (
            select(
                Voucher.id,
                Voucher.voucher_type,
                Voucher.voucher_number,
                Voucher.narration,
                Voucher.status,
                func.coalesce(
                    func.sum(case((Posting.entry_type == EntryType.DR, Posting.amount), else_=ZERO)),
                    ZERO,
                ).label("debit_total"),
                func.coalesce(
                    func.sum(case((Posting.entry_type == EntryType.CR, Posting.amount), else_=ZERO)),
                    ZERO,
                ).label("credit_total"),
            )
            .outerjoin(Posting, Posting.voucher_id == Voucher.id)
            .where(
                Voucher.business_id == business_id,
                Voucher.voucher_date == day,
                Voucher.status != VoucherStatus.CANCELLED,
            )
            .group_by(
                Voucher.id,
                Voucher.voucher_type,
                Voucher.voucher_number,
                Voucher.narration,
                Voucher.status,
            )
            .order_by(Voucher.voucher_number)
        )
        return [
            DaybookEntry(
                id=row.id,
                voucher_type=VoucherType(row.voucher_type),
                voucher_number=row.voucher_number,
                narration=row.narration,
                status=VoucherStatus(row.status),
                debit_total=Decimal(row.debit_total),
                credit_total=Decimal(row.credit_total),
            )
            for row in self.session.execute(query).all()
        ]

    def count_unbalanced_drafts(self, business_id: UUID) -> int:
        """DRAFT vouchers whose stored debits and credits differ at two decimals."""
        debit = func.coalesce(
            func.sum(case((Posting.entry_type == EntryType.DR, Posting.amount), else_=ZERO)),
            ZERO,
        )
        credit = func.coalesce(
            func.sum(case((Posting.entry_type == EntryType.CR, Posting.amount), else_=ZERO)),
            ZERO,
        )
        totals = (
            select(
                Voucher.id.label("voucher_id"),
                func.round(debit, 2).label("debit_total"),
                func.round(credit, 2).label("credit_total"),
            )
            .outerjoin(Posting, Posting.voucher_id == Voucher.id)
            .where(
                Voucher.business_id == business_id,
                Voucher.status == VoucherStatus.DRAFT,
            )
            .group_by(Voucher.id)
            .subquery()
        )
        return self.session.execute(
            select(func.count())
            .select_from(totals)
            .where(totals.c.debit_total != totals.c.credit_total)
        ).scalar_one()

    @staticmethod
    def _summary(voucher: Voucher, gross_amount) -> VoucherSummary:
        return VoucherSummary(
            id=voucher.id,
            voucher_type=VoucherType(voucher.voucher_type),
            voucher_number=voucher.voucher_number,
            voucher_date=voucher.voucher_date,
            narration=voucher.narration,
            status=VoucherStatus(voucher.status),
            is_system_generated=voucher.is_system_generated,
            gross_amount=Decimal(gross_amount),
        )
