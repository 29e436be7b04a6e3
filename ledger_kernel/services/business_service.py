"""
BusinessService -- tenant records and the books-opened gate.

Responsibility:
    Creates businesses, reports their initialization status, and enforces
    the gate that rejects ordinary voucher mutation until the opening
    position has been accepted.  The opening-position workflow locks the
    business row through ``lock_for_update`` and flips the flag through
    ``mark_initialized``.

Invariants enforced:
    - ``is_initialized`` flips false -> true exactly once.
    - Every lookup is scoped: an unknown id raises BusinessNotFoundError.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import BootstrapIntegrity, BusinessStatus
from ledger_kernel.exceptions import (
    AlreadyInitializedError,
    BooksNotOpenedError,
    BusinessNotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.business import Business
from ledger_kernel.models.voucher import Posting, Voucher
from ledger_kernel.services.base import BaseService

logger = get_logger("services.business")


class BusinessService(BaseService):
    """Tenant lifecycle and the initialization gate."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def create_business(
        self,
        name: str,
        financial_year_start: date | None = None,
        actor_id: UUID | None = None,
    ) -> Business:
        """Create an uninitialized business."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Business name is required", field="name")
        with self.atomic("business_create"):
            business = Business(
                name=name,
                financial_year_start=financial_year_start,
                is_initialized=False,
                created_by_id=actor_id,
            )
            self.session.add(business)
        logger.info(
            "business_created",
            extra={"business_id": str(business.id), "business_name": name},
        )
        return business

    def get(self, business_id: UUID) -> Business:
        business = self.session.get(Business, business_id)
        if business is None:
            raise BusinessNotFoundError(str(business_id))
        return business

    def lock_for_update(self, business_id: UUID) -> Business:
        """
        Load the business row under ``SELECT ... FOR UPDATE``.

        Serializes concurrent opening-position submissions on PostgreSQL;
        SQLite ignores the lock clause.
        """
        business = self.session.execute(
            select(Business)
            .where(Business.id == business_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if business is None:
            raise BusinessNotFoundError(str(business_id))
        return business

    def status(self, business_id: UUID) -> BusinessStatus:
        business = self.get(business_id)
        return BusinessStatus(
            business_id=business.id,
            is_initialized=business.is_initialized,
            initialized_at=business.initialized_at,
        )

    def require_initialized(self, business_id: UUID) -> Business:
        """
        Raises:
            BusinessNotFoundError: unknown business.
            BooksNotOpenedError: the opening position has not been accepted.
        """
        business = self.get(business_id)
        if not business.is_initialized:
            logger.warning(
                "books_not_opened",
                extra={"business_id": str(business_id)},
            )
            raise BooksNotOpenedError(str(business_id))
        return business

    def mark_initialized(self, business: Business) -> None:
        """Flip the gate.  Called once, inside the opening-position savepoint."""
        if business.is_initialized:
            raise AlreadyInitializedError(str(business.id))
        business.is_initialized = True
        business.initialized_at = self._clock.now_utc()
        self.session.flush()
        logger.info(
            "business_initialized",
            extra={"business_id": str(business.id)},
        )

    def bootstrap_integrity(self, business_id: UUID) -> BootstrapIntegrity:
        """Counts of accounts, vouchers and postings already present."""
        self.get(business_id)
        account_count = self.session.execute(
            select(func.count(Account.id)).where(Account.business_id == business_id)
        ).scalar_one()
        voucher_count = self.session.execute(
            select(func.count(Voucher.id)).where(Voucher.business_id == business_id)
        ).scalar_one()
        posting_count = self.session.execute(
            select(func.count(Posting.id))
            .join(Voucher, Posting.voucher_id == Voucher.id)
            .where(Voucher.business_id == business_id)
        ).scalar_one()
        return BootstrapIntegrity(
            business_id=business_id,
            account_count=account_count,
            voucher_count=voucher_count,
            posting_count=posting_count,
        )
