"""
OpeningPositionService -- one-time bootstrap of a business's books.

Responsibility:
    Accepts the opening balances and opening stock of a business, writes
    them as a single POSTED system-generated journal voucher, records
    inventory valuations, and opens the books (``is_initialized``).

Architecture position:
    Kernel > Services -- imperative shell.
    Arithmetic and naming heuristics live in domain/opening_position.py;
    account resolution is delegated to ChartOfAccountsService.

Invariants enforced:
    - Runs at most once per business: the business row is locked, the flag
      is checked under the lock, and the unique voucher number backs it up
      against a racing submission.
    - Debits (ledger lines plus stock value) equal credits within the
      configured tolerance before anything is written.
    - The whole submission is one savepoint.  On any failure no group,
      account, voucher, product or valuation row survives and the
      business stays uninitialized.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.config import LedgerConfig
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import EntryLine, InventoryItem, OpeningPositionPayload
from ledger_kernel.domain.fiscal import fiscal_year_start
from ledger_kernel.domain.opening_position import (
    check_opening_balance,
    check_posting_count,
    code_from_name,
    compute_opening_totals,
    infer_group_category,
    resolve_entry_types,
    sku_from_name,
)
from ledger_kernel.exceptions import AlreadyInitializedError, OpeningPositionImbalanceError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import EntryType, GroupCategory, normal_balance_for
from ledger_kernel.models.business import Business
from ledger_kernel.models.inventory import InventoryValuation, Product
from ledger_kernel.models.voucher import VoucherStatus, VoucherType
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.business_service import BusinessService
from ledger_kernel.services.chart_of_accounts import ChartOfAccountsService
from ledger_kernel.services.voucher_service import VoucherService

logger = get_logger("services.opening_position")

OPENING_NARRATION = "Opening Financial Position Entry"
STOCK_ACCOUNT_CODE = "STOCK-IN-HAND"


@dataclass(frozen=True)
class OpeningPositionResult:
    voucher_id: UUID
    voucher_number: str
    ledger_count: int
    stock_value: Decimal
    debit_total: Decimal
    credit_total: Decimal


class OpeningPositionService(BaseService):
    """Submit the opening position of a business."""

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
        self._chart = ChartOfAccountsService(session)
        self._vouchers = VoucherService(session, self._clock, self._config)

    def submit(
        self,
        business_id: UUID,
        payload: OpeningPositionPayload,
    ) -> OpeningPositionResult:
        """
        Validate and record the opening position.

        Raises:
            BusinessNotFoundError: unknown business.
            AlreadyInitializedError: the books are already open.
            OpeningPositionImbalanceError: debits and credits differ by more
                than the configured tolerance.
            ValidationError: fewer than two non-zero entries to post.
        """
        with LogContext.bind(business_id=business_id, actor_id=payload.actor_id):
            with self.atomic("opening_position_submit"):
                business = self._businesses.lock_for_update(business_id)
                if business.is_initialized:
                    logger.warning("opening_position_already_initialized")
                    raise AlreadyInitializedError(str(business_id))

                resolved = resolve_entry_types(payload.balances)
                totals = compute_opening_totals(resolved, payload.items)
                try:
                    check_opening_balance(totals, self._config.opening_balance_tolerance)
                except OpeningPositionImbalanceError:
                    logger.warning(
                        "opening_position_rejected",
                        extra={
                            "debit_total": totals.debit_total,
                            "credit_total": totals.credit_total,
                            "variance": totals.variance,
                        },
                    )
                    raise
                check_posting_count(resolved, totals)

                self._chart.bootstrap_groups(business_id)

                entries: list[EntryLine] = []
                ledger_ids: set[UUID] = set()
                for item in resolved:
                    if item.line.amount == 0:
                        continue
                    group = self._chart.ensure_group(
                        business_id,
                        item.line.group_name,
                        infer_group_category(item.line.group_name),
                    )
                    account = self._chart.ensure_account(
                        business_id,
                        item.line.ledger_code or item.line.ledger_name,
                        group.id,
                        normal_balance_for(group.category),
                        name=item.line.ledger_name,
                        code=item.line.ledger_code or code_from_name(item.line.ledger_name),
                        actor_id=payload.actor_id,
                    )
                    ledger_ids.add(account.id)
                    entries.append(
                        EntryLine(
                            account_id=account.id,
                            entry_type=item.entry_type,
                            amount=item.line.amount,
                        )
                    )

                if totals.inventory_value > 0:
                    stock_group = self._chart.ensure_group(
                        business_id, "Current Assets", GroupCategory.CURRENT_ASSET
                    )
                    stock_account = self._chart.ensure_account(
                        business_id,
                        STOCK_ACCOUNT_CODE,
                        stock_group.id,
                        EntryType.DR,
                        name=self._config.stock_account_name,
                        actor_id=payload.actor_id,
                    )
                    ledger_ids.add(stock_account.id)
                    entries.append(
                        EntryLine(
                            account_id=stock_account.id,
                            entry_type=EntryType.DR,
                            amount=totals.inventory_value,
                        )
                    )

                voucher_date = self._voucher_date(business, payload.as_of_date)
                voucher = self._vouchers.write_voucher(
                    business_id=business_id,
                    voucher_type=VoucherType.JOURNAL,
                    voucher_date=voucher_date,
                    entries=entries,
                    status=VoucherStatus.POSTED,
                    voucher_number=self._config.opening_voucher_number,
                    narration=OPENING_NARRATION,
                    actor_id=payload.actor_id,
                    is_system_generated=True,
                    operation="opening_voucher_write",
                )

                for inventory_item in payload.items:
                    self._record_stock(
                        business_id, inventory_item, voucher.id, voucher_date, payload.actor_id
                    )

                self._businesses.mark_initialized(business)

            logger.info(
                "opening_position_accepted",
                extra={
                    "voucher_id": str(voucher.id),
                    "ledger_count": len(ledger_ids),
                    "stock_value": totals.inventory_value,
                    "debit_total": totals.debit_total,
                    "credit_total": totals.credit_total,
                },
            )

        return OpeningPositionResult(
            voucher_id=voucher.id,
            voucher_number=voucher.voucher_number,
            ledger_count=len(ledger_ids),
            stock_value=totals.inventory_value,
            debit_total=totals.debit_total,
            credit_total=totals.credit_total,
        )

    def _voucher_date(self, business: Business, requested: date | None) -> date:
        if requested is not None:
            return requested
        if business.financial_year_start is not None:
            return business.financial_year_start
        return fiscal_year_start(
            self._clock.today(),
            self._config.fiscal_year_start_month,
            self._config.fiscal_year_start_day,
        )

    def _record_stock(
        self,
        business_id: UUID,
        item: InventoryItem,
        voucher_id: UUID,
        valuation_date: date,
        actor_id: UUID | None,
    ) -> None:
        product = self.session.execute(
            select(Product).where(
                Product.business_id == business_id,
                Product.name == item.name,
            )
        ).scalar_one_or_none()
        if product is None:
            product = Product(
                business_id=business_id,
                name=item.name,
                sku=item.sku or sku_from_name(item.name),
                category=item.category or "General",
                uom=item.uom,
                created_by_id=actor_id,
            )
            self.session.add(product)
            self.session.flush()

        self.session.add(
            InventoryValuation(
                business_id=business_id,
                product_id=product.id,
                voucher_id=voucher_id,
                valuation_date=valuation_date,
                quantity=item.quantity,
                unit_cost=item.unit_cost,
                total_value=item.total_value,
                created_by_id=actor_id,
            )
        )
