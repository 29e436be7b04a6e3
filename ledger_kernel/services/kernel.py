"""
LedgerKernel -- per-session facade over the kernel services.

Bundles every service and selector around one SQLAlchemy ``Session`` so
an API handler or script constructs one object per request and tears it
down with the session.  There is no process-wide registry.

Usage:
    with session_scope() as session:
        kernel = LedgerKernel(session, config=config)
        voucher = kernel.lifecycle.create(payload, mode="POST")
        report = kernel.reports.trial_balance(business_id, date_to=today)
"""

from __future__ import annotations

from datetime import date
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from ledger_kernel.config import LedgerConfig
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountRecord,
    GroupRecord,
    LedgerStatement,
    OpeningPositionPayload,
    VoucherFilter,
    VoucherPage,
    VoucherRecord,
)
from ledger_kernel.logging_config import LogContext
from ledger_kernel.reporting.service import ReportingService
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.business_service import BusinessService
from ledger_kernel.services.chart_of_accounts import ChartOfAccountsService
from ledger_kernel.services.lifecycle_service import LifecycleService
from ledger_kernel.services.opening_position_service import (
    OpeningPositionResult,
    OpeningPositionService,
)
from ledger_kernel.services.voucher_service import VoucherService


class LedgerKernel:
    """
    All kernel operations for one session.

    Contract:
        Never commits.  The owner of ``session`` decides commit or rollback.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.config = config or LedgerConfig.with_defaults()

        self.businesses = BusinessService(session, self.clock)
        self.chart = ChartOfAccountsService(session)
        self.vouchers = VoucherService(session, self.clock, self.config)
        self.lifecycle = LifecycleService(session, self.clock, self.config)
        self.opening = OpeningPositionService(session, self.clock, self.config)
        self.reports = ReportingService(session, self.clock, self.config)
        self.accounts = AccountSelector(session)
        self.ledger = LedgerSelector(session)

    def request(self, business_id: UUID | None = None, actor_id: UUID | None = None):
        """Bind a fresh correlation id (plus tenant and actor) to every log line."""
        return LogContext.bind(
            correlation_id=str(uuid4()),
            business_id=business_id,
            actor_id=actor_id,
        )

    # Chart of accounts

    def list_groups(self, business_id: UUID) -> list[GroupRecord]:
        return self.accounts.list_groups(business_id)

    def get_group(self, group_id: UUID, business_id: UUID) -> GroupRecord:
        return self.accounts.get_group(group_id, business_id)

    def list_accounts(self, business_id: UUID) -> list[AccountRecord]:
        return self.accounts.list_accounts(business_id)

    def get_account(self, account_id: UUID, business_id: UUID) -> AccountRecord:
        return self.accounts.get_account(account_id, business_id)

    # Vouchers

    def get_voucher_by_id(self, voucher_id: UUID, business_id: UUID) -> VoucherRecord:
        return self.vouchers.get_voucher(voucher_id, business_id)

    def list_vouchers(self, criteria: VoucherFilter) -> VoucherPage:
        return self.vouchers.list_vouchers(criteria)

    # Ledger

    def statement(
        self,
        account_id: UUID,
        business_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> LedgerStatement:
        return self.ledger.statement(account_id, business_id, date_from, date_to)

    # Opening position

    def submit_opening_position(self, payload: OpeningPositionPayload) -> OpeningPositionResult:
        return self.opening.submit(payload.business_id, payload)
