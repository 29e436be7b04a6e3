"""
Reporting Service (``ledger_kernel.reporting.service``).

Responsibility
--------------
Orchestrates report generation -- trial balance, profit and loss with an
optional comparison period, balance sheet and the dashboard summary -- by
bridging the read-side selectors (``LedgerSelector``, ``AccountSelector``,
``VoucherSelector``) to the pure functions in ``statements.py``.  This is
a **read-only** service.

Architecture position
---------------------
**Reporting layer** -- ``ReportingService`` is the sole public entry point
for reports.  Constructor: ``session`` + ``clock`` + ``config``.

Invariants enforced
-------------------
* Read-only -- no mutations.
* Only POSTED vouchers contribute; the selectors filter by status.
* All monetary amounts use ``Decimal`` -- NEVER ``float``.

Failure modes
-------------
* Unknown business  -> ``BusinessNotFoundError``.
* ``date_from`` after ``date_to``  -> ``ValidationError`` before any query.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.config import LedgerConfig
from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.fiscal import fiscal_year_start, month_start
from ledger_kernel.domain.running_balance import signed_opening
from ledger_kernel.exceptions import BusinessNotFoundError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.business import Business
from ledger_kernel.models.inventory import InventoryValuation
from ledger_kernel.models.voucher import Voucher, VoucherStatus
from ledger_kernel.reporting.models import (
    BalanceSheetReport,
    DashboardAlerts,
    DashboardKpis,
    DashboardSummary,
    ProfitLossReport,
    ReportMetadata,
    ReportType,
    TrialBalanceReport,
)
from ledger_kernel.reporting.statements import (
    AccountInfo,
    build_balance_sheet,
    build_profit_loss,
    build_profit_loss_period,
    build_trial_balance,
    cash_bank_balance,
    compute_net_profit,
    count_negative_cash_ledgers,
)
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.selectors.voucher_selector import VoucherSelector

logger = get_logger("reporting.service")


def _check_range(date_from: date | None, date_to: date | None, field: str = "date_from") -> None:
    if date_from is not None and date_to is not None and date_from > date_to:
        raise ValidationError(f"{field} must not be after the end of the period", field=field)


class ReportingService:
    """
    Report generation service.

    Contract
    --------
    * Every public method returns a frozen report DTO.
    * All methods are **read-only**.

    Guarantees
    ----------
    * Report arithmetic lives in ``statements.py``; this class only
      loads data and builds metadata.
    * Clock is injectable for deterministic "as of today" defaults.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or LedgerConfig.with_defaults()
        self._ledger = LedgerSelector(session)
        self._accounts = AccountSelector(session)
        self._vouchers = VoucherSelector(session)

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _require_business(self, business_id: UUID) -> None:
        if self._session.get(Business, business_id) is None:
            raise BusinessNotFoundError(str(business_id))

    def _load_accounts(self, business_id: UUID) -> list[AccountInfo]:
        """Convert the business's accounts to the AccountInfo bridge type."""
        accounts = [
            AccountInfo(
                account_id=record.id,
                code=record.code,
                name=record.name,
                category=record.group_category,
                group_name=record.group_name,
                signed_opening=signed_opening(
                    record.opening_balance, record.opening_balance_type
                ),
            )
            for record in self._accounts.list_accounts(business_id)
        ]
        logger.debug(
            "accounts_loaded_for_reporting",
            extra={"business_id": str(business_id), "account_count": len(accounts)},
        )
        return accounts

    def _metadata(self, report_type: ReportType, business_id: UUID, **kwargs) -> ReportMetadata:
        return ReportMetadata(
            report_type=report_type,
            business_id=business_id,
            generated_at=self._clock.now().isoformat(),
            **kwargs,
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def trial_balance(
        self,
        business_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> TrialBalanceReport:
        """
        Per-account opening, period movement and closing balance.

        Without ``date_from`` the opening column is each account's own
        opening balance and the period covers everything up to ``date_to``.
        """
        _check_range(date_from, date_to)
        self._require_business(business_id)
        accounts = self._load_accounts(business_id)
        prior = (
            self._ledger.movements_before(business_id, date_from)
            if date_from is not None
            else {}
        )
        period = self._ledger.movements(business_id, date_from, date_to)

        report = build_trial_balance(
            accounts,
            prior,
            period,
            self._metadata(
                ReportType.TRIAL_BALANCE,
                business_id,
                as_of_date=date_to,
                period_start=date_from,
                period_end=date_to,
            ),
        )
        logger.info(
            "trial_balance_generated",
            extra={
                "business_id": str(business_id),
                "line_count": len(report.lines),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def profit_loss(
        self,
        business_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
        compare_from: date | None = None,
        compare_to: date | None = None,
    ) -> ProfitLossReport:
        """
        Income and expense movement inside the period.

        A comparison period is built when either compare bound is given;
        ``variance`` is current minus comparison.
        """
        _check_range(date_from, date_to)
        _check_range(compare_from, compare_to, field="compare_from")
        self._require_business(business_id)
        accounts = self._load_accounts(business_id)

        current = build_profit_loss_period(
            accounts,
            self._ledger.movements(business_id, date_from, date_to),
            date_from,
            date_to,
        )
        comparison = None
        if compare_from is not None or compare_to is not None:
            comparison = build_profit_loss_period(
                accounts,
                self._ledger.movements(business_id, compare_from, compare_to),
                compare_from,
                compare_to,
            )

        report = build_profit_loss(
            self._metadata(
                ReportType.PROFIT_LOSS,
                business_id,
                as_of_date=date_to,
                period_start=date_from,
                period_end=date_to,
                comparative_start=compare_from,
                comparative_end=compare_to,
            ),
            current,
            comparison,
        )
        logger.info(
            "profit_loss_generated",
            extra={
                "business_id": str(business_id),
                "net_profit": report.net_profit,
                "has_comparison": comparison is not None,
            },
        )
        return report

    def balance_sheet(
        self,
        business_id: UUID,
        as_of: date | None = None,
    ) -> BalanceSheetReport:
        """Closing balances of asset, liability and equity accounts as of ``as_of``."""
        self._require_business(business_id)
        accounts = self._load_accounts(business_id)
        closing = self._ledger.closing_balances(business_id, as_of)

        report = build_balance_sheet(
            accounts,
            closing,
            self._metadata(ReportType.BALANCE_SHEET, business_id, as_of_date=as_of),
        )
        logger.info(
            "balance_sheet_generated",
            extra={
                "business_id": str(business_id),
                "total_assets": report.total_assets,
                "liabilities_and_equity": report.liabilities_and_equity,
                "difference": report.difference,
            },
        )
        return report

    def dashboard_summary(
        self,
        business_id: UUID,
        as_of: date | None = None,
    ) -> DashboardSummary:
        """
        KPIs, alerts and the most recent vouchers.

        ``as_of`` defaults to the clock's today.  Month-to-date and
        year-to-date profit run from the month start and the configured
        fiscal-year start up to ``as_of``.
        """
        as_of = as_of or self._clock.today()
        self._require_business(business_id)
        accounts = self._load_accounts(business_id)
        closing = self._ledger.closing_balances(business_id, as_of)
        keywords = self._config.cash_bank_keywords

        sheet = build_balance_sheet(
            accounts,
            closing,
            self._metadata(ReportType.BALANCE_SHEET, business_id, as_of_date=as_of),
        )
        fy_start = fiscal_year_start(
            as_of,
            self._config.fiscal_year_start_month,
            self._config.fiscal_year_start_day,
        )
        stock_value, unique_items = self._stock_position(business_id, as_of)

        kpis = DashboardKpis(
            total_assets=sheet.total_assets,
            total_liabilities=sheet.total_liabilities,
            equity=sheet.total_equity,
            cash_bank_balance=cash_bank_balance(accounts, closing, keywords),
            net_profit_mtd=compute_net_profit(
                accounts,
                self._ledger.movements(business_id, month_start(as_of), as_of),
            ),
            net_profit_ytd=compute_net_profit(
                accounts,
                self._ledger.movements(business_id, fy_start, as_of),
            ),
            total_stock_value=stock_value,
            total_unique_items=unique_items,
        )
        alerts = DashboardAlerts(
            unbalanced_drafts=self._vouchers.count_unbalanced_drafts(business_id),
            negative_cash_ledgers=count_negative_cash_ledgers(accounts, closing, keywords),
            missing_ledger_mappings=sum(1 for a in accounts if a.category is None),
        )
        recent = self._vouchers.recent(business_id, self._config.recent_voucher_limit)

        summary = DashboardSummary(
            metadata=self._metadata(
                ReportType.DASHBOARD,
                business_id,
                as_of_date=as_of,
                period_start=fy_start,
                period_end=as_of,
            ),
            as_of=as_of,
            kpis=kpis,
            alerts=alerts,
            recent_vouchers=tuple(recent),
        )
        logger.info(
            "dashboard_summary_generated",
            extra={
                "business_id": str(business_id),
                "as_of": as_of.isoformat(),
                "has_alerts": alerts.has_alerts,
            },
        )
        return summary

    def _stock_position(self, business_id: UUID, as_of: date) -> tuple:
        """(total valuation, distinct products) from valuations dated <= as_of."""
        row = self._session.execute(
            select(
                func.coalesce(func.sum(InventoryValuation.total_value), ZERO),
                func.count(func.distinct(InventoryValuation.product_id)),
            )
            .select_from(InventoryValuation)
            .outerjoin(Voucher, InventoryValuation.voucher_id == Voucher.id)
            .where(
                InventoryValuation.business_id == business_id,
                InventoryValuation.valuation_date <= as_of,
                (Voucher.id.is_(None)) | (Voucher.status != VoucherStatus.CANCELLED),
            )
        ).one()
        return row[0], row[1]

