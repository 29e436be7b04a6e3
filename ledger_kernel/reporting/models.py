"""
Report Models (``ledger_kernel.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects for report outputs: trial balance, profit
and loss (with an optional comparison period), balance sheet and the
dashboard summary.

Architecture position
---------------------
**Reporting layer** -- pure data definitions with ZERO I/O.  Built by the
pure functions in ``statements.py`` and returned by ``ReportingService``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Signed balances follow the ledger convention: DR positive, CR negative.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.dtos import VoucherSummary
from ledger_kernel.models.account import GroupCategory


class ReportType(str, Enum):
    """Types of reports."""

    TRIAL_BALANCE = "trial_balance"
    PROFIT_LOSS = "profit_loss"
    BALANCE_SHEET = "balance_sheet"
    DASHBOARD = "dashboard"


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every report."""

    report_type: ReportType
    business_id: UUID
    generated_at: str  # ISO format timestamp from injected clock
    as_of_date: date | None = None
    period_start: date | None = None
    period_end: date | None = None
    comparative_start: date | None = None
    comparative_end: date | None = None


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceLine:
    """
    One account in the trial balance.

    ``closing_balance`` is signed; ``debit`` and ``credit`` split it by
    sign so that each column holds a non-negative figure.
    """

    account_id: UUID
    account_code: str
    account_name: str
    group_name: str | None
    category: GroupCategory | None
    opening_balance: Decimal
    period_debit: Decimal
    period_credit: Decimal
    closing_balance: Decimal
    debit: Decimal
    credit: Decimal


@dataclass(frozen=True)
class TrialBalanceReport:
    metadata: ReportMetadata
    lines: tuple[TrialBalanceLine, ...]
    total_debit: Decimal
    total_credit: Decimal
    total_period_debit: Decimal
    total_period_credit: Decimal
    is_balanced: bool  # total_debit == total_credit at two decimals

    @property
    def difference(self) -> Decimal:
        return self.total_debit - self.total_credit


# =========================================================================
# Profit & Loss
# =========================================================================


@dataclass(frozen=True)
class ProfitLossLine:
    """Natural-side movement of one income or expense account."""

    account_id: UUID
    account_code: str
    account_name: str
    amount: Decimal


@dataclass(frozen=True)
class ProfitLossSection:
    label: str
    lines: tuple[ProfitLossLine, ...]
    total: Decimal


@dataclass(frozen=True)
class ProfitLossPeriod:
    """
    One period of the P&L.

    income = -(signed INCOME movement), expense = signed EXPENSE movement,
    net_profit = income - expense.
    """

    period_start: date | None
    period_end: date | None
    income: ProfitLossSection
    expenses: ProfitLossSection

    @property
    def total_income(self) -> Decimal:
        return self.income.total

    @property
    def total_expense(self) -> Decimal:
        return self.expenses.total

    @property
    def net_profit(self) -> Decimal:
        return self.income.total - self.expenses.total


@dataclass(frozen=True)
class ProfitLossVariance:
    """Current minus comparison."""

    income: Decimal
    expense: Decimal
    net_profit: Decimal


@dataclass(frozen=True)
class ProfitLossReport:
    metadata: ReportMetadata
    current: ProfitLossPeriod
    comparison: ProfitLossPeriod | None = None
    variance: ProfitLossVariance | None = None

    @property
    def income(self) -> Decimal:
        return self.current.total_income

    @property
    def expense(self) -> Decimal:
        return self.current.total_expense

    @property
    def net_profit(self) -> Decimal:
        return self.current.net_profit


# =========================================================================
# Balance Sheet
# =========================================================================


@dataclass(frozen=True)
class BalanceSheetLine:
    """
    ``balance`` is the signed closing balance; ``amount`` is what the
    section adds up: signed for assets, absolute for liabilities and equity.
    """

    account_id: UUID
    account_code: str
    account_name: str
    category: GroupCategory
    balance: Decimal
    amount: Decimal


@dataclass(frozen=True)
class BalanceSheetSection:
    label: str
    lines: tuple[BalanceSheetLine, ...]
    total: Decimal


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Assets against liabilities and equity as of a date.

    Current-year profit is not rolled into equity, so ``difference`` is
    non-zero while income and expense accounts carry balances.
    """

    metadata: ReportMetadata
    current_assets: BalanceSheetSection
    fixed_assets: BalanceSheetSection
    liabilities: BalanceSheetSection
    equity: BalanceSheetSection

    @property
    def total_assets(self) -> Decimal:
        return self.current_assets.total + self.fixed_assets.total

    @property
    def total_liabilities(self) -> Decimal:
        return self.liabilities.total

    @property
    def total_equity(self) -> Decimal:
        return self.equity.total

    @property
    def liabilities_and_equity(self) -> Decimal:
        return self.liabilities.total + self.equity.total

    @property
    def difference(self) -> Decimal:
        return self.total_assets - self.liabilities_and_equity


# =========================================================================
# Dashboard
# =========================================================================


@dataclass(frozen=True)
class DashboardKpis:
    total_assets: Decimal
    total_liabilities: Decimal
    equity: Decimal
    cash_bank_balance: Decimal
    net_profit_mtd: Decimal
    net_profit_ytd: Decimal
    total_stock_value: Decimal
    total_unique_items: int


@dataclass(frozen=True)
class DashboardAlerts:
    unbalanced_drafts: int
    negative_cash_ledgers: int
    missing_ledger_mappings: int

    @property
    def has_alerts(self) -> bool:
        return bool(
            self.unbalanced_drafts
            or self.negative_cash_ledgers
            or self.missing_ledger_mappings
        )


@dataclass(frozen=True)
class DashboardSummary:
    metadata: ReportMetadata
    as_of: date
    kpis: DashboardKpis
    alerts: DashboardAlerts
    recent_vouchers: tuple[VoucherSummary, ...]
