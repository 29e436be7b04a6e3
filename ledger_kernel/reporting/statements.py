"""
Pure report transformation functions.

These functions turn per-account movements and balances plus account
metadata into report DTOs.  ZERO I/O.  ZERO side effects.

Functions in this module follow the ledger_kernel/domain/ purity convention:
- No database access
- No clock access
- Deterministic: same inputs always produce same outputs
"""

from __future__ import annotations

import dataclasses
from decimal import Decimal
from typing import Iterable, Mapping
from uuid import UUID

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.models.account import (
    ASSET_CATEGORIES,
    PROFIT_LOSS_CATEGORIES,
    GroupCategory,
)
from ledger_kernel.reporting.models import (
    BalanceSheetLine,
    BalanceSheetReport,
    BalanceSheetSection,
    ProfitLossLine,
    ProfitLossPeriod,
    ProfitLossReport,
    ProfitLossSection,
    ProfitLossVariance,
    ReportMetadata,
    TrialBalanceLine,
    TrialBalanceReport,
)
from ledger_kernel.selectors.ledger_selector import AccountMovement

# =========================================================================
# Bridge type: account metadata for pure functions
# =========================================================================


@dataclasses.dataclass(frozen=True)
class AccountInfo:
    """
    Snapshot of account metadata needed for classification.

    The service converts Account rows (joined with their group) to
    AccountInfo before calling any function here.  ``category`` is None
    for an account with no group; such accounts appear in the trial
    balance but in no statement section.
    """

    account_id: UUID
    code: str
    name: str
    category: GroupCategory | None
    group_name: str | None
    signed_opening: Decimal


# =========================================================================
# Helpers
# =========================================================================


def split_by_sign(balance: Decimal) -> tuple[Decimal, Decimal]:
    """(debit column, credit column) for a signed balance."""
    if balance >= 0:
        return balance, ZERO
    return ZERO, -balance


def natural_amount(category: GroupCategory, signed: Decimal) -> Decimal:
    """Positive when the balance sits on the category's normal side."""
    if category in ASSET_CATEGORIES or category is GroupCategory.EXPENSE:
        return signed
    return -signed


def is_cash_or_bank(name: str, keywords: Iterable[str]) -> bool:
    """Case-insensitive substring match of the account name."""
    lowered = name.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def _movement_of(movements: Mapping[UUID, AccountMovement], account_id: UUID) -> Decimal:
    movement = movements.get(account_id)
    return movement.balance if movement is not None else ZERO


# =========================================================================
# Trial balance
# =========================================================================


def build_trial_balance(
    accounts: Iterable[AccountInfo],
    prior_movements: Mapping[UUID, AccountMovement],
    period_movements: Mapping[UUID, AccountMovement],
    metadata: ReportMetadata,
) -> TrialBalanceReport:
    """
    One line per account, ordered by code.

    opening = signed opening + movement before the period;
    closing = opening + period movement.
    """
    lines: list[TrialBalanceLine] = []
    for acct in sorted(accounts, key=lambda a: a.code):
        opening = acct.signed_opening + _movement_of(prior_movements, acct.account_id)
        period = period_movements.get(acct.account_id)
        period_debit = period.debit_total if period is not None else ZERO
        period_credit = period.credit_total if period is not None else ZERO
        closing = opening + period_debit - period_credit
        debit, credit = split_by_sign(closing)
        lines.append(
            TrialBalanceLine(
                account_id=acct.account_id,
                account_code=acct.code,
                account_name=acct.name,
                group_name=acct.group_name,
                category=acct.category,
                opening_balance=opening,
                period_debit=period_debit,
                period_credit=period_credit,
                closing_balance=closing,
                debit=debit,
                credit=credit,
            )
        )

    total_debit = sum((line.debit for line in lines), ZERO)
    total_credit = sum((line.credit for line in lines), ZERO)
    return TrialBalanceReport(
        metadata=metadata,
        lines=tuple(lines),
        total_debit=total_debit,
        total_credit=total_credit,
        total_period_debit=sum((line.period_debit for line in lines), ZERO),
        total_period_credit=sum((line.period_credit for line in lines), ZERO),
        is_balanced=round_money(total_debit) == round_money(total_credit),
    )


# =========================================================================
# Profit & loss
# =========================================================================


def _pl_section(
    label: str,
    category: GroupCategory,
    accounts: Iterable[AccountInfo],
    movements: Mapping[UUID, AccountMovement],
) -> ProfitLossSection:
    lines = tuple(
        ProfitLossLine(
            account_id=acct.account_id,
            account_code=acct.code,
            account_name=acct.name,
            amount=natural_amount(category, _movement_of(movements, acct.account_id)),
        )
        for acct in sorted(accounts, key=lambda a: a.code)
        if acct.category is category and acct.account_id in movements
    )
    return ProfitLossSection(
        label=label,
        lines=lines,
        total=sum((line.amount for line in lines), ZERO),
    )


def build_profit_loss_period(
    accounts: Iterable[AccountInfo],
    movements: Mapping[UUID, AccountMovement],
    period_start,
    period_end,
) -> ProfitLossPeriod:
    accounts = tuple(accounts)
    return ProfitLossPeriod(
        period_start=period_start,
        period_end=period_end,
        income=_pl_section("Income", GroupCategory.INCOME, accounts, movements),
        expenses=_pl_section("Expenses", GroupCategory.EXPENSE, accounts, movements),
    )


def compute_net_profit(
    accounts: Iterable[AccountInfo],
    movements: Mapping[UUID, AccountMovement],
) -> Decimal:
    """Income (credit-natural) minus expense (debit-natural) movement."""
    net = ZERO
    for acct in accounts:
        signed = _movement_of(movements, acct.account_id)
        if acct.category in PROFIT_LOSS_CATEGORIES:
            net -= signed
    return net


def build_profit_loss(
    metadata: ReportMetadata,
    current: ProfitLossPeriod,
    comparison: ProfitLossPeriod | None = None,
) -> ProfitLossReport:
    variance = None
    if comparison is not None:
        variance = ProfitLossVariance(
            income=current.total_income - comparison.total_income,
            expense=current.total_expense - comparison.total_expense,
            net_profit=current.net_profit - comparison.net_profit,
        )
    return ProfitLossReport(
        metadata=metadata,
        current=current,
        comparison=comparison,
        variance=variance,
    )


# =========================================================================
# Balance sheet
# =========================================================================


def _bs_section(
    label: str,
    categories: frozenset[GroupCategory],
    accounts: Iterable[AccountInfo],
    closing: Mapping[UUID, Decimal],
    absolute: bool,
) -> BalanceSheetSection:
    lines: list[BalanceSheetLine] = []
    for acct in sorted(accounts, key=lambda a: a.code):
        if acct.category not in categories:
            continue
        balance = closing.get(acct.account_id, acct.signed_opening)
        lines.append(
            BalanceSheetLine(
                account_id=acct.account_id,
                account_code=acct.code,
                account_name=acct.name,
                category=acct.category,
                balance=balance,
                amount=abs(balance) if absolute else balance,
            )
        )
    return BalanceSheetSection(
        label=label,
        lines=tuple(lines),
        total=sum((line.amount for line in lines), ZERO),
    )


def build_balance_sheet(
    accounts: Iterable[AccountInfo],
    closing: Mapping[UUID, Decimal],
    metadata: ReportMetadata,
) -> BalanceSheetReport:
    """
    Assets are summed signed; liabilities and equity as absolute values
    per account.
    """
    accounts = tuple(accounts)
    return BalanceSheetReport(
        metadata=metadata,
        current_assets=_bs_section(
            "Current Assets",
            frozenset({GroupCategory.CURRENT_ASSET}),
            accounts,
            closing,
            absolute=False,
        ),
        fixed_assets=_bs_section(
            "Fixed Assets",
            frozenset({GroupCategory.FIXED_ASSET}),
            accounts,
            closing,
            absolute=False,
        ),
        liabilities=_bs_section(
            "Liabilities",
            frozenset({GroupCategory.LIABILITY}),
            accounts,
            closing,
            absolute=True,
        ),
        equity=_bs_section(
            "Capital",
            frozenset({GroupCategory.EQUITY}),
            accounts,
            closing,
            absolute=True,
        ),
    )


# =========================================================================
# Dashboard helpers
# =========================================================================


def cash_bank_balance(
    accounts: Iterable[AccountInfo],
    closing: Mapping[UUID, Decimal],
    keywords: Iterable[str],
) -> Decimal:
    keywords = tuple(keywords)
    return sum(
        (
            closing.get(acct.account_id, acct.signed_opening)
            for acct in accounts
            if is_cash_or_bank(acct.name, keywords)
        ),
        ZERO,
    )


def count_negative_cash_ledgers(
    accounts: Iterable[AccountInfo],
    closing: Mapping[UUID, Decimal],
    keywords: Iterable[str],
) -> int:
    keywords = tuple(keywords)
    return sum(
        1
        for acct in accounts
        if is_cash_or_bank(acct.name, keywords)
        and closing.get(acct.account_id, acct.signed_opening) < 0
    )

