"""
Reports: trial balance, profit and loss, balance sheet and dashboard.

The ``books`` fixture posts one quarter of trading:

    Apr 10  Cash 10000 / Owner Capital
    May 05  Cash 3000 / Sales
    May 20  Rent 1000 / Cash
    Jun 02  Bank 5000 / Sales
    Jun 05  Rent 1200 / Bank
    Jun 10  Furniture 4000 / Term Loan

Closing balances on Jun 15: cash 12000, bank 3800, furniture 4000,
loan -4000, capital -10000, sales -8000, rent 2200.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.config import LedgerConfig
from ledger_kernel.exceptions import BusinessNotFoundError, UnbalancedVoucherError, ValidationError
from ledger_kernel.models.account import Account, EntryType, GroupCategory
from ledger_kernel.models.voucher import Posting
from ledger_kernel.reporting.models import ReportType
from ledger_kernel.services.kernel import LedgerKernel


@pytest.fixture
def books(open_books, ledgers, post_voucher):
    led = ledgers
    post_voucher((led["cash"], "DR", "10000"), (led["capital"], "CR", "10000"), voucher_date=date(2024, 4, 10))
    post_voucher((led["cash"], "DR", "3000"), (led["sales"], "CR", "3000"), voucher_date=date(2024, 5, 5))
    post_voucher((led["rent"], "DR", "1000"), (led["cash"], "CR", "1000"), voucher_date=date(2024, 5, 20))
    post_voucher((led["bank"], "DR", "5000"), (led["sales"], "CR", "5000"), voucher_date=date(2024, 6, 2))
    post_voucher((led["rent"], "DR", "1200"), (led["bank"], "CR", "1200"), voucher_date=date(2024, 6, 5))
    post_voucher((led["furniture"], "DR", "4000"), (led["loan"], "CR", "4000"), voucher_date=date(2024, 6, 10))
    return led


def _by_code(lines):
    return {line.account_code: line for line in lines}


class TestTrialBalance:
    def test_all_time(self, kernel, open_books, books):
        report = kernel.reports.trial_balance(open_books.id)

        assert report.is_balanced
        assert report.total_debit == report.total_credit == Decimal("22000")
        assert [line.account_code for line in report.lines] == [
            "BANK", "CAP", "CASH", "FURN", "LOAN", "RENT", "SALES",
        ]
        cash = _by_code(report.lines)["CASH"]
        assert (cash.period_debit, cash.period_credit) == (Decimal("13000"), Decimal("1000"))
        assert (cash.debit, cash.credit) == (Decimal("12000"), Decimal("0"))
        sales = _by_code(report.lines)["SALES"]
        assert (sales.debit, sales.credit) == (Decimal("0"), Decimal("8000"))
        assert sales.category is GroupCategory.INCOME

    def test_period_opening_carries_prior_movement(self, kernel, open_books, books):
        report = kernel.reports.trial_balance(open_books.id, date(2024, 6, 1), date(2024, 6, 30))

        lines = _by_code(report.lines)
        assert lines["CASH"].opening_balance == Decimal("12000")
        assert lines["CASH"].period_debit == Decimal("0")
        assert lines["BANK"].opening_balance == Decimal("0")
        assert (lines["BANK"].period_debit, lines["BANK"].period_credit) == (
            Decimal("5000"),
            Decimal("1200"),
        )
        assert report.total_period_debit == report.total_period_credit == Decimal("10200")
        assert report.is_balanced

    def test_opening_balances_included(self, kernel, business, create_ledger):
        create_ledger(business.id, "CASH", "Cash", GroupCategory.CURRENT_ASSET, "750", EntryType.DR)
        create_ledger(business.id, "CAP", "Capital", GroupCategory.EQUITY, "750", EntryType.CR)

        report = kernel.reports.trial_balance(business.id)

        assert report.total_debit == report.total_credit == Decimal("750")
        assert report.difference == Decimal("0")

    def test_metadata(self, kernel, open_books, books):
        report = kernel.reports.trial_balance(open_books.id, date_to=date(2024, 5, 31))

        assert report.metadata.report_type is ReportType.TRIAL_BALANCE
        assert report.metadata.as_of_date == date(2024, 5, 31)
        assert report.metadata.generated_at.startswith("2024-06-15")
        assert report.total_debit == Decimal("13000")

    def test_reversed_range_rejected(self, kernel, open_books):
        with pytest.raises(ValidationError):
            kernel.reports.trial_balance(open_books.id, date(2024, 6, 30), date(2024, 6, 1))

    def test_unknown_business(self, kernel):
        with pytest.raises(BusinessNotFoundError):
            kernel.reports.trial_balance(uuid4())


class TestProfitLoss:
    def test_period_movement_only(self, kernel, open_books, books):
        report = kernel.reports.profit_loss(open_books.id, date(2024, 6, 1), date(2024, 6, 30))

        assert report.income == Decimal("5000")
        assert report.expense == Decimal("1200")
        assert report.net_profit == Decimal("3800")
        assert [(l.account_code, l.amount) for l in report.current.income.lines] == [
            ("SALES", Decimal("5000"))
        ]
        assert report.comparison is None
        assert report.variance is None

    def test_comparison_and_variance(self, kernel, open_books, books):
        report = kernel.reports.profit_loss(
            open_books.id,
            date(2024, 6, 1),
            date(2024, 6, 30),
            compare_from=date(2024, 5, 1),
            compare_to=date(2024, 5, 31),
        )

        assert report.comparison.net_profit == Decimal("2000")
        assert report.variance.income == Decimal("2000")
        assert report.variance.expense == Decimal("200")
        assert report.variance.net_profit == Decimal("1800")
        assert report.metadata.comparative_start == date(2024, 5, 1)

    def test_cancelled_voucher_excluded(self, kernel, open_books, books, post_voucher):
        refund = post_voucher(
            (books["sales"], "DR", "500"),
            (books["cash"], "CR", "500"),
            voucher_date=date(2024, 6, 12),
        )
        assert kernel.reports.profit_loss(open_books.id, date(2024, 6, 1)).income == Decimal("4500")

        kernel.lifecycle.cancel(refund.id, open_books.id)

        assert kernel.reports.profit_loss(open_books.id, date(2024, 6, 1)).income == Decimal("5000")

    def test_bad_comparison_range(self, kernel, open_books):
        with pytest.raises(ValidationError) as exc_info:
            kernel.reports.profit_loss(
                open_books.id,
                compare_from=date(2024, 5, 31),
                compare_to=date(2024, 5, 1),
            )
        assert exc_info.value.field == "compare_from"


class TestBalanceSheet:
    def test_sections(self, kernel, open_books, books):
        sheet = kernel.reports.balance_sheet(open_books.id, date(2024, 6, 15))

        assert [(l.account_code, l.amount) for l in sheet.current_assets.lines] == [
            ("BANK", Decimal("3800")),
            ("CASH", Decimal("12000")),
        ]
        assert sheet.fixed_assets.total == Decimal("4000")
        assert sheet.total_assets == Decimal("19800")
        assert sheet.total_liabilities == Decimal("4000")
        assert sheet.total_equity == Decimal("10000")

    def test_difference_is_unclosed_profit(self, kernel, open_books, books):
        sheet = kernel.reports.balance_sheet(open_books.id, date(2024, 6, 15))
        profit = kernel.reports.profit_loss(open_books.id, date_to=date(2024, 6, 15))

        assert sheet.difference == profit.net_profit == Decimal("5800")

    def test_as_of_earlier_date(self, kernel, open_books, books):
        sheet = kernel.reports.balance_sheet(open_books.id, date(2024, 5, 31))

        assert sheet.total_assets == Decimal("12000")
        assert sheet.liabilities.total == Decimal("0")
        assert sheet.difference == Decimal("2000")

    def test_liability_shown_as_absolute(self, kernel, open_books, books):
        loan = kernel.reports.balance_sheet(open_books.id).liabilities.lines[0]

        assert loan.balance == Decimal("-4000")
        assert loan.amount == Decimal("4000")

    def test_overdrawn_asset_reduces_total(self, kernel, open_books, books, post_voucher):
        post_voucher(
            (books["rent"], "DR", "15000"),
            (books["bank"], "CR", "15000"),
            voucher_date=date(2024, 6, 14),
        )

        sheet = kernel.reports.balance_sheet(open_books.id, date(2024, 6, 15))

        assert _by_code(sheet.current_assets.lines)["BANK"].amount == Decimal("-11200")
        assert sheet.current_assets.total == Decimal("800")


class TestDashboard:
    def test_kpis(self, kernel, open_books, books):
        summary = kernel.reports.dashboard_summary(open_books.id)

        assert summary.as_of == date(2024, 6, 15)
        kpis = summary.kpis
        assert kpis.total_assets == Decimal("19800")
        assert kpis.total_liabilities == Decimal("4000")
        assert kpis.equity == Decimal("10000")
        assert kpis.cash_bank_balance == Decimal("15800")
        assert kpis.net_profit_mtd == Decimal("3800")
        assert kpis.net_profit_ytd == Decimal("5800")
        assert kpis.total_stock_value == Decimal("0")
        assert kpis.total_unique_items == 0
        assert summary.metadata.period_start == date(2024, 4, 1)

    def test_recent_vouchers(self, kernel, open_books, books):
        summary = kernel.reports.dashboard_summary(open_books.id)

        assert len(summary.recent_vouchers) == 6
        assert summary.recent_vouchers[0].voucher_number == "JV-0006"
        assert summary.recent_vouchers[0].gross_amount == Decimal("8000")

    def test_recent_limit_from_config(self, session, deterministic_clock, open_books, books):
        kernel = LedgerKernel(
            session, clock=deterministic_clock, config=LedgerConfig(recent_voucher_limit=2)
        )

        summary = kernel.reports.dashboard_summary(open_books.id)

        assert [v.voucher_number for v in summary.recent_vouchers] == ["JV-0006", "JV-0005"]

    def test_cash_keywords_configurable(self, session, deterministic_clock, open_books, books):
        kernel = LedgerKernel(
            session, clock=deterministic_clock, config=LedgerConfig(cash_bank_keywords=("hdfc",))
        )

        assert kernel.reports.dashboard_summary(open_books.id).kpis.cash_bank_balance == Decimal("3800")

    def test_quiet_books_have_no_alerts(self, kernel, open_books, books):
        assert not kernel.reports.dashboard_summary(open_books.id).alerts.has_alerts

    def test_negative_cash_alert(self, kernel, open_books, books, post_voucher):
        post_voucher(
            (books["rent"], "DR", "20000"),
            (books["cash"], "CR", "20000"),
            voucher_date=date(2024, 6, 14),
        )

        alerts = kernel.reports.dashboard_summary(open_books.id).alerts

        assert alerts.negative_cash_ledgers == 1
        assert alerts.has_alerts

    def test_unbalanced_draft_alert(self, kernel, session, open_books, books, make_payload):
        draft = kernel.lifecycle.create(
            make_payload((books["cash"], "DR", "90"), (books["sales"], "CR", "90"))
        )
        assert kernel.reports.dashboard_summary(open_books.id).alerts.unbalanced_drafts == 0

        posting = (
            session.query(Posting)
            .filter(Posting.voucher_id == draft.id, Posting.line_no == 2)
            .one()
        )
        posting.amount = Decimal("80")
        session.flush()

        assert kernel.reports.dashboard_summary(open_books.id).alerts.unbalanced_drafts == 1
        with pytest.raises(UnbalancedVoucherError):
            kernel.lifecycle.post(draft.id, open_books.id)

    def test_missing_ledger_mapping_alert(self, kernel, session, open_books, books):
        session.add(
            Account(
                business_id=open_books.id,
                code="SUSPENSE",
                name="Suspense",
                normal_balance=EntryType.DR,
            )
        )
        session.flush()

        summary = kernel.reports.dashboard_summary(open_books.id)

        assert summary.alerts.missing_ledger_mappings == 1
        codes = [line.account_code for line in kernel.reports.trial_balance(open_books.id).lines]
        assert "SUSPENSE" in codes

    def test_as_of_in_earlier_month(self, kernel, open_books, books):
        kpis = kernel.reports.dashboard_summary(open_books.id, as_of=date(2024, 5, 31)).kpis

        assert kpis.net_profit_mtd == Decimal("2000")
        assert kpis.net_profit_ytd == Decimal("2000")
        assert kpis.cash_bank_balance == Decimal("12000")
