"""Read-only reports over posted vouchers."""

from ledger_kernel.reporting.models import (
    BalanceSheetReport,
    DashboardSummary,
    ProfitLossReport,
    ReportType,
    TrialBalanceReport,
)
from ledger_kernel.reporting.service import ReportingService

__all__ = [
    "BalanceSheetReport",
    "DashboardSummary",
    "ProfitLossReport",
    "ReportType",
    "ReportingService",
    "TrialBalanceReport",
]
