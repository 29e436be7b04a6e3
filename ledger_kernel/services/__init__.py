"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.business_service import BusinessService
from ledger_kernel.services.chart_of_accounts import ChartOfAccountsService
from ledger_kernel.services.kernel import LedgerKernel
from ledger_kernel.services.lifecycle_service import (
    CreateMode,
    LifecycleService,
    ReversalResult,
)
from ledger_kernel.services.opening_position_service import (
    OpeningPositionResult,
    OpeningPositionService,
)
from ledger_kernel.services.sequence_service import SequenceService
from ledger_kernel.services.voucher_service import VoucherService

__all__ = [
    "BusinessService",
    "ChartOfAccountsService",
    "CreateMode",
    "LedgerKernel",
    "LifecycleService",
    "OpeningPositionResult",
    "OpeningPositionService",
    "ReversalResult",
    "SequenceService",
    "VoucherService",
]
