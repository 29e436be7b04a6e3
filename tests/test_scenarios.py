"""
End-to-end walkthroughs: one balance check and the two opening-position
outcomes, driven through LedgerKernel only.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import OpeningPositionPayload
from ledger_kernel.exceptions import OpeningPositionImbalanceError
from ledger_kernel.models.account import EntryType, GroupCategory

D1 = date(2024, 6, 15)

OPENING_REQUEST = {
    "opening_balances": [
        {"ledger_name": "Owner Capital", "group": "Capital Account", "dr_cr": "CR", "amount": 100000},
        {"ledger_name": "HDFC Bank", "group": "Bank Accounts", "dr_cr": "DR", "amount": 50000},
    ],
    "items": [{"name": "Widget Pro", "quantity": 1000, "unit_cost": 50}],
}


def test_running_balance_walkthrough(kernel, business, create_ledger, post_voucher):
    cash = create_ledger(business.id, "A", "Cash", GroupCategory.CURRENT_ASSET, "1000", EntryType.DR)
    capital = create_ledger(business.id, "B", "Capital", GroupCategory.EQUITY, "1000", EntryType.CR)
    kernel.businesses.mark_initialized(business)

    post_voucher((cash, "DR", "500"), (capital, "CR", "500"), voucher_date=D1)

    statement = kernel.statement(cash.id, business.id, date_to=D1)
    assert statement.opening_balance == Decimal("1000")
    assert [(l.amount, l.entry_type) for l in statement.lines] == [(Decimal("500"), EntryType.DR)]
    assert statement.lines[0].running_balance == Decimal("1500")
    assert kernel.ledger.closing_balance(cash.id, D1) == Decimal("1500")

    trial = kernel.reports.trial_balance(business.id, date_to=D1)
    assert trial.total_debit == Decimal("1500")
    assert trial.total_credit == Decimal("1500")


def test_opening_position_accepted(kernel, business):
    payload = OpeningPositionPayload.from_mapping(business.id, OPENING_REQUEST)

    result = kernel.submit_opening_position(payload)

    assert result.stock_value == Decimal("50000")
    assert result.ledger_count == 3
    assert sorted(a.name for a in kernel.list_accounts(business.id)) == [
        "HDFC Bank",
        "Owner Capital",
        "Stock-in-Hand",
    ]
    assert kernel.businesses.status(business.id).is_initialized


def test_opening_position_rejected(kernel, business):
    request = {**OPENING_REQUEST, "opening_balances": OPENING_REQUEST["opening_balances"][:1]}
    payload = OpeningPositionPayload.from_mapping(business.id, request)

    with pytest.raises(OpeningPositionImbalanceError) as exc_info:
        kernel.submit_opening_position(payload)

    assert exc_info.value.variance == Decimal("50000")
    assert not kernel.businesses.status(business.id).is_initialized
