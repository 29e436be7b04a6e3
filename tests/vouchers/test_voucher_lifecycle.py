"""
Voucher lifecycle: post, cancel and reverse.

Verifies:
- Posting moves DRAFT to POSTED and stamps posted_at from the clock.
- Cancelling keeps the postings but drops them from every balance.
- A reversal is a new POSTED voucher with every side flipped.
- Transitions not in the workflow are refused and nothing changes.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import (
    BooksNotOpenedError,
    InvalidReversalDateError,
    InvalidTransitionError,
    ValidationError,
    VoucherNotFoundError,
)
from ledger_kernel.models.account import EntryType
from ledger_kernel.models.voucher import Voucher, VoucherStatus, VoucherType

TODAY = date(2024, 6, 15)


@pytest.fixture
def draft(kernel, open_books, ledgers, make_payload):
    return kernel.lifecycle.create(
        make_payload((ledgers["rent"], "DR", "250"), (ledgers["cash"], "CR", "250"))
    )


class TestCreate:
    def test_default_mode_is_draft(self, draft):
        assert draft.status is VoucherStatus.DRAFT

    def test_post_mode(self, kernel, open_books, ledgers, make_payload):
        record = kernel.lifecycle.create(
            make_payload((ledgers["cash"], "DR", "10"), (ledgers["sales"], "CR", "10")),
            mode="post",
        )

        assert record.status is VoucherStatus.POSTED
        assert record.posted_at is not None

    def test_unknown_mode_rejected(self, kernel, open_books, ledgers, make_payload):
        with pytest.raises(ValidationError) as exc_info:
            kernel.lifecycle.create(
                make_payload((ledgers["cash"], "DR", "10"), (ledgers["sales"], "CR", "10")),
                mode="APPROVE",
            )
        assert exc_info.value.field == "mode"


class TestPost:
    def test_draft_becomes_posted(self, kernel, open_books, draft):
        record = kernel.lifecycle.post(draft.id, open_books.id)

        assert record.status is VoucherStatus.POSTED
        assert record.posted_at.date() == TODAY
        assert record.voucher_number == draft.voucher_number

    def test_posting_moves_balances(self, kernel, open_books, ledgers, draft):
        assert kernel.ledger.closing_balance(ledgers["rent"].id) == Decimal("0")

        kernel.lifecycle.post(draft.id, open_books.id)

        assert kernel.ledger.closing_balance(ledgers["rent"].id) == Decimal("250")
        assert kernel.ledger.closing_balance(ledgers["cash"].id) == Decimal("-250")

    def test_posting_twice_rejected(self, kernel, open_books, draft):
        kernel.lifecycle.post(draft.id, open_books.id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            kernel.lifecycle.post(draft.id, open_books.id)
        assert exc_info.value.from_status == "POSTED"
        assert exc_info.value.action == "post"

    def test_post_logs_event(self, kernel, open_books, draft, captured_logs):
        kernel.lifecycle.post(draft.id, open_books.id)

        posted = [r for r in captured_logs() if r["message"] == "voucher_posted"]
        assert len(posted) == 1
        assert posted[0]["voucher_id"] == str(draft.id)
        assert posted[0]["voucher_number"] == "JV-0001"

    def test_unknown_voucher(self, kernel, open_books):
        with pytest.raises(VoucherNotFoundError):
            kernel.lifecycle.post(uuid4(), open_books.id)

    def test_requires_open_books(self, kernel, business, ledgers):
        with pytest.raises(BooksNotOpenedError):
            kernel.lifecycle.post(uuid4(), business.id)


class TestCancel:
    def test_cancel_posted_voucher(self, kernel, session, open_books, ledgers, post_voucher):
        posted = post_voucher((ledgers["cash"], "DR", "75"), (ledgers["sales"], "CR", "75"))

        record = kernel.lifecycle.cancel(posted.id, open_books.id, reason="  Duplicate entry ")

        assert record.status is VoucherStatus.CANCELLED
        assert record.cancelled_at.date() == TODAY
        assert len(record.postings) == 2
        assert session.get(Voucher, posted.id).cancel_reason == "Duplicate entry"

    def test_cancelled_postings_leave_balances(self, kernel, open_books, ledgers, post_voucher):
        posted = post_voucher((ledgers["cash"], "DR", "75"), (ledgers["sales"], "CR", "75"))
        assert kernel.ledger.closing_balance(ledgers["cash"].id) == Decimal("75")

        kernel.lifecycle.cancel(posted.id, open_books.id)

        assert kernel.ledger.closing_balance(ledgers["cash"].id) == Decimal("0")
        assert kernel.statement(ledgers["cash"].id, open_books.id).lines == ()

    def test_cancel_draft(self, kernel, open_books, draft):
        record = kernel.lifecycle.cancel(draft.id, open_books.id)

        assert record.status is VoucherStatus.CANCELLED
        assert record.posted_at is None

    def test_cancelled_is_terminal(self, kernel, open_books, draft):
        kernel.lifecycle.cancel(draft.id, open_books.id)

        for action in (kernel.lifecycle.post, kernel.lifecycle.cancel, kernel.lifecycle.reverse):
            with pytest.raises(InvalidTransitionError):
                action(draft.id, open_books.id)

    def test_cancel_logs_previous_status(self, kernel, open_books, draft, captured_logs):
        kernel.lifecycle.cancel(draft.id, open_books.id, reason="typo")

        record = next(r for r in captured_logs() if r["message"] == "voucher_cancelled")
        assert record["previous_status"] == "DRAFT"
        assert record["reason"] == "typo"


class TestReverse:
    @pytest.fixture
    def sale(self, open_books, ledgers, post_voucher):
        return post_voucher(
            (ledgers["bank"], "DR", "1200"),
            (ledgers["sales"], "CR", "1000"),
            (ledgers["loan"], "CR", "200"),
            voucher_type=VoucherType.SALES,
            voucher_date=date(2024, 6, 1),
        )

    def test_mirror_voucher_posted(self, kernel, open_books, sale):
        result = kernel.lifecycle.reverse(sale.id, open_books.id)

        reversal = kernel.get_voucher_by_id(result.reversal_voucher_id, open_books.id)
        assert reversal.status is VoucherStatus.POSTED
        assert reversal.voucher_type is VoucherType.SALES
        assert reversal.reversal_of_id == sale.id
        assert reversal.narration == "Reversal of SV-0001"
        assert [(p.account_id, p.entry_type, p.amount) for p in reversal.postings] == [
            (p.account_id, p.entry_type.opposite, p.amount) for p in sale.postings
        ]

    def test_original_stays_posted(self, kernel, open_books, sale):
        kernel.lifecycle.reverse(sale.id, open_books.id)

        assert kernel.get_voucher_by_id(sale.id, open_books.id).status is VoucherStatus.POSTED

    def test_balances_net_to_zero(self, kernel, open_books, ledgers, sale):
        kernel.lifecycle.reverse(sale.id, open_books.id)

        for key in ("bank", "sales", "loan"):
            assert kernel.ledger.closing_balance(ledgers[key].id) == Decimal("0")

    def test_default_date_is_today(self, kernel, open_books, sale):
        result = kernel.lifecycle.reverse(sale.id, open_books.id)
        assert result.reversal_date == TODAY

    def test_default_date_never_before_original(self, kernel, open_books, ledgers, post_voucher):
        future = post_voucher(
            (ledgers["cash"], "DR", "5"),
            (ledgers["sales"], "CR", "5"),
            voucher_date=date(2024, 7, 1),
        )

        result = kernel.lifecycle.reverse(future.id, open_books.id)

        assert result.reversal_date == date(2024, 7, 1)

    def test_explicit_date_before_original_rejected(self, kernel, session, open_books, sale):
        with pytest.raises(InvalidReversalDateError) as exc_info:
            kernel.lifecycle.reverse(sale.id, open_books.id, reversal_date=date(2024, 5, 31))

        assert exc_info.value.original_date == "2024-06-01"
        assert session.query(Voucher).filter(Voucher.reversal_of_id == sale.id).count() == 0

    def test_explicit_date_on_original_allowed(self, kernel, open_books, sale):
        result = kernel.lifecycle.reverse(sale.id, open_books.id, reversal_date=date(2024, 6, 1))

        line = kernel.get_voucher_by_id(result.reversal_voucher_id, open_books.id).postings[0]
        assert line.posting_date == date(2024, 6, 1)

    def test_reversal_numbers(self, kernel, open_books, sale):
        first = kernel.lifecycle.reverse(sale.id, open_books.id)
        second = kernel.lifecycle.reverse(sale.id, open_books.id)
        third = kernel.lifecycle.reverse(sale.id, open_books.id)

        assert [first.reversal_number, second.reversal_number, third.reversal_number] == [
            "REV-SV-0001",
            "REV-SV-0001-2",
            "REV-SV-0001-3",
        ]

    def test_draft_cannot_be_reversed(self, kernel, open_books, draft):
        with pytest.raises(InvalidTransitionError) as exc_info:
            kernel.lifecycle.reverse(draft.id, open_books.id)
        assert exc_info.value.from_status == "DRAFT"

    def test_reverse_logs_event(self, kernel, open_books, sale, captured_logs):
        result = kernel.lifecycle.reverse(sale.id, open_books.id)

        record = next(r for r in captured_logs() if r["message"] == "voucher_reversed")
        assert record["reversal_number"] == result.reversal_number
        assert record["original_number"] == "SV-0001"


class TestRequestContext:
    def test_correlation_id_on_every_line(
        self, kernel, open_books, ledgers, make_payload, captured_logs, test_actor_id
    ):
        with kernel.request(business_id=open_books.id, actor_id=test_actor_id):
            record = kernel.lifecycle.create(
                make_payload((ledgers["cash"], "DR", "10"), (ledgers["sales"], "CR", "10"))
            )
            kernel.lifecycle.post(record.id, open_books.id)

        lines = [
            r for r in captured_logs() if r["message"] in ("voucher_created", "voucher_posted")
        ]
        assert len(lines) == 2
        assert len({r["correlation_id"] for r in lines}) == 1
        assert all(r["actor_id"] == str(test_actor_id) for r in lines)

    def test_context_cleared_after_request(self, kernel, open_books):
        from ledger_kernel.logging_config import LogContext

        with kernel.request(business_id=open_books.id):
            assert "correlation_id" in LogContext.get_all()
        assert "correlation_id" not in LogContext.get_all()


def test_entry_type_opposite():
    assert EntryType.DR.opposite is EntryType.CR
    assert EntryType.CR.opposite is EntryType.DR
