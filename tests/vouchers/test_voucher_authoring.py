"""
Voucher authoring: create, update and delete drafts, numbering, listing
and the daybook.

Verifies:
- Unbalanced or malformed vouchers are rejected before anything is written.
- Ordinary vouchers are refused until the books are opened.
- Accounts of another business are rejected.
- Generated numbers follow the per-type prefix and skip numbers in use.
- Only DRAFT vouchers can be updated or deleted.
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import VoucherFilter, VoucherPayload
from ledger_kernel.exceptions import (
    AccountOwnershipError,
    BooksNotOpenedError,
    DuplicateVoucherNumberError,
    UnbalancedVoucherError,
    ValidationError,
    VoucherNotEditableError,
    VoucherNotFoundError,
)
from ledger_kernel.models.account import EntryType, GroupCategory
from ledger_kernel.models.voucher import Posting, Voucher, VoucherStatus, VoucherType
from ledger_kernel.services.sequence_service import format_voucher_number


class TestCreateVoucher:
    def test_draft_created_with_numbered_lines(self, kernel, open_books, ledgers, make_payload):
        payload = make_payload(
            (ledgers["cash"], "DR", "500"),
            (ledgers["capital"], "CR", "500"),
            narration="Capital introduced",
        )

        voucher_id = kernel.vouchers.create_voucher(payload)

        record = kernel.get_voucher_by_id(voucher_id, open_books.id)
        assert record.status is VoucherStatus.DRAFT
        assert record.voucher_number == "JV-0001"
        assert record.posted_at is None
        assert [p.line_no for p in record.postings] == [1, 2]
        assert record.postings[0].account_code == "CASH"
        assert record.debit_total == record.credit_total == Decimal("500")

    def test_numbers_per_type(self, kernel, open_books, ledgers, make_payload):
        legs = ((ledgers["cash"], "DR", "10"), (ledgers["sales"], "CR", "10"))

        first = kernel.vouchers.create_voucher(make_payload(*legs, voucher_type=VoucherType.RECEIPT))
        second = kernel.vouchers.create_voucher(make_payload(*legs, voucher_type=VoucherType.RECEIPT))
        journal = kernel.vouchers.create_voucher(make_payload(*legs))

        numbers = [
            kernel.get_voucher_by_id(v, open_books.id).voucher_number
            for v in (first, second, journal)
        ]
        assert numbers == ["RV-0001", "RV-0002", "JV-0001"]

    def test_generated_number_skips_manual_number(self, kernel, open_books, ledgers, make_payload):
        legs = ((ledgers["rent"], "DR", "10"), (ledgers["cash"], "CR", "10"))
        kernel.vouchers.create_voucher(
            make_payload(*legs, voucher_type=VoucherType.PAYMENT, voucher_number="PV-0001")
        )

        generated = kernel.vouchers.create_voucher(
            make_payload(*legs, voucher_type=VoucherType.PAYMENT)
        )

        assert kernel.get_voucher_by_id(generated, open_books.id).voucher_number == "PV-0002"

    def test_duplicate_manual_number_rejected(self, kernel, open_books, ledgers, make_payload):
        legs = ((ledgers["cash"], "DR", "10"), (ledgers["sales"], "CR", "10"))
        kernel.vouchers.create_voucher(make_payload(*legs, voucher_number="INV-7"))

        with pytest.raises(DuplicateVoucherNumberError) as exc_info:
            kernel.vouchers.create_voucher(make_payload(*legs, voucher_number="INV-7"))
        assert exc_info.value.voucher_number == "INV-7"

    def test_unbalanced_rejected_and_nothing_written(
        self, kernel, session, open_books, ledgers, make_payload
    ):
        payload = make_payload((ledgers["cash"], "DR", "100"), (ledgers["sales"], "CR", "90"))

        with pytest.raises(UnbalancedVoucherError):
            kernel.vouchers.create_voucher(payload)

        assert session.query(Voucher).count() == 0
        assert session.query(Posting).count() == 0

    def test_single_leg_rejected(self, kernel, open_books, ledgers, make_payload):
        with pytest.raises(ValidationError):
            kernel.vouchers.create_voucher(make_payload((ledgers["cash"], "DR", "100")))

    def test_books_not_opened(self, kernel, business, ledgers, make_payload, captured_logs):
        payload = make_payload((ledgers["cash"], "DR", "1"), (ledgers["sales"], "CR", "1"))

        with pytest.raises(BooksNotOpenedError) as exc_info:
            kernel.vouchers.create_voucher(payload)

        assert str(exc_info.value) == "Books not opened yet. Complete Opening Position first."
        assert any(r["message"] == "books_not_opened" for r in captured_logs())

    def test_foreign_account_rejected(
        self, kernel, open_books, ledgers, make_payload, create_business, create_ledger
    ):
        other = create_business("Other Co")
        foreign = create_ledger(other.id, "SALES", "Sales", GroupCategory.INCOME)

        with pytest.raises(AccountOwnershipError) as exc_info:
            kernel.vouchers.create_voucher(
                make_payload((ledgers["cash"], "DR", "10"), (foreign, "CR", "10"))
            )
        assert exc_info.value.account_ids == [str(foreign.id)]

    def test_unknown_account_rejected(self, kernel, open_books, ledgers, make_payload):
        stray = SimpleNamespace(id=uuid4())
        with pytest.raises(AccountOwnershipError):
            kernel.vouchers.create_voucher(
                make_payload((ledgers["cash"], "DR", "10"), (stray, "CR", "10"))
            )

    def test_create_logs_event(self, kernel, open_books, ledgers, make_payload, captured_logs):
        kernel.vouchers.create_voucher(
            make_payload((ledgers["cash"], "DR", "10"), (ledgers["sales"], "CR", "10"))
        )

        created = [r for r in captured_logs() if r["message"] == "voucher_created"]
        assert len(created) == 1
        assert created[0]["business_id"] == str(open_books.id)
        assert created[0]["gross_amount"] == "20"

    def test_payload_from_mapping(self, kernel, open_books, ledgers):
        payload = VoucherPayload.from_mapping(
            open_books.id,
            {
                "voucherType": "receipt",
                "voucherDate": "2024-06-10",
                "narration": "  Counter sale  ",
                "entries": [
                    {"accountId": str(ledgers["cash"].id), "entryType": "dr", "amount": "250.50"},
                    {"ledger_id": str(ledgers["sales"].id), "entry_type": "CR", "amount": 250.5},
                ],
            },
        )

        record = kernel.get_voucher_by_id(kernel.vouchers.create_voucher(payload), open_books.id)

        assert record.voucher_type is VoucherType.RECEIPT
        assert record.voucher_date == date(2024, 6, 10)
        assert record.narration == "Counter sale"
        assert record.debit_total == Decimal("250.50")

    def test_payload_missing_type_rejected(self, open_books):
        with pytest.raises(ValidationError) as exc_info:
            VoucherPayload.from_mapping(open_books.id, {"voucher_date": "2024-06-10"})
        assert exc_info.value.field == "voucher_type"


class TestUpdateVoucher:
    def test_replaces_header_and_lines(self, kernel, open_books, ledgers, make_payload):
        voucher_id = kernel.vouchers.create_voucher(
            make_payload((ledgers["cash"], "DR", "100"), (ledgers["sales"], "CR", "100"))
        )

        record = kernel.vouchers.update_voucher(
            voucher_id,
            make_payload(
                (ledgers["bank"], "DR", "300"),
                (ledgers["sales"], "CR", "200"),
                (ledgers["capital"], "CR", "100"),
                voucher_date=date(2024, 6, 1),
                narration="Corrected",
            ),
        )

        assert record.voucher_number == "JV-0001"
        assert record.voucher_date == date(2024, 6, 1)
        assert record.narration == "Corrected"
        assert [(p.line_no, p.account_code) for p in record.postings] == [
            (1, "BANK"),
            (2, "SALES"),
            (3, "CAP"),
        ]
        assert all(p.posting_date == date(2024, 6, 1) for p in record.postings)

    def test_renumber_to_taken_number_rejected(self, kernel, open_books, ledgers, make_payload):
        legs = ((ledgers["cash"], "DR", "10"), (ledgers["sales"], "CR", "10"))
        kernel.vouchers.create_voucher(make_payload(*legs))
        second = kernel.vouchers.create_voucher(make_payload(*legs))

        with pytest.raises(DuplicateVoucherNumberError):
            kernel.vouchers.update_voucher(second, make_payload(*legs, voucher_number="JV-0001"))

        assert kernel.get_voucher_by_id(second, open_books.id).voucher_number == "JV-0002"

    def test_unbalanced_update_keeps_original(self, kernel, open_books, ledgers, make_payload):
        voucher_id = kernel.vouchers.create_voucher(
            make_payload((ledgers["cash"], "DR", "100"), (ledgers["sales"], "CR", "100"))
        )

        with pytest.raises(UnbalancedVoucherError):
            kernel.vouchers.update_voucher(
                voucher_id,
                make_payload((ledgers["cash"], "DR", "100"), (ledgers["sales"], "CR", "1")),
            )

        record = kernel.get_voucher_by_id(voucher_id, open_books.id)
        assert record.credit_total == Decimal("100")

    def test_posted_voucher_not_editable(self, kernel, open_books, ledgers, post_voucher, make_payload):
        posted = post_voucher((ledgers["cash"], "DR", "10"), (ledgers["sales"], "CR", "10"))

        with pytest.raises(VoucherNotEditableError) as exc_info:
            kernel.vouchers.update_voucher(
                posted.id,
                make_payload((ledgers["cash"], "DR", "20"), (ledgers["sales"], "CR", "20")),
            )
        assert exc_info.value.status == "POSTED"

    def test_unknown_voucher(self, kernel, open_books, ledgers, make_payload):
        with pytest.raises(VoucherNotFoundError):
            kernel.vouchers.update_voucher(
                uuid4(),
                make_payload((ledgers["cash"], "DR", "20"), (ledgers["sales"], "CR", "20")),
            )


class TestDeleteVoucher:
    def test_draft_deleted_with_postings(self, kernel, session, open_books, ledgers, make_payload):
        voucher_id = kernel.vouchers.create_voucher(
            make_payload((ledgers["cash"], "DR", "10"), (ledgers["sales"], "CR", "10"))
        )

        kernel.vouchers.delete_voucher(voucher_id, open_books.id)

        with pytest.raises(VoucherNotFoundError):
            kernel.get_voucher_by_id(voucher_id, open_books.id)
        assert session.query(Posting).filter(Posting.voucher_id == voucher_id).count() == 0

    def test_posted_voucher_cannot_be_deleted(self, kernel, open_books, ledgers, post_voucher):
        posted = post_voucher((ledgers["cash"], "DR", "10"), (ledgers["sales"], "CR", "10"))

        with pytest.raises(VoucherNotEditableError):
            kernel.vouchers.delete_voucher(posted.id, open_books.id)

    def test_voucher_of_other_business_not_found(
        self, kernel, open_books, ledgers, make_payload, create_business
    ):
        voucher_id = kernel.vouchers.create_voucher(
            make_payload((ledgers["cash"], "DR", "10"), (ledgers["sales"], "CR", "10"))
        )
        other = create_business("Other Co")
        kernel.businesses.mark_initialized(other)

        with pytest.raises(VoucherNotFoundError):
            kernel.vouchers.delete_voucher(voucher_id, other.id)


class TestListingAndDaybook:
    @pytest.fixture
    def sample_vouchers(self, kernel, open_books, ledgers, make_payload, post_voucher):
        cash, sales, rent = ledgers["cash"], ledgers["sales"], ledgers["rent"]
        post_voucher(
            (cash, "DR", "100"),
            (sales, "CR", "100"),
            voucher_type=VoucherType.SALES,
            voucher_date=date(2024, 6, 1),
            narration="Counter sale",
        )
        post_voucher(
            (rent, "DR", "40"),
            (cash, "CR", "40"),
            voucher_type=VoucherType.PAYMENT,
            voucher_date=date(2024, 6, 5),
            narration="June rent",
        )
        kernel.vouchers.create_voucher(
            make_payload(
                (cash, "DR", "60"),
                (sales, "CR", "60"),
                voucher_type=VoucherType.SALES,
                voucher_date=date(2024, 6, 5),
                narration="Pending sale",
            )
        )

    def test_newest_first_with_gross_amount(self, kernel, open_books, sample_vouchers):
        page = kernel.list_vouchers(VoucherFilter(business_id=open_books.id))

        assert page.total == 3
        assert [v.voucher_number for v in page.items] == ["SV-0002", "PV-0001", "SV-0001"]
        assert page.items[0].gross_amount == Decimal("120")

    def test_filters(self, kernel, open_books, sample_vouchers):
        by_type = kernel.list_vouchers(
            VoucherFilter(business_id=open_books.id, voucher_type=VoucherType.SALES)
        )
        by_status = kernel.list_vouchers(
            VoucherFilter(business_id=open_books.id, status=VoucherStatus.DRAFT)
        )
        by_range = kernel.list_vouchers(
            VoucherFilter(
                business_id=open_books.id,
                date_from=date(2024, 6, 2),
                date_to=date(2024, 6, 30),
            )
        )
        by_search = kernel.list_vouchers(VoucherFilter(business_id=open_books.id, search="rent"))

        assert by_type.total == 2
        assert [v.narration for v in by_status.items] == ["Pending sale"]
        assert by_range.total == 2
        assert [v.voucher_number for v in by_search.items] == ["PV-0001"]

    def test_search_wildcards_match_literally(self, kernel, open_books, sample_vouchers):
        percent = kernel.list_vouchers(VoucherFilter(business_id=open_books.id, search="%"))
        underscore = kernel.list_vouchers(VoucherFilter(business_id=open_books.id, search="_"))
        mixed = kernel.list_vouchers(VoucherFilter(business_id=open_books.id, search="J_ne"))

        assert percent.total == 0
        assert underscore.total == 0
        assert mixed.total == 0

    def test_pagination(self, kernel, open_books, sample_vouchers):
        page = kernel.list_vouchers(VoucherFilter(business_id=open_books.id, limit=2, offset=2))

        assert page.total == 3
        assert page.limit == 2
        assert [v.voucher_number for v in page.items] == ["SV-0001"]

    def test_limit_capped_by_max_page_size(self, session, deterministic_clock, open_books, sample_vouchers):
        from ledger_kernel.config import LedgerConfig
        from ledger_kernel.services.kernel import LedgerKernel

        small = LedgerKernel(
            session,
            clock=deterministic_clock,
            config=LedgerConfig(default_page_size=1, max_page_size=2),
        )

        assert small.list_vouchers(VoucherFilter(business_id=open_books.id)).limit == 1
        assert small.list_vouchers(VoucherFilter(business_id=open_books.id, limit=50)).limit == 2

    def test_filter_from_mapping(self, open_books):
        criteria = VoucherFilter.from_mapping(
            open_books.id, {"type": "payment", "status": "posted", "limit": "5", "q": "rent"}
        )
        assert criteria.voucher_type is VoucherType.PAYMENT
        assert criteria.status is VoucherStatus.POSTED
        assert criteria.limit == 5
        assert criteria.search == "rent"

    def test_filter_rejects_negative_offset(self, open_books):
        with pytest.raises(ValidationError):
            VoucherFilter.from_mapping(open_books.id, {"offset": -1})

    def test_daybook_totals(self, kernel, open_books, sample_vouchers):
        day = kernel.vouchers.daybook(open_books.id, date(2024, 6, 5))

        assert [(e.voucher_number, e.status) for e in day] == [
            ("PV-0001", VoucherStatus.POSTED),
            ("SV-0002", VoucherStatus.DRAFT),
        ]
        assert day[0].debit_total == day[0].credit_total == Decimal("40")

    def test_daybook_excludes_cancelled(self, kernel, open_books, sample_vouchers):
        june_first = kernel.vouchers.daybook(open_books.id, date(2024, 6, 1))
        kernel.lifecycle.cancel(june_first[0].id, open_books.id)

        assert kernel.vouchers.daybook(open_books.id, date(2024, 6, 1)) == []


class TestNumberFormat:
    @pytest.mark.parametrize(
        "voucher_type, expected",
        [
            (VoucherType.JOURNAL, "JV-0007"),
            (VoucherType.PAYMENT, "PV-0007"),
            (VoucherType.RECEIPT, "RV-0007"),
            (VoucherType.SALES, "SV-0007"),
            (VoucherType.PURCHASE, "PU-0007"),
            (VoucherType.CONTRA, "CV-0007"),
        ],
    )
    def test_prefixes(self, voucher_type, expected):
        assert format_voucher_number(voucher_type, 7) == expected

    def test_wide_numbers_not_truncated(self):
        assert format_voucher_number(VoucherType.JOURNAL, 12345) == "JV-12345"
