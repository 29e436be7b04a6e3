"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the kernel boundary:
    request payloads (VoucherPayload, VoucherFilter, OpeningPositionPayload)
    and read-side records (VoucherRecord, LedgerStatement, AccountRecord...).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    ``from_mapping()`` class methods parse loosely-typed request data
    (snake_case or camelCase keys) and raise ValidationError on malformed
    input.  ``from_model()`` class methods are boundary converters invoked
    only from selectors and services.

Invariants enforced:
    - Monetary fields are Decimal, never float.
    - Payload entries are tuples; DTOs are frozen after construction.

Data flow:
    mapping -> VoucherPayload -> VoucherService -> Voucher/Posting rows
    Voucher/Posting rows -> VoucherRecord / LedgerLine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

from ledger_kernel.db.types import ZERO, to_money
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.models.account import EntryType, GroupCategory
from ledger_kernel.models.voucher import VoucherStatus, VoucherType

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account, AccountGroup
    from ledger_kernel.models.voucher import Posting, Voucher


# =============================================================================
# Parsing helpers
# =============================================================================


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key wins; lets callers use snake_case or camelCase."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def parse_uuid(value: Any, field_name: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a UUID", field=field_name) from None


def parse_date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(f"{field_name} must be an ISO date", field=field_name)


def parse_optional_date(value: Any, field_name: str) -> date | None:
    if value is None or value == "":
        return None
    return parse_date(value, field_name)


def parse_amount(value: Any, field_name: str) -> Decimal:
    try:
        return to_money(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be a number", field=field_name) from None


def parse_entry_type(value: Any, field_name: str) -> EntryType:
    if isinstance(value, EntryType):
        return value
    try:
        return EntryType(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f"{field_name} must be DR or CR", field=field_name) from None


def parse_voucher_type(value: Any, field_name: str = "voucher_type") -> VoucherType:
    if isinstance(value, VoucherType):
        return value
    try:
        return VoucherType(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(t.value for t in VoucherType)
        raise ValidationError(
            f"{field_name} must be one of {allowed}", field=field_name
        ) from None


def parse_voucher_status(value: Any, field_name: str = "status") -> VoucherStatus:
    if isinstance(value, VoucherStatus):
        return value
    try:
        return VoucherStatus(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(s.value for s in VoucherStatus)
        raise ValidationError(
            f"{field_name} must be one of {allowed}", field=field_name
        ) from None


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# =============================================================================
# Voucher input
# =============================================================================


@dataclass(frozen=True)
class EntryLine:
    """One requested leg of a voucher."""

    account_id: UUID
    entry_type: EntryType
    amount: Decimal

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], index: int = 0) -> EntryLine:
        prefix = f"entries[{index}]"
        if not isinstance(data, Mapping):
            raise ValidationError(f"{prefix} must be an object", field=prefix)
        account = _pick(data, "account_id", "accountId", "ledger_id", "ledgerId")
        if account is None:
            raise ValidationError(f"{prefix}.account_id is required", field=f"{prefix}.account_id")
        entry_type = _pick(data, "entry_type", "entryType")
        if entry_type is None:
            raise ValidationError(f"{prefix}.entry_type is required", field=f"{prefix}.entry_type")
        amount = _pick(data, "amount")
        if amount is None:
            raise ValidationError(f"{prefix}.amount is required", field=f"{prefix}.amount")
        return cls(
            account_id=parse_uuid(account, f"{prefix}.account_id"),
            entry_type=parse_entry_type(entry_type, f"{prefix}.entry_type"),
            amount=parse_amount(amount, f"{prefix}.amount"),
        )


@dataclass(frozen=True)
class VoucherPayload:
    """Request to create or replace a voucher."""

    business_id: UUID
    voucher_type: VoucherType
    voucher_date: date
    entries: tuple[EntryLine, ...]
    voucher_number: str | None = None
    narration: str | None = None
    actor_id: UUID | None = None

    @classmethod
    def from_mapping(cls, business_id: UUID, data: Mapping[str, Any]) -> VoucherPayload:
        """Parse a request body.  Balance is checked later by validate_entries."""
        if not isinstance(data, Mapping):
            raise ValidationError("Voucher payload must be an object")

        voucher_type = _pick(data, "voucher_type", "voucherType")
        if voucher_type is None:
            raise ValidationError("voucher_type is required", field="voucher_type")
        voucher_date = _pick(data, "voucher_date", "voucherDate", "date")
        if voucher_date is None:
            raise ValidationError("voucher_date is required", field="voucher_date")

        raw_entries = _pick(data, "entries", "postings", default=[])
        if not isinstance(raw_entries, (list, tuple)):
            raise ValidationError("entries must be a list", field="entries")

        actor = _pick(data, "actor_id", "actorId")
        return cls(
            business_id=parse_uuid(business_id, "business_id"),
            voucher_type=parse_voucher_type(voucher_type),
            voucher_date=parse_date(voucher_date, "voucher_date"),
            entries=tuple(
                EntryLine.from_mapping(entry, i) for i, entry in enumerate(raw_entries)
            ),
            voucher_number=_optional_text(_pick(data, "voucher_number", "voucherNumber")),
            narration=_optional_text(_pick(data, "narration")),
            actor_id=parse_uuid(actor, "actor_id") if actor is not None else None,
        )


@dataclass(frozen=True)
class VoucherFilter:
    """Listing criteria.  ``limit=None`` means the configured page size."""

    business_id: UUID
    date_from: date | None = None
    date_to: date | None = None
    voucher_type: VoucherType | None = None
    status: VoucherStatus | None = None
    search: str | None = None
    limit: int | None = None
    offset: int = 0

    @classmethod
    def from_mapping(cls, business_id: UUID, data: Mapping[str, Any]) -> VoucherFilter:
        voucher_type = _pick(data, "voucher_type", "voucherType", "type")
        status = _pick(data, "status")
        limit = _pick(data, "limit")
        offset = _pick(data, "offset", default=0)
        try:
            limit = int(limit) if limit is not None else None
            offset = int(offset)
        except (TypeError, ValueError):
            raise ValidationError("limit and offset must be integers", field="limit") from None
        if offset < 0 or (limit is not None and limit < 1):
            raise ValidationError("limit must be positive and offset non-negative", field="limit")
        return cls(
            business_id=parse_uuid(business_id, "business_id"),
            date_from=parse_optional_date(_pick(data, "date_from", "from"), "date_from"),
            date_to=parse_optional_date(_pick(data, "date_to", "to"), "date_to"),
            voucher_type=parse_voucher_type(voucher_type) if voucher_type else None,
            status=parse_voucher_status(status) if status else None,
            search=_optional_text(_pick(data, "search", "q")),
            limit=limit,
            offset=offset,
        )


# =============================================================================
# Opening position input
# =============================================================================


@dataclass(frozen=True)
class OpeningBalanceLine:
    """A ledger's starting balance, named rather than referenced by id."""

    ledger_name: str
    group_name: str
    amount: Decimal
    entry_type: EntryType | None = None
    ledger_code: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], index: int = 0) -> OpeningBalanceLine:
        prefix = f"opening_balances[{index}]"
        name = _optional_text(_pick(data, "ledger_name", "ledgerName", "name"))
        if name is None:
            raise ValidationError(f"{prefix}.ledger_name is required", field=f"{prefix}.ledger_name")
        group = _optional_text(_pick(data, "group_name", "groupName", "group"))
        if group is None:
            raise ValidationError(f"{prefix}.group is required", field=f"{prefix}.group")
        amount = parse_amount(_pick(data, "amount", default=0), f"{prefix}.amount")
        if amount < 0:
            raise ValidationError(f"{prefix}.amount cannot be negative", field=f"{prefix}.amount")
        side = _pick(data, "entry_type", "entryType", "dr_cr", "drCr")
        return cls(
            ledger_name=name,
            group_name=group,
            amount=amount,
            entry_type=parse_entry_type(side, f"{prefix}.dr_cr") if side else None,
            ledger_code=_optional_text(_pick(data, "ledger_code", "ledgerCode", "code")),
        )


@dataclass(frozen=True)
class InventoryItem:
    """Opening stock for one product."""

    name: str
    quantity: Decimal
    unit_cost: Decimal
    sku: str | None = None
    uom: str | None = None
    category: str | None = None

    @property
    def total_value(self) -> Decimal:
        return self.quantity * self.unit_cost

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], index: int = 0) -> InventoryItem:
        prefix = f"items[{index}]"
        name = _optional_text(_pick(data, "name", "product_name", "productName"))
        if name is None:
            raise ValidationError(f"{prefix}.name is required", field=f"{prefix}.name")
        quantity = parse_amount(
            _pick(data, "quantity", "initial_qty", "initialQty", default=0),
            f"{prefix}.quantity",
        )
        unit_cost = parse_amount(
            _pick(data, "unit_cost", "unitCost", default=0), f"{prefix}.unit_cost"
        )
        if quantity < 0 or unit_cost < 0:
            raise ValidationError(
                f"{prefix} quantity and unit cost cannot be negative", field=prefix
            )
        return cls(
            name=name,
            quantity=quantity,
            unit_cost=unit_cost,
            sku=_optional_text(_pick(data, "sku")),
            uom=_optional_text(_pick(data, "uom")),
            category=_optional_text(_pick(data, "category")),
        )


@dataclass(frozen=True)
class OpeningPositionPayload:
    """The one-time bootstrap submission."""

    business_id: UUID
    balances: tuple[OpeningBalanceLine, ...]
    items: tuple[InventoryItem, ...] = ()
    as_of_date: date | None = None
    actor_id: UUID | None = None

    @classmethod
    def from_mapping(cls, business_id: UUID, data: Mapping[str, Any]) -> OpeningPositionPayload:
        balances = _pick(data, "opening_balances", "openingBalances", default=[])
        items = _pick(data, "items", "inventory", default=[])
        if not isinstance(balances, (list, tuple)) or not isinstance(items, (list, tuple)):
            raise ValidationError("opening_balances and items must be lists")
        if not balances and not items:
            raise ValidationError(
                "Provide at least one opening balance or inventory item",
                field="opening_balances",
            )
        actor = _pick(data, "actor_id", "actorId")
        return cls(
            business_id=parse_uuid(business_id, "business_id"),
            balances=tuple(
                OpeningBalanceLine.from_mapping(line, i) for i, line in enumerate(balances)
            ),
            items=tuple(InventoryItem.from_mapping(item, i) for i, item in enumerate(items)),
            as_of_date=parse_optional_date(
                _pick(data, "as_of_date", "asOfDate", "date"), "as_of_date"
            ),
            actor_id=parse_uuid(actor, "actor_id") if actor is not None else None,
        )


# =============================================================================
# Read-side records
# =============================================================================


@dataclass(frozen=True)
class GroupRecord:
    id: UUID
    business_id: UUID
    name: str
    code: str
    category: GroupCategory
    parent_group_id: UUID | None
    is_system: bool

    @classmethod
    def from_model(cls, model: AccountGroup) -> GroupRecord:
        return cls(
            id=model.id,
            business_id=model.business_id,
            name=model.name,
            code=model.code,
            category=GroupCategory(model.category),
            parent_group_id=model.parent_group_id,
            is_system=model.is_system,
        )


@dataclass(frozen=True)
class AccountRecord:
    """Account joined with its group's name and category."""

    id: UUID
    business_id: UUID
    code: str
    name: str
    normal_balance: EntryType
    opening_balance: Decimal
    opening_balance_type: EntryType
    group_id: UUID | None
    group_name: str | None
    group_category: GroupCategory | None

    @classmethod
    def from_model(cls, model: Account, group: AccountGroup | None = None) -> AccountRecord:
        return cls(
            id=model.id,
            business_id=model.business_id,
            code=model.code,
            name=model.name,
            normal_balance=EntryType(model.normal_balance),
            opening_balance=model.opening_balance,
            opening_balance_type=EntryType(model.opening_balance_type),
            group_id=model.account_group_id,
            group_name=group.name if group is not None else None,
            group_category=GroupCategory(group.category) if group is not None else None,
        )


@dataclass(frozen=True)
class PostingRecord:
    line_no: int
    account_id: UUID
    account_code: str
    account_name: str
    entry_type: EntryType
    amount: Decimal
    posting_date: date

    @classmethod
    def from_model(cls, model: Posting) -> PostingRecord:
        return cls(
            line_no=model.line_no,
            account_id=model.account_id,
            account_code=model.account.code,
            account_name=model.account.name,
            entry_type=EntryType(model.entry_type),
            amount=model.amount,
            posting_date=model.posting_date,
        )


@dataclass(frozen=True)
class VoucherRecord:
    """Voucher header plus postings ordered by line number."""

    id: UUID
    business_id: UUID
    voucher_type: VoucherType
    voucher_number: str
    voucher_date: date
    narration: str | None
    status: VoucherStatus
    is_system_generated: bool
    reversal_of_id: UUID | None
    posted_at: datetime | None
    cancelled_at: datetime | None
    postings: tuple[PostingRecord, ...] = field(default_factory=tuple)

    @property
    def debit_total(self) -> Decimal:
        return sum(
            (p.amount for p in self.postings if p.entry_type is EntryType.DR), ZERO
        )

    @property
    def credit_total(self) -> Decimal:
        return sum(
            (p.amount for p in self.postings if p.entry_type is EntryType.CR), ZERO
        )

    @classmethod
    def from_model(cls, model: Voucher) -> VoucherRecord:
        return cls(
            id=model.id,
            business_id=model.business_id,
            voucher_type=VoucherType(model.voucher_type),
            voucher_number=model.voucher_number,
            voucher_date=model.voucher_date,
            narration=model.narration,
            status=VoucherStatus(model.status),
            is_system_generated=model.is_system_generated,
            reversal_of_id=model.reversal_of_id,
            posted_at=model.posted_at,
            cancelled_at=model.cancelled_at,
            postings=tuple(
                PostingRecord.from_model(p)
                for p in sorted(model.postings, key=lambda p: p.line_no)
            ),
        )


@dataclass(frozen=True)
class VoucherSummary:
    """A listing row: header plus gross amount (sum of posting amounts)."""

    id: UUID
    voucher_type: VoucherType
    voucher_number: str
    voucher_date: date
    narration: str | None
    status: VoucherStatus
    is_system_generated: bool
    gross_amount: Decimal


@dataclass(frozen=True)
class VoucherPage:
    items: tuple[VoucherSummary, ...]
    total: int
    limit: int
    offset: int


@dataclass(frozen=True)
class DaybookEntry:
    id: UUID
    voucher_type: VoucherType
    voucher_number: str
    narration: str | None
    status: VoucherStatus
    debit_total: Decimal
    credit_total: Decimal


@dataclass(frozen=True)
class LedgerLine:
    """A posting as seen from its account, with the cumulative balance."""

    voucher_id: UUID
    voucher_number: str
    voucher_type: VoucherType
    posting_date: date
    line_no: int
    entry_type: EntryType
    amount: Decimal
    narration: str | None
    running_balance: Decimal


@dataclass(frozen=True)
class LedgerStatement:
    account_id: UUID
    date_from: date | None
    date_to: date | None
    opening_balance: Decimal
    closing_balance: Decimal
    lines: tuple[LedgerLine, ...]


@dataclass(frozen=True)
class BusinessStatus:
    business_id: UUID
    is_initialized: bool
    initialized_at: datetime | None


@dataclass(frozen=True)
class BootstrapIntegrity:
    """Row counts before the opening position; all zero means clean."""

    business_id: UUID
    account_count: int
    voucher_count: int
    posting_count: int

    @property
    def is_clean(self) -> bool:
        return self.account_count == 0 and self.voucher_count == 0 and self.posting_count == 0
