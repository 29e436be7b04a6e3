"""
ChartOfAccountsService -- groups and ledger accounts.

Responsibility:
    Seeds the six system groups, creates custom groups and accounts, and
    provides race-safe find-or-create helpers for the opening-position
    workflow.

Architecture position:
    Kernel > Services -- imperative shell.  Reads go through
    AccountSelector; this service only writes.

Invariants enforced:
    - Group and account codes are unique per business.  The unique
      constraints are the final word; pre-checks only give clearer errors.
    - An account's group must belong to the same business.
    - ``ensure_*`` inserts run in a savepoint and re-select on
      IntegrityError, so two concurrent bootstraps converge on one row.

Failure modes:
    - DuplicateGroupCodeError / DuplicateAccountCodeError on code reuse.
    - UnknownGroupError when the group id is not in the business.
    - ValidationError on blank code/name or a negative opening balance.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, to_money
from ledger_kernel.domain.opening_position import code_from_name
from ledger_kernel.exceptions import (
    DuplicateAccountCodeError,
    DuplicateGroupCodeError,
    UnknownGroupError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import (
    SYSTEM_GROUPS,
    Account,
    AccountGroup,
    EntryType,
    GroupCategory,
    normal_balance_for,
)
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.services.base import BaseService

logger = get_logger("services.chart_of_accounts")


def _require_text(value: str | None, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required", field=field)
    return text


class ChartOfAccountsService(BaseService):
    """Write side of the chart of accounts."""

    def __init__(self, session: Session):
        super().__init__(session)
        self._accounts = AccountSelector(session)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def bootstrap_groups(self, business_id: UUID) -> list[AccountGroup]:
        """
        Insert the six system groups, skipping codes already present.

        Idempotent: a second call inserts nothing and returns the same rows.
        """
        groups: list[AccountGroup] = []
        created = 0
        with self.atomic("bootstrap_groups"):
            for name, code, category in SYSTEM_GROUPS:
                group = self._accounts.find_group_by_code(business_id, code)
                if group is None:
                    group = self._insert_group(
                        business_id, name, code, category, is_system=True
                    )
                    created += 1
                groups.append(group)
        if created:
            logger.info(
                "system_groups_bootstrapped",
                extra={"business_id": str(business_id), "groups_created": created},
            )
        return groups

    def create_group(
        self,
        business_id: UUID,
        name: str,
        code: str,
        category: GroupCategory | str,
        parent_group_id: UUID | None = None,
    ) -> AccountGroup:
        """Create a custom (non-system) group."""
        name = _require_text(name, "name")
        code = _require_text(code, "code")
        try:
            category = GroupCategory(category)
        except ValueError:
            raise ValidationError(
                f"Unknown group category: {category}", field="category"
            ) from None

        with self.atomic("group_create"):
            if parent_group_id is not None:
                if self._accounts.find_group(parent_group_id, business_id) is None:
                    raise UnknownGroupError(str(parent_group_id))
            if self._accounts.find_group_by_code(business_id, code) is not None:
                raise DuplicateGroupCodeError(str(business_id), code)
            try:
                group = self._insert_group(
                    business_id, name, code, category, parent_group_id=parent_group_id
                )
            except IntegrityError:
                raise DuplicateGroupCodeError(str(business_id), code) from None

        logger.info(
            "account_group_created",
            extra={"business_id": str(business_id), "group_code": code},
        )
        return group

    def ensure_group(
        self,
        business_id: UUID,
        name: str,
        category: GroupCategory | str,
    ) -> AccountGroup:
        """
        Find a group by case-insensitive name or code, or create it.

        New groups hang off the system group of the same category.
        """
        name = _require_text(name, "group")
        category = GroupCategory(category)

        existing = self._find_group_by_label(business_id, name)
        if existing is not None:
            return existing

        parent = self._system_group(business_id, category)
        code = self._free_group_code(business_id, name)
        savepoint = self.session.begin_nested()
        try:
            group = self._insert_group(
                business_id,
                name,
                code,
                category,
                parent_group_id=parent.id if parent is not None else None,
            )
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "ensure_group_race_retry",
                extra={"business_id": str(business_id), "group": name},
            )
            group = self._find_group_by_label(business_id, name)
            if group is None:
                raise
        return group

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(
        self,
        business_id: UUID,
        group_id: UUID,
        code: str,
        name: str,
        normal_balance: EntryType | str | None = None,
        opening_balance: Decimal | int | str = ZERO,
        opening_balance_type: EntryType | str = EntryType.DR,
        actor_id: UUID | None = None,
    ) -> Account:
        """
        Create a ledger account under ``group_id``.

        ``normal_balance`` defaults to the natural side of the group's
        category (assets and expenses DR, everything else CR).
        """
        code = _require_text(code, "code")
        name = _require_text(name, "name")
        try:
            opening = to_money(opening_balance)
        except ValueError:
            raise ValidationError(
                "opening_balance must be a number", field="opening_balance"
            ) from None
        if opening < 0:
            raise ValidationError(
                "opening_balance cannot be negative", field="opening_balance"
            )
        try:
            opening_type = EntryType(opening_balance_type)
        except ValueError:
            raise ValidationError(
                "opening_balance_type must be DR or CR", field="opening_balance_type"
            ) from None

        with self.atomic("account_create"):
            group = self._accounts.find_group(group_id, business_id)
            if group is None:
                raise UnknownGroupError(str(group_id))
            side = (
                EntryType(normal_balance)
                if normal_balance is not None
                else normal_balance_for(group.category)
            )
            if self._accounts.find_account_by_code(business_id, code) is not None:
                raise DuplicateAccountCodeError(str(business_id), code)
            try:
                account = self._insert_account(
                    business_id,
                    group.id,
                    code,
                    name,
                    side,
                    opening,
                    opening_type,
                    actor_id,
                )
            except IntegrityError:
                raise DuplicateAccountCodeError(str(business_id), code) from None

        logger.info(
            "account_created",
            extra={
                "business_id": str(business_id),
                "account_code": code,
                "group_code": group.code,
            },
        )
        return account

    def ensure_account(
        self,
        business_id: UUID,
        identity: str,
        group_id: UUID,
        normal_balance: EntryType | str,
        name: str | None = None,
        code: str | None = None,
        actor_id: UUID | None = None,
    ) -> Account:
        """
        Find an account by code or case-insensitive name, or insert it.

        A new account gets ``code`` (default: ``identity``) and ``name``
        (default: ``identity``).  Runs in the caller's transaction.
        """
        identity = _require_text(identity, "identity")
        existing = self._accounts.find_account_by_identity(business_id, identity)
        if existing is not None:
            return existing

        new_code = (code or identity).strip()
        savepoint = self.session.begin_nested()
        try:
            account = self._insert_account(
                business_id,
                group_id,
                new_code,
                (name or identity).strip(),
                EntryType(normal_balance),
                ZERO,
                EntryType(normal_balance),
                actor_id,
            )
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "ensure_account_race_retry",
                extra={"business_id": str(business_id), "account_code": new_code},
            )
            account = self._accounts.find_account_by_code(
                business_id, new_code
            ) or self._accounts.find_account_by_identity(business_id, identity)
            if account is None:
                raise
        return account

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _find_group_by_label(self, business_id: UUID, label: str) -> AccountGroup | None:
        group = self._accounts.find_group_by_name(business_id, label)
        if group is None:
            group = self._accounts.find_group_by_code(business_id, label.upper())
        return group

    def _system_group(self, business_id: UUID, category: GroupCategory) -> AccountGroup | None:
        for _, code, system_category in SYSTEM_GROUPS:
            if system_category is category:
                return self._accounts.find_group_by_code(business_id, code)
        return None

    def _free_group_code(self, business_id: UUID, name: str) -> str:
        base = code_from_name(name)
        code = base
        suffix = 2
        while self._accounts.find_group_by_code(business_id, code) is not None:
            code = f"{base[:45]}-{suffix}"
            suffix += 1
        return code

    def _insert_group(
        self,
        business_id: UUID,
        name: str,
        code: str,
        category: GroupCategory,
        parent_group_id: UUID | None = None,
        is_system: bool = False,
    ) -> AccountGroup:
        group = AccountGroup(
            business_id=business_id,
            name=name,
            code=code,
            category=category,
            parent_group_id=parent_group_id,
            is_system=is_system,
        )
        self.session.add(group)
        self.session.flush()
        return group

    def _insert_account(
        self,
        business_id: UUID,
        group_id: UUID,
        code: str,
        name: str,
        normal_balance: EntryType,
        opening_balance: Decimal,
        opening_balance_type: EntryType,
        actor_id: UUID | None,
    ) -> Account:
        account = Account(
            business_id=business_id,
            account_group_id=group_id,
            code=code,
            name=name,
            normal_balance=normal_balance,
            opening_balance=opening_balance,
            opening_balance_type=opening_balance_type,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()
        return account
