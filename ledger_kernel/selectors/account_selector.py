"""
AccountSelector -- read-only queries over the chart of accounts.

Listing is ordered by code and joins each account with its group's name
and category.  Name lookups are case-insensitive; the opening-position
workflow resolves groups and ledgers by name.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.domain.dtos import AccountRecord, GroupRecord
from ledger_kernel.exceptions import AccountNotFoundError, GroupNotFoundError
from ledger_kernel.models.account import Account, AccountGroup
from ledger_kernel.selectors.base import BaseSelector


class AccountSelector(BaseSelector):
    """Read-side access to groups and accounts."""

    def list_groups(self, business_id: UUID) -> list[GroupRecord]:
        rows = self.session.execute(
            select(AccountGroup)
            .where(AccountGroup.business_id == business_id)
            .order_by(AccountGroup.code)
        ).scalars()
        return [GroupRecord.from_model(g) for g in rows]

    def list_accounts(self, business_id: UUID) -> list[AccountRecord]:
        rows = self.session.execute(
            select(Account, AccountGroup)
            .outerjoin(AccountGroup, Account.account_group_id == AccountGroup.id)
            .where(Account.business_id == business_id)
            .order_by(Account.code)
        ).all()
        return [AccountRecord.from_model(account, group) for account, group in rows]

    def get_account(self, account_id: UUID, business_id: UUID) -> AccountRecord:
        """
        Raises:
            AccountNotFoundError: absent, or owned by another business.
        """
        row = self.session.execute(
            select(Account, AccountGroup)
            .outerjoin(AccountGroup, Account.account_group_id == AccountGroup.id)
            .where(Account.id == account_id, Account.business_id == business_id)
        ).first()
        if row is None:
            raise AccountNotFoundError(str(account_id))
        return AccountRecord.from_model(row[0], row[1])

    def get_group(self, group_id: UUID, business_id: UUID) -> GroupRecord:
        group = self.find_group(group_id, business_id)
        if group is None:
            raise GroupNotFoundError(str(group_id))
        return GroupRecord.from_model(group)

    # ------------------------------------------------------------------
    # Model lookups used by services inside their own transaction
    # ------------------------------------------------------------------

    def find_group(self, group_id: UUID, business_id: UUID) -> AccountGroup | None:
        return self.session.execute(
            select(AccountGroup).where(
                AccountGroup.id == group_id,
                AccountGroup.business_id == business_id,
            )
        ).scalar_one_or_none()

    def find_group_by_code(self, business_id: UUID, code: str) -> AccountGroup | None:
        return self.session.execute(
            select(AccountGroup).where(
                AccountGroup.business_id == business_id,
                AccountGroup.code == code,
            )
        ).scalar_one_or_none()

    def find_group_by_name(self, business_id: UUID, name: str) -> AccountGroup | None:
        return self.session.execute(
            select(AccountGroup)
            .where(
                AccountGroup.business_id == business_id,
                func.lower(AccountGroup.name) == name.strip().lower(),
            )
            .order_by(AccountGroup.is_system.desc(), AccountGroup.code)
            .limit(1)
        ).scalar_one_or_none()

    def find_account_by_code(self, business_id: UUID, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(
                Account.business_id == business_id,
                Account.code == code,
            )
        ).scalar_one_or_none()

    def find_account_by_identity(self, business_id: UUID, identity: str) -> Account | None:
        """Match on code first, then on case-insensitive name."""
        account = self.find_account_by_code(business_id, identity)
        if account is not None:
            return account
        return self.session.execute(
            select(Account)
            .where(
                Account.business_id == business_id,
                func.lower(Account.name) == identity.strip().lower(),
            )
            .order_by(Account.code)
            .limit(1)
        ).scalar_one_or_none()

    def foreign_account_ids(
        self, business_id: UUID, account_ids: Iterable[UUID]
    ) -> list[UUID]:
        """Ids from ``account_ids`` that are not accounts of ``business_id``."""
        wanted = set(account_ids)
        if not wanted:
            return []
        owned = set(
            self.session.execute(
                select(Account.id).where(
                    Account.business_id == business_id,
                    Account.id.in_(wanted),
                )
            ).scalars()
        )
        return sorted(wanted - owned, key=str)
