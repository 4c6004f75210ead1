"""
Role scoping for row-level visibility.

A Scope is resolved once per request from the verified token claims and is
then applied to every query the request issues, so handlers never branch on
the caller's role themselves.

    Owner(id)    non-admin caller, sees only rows with user_id == id
    Admin        admin caller, sees every row
    AdminAs(id)  admin caller narrowing to one user's rows via ?userId=
"""
from dataclasses import dataclass
from typing import Optional

from minicrm.errors import ValidationError


@dataclass(frozen=True)
class Caller:
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'


@dataclass(frozen=True)
class Scope:
    caller: Caller
    user_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.caller.is_admin

    @property
    def kind(self) -> str:
        if not self.is_admin:
            return 'owner'
        return 'admin_as' if self.user_id is not None else 'admin'

    @property
    def owner_id(self) -> int:
        """User id that newly created rows belong to."""
        return self.user_id if self.user_id is not None else self.caller.id

    def apply(self, query, column):
        if self.user_id is None:
            return query
        return query.filter(column == self.user_id)

    def allows(self, owner_id) -> bool:
        return self.user_id is None or owner_id == self.user_id


def Owner(caller_id, role='user'):
    return Scope(Caller(caller_id, role), caller_id)


def Admin(caller_id):
    return Scope(Caller(caller_id, 'admin'))


def AdminAs(caller_id, user_id):
    return Scope(Caller(caller_id, 'admin'), user_id)


def resolve_scope(caller, requested_user_id=None):
    # Non-admins are pinned to their own rows whatever ?userId= says
    if not caller.is_admin:
        return Owner(caller.id, caller.role)
    if requested_user_id in (None, ''):
        return Admin(caller.id)
    try:
        return AdminAs(caller.id, int(requested_user_id))
    except (TypeError, ValueError):
        raise ValidationError('userId must be an integer')
