"""
Resolved caller identities.

A principal is either the Owner (a super-user outside any company) or a
CompanyUser scoped to exactly one company. Principals are built fresh for
each request by the PrincipalResolver and never persisted.
"""
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional


class PrincipalKind(str, Enum):
    """Token ``kind`` claim values."""
    OWNER = 'owner'
    COMPANY_USER = 'user'


@dataclass(frozen=True)
class OwnerPrincipal:
    id: uuid.UUID
    is_active: bool = True

    kind: ClassVar[PrincipalKind] = PrincipalKind.OWNER
    company_id: ClassVar[Optional[uuid.UUID]] = None

    @property
    def is_owner(self):
        return True

    @property
    def is_authenticated(self):
        return True


@dataclass(frozen=True)
class CompanyUserPrincipal:
    id: uuid.UUID
    company_id: uuid.UUID
    is_active: bool = True

    kind: ClassVar[PrincipalKind] = PrincipalKind.COMPANY_USER

    @property
    def is_owner(self):
        return False

    @property
    def is_authenticated(self):
        return True
