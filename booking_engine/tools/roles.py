"""Role resolution boundary. Authentication itself lives outside the engine."""

from enum import Enum
from typing import Optional, Protocol


class Role(str, Enum):
    CUSTOMER = "customer"
    COMPANY = "company"
    EMPLOYEE = "employee"
    ADMIN = "admin"


# Roles allowed to act on a booking on the company's behalf.
COMPANY_SIDE_ROLES: frozenset[Role] = frozenset({Role.COMPANY, Role.EMPLOYEE, Role.ADMIN})


class RoleResolver(Protocol):
    async def resolve_role(self, user_id: str) -> Optional[Role]: ...


class StaticRoleResolver:
    """Dictionary-backed resolver for tests and local runs."""

    def __init__(self, roles: Optional[dict[str, Role]] = None) -> None:
        self._roles = dict(roles or {})

    def assign(self, user_id: str, role: Role) -> None:
        self._roles[user_id] = role

    async def resolve_role(self, user_id: str) -> Optional[Role]:
        return self._roles.get(user_id)
