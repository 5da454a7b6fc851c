"""Permission capability consumed by the submission coordinator."""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

UPDATE_OWN = "applications.update_own"
UPDATE_ALL = "applications.update_all"


class PermissionChecker(Protocol):
    def has_permission(self, subject: str, permission: str) -> bool: ...


class RolePermissions:
    """Role-based checker: subjects hold roles, roles grant permissions."""

    def __init__(
        self,
        roles: Mapping[str, Iterable[str]] | None = None,
        assignments: Mapping[str, Iterable[str] | str] | None = None,
    ):
        self.roles = {role: frozenset(perms or ()) for role, perms in (roles or {}).items()}
        self.assignments: dict[str, frozenset[str]] = {}
        for subject, assigned in (assignments or {}).items():
            names = [assigned] if isinstance(assigned, str) else list(assigned or ())
            self.assignments[subject] = frozenset(names)

    def permissions_for(self, subject: str) -> frozenset[str]:
        granted: set[str] = set()
        for role in self.assignments.get(subject, ()):
            granted |= self.roles.get(role, frozenset())
        return frozenset(granted)

    def has_permission(self, subject: str, permission: str) -> bool:
        return permission in self.permissions_for(subject)
