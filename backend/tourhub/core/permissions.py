"""Role-based permission resolution.

The role -> permission table is an immutable value built once at import
time and handed to :class:`PermissionResolver` by reference. Nothing
mutates it afterwards, so a resolver can be shared freely between request
threads.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from uuid import UUID

from tourhub.models.user import GuideStatus, UserRole

WILDCARD = "*"

# Permissions granted directly to each role, before hierarchy expansion.
ROLE_PERMISSIONS: Mapping[str, tuple[str, ...]] = {
    UserRole.ADMIN.value: (WILDCARD, "manage_roles", "delete_destinations"),
    UserRole.AUDITOR.value: (
        # Destination management
        "view_destinations",
        "create_destinations",
        "edit_destinations",
        "feature_destinations",
        "view_pending_destinations",
        "approve_destinations",
        "reject_destinations",
        "request_destination_revisions",
        # User management
        "view_users",
        "edit_users",
        "ban_users",
        # Guide management
        "view_guides",
        "verify_guides",
        "suspend_guides",
        "view_pending_guides",
        # Moderation
        "view_moderation_queue",
        "view_moderation_logs",
        "view_audit_logs",
        # Bookings
        "view_bookings",
        "cancel_bookings",
    ),
    UserRole.GUIDE.value: (
        "create_destinations",
        "edit_own_destinations",
        "delete_own_destinations",
        "submit_destinations",
        "view_own_destinations",
        "confirm_own_bookings",
        "complete_own_bookings",
        "manage_own_bookings",
        "view_booking_requests",
    ),
    UserRole.USER.value: (
        "view_destinations",
        "view_guides",
        "create_bookings",
        "view_own_bookings",
        "cancel_own_bookings",
        "update_own_bookings",
        "manage_own_profile",
        "apply_as_guide",
    ),
}

# Higher roles inherit everything granted to the roles listed here.
ROLE_HIERARCHY: Mapping[str, tuple[str, ...]] = {
    UserRole.ADMIN.value: (UserRole.AUDITOR.value, UserRole.GUIDE.value, UserRole.USER.value),
    UserRole.AUDITOR.value: (UserRole.GUIDE.value, UserRole.USER.value),
    UserRole.GUIDE.value: (UserRole.USER.value,),
    UserRole.USER.value: (),
}

MODERATOR_ROLES = frozenset({UserRole.AUDITOR.value, UserRole.ADMIN.value})


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    """The actor behind a request, as vouched for by the auth collaborator."""

    id: UUID
    role: str
    guide_status: str = GuideStatus.UNVERIFIED.value
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def is_moderator(self) -> bool:
        return self.role in MODERATOR_ROLES


@dataclass(frozen=True)
class PermissionTable:
    """Frozen role -> permission-set mapping with the hierarchy flattened in."""

    grants: Mapping[str, frozenset[str]]

    @classmethod
    def build(
        cls,
        role_permissions: Mapping[str, Iterable[str]] = ROLE_PERMISSIONS,
        hierarchy: Mapping[str, Iterable[str]] = ROLE_HIERARCHY,
    ) -> PermissionTable:
        grants: dict[str, frozenset[str]] = {}
        for role, direct in role_permissions.items():
            expanded = set(direct)
            for inherited in hierarchy.get(role, ()):
                expanded.update(role_permissions.get(inherited, ()))
            grants[role] = frozenset(expanded)
        return cls(grants=MappingProxyType(grants))

    def for_role(self, role: str) -> frozenset[str]:
        return self.grants.get(role, frozenset())

    @property
    def known_permissions(self) -> frozenset[str]:
        known: set[str] = set()
        for perms in self.grants.values():
            known.update(perms)
        return frozenset(known)


def is_own_resource_permission(permission: str) -> bool:
    return "_own_" in permission


class PermissionResolver:
    """Pure permission checks against a :class:`PermissionTable`."""

    def __init__(self, table: PermissionTable):
        self.table = table

    @staticmethod
    def effective_role(principal: AuthenticatedPrincipal) -> str:
        """Unverified guides act with plain user permissions."""
        if (
            principal.role == UserRole.GUIDE.value
            and principal.guide_status != GuideStatus.VERIFIED.value
        ):
            return UserRole.USER.value
        return principal.role

    def permissions_for(self, principal: AuthenticatedPrincipal) -> frozenset[str]:
        if not principal.is_active:
            return frozenset()
        return self.table.for_role(self.effective_role(principal))

    def check(
        self,
        principal: AuthenticatedPrincipal,
        permission: str,
        resource_owner_id: UUID | None = None,
    ) -> bool:
        if not principal.is_active:
            return False
        if principal.is_admin:
            return True

        granted = self.table.for_role(self.effective_role(principal))
        if WILDCARD in granted:
            return True
        if permission not in granted:
            return False

        if is_own_resource_permission(permission) and not principal.is_moderator:
            return resource_owner_id is not None and resource_owner_id == principal.id
        return True

    def has_any(self, principal: AuthenticatedPrincipal, permissions: Iterable[str]) -> bool:
        return any(self.check(principal, p) for p in permissions)

    def has_all(self, principal: AuthenticatedPrincipal, permissions: Iterable[str]) -> bool:
        return all(self.check(principal, p) for p in permissions)

    def can_manage(
        self,
        principal: AuthenticatedPrincipal,
        owner_id: UUID | None,
        resource_type: str | None = None,
    ) -> bool:
        """Ownership check used for edits: staff manage everything, owners their own."""
        if not principal.is_active:
            return False
        if principal.is_moderator:
            return True
        if owner_id != principal.id:
            return False
        if resource_type == "destination":
            return self.check(principal, "edit_own_destinations", owner_id)
        if resource_type == "booking":
            return self.check(principal, "update_own_bookings", owner_id)
        return True

    def is_valid_permission(self, permission: str) -> bool:
        return permission == WILDCARD or permission in self.table.known_permissions


DEFAULT_PERMISSION_TABLE = PermissionTable.build()
default_resolver = PermissionResolver(DEFAULT_PERMISSION_TABLE)
