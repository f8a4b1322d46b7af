"""
Capability tokens for state-changing calls.

Authorization is resolved outside the kernel.  Callers pass a capability
object into each approve, settle, reverse or account-management call, and
the kernel only asks it ``allows(permission)``; there is no ambient
"current user".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable
from uuid import UUID

from treasury_kernel.exceptions import AuthorizationError


class Permission(str, Enum):
    """Economic verbs the kernel guards."""

    REQUEST = "payables.request"
    APPROVE = "payables.approve"
    SETTLE = "payables.settle"
    REVERSE = "payables.reverse"
    MANAGE_ACCOUNTS = "accounts.manage"
    RECORD_MOVEMENT = "accounts.record_movement"


@runtime_checkable
class Capability(Protocol):
    """What the kernel needs from an authorization collaborator."""

    @property
    def actor_id(self) -> UUID: ...

    def allows(self, permission: Permission) -> bool: ...


@dataclass(frozen=True)
class StaticCapability:
    """Capability with a fixed permission set, resolved once by the caller."""

    actor_id: UUID
    permissions: frozenset[Permission] = field(default_factory=frozenset)

    def allows(self, permission: Permission) -> bool:
        return permission in self.permissions

    @classmethod
    def full(cls, actor_id: UUID) -> StaticCapability:
        """Every permission; for administrators and tests."""
        return cls(actor_id=actor_id, permissions=frozenset(Permission))


def require(capability: Capability, permission: Permission) -> None:
    """
    Raise unless ``capability`` grants ``permission``.

    Raises:
        AuthorizationError: If the permission is not granted.
    """
    if not capability.allows(permission):
        raise AuthorizationError(
            actor_id=str(capability.actor_id),
            permission=permission.value,
        )
