"""
Capability checks the core calls into.

Authentication and role management live outside the core. The
services receive an Authorizer, a callable answering "may this
acting user exercise this capability?", and raise PermissionDenied
when it says no.
"""

import enum
from typing import Callable

from ledger_engine.exceptions import PermissionDenied


class Capability(str, enum.Enum):
    ACCOUNT_FREEZE = "account:freeze"
    ACCOUNT_CLOSE = "account:close"
    TRANSACTION_REVERSE = "transaction:reverse"


Authorizer = Callable[[str, Capability], bool]


def allow_all(acting_user: str, capability: Capability) -> bool:
    return True


# Roles that may exercise each privileged capability
CAPABILITY_ROLES: dict[Capability, set[str]] = {
    Capability.ACCOUNT_FREEZE: {"ADMIN", "MANAGER"},
    Capability.ACCOUNT_CLOSE: {"ADMIN", "MANAGER"},
    Capability.TRANSACTION_REVERSE: {"ADMIN", "MANAGER"},
}


class RoleAuthorizer:
    """Authorizer backed by a user -> roles mapping supplied by the caller."""

    def __init__(self, roles_by_user: dict[str, set[str]]):
        self.roles_by_user = roles_by_user

    def __call__(self, acting_user: str, capability: Capability) -> bool:
        allowed = CAPABILITY_ROLES.get(capability, set())
        return bool(self.roles_by_user.get(acting_user, set()) & allowed)


def require(authorizer: Authorizer, acting_user: str, capability: Capability) -> None:
    if not authorizer(acting_user, capability):
        raise PermissionDenied(
            f"User '{acting_user}' lacks capability {capability.value}"
        )
