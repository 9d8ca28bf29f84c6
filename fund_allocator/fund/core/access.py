"""
Access Control.

Role-based gate for the fund's privileged operations.
"""

from enum import Enum
from typing import Dict, Iterable, Set

from fund_allocator.core import UnauthorizedError, get_logger

logger = get_logger(__name__)


class Permission(Enum):
    """Privileged fund permissions."""

    MANAGE_POOLS = "pools:manage"
    SET_WEIGHTS = "weights:set"
    SET_FEE = "fee:set"
    REBALANCE = "fund:rebalance"


class Role(Enum):
    """Predefined roles."""

    ADMIN = "admin"
    REBALANCER = "rebalancer"


ROLE_PERMISSIONS: Dict[Role, Set[Permission]] = {
    Role.ADMIN: set(Permission),
    Role.REBALANCER: {Permission.REBALANCE},
}


class AccessController:
    """
    Account to role mapping.

    Example:
        >>> access = AccessController(admins=["admin"])
        >>> access.grant("keeper", Role.REBALANCER)
        >>> access.require("keeper", Permission.REBALANCE)
        >>> access.has_permission("keeper", Permission.SET_FEE)
        False
    """

    def __init__(
        self,
        admins: Iterable[str] = (),
        rebalancers: Iterable[str] = (),
    ):
        self._roles: Dict[str, Set[Role]] = {}
        for account in admins:
            self.grant(account, Role.ADMIN)
        for account in rebalancers:
            self.grant(account, Role.REBALANCER)

    def grant(self, account: str, role: Role) -> None:
        self._roles.setdefault(account, set()).add(role)
        logger.info(f"Granted {role.value} to {account}")

    def revoke(self, account: str, role: Role) -> None:
        roles = self._roles.get(account)
        if not roles or role not in roles:
            return
        roles.discard(role)
        if not roles:
            del self._roles[account]
        logger.info(f"Revoked {role.value} from {account}")

    def roles_of(self, account: str) -> Set[Role]:
        return set(self._roles.get(account, set()))

    def has_permission(self, account: str, permission: Permission) -> bool:
        return any(
            permission in ROLE_PERMISSIONS[role]
            for role in self._roles.get(account, ())
        )

    def require(self, account: str, permission: Permission) -> None:
        """
        Raises:
            UnauthorizedError: If account lacks permission
        """
        if not self.has_permission(account, permission):
            logger.warning(f"Denied {permission.value} to {account}")
            raise UnauthorizedError(
                f"{account} lacks permission {permission.value}",
                details={"account": account, "permission": permission.value},
            )
