"""
ledger_services.rbac_authority -- Role/permission enforcement at the service boundary.

Responsibility:
    Decide whether a role may perform an action (a ``resource:verb``
    permission), resolve the role's approval threshold, and check
    segregation of duties between a preparer and an approver.

Architecture position:
    Services layer.  Consumes the GovernancePolicy from ledger_config.
    Called by the posting pipeline, JournalService and the period close
    orchestrator before any write.

Invariants:
    - The kernel stays actor-agnostic; callers pass the user id and role.
    - ``*`` grants everything; ``resource:*`` grants every verb on a
      resource.  Inherited roles contribute their permissions.
    - Unknown roles hold no permissions (fail closed).
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from ledger_config.schema import WILDCARD, GovernancePolicy
from ledger_kernel.exceptions import PermissionDeniedError, SegregationOfDutiesError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.rbac")

# Permission taxonomy used across the ledger.
INVOICE_POST = "invoice:post"
BILL_POST = "bill:post"
PAYMENT_CREATE = "payment:create"
JOURNAL_CREATE = "journal:create"
JOURNAL_POST = "journal:post"
JOURNAL_APPROVE = "journal:approve"
JOURNAL_REVERSE = "journal:reverse"
PERIOD_CREATE = "period:create"
PERIOD_CLOSE = "period:close"
PERIOD_FORCE_CLOSE = "period:force_close"
PERIOD_LOCK = "period:lock"
PERIOD_REOPEN = "period:reopen"
PERIOD_APPROVE_REOPEN = "period:approve_reopen"
PERIOD_OVERRIDE = "period:override"
FX_INGEST = "fx:ingest"
REPORT_VIEW = "report:view"


class RbacAuthority:
    """
    Permission checks bound to one GovernancePolicy.

    Role permission sets are flattened once at construction.
    """

    def __init__(self, policy: GovernancePolicy):
        self._policy = policy
        self._permissions: dict[str, frozenset[str]] = {
            role.name: frozenset(self._collect(role.name, set()))
            for role in policy.roles
        }

    def _collect(self, role_name: str, seen: set[str]) -> set[str]:
        if role_name in seen:
            return set()
        seen.add(role_name)
        role = self._policy.role(role_name)
        if role is None:
            return set()
        permissions = set(role.permissions)
        for parent in role.inherits:
            permissions |= self._collect(parent, seen)
        return permissions

    @property
    def policy(self) -> GovernancePolicy:
        return self._policy

    def permissions_of(self, role: str) -> frozenset[str]:
        return self._permissions.get(role, frozenset())

    def check(self, role: str, permission: str) -> tuple[bool, str]:
        """
        Returns:
            (allowed, reason).  reason is empty when allowed.
        """
        granted = self.permissions_of(role)
        if not granted:
            return (False, f"RBAC: unknown role or no permissions for '{role}'")
        if WILDCARD in granted or permission in granted:
            return (True, "")
        resource = permission.split(":", 1)[0]
        if f"{resource}:{WILDCARD}" in granted:
            return (True, "")
        return (False, f"RBAC: permission '{permission}' not granted to role '{role}'")

    def has_permission(self, role: str, permission: str) -> bool:
        return self.check(role, permission)[0]

    def require(self, role: str, permission: str, actor_id: UUID | None = None) -> None:
        """Raise PermissionDeniedError unless ``role`` holds ``permission``."""
        allowed, reason = self.check(role, permission)
        if not allowed:
            logger.warning(
                "permission_denied",
                extra={
                    "role": role,
                    "permission": permission,
                    "actor_id": str(actor_id) if actor_id else None,
                    "reason": reason,
                },
            )
            raise PermissionDeniedError(role, permission)

    def approval_threshold(self, role: str) -> Decimal | None:
        """
        Largest base-currency amount ``role`` may post without approval.

        None means unlimited.  Unknown roles get a zero threshold.
        """
        role_def = self._policy.role(role)
        if role_def is None:
            return Decimal("0")
        if role_def.approval_threshold is not None:
            return role_def.approval_threshold
        if WILDCARD in self.permissions_of(role):
            return None
        for parent in role_def.inherits:
            threshold = self.approval_threshold(parent)
            if threshold is not None:
                return threshold
        return None

    def exceeds_threshold(self, role: str, amount: Decimal) -> bool:
        threshold = self.approval_threshold(role)
        return threshold is not None and amount > threshold

    def require_distinct_approver(
        self,
        preparer_id: UUID | None,
        approver_id: UUID,
        action: str,
    ) -> None:
        """Segregation of duties: the approver must not be the preparer."""
        if preparer_id is not None and preparer_id == approver_id:
            logger.warning(
                "sod_violation",
                extra={"actor_id": str(approver_id), "action": action},
            )
            raise SegregationOfDutiesError(
                str(approver_id), action, "approver is the preparer"
            )
